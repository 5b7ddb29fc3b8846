"""
WidgetLocator - finds points that might open a chat widget

Tiers are tried in escalation order, each one a row of TIER_TABLE:
  1. EMBEDDED_FRAME    iframes whose attributes mention chat
  2. SHADOW_TREE       chat-like elements inside open shadow roots
  3. PATTERN_SELECTOR  generic launcher selectors (detectors/patterns.py)
  4. VENDOR_PATTERN    launcher selectors of the fingerprinted vendor
  5. FIXED_POSITION    small fixed elements near the bottom-right corner
  6. VISUAL            launcher coordinates proposed by the vision oracle
The locator never clicks; it only proposes ranked candidates.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from rich.console import Console

from config import Config
from core.errors import OracleError
from core.logger import ScanLogger
from core.models import AttemptRecord, Candidate, Confidence, LocatorTier, PageSession
from detectors.patterns import (
    FIXED_MAX_EDGE_GAP_PX,
    FIXED_MAX_SIZE_PX,
    FRAME_SUBSTRINGS,
    GENERIC_CHAT_SELECTORS,
    SHADOW_SUBSTRINGS,
)
from detectors.vendor_registry import VendorRegistry
from utils.helpers import load_js_file

console = Console()

FRAME_SCAN_JS = load_js_file("frame_scan.js")
SHADOW_SCAN_JS = load_js_file("shadow_scan.js")
SELECTOR_SCAN_JS = load_js_file("selector_scan.js")
FIXED_SCAN_JS = load_js_file("fixed_scan.js")


@dataclass(frozen=True)
class TierSpec:
    tier: LocatorTier
    script: Optional[str]
    confidence: Confidence
    argument: Any = None
    needs_vendor: bool = False


TIER_TABLE: Tuple[TierSpec, ...] = (
    TierSpec(LocatorTier.EMBEDDED_FRAME, FRAME_SCAN_JS, Confidence.HIGH, FRAME_SUBSTRINGS),
    TierSpec(LocatorTier.SHADOW_TREE, SHADOW_SCAN_JS, Confidence.MEDIUM, SHADOW_SUBSTRINGS),
    TierSpec(LocatorTier.PATTERN_SELECTOR, SELECTOR_SCAN_JS, Confidence.MEDIUM, GENERIC_CHAT_SELECTORS),
    TierSpec(LocatorTier.VENDOR_PATTERN, SELECTOR_SCAN_JS, Confidence.HIGH, needs_vendor=True),
    TierSpec(LocatorTier.FIXED_POSITION, FIXED_SCAN_JS, Confidence.LOW,
             {"maxSize": FIXED_MAX_SIZE_PX, "maxEdgeGap": FIXED_MAX_EDGE_GAP_PX}),
    TierSpec(LocatorTier.VISUAL, None, Confidence.LOW),
)

TIERS: Dict[LocatorTier, TierSpec] = {spec.tier: spec for spec in TIER_TABLE}


def rank_candidates(candidates: Iterable[Candidate],
                    viewport: Tuple[int, int],
                    tried_points: Sequence[Tuple[float, float]] = (),
                    retry_radius: float = Config.RETRY_RADIUS_PX) -> List[Candidate]:
    """
    Order candidates closest-first to the bottom-right viewport corner.

    Candidates sharing a rounded point are collapsed into the first one.
    Candidates near an already tried point are moved to the end, not dropped.
    """
    corner_x, corner_y = viewport
    ordered = sorted(candidates, key=lambda c: c.distance_to(corner_x, corner_y))

    unique: List[Candidate] = []
    seen = set()
    for candidate in ordered:
        key = (round(candidate.x), round(candidate.y))
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)

    fresh = []
    retried = []
    for candidate in unique:
        if any(candidate.near(x, y, retry_radius) for x, y in tried_points):
            retried.append(candidate)
        else:
            fresh.append(candidate)
    return fresh + retried


class WidgetLocator:

    def __init__(self,
                 logger: ScanLogger,
                 registry: VendorRegistry,
                 judge=None,
                 sessions=None,
                 retry_radius: float = Config.RETRY_RADIUS_PX,
                 enable_visual: bool = Config.ENABLE_VISUAL_LOCATOR):
        self.logger = logger
        self.registry = registry
        self.judge = judge
        self.sessions = sessions
        self.retry_radius = retry_radius
        self.enable_visual = enable_visual and judge is not None and sessions is not None

    def tiers(self) -> List[LocatorTier]:
        """Tiers in escalation order, VISUAL only when an oracle is wired in."""
        return [spec.tier for spec in TIER_TABLE
                if spec.tier != LocatorTier.VISUAL or self.enable_visual]

    async def locate(self,
                     session: PageSession,
                     tier: LocatorTier,
                     attempts: Sequence[AttemptRecord] = (),
                     vendor_name: Optional[str] = None) -> List[Candidate]:
        spec = TIERS[tier]
        tried_points = [(record.candidate.x, record.candidate.y) for record in attempts]

        if spec.tier == LocatorTier.VISUAL:
            candidates = await self._locate_visually(session, tried_points)
        else:
            argument = spec.argument
            if spec.needs_vendor:
                argument = self.registry.selectors_for(vendor_name)
                if not argument:
                    return []
            candidates = await self._scan(session, spec, argument)

        ranked = rank_candidates(candidates, session.viewport, tried_points, self.retry_radius)
        self.logger.log_action("candidate_scan", {
            "url": session.url,
            "tier": tier.name,
            "found": len(ranked),
            "candidates": [c.describe() for c in ranked[:5]],
        })
        if ranked:
            console.print(f"[cyan]   🎯 {tier.name}: {len(ranked)} candidate(s), best {ranked[0].describe()}[/cyan]")
        return ranked

    async def locate_from(self,
                          session: PageSession,
                          start_tier: LocatorTier,
                          attempts: Sequence[AttemptRecord] = (),
                          vendor_name: Optional[str] = None) -> Tuple[Optional[LocatorTier], List[Candidate]]:
        """First non-empty tier at or after start_tier, or (None, [])."""
        for tier in self.tiers():
            if tier < start_tier:
                continue
            candidates = await self.locate(session, tier, attempts, vendor_name)
            if candidates:
                return tier, candidates
        return None, []

    async def _scan(self, session: PageSession, spec: TierSpec, argument) -> List[Candidate]:
        try:
            items = await session.page.evaluate(spec.script, argument)
        except Exception as e:
            console.print(f"[yellow]   ⚠️  {spec.tier.name} scan failed: {e}[/yellow]")
            self.logger.log_error("candidate_scan_failed", str(e), {
                "url": session.url,
                "tier": spec.tier.name,
            })
            return []

        width, height = session.viewport
        candidates = []
        for item in items or []:
            try:
                candidate = Candidate(
                    x=float(item["x"]),
                    y=float(item["y"]),
                    source_strategy=spec.tier,
                    confidence=spec.confidence,
                    width=float(item.get("width", 0)),
                    height=float(item.get("height", 0)),
                    label=str(item.get("label", "")),
                )
            except (KeyError, TypeError, ValueError):
                continue
            # A mouse click outside the viewport hits nothing
            if not (0 <= candidate.x <= width and 0 <= candidate.y <= height):
                continue
            candidates.append(candidate)
        return candidates

    async def _locate_visually(self, session: PageSession,
                               tried_points: List[Tuple[float, float]]) -> List[Candidate]:
        if not self.enable_visual:
            return []

        image = await self.sessions.screenshot(session, label="visual_locate")
        if not image:
            return []

        try:
            candidate = await self.judge.locate_launcher(image, session.viewport, tried_points)
        except OracleError as e:
            console.print(f"[yellow]   ⚠️  Visual locate failed: {e}[/yellow]")
            self.logger.log_error("visual_locate_failed", str(e), {"url": session.url})
            return []
        return [candidate] if candidate else []
