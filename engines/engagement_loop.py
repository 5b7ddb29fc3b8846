"""
EngagementLoop - opens a chat widget by trial and verification

    IDLE -> LOCATING -> CLICKING -> VERIFYING -> SUCCESS
                ^           ^           |
                |           |           v
                +------- RETRYING <-----+
                            |
                            v
                        EXHAUSTED

Every click is followed by a settle delay and a screenshot judged by the
vision oracle. The loop gives up after a fixed number of attempts and falls
back to a capture of the visible page; running out of candidates is a
result, not an exception.
"""
import asyncio
from enum import Enum
from typing import List, Optional, Tuple

from rich.console import Console

from config import Config
from core.errors import OracleError
from core.logger import ScanLogger
from core.models import (
    EMPTY_CAPTURE,
    AttemptOutcome,
    AttemptRecord,
    Candidate,
    EngagementResult,
    LocatorTier,
    PageSession,
)
from detectors.widget_locator import WidgetLocator
from engines.judgment_engine import QualityJudgmentAdapter
from engines.session_engine import SessionOrchestrator

console = Console()


class EngagementState(Enum):
    IDLE = "idle"
    LOCATING = "locating"
    CLICKING = "clicking"
    VERIFYING = "verifying"
    RETRYING = "retrying"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


class EngagementLoop:

    def __init__(self,
                 sessions: SessionOrchestrator,
                 locator: WidgetLocator,
                 judge: QualityJudgmentAdapter,
                 logger: ScanLogger,
                 max_attempts: int = Config.MAX_ENGAGEMENT_ATTEMPTS,
                 click_settle: float = Config.CLICK_SETTLE_SECONDS):
        self.sessions = sessions
        self.locator = locator
        self.judge = judge
        self.logger = logger
        self.max_attempts = max_attempts
        self.click_settle = click_settle

    async def run(self, session: PageSession, vendor_name: Optional[str] = None) -> EngagementResult:
        console.print("\n[bold cyan]💬 ENGAGE: Trying to open the chat widget...[/bold cyan]")

        state = EngagementState.IDLE
        attempts: Tuple[AttemptRecord, ...] = ()
        tier: Optional[LocatorTier] = None
        next_tier: Optional[LocatorTier] = LocatorTier.EMBEDDED_FRAME
        queue: List[Candidate] = []
        candidate: Optional[Candidate] = None
        opened_capture = EMPTY_CAPTURE

        while True:
            if state == EngagementState.IDLE:
                state = EngagementState.LOCATING

            elif state == EngagementState.LOCATING:
                if next_tier is None:
                    state = EngagementState.EXHAUSTED
                    continue
                tier, queue = await self.locator.locate_from(session, next_tier, attempts, vendor_name)
                state = EngagementState.CLICKING if tier is not None else EngagementState.EXHAUSTED

            elif state == EngagementState.CLICKING:
                candidate = queue.pop(0)
                console.print(f"[cyan]   🖱️  Attempt {len(attempts) + 1}/{self.max_attempts}: "
                              f"clicking {candidate.describe()}[/cyan]")
                try:
                    await self.sessions.click(session, candidate)
                except Exception as e:
                    attempts = self._record(session, attempts, candidate, AttemptOutcome.ERROR, f"click failed: {e}")
                    state = EngagementState.RETRYING
                    continue
                await asyncio.sleep(self.click_settle)
                state = EngagementState.VERIFYING

            elif state == EngagementState.VERIFYING:
                capture = await self.sessions.screenshot(session, label=f"verify_{len(attempts) + 1}")
                if not capture:
                    attempts = self._record(session, attempts, candidate, AttemptOutcome.ERROR, "empty capture")
                    state = EngagementState.RETRYING
                    continue
                try:
                    opened = await self.judge.verify_open(capture, session.verdicts)
                except OracleError as e:
                    attempts = self._record(session, attempts, candidate, AttemptOutcome.ERROR, str(e))
                    state = EngagementState.RETRYING
                    continue

                if opened:
                    attempts = self._record(session, attempts, candidate, AttemptOutcome.OPENED)
                    opened_capture = capture
                    state = EngagementState.SUCCESS
                else:
                    attempts = self._record(session, attempts, candidate, AttemptOutcome.NOT_OPENED)
                    state = EngagementState.RETRYING

            elif state == EngagementState.RETRYING:
                if len(attempts) >= self.max_attempts:
                    state = EngagementState.EXHAUSTED
                elif queue:
                    state = EngagementState.CLICKING
                else:
                    next_tier = _next_tier(tier)
                    state = EngagementState.LOCATING

            elif state == EngagementState.SUCCESS:
                console.print(f"[green]   ✅ Chat widget opened after {len(attempts)} attempt(s)[/green]")
                return EngagementResult(
                    success=True,
                    final_screenshot=opened_capture,
                    attempts=attempts,
                    fallback_used=False,
                )

            elif state == EngagementState.EXHAUSTED:
                console.print(f"[yellow]   ⚠️  Could not open the chat widget ({len(attempts)} attempt(s)), "
                              f"using the visible page[/yellow]")
                fallback = await self.sessions.screenshot(session, label="fallback")
                result = EngagementResult(
                    success=False,
                    final_screenshot=fallback,
                    attempts=attempts,
                    fallback_used=True,
                )
                self.logger.log_info(result.failure_explanation())
                return result

    def _record(self,
                session: PageSession,
                attempts: Tuple[AttemptRecord, ...],
                candidate: Candidate,
                outcome: AttemptOutcome,
                detail: str = "") -> Tuple[AttemptRecord, ...]:
        record = AttemptRecord(
            attempt_number=len(attempts) + 1,
            candidate=candidate,
            outcome=outcome,
            detail=detail,
        )
        self.logger.log_attempt(session.url, record)
        if outcome == AttemptOutcome.ERROR:
            console.print(f"[red]   ❌ Attempt {record.attempt_number} failed: {detail}[/red]")
        return attempts + (record,)


def _next_tier(tier: Optional[LocatorTier]) -> Optional[LocatorTier]:
    if tier is None or tier == max(LocatorTier):
        return None
    return LocatorTier(tier + 1)
