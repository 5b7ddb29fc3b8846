"""
Data model shared by the fingerprinting and widget engagement pipelines.
"""
import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Tuple


# Returned by screenshot capture when both the full and the degraded attempt failed
EMPTY_CAPTURE = b""


@dataclass(frozen=True)
class VendorSignature:
    """One row of the vendor registry."""
    name: str
    homepage_url: str
    network_substring: str
    global_property_name: str
    launcher_selectors: Tuple[str, ...] = ()


class FingerprintMethod(Enum):
    NETWORK = "network"
    GLOBAL_SCOPE = "globalScope"
    BOTH = "both"
    NONE = "none"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class FingerprintResult:
    vendor_name: Optional[str]
    method: FingerprintMethod

    @classmethod
    def none(cls) -> "FingerprintResult":
        return cls(vendor_name=None, method=FingerprintMethod.NONE)

    @classmethod
    def timeout(cls) -> "FingerprintResult":
        return cls(vendor_name=None, method=FingerprintMethod.TIMEOUT)

    @classmethod
    def error(cls) -> "FingerprintResult":
        return cls(vendor_name=None, method=FingerprintMethod.ERROR)

    @property
    def detected(self) -> bool:
        return self.vendor_name is not None

    def to_dict(self) -> Dict[str, Any]:
        return {"vendorName": self.vendor_name, "method": self.method.value}


class LocatorTier(IntEnum):
    """Widget locator strategies in escalation order."""
    EMBEDDED_FRAME = 1
    SHADOW_TREE = 2
    PATTERN_SELECTOR = 3
    VENDOR_PATTERN = 4
    FIXED_POSITION = 5
    VISUAL = 6


class Confidence(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3


@dataclass(frozen=True)
class Candidate:
    """A located, not yet clicked, point hypothesised to open the widget."""
    x: float
    y: float
    source_strategy: LocatorTier
    confidence: Confidence
    width: float = 0.0
    height: float = 0.0
    label: str = ""

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(self.x - x, self.y - y)

    def near(self, x: float, y: float, radius: float) -> bool:
        return self.distance_to(x, y) <= radius

    def describe(self) -> str:
        label = f" {self.label}" if self.label else ""
        return f"{self.source_strategy.name.lower()}@({self.x:.0f},{self.y:.0f}){label}"


class AttemptOutcome(Enum):
    OPENED = "opened"
    NOT_OPENED = "notOpened"
    ERROR = "error"


@dataclass(frozen=True)
class AttemptRecord:
    attempt_number: int
    candidate: Candidate
    outcome: AttemptOutcome
    detail: str = ""


@dataclass(frozen=True)
class EngagementResult:
    success: bool
    final_screenshot: bytes
    attempts: Tuple[AttemptRecord, ...] = ()
    fallback_used: bool = False

    def failure_explanation(self) -> str:
        if self.success:
            return ""
        if not self.attempts:
            return "No chat launcher candidates were found on the page"
        lines = [f"Could not open the chat widget after {len(self.attempts)} attempt(s):"]
        for record in self.attempts:
            line = f"  #{record.attempt_number} {record.candidate.describe()} -> {record.outcome.value}"
            if record.detail:
                line += f" ({record.detail})"
            lines.append(line)
        return "\n".join(lines)


@dataclass(frozen=True)
class WelcomeScore:
    text: str
    score: Optional[int] = None


@dataclass(frozen=True)
class WelcomeMessageResult:
    evaluation: str
    attempts: str  # "success" | "failed"
    error: Optional[str] = None
    score: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"evaluation": self.evaluation, "attempts": self.attempts}
        if self.score is not None:
            data["score"] = self.score
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class AnalysisResult:
    url: str
    vendor_name: Optional[str]
    method: FingerprintMethod
    welcome_message: Optional[WelcomeMessageResult] = None

    @classmethod
    def from_fingerprint(cls, url: str, fingerprint: FingerprintResult,
                         welcome_message: Optional[WelcomeMessageResult] = None) -> "AnalysisResult":
        return cls(
            url=url,
            vendor_name=fingerprint.vendor_name,
            method=fingerprint.method,
            welcome_message=welcome_message,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "url": self.url,
            "vendorName": self.vendor_name,
            "method": self.method.value,
        }
        if self.welcome_message is not None:
            data["welcomeMessage"] = self.welcome_message.to_dict()
        return data


@dataclass
class PageSession:
    """
    One live browser tab bound to one target URL.
    Owned by exactly one analysis; released by SessionOrchestrator.close().
    """
    url: str
    page: Any
    context: Any = None
    browser: Any = None
    playwright: Any = None
    viewport: Tuple[int, int] = (1280, 800)
    resource_urls: List[str] = field(default_factory=list)
    screenshots: List[bytes] = field(default_factory=list)
    # Oracle verdicts keyed by capture hash, for this session only
    verdicts: Dict[str, bool] = field(default_factory=dict)
    closed: bool = False
