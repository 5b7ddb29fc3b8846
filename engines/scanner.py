"""
ChatbotScanner - analysis pipeline

For each URL:
  open session -> fingerprint -> (engage widget -> score welcome) -> close

Each analysis owns its browser session. Batch runs share only the read-only
vendor registry.
"""
import asyncio
from typing import Iterable, List, Optional

from rich.console import Console

from config import Config
from core.errors import NavigationTimeout, OracleError, ScannerError
from core.logger import ScanLogger
from core.models import (
    AnalysisResult,
    FingerprintMethod,
    FingerprintResult,
    PageSession,
    WelcomeMessageResult,
)
from detectors.fingerprint import FingerprintMatcher
from detectors.vendor_registry import VendorRegistry, get_registry
from detectors.widget_locator import WidgetLocator
from engines.engagement_loop import EngagementLoop
from engines.judgment_engine import QualityJudgmentAdapter
from engines.response_parser import NO_WIDGET_PHRASE
from engines.session_engine import SessionOrchestrator

console = Console()

TIMEOUT_MESSAGE = "The analysis timed out. The page might be too slow or unresponsive."


class ChatbotScanner:

    def __init__(self,
                 sessions: SessionOrchestrator,
                 matcher: FingerprintMatcher,
                 loop: EngagementLoop,
                 judge: QualityJudgmentAdapter,
                 registry: VendorRegistry,
                 logger: ScanLogger,
                 engagement_timeout: float = Config.ENGAGEMENT_TIMEOUT_SECONDS,
                 welcome_requires_vendor: bool = Config.WELCOME_REQUIRES_VENDOR,
                 concurrency: int = Config.BATCH_CONCURRENCY):
        self.sessions = sessions
        self.matcher = matcher
        self.loop = loop
        self.judge = judge
        self.registry = registry
        self.logger = logger
        self.engagement_timeout = engagement_timeout
        self.welcome_requires_vendor = welcome_requires_vendor
        self.concurrency = concurrency

    async def detect(self, url: str) -> FingerprintResult:
        """Fingerprint only. Nothing on the page is clicked."""
        console.print(f"\n[bold blue]🔍 Analyzing: {url}[/bold blue]")
        try:
            async with self.sessions.open(url) as session:
                return await self.matcher.match(session, self.registry)
        except NavigationTimeout:
            console.print(f"[yellow]⏳ {TIMEOUT_MESSAGE}[/yellow]")
            return FingerprintResult.timeout()

    async def analyze(self, url: str, evaluate_welcome: Optional[bool] = None) -> AnalysisResult:
        """
        Fingerprint the page and, when appropriate, open the chat widget and
        score its welcome message in the same session.

        evaluate_welcome: True forces the welcome stage, False skips it, None
        runs it when a vendor was detected (or always, when the vendor gate is
        switched off).
        """
        console.print(f"\n[bold blue]🔍 Analyzing: {url}[/bold blue]")
        try:
            async with self.sessions.open(url) as session:
                fingerprint = await self.matcher.match(session, self.registry)
                welcome = None
                if self._should_engage(fingerprint, evaluate_welcome):
                    welcome = await asyncio.wait_for(
                        self._engage_and_score(session, fingerprint.vendor_name),
                        timeout=self.engagement_timeout
                    )
                result = AnalysisResult.from_fingerprint(url, fingerprint, welcome)
        except (NavigationTimeout, asyncio.TimeoutError):
            console.print(f"[yellow]⏳ {TIMEOUT_MESSAGE}[/yellow]")
            result = AnalysisResult(url=url, vendor_name=None, method=FingerprintMethod.TIMEOUT)

        self.logger.log_action("analysis", result.to_dict())
        return result

    async def evaluate_welcome(self, url: str) -> WelcomeMessageResult:
        """Open the chat widget and score its welcome message, with no vendor gate."""
        console.print(f"\n[bold blue]💬 Welcome message analysis: {url}[/bold blue]")
        try:
            async with self.sessions.open(url) as session:
                # Only used to unlock the vendor's own launcher selectors
                fingerprint = await self.matcher.match(session, self.registry)
                welcome = await asyncio.wait_for(
                    self._engage_and_score(session, fingerprint.vendor_name),
                    timeout=self.engagement_timeout
                )
        except (NavigationTimeout, asyncio.TimeoutError):
            console.print(f"[yellow]⏳ {TIMEOUT_MESSAGE}[/yellow]")
            welcome = WelcomeMessageResult(evaluation="", attempts="failed", error=TIMEOUT_MESSAGE)

        self.logger.log_action("welcome_analysis", {"url": url, **welcome.to_dict()})
        return welcome

    async def analyze_many(self,
                           urls: Iterable[str],
                           concurrency: Optional[int] = None,
                           evaluate_welcome: Optional[bool] = None) -> List[AnalysisResult]:
        """Analyze several URLs, at most `concurrency` at a time, results in input order."""
        semaphore = asyncio.Semaphore(concurrency or self.concurrency)

        async def run_one(url: str) -> AnalysisResult:
            async with semaphore:
                try:
                    return await self.analyze(url, evaluate_welcome)
                except ScannerError as e:
                    console.print(f"[red]❌ {url}: {e}[/red]")
                    self.logger.log_error("analysis_failed", str(e), {"url": url})
                    return AnalysisResult(url=url, vendor_name=None, method=FingerprintMethod.ERROR)

        return list(await asyncio.gather(*(run_one(url) for url in urls)))

    async def scan_registry(self,
                            concurrency: Optional[int] = None,
                            evaluate_welcome: Optional[bool] = False) -> List[AnalysisResult]:
        """Analyze every vendor homepage in the registry (self-check of the signatures)."""
        urls = []
        for signature in self.registry:
            if signature.homepage_url not in urls:
                urls.append(signature.homepage_url)
        return await self.analyze_many(urls, concurrency, evaluate_welcome)

    def _should_engage(self, fingerprint: FingerprintResult, evaluate_welcome: Optional[bool]) -> bool:
        # timeout and error are terminal, nothing is attached to them
        if fingerprint.method in (FingerprintMethod.TIMEOUT, FingerprintMethod.ERROR):
            return False
        if evaluate_welcome is not None:
            return evaluate_welcome
        if not self.welcome_requires_vendor:
            return True
        return fingerprint.detected

    async def _engage_and_score(self, session: PageSession, vendor_name: Optional[str]) -> WelcomeMessageResult:
        engagement = await self.loop.run(session, vendor_name)

        console.print("[cyan]📝 Evaluating welcome message...[/cyan]")
        try:
            welcome = await self.judge.score_welcome(engagement.final_screenshot)
        except OracleError as e:
            console.print(f"[red]   ❌ Welcome message evaluation failed: {e}[/red]")
            return WelcomeMessageResult(
                evaluation="",
                attempts="failed",
                error=f"Failed to analyze welcome message: {e}",
            )

        widget_seen = NO_WIDGET_PHRASE not in welcome.text.lower()
        if engagement.success:
            return WelcomeMessageResult(
                evaluation=welcome.text,
                attempts="success" if widget_seen else "failed",
                score=welcome.score,
            )
        return WelcomeMessageResult(
            evaluation=welcome.text,
            attempts="failed",
            error=engagement.failure_explanation(),
            score=welcome.score,
        )


def build_scanner(logger: Optional[ScanLogger] = None,
                  headless: bool = Config.BROWSER_HEADLESS) -> ChatbotScanner:
    """Wire up a scanner from Config."""
    logger = logger or ScanLogger(Config.OUTPUT_DIR, save_screenshots=Config.SAVE_SCREENSHOTS)
    registry = get_registry(Config.VENDORS_FILE)
    sessions = SessionOrchestrator(logger, headless=headless)
    judge = QualityJudgmentAdapter(logger)
    locator = WidgetLocator(logger, registry, judge=judge, sessions=sessions)
    loop = EngagementLoop(sessions, locator, judge, logger)
    return ChatbotScanner(
        sessions=sessions,
        matcher=FingerprintMatcher(logger),
        loop=loop,
        judge=judge,
        registry=registry,
        logger=logger,
    )
