"""
Shared fakes for the scanner tests.

No browser, no network and no model calls: Playwright's page, mouse, context,
browser and driver are replaced by small in-memory objects that record what
was done to them.
"""
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest

from core.errors import OracleError
from core.logger import ScanLogger
from core.models import Candidate, PageSession, WelcomeScore
from detectors.fingerprint import GLOBAL_PROBE_JS, RESOURCE_ENTRIES_JS
from detectors.vendor_registry import get_registry
from engines.session_engine import SessionOrchestrator

FAKE_JPEG = b"\xff\xd8\xff\xe0fake-jpeg"


class FakeMouse:
    def __init__(self, error: Optional[Exception] = None):
        self.clicks: List[tuple] = []
        self.error = error

    async def click(self, x, y):
        self.clicks.append((x, y))
        if self.error:
            raise self.error


class FakePage:
    """
    Stands in for a Playwright page.

    scans maps a locator script to the items it returns (or to a callable
    taking the script argument); screenshots is a queue of bytes or
    exceptions consumed one per capture.
    """

    def __init__(self,
                 resources: Iterable[str] = (),
                 globals_present: Iterable[str] = (),
                 scans: Optional[Dict[str, Any]] = None,
                 evaluate_error: Optional[Exception] = None,
                 scan_errors: Optional[Dict[str, Exception]] = None,
                 screenshots: Optional[List[Any]] = None,
                 click_error: Optional[Exception] = None):
        self.resources = list(resources)
        self.globals_present = set(globals_present)
        self.scans = scans or {}
        self.evaluate_error = evaluate_error
        self.scan_errors = scan_errors or {}
        self.screenshot_queue = list(screenshots or [])
        self.screenshot_calls: List[dict] = []
        self.evaluations: List[tuple] = []
        self.mouse = FakeMouse(click_error)

    async def evaluate(self, script, arg=None):
        if self.evaluate_error:
            raise self.evaluate_error
        if script == RESOURCE_ENTRIES_JS:
            return list(self.resources)
        if script == GLOBAL_PROBE_JS:
            return [name for name in arg if name in self.globals_present]

        self.evaluations.append((script, arg))
        if script in self.scan_errors:
            raise self.scan_errors[script]
        result = self.scans.get(script, [])
        if callable(result):
            return result(arg)
        return result

    async def screenshot(self, **kwargs):
        self.screenshot_calls.append(kwargs)
        if self.screenshot_queue:
            item = self.screenshot_queue.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return FAKE_JPEG


class FakeClosable:
    def __init__(self, error: Optional[Exception] = None):
        self.calls = 0
        self.error = error

    async def close(self):
        self.calls += 1
        if self.error:
            raise self.error

    async def stop(self):
        await self.close()


class FakeSessionOrchestrator(SessionOrchestrator):
    """Real open/screenshot/click/close logic over a FakePage; launch and navigation faked."""

    def __init__(self, logger: ScanLogger, page_factory: Callable[[str], FakePage],
                 navigation_error: Optional[Exception] = None):
        super().__init__(logger, headless=True, viewport=(1280, 800), settle_delay=0)
        self.page_factory = page_factory
        self.navigation_error = navigation_error
        self.sessions: List[PageSession] = []

    async def _launch(self, url: str) -> PageSession:
        session = PageSession(
            url=url,
            page=self.page_factory(url),
            context=FakeClosable(),
            browser=FakeClosable(),
            playwright=FakeClosable(),
            viewport=self.viewport,
        )
        self.sessions.append(session)
        return session

    async def _navigate(self, session: PageSession):
        if self.navigation_error:
            raise self.navigation_error


class FakeJudge:
    """Scripted vision oracle."""

    def __init__(self,
                 verdicts: Iterable[Any] = (),
                 welcome: Optional[WelcomeScore] = None,
                 score_error: Optional[Exception] = None,
                 launcher: Optional[Candidate] = None,
                 launcher_error: Optional[Exception] = None):
        self.verdicts = list(verdicts)
        self.welcome = welcome or WelcomeScore(text="Hi! I can help you track orders. Score: 80/100", score=80)
        self.score_error = score_error
        self.launcher = launcher
        self.launcher_error = launcher_error
        self.verify_images: List[bytes] = []
        self.score_images: List[bytes] = []
        self.locate_calls: List[tuple] = []
        self.caches: List[Any] = []

    async def verify_open(self, image: bytes, cache=None) -> bool:
        self.verify_images.append(image)
        self.caches.append(cache)
        verdict = self.verdicts.pop(0) if self.verdicts else False
        if isinstance(verdict, Exception):
            raise verdict
        return verdict

    async def score_welcome(self, image: bytes) -> WelcomeScore:
        self.score_images.append(image)
        if self.score_error:
            raise self.score_error
        if not image:
            raise OracleError("Cannot judge an empty capture")
        return self.welcome

    async def locate_launcher(self, image, viewport, tried=()):
        self.locate_calls.append((image, viewport, list(tried)))
        if self.launcher_error:
            raise self.launcher_error
        return self.launcher


def scan_item(x, y, width=60, height=60, label="item"):
    return {"x": x, "y": y, "width": width, "height": height, "label": label}


@pytest.fixture()
def scan_logger(tmp_path):
    logger = ScanLogger(tmp_path, save_screenshots=False)
    yield logger
    logger.close()


@pytest.fixture()
def registry():
    return get_registry()


@pytest.fixture()
def session_factory():
    def make(page: FakePage, url: str = "https://example.com") -> PageSession:
        return PageSession(url=url, page=page, viewport=(1280, 800))
    return make
