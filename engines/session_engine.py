"""
SessionOrchestrator - owns the lifecycle of one browser tab per analysis

launch -> navigate -> settle -> (screenshot / click)* -> teardown

Every analysis gets its own Playwright driver, browser and context, so DOM
state and clicks of one scan are never observable by another.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Tuple

from playwright.async_api import async_playwright, Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from rich.console import Console

from config import Config
from core.errors import BrowserLaunchError, NavigationError, NavigationTimeout
from core.logger import ScanLogger
from core.models import EMPTY_CAPTURE, Candidate, PageSession

console = Console()


class SessionOrchestrator:
    """
    Wraps Playwright to provide scoped page sessions.

    Use open() as an async context manager; the session is closed exactly
    once when the block exits, whatever the exit path.
    """

    def __init__(self,
                 logger: ScanLogger,
                 headless: bool = Config.BROWSER_HEADLESS,
                 viewport: Tuple[int, int] = (Config.VIEWPORT_WIDTH, Config.VIEWPORT_HEIGHT),
                 navigation_timeout_ms: int = Config.NAVIGATION_TIMEOUT_MS,
                 network_idle_timeout_ms: int = Config.NETWORK_IDLE_TIMEOUT_MS,
                 settle_delay: float = Config.SETTLE_DELAY_SECONDS):
        self.logger = logger
        self.headless = headless
        self.viewport = viewport
        self.navigation_timeout_ms = navigation_timeout_ms
        self.network_idle_timeout_ms = network_idle_timeout_ms
        self.settle_delay = settle_delay

    @asynccontextmanager
    async def open(self, url: str) -> AsyncIterator[PageSession]:
        session = await self._launch(url)
        try:
            await self._navigate(session)
            yield session
        finally:
            await self.close(session)

    async def _launch(self, url: str) -> PageSession:
        try:
            playwright = await async_playwright().start()
        except Exception as e:
            self.logger.log_error("browser_launch_failed", str(e), {"url": url})
            raise BrowserLaunchError(f"Could not start Playwright: {e}") from e

        try:
            browser = await playwright.chromium.launch(
                headless=self.headless,
                args=[
                    '--no-sandbox',
                    '--disable-dev-shm-usage',
                    '--disable-gpu',
                    '--allow-running-insecure-content',
                ]
            )
            context = await browser.new_context(
                viewport={'width': self.viewport[0], 'height': self.viewport[1]},
                user_agent=Config.USER_AGENT,
            )
            page = await context.new_page()
        except Exception as e:
            self.logger.log_error("browser_launch_failed", str(e), {"url": url})
            try:
                await playwright.stop()
            except Exception as stop_error:
                self.logger.log_error("playwright_stop_failed", str(stop_error))
            raise BrowserLaunchError(f"Could not launch Chromium: {e}") from e

        session = PageSession(
            url=url,
            page=page,
            context=context,
            browser=browser,
            playwright=playwright,
            viewport=self.viewport,
        )
        # Network fingerprinting reads every request made while the page loads
        page.on("request", lambda request: session.resource_urls.append(request.url))
        return session

    async def _navigate(self, session: PageSession):
        console.print(f"[cyan]🌐 Navigating to {session.url}...[/cyan]")
        self.logger.log_info(f"Navigating to {session.url}")
        try:
            await session.page.goto(
                session.url,
                wait_until="domcontentloaded",
                timeout=self.navigation_timeout_ms
            )
        except PlaywrightTimeoutError as e:
            self.logger.log_error("navigation_timeout", str(e), {"url": session.url})
            raise NavigationTimeout(f"Timed out loading {session.url}") from e
        except PlaywrightError as e:
            self.logger.log_error("navigation_failed", str(e), {"url": session.url})
            raise NavigationError(f"Could not load {session.url}: {e}") from e

        try:
            await session.page.wait_for_load_state("networkidle", timeout=self.network_idle_timeout_ms)
        except PlaywrightTimeoutError:
            # Pages with long-polling chat widgets never go fully idle
            console.print("[yellow]   ⚠️  Network never went idle, continuing[/yellow]")
            self.logger.log_info(f"Network idle wait hit its bound on {session.url}")

        # Let deferred widget-injection scripts run
        await asyncio.sleep(self.settle_delay)
        console.print(f"[green]   ✅ Page loaded ({len(session.resource_urls)} requests)[/green]")

    async def screenshot(self, session: PageSession, full_page: bool = False, label: str = "capture") -> bytes:
        """
        Capture the page. Degrades to a lower quality viewport capture on
        failure and returns EMPTY_CAPTURE instead of raising.
        """
        try:
            shot = await session.page.screenshot(
                type='jpeg',
                quality=70,
                full_page=full_page,
                timeout=10000
            )
        except Exception as e:
            console.print(f"[yellow]   ⚠️  Screenshot failed, retrying with simpler options: {e}[/yellow]")
            self.logger.log_error("screenshot_failed", str(e), {"url": session.url, "label": label})
            try:
                shot = await session.page.screenshot(
                    type='jpeg',
                    quality=50,
                    full_page=False,
                    timeout=5000
                )
            except Exception as retry_error:
                console.print(f"[red]   ❌ Degraded screenshot failed too: {retry_error}[/red]")
                self.logger.log_error("screenshot_retry_failed", str(retry_error), {"url": session.url, "label": label})
                return EMPTY_CAPTURE

        if not shot:
            return EMPTY_CAPTURE

        session.screenshots.append(shot)
        self.logger.save_screenshot(shot, label)
        return shot

    async def click(self, session: PageSession, candidate: Candidate):
        await session.page.mouse.click(candidate.x, candidate.y)

    async def close(self, session: Optional[PageSession]):
        """Close the page's context, browser and driver. Safe to call twice."""
        if session is None or session.closed:
            return
        session.closed = True
        session.verdicts.clear()

        for name, closer in (
            ("context", session.context.close if session.context else None),
            ("browser", session.browser.close if session.browser else None),
            ("playwright", session.playwright.stop if session.playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                self.logger.log_error(f"{name}_close_failed", str(e), {"url": session.url})

        console.print("[dim]🧹 Browser session closed[/dim]")
