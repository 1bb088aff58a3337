"""Shared headless Chromium with one isolated page per scan."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from core.config import NAVIGATION_ATTEMPTS, NAVIGATION_RETRY_DELAY

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
]

# Seconds
LAUNCH_TIMEOUT = 120.0
PAGE_NAVIGATION_TIMEOUT = 120.0
PAGE_DEFAULT_TIMEOUT = 60.0


class BrowserPool:
    """Owns one Chromium process, launched on first use and reused across scans.

    Every checkout through :meth:`page` gets its own browser context, so
    concurrent scans never share cookies, storage or CSP state.
    """

    def __init__(self, headless: bool = True, launch_args: Optional[List[str]] = None):
        self.headless = headless
        self.launch_args = launch_args if launch_args is not None else list(LAUNCH_ARGS)
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    @property
    def started(self) -> bool:
        return self._browser is not None

    async def start(self) -> Browser:
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            logger.info("Launching headless Chromium")
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=self.launch_args,
                timeout=LAUNCH_TIMEOUT * 1000,
            )
            return self._browser

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        browser = await self.start()
        context = await browser.new_context(bypass_csp=True)
        try:
            page = await context.new_page()
            page.set_default_navigation_timeout(PAGE_NAVIGATION_TIMEOUT * 1000)
            page.set_default_timeout(PAGE_DEFAULT_TIMEOUT * 1000)
            page.on("console", lambda msg: logger.debug(f"PAGE LOG: {msg.text}"))
            page.on("pageerror", lambda err: logger.debug(f"Page error: {err}"))
            yield page
        finally:
            try:
                await context.close()
            except PlaywrightError as e:
                logger.error(f"Page close error: {e}")

    async def close(self) -> None:
        async with self._lock:
            if self._browser is not None:
                logger.info("Closing headless Chromium")
                try:
                    await self._browser.close()
                except PlaywrightError as e:
                    logger.warning(f"Browser close error: {e}")
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None


async def navigate(
    page: Page,
    url: str,
    timeout: float = PAGE_DEFAULT_TIMEOUT,
    attempts: int = NAVIGATION_ATTEMPTS,
    retry_delay: float = NAVIGATION_RETRY_DELAY,
) -> None:
    """Load ``url`` and wait for network idle, retrying failed navigations."""
    remaining = attempts
    while True:
        try:
            await page.goto(url, wait_until="networkidle", timeout=timeout * 1000)
            return
        except PlaywrightError:
            remaining -= 1
            if remaining <= 0:
                raise
            logger.info(f"Retrying navigation to {url} ({remaining} attempts left)...")
            await asyncio.sleep(retry_delay)


_pool: Optional[BrowserPool] = None


def get_browser_pool() -> BrowserPool:
    """Get the process-wide browser pool."""
    global _pool
    if _pool is None:
        _pool = BrowserPool()
    return _pool
