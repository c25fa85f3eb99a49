"""Process-wide headless browser shared by all scrape requests."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

from playwright.async_api import Browser, Page, async_playwright

from listing_scraper import metrics
from listing_scraper.config import Settings, settings as default_settings
from listing_scraper.ingest.errors import BrowserLaunchFailure

logger = logging.getLogger(__name__)

BrowserLauncher = Callable[[], Awaitable[Browser]]


class BrowserManager:
    """
    Reference-counted owner of the shared browser.

    The first ``acquire()`` launches the browser; concurrent acquirers wait on
    the same launch instead of starting another. A failed launch leaves the
    manager ready to try again, and a disconnected browser is relaunched on
    the next acquire. Pages are opened per scrape via ``page()``.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        launcher: Optional[BrowserLauncher] = None,
    ):
        self.config = config or default_settings
        self._launcher = launcher or self._launch_chromium
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._init_lock = asyncio.Lock()
        self._refs = 0

    @property
    def active_refs(self) -> int:
        return self._refs

    @property
    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def acquire(self) -> Browser:
        """Get the shared browser, launching it if needed."""
        browser = await self._ensure_browser()
        self._refs += 1
        return browser

    async def release(self) -> None:
        if self._refs > 0:
            self._refs -= 1

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """Open a fresh page; it is closed and the browser released on exit."""
        browser = await self.acquire()
        page: Optional[Page] = None
        try:
            page = await browser.new_page()
            yield page
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.debug(f"Error closing page: {e}")
            await self.release()

    async def _ensure_browser(self) -> Browser:
        if self.is_connected:
            return self._browser

        async with self._init_lock:
            # Another acquirer may have finished the launch while we waited
            if self.is_connected:
                return self._browser

            self._browser = None
            logger.info("Launching browser...")
            try:
                browser = await self._launcher()
            except Exception as e:
                metrics.browser_launches_total.labels(status="error").inc()
                logger.error(f"Browser launch failed: {type(e).__name__}: {e}")
                raise BrowserLaunchFailure(str(e)) from e

            browser.on("disconnected", self._on_disconnected)
            self._browser = browser
            metrics.browser_launches_total.labels(status="success").inc()
            logger.info("Browser launched")
            return browser

    def _on_disconnected(self, browser: Browser) -> None:
        if browser is self._browser:
            logger.warning("Browser disconnected; it will be relaunched on next request")
            self._browser = None

    async def _launch_chromium(self) -> Browser:
        if self._playwright is None:
            self._playwright = await async_playwright().start()

        launch_options = {
            "headless": self.config.browser_headless,
            "args": self.config.browser_args,
        }
        if self.config.browser_executable_path:
            launch_options["executable_path"] = self.config.browser_executable_path

        return await self._playwright.chromium.launch(**launch_options)

    async def close(self) -> None:
        """Close the browser and stop Playwright (application shutdown)."""
        if self._refs:
            logger.warning(f"Closing browser with {self._refs} active scrapes")

        browser, self._browser = self._browser, None
        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.error(f"Error closing browser: {e}")

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.error(f"Error stopping Playwright: {e}")
            self._playwright = None

        logger.info("Browser resources released")


# Global browser manager instance
browser_manager = BrowserManager()
