"""Stealth page setup for Playwright.

Randomizes user agent and viewport, hides common automation markers and
simulates light human activity. Every step is best effort: a failure is
logged and the scrape continues.
"""

import asyncio
import logging
import random
from typing import Dict, Optional

from playwright.async_api import Page

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) Gecko/20100101 Firefox/133.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/18.1 Safari/605.1.15",
]

VIEWPORTS = [
    {"width": 1280, "height": 800},
    {"width": 1366, "height": 768},
    {"width": 1920, "height": 1080},
]

STEALTH_SCRIPTS = [
    # Hide webdriver property
    """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => false
    });
    """,

    # Mock plugins
    """
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });
    """,

    # Mock languages
    """
    Object.defineProperty(navigator, 'languages', {
        get: () => ['sk-SK', 'sk', 'en-US', 'en']
    });
    """,

    # Chrome runtime
    """
    window.chrome = {
        runtime: {}
    };
    """,
]


class StealthBrowser:
    """Applies anti-automation setup to Playwright pages."""

    @staticmethod
    def random_user_agent() -> str:
        return random.choice(USER_AGENTS)

    @staticmethod
    def random_viewport() -> Dict[str, int]:
        return dict(random.choice(VIEWPORTS))

    async def setup_stealth_page(
        self,
        page: Page,
        user_agent: Optional[str] = None,
        viewport: Optional[Dict[str, int]] = None,
    ) -> None:
        """
        Setup a Playwright page with stealth enhancements.

        Args:
            page: Playwright page object
            user_agent: Optional user agent (random if None)
            viewport: Optional viewport size (random if None)
        """
        try:
            user_agent = user_agent or self.random_user_agent()
            viewport = viewport or self.random_viewport()

            await page.set_extra_http_headers({
                "User-Agent": user_agent,
                "Accept-Language": "sk-SK,sk;q=0.9,en-US;q=0.8,en;q=0.7",
            })
            await page.set_viewport_size(viewport)

            for script in STEALTH_SCRIPTS:
                try:
                    await page.add_init_script(script)
                except Exception as e:
                    logger.debug(f"Error injecting stealth script: {e}")

            logger.debug(f"Stealth setup applied (viewport {viewport['width']}x{viewport['height']})")

        except Exception as e:
            logger.warning(f"Error setting up stealth page: {e}")

    async def simulate_human_behavior(self, page: Page) -> None:
        """Move the mouse and nudge the scroll position."""
        try:
            await page.mouse.move(random.randint(0, 300), random.randint(0, 300))
            await page.evaluate("window.scrollBy(0, 200)")
            await asyncio.sleep(random.uniform(0.2, 0.6))
        except Exception as e:
            logger.debug(f"Error simulating human behavior: {e}")


# Global stealth browser instance
stealth_browser = StealthBrowser()
