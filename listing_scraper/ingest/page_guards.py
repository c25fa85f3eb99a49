"""Page guards: request blocking, cookie consent and CAPTCHA detection."""

import logging
from typing import Optional

from playwright.async_api import Page, Route

from listing_scraper.config import Settings, settings as default_settings
from listing_scraper.ingest import waits
from listing_scraper.ingest.catalog import SiteProfile

logger = logging.getLogger(__name__)

HIDE_NOTICE_AND_ACCEPT_SCRIPT = """
([noticeSelector, acceptSelectors]) => {
    const notice = document.querySelector(noticeSelector);
    if (notice) notice.style.display = 'none';
    for (const selector of acceptSelectors) {
        const button = document.querySelector(selector);
        if (button) {
            button.removeAttribute('disabled');
            button.click();
            return true;
        }
    }
    return false;
}
"""


class PageGuards:
    """Site-specific protections applied around navigation."""

    def __init__(self, site: SiteProfile, config: Optional[Settings] = None):
        self.site = site
        self.config = config or default_settings

    def should_block(self, url: str, resource_type: str) -> bool:
        """True for tracker domains and configured resource types."""
        if resource_type in self.config.blocked_resource_types:
            return True
        return any(domain in url for domain in self.config.blocked_domains)

    async def install_request_blocking(self, page: Page) -> None:
        """Abort requests to blocked domains and resource types."""
        async def handle(route: Route) -> None:
            request = route.request
            try:
                if self.should_block(request.url, request.resource_type):
                    await route.abort()
                else:
                    await route.continue_()
            except Exception as e:
                logger.debug(f"Route handling failed for {request.url[:80]}: {e}")

        try:
            await page.route("**/*", handle)
        except Exception as e:
            logger.warning(f"Could not install request blocking: {e}")

    async def captcha_selector(self, page: Page) -> Optional[str]:
        """Return the first CAPTCHA selector present on the page, if any."""
        for selector in self.site.captcha_selectors:
            try:
                if await page.query_selector(selector):
                    logger.warning(f"CAPTCHA detected with selector: {selector}")
                    return selector
            except Exception as e:
                logger.debug(f"CAPTCHA check failed for {selector}: {e}")
        return None

    async def dismiss_cookie_consent(self, page: Page) -> bool:
        """Hide the cookie notice and accept it. Returns True if dismissed."""
        notice_selector = ", ".join(self.site.cookie_notice_selectors)
        outcome = await waits.wait_for_selector(
            page, notice_selector, self.config.cookie_notice_timeout_ms
        )
        if not outcome.ready:
            logger.debug("No cookie notice detected")
            return False

        try:
            accepted = await page.evaluate(
                HIDE_NOTICE_AND_ACCEPT_SCRIPT,
                [notice_selector, list(self.site.cookie_accept_selectors)],
            )
            await waits.pause(self.config.cookie_dismiss_delay_ms)
            logger.info(f"Cookie notice dismissed (accept button clicked: {bool(accepted)})")
            return True
        except Exception as e:
            logger.warning(f"Failed to handle cookie consent: {e}")
            return False
