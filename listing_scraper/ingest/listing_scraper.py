"""Listing scraper orchestrating navigation, detection and revealing."""

import asyncio
import logging
import random
import time
from dataclasses import replace
from typing import List, Optional
from urllib.parse import urlparse

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from listing_scraper import metrics
from listing_scraper.config import Settings, settings as default_settings
from listing_scraper.ingest import waits
from listing_scraper.ingest.base import ProductRecord, ScrapeResult
from listing_scraper.ingest.browser_manager import BrowserManager, browser_manager as default_browser_manager
from listing_scraper.ingest.catalog import SiteProfile, get_site_profile
from listing_scraper.ingest.detector import StructureDetector
from listing_scraper.ingest.errors import (
    BrowserLaunchFailure,
    CaptchaDetected,
    InvalidInput,
    NavigationTimeout,
)
from listing_scraper.ingest.page_guards import PageGuards
from listing_scraper.ingest.revealer import IncrementalRevealer
from listing_scraper.ingest.stealth_browser import StealthBrowser, stealth_browser as default_stealth
from listing_scraper.logging_config import get_logger

logger = logging.getLogger(__name__)


class ListingScraper:
    """Scrape product listings from one storefront."""

    def __init__(
        self,
        site: SiteProfile,
        browsers: Optional[BrowserManager] = None,
        config: Optional[Settings] = None,
        detector: Optional[StructureDetector] = None,
        revealer: Optional[IncrementalRevealer] = None,
        guards: Optional[PageGuards] = None,
        stealth: Optional[StealthBrowser] = None,
    ):
        """
        Initialize the scraper.

        Args:
            site: Storefront profile (domain and layout catalog)
            browsers: Shared browser manager
            config: Settings (defaults to the global settings)
            detector: Layout detector (defaults to one over the site catalog)
            revealer: Incremental revealer
            guards: Request blocking, cookie consent and CAPTCHA checks
            stealth: Anti-automation page setup
        """
        self.site = site
        self.config = config or default_settings
        self.browsers = browsers or default_browser_manager
        self.detector = detector or StructureDetector(site.descriptors)
        self.revealer = revealer or IncrementalRevealer(config=self.config)
        self.guards = guards or PageGuards(site, self.config)
        self.stealth = stealth or default_stealth

    def validate_url(self, target_url: str) -> str:
        """
        Check the URL is well formed and belongs to the site.

        Returns:
            The site origin used to resolve relative links

        Raises:
            InvalidInput: If the URL is malformed or on another domain
        """
        if not isinstance(target_url, str) or not target_url.strip():
            raise InvalidInput(str(target_url), "URL must be a non-empty string")

        try:
            parsed = urlparse(target_url.strip())
            host = parsed.hostname or ""
        except ValueError as e:
            raise InvalidInput(target_url, str(e)) from None

        if parsed.scheme not in ("http", "https") or not host:
            raise InvalidInput(target_url, "not an absolute http(s) URL")
        if not self.site.owns_host(host):
            raise InvalidInput(target_url, f"domain must be {self.site.domain}")

        return f"{parsed.scheme}://{parsed.netloc}"

    async def scrape(self, target_url: str, max_products: Optional[int] = None) -> ScrapeResult:
        """
        Scrape the listing page with retry logic.

        Args:
            target_url: Listing page URL on the site's domain
            max_products: Overall cap on returned records (defaults to config)

        Returns:
            ScrapeResult, possibly with zero products

        Raises:
            InvalidInput: Bad URL (no browser interaction happens)
            BrowserLaunchFailure: Shared browser could not start
            CaptchaDetected / NavigationTimeout / Exception: last error after retries
        """
        started = time.monotonic()
        base_url = self.validate_url(target_url)
        if max_products is None:
            limit = self.config.max_products_default
        elif max_products < 1:
            raise InvalidInput(target_url, f"max_products must be at least 1, got {max_products}")
        else:
            limit = max_products

        max_attempts = max(1, self.config.scrape_max_attempts)
        last_error: Optional[Exception] = None

        for attempt in range(max_attempts):
            try:
                products = await self._attempt(target_url, base_url, limit)
                duration = int((time.monotonic() - started) * 1000)
                metrics.scrape_duration_seconds.labels(site=self.site.name).observe(duration / 1000)
                for product in products:
                    metrics.products_extracted_total.labels(
                        site=self.site.name, placeholder=product.placeholder
                    ).inc()
                return ScrapeResult(
                    scraped_url=target_url,
                    products=tuple(products),
                    duration=duration,
                )

            except BrowserLaunchFailure:
                raise

            except Exception as e:
                last_error = e

                if attempt < max_attempts - 1:
                    metrics.scrape_retries_total.labels(
                        site=self.site.name, error_type=type(e).__name__
                    ).inc()
                    wait_time = (
                        self.config.retry_backoff_base_seconds * (2 ** attempt)
                        + random.uniform(0, self.config.retry_jitter_seconds)
                    )
                    logger.warning(
                        f"Retry {attempt + 1}/{max_attempts} for {target_url} "
                        f"after {wait_time:.1f}s: {type(e).__name__}: {e}"
                    )
                    await asyncio.sleep(wait_time)
                else:
                    logger.error(f"All {max_attempts} attempts failed for {target_url}: {e}")

        raise last_error

    async def _attempt(self, target_url: str, base_url: str, limit: int) -> List[ProductRecord]:
        """One scrape attempt on a fresh page."""
        log = get_logger(__name__, url=target_url, site=self.site.name)

        async with self.browsers.page() as page:
            await self.stealth.setup_stealth_page(page)
            await self.guards.install_request_blocking(page)

            log.info(f"Navigating to {target_url}")
            try:
                await page.goto(
                    target_url,
                    wait_until="domcontentloaded",
                    timeout=self.config.navigation_timeout_ms,
                )
            except PlaywrightTimeoutError:
                raise NavigationTimeout(target_url, self.config.navigation_timeout_ms) from None

            captcha = await self.guards.captcha_selector(page)
            if captcha:
                raise CaptchaDetected(target_url, captcha)

            await self.guards.dismiss_cookie_consent(page)
            await self.stealth.simulate_human_behavior(page)
            await self._initial_settle(page)

            structures = await self.detector.detect(page)
            if not structures:
                log.warning(f"No listings present on {target_url}")
                return []

            landing_url = page.url
            products: List[ProductRecord] = []
            for structure in structures:
                remaining = limit - len(products)
                if remaining <= 0:
                    break

                # Pager clicks navigate; later layouts were detected on the landing page
                if page.url != landing_url:
                    if not await self._return_to_listing(page, target_url):
                        break
                    landing_url = page.url

                target = min(self.config.structure_item_limit, remaining)
                log.info(f"Processing placeholder: {structure.label} (target {target})")
                records = await self.revealer.reveal(
                    page,
                    structure,
                    target,
                    base_url,
                    seen_keys=[p.dedup_key for p in products],
                )
                products.extend(records)

            log.info(f"Scraped {len(products)} products from {len(structures)} layouts")
            return products

    async def _return_to_listing(self, page: Page, target_url: str) -> bool:
        """Navigate back to the listing page. Returns False if that failed."""
        logger.info(f"Page moved to {page.url}; returning to {target_url}")
        try:
            await page.goto(
                target_url,
                wait_until="domcontentloaded",
                timeout=self.config.navigation_timeout_ms,
            )
        except Exception as e:
            logger.warning(
                f"Could not return to {target_url}, keeping records collected so far: "
                f"{type(e).__name__}: {e}"
            )
            return False

        await self._initial_settle(page)
        return True

    async def _initial_settle(self, page: Page) -> None:
        """Scroll a few times and wait for the first listing items."""
        for _ in range(max(0, self.config.settle_scroll_rounds)):
            await waits.scroll_to_bottom(page)
            await waits.pause(self.config.scroll_settle_delay_ms)

        item_query = ", ".join(d.item_query for d in self.site.descriptors)
        outcome = await waits.wait_for_min_items(
            page,
            item_query,
            self.config.min_initial_items,
            self.config.settle_wait_timeout_ms,
        )
        if not outcome.ready:
            logger.debug(f"Initial items not ready ({outcome.value}); detecting anyway")


def build_listing_scraper(config: Optional[Settings] = None) -> ListingScraper:
    """Create a scraper for the configured site."""
    config = config or default_settings
    site = get_site_profile(config.site)
    if config.allowed_domain:
        site = replace(site, domain=config.allowed_domain)
    return ListingScraper(site, config=config)
