"""Tests for the listing scraper orchestration."""

from unittest.mock import AsyncMock

import pytest
from prometheus_client import REGISTRY
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from listing_scraper.ingest.browser_manager import BrowserManager
from listing_scraper.ingest.catalog import SiteProfile
from listing_scraper.ingest.errors import (
    BrowserLaunchFailure,
    CaptchaDetected,
    InvalidInput,
    NavigationTimeout,
)
from listing_scraper.ingest.listing_scraper import ListingScraper, build_listing_scraper
from listing_scraper.ingest.stealth_browser import StealthBrowser

from fakes import (
    CAROUSEL,
    MAIN_LIST,
    FakeBrowser,
    FakePage,
    fast_settings,
    main_list_html,
    numbered_items,
    product_item,
)

SHOP = SiteProfile(name="shop", domain="shop.test", descriptors=(MAIN_LIST, CAROUSEL))
LISTING_URL = "https://shop.test/category/rings/"
NEXT_PAGE = MAIN_LIST.next_control_selectors[0]

CAPTCHA_HTML = (
    '<html><body><div class="g-recaptcha" style="visibility: visible"></div></body></html>'
)


def main_and_carousel_html(main_ids, carousel_ids) -> str:
    main = "".join(product_item(i, f"Ring {i}", f"/product/{i}") for i in main_ids)
    carousel = "".join(
        product_item(i, f"Ring {i}", f"/product/{i}").replace("<li ", "<div ").replace("</li>", "</div>")
        for i in carousel_ids
    )
    return (
        '<html><body><div class="products-grid"><ol class="product-items">'
        + main
        + '</ol></div><div class="block-new-products"><div class="product-items">'
        + carousel
        + "</div></div></body></html>"
    )


def to_second_page(page):
    """Pager click: the browser loads the next listing page."""
    page.advance()
    page.url = LISTING_URL + "?p=2"


def make_scraper(*pages, launcher=None, **config_overrides):
    config = fast_settings(**config_overrides)
    browser = FakeBrowser(*pages)
    if launcher is None:
        launcher = AsyncMock(return_value=browser)
    manager = BrowserManager(config=config, launcher=launcher)
    scraper = ListingScraper(
        SHOP,
        browsers=manager,
        config=config,
        stealth=AsyncMock(spec=StealthBrowser),
    )
    return scraper, browser, manager, launcher


class TestScrape:

    @pytest.mark.asyncio
    async def test_duplicate_items_are_collapsed(self):
        page = FakePage(
            main_list_html(
                product_item("101", "Ring A", "/product/ring-a.html"),
                product_item("101", "Ring A again", "/product/ring-a-2.html"),
                product_item("102", "Ring B", "/product/ring-b.html"),
            )
        )
        scraper, _, manager, _ = make_scraper(page)

        result = await scraper.scrape(LISTING_URL)

        assert result.success is True
        assert result.total_products == 2
        assert result.scraped_url == LISTING_URL
        assert [p.product_id for p in result.products] == ["101", "102"]
        assert result.products[0].url == "https://shop.test/product/ring-a.html"
        assert result.products[0].placeholder == "Main List"
        assert result.duration >= 0
        assert page.goto_calls == [LISTING_URL]
        assert page.closed is True
        assert manager.active_refs == 0

    @pytest.mark.asyncio
    async def test_page_setup_runs_before_navigation(self):
        page = FakePage(main_list_html(*numbered_items(1, 3)))
        scraper, _, _, _ = make_scraper(page)

        await scraper.scrape(LISTING_URL)

        scraper.stealth.setup_stealth_page.assert_awaited_once_with(page)
        scraper.stealth.simulate_human_behavior.assert_awaited_once_with(page)
        assert page.routes == ["**/*"]

    @pytest.mark.asyncio
    async def test_no_listings_gives_empty_success(self):
        page = FakePage("<html><body><h1>Sale ended</h1></body></html>")
        scraper, _, _, _ = make_scraper(page)

        result = await scraper.scrape(LISTING_URL)

        assert result.success is True
        assert result.total_products == 0
        assert result.products == ()
        assert page.closed is True

    @pytest.mark.asyncio
    async def test_structures_share_dedup_and_overall_cap(self):
        page = FakePage(main_and_carousel_html(["1", "2", "3"], ["2", "7", "8", "9"]))
        scraper, _, _, _ = make_scraper(page)

        result = await scraper.scrape(LISTING_URL, max_products=5)

        assert [p.product_id for p in result.products] == ["1", "2", "3", "7", "8"]
        assert [p.placeholder for p in result.products] == ["Main List"] * 3 + ["New Arrivals"] * 2

    @pytest.mark.asyncio
    async def test_per_structure_limit(self):
        page = FakePage(main_and_carousel_html(["1", "2", "3"], ["7", "8", "9"]))
        scraper, _, _, _ = make_scraper(page, structure_item_limit=2)

        result = await scraper.scrape(LISTING_URL)

        assert [p.product_id for p in result.products] == ["1", "2", "7", "8"]

    @pytest.mark.asyncio
    async def test_carousel_is_revealed_after_pager_navigates(self):
        page = FakePage(
            main_and_carousel_html(["1", "2", "3"], ["7", "8"]),
            main_list_html(*numbered_items(4, 7)),
        )
        page.add_control(NEXT_PAGE, on_click=to_second_page)
        scraper, _, _, _ = make_scraper(page)

        result = await scraper.scrape(LISTING_URL)

        assert [p.product_id for p in result.products] == ["1", "2", "3", "4", "5", "6", "7", "8"]
        assert [p.placeholder for p in result.products][-2:] == ["New Arrivals"] * 2
        assert page.goto_calls == [LISTING_URL, LISTING_URL]

    @pytest.mark.asyncio
    async def test_failed_return_to_listing_keeps_collected_records(self):
        def to_second_page_then_fail(p):
            to_second_page(p)
            p.goto_error = PlaywrightTimeoutError("Timeout 20000ms exceeded.")

        page = FakePage(
            main_and_carousel_html(["1", "2", "3"], ["7", "8"]),
            main_list_html(*numbered_items(4, 7)),
        )
        page.add_control(NEXT_PAGE, on_click=to_second_page_then_fail)
        scraper, browser, _, _ = make_scraper(page)

        result = await scraper.scrape(LISTING_URL)

        assert [p.product_id for p in result.products] == ["1", "2", "3", "4", "5", "6"]
        assert len(browser.opened) == 1
        assert page.goto_calls == [LISTING_URL, LISTING_URL]

    @pytest.mark.asyncio
    async def test_captcha_fails_after_all_attempts(self):
        page = FakePage(CAPTCHA_HTML)
        scraper, browser, manager, _ = make_scraper(page, scrape_max_attempts=3)

        with pytest.raises(CaptchaDetected):
            await scraper.scrape(LISTING_URL)

        assert len(browser.opened) == 3
        assert page.closed is True
        assert manager.active_refs == 0

    @pytest.mark.asyncio
    async def test_retry_metric_counts_only_retries(self):
        labels = {"site": "shop", "error_type": "CaptchaDetected"}
        before = REGISTRY.get_sample_value("scrape_retries_total", labels) or 0.0
        scraper, _, _, _ = make_scraper(FakePage(CAPTCHA_HTML), scrape_max_attempts=3)

        with pytest.raises(CaptchaDetected):
            await scraper.scrape(LISTING_URL)

        after = REGISTRY.get_sample_value("scrape_retries_total", labels) or 0.0
        assert after - before == 2

    @pytest.mark.asyncio
    async def test_retry_recovers_on_fresh_page(self):
        blocked = FakePage(CAPTCHA_HTML)
        good = FakePage(main_list_html(*numbered_items(1, 4)))
        scraper, browser, _, _ = make_scraper(blocked, good)

        result = await scraper.scrape(LISTING_URL)

        assert result.total_products == 3
        assert browser.opened == [blocked, good]
        assert blocked.closed and good.closed

    @pytest.mark.asyncio
    async def test_navigation_timeout(self):
        page = FakePage(goto_error=PlaywrightTimeoutError("Timeout 20000ms exceeded."))
        scraper, _, _, _ = make_scraper(page, scrape_max_attempts=1)

        with pytest.raises(NavigationTimeout) as exc_info:
            await scraper.scrape(LISTING_URL)

        assert exc_info.value.status_code == 504
        assert page.closed is True

    @pytest.mark.asyncio
    async def test_browser_launch_failure_is_not_retried(self):
        launcher = AsyncMock(side_effect=RuntimeError("Executable doesn't exist"))
        scraper, _, _, _ = make_scraper(FakePage(), launcher=launcher)

        with pytest.raises(BrowserLaunchFailure):
            await scraper.scrape(LISTING_URL)

        assert launcher.await_count == 1


class TestValidateUrl:

    def setup_method(self):
        self.scraper, _, _, self.launcher = make_scraper(FakePage())

    @pytest.mark.asyncio
    async def test_other_domain_is_rejected_without_browser(self):
        with pytest.raises(InvalidInput) as exc_info:
            await self.scraper.scrape("https://other-domain.test/")

        assert exc_info.value.status_code == 400
        self.launcher.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_products", [0, -3])
    async def test_non_positive_max_products_is_rejected(self, max_products):
        with pytest.raises(InvalidInput) as exc_info:
            await self.scraper.scrape(LISTING_URL, max_products=max_products)

        assert exc_info.value.status_code == 400
        self.launcher.assert_not_called()

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "   ",
            "not a url",
            "ftp://shop.test/file",
            "https://shop.test.evil.test/",
            "https://evilshop.test/",
        ],
    )
    def test_rejects_bad_urls(self, url):
        with pytest.raises(InvalidInput):
            self.scraper.validate_url(url)

    def test_returns_origin(self):
        assert self.scraper.validate_url(LISTING_URL) == "https://shop.test"
        assert self.scraper.validate_url("http://www.shop.test/x?p=2") == "http://www.shop.test"


class TestBuildListingScraper:

    def test_uses_configured_site(self):
        scraper = build_listing_scraper(fast_settings(site="amawell"))

        assert scraper.site.name == "amawell"
        assert scraper.site.domain == "amawell.sk"

    def test_allowed_domain_override(self):
        scraper = build_listing_scraper(fast_settings(site="glamira", allowed_domain="glamira.cz"))

        assert scraper.site.domain == "glamira.cz"
        assert scraper.validate_url("https://www.glamira.cz/rings/") == "https://www.glamira.cz"

    def test_unknown_site(self):
        with pytest.raises(ValueError):
            build_listing_scraper(fast_settings(site="nowhere"))
