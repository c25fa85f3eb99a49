"""Site profiles and the listing-layout descriptor catalog.

Descriptors are listed in priority order: the detector reports them in this
order and the scraper fills its result from earlier descriptors first.
Bump ``CATALOG_VERSION`` whenever a selector changes. Carousel layouts share
their control selectors, so each one sets ``control_scope`` to its own block.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from listing_scraper.ingest.base import StructureDescriptor, StructureType

CATALOG_VERSION = "4"

# Controls advancing a carousel/slider by one page
CAROUSEL_NEXT_CONTROLS: Tuple[str, ...] = (
    ".slick-next",
    ".owl-next",
    ".swiper-button-next",
    "button[aria-label='Next']",
)

# Magento pager "next" links
PAGER_NEXT_CONTROLS: Tuple[str, ...] = (
    ".pages .pages-item-next a.action.next",
    "a.action.next",
)

DEFAULT_COOKIE_NOTICE_SELECTORS: Tuple[str, ...] = (
    ".cookie-notice",
    ".cookie-consent",
    "#cookie-notice",
)

DEFAULT_COOKIE_ACCEPT_SELECTORS: Tuple[str, ...] = (
    "#btn-cookie-allow",
    ".cookie-notice__btn--accept",
    "button.accept-cookies",
)

DEFAULT_CAPTCHA_SELECTORS: Tuple[str, ...] = (
    'div.g-recaptcha[style*="visibility: visible"]',
    'div[class*="captcha"][style*="display: block"]',
    '#recaptcha[style*="visibility: visible"]',
)


@dataclass(frozen=True)
class SiteProfile:
    """Everything the scraper needs to know about one storefront."""

    name: str
    domain: str
    descriptors: Tuple[StructureDescriptor, ...]
    cookie_notice_selectors: Tuple[str, ...] = DEFAULT_COOKIE_NOTICE_SELECTORS
    cookie_accept_selectors: Tuple[str, ...] = DEFAULT_COOKIE_ACCEPT_SELECTORS
    captcha_selectors: Tuple[str, ...] = DEFAULT_CAPTCHA_SELECTORS
    catalog_version: str = CATALOG_VERSION

    def owns_host(self, host: str) -> bool:
        """True if ``host`` is the site's domain or one of its subdomains."""
        host = host.lower().rstrip(".")
        domain = self.domain.lower()
        return host == domain or host.endswith("." + domain)


GLAMIRA = SiteProfile(
    name="glamira",
    domain="glamira.sk",
    descriptors=(
        StructureDescriptor(
            type=StructureType.MAIN_LIST,
            selector=".products-grid ol.product-items",
            item_selector="li.product-item",
            label="Main List",
            next_control_selectors=PAGER_NEXT_CONTROLS,
            max_advance_clicks=3,
        ),
        StructureDescriptor(
            type=StructureType.CAROUSEL,
            selector=".block-new-products .product-items",
            item_selector=".product-item",
            label="New Arrivals",
            next_control_selectors=CAROUSEL_NEXT_CONTROLS,
            max_advance_clicks=5,
            control_scope=".block-new-products",
        ),
        StructureDescriptor(
            type=StructureType.BEST_SELLERS,
            selector=".block-bestseller-products .product-items",
            item_selector=".product-item",
            label="Best Sellers",
            next_control_selectors=CAROUSEL_NEXT_CONTROLS,
            max_advance_clicks=5,
            control_scope=".block-bestseller-products",
        ),
        StructureDescriptor(
            type=StructureType.STANDALONE,
            selector=".widget-product-grid",
            item_selector=".product-item",
            label="Featured Products",
        ),
    ),
)

AMAWELL = SiteProfile(
    name="amawell",
    domain="amawell.sk",
    descriptors=(
        StructureDescriptor(
            type=StructureType.MAIN_LIST,
            selector="#amasty-shopby-product-list > div.products.wrapper.grid.products-grid > ol",
            item_selector="li.item.product",
            label="Main Product Grid",
            next_control_selectors=PAGER_NEXT_CONTROLS,
            max_advance_clicks=3,
        ),
    ),
)

SITE_PROFILES: Dict[str, SiteProfile] = {
    GLAMIRA.name: GLAMIRA,
    AMAWELL.name: AMAWELL,
}


def get_site_profile(name: str) -> SiteProfile:
    """Look up a site profile by name."""
    try:
        return SITE_PROFILES[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown site {name!r}; expected one of {sorted(SITE_PROFILES)}"
        ) from None
