"""Markup extractor turning listing HTML into product records.

Pure and deterministic: the same HTML, descriptor and limits always give the
same records in the same order. Each field is resolved by an ordered chain of
resolvers; the first non-empty value wins.
"""

import json
import logging
import re
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

from listing_scraper.ingest.base import (
    MoreVariants,
    ProductImage,
    ProductRecord,
    StructureDescriptor,
)

logger = logging.getLogger(__name__)

# A resolver receives the item element and its primary product link (if any)
Resolver = Callable[[Node, Optional[Node]], str]

LINK_SELECTORS: Tuple[str, ...] = (
    "a.product-item-link",
    ".product-link.img-product",
    'a[href*="/product/"]',
    "a[href]",
)

IMAGE_SELECTORS: Tuple[str, ...] = (
    ".product-image-photo",
    "img.product-image",
)

NEW_BADGE_SELECTORS: Tuple[str, ...] = (
    ".badge.is_new_msg",
    ".new-label",
    ".prolabels-wrapper .label-new",
)

IMAGE_CONTAINER_ID = re.compile(r"product-image-container-(\d+)")


# =============================================================================
# Resolver helpers
# =============================================================================

def clean_text(value: Optional[str]) -> str:
    """Collapse whitespace runs; ``None`` becomes an empty string."""
    if not value:
        return ""
    return " ".join(value.split())


def node_text(node: Optional[Node]) -> str:
    if node is None:
        return ""
    return clean_text(node.text(separator=" ", strip=True))


def node_attr(node: Optional[Node], name: str) -> str:
    if node is None:
        return ""
    return clean_text(node.attributes.get(name))


def text_of(selector: str) -> Resolver:
    """Text of the first element matching ``selector`` inside the item."""
    def resolve(item: Node, link: Optional[Node]) -> str:
        return node_text(item.css_first(selector))
    return resolve


def attr_of(selector: str, name: str) -> Resolver:
    """Attribute of the first element matching ``selector`` inside the item."""
    def resolve(item: Node, link: Optional[Node]) -> str:
        return node_attr(item.css_first(selector), name)
    return resolve


def link_attr(name: str) -> Resolver:
    def resolve(item: Node, link: Optional[Node]) -> str:
        return node_attr(link, name)
    return resolve


def item_attr(name: str) -> Resolver:
    def resolve(item: Node, link: Optional[Node]) -> str:
        return node_attr(item, name)
    return resolve


def link_text(item: Node, link: Optional[Node]) -> str:
    return node_text(link)


def image_container_id(item: Node, link: Optional[Node]) -> str:
    """Numeric id encoded in a ``product-image-container-<id>`` class."""
    for container in item.css('[class*="product-image-container-"]'):
        match = IMAGE_CONTAINER_ID.search(container.attributes.get("class") or "")
        if match:
            return match.group(1)
    return ""


def first_of(resolvers: Iterable[Resolver], item: Node, link: Optional[Node]) -> str:
    """Run resolvers in order and return the first non-empty value."""
    for resolver in resolvers:
        value = resolver(item, link)
        if value:
            return value
    return ""


def texts_of(*selectors: str) -> Tuple[Resolver, ...]:
    return tuple(text_of(s) for s in selectors)


def parse_data_param(raw: str) -> Dict[str, Any]:
    """Parse a ``data-param`` JSON blob; anything unusable yields ``{}``."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (ValueError, TypeError) as e:
        logger.debug(f"Ignoring malformed data-param {raw[:60]!r}: {e}")
        return {}
    if not isinstance(value, dict):
        logger.debug(f"Ignoring non-object data-param {raw[:60]!r}")
        return {}
    return value


def resolve_url(href: str, base_url: str) -> str:
    """Absolute URL for ``href``; fragments and script links resolve to ''."""
    href = href.strip()
    if not href or href.startswith("#") or href.lower().startswith("javascript:"):
        return ""
    if not base_url:
        return href
    return urljoin(base_url, href)


# =============================================================================
# Extractor
# =============================================================================

class ListingExtractor:
    """
    Extract product records from a listing HTML snapshot.

    Field chains are class attributes so they can be inspected and tested
    one resolver at a time.
    """

    product_id_resolvers: Tuple[Resolver, ...] = (
        link_attr("data-product-id"),
        item_attr("data-product-id"),
        attr_of("[data-product-id]", "data-product-id"),
        image_container_id,
    )

    title_resolvers: Tuple[Resolver, ...] = (
        link_attr("title"),
        text_of(".product-item-name"),
        text_of("h2"),
        text_of("h3"),
        link_text,
    )

    data_param_resolvers: Tuple[Resolver, ...] = (
        link_attr("data-param"),
        item_attr("data-param"),
    )

    short_description_resolvers = texts_of(".short-description", ".product-description")
    carat_resolvers = texts_of(".info_stone_total .carat", ".carat")
    price_resolvers = texts_of(".price-box .price", ".price")
    price_range_resolvers = texts_of(".price-range span", ".price-range")

    def extract(
        self,
        html: str,
        structure: StructureDescriptor,
        max_items: int,
        base_url: str = "",
        exclude_keys: Iterable[str] = (),
    ) -> List[ProductRecord]:
        """
        Extract up to ``max_items`` distinct records for one structure.

        Args:
            html: Rendered page HTML
            structure: Layout descriptor selecting the item elements
            max_items: Maximum number of records returned (after dedup)
            base_url: Origin used to resolve relative links
            exclude_keys: Dedup keys already collected; matching items are skipped

        Returns:
            Records in document order
        """
        if max_items <= 0 or not html:
            return []

        parser = HTMLParser(html)
        seen = set(exclude_keys)
        records: List[ProductRecord] = []

        for item in self._iter_items(parser, structure):
            try:
                record = self.build_record(item, structure, base_url)
            except Exception as e:
                logger.debug(f"Failed to parse {structure.label} item: {e}")
                continue

            if record is None:
                continue
            if record.dedup_key in seen:
                continue

            seen.add(record.dedup_key)
            records.append(record)
            if len(records) >= max_items:
                break

        return records

    @staticmethod
    def _iter_items(parser: HTMLParser, structure: StructureDescriptor) -> Iterator[Node]:
        if not structure.item_selector:
            yield from parser.css(structure.selector)
            return
        for container in parser.css(structure.selector):
            yield from container.css(structure.item_selector)

    def build_record(
        self,
        item: Node,
        structure: StructureDescriptor,
        base_url: str = "",
    ) -> Optional[ProductRecord]:
        """Build a record from one item element, or None for skeleton items."""
        link = self.find_link(item)

        product_id = first_of(self.product_id_resolvers, item, link)
        title = first_of(self.title_resolvers, item, link)
        url = resolve_url(node_attr(link, "href"), base_url)

        if not (product_id or title or url):
            return None

        data_param = parse_data_param(first_of(self.data_param_resolvers, item, link))

        return ProductRecord(
            placeholder=structure.label,
            product_id=product_id,
            title=title,
            url=url,
            price=first_of(self.price_resolvers, item, link),
            price_range=first_of(self.price_range_resolvers, item, link),
            carat=first_of(self.carat_resolvers, item, link),
            short_description=first_of(self.short_description_resolvers, item, link),
            is_new=any(item.css_first(s) is not None for s in NEW_BADGE_SELECTORS),
            alloy=clean_text(str(data_param.get("alloy") or "")),
            image=self.extract_image(item),
            more_variants=self.extract_more_variants(item, base_url),
            data_param=data_param,
        )

    @staticmethod
    def find_link(item: Node) -> Optional[Node]:
        for selector in LINK_SELECTORS:
            link = item.css_first(selector)
            if link is not None:
                return link
        return None

    @staticmethod
    def find_image(item: Node) -> Optional[Node]:
        for selector in IMAGE_SELECTORS:
            image = item.css_first(selector)
            if image is not None:
                return image
        for image in item.css("img"):
            if "skeleton" not in (image.attributes.get("class") or "").split():
                return image
        return None

    def extract_image(self, item: Node) -> ProductImage:
        image = self.find_image(item)
        if image is None:
            return ProductImage()

        src = node_attr(image, "src")
        if not src or src.startswith("data:"):
            src = node_attr(image, "data-src") or node_attr(image, "data-original") or src

        return ProductImage(
            src=src,
            srcset=node_attr(image, "srcset") or node_attr(image, "data-srcset"),
            sizes=node_attr(image, "sizes"),
            alt=node_attr(image, "alt"),
            width=node_attr(image, "width"),
            height=node_attr(image, "height"),
        )

    @staticmethod
    def extract_more_variants(item: Node, base_url: str = "") -> MoreVariants:
        anchor = item.css_first(".option_box.option-more a")
        if anchor is None:
            return MoreVariants()
        return MoreVariants(
            count=node_text(anchor.css_first("span")),
            url=resolve_url(node_attr(anchor, "href"), base_url),
        )


# Global extractor instance
listing_extractor = ListingExtractor()
