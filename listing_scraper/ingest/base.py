"""Core data types for listing extraction."""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class StructureType(str, Enum):
    """Kind of listing layout found on a page."""

    MAIN_LIST = "main-list"
    CAROUSEL = "carousel"
    BEST_SELLERS = "best-sellers"
    STANDALONE = "standalone"

    @property
    def lazy_loads(self) -> bool:
        """Whether items of this layout are loaded only after scrolling."""
        return self in (StructureType.CAROUSEL, StructureType.BEST_SELLERS)


@dataclass(frozen=True)
class StructureDescriptor:
    """A named listing region and the selectors needed to scrape it."""

    type: StructureType
    selector: str
    label: str
    item_selector: Optional[str] = None
    next_control_selectors: Tuple[str, ...] = ()
    max_advance_clicks: int = 0
    control_scope: Optional[str] = None  # Block the next controls live in; None means the whole page

    @property
    def item_query(self) -> str:
        """Selector for product items, scoped inside the container when needed."""
        if not self.item_selector:
            return self.selector
        return scoped_selector(self.selector, self.item_selector)

    @property
    def can_advance(self) -> bool:
        return bool(self.next_control_selectors) and self.max_advance_clicks > 0

    def control_query(self, selector: str) -> str:
        """Selector for a next control, limited to this structure's own block."""
        if not self.control_scope:
            return selector
        return scoped_selector(self.control_scope, selector)


def scoped_selector(container: str, item: str) -> str:
    """Combine two selector groups into a descendant selector group."""
    containers = [c.strip() for c in container.split(",") if c.strip()]
    items = [i.strip() for i in item.split(",") if i.strip()]
    return ", ".join(f"{c} {i}" for c in containers for i in items)


@dataclass(frozen=True)
class ProductImage:
    """Image attributes of a listing item."""

    src: str = ""
    srcset: str = ""
    sizes: str = ""
    alt: str = ""
    width: str = ""
    height: str = ""


@dataclass(frozen=True)
class MoreVariants:
    """Link to further variants of a product."""

    count: str = ""
    url: str = ""


@dataclass(frozen=True)
class ProductRecord:
    """One product extracted from a listing item."""

    placeholder: str
    product_id: str = ""
    title: str = ""
    url: str = ""
    price: str = ""
    price_range: str = ""
    carat: str = ""
    short_description: str = ""
    is_new: bool = False
    alloy: str = ""
    image: ProductImage = field(default_factory=ProductImage)
    more_variants: MoreVariants = field(default_factory=MoreVariants)
    data_param: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_identity(self) -> bool:
        return bool(self.product_id or self.title or self.url)

    @property
    def dedup_key(self) -> str:
        """Identity used for deduplication: product id, then URL, then title."""
        if self.product_id:
            return f"id:{self.product_id}"
        if self.url:
            return f"url:{self.url}"
        return f"title:{self.title}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class ScrapeResult:
    """Outcome of one listing scrape."""

    scraped_url: str
    products: Tuple[ProductRecord, ...]
    duration: int  # milliseconds
    success: bool = True
    timestamp: str = field(default_factory=utc_timestamp)

    @property
    def total_products(self) -> int:
        return len(self.products)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scraped_url": self.scraped_url,
            "total_products": self.total_products,
            "products": [p.to_dict() for p in self.products],
            "timestamp": self.timestamp,
            "success": self.success,
            "duration": self.duration,
        }


def merge_records(
    existing: List[ProductRecord],
    incoming: List[ProductRecord],
    limit: int,
) -> List[ProductRecord]:
    """
    Append records whose dedup key is not already present.

    Args:
        existing: Records collected so far (left untouched)
        incoming: Newly extracted records
        limit: Maximum length of the merged list

    Returns:
        The records from ``incoming`` that were accepted
    """
    seen = {record.dedup_key for record in existing}
    accepted: List[ProductRecord] = []
    for record in incoming:
        if len(existing) + len(accepted) >= limit:
            break
        if record.dedup_key in seen:
            continue
        seen.add(record.dedup_key)
        accepted.append(record)
    return accepted
