"""Detection of listing layouts present on a live page."""

import logging
from typing import Iterable, List

from playwright.async_api import Page

from listing_scraper.ingest.base import StructureDescriptor

logger = logging.getLogger(__name__)


class StructureDetector:
    """Find which catalog descriptors have product items on the page."""

    def __init__(self, descriptors: Iterable[StructureDescriptor]):
        self.descriptors = tuple(descriptors)

    async def detect(self, page: Page) -> List[StructureDescriptor]:
        """
        Return descriptors present on the page with at least one item.

        Catalog order is preserved. A descriptor whose query fails is logged
        and treated as absent.

        Args:
            page: Rendered page

        Returns:
            Detected descriptors in priority order (possibly empty)
        """
        detected: List[StructureDescriptor] = []

        for descriptor in self.descriptors:
            try:
                containers = await page.query_selector_all(descriptor.selector)
                if not containers:
                    logger.debug(f"Layout '{descriptor.label}' not present")
                    continue

                items = await page.query_selector_all(descriptor.item_query)
                if not items:
                    logger.debug(f"Layout '{descriptor.label}' present but empty")
                    continue

                logger.info(f"Detected layout '{descriptor.label}' with {len(items)} items")
                detected.append(descriptor)

            except Exception as e:
                logger.warning(
                    f"Detection failed for '{descriptor.label}': {type(e).__name__}: {e}"
                )
                continue

        if not detected:
            logger.warning("No listing layouts with products found")

        return detected
