"""Incremental revealing of listing items on a live page.

For one detected structure the revealer settles lazy layouts, snapshots the
page until the extractor finds items, then clicks pagination or carousel
controls to collect more distinct records. Every wait is bounded and a
timeout only means "not ready yet".
"""

import logging
from typing import Iterable, List, Optional

from playwright.async_api import Page

from listing_scraper import metrics
from listing_scraper.config import Settings, settings as default_settings
from listing_scraper.ingest import waits
from listing_scraper.ingest.base import ProductRecord, StructureDescriptor, StructureType, merge_records
from listing_scraper.ingest.extractor import ListingExtractor, listing_extractor

logger = logging.getLogger(__name__)


class IncrementalRevealer:
    """Accumulate up to a target number of distinct records for a structure."""

    def __init__(
        self,
        extractor: Optional[ListingExtractor] = None,
        config: Optional[Settings] = None,
    ):
        self.extractor = extractor or listing_extractor
        self.config = config or default_settings

    async def reveal(
        self,
        page: Page,
        structure: StructureDescriptor,
        target_count: int,
        base_url: str = "",
        seen_keys: Iterable[str] = (),
    ) -> List[ProductRecord]:
        """
        Reveal and extract records for one structure.

        Args:
            page: Rendered page the structure was detected on
            structure: Layout to reveal
            target_count: Maximum number of records to return
            base_url: Origin used to resolve relative links
            seen_keys: Dedup keys already collected by earlier structures

        Returns:
            Distinct records (at most ``target_count``); partial results are valid
        """
        if target_count <= 0:
            return []

        seen = set(seen_keys)

        if structure.type.lazy_loads:
            await self._initial_settle(page, structure)

        records = await self._snapshot_until_found(page, structure, target_count, base_url, seen)
        logger.info(f"'{structure.label}': {len(records)} records after initial snapshot")

        if len(records) < target_count and structure.can_advance:
            await self._advance(page, structure, target_count, base_url, seen, records)

        logger.info(f"'{structure.label}': revealed {len(records)}/{target_count} records")
        return records

    async def _initial_settle(self, page: Page, structure: StructureDescriptor) -> None:
        await waits.scroll_to_bottom(page)
        await waits.pause(self.config.scroll_settle_delay_ms)
        outcome = await waits.wait_for_loaded_image(
            page, structure.selector, self.config.image_wait_timeout_ms
        )
        if not outcome.ready:
            logger.debug(f"'{structure.label}': no loaded image after settle ({outcome.value})")

    async def _snapshot_until_found(
        self,
        page: Page,
        structure: StructureDescriptor,
        target_count: int,
        base_url: str,
        seen: set,
    ) -> List[ProductRecord]:
        attempts = max(1, self.config.reveal_max_attempts)

        for attempt in range(1, attempts + 1):
            outcome = await waits.wait_for_selector(
                page, structure.selector, self.config.selector_timeout_ms
            )
            if not outcome.ready:
                logger.warning(
                    f"'{structure.label}' selector not ready on attempt {attempt}/{attempts} "
                    f"({outcome.value})"
                )

            await waits.scroll_to_bottom(page, dispatch_event=True)
            await waits.wait_for_loaded_image(
                page, structure.selector, self.config.image_wait_timeout_ms
            )

            try:
                html = await page.content()
            except Exception as e:
                logger.warning(
                    f"'{structure.label}': snapshot failed on attempt {attempt}/{attempts}: "
                    f"{type(e).__name__}: {e}"
                )
                continue

            records = self.extractor.extract(
                html, structure, target_count, base_url, exclude_keys=seen
            )
            if records:
                return records

            logger.debug(f"'{structure.label}': no records on attempt {attempt}/{attempts}")

        logger.warning(f"'{structure.label}': no records after {attempts} attempts")
        return []

    async def _advance(
        self,
        page: Page,
        structure: StructureDescriptor,
        target_count: int,
        base_url: str,
        seen: set,
        records: List[ProductRecord],
    ) -> None:
        """Click next controls, extending ``records`` in place."""
        clicks = 0

        for control_selector in structure.next_control_selectors:
            selector = structure.control_query(control_selector)
            while len(records) < target_count and clicks < structure.max_advance_clicks:
                control = await self._usable_control(page, selector)
                if control is None:
                    break

                try:
                    await control.click(timeout=self.config.selector_timeout_ms)
                except Exception as e:
                    logger.warning(
                        f"'{structure.label}': click on {selector} failed: {type(e).__name__}: {e}"
                    )
                    metrics.advance_clicks_total.labels(
                        structure_type=structure.type.value, outcome="error"
                    ).inc()
                    break

                clicks += 1
                await waits.pause(self.config.click_delay_ms)
                if structure.type is StructureType.MAIN_LIST:
                    await waits.wait_for_load_state(page, self.config.load_state_timeout_ms)
                await waits.wait_for_loaded_image(
                    page, structure.selector, self.config.image_wait_timeout_ms
                )

                known = seen | {r.dedup_key for r in records}
                try:
                    html = await page.content()
                except Exception as e:
                    logger.warning(
                        f"'{structure.label}': snapshot after click {clicks} on {selector} failed: "
                        f"{type(e).__name__}: {e}"
                    )
                    metrics.advance_clicks_total.labels(
                        structure_type=structure.type.value, outcome="error"
                    ).inc()
                    break

                fresh = self.extractor.extract(
                    html,
                    structure,
                    target_count - len(records),
                    base_url,
                    exclude_keys=known,
                )
                accepted = merge_records(records, fresh, target_count)
                records.extend(accepted)

                if not accepted:
                    logger.info(
                        f"'{structure.label}': click {clicks} on {selector} revealed nothing new, stopping"
                    )
                    metrics.advance_clicks_total.labels(
                        structure_type=structure.type.value, outcome="exhausted"
                    ).inc()
                    return

                metrics.advance_clicks_total.labels(
                    structure_type=structure.type.value, outcome="revealed"
                ).inc()
                logger.debug(
                    f"'{structure.label}': click {clicks} revealed {len(accepted)} new records"
                )

            if len(records) >= target_count or clicks >= structure.max_advance_clicks:
                return

    async def _usable_control(self, page: Page, selector: str):
        """Return the control if it exists, is enabled and is visible."""
        try:
            control = await page.query_selector(selector)
            if control is None:
                return None

            try:
                await control.scroll_into_view_if_needed(timeout=self.config.selector_timeout_ms)
            except Exception as e:
                logger.debug(f"Scroll into view failed for {selector}: {e}")

            if not await control.is_enabled():
                logger.debug(f"Control {selector} is disabled")
                return None
            if not await control.is_visible():
                logger.debug(f"Control {selector} is not visible")
                return None
            return control

        except Exception as e:
            logger.debug(f"Control lookup failed for {selector}: {e}")
            return None
