"""Bounded page waits that report their outcome instead of raising.

Every wait against a live page is capped by a timeout. A timeout means
"not ready yet" and is returned as ``WaitOutcome.TIMED_OUT``; any other
failure is returned as ``WaitOutcome.ERROR``. Callers branch on the result.
"""

import asyncio
import logging
from enum import Enum

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

logger = logging.getLogger(__name__)


class WaitOutcome(str, Enum):
    READY = "ready"
    TIMED_OUT = "timed_out"
    ERROR = "error"

    @property
    def ready(self) -> bool:
        return self is WaitOutcome.READY


# True once the scope holds at least one decoded, non-skeleton image
LOADED_IMAGE_SCRIPT = """
(scope) => Array.from(document.querySelectorAll(scope)).some(
    (root) => Array.from(root.querySelectorAll('img')).some(
        (img) => img.complete && img.naturalWidth > 0 && !img.classList.contains('skeleton')
    )
)
"""

MIN_ITEMS_SCRIPT = """
([selector, minimum]) => document.querySelectorAll(selector).length >= minimum
"""

SCROLL_TO_BOTTOM_SCRIPT = "window.scrollTo(0, document.body.scrollHeight)"
DISPATCH_SCROLL_SCRIPT = "window.dispatchEvent(new Event('scroll'))"


async def _bounded(description: str, awaitable) -> WaitOutcome:
    try:
        await awaitable
        return WaitOutcome.READY
    except PlaywrightTimeoutError:
        logger.debug(f"Timed out waiting for {description}")
        return WaitOutcome.TIMED_OUT
    except Exception as e:
        logger.debug(f"Error waiting for {description}: {type(e).__name__}: {e}")
        return WaitOutcome.ERROR


async def wait_for_selector(
    page: Page,
    selector: str,
    timeout_ms: int,
    state: str = "attached",
) -> WaitOutcome:
    """Wait until ``selector`` matches an element in the given state."""
    return await _bounded(
        f"selector {selector[:60]}",
        page.wait_for_selector(selector, state=state, timeout=timeout_ms),
    )


async def wait_for_loaded_image(page: Page, scope: str, timeout_ms: int) -> WaitOutcome:
    """Wait until a fully loaded image exists inside ``scope``."""
    return await _bounded(
        f"loaded image in {scope[:60]}",
        page.wait_for_function(LOADED_IMAGE_SCRIPT, arg=scope, timeout=timeout_ms),
    )


async def wait_for_min_items(
    page: Page,
    selector: str,
    minimum: int,
    timeout_ms: int,
) -> WaitOutcome:
    """Wait until at least ``minimum`` elements match ``selector``."""
    return await _bounded(
        f"{minimum} items matching {selector[:60]}",
        page.wait_for_function(MIN_ITEMS_SCRIPT, arg=[selector, minimum], timeout=timeout_ms),
    )


async def wait_for_load_state(page: Page, timeout_ms: int, state: str = "domcontentloaded") -> WaitOutcome:
    """Wait for the page to reach ``state`` after a navigation-triggering click."""
    return await _bounded(
        f"load state {state}",
        page.wait_for_load_state(state, timeout=timeout_ms),
    )


async def scroll_to_bottom(page: Page, dispatch_event: bool = False) -> bool:
    """Scroll to the bottom of the page; returns False if the page refused."""
    try:
        await page.evaluate(SCROLL_TO_BOTTOM_SCRIPT)
        if dispatch_event:
            await page.evaluate(DISPATCH_SCROLL_SCRIPT)
        return True
    except Exception as e:
        logger.debug(f"Scroll failed: {e}")
        return False


async def pause(ms: int) -> None:
    """Fixed delay between page interactions."""
    if ms > 0:
        await asyncio.sleep(ms / 1000)
