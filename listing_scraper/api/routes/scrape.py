"""Scrape API endpoints."""

import logging
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from listing_scraper import metrics
from listing_scraper.api.deps import enforce_rate_limit, get_listing_scraper
from listing_scraper.config import settings
from listing_scraper.ingest.base import utc_timestamp
from listing_scraper.ingest.errors import ScrapeError
from listing_scraper.ingest.listing_scraper import ListingScraper

logger = logging.getLogger(__name__)

router = APIRouter(tags=["scrape"])


class ScrapeRequest(BaseModel):
    """Request model for a listing scrape."""
    url: str = Field(..., min_length=1)
    max_products: Optional[int] = Field(None, ge=1, le=settings.max_products_limit)


def elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def error_payload(message: str, started: Optional[float] = None) -> Dict[str, Any]:
    """Structured error body returned for failed requests."""
    return {
        "error": message,
        "timestamp": utc_timestamp(),
        "duration": elapsed_ms(started) if started is not None else 0,
    }


@router.post("/scrape")
@router.post("/api/scrape")
async def scrape(
    body: ScrapeRequest,
    _: None = Depends(enforce_rate_limit),
    scraper: ListingScraper = Depends(get_listing_scraper),
):
    """Scrape product listings from a storefront URL."""
    started = time.monotonic()
    site = scraper.site.name

    try:
        result = await scraper.scrape(body.url, body.max_products)
    except ScrapeError as e:
        metrics.scrape_requests_total.labels(site=site, status=type(e).__name__).inc()
        logger.warning(f"Scrape failed for {body.url}: {e}")
        return JSONResponse(status_code=e.status_code, content=error_payload(str(e), started))
    except Exception as e:
        metrics.scrape_requests_total.labels(site=site, status="error").inc()
        logger.error(f"Scraping error for {body.url}: {type(e).__name__}: {e}", exc_info=True)
        return JSONResponse(status_code=500, content=error_payload(str(e) or type(e).__name__, started))

    metrics.scrape_requests_total.labels(site=site, status="success").inc()
    payload = result.to_dict()
    payload["duration"] = elapsed_ms(started)
    return payload
