"""FastAPI dependencies."""

import math
from functools import lru_cache

from fastapi import HTTPException, Request, status

from listing_scraper.api.rate_limiter import ClientRateLimiter
from listing_scraper.config import settings
from listing_scraper.ingest.listing_scraper import ListingScraper, build_listing_scraper

scrape_rate_limiter = ClientRateLimiter(
    points=settings.rate_limit_requests,
    duration=settings.rate_limit_window_seconds,
)


@lru_cache(maxsize=1)
def get_listing_scraper() -> ListingScraper:
    """Dependency for the configured listing scraper."""
    return build_listing_scraper(settings)


async def enforce_rate_limit(request: Request) -> None:
    """
    Dependency limiting scrape requests per client IP.

    Raises:
        HTTPException: 429 with a ``retryAfter`` hint when over the limit
    """
    client_ip = request.client.host if request.client else "unknown"
    retry_after = await scrape_rate_limiter.consume(client_ip)
    if retry_after > 0:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "Too many requests",
                "retryAfter": math.ceil(retry_after),
            },
        )
