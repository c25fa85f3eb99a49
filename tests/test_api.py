"""Tests for the HTTP API."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from listing_scraper.api.deps import get_listing_scraper, scrape_rate_limiter
from listing_scraper.ingest.base import ProductRecord, ScrapeResult
from listing_scraper.ingest.errors import (
    BrowserLaunchFailure,
    CaptchaDetected,
    InvalidInput,
    NavigationTimeout,
)
from listing_scraper.main import app

LISTING_URL = "https://www.glamira.sk/rings/"


@pytest.fixture
def scraper():
    stub = MagicMock()
    stub.site.name = "glamira"
    stub.scrape = AsyncMock(
        return_value=ScrapeResult(
            scraped_url=LISTING_URL,
            products=(
                ProductRecord(placeholder="Main List", product_id="1", title="Ring"),
            ),
            duration=5,
        )
    )
    return stub


@pytest.fixture
def client(scraper):
    scrape_rate_limiter.reset()
    app.dependency_overrides[get_listing_scraper] = lambda: scraper
    yield TestClient(app)
    app.dependency_overrides.clear()
    scrape_rate_limiter.reset()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["uptime"] >= 0
    assert body["browser_connected"] is False
    assert body["timestamp"].endswith("Z")


@pytest.mark.parametrize("path", ["/scrape", "/api/scrape"])
def test_scrape_success(client, scraper, path):
    response = client.post(path, json={"url": LISTING_URL, "max_products": 5})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["scraped_url"] == LISTING_URL
    assert body["total_products"] == 1
    assert body["products"][0]["product_id"] == "1"
    assert isinstance(body["duration"], int)
    scraper.scrape.assert_awaited_once_with(LISTING_URL, 5)


def test_max_products_is_optional(client, scraper):
    response = client.post("/scrape", json={"url": LISTING_URL})

    assert response.status_code == 200
    scraper.scrape.assert_awaited_once_with(LISTING_URL, None)


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"url": ""},
        {"url": LISTING_URL, "max_products": 0},
        {"url": LISTING_URL, "max_products": 51},
        {"url": LISTING_URL, "max_products": "many"},
    ],
)
def test_malformed_body_is_rejected(client, scraper, payload):
    response = client.post("/scrape", json=payload)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request")
    scraper.scrape.assert_not_awaited()


@pytest.mark.parametrize(
    "error,status",
    [
        (InvalidInput("https://other-domain.test/", "domain must be glamira.sk"), 400),
        (CaptchaDetected(LISTING_URL), 503),
        (BrowserLaunchFailure("no chromium"), 503),
        (NavigationTimeout(LISTING_URL, 20000), 504),
        (RuntimeError("Target page, context or browser has been closed"), 500),
    ],
)
def test_scrape_errors_map_to_status(client, scraper, error, status):
    scraper.scrape.side_effect = error

    response = client.post("/scrape", json={"url": LISTING_URL})

    assert response.status_code == status
    body = response.json()
    assert body["error"]
    assert "timestamp" in body
    assert isinstance(body["duration"], int)


def test_rate_limit(client):
    for _ in range(scrape_rate_limiter.points):
        assert client.post("/scrape", json={"url": LISTING_URL}).status_code == 200

    response = client.post("/scrape", json={"url": LISTING_URL})

    assert response.status_code == 429
    body = response.json()
    assert body["error"] == "Too many requests"
    assert body["retryAfter"] >= 1


def test_unknown_route(client):
    response = client.get("/nope")

    assert response.status_code == 404
    assert response.json()["error"] == "Endpoint not found"
    assert response.json()["success"] is False
