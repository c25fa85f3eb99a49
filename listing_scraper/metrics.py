"""Prometheus metrics for the listing scraper."""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("listing_scraper", "Listing scraper application info")
app_info.info({"version": "0.1.0", "name": "listing-scraper"})

# Scrape metrics
scrape_requests_total = Counter(
    "scrape_requests_total",
    "Total number of scrape requests",
    ["site", "status"],
)

scrape_duration_seconds = Histogram(
    "scrape_duration_seconds",
    "Time spent on a full scrape including retries",
    ["site"],
    buckets=[1.0, 2.0, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0],
)

scrape_retries_total = Counter(
    "scrape_retries_total",
    "Total number of retried scrape attempts",
    ["site", "error_type"],
)

products_extracted_total = Counter(
    "products_extracted_total",
    "Total number of product records returned",
    ["site", "placeholder"],
)

# Reveal metrics
advance_clicks_total = Counter(
    "advance_clicks_total",
    "Total number of pagination/carousel clicks",
    ["structure_type", "outcome"],
)

# Browser metrics
browser_launches_total = Counter(
    "browser_launches_total",
    "Total number of browser launches",
    ["status"],
)
