"""Error types raised by the listing scraper."""

from typing import Optional


class ScrapeError(RuntimeError):
    """Base class for errors surfaced to the caller of a scrape."""

    status_code: int = 500


class InvalidInput(ScrapeError):
    """Target URL is malformed or belongs to another site."""

    status_code = 400

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL {url!r}: {reason}")


class CaptchaDetected(ScrapeError):
    """A CAPTCHA challenge blocked the page."""

    status_code = 503

    def __init__(self, url: str, selector: Optional[str] = None):
        self.url = url
        self.selector = selector
        super().__init__(
            f"CAPTCHA detected on {url}"
            f"{f' (selector: {selector})' if selector else ''}"
        )


class NavigationTimeout(ScrapeError):
    """Page did not reach the expected ready state in time."""

    status_code = 504

    def __init__(self, url: str, timeout_ms: int):
        self.url = url
        self.timeout_ms = timeout_ms
        super().__init__(f"Navigation to {url} timed out after {timeout_ms}ms")


class BrowserLaunchFailure(ScrapeError):
    """The shared browser could not be started."""

    status_code = 503

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Browser launch failed: {reason}")
