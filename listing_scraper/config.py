"""Application configuration using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # App Settings
    debug: bool = False
    log_level: str = "INFO"
    log_to_file: bool = True
    app_host: str = "0.0.0.0"
    app_port: int = 3000

    # Target site
    site: str = "glamira"  # Site profile name from the descriptor catalog
    allowed_domain: str = ""  # Overrides the profile domain when set

    # CORS
    cors_origins: str = "*"  # Comma-separated list, "*" allows all

    # Rate Limiting (per client IP)
    rate_limit_requests: int = 10
    rate_limit_window_seconds: float = 60.0

    # ==========================================================================
    # Browser Settings
    # ==========================================================================
    browser_headless: bool = True
    browser_executable_path: str = ""  # Empty uses Playwright's bundled Chromium
    browser_args: list[str] = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
        "--disable-accelerated-2d-canvas",
        "--no-first-run",
        "--disable-gpu",
        "--disable-background-timer-throttling",
        "--disable-backgrounding-occluded-windows",
        "--disable-renderer-backgrounding",
        "--disable-features=TranslateUI",
        "--disable-blink-features=AutomationControlled",
        "--window-size=1920,1080",
    ]

    # ==========================================================================
    # Timeouts (milliseconds)
    # ==========================================================================
    navigation_timeout_ms: int = 20000
    selector_timeout_ms: int = 10000
    image_wait_timeout_ms: int = 5000
    cookie_notice_timeout_ms: int = 3000
    settle_wait_timeout_ms: int = 10000
    load_state_timeout_ms: int = 10000

    # Fixed delays (milliseconds)
    scroll_settle_delay_ms: int = 2000
    click_delay_ms: int = 1500
    cookie_dismiss_delay_ms: int = 1000

    # ==========================================================================
    # Reveal / Pagination Settings
    # ==========================================================================
    settle_scroll_rounds: int = 3  # Scroll-to-bottom passes before detection
    min_initial_items: int = 1  # Items expected before detection starts
    reveal_max_attempts: int = 3  # Snapshot attempts per structure
    structure_item_limit: int = 10  # Records collected per structure
    max_products_default: int = 50  # Overall cap when the request gives none
    max_products_limit: int = 50  # Upper bound accepted from requests

    # Retry configuration for whole scrape attempts
    scrape_max_attempts: int = 3
    retry_backoff_base_seconds: float = 2.0
    retry_jitter_seconds: float = 1.0

    # ==========================================================================
    # Request Blocking
    # ==========================================================================
    blocked_domains: list[str] = [
        "demdex.net",
        "1rx.io",
        "agkn.com",
        "criteo.com",
        "doubleclick.net",
        "google-analytics.com",
        "googletagmanager.com",
        "facebook.com",
        "twitter.com",
    ]
    # Images and stylesheets stay enabled: lazy images and badges are read from them
    blocked_resource_types: list[str] = ["font", "media"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
