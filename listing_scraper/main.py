"""Main application entry point."""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from listing_scraper.api.routes import scrape
from listing_scraper.config import settings
from listing_scraper.ingest.base import utc_timestamp
from listing_scraper.ingest.browser_manager import browser_manager
from listing_scraper.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(f"Starting listing scraper for site '{settings.site}'...")

    yield

    # Shutdown (SIGTERM/SIGINT through uvicorn)
    logger.info("Shutting down...")
    await browser_manager.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Listing Scraper",
    description="Scrape product listings from storefront pages with a headless browser",
    version="0.1.0",
    lifespan=lifespan,
)

# Prometheus instrumentation
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=False,
    excluded_handlers=["/metrics", "/health"],
)
instrumentator.instrument(app).expose(app, include_in_schema=False, tags=["monitoring"])

cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_origins != ["*"],  # Credentials cannot be combined with "*"
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Authorization"],
)

app.include_router(scrape.router)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Reject malformed request bodies with a 400 and the first problem."""
    problems = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        problems.append(f"`{field}`: {error['msg']}" if field else error["msg"])

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": f"Invalid request: {'; '.join(problems)}",
            "timestamp": utc_timestamp(),
            "duration": 0,
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as JSON bodies."""
    if isinstance(exc.detail, dict):
        content = dict(exc.detail)
    elif exc.status_code == status.HTTP_404_NOT_FOUND:
        content = {"success": False, "error": "Endpoint not found"}
    else:
        content = {"success": False, "error": str(exc.detail)}
    content.setdefault("timestamp", utc_timestamp())
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal server error",
            "timestamp": utc_timestamp(),
        },
    )


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "OK",
        "timestamp": utc_timestamp(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "browser_connected": browser_manager.is_connected,
    }


if __name__ == "__main__":
    uvicorn.run(
        "listing_scraper.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
