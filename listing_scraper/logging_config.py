"""Structured logging configuration."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from pythonjsonlogger import jsonlogger

from listing_scraper.config import settings

# Context fields attached by get_logger(); shown on the console when present
CONTEXT_FIELDS = ("site", "url", "structure")

# Chatty third-party loggers kept at WARNING
QUIET_LOGGERS = ("asyncio", "playwright", "uvicorn.access")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding timestamp, level, source and scrape context."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['source'] = f"{record.filename}:{record.lineno}"

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value:
                log_record[field] = value
            else:
                log_record.pop(field, None)
        log_record.pop('context', None)


class ContextFilter(logging.Filter):
    """Render context fields as a ``[key=value ...]`` prefix for plain-text output."""

    def filter(self, record: logging.LogRecord) -> bool:
        parts = [
            f"{field}={getattr(record, field)}"
            for field in CONTEXT_FIELDS
            if getattr(record, field, None)
        ]
        record.context = f"[{' '.join(parts)}] " if parts else ""
        return True


def setup_logging(base_dir: Optional[Union[str, Path]] = None) -> logging.Logger:
    """Configure the root logger.

    Console output is plain text. With ``LOG_TO_FILE`` enabled, JSON lines
    also go to ``logs/app.log`` and errors to ``logs/error.log``.

    Args:
        base_dir: Directory holding the logs/ folder (defaults to the CWD)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(ContextFilter())
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)-7s %(name)s: %(context)s%(message)s"
    ))
    root_logger.addHandler(console_handler)

    if not settings.log_to_file:
        return root_logger

    logs_dir = (Path(base_dir) if base_dir else Path.cwd()) / "logs"
    logs_dir.mkdir(exist_ok=True)

    json_formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")

    for filename, level in (("app.log", logging.DEBUG), ("error.log", logging.ERROR)):
        handler = logging.FileHandler(logs_dir / filename, encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(json_formatter)
        root_logger.addHandler(handler)

    return root_logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter attaching scrape context (site, url, structure) to each record."""

    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs


def get_logger(name: str, **context) -> LoggerAdapter:
    """
    Get a logger carrying scrape context.

    Args:
        name: Logger name (usually __name__)
        **context: Context fields, e.g. ``url=...``, ``structure='Main List'``

    Returns:
        LoggerAdapter with context
    """
    return LoggerAdapter(logging.getLogger(name), context)
