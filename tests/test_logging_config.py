"""Tests for logging setup helpers."""

import json
import logging

from listing_scraper.logging_config import ContextFilter, CustomJsonFormatter, get_logger


def make_record(**extra):
    record = logging.LogRecord(
        name="listing_scraper.ingest.revealer",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="revealed %d records",
        args=(3,),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_get_logger_attaches_context(caplog):
    log = get_logger("listing_scraper.tests", site="glamira", structure="Main List")

    with caplog.at_level(logging.INFO):
        log.info("revealed")

    record = caplog.records[-1]
    assert record.site == "glamira"
    assert record.structure == "Main List"


def test_context_filter_prefix():
    record = make_record(site="glamira", structure="Best Sellers")

    ContextFilter().filter(record)

    assert record.context == "[site=glamira structure=Best Sellers] "


def test_context_filter_without_context():
    record = make_record()

    ContextFilter().filter(record)

    assert record.context == ""


def test_json_formatter_fields():
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")

    payload = json.loads(formatter.format(make_record(url="https://www.glamira.sk/rings/")))

    assert payload["message"] == "revealed 3 records"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "listing_scraper.ingest.revealer"
    assert payload["url"] == "https://www.glamira.sk/rings/"
    assert payload["timestamp"].endswith("Z")
    assert "structure" not in payload
