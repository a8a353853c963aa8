"""Tests for trustbadge.security — logging and request plumbing."""

import json
import logging
from types import SimpleNamespace

from limits import parse as parse_limit
from pythonjsonlogger.json import JsonFormatter

from trustbadge.security import (
    RequestIdFilter,
    rate_limit_exceeded_handler,
    request_id_var,
    retry_after_seconds,
    setup_structured_logging,
)


def test_structured_logger_uses_json():
    logger = setup_structured_logging("DEBUG")
    assert logger.name == "trustbadge"
    assert logger.level == logging.DEBUG
    assert any(isinstance(h.formatter, JsonFormatter) for h in logger.handlers)


def test_setup_is_idempotent():
    before = len(setup_structured_logging().handlers)
    assert len(setup_structured_logging().handlers) == before


def test_request_id_in_json_output():
    formatter = JsonFormatter(
        fmt="%(levelname)s %(message)s %(request_id)s",
        rename_fields={"levelname": "level"},
    )
    record = logging.LogRecord("trustbadge", logging.INFO, __file__, 1, "hello", None, None)
    token = request_id_var.set("req-42")
    try:
        RequestIdFilter().filter(record)
    finally:
        request_id_var.reset(token)
    data = json.loads(formatter.format(record))
    assert data == {"level": "INFO", "message": "hello", "request_id": "req-42"}


def test_retry_after_is_window_in_seconds():
    per_minute = SimpleNamespace(limit=SimpleNamespace(limit=parse_limit("120/minute")), detail="120 per 1 minute")
    per_hour = SimpleNamespace(limit=SimpleNamespace(limit=parse_limit("10/hour")), detail="10 per 1 hour")
    assert retry_after_seconds(per_minute) == "60"
    assert retry_after_seconds(per_hour) == "3600"


def test_retry_after_falls_back_without_limit():
    assert retry_after_seconds(SimpleNamespace(detail="120 per 1 minute")) == "60"


def test_429_response_has_numeric_retry_after():
    exc = SimpleNamespace(limit=SimpleNamespace(limit=parse_limit("120/minute")), detail="120 per 1 minute")
    response = rate_limit_exceeded_handler(None, exc)
    assert response.status_code == 429
    assert response.headers["Retry-After"] == "60"
    assert json.loads(response.body) == {"detail": "Rate limit exceeded. Try again later."}
