"""Tests for structured logging."""

import json
import logging

from vibetrip.app.core.logging import ContextFilter, JSONFormatter, get_log_context


def _record(**extra):
    record = logging.LogRecord("vibetrip.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_context_fields():
    record = _record(request_id="req-1", stage="intent", duration_ms=12.5, attempt=2)

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "hello world"
    assert data["level"] == "INFO"
    assert data["request_id"] == "req-1"
    assert data["stage"] == "intent"
    assert data["duration_ms"] == 12.5
    assert data["extra"] == {"attempt": 2}


def test_context_filter_sets_defaults():
    record = _record()

    assert ContextFilter().filter(record) is True
    assert record.request_id is None
    assert record.trip_id is None


def test_get_log_context_drops_none():
    assert get_log_context(request_id="r", stage=None, operation="IntentParser", attempt=1) == {
        "request_id": "r",
        "operation": "IntentParser",
        "attempt": 1,
    }
