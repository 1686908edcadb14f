"""Tests for structured (JSON) logging output.

When LOG_JSON=true the aggregator parses every line as JSON and indexes
the context fields.  A formatter regression would still deliver logs,
just unsearchable ones, so the output shape is pinned here.
"""

from __future__ import annotations

import json
import logging

from enrollsync.core.logging import _ContainerFormatter, _JsonFormatter


def test_json_formatter_produces_valid_json() -> None:
    """_JsonFormatter output must be parseable as JSON."""
    formatter = _JsonFormatter()
    record = logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname="test.py",
        lineno=42,
        msg="Hello %s",
        args=("world",),
        exc_info=None,
    )
    output = formatter.format(record)
    parsed = json.loads(output)
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "test.logger"
    assert parsed["message"] == "Hello world"
    assert "timestamp" in parsed


def test_json_formatter_includes_extra_fields() -> None:
    """Context fields injected by middleware appear in JSON output."""
    formatter = _JsonFormatter()
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg="test message",
        args=(),
        exc_info=None,
    )
    # Simulate what the RequestContextMiddleware does
    record.request_id = "abc-123"  # type: ignore[attr-defined]
    record.method = "GET"  # type: ignore[attr-defined]
    record.path = "/health"  # type: ignore[attr-defined]
    record.duration_ms = 12.5  # type: ignore[attr-defined]

    output = formatter.format(record)
    parsed = json.loads(output)
    assert parsed["request_id"] == "abc-123"
    assert parsed["method"] == "GET"
    assert parsed["path"] == "/health"
    assert parsed["duration_ms"] == 12.5


def test_json_formatter_includes_exception_info() -> None:
    """Exception info appears as an 'exception' key in JSON output."""
    import sys

    formatter = _JsonFormatter()
    try:
        raise ValueError("test error")
    except ValueError:
        exc_info = sys.exc_info()
        record = logging.LogRecord(
            name="test",
            level=logging.ERROR,
            pathname="test.py",
            lineno=1,
            msg="Something failed",
            args=(),
            exc_info=exc_info,
        )
        output = formatter.format(record)

    parsed = json.loads(output)
    assert "exception" in parsed
    assert "ValueError: test error" in parsed["exception"]


def test_container_formatter_still_works() -> None:
    """Regression: existing human-readable format is unchanged."""
    formatter = _ContainerFormatter()
    record = logging.LogRecord(
        name="enrollsync.main",
        level=logging.INFO,
        pathname="main.py",
        lineno=10,
        msg="server started",
        args=(),
        exc_info=None,
    )
    output = formatter.format(record)
    # Should contain level, logger name, and message as plain text
    assert "INFO" in output
    assert "enrollsync.main" in output
    assert "server started" in output
    # Should NOT be JSON
    try:
        json.loads(output)
        raise AssertionError("Container format should not be valid JSON")
    except json.JSONDecodeError:
        pass  # expected


def test_json_formatter_includes_reconciliation_fields() -> None:
    """user/course/level/trigger passed through extra= become top-level keys."""
    formatter = _JsonFormatter()
    record = logging.LogRecord(
        name="enrollsync.services.reconciler",
        level=logging.INFO,
        pathname="reconciler.py",
        lineno=1,
        msg="Unenrolled",
        args=(),
        exc_info=None,
    )
    record.user_id = 42  # type: ignore[attr-defined]
    record.course_id = 10  # type: ignore[attr-defined]
    record.level_id = 5  # type: ignore[attr-defined]
    record.trigger = "level_changed"  # type: ignore[attr-defined]

    parsed = json.loads(formatter.format(record))
    assert parsed["user_id"] == 42
    assert parsed["course_id"] == 10
    assert parsed["level_id"] == 5
    assert parsed["trigger"] == "level_changed"


def test_json_formatter_skips_unset_context() -> None:
    """The "-" context default and None values are left out."""
    formatter = _JsonFormatter()
    record = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg="no request",
        args=(),
        exc_info=None,
    )
    record.request_id = "-"  # type: ignore[attr-defined]
    record.event_id = "-"  # type: ignore[attr-defined]
    record.level_id = None  # type: ignore[attr-defined]

    parsed = json.loads(formatter.format(record))
    assert "request_id" not in parsed
    assert "event_id" not in parsed
    assert "level_id" not in parsed
