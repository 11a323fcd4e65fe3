"""Tests for logging configuration."""

from __future__ import annotations

import io
import json
import logging
import sys
from pathlib import Path

import structlog

from mangamatch.core.logging import APP_LOG_FILE, setup_logging


def _json_lines(output: str) -> list[dict]:
    return [json.loads(line) for line in output.splitlines() if line.strip().startswith("{")]


def _capture_stdout(**kwargs) -> tuple[io.StringIO, object]:
    old_stdout = sys.stdout
    sys.stdout = io.StringIO()
    setup_logging(**kwargs)
    return sys.stdout, old_stdout


def test_setup_logging_debug_mode() -> None:
    """Test that debug mode logs at debug level to the console."""
    setup_logging(debug=True)

    assert logging.getLogger().level == logging.DEBUG
    structlog.get_logger("mangamatch.test").debug("Test message", key="value")


def test_level_name_overrides_debug_flag() -> None:
    """Test that a level name from settings takes precedence."""
    try:
        setup_logging(debug=True, level="warning")
        assert logging.getLogger().level == logging.WARNING
    finally:
        setup_logging(debug=False)


def test_json_records_carry_logger_name() -> None:
    """Test that JSON records name the module logger and level."""
    stdout, old_stdout = _capture_stdout(debug=False)

    try:
        structlog.get_logger("mangamatch.search.cache").info("Cache hit", key="onepiece")
        record = _json_lines(stdout.getvalue())[-1]
    finally:
        sys.stdout = old_stdout

    assert record["event"] == "Cache hit"
    assert record["logger"] == "mangamatch.search.cache"
    assert record["level"] == "info"
    assert record["key"] == "onepiece"
    assert "timestamp" in record


def test_exceptions_are_structured() -> None:
    """Test that exceptions are rendered as structured tracebacks."""
    stdout, old_stdout = _capture_stdout(debug=False)

    try:
        try:
            raise ValueError("Malformed cache blob")
        except ValueError:
            structlog.get_logger("mangamatch.test").exception("Sync failed", blob="anilist_manga_cache")
        record = _json_lines(stdout.getvalue())[-1]
    finally:
        sys.stdout = old_stdout

    assert record["event"] == "Sync failed"
    assert record["blob"] == "anilist_manga_cache"
    assert "exc_info" not in record

    exception = record["exception"][0]
    assert exception["exc_type"] == "ValueError"
    assert exception["exc_value"] == "Malformed cache blob"
    assert exception["frames"][-1]["name"] == "test_exceptions_are_structured"


def test_setup_logging_to_file(tmp_path: Path) -> None:
    """Test that a logs directory sends JSON logs to the log file only."""
    logs_dir = tmp_path / "logs"
    stdout, old_stdout = _capture_stdout(debug=True, logs_dir=logs_dir)

    try:
        structlog.get_logger("mangamatch.test").info("Written to file", key="value")
        console = stdout.getvalue()
    finally:
        sys.stdout = old_stdout
        setup_logging(debug=False)

    records = _json_lines((logs_dir / APP_LOG_FILE).read_text(encoding="utf-8"))
    assert records[0]["event"] == "Logging configured"
    assert records[0]["file_logging"] is True
    assert records[-1]["event"] == "Written to file"
    assert console == ""


def test_logging_with_trace_id() -> None:
    """Test that logging includes trace_id from context."""
    stdout, old_stdout = _capture_stdout(debug=False)

    try:
        structlog.contextvars.bind_contextvars(trace_id="test-trace-123")
        structlog.get_logger("mangamatch.test").info("Test message")
        record = _json_lines(stdout.getvalue())[-1]
    finally:
        sys.stdout = old_stdout
        structlog.contextvars.clear_contextvars()

    assert record["trace_id"] == "test-trace-123"
