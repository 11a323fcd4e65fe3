"""Tests for tracing functionality."""

from __future__ import annotations

import structlog
from structlog.testing import capture_logs

from mangamatch.core.tracing import (
    TraceEvent,
    Tracer,
    clear_trace_id,
    generate_trace_id,
    get_trace_id,
    logging_hook,
    set_trace_id,
    trace_context,
)


def test_generate_trace_id() -> None:
    """Test trace ID generation."""
    trace_id = generate_trace_id()

    assert isinstance(trace_id, str)
    assert len(trace_id) == 32  # UUID4 hex = 32 characters
    assert trace_id.isalnum()

    ids = {generate_trace_id() for _ in range(100)}
    assert len(ids) == 100, "Trace IDs should be unique"


def test_set_and_get_trace_id() -> None:
    """Test setting and getting trace ID."""
    clear_trace_id()

    set_trace_id("test-trace-123")
    assert get_trace_id() == "test-trace-123"

    clear_trace_id()
    assert get_trace_id() is None


def test_trace_context_manager() -> None:
    """Test trace_context context manager."""
    clear_trace_id()

    try:
        with trace_context("test-trace-456") as trace_id:
            assert trace_id == "test-trace-456"
            assert structlog.contextvars.get_contextvars().get("trace_id") == "test-trace-456"

        assert get_trace_id() is None
    finally:
        clear_trace_id()


def test_trace_context_nested() -> None:
    """Test nested trace_context calls restore the outer ID."""
    clear_trace_id()

    try:
        with trace_context("outer-trace"):
            with trace_context() as inner_id:
                assert get_trace_id() == inner_id
                assert len(inner_id) == 32

            assert get_trace_id() == "outer-trace"

        assert get_trace_id() is None
    finally:
        clear_trace_id()


def test_tracer_without_hooks() -> None:
    """Test that emitting without subscribers is a no-op."""
    tracer = Tracer()
    assert not tracer.enabled
    tracer.emit("similarity.breakdown", score=42)


def test_tracer_subscribe_and_unsubscribe() -> None:
    """Test that hooks receive events until they unsubscribe."""
    clear_trace_id()
    tracer = Tracer()
    events: list[TraceEvent] = []

    unsubscribe = tracer.subscribe(events.append)
    assert tracer.enabled

    tracer.emit("match.stage", stage="direct", score=1.0)
    unsubscribe()
    tracer.emit("match.stage", stage="word", score=0.9)
    unsubscribe()

    assert events == [TraceEvent(name="match.stage", fields={"stage": "direct", "score": 1.0})]
    assert not tracer.enabled


def test_tracer_events_carry_trace_id() -> None:
    """Test that events pick up the current trace ID."""
    tracer = Tracer()
    events: list[TraceEvent] = []
    tracer.subscribe(events.append)

    try:
        with trace_context("batch-trace"):
            tracer.emit("match.stage", stage="none")
    finally:
        clear_trace_id()

    assert events[0].trace_id == "batch-trace"


def test_logging_hook() -> None:
    """Test that the logging hook forwards events to structlog."""
    with capture_logs() as logs:
        logging_hook(TraceEvent(name="similarity.length_penalty", fields={"score": 3.0}))

    assert logs == [{"event": "similarity.length_penalty", "score": 3.0, "log_level": "debug"}]
