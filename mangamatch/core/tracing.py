"""Trace IDs over structlog contextvars and the scoring trace hook.

Scoring functions never log directly. When a caller subscribes a hook,
stages report what they decided as ``TraceEvent`` objects; otherwise the
emit call is a no-op.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

import structlog
import structlog.contextvars as contextvars

logger = structlog.get_logger("mangamatch.tracing")


def generate_trace_id() -> str:
    """Generate a unique trace ID.

    Returns:
        Hexadecimal trace ID (32 characters)
    """
    return uuid.uuid4().hex


def get_trace_id() -> str | None:
    """Get the current trace ID from context.

    Returns:
        Current trace ID or None if not set
    """
    return contextvars.get_contextvars().get("trace_id")


def set_trace_id(trace_id: str) -> None:
    """Set trace ID in context.

    Args:
        trace_id: Trace ID to set
    """
    contextvars.bind_contextvars(trace_id=trace_id)


def clear_trace_id() -> None:
    """Clear trace ID from context."""
    contextvars.clear_contextvars()


@contextmanager
def trace_context(trace_id: str | None = None) -> Generator[str]:
    """Context manager for trace ID.

    Sets trace_id in context, yields it, then restores the previous context.

    Args:
        trace_id: Optional trace ID to use. If None, generates a new one.

    Yields:
        The trace ID being used

    Example:
        >>> with trace_context() as trace_id:
        ...     engine.find_best_matches("One Piece", candidates)
    """
    old_context = dict(contextvars.get_contextvars())

    if trace_id is None:
        trace_id = generate_trace_id()

    contextvars.clear_contextvars()
    contextvars.bind_contextvars(trace_id=trace_id)

    try:
        yield trace_id
    finally:
        contextvars.clear_contextvars()
        if old_context:
            contextvars.bind_contextvars(**old_context)


@dataclass(frozen=True)
class TraceEvent:
    """One decision reported by a scoring stage."""

    name: str
    fields: dict[str, Any] = field(default_factory=dict)
    trace_id: str | None = None


TraceHook = Callable[[TraceEvent], None]


class Tracer:
    """Fans trace events out to subscribed hooks."""

    def __init__(self, hooks: list[TraceHook] | None = None):
        self._hooks: list[TraceHook] = list(hooks or [])

    @property
    def enabled(self) -> bool:
        return bool(self._hooks)

    def subscribe(self, hook: TraceHook) -> Callable[[], None]:
        """Add a hook; returns a callable that removes it again."""
        self._hooks.append(hook)

        def unsubscribe() -> None:
            if hook in self._hooks:
                self._hooks.remove(hook)

        return unsubscribe

    def emit(self, name: str, **fields: Any) -> None:
        if not self._hooks:
            return
        event = TraceEvent(name=name, fields=fields, trace_id=get_trace_id())
        for hook in list(self._hooks):
            hook(event)


def logging_hook(event: TraceEvent) -> None:
    """Forward trace events to structlog at debug level."""
    logger.debug(event.name, **event.fields)

