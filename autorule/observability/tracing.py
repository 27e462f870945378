"""Per-dispatch trace ids bound into the log context."""

import uuid
from contextvars import ContextVar
from typing import Any

import structlog

_trace_id: ContextVar[str] = ContextVar("trace_id", default="")


def generate_trace_id() -> str:
    """Generate a new trace ID."""
    return uuid.uuid4().hex[:16]


def get_trace_id() -> str:
    """Current trace ID, or an empty string outside a trace."""
    return _trace_id.get()


def set_trace_id(trace_id: str, **context: Any) -> None:
    """Set current trace ID and bind it (plus extra context) to structlog."""
    _trace_id.set(trace_id)
    structlog.contextvars.bind_contextvars(trace_id=trace_id, **context)


def clear_trace_id(*context_keys: str) -> None:
    """Clear current trace ID and any extra bound keys."""
    _trace_id.set("")
    structlog.contextvars.unbind_contextvars("trace_id", *context_keys)


class TraceContext:
    """Context manager scoping a trace ID to one dispatch.

    Extra keyword arguments (user id, rule id) are bound next to the trace
    ID for the lifetime of the context.
    """

    def __init__(self, trace_id: str | None = None, **context: Any):
        self._trace_id = trace_id or generate_trace_id()
        self._context = context
        self._previous_id: str = ""

    def __enter__(self) -> str:
        self._previous_id = get_trace_id()
        set_trace_id(self._trace_id, **self._context)
        return self._trace_id

    def __exit__(self, *args: Any) -> None:
        if self._previous_id:
            structlog.contextvars.unbind_contextvars(*self._context)
            set_trace_id(self._previous_id)
        else:
            clear_trace_id(*self._context)
