"""Log correlation state carried across ``await`` and ``to_thread`` hops.

``asyncio.to_thread`` copies the current context into the worker thread, so
records logged by the synchronous engine keep the ids of the async caller.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
import secrets


trace_context: ContextVar[dict | None] = ContextVar("trace_context", default=None)


def new_trace_id() -> str:
    return secrets.token_hex(16)


def new_span_id() -> str:
    return secrets.token_hex(8)


def get_trace_context() -> dict:
    """Return the active correlation ids, starting a trace on first use."""
    current = trace_context.get()
    if not current or not current.get("trace_id"):
        current = {"trace_id": new_trace_id(), "span_id": new_span_id()}
        trace_context.set(current)
    return current


def set_trace_context(trace_id: str, span_id: str, **extra: object) -> None:
    trace_context.set({"trace_id": trace_id, "span_id": span_id, **extra})


def update_span_id(span_id: str) -> None:
    trace_context.set({**(trace_context.get() or {}), "span_id": span_id})


@contextmanager
def operation_context(operation: str, **extra: object) -> Iterator[dict]:
    """Tag records logged inside the block with ``operation`` and a fresh span id.

    The enclosing context is restored on exit.
    """
    scoped = {**get_trace_context(), "span_id": new_span_id(), "operation": operation, **extra}
    token = trace_context.set(scoped)
    try:
        yield scoped
    finally:
        trace_context.reset(token)
