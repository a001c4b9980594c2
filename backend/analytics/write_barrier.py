# analytics/write_barrier.py
"""
Thread-local write barrier for reconciler-owned tables.

Aggregate rows may only be written while a reconciler write context is
active on the current thread. Anything else (views, commands, admin,
shell) gets a RuntimeError from the model/queryset guards.
"""

from contextlib import contextmanager
import threading


_state = threading.local()


def _context_stack() -> list[str]:
    stack = getattr(_state, "write_context_stack", None)
    if stack is None:
        stack = []
        _state.write_context_stack = stack
    return stack


def current_write_context() -> str | None:
    stack = _context_stack()
    return stack[-1] if stack else None


def write_context_allowed(allowed_contexts: set[str]) -> bool:
    return current_write_context() in allowed_contexts


@contextmanager
def _push_write_context(name: str):
    stack = _context_stack()
    stack.append(name)
    try:
        yield
    finally:
        stack.pop()


@contextmanager
def reconciler_writes_allowed():
    with _push_write_context("reconciler"):
        yield


def assert_reconciler_context(model_name: str, operation: str) -> None:
    if not write_context_allowed({"reconciler"}):
        raise RuntimeError(
            f"{model_name} is owned by the aggregate reconciler. "
            f"{operation} is only allowed within reconciler_writes_allowed()."
        )
