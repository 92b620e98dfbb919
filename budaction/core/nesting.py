"""Tracking of the actions currently running in this thread or task."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any


_action_stack: ContextVar[tuple[Any, ...]] = ContextVar("budaction_action_stack", default=())


def current_stack() -> tuple[Any, ...]:
    return _action_stack.get()


def current_action() -> Any | None:
    stack = _action_stack.get()
    return stack[-1] if stack else None


def depth() -> int:
    return len(_action_stack.get())


def is_nested() -> bool:
    """Whether an action is running at the moment (i.e. a new call would be nested)."""
    return bool(_action_stack.get())


@contextmanager
def tracking(action: Any) -> Iterator[None]:
    """Push ``action`` on the stack for the duration of the block."""
    token = _action_stack.set(_action_stack.get() + (action,))
    try:
        yield
    finally:
        _action_stack.reset(token)
