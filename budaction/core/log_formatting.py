"""Rendering of action-facing log lines."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ..commons.constants import (
    ANONYMOUS_ACTION_NAME,
    FILTERED_PLACEHOLDER,
    LOG_CONTEXT_MAX_LENGTH,
    LOG_TRUNCATION_SUFFIX,
)
from . import nesting


def action_label(action_cls: type) -> str:
    name = getattr(action_cls, "__action_name__", None)
    return name or ANONYMOUS_ACTION_NAME


def log_prefix(action: Any) -> str:
    """Return ``[Name]``, or ``[Outer > Inner]`` when ``action`` runs nested inside others."""
    stack = nesting.current_stack()
    if action in stack:
        stack = stack[: stack.index(action) + 1]
    else:
        stack = (action,)
    return f"[{' > '.join(action_label(type(a)) for a in stack)}]"


def filter_sensitive(values: Mapping[str, Any], sensitive: Iterable[str]) -> dict[str, Any]:
    hidden = set(sensitive)
    return {key: (FILTERED_PLACEHOLDER if key in hidden else value) for key, value in values.items()}


def format_fields(values: Mapping[str, Any], sensitive: Iterable[str] = ()) -> str:
    """Render ``values`` as ``{key: repr}`` with sensitive values filtered, truncated for logs."""
    hidden = set(sensitive)
    parts = [f"{key}: {FILTERED_PLACEHOLDER if key in hidden else repr(value)}" for key, value in values.items()]
    return truncate("{" + ", ".join(parts) + "}")


def truncate(text: str, limit: int = LOG_CONTEXT_MAX_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + LOG_TRUNCATION_SUFFIX
