"""Sink for errors raised by ancillary callables.

Message sources, predicates, callbacks, validators and global hooks must never
change the outcome of a run. Errors they raise are logged here and swallowed,
unless the runtime asks for them to be raised outside production.
"""

from __future__ import annotations

import os
import traceback
from typing import Any

from ..commons.constants import LogLevel
from .runtime import Runtime, get_default_runtime


def _source_location(exception: BaseException) -> str:
    frames = traceback.extract_tb(exception.__traceback__) if exception.__traceback__ else []
    if not frames:
        return "unknown"
    frame = frames[-1]
    return f"{os.path.basename(frame.filename)}:{frame.lineno}"


def format_piping_error(description: str, exception: BaseException, production: bool) -> str:
    name = type(exception).__name__
    src = _source_location(exception)
    if production:
        return f"Ignoring exception raised while {description}: {name} - {exception} (from {src})"

    body = (
        f"!! IGNORING EXCEPTION RAISED WHILE {description.upper()} !!\n\n"
        f"\t* Exception: {name}\n"
        f"\t* Message: {exception}\n"
        f"\t* From: {src}"
    )
    return f"{'⌵' * 30}\n\n{body}\n\n{'^' * 30}"


def piping_error(description: str, exception: Exception, action: Any = None, runtime: Runtime | None = None) -> None:
    """Log (or re-raise, when configured) an error from ancillary machinery.

    Args:
        description: What was being done, e.g. "executing callback".
        exception: The error that was raised.
        action: The running action, used for its logger and log prefix.
        runtime: Runtime to consult, defaults to the action's or the process default.

    Raises:
        Exception: ``exception`` itself when the runtime raises piping errors.
    """
    if runtime is None:
        runtime = getattr(action, "runtime", None) or get_default_runtime()

    if runtime.raises_piping_errors:
        raise exception

    message = format_piping_error(description, exception, runtime.is_production)
    if action is not None and hasattr(action, "log"):
        action.log(message, level=LogLevel.WARNING)
    else:
        runtime.log(message, level=LogLevel.WARNING)
