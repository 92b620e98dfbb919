"""Core of budaction: contracts, message resolution, handlers and the execution pipeline.

This module exports the classes and declaration helpers needed to define actions:
- Action: Base class with ``expects``/``exposes`` fields and an ``execute`` body
- success, error, success_message, error_message: Message rules
- before, after, around, on_success, on_error, on_failure, on_exception: Hooks and callbacks
- Result: Immutable outcome of a run
- Runtime: Logger, clock, environment and global hooks threaded through a run
"""

from .action import Action, ActionType
from .callables import Shape, method_ref
from .contract import Contract, FieldSpec, expects, exposes
from .executor import RUNTIME_DEFAULT
from .handlers import (
    after,
    around,
    before,
    error,
    error_message,
    on_error,
    on_exception,
    on_failure,
    on_success,
    success,
    success_message,
)
from .memoization import memo
from .profiling import ProfileConfig, profiling
from .result import Result
from .runtime import Runtime, get_default_runtime, set_default_runtime
from .validators import ValidationErrors

__all__ = [
    # Actions
    "Action",
    "ActionType",
    "RUNTIME_DEFAULT",
    # Contract
    "Contract",
    "FieldSpec",
    "expects",
    "exposes",
    "ValidationErrors",
    # Messages
    "success",
    "error",
    "success_message",
    "error_message",
    # Hooks and callbacks
    "before",
    "after",
    "around",
    "on_success",
    "on_error",
    "on_failure",
    "on_exception",
    "Shape",
    "method_ref",
    # Results
    "Result",
    # Runtime
    "Runtime",
    "get_default_runtime",
    "set_default_runtime",
    # Helpers
    "memo",
    "profiling",
    "ProfileConfig",
]
