"""Budaction: contract-checked units of business logic with classified outcomes.

Usage:
    from budaction import Action, expects, exposes, success, error

    class Charge(Action):
        amount = expects(type=int, numericality={"greater_than": 0})
        receipt_id = exposes()

        messages = (
            success("Payment received"),
            error("Card declined", if_=CardDeclined),
        )

        def execute(self):
            self.expose(receipt_id=gateway.charge(self.amount))

    result = Charge.call(amount=10)
    result.ok, result.message
"""

from .__about__ import __version__
from .commons.constants import Environment, LogLevel, Outcome
from .commons.exceptions import (
    ActionError,
    ContractViolation,
    DuplicateFieldError,
    Failure,
    InboundValidationError,
    MethodNotAllowed,
    OutboundValidationError,
    UnsupportedArgument,
    ValidationError,
)
from .core import (
    Action,
    Result,
    Runtime,
    Shape,
    after,
    around,
    before,
    error,
    error_message,
    expects,
    exposes,
    memo,
    method_ref,
    on_error,
    on_exception,
    on_failure,
    on_success,
    profiling,
    success,
    success_message,
)
from .factory import build_action
from .registry import ActionRegistry, action_registry, register_action

__all__ = [
    "__version__",
    # Actions
    "Action",
    "build_action",
    "expects",
    "exposes",
    "success",
    "error",
    "success_message",
    "error_message",
    "before",
    "after",
    "around",
    "on_success",
    "on_error",
    "on_failure",
    "on_exception",
    "Shape",
    "method_ref",
    "memo",
    "profiling",
    # Results
    "Result",
    "Outcome",
    # Runtime
    "Runtime",
    "Environment",
    "LogLevel",
    # Registry
    "ActionRegistry",
    "action_registry",
    "register_action",
    # Exceptions
    "ActionError",
    "Failure",
    "ContractViolation",
    "ValidationError",
    "InboundValidationError",
    "OutboundValidationError",
    "MethodNotAllowed",
    "DuplicateFieldError",
    "UnsupportedArgument",
]
