"""Custom exceptions for budaction."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .constants import DEFAULT_FAILURE_MESSAGE


if TYPE_CHECKING:
    from ..core.validators import ValidationErrors


class ActionError(Exception):
    """Base exception for all budaction errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class Failure(ActionError):
    """Raised by ``Action.fail`` to halt a run with an explicit, user-facing failure.

    ``source`` is the action instance the failure is attributed to. It is set when a
    nested bang call re-raises an inner failure inside its caller.
    """

    def __init__(self, message: str | None = None, source: Any = None) -> None:
        self._default_message = not message
        super().__init__(message or DEFAULT_FAILURE_MESSAGE)
        self.source = source

    @property
    def default_message(self) -> bool:
        """Whether the failure was raised without an explicit message."""
        return self._default_message


class EarlyCompletion(ActionError):
    """Internal signal raised by ``Action.done``; converted to a successful result."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "")
        self.success_message = message


class DuplicateFieldError(ActionError):
    """A field was declared more than once for the same action."""

    def __init__(self, fields: list[str]) -> None:
        self.fields = fields
        super().__init__(f"Duplicate field(s) declared: {', '.join(fields)}")


class UnsupportedArgument(ActionError):
    """A declaration combines options that cannot be supported."""

    def __init__(self, feature: str) -> None:
        self.feature = feature
        super().__init__(
            f"{feature} is not currently supported.\n\n"
            "Implementation is technically possible but very complex. "
            "Please submit a Github Issue if you have a real-world need for this functionality."
        )


class ContractViolation(ActionError):
    """Base class for violations of a declared contract."""

    pass


class ReservedAttributeError(ContractViolation):
    """A field was declared with a name reserved by the action surface."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Cannot call expects or exposes with reserved field name: {name}")


class MethodNotAllowed(ContractViolation):
    """An undeclared field was read from a result or context."""

    pass


class PreprocessingError(ContractViolation):
    """A ``preprocess`` callable raised while transforming an input."""

    pass


class DefaultAssignmentError(ContractViolation):
    """A callable default raised while being evaluated."""

    pass


class UnknownExposure(ContractViolation):
    """``expose`` was called with a key that is not declared with ``exposes``."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Attempted to expose unknown key '{key}': be sure to declare it with `{key} = exposes()`")


class ValidationError(ContractViolation):
    """Contract validation failed for one or more fields.

    ``errors`` holds the per-field messages; the exception message is the full set of
    messages joined as a sentence.
    """

    def __init__(self, errors: ValidationErrors) -> None:
        self.errors = errors
        super().__init__(to_sentence(errors.full_messages()), details={})

    def __str__(self) -> str:
        return self.message


class InboundValidationError(ValidationError):
    """Validation of the expected inputs failed."""

    pass


class OutboundValidationError(ValidationError):
    """Validation of the exposed outputs failed."""

    pass


def to_sentence(items: list[str]) -> str:
    """Join ``items`` as "a", "a and b" or "a, b, and c"."""
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"
