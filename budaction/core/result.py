"""Immutable outcome of an action run."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from ..commons.constants import Outcome
from ..commons.exceptions import Failure, MethodNotAllowed


class Result:
    """What a caller sees of a finished run.

    Exposed outputs are readable as attributes, but only for fields declared with
    ``exposes``; reading anything else that the run knows about raises
    ``MethodNotAllowed`` rather than returning ``None``.

    Attributes:
        ok: True when the run succeeded (including early completion).
        outcome: ``Outcome.SUCCESS``, ``Outcome.FAILURE`` or ``Outcome.EXCEPTION``.
        success: Resolved success message, ``None`` unless ``ok``.
        error: Resolved error message, ``None`` when ``ok``.
        message: ``error`` or ``success`` depending on the outcome.
        exception: The captured exception; ``None`` on success and for a plain ``fail()``.
        elapsed_time: Duration of the run in seconds.
    """

    __slots__ = ("_action", "_outputs", "_known", "_raised", "_exception", "_elapsed_time", "_success", "_error")

    def __init__(
        self,
        *,
        action: Any,
        outputs: Mapping[str, Any],
        known_fields: frozenset[str],
        raised: BaseException | None,
        exception: BaseException | None,
        elapsed_time: float,
        success: str | None,
        error: str | None,
    ) -> None:
        object.__setattr__(self, "_action", action)
        object.__setattr__(self, "_outputs", MappingProxyType(dict(outputs)))
        object.__setattr__(self, "_known", known_fields)
        object.__setattr__(self, "_raised", raised)
        object.__setattr__(self, "_exception", exception)
        object.__setattr__(self, "_elapsed_time", elapsed_time)
        object.__setattr__(self, "_success", success)
        object.__setattr__(self, "_error", error)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Result is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("Result is immutable")

    @property
    def ok(self) -> bool:
        return self._raised is None

    @property
    def outcome(self) -> Outcome:
        if isinstance(self._raised, Failure):
            return Outcome.FAILURE
        if self._raised is not None:
            return Outcome.EXCEPTION
        return Outcome.SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.outcome is Outcome.FAILURE

    @property
    def is_exception(self) -> bool:
        return self.outcome is Outcome.EXCEPTION

    @property
    def success(self) -> str | None:
        return self._success

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def message(self) -> str | None:
        return self._success if self.ok else self._error

    @property
    def exception(self) -> BaseException | None:
        return self._exception

    @property
    def raised(self) -> BaseException | None:
        """The signal or exception that ended the run, including a plain ``Failure``."""
        return self._raised

    @property
    def elapsed_time(self) -> float:
        return self._elapsed_time

    @property
    def elapsed_ms(self) -> float:
        return round(self._elapsed_time * 1000, 3)

    @property
    def action(self) -> Any:
        """The action instance that produced this result."""
        return self._action

    @property
    def outputs(self) -> Mapping[str, Any]:
        return self._outputs

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._outputs:
            return self._outputs[name]
        if name in self._known:
            action_name = type(self._action).__action_name__
            raise MethodNotAllowed(
                f"Method {name} is not available on Result!\n\n"
                f"{action_name} may be missing a line like:\n  {name} = exposes()"
            )
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    def __repr__(self) -> str:
        fields = ", ".join(f"{key}={value!r}" for key, value in self._outputs.items())
        return f"<Result {self.outcome.value} message={self.message!r}{', ' if fields else ''}{fields}>"

    @classmethod
    def ok_result(cls, message: str | None = None, **exposures: Any) -> Result:
        """Build a successful result without writing an action, e.g. to stub a nested call."""
        from ..factory import stub_result

        return stub_result(message, exposures, failed=False)

    @classmethod
    def error_result(cls, message: str | None = None, *, exception: Exception | None = None, **exposures: Any) -> Result:
        """Build a failed result; with ``exception`` its outcome is ``exception`` instead of ``failure``."""
        from ..factory import stub_result

        return stub_result(message, exposures, failed=True, exception=exception)
