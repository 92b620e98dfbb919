"""The ``Action`` base class and its declaration metaclass."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from ..commons.constants import Direction, LogLevel, MessageKind
from ..commons.exceptions import DuplicateFieldError, EarlyCompletion, Failure
from . import nesting
from .context import ExecutionContext
from .contract import MISSING, Contract, FieldDeclaration, FieldSpec, ModelReader, extract_path
from .executor import RUNTIME_DEFAULT, Executor
from .handlers import DECLARATIONS_ATTR, CallbackEntry, HandlerRegistry, HookEntry, MessageRule
from .log_formatting import log_prefix
from .messages import MessageResolver, exception_message
from .profiling import ProfileConfig
from .result import Result
from .runtime import Runtime, get_default_runtime


class _ClassNamespace(dict):
    """Class body namespace that remembers fields declared twice in the same body."""

    def __init__(self) -> None:
        super().__init__()
        self.duplicate_fields: list[str] = []

    def __setitem__(self, key: str, value: Any) -> None:
        if isinstance(value, FieldDeclaration) and isinstance(self.get(key), FieldDeclaration):
            self.duplicate_fields.append(key)
        super().__setitem__(key, value)


def _collect_declarations(namespace: Mapping[str, Any]) -> list[Any]:
    declarations: list[Any] = []
    for key, value in namespace.items():
        if key == "messages" and isinstance(value, (list, tuple)):
            declarations.extend(value)
        elif key == "__declarations__":
            declarations.extend(value)
        elif callable(value):
            declarations.extend(getattr(value, DECLARATIONS_ATTR, ()))
    return declarations


def _event_key(declaration: Any) -> str:
    if isinstance(declaration, MessageRule):
        return declaration.kind.value
    if isinstance(declaration, CallbackEntry):
        return declaration.event.value
    if isinstance(declaration, HookEntry):
        return declaration.kind.value
    raise TypeError(f"Unsupported declaration: {declaration!r}")


class ActionType(type):
    """Metaclass turning field descriptors and handler declarations into an immutable
    contract and handler registry, extended from the parent action's."""

    @classmethod
    def __prepare__(mcs, name: str, bases: tuple[type, ...], **kwargs: Any) -> _ClassNamespace:
        return _ClassNamespace()

    def __new__(mcs, name: str, bases: tuple[type, ...], namespace: dict[str, Any], **kwargs: Any) -> ActionType:
        duplicates = getattr(namespace, "duplicate_fields", [])
        if duplicates:
            raise DuplicateFieldError(sorted(set(duplicates)))

        parents = [base for base in bases if isinstance(base, ActionType)]
        contract = parents[0]._contract if parents else Contract()
        handlers = parents[0]._handlers if parents else HandlerRegistry.empty()

        specs = [value.bind(key) for key, value in namespace.items() if isinstance(value, FieldDeclaration)]
        contract = contract.extend(specs)
        handlers = handlers.extend((_event_key(d), d) for d in _collect_declarations(namespace))

        body = dict(namespace)
        body.pop("__declarations__", None)
        body.setdefault("__action_name__", name)
        cls = super().__new__(mcs, name, bases, body, **kwargs)
        cls._contract = contract
        cls._handlers = handlers

        for spec in specs:
            if spec.model is not None and not spec.is_subfield:
                reader_name = spec.name[: -len("_id")]
                if reader_name not in namespace:
                    setattr(cls, reader_name, ModelReader(spec))
        return cls


class Action(metaclass=ActionType):
    """Base class for a unit of business logic with a declared contract.

    Subclasses declare inputs with ``expects``, outputs with ``exposes`` and put the
    body in ``execute``. Running an action never raises: ``call``/``run`` return a
    ``Result`` describing the outcome. The ``_or_raise`` variants re-raise failures.

    Usage:
        class Greet(Action):
            name = expects(type=str)
            greeting = exposes()

            messages = (success("Greeted!"),)

            def execute(self):
                self.expose(greeting=f"Hello {self.name}")

        result = Greet.call(name="World")
        result.greeting  # "Hello World"

    Attributes:
        log_calls: Level of the automatic before/after log lines; None disables them.
            Defaults to the runtime's ``log_calls_level``.
        log_errors: Level for logging unsuccessful runs when ``log_calls`` is disabled.
        profile: A ``profiling(...)`` configuration for sampled body profiling.
        messages: ``success(...)``/``error(...)`` message rules, newest last.
    """

    __action_name__: str | None = None
    _contract: Contract
    _handlers: HandlerRegistry

    log_calls: Any = RUNTIME_DEFAULT
    log_errors: LogLevel | str | None = None
    profile: ProfileConfig | None = None
    messages: tuple[MessageRule, ...] = ()

    def __init__(self, inputs: Mapping[str, Any] | None = None, runtime: Runtime | None = None) -> None:
        self.runtime = runtime or get_default_runtime()
        self._context = ExecutionContext(type(self)._contract, inputs or {})

    def execute(self) -> None:
        """The body of the action. Override it in subclasses."""

    # ============ Entrypoints ============

    @classmethod
    def run(cls, inputs: Mapping[str, Any] | None = None, runtime: Runtime | None = None) -> Result:
        """Run the action with ``inputs``; nested runs inherit the caller's runtime."""
        if runtime is None:
            caller = nesting.current_action()
            runtime = caller.runtime if caller is not None else get_default_runtime()
        return Executor(cls(inputs, runtime)).run()

    @classmethod
    def call(cls, **inputs: Any) -> Result:
        return cls.run(inputs)

    @classmethod
    def run_or_raise(cls, inputs: Mapping[str, Any] | None = None, runtime: Runtime | None = None) -> Result:
        """Run the action and raise unless it succeeded.

        A failure, or any outcome inside another action, is re-raised as a ``Failure``
        carrying this action's resolved error message and attributed to this action for
        ``error(from_=...)`` rules. A raised exception at the top level is re-raised as is.
        """
        result = cls.run(inputs, runtime)
        if result.ok:
            return result
        if result.is_failure or nesting.is_nested():
            raise Failure(result.error, source=result.action) from result.raised
        raise result.raised

    @classmethod
    def call_or_raise(cls, **inputs: Any) -> Result:
        return cls.run_or_raise(inputs)

    # ============ Body helpers ============

    @property
    def inputs(self) -> Mapping[str, Any]:
        return MappingProxyType(self._context.declared_inputs())

    def expose(self, key: str | None = None, value: Any = MISSING, /, **values: Any) -> None:
        """Set outputs, either ``expose("key", value)`` or ``expose(key=value, ...)``."""
        if key is not None:
            if value is MISSING:
                raise ValueError("expose(key, value) requires a value")
            values[key] = value
        self._context.expose(values)

    def fail(self, message: str | None = None, **exposures: Any) -> None:
        """Halt the run with a failure outcome."""
        if exposures:
            self.expose(**exposures)
        raise Failure(message)

    def done(self, message: str | None = None, **exposures: Any) -> None:
        """Halt the run early with a success outcome; remaining hooks and body are skipped."""
        if exposures:
            self.expose(**exposures)
        raise EarlyCompletion(message)

    def log(self, message: str, level: LogLevel | str = LogLevel.INFO) -> None:
        self.runtime.log(f"{log_prefix(self)} {message}", level=level)

    def set_execution_context(self, **values: Any) -> None:
        """Add diagnostic values to the context handed to the global exception hook."""
        self._context.set_extra(values)

    def additional_execution_context(self) -> dict[str, Any]:
        """Override to add computed values to the global exception hook context."""
        return {}

    @property
    def default_error(self) -> str:
        return MessageResolver(type(self)._handlers, MessageKind.ERROR, self, self._context.exception).resolve_default()

    @property
    def default_success(self) -> str:
        return MessageResolver(type(self)._handlers, MessageKind.SUCCESS, self, None).resolve_default()

    def hoist_errors(self, block: Callable[[], Any], prefix: str | None = None) -> Result:
        """Run ``block`` (one nested call) and turn its failure into this action's failure.

        An explicit failure of the nested action keeps its message, prefixed with
        ``prefix``. Any other exception is reported with this action's default error
        message instead.

        Raises:
            ValueError: If ``block`` does not return a ``Result``.
            Failure: If the nested call did not succeed.
        """
        try:
            result = block()
        except Exception as e:
            cause = e.__cause__ if isinstance(e, Failure) and e.__cause__ is not None else e
            self.log(f"hoist_errors block transforming a {type(cause).__name__} exception: {exception_message(cause)}")
            message = self._hoisted_message(e)
            self._hoist(prefix, cause)
            raise Failure(message) from None

        if not isinstance(result, Result):
            raise ValueError(f"hoist_errors block must return a Result, got {type(result).__name__}")
        if not result.ok:
            self._hoist(prefix, result.raised)
            raise Failure(result.error if result.is_failure else None)
        return result

    @staticmethod
    def _hoisted_message(exception: Exception) -> str | None:
        if not isinstance(exception, Failure):
            return None
        cause = exception.__cause__
        if cause is None:
            return None if exception.default_message else exception.message
        # re-raised by a nested bang call: only explicit failures keep their message
        return exception.message if isinstance(cause, Failure) else None

    def _hoist(self, prefix: str | None, exception: BaseException | None) -> None:
        self._context.error_prefix = prefix
        self._context.hoisted_exception = exception

    def _read_field(self, spec: FieldSpec) -> Any:
        if spec.direction is Direction.OUTBOUND:
            return self._context.outputs.get(spec.name)
        if spec.is_subfield:
            return extract_path(self._context.read_input(spec.on), spec.path)
        return self._context.read_input(spec.name)
