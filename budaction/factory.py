"""Build action classes from a contract and a body without a class statement."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Union

from .commons.constants import CallbackEvent, HookKind
from .core.action import Action
from .core.callables import Handler, Shape
from .core.contract import FieldDeclaration
from .core.contract import expects as expects_field
from .core.contract import exposes as exposes_field
from .core.executor import RUNTIME_DEFAULT
from .core.handlers import CallbackEntry, HookEntry, MessageRule, error
from .core.result import Result
from .core.runtime import get_default_runtime
from .registry import action_registry


FieldsArg = Union[Mapping[str, Any], Iterable[str], None]


def _fields(declare: Callable[..., Any], fields: FieldsArg) -> dict[str, FieldDeclaration]:
    if fields is None:
        return {}
    if not isinstance(fields, Mapping):
        return {name: declare() for name in fields}

    declared: dict[str, FieldDeclaration] = {}
    for name, options in fields.items():
        if isinstance(options, FieldDeclaration):
            declared[name] = options
        elif options is None:
            declared[name] = declare()
        else:
            declared[name] = declare(**options)
    return declared


def _class_name(name: str | None) -> str:
    if not name:
        return "AnonymousAction"
    cleaned = re.sub(r"\W+", "_", name).strip("_")
    return cleaned if cleaned and not cleaned[0].isdigit() else f"Action_{cleaned}"


def build_action(
    name: str | None = None,
    body: Callable[[Any], Any] | None = None,
    *,
    expects: FieldsArg = None,
    exposes: FieldsArg = None,
    messages: Iterable[MessageRule] = (),
    before: Iterable[Callable[[Any], Any]] = (),
    after: Iterable[Callable[[Any], Any]] = (),
    around: Iterable[Callable[[Any, Callable[[], None]], Any]] = (),
    on_success: Iterable[Callable[..., Any]] = (),
    on_error: Iterable[Callable[..., Any]] = (),
    on_failure: Iterable[Callable[..., Any]] = (),
    on_exception: Iterable[Callable[..., Any]] = (),
    log_calls: Any = RUNTIME_DEFAULT,
    base: type[Action] = Action,
    register: bool = False,
) -> type[Action]:
    """Create an action class from a contract and a body.

    ``body`` and every hook or callback receive the running action as their first
    argument, exactly like methods declared in a class body.

    Usage:
        Double = build_action(
            "Double",
            lambda action: action.expose(result=action.value * 2),
            expects={"value": {"type": int}},
            exposes=["result"],
        )
        Double.call(value=2).result  # 4

    Args:
        name: Action name used in logs and as registry key. None builds an anonymous action.
        body: The ``execute`` body.
        expects: Input names, or a mapping of name to ``expects`` options (or declaration).
        exposes: Output names, or a mapping of name to ``exposes`` options (or declaration).
        messages: ``success(...)``/``error(...)`` rules.
        register: Also register the class in the global ``action_registry``.

    Raises:
        ValueError: If ``register`` is set for an anonymous action.
    """
    declarations: list[Any] = list(messages)
    for kind, hooks in ((HookKind.BEFORE, before), (HookKind.AFTER, after), (HookKind.AROUND, around)):
        declarations.extend(HookEntry(kind, Handler.method(fn, Shape.NONE)) for fn in hooks)
    for event, callbacks in (
        (CallbackEvent.ON_SUCCESS, on_success),
        (CallbackEvent.ON_ERROR, on_error),
        (CallbackEvent.ON_FAILURE, on_failure),
        (CallbackEvent.ON_EXCEPTION, on_exception),
    ):
        declarations.extend(CallbackEntry(event, Handler.method(fn)) for fn in callbacks)

    namespace: dict[str, Any] = {
        "__module__": __name__,
        "__action_name__": name,
        "__declarations__": declarations,
        "log_calls": log_calls,
    }
    if body is not None:
        namespace["execute"] = body
    namespace.update(_fields(expects_field, expects))
    namespace.update(_fields(exposes_field, exposes))

    action_class = type(base)(_class_name(name), (base,), namespace)
    if register:
        if not name:
            raise ValueError("Anonymous actions cannot be registered")
        action_registry.register(action_class, name=name)
    return action_class


def stub_result(
    message: str | None,
    exposures: Mapping[str, Any],
    *,
    failed: bool,
    exception: Exception | None = None,
) -> Result:
    """Produce a real ``Result`` from a throwaway anonymous action.

    Used by ``Result.ok_result``/``Result.error_result`` to stub nested calls in tests.
    """

    def body(action: Any) -> None:
        if exception is not None:
            action.expose(**exposures)
            raise exception
        if failed:
            action.fail(message, **exposures)
        action.done(message, **exposures)

    action_class = build_action(
        None,
        body,
        exposes=list(exposures),
        messages=[error(message)] if message and exception is not None else (),
        log_calls=None,
    )
    runtime = get_default_runtime().replace(
        on_exception=None, emit_metrics=None, metrics_enabled=False, tracing_enabled=False
    )
    return action_class.run({}, runtime)
