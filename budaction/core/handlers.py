"""Conditional handlers: message rules, lifecycle callbacks and hooks.

Declarations are stored per action class in an immutable ``HandlerRegistry``.
Registering returns a new registry with the entry placed first, so a subclass
extends its parent's registry without ever mutating it.
"""

from __future__ import annotations

import builtins
import importlib
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

from ..commons.constants import CallbackEvent, HookKind, LogLevel, MessageKind
from ..commons.exceptions import Failure, UnsupportedArgument
from .callables import Handler, HandlerKind, MethodRef, Shape, call_with_shape, detect_shape
from .piping import piping_error


DECLARATIONS_ATTR = "__budaction_declarations__"


# ============ Invocation ============


def _bind(handler: Handler, action: Any, literal_fallback: bool) -> tuple[Any, Shape | None, bool]:
    """Resolve ``handler`` to ``(callable_or_value, shape, is_callable)`` for ``action``."""
    if handler.kind is HandlerKind.STATIC:
        return handler.value, None, False
    if handler.kind is HandlerKind.CALLABLE:
        return handler.value, handler.shape, True
    if handler.kind is HandlerKind.METHOD:
        return handler.value.__get__(action, type(action)), handler.shape, True

    target = getattr(action, handler.value, None)
    if target is None or not callable(target):
        if literal_fallback:
            return handler.value, None, False
        action.log(
            f"Ignoring apparently-invalid method reference '{handler.value}': action does not define it",
            level=LogLevel.WARNING,
        )
        return None, None, False
    return target, handler.shape or detect_shape(target), True


def call_handler(handler: Handler, action: Any, exception: BaseException | None = None, literal_fallback: bool = False) -> Any:
    """Invoke ``handler`` on ``action`` without isolating errors."""
    target, shape, is_callable = _bind(handler, action, literal_fallback)
    if not is_callable:
        return target
    return call_with_shape(target, shape or Shape.NONE, exception)


def invoke(
    handler: Handler | None,
    action: Any,
    exception: BaseException | None = None,
    operation: str = "executing handler",
    literal_fallback: bool = False,
) -> Any:
    """Invoke ``handler``; errors are sent to the piping sink and ``None`` is returned."""
    if handler is None:
        return None
    try:
        return call_handler(handler, action, exception, literal_fallback=literal_fallback)
    except Exception as e:
        piping_error(operation, e, action=action)
        return None


# ============ Matching ============


def resolve_class_name(name: str, action: Any) -> type:
    """Resolve a class from a dotted path, the action's module or builtins."""
    if "." in name:
        module_name, _, attr = name.rpartition(".")
        return getattr(importlib.import_module(module_name), attr)

    module = sys.modules.get(type(action).__module__)
    for namespace in (vars(module) if module else {}, vars(builtins)):
        if name in namespace:
            return namespace[name]
    raise NameError(f"uninitialized constant {name}")


def _is_exception_class(value: Any) -> bool:
    return isinstance(value, type) and issubclass(value, BaseException)


@dataclass(frozen=True)
class OriginFilter:
    """Matches failures re-raised by a nested bang call from one of ``sources``."""

    sources: tuple[Union[type, str], ...]

    def matches(self, exception: BaseException | None) -> bool:
        if not isinstance(exception, Failure) or exception.source is None:
            return False
        source = exception.source
        for cls in self.sources:
            if isinstance(cls, str):
                if type(source).__name__ == cls or type(source).__qualname__ == cls:
                    return True
            elif isinstance(source, cls):
                return True
        return False


Predicate = Union[type, tuple, str, Handler, OriginFilter, bool]


def _build_predicate(value: Any) -> Predicate:
    if isinstance(value, (OriginFilter, bool, str)) or _is_exception_class(value):
        return value
    if isinstance(value, tuple) and value and all(_is_exception_class(v) for v in value):
        return value
    if isinstance(value, (MethodRef, Handler)) or callable(value):
        return Handler.build(value)
    raise ValueError(f"Unsupported condition: {value!r}")


@dataclass(frozen=True)
class Matcher:
    """All-of set of predicates, optionally inverted (``unless``)."""

    rules: tuple[Predicate, ...] = ()
    invert: bool = False

    @classmethod
    def build(cls, if_: Any = None, unless: Any = None, from_: Any = None) -> Matcher:
        rules: list[Predicate] = []
        if if_ is not None:
            rules.append(_build_predicate(if_))
        if unless is not None:
            rules.append(_build_predicate(unless))
        if from_ is not None:
            sources = tuple(from_) if isinstance(from_, (list, tuple)) else (from_,)
            rules.append(OriginFilter(sources))
        return cls(tuple(rules), invert=unless is not None)

    @property
    def static(self) -> bool:
        return not self.rules

    def matches(self, action: Any, exception: BaseException | None) -> bool:
        if self.static:
            return True
        try:
            matched = all(self._apply(rule, action, exception) for rule in self.rules)
        except Exception as e:
            piping_error("determining if handler applies to exception", e, action=action)
            return False
        return not matched if self.invert else matched

    @staticmethod
    def _apply(rule: Predicate, action: Any, exception: BaseException | None) -> bool:
        if isinstance(rule, bool):
            return rule
        if isinstance(rule, OriginFilter):
            return rule.matches(exception)
        if isinstance(rule, str):
            return exception is not None and isinstance(exception, resolve_class_name(rule, action))
        if isinstance(rule, Handler):
            return bool(call_handler(rule, action, exception))
        return exception is not None and isinstance(exception, rule)


# ============ Entries ============


@dataclass(frozen=True)
class MessageRule:
    """One declared success or error message."""

    kind: MessageKind
    handler: Handler | None = None
    matcher: Matcher = field(default_factory=Matcher)
    prefix: Handler | None = None

    @property
    def static(self) -> bool:
        return self.matcher.static

    def matches(self, action: Any, exception: BaseException | None) -> bool:
        return self.matcher.matches(action, exception)


@dataclass(frozen=True)
class CallbackEntry:
    """One declared ``on_success``/``on_error``/``on_failure``/``on_exception`` callback."""

    event: CallbackEvent
    handler: Handler
    matcher: Matcher = field(default_factory=Matcher)

    def matches(self, action: Any, exception: BaseException | None) -> bool:
        return self.matcher.matches(action, exception)


@dataclass(frozen=True)
class HookEntry:
    """One declared ``before``/``after``/``around`` hook."""

    kind: HookKind
    handler: Handler


Declaration = Union[MessageRule, CallbackEntry, HookEntry]


class HandlerRegistry:
    """Small, immutable, copy-on-write registry keyed by event.

    Entries are stored most-recently-registered first.
    """

    __slots__ = ("_index",)

    def __init__(self, index: dict[str, tuple[Any, ...]] | None = None) -> None:
        self._index = MappingProxyType(dict(index or {}))

    @classmethod
    def empty(cls) -> HandlerRegistry:
        return cls()

    def register(self, event: str, entry: Any) -> HandlerRegistry:
        key = str(getattr(event, "value", event))
        index = dict(self._index)
        index[key] = (entry,) + self._index.get(key, ())
        return HandlerRegistry(index)

    def extend(self, entries: Iterable[tuple[str, Any]]) -> HandlerRegistry:
        registry = self
        for event, entry in entries:
            registry = registry.register(event, entry)
        return registry

    def for_event(self, event: str) -> tuple[Any, ...]:
        """Entries for ``event``, newest first."""
        return self._index.get(str(getattr(event, "value", event)), ())

    def in_declaration_order(self, event: str) -> tuple[Any, ...]:
        return tuple(reversed(self.for_event(event)))

    def __bool__(self) -> bool:
        return any(self._index.values())


# ============ Declaration helpers ============


def _check_conditions(label: str, if_: Any, unless: Any) -> None:
    if if_ is not None and unless is not None:
        raise UnsupportedArgument(f"calling {label} with both if_ and unless")


def _build_message_rule(
    kind: MessageKind,
    message: Any,
    if_: Any,
    unless: Any,
    prefix: Any,
    from_: Any,
    shape: Shape | None,
    handler: Handler | None = None,
) -> MessageRule:
    _check_conditions(kind.value, if_, unless)
    if from_ is not None and (if_ is not None or unless is not None):
        raise UnsupportedArgument("Combining from_ with if_ or unless")
    if handler is None and message is None and prefix is None and from_ is None:
        raise ValueError("Provide a message, callable, or prefix")

    if handler is None and message is not None:
        handler = Handler.build(message, shape)

    return MessageRule(
        kind=kind,
        handler=handler,
        matcher=Matcher.build(if_=if_, unless=unless, from_=from_),
        prefix=Handler.build(prefix) if prefix is not None else None,
    )


def success(
    message: Any = None,
    *,
    if_: Any = None,
    unless: Any = None,
    prefix: Any = None,
    shape: Shape | None = None,
) -> MessageRule:
    """Declare a success message rule for an action's ``messages`` tuple.

    Args:
        message: Static text, a callable (called with the shape it declares) or a ``method_ref``.
        if_: Condition: exception class, class name, callable or ``method_ref``.
        unless: Inverted condition; cannot be combined with ``if_``.
        prefix: Text (or callable) prepended to the produced message.
        shape: Explicit call shape for ``message`` instead of reading its signature.
    """
    return _build_message_rule(MessageKind.SUCCESS, message, if_, unless, prefix, None, shape)


def error(
    message: Any = None,
    *,
    if_: Any = None,
    unless: Any = None,
    prefix: Any = None,
    from_: Any = None,
    shape: Shape | None = None,
) -> MessageRule:
    """Declare an error message rule for an action's ``messages`` tuple.

    ``from_`` restricts the rule to failures re-raised from a nested bang call of the
    given action class (or class name). It cannot be combined with ``if_``/``unless``.
    """
    return _build_message_rule(MessageKind.ERROR, message, if_, unless, prefix, from_, shape)


def _tag(fn: Callable[..., Any], declaration: Declaration) -> Callable[..., Any]:
    declarations = list(getattr(fn, DECLARATIONS_ATTR, ()))
    declarations.append(declaration)
    setattr(fn, DECLARATIONS_ATTR, tuple(declarations))
    return fn


def success_message(
    *, if_: Any = None, unless: Any = None, prefix: Any = None, shape: Shape | None = None
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate an action method that produces a success message."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        rule = _build_message_rule(
            MessageKind.SUCCESS, None, if_, unless, prefix, None, shape, handler=Handler.method(fn, shape)
        )
        return _tag(fn, rule)

    return decorator


def error_message(
    *,
    if_: Any = None,
    unless: Any = None,
    prefix: Any = None,
    from_: Any = None,
    shape: Shape | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate an action method that produces an error message.

    Usage:
        @error_message(if_=ValueError)
        def invalid(self, exception):
            return f"wasn't nice ({exception})"
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        rule = _build_message_rule(
            MessageKind.ERROR, None, if_, unless, prefix, from_, shape, handler=Handler.method(fn, shape)
        )
        return _tag(fn, rule)

    return decorator


def _callback_decorator(event: CallbackEvent) -> Callable[..., Any]:
    def declare(
        fn: Callable[..., Any] | None = None,
        *,
        if_: Any = None,
        unless: Any = None,
        shape: Shape | None = None,
    ) -> Any:
        _check_conditions(event.value, if_, unless)
        matcher = Matcher.build(if_=if_, unless=unless)

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            return _tag(func, CallbackEntry(event, Handler.method(func, shape), matcher))

        return decorator(fn) if fn is not None else decorator

    declare.__name__ = event.value
    declare.__doc__ = f"Decorate an action method to run as an ``{event.value}`` callback."
    return declare


on_success = _callback_decorator(CallbackEvent.ON_SUCCESS)
on_error = _callback_decorator(CallbackEvent.ON_ERROR)
on_failure = _callback_decorator(CallbackEvent.ON_FAILURE)
on_exception = _callback_decorator(CallbackEvent.ON_EXCEPTION)


def before(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Run the decorated method before the body (parent hooks first)."""
    return _tag(fn, HookEntry(HookKind.BEFORE, Handler.method(fn, Shape.NONE)))


def after(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Run the decorated method after a successful body (parent hooks first)."""
    return _tag(fn, HookEntry(HookKind.AFTER, Handler.method(fn, Shape.NONE)))


def around(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap before hooks, body and after hooks; the method receives the next link as its argument."""
    return _tag(fn, HookEntry(HookKind.AROUND, Handler.method(fn, Shape.NONE)))
