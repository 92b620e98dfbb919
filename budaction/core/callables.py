"""Tagged callables used by messages, predicates, callbacks and hooks.

Every user-supplied callable is wrapped in a ``Handler`` when it is declared. The
handler records *how* the callable must be invoked (``Shape``) so the pipeline
never has to inspect signatures while an action is running.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable


class Shape(str, Enum):
    """How a callable receives the triggering exception."""

    NONE = "none"  # fn()
    EXCEPTION = "exception"  # fn(exception)
    EXCEPTION_KW = "exception_kw"  # fn(exception=exception)


class HandlerKind(str, Enum):
    STATIC = "static"
    CALLABLE = "callable"
    METHOD = "method"
    METHOD_REF = "method_ref"


@dataclass(frozen=True)
class MethodRef:
    """Reference to an action method by name, resolved on the running instance."""

    name: str


def method_ref(name: str) -> MethodRef:
    """Refer to an instance method of the action by name."""
    return MethodRef(name)


def detect_shape(fn: Callable[..., Any], skip_self: bool = False) -> Shape:
    """Determine the ``Shape`` of ``fn`` from its signature.

    Args:
        fn: The callable to inspect.
        skip_self: Ignore the first positional parameter (unbound methods).

    Returns:
        ``EXCEPTION_KW`` when ``exception`` is keyword-only (or ``**kwargs`` is accepted),
        ``EXCEPTION`` when a positional parameter remains, ``NONE`` otherwise.
    """
    try:
        params = list(inspect.signature(fn).parameters.values())
    except (TypeError, ValueError):
        return Shape.NONE

    if skip_self and params and params[0].kind in (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        params = params[1:]

    if any(p.kind is inspect.Parameter.KEYWORD_ONLY and p.name == "exception" for p in params):
        return Shape.EXCEPTION_KW
    if any(
        p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.VAR_POSITIONAL)
        for p in params
    ):
        return Shape.EXCEPTION
    if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params):
        return Shape.EXCEPTION_KW
    return Shape.NONE


def call_with_shape(fn: Callable[..., Any], shape: Shape, exception: BaseException | None) -> Any:
    if shape is Shape.EXCEPTION:
        return fn(exception)
    if shape is Shape.EXCEPTION_KW:
        return fn(exception=exception)
    return fn()


def call_with_desired_shape(fn: Callable[..., Any], args: tuple[Any, ...] = (), kwargs: dict[str, Any] | None = None) -> Any:
    """Call ``fn`` with only the positional and keyword arguments it declares.

    Used for hooks with a documented but optional argument list, such as the global
    exception hook ``(exception, action=..., context=...)``.
    """
    kwargs = kwargs or {}
    try:
        params = list(inspect.signature(fn).parameters.values())
    except (TypeError, ValueError):
        return fn(*args, **kwargs)

    if any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in params):
        filtered_args = args
    else:
        positional = [
            p for p in params if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        ]
        filtered_args = args[: len(positional)]
        # keyword arguments already consumed positionally must not be passed twice
        taken = {p.name for p in positional[: len(filtered_args)]}
        kwargs = {k: v for k, v in kwargs.items() if k not in taken}

    if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params):
        filtered_kwargs = kwargs
    else:
        accepted = {
            p.name for p in params if p.kind in (inspect.Parameter.KEYWORD_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        }
        filtered_kwargs = {k: v for k, v in kwargs.items() if k in accepted}

    return fn(*filtered_args, **filtered_kwargs)


@dataclass(frozen=True)
class Handler:
    """A declared message source, predicate, callback or hook.

    ``METHOD`` handlers wrap functions defined in an action class body and are bound
    to the running instance. ``METHOD_REF`` handlers are looked up by name on the
    instance when invoked.
    """

    kind: HandlerKind
    value: Any
    shape: Shape | None = Shape.NONE

    @classmethod
    def build(cls, value: Any, shape: Shape | None = None) -> Handler:
        """Wrap a free-standing value: a ``MethodRef``, a callable or a static value."""
        if isinstance(value, Handler):
            return value
        if isinstance(value, MethodRef):
            return cls(HandlerKind.METHOD_REF, value.name, shape)
        if callable(value):
            return cls(HandlerKind.CALLABLE, value, shape or detect_shape(value))
        return cls(HandlerKind.STATIC, value)

    @classmethod
    def method(cls, fn: Callable[..., Any], shape: Shape | None = None) -> Handler:
        """Wrap a function declared in an action class body."""
        return cls(HandlerKind.METHOD, fn, shape or detect_shape(fn, skip_self=True))

    @property
    def label(self) -> str:
        if self.kind is HandlerKind.METHOD:
            return self.value.__name__
        if self.kind is HandlerKind.METHOD_REF:
            return self.value
        return repr(self.value)
