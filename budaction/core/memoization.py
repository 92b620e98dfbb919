"""Per-instance memoization for action methods."""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, TypeVar


F = TypeVar("F", bound=Callable[..., Any])

_CACHE_ATTR = "_memoized_results"


def memo(fn: F) -> F:
    """Cache a method's result on the instance, keyed by its arguments.

    The cache lives on the action instance, so it never outlives a single run.
    Arguments must be hashable.
    """

    @functools.wraps(fn)
    def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
        cache = self.__dict__.setdefault(_CACHE_ATTR, {})
        key = (fn.__name__, args, tuple(sorted(kwargs.items())))
        if key not in cache:
            cache[key] = fn(self, *args, **kwargs)
        return cache[key]

    return wrapper  # type: ignore[return-value]
