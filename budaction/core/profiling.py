"""Sampled cProfile profiling of action bodies."""

from __future__ import annotations

import cProfile
import io
import pstats
import random
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from ..commons.constants import LogLevel
from .callables import Handler
from .handlers import invoke
from .log_formatting import action_label


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProfileConfig:
    """When and where to profile an action's body."""

    condition: Any = True
    sample_rate: float = 0.1
    output_dir: Path | None = None


def profiling(if_: Any = True, sample_rate: float = 0.1, output_dir: str | Path | None = None) -> ProfileConfig:
    """Build the ``profile`` class attribute of an action.

    Args:
        if_: Value, zero-arg callable or ``method_ref`` deciding whether this run may be profiled.
        sample_rate: Fraction of eligible runs that are profiled.
        output_dir: Where ``.prof`` files go, defaults to the runtime's ``profile_output_dir``.

    Raises:
        ValueError: If ``sample_rate`` is outside ``[0, 1]``.
    """
    if not 0.0 <= sample_rate <= 1.0:
        raise ValueError(f"sample_rate must be between 0.0 and 1.0, got {sample_rate}")
    return ProfileConfig(
        condition=Handler.build(if_),
        sample_rate=sample_rate,
        output_dir=Path(output_dir) if output_dir is not None else None,
    )


def should_profile(action: Any, config: ProfileConfig | None) -> bool:
    if config is None or not action.runtime.profiling_enabled:
        return False
    if not invoke(config.condition, action, operation="determining if profiling should run"):
        return False
    return random.random() < config.sample_rate  # nosec B311


@contextmanager
def profiled(action: Any, config: ProfileConfig | None) -> Iterator[None]:
    """Profile the block when ``config`` allows it for this run."""
    if not should_profile(action, config):
        yield
        return

    profiler = cProfile.Profile()
    profiler.enable()
    try:
        yield
    finally:
        profiler.disable()
        _report(action, profiler, config)


def _report(action: Any, profiler: cProfile.Profile, config: ProfileConfig) -> None:
    output_dir = config.output_dir or action.runtime.profile_output_dir
    name = action_label(type(action)).replace(" ", "_")
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
    path = Path(output_dir) / f"{name}_{timestamp}.prof"

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        profiler.dump_stats(str(path))
    except OSError as e:
        logger.warning("profile_dump_failed", action=name, path=str(path), error=str(e))
        return

    stream = io.StringIO()
    stats = pstats.Stats(profiler, stream=stream).sort_stats("cumulative")
    stats.print_stats(20)
    logger.debug("profile_written", action=name, path=str(path))
    action.log(f"Profile written to {path}\n{stream.getvalue()}", level=LogLevel.DEBUG)
