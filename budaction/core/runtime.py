"""Explicit collaborators threaded through every action run."""

from __future__ import annotations

import dataclasses
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from ..commons.config import AppConfig, app_settings
from ..commons.constants import Environment, LogLevel
from ..commons.observability import current_request_attributes, get_logger


@dataclass(frozen=True)
class Runtime:
    """Logger, clock, environment and global hooks used by the execution pipeline.

    A run receives its runtime explicitly; nested runs inherit the runtime of the
    action that started them. ``on_exception`` is called once per run that raised
    (not for explicit failures) with whichever of ``(exception, action=, context=)``
    it accepts. ``emit_metrics`` is called after every run with
    ``resource=`` and ``result=``.
    """

    logger: Any = field(default_factory=lambda: get_logger("budaction"))
    clock: Callable[[], float] = time.monotonic
    env: Environment = Environment.DEVELOPMENT
    log_calls_level: LogLevel | None = LogLevel.INFO
    raise_piping_errors_outside_production: bool = False
    include_retry_command_in_exceptions: bool = False
    on_exception: Callable[..., Any] | None = None
    emit_metrics: Callable[..., Any] | None = None
    additional_context: Callable[[], dict[str, Any]] | None = current_request_attributes
    metrics_enabled: bool = True
    tracing_enabled: bool = True
    profiling_enabled: bool = False
    profile_output_dir: Path = Path("tmp/profiles")

    @classmethod
    def from_settings(cls, settings: AppConfig | None = None, **overrides: Any) -> Runtime:
        """Build a runtime from application settings, with explicit overrides."""
        settings = settings or app_settings
        values: dict[str, Any] = {
            "env": settings.env,
            "log_calls_level": settings.log_calls_level,
            "raise_piping_errors_outside_production": settings.raise_piping_errors_outside_production,
            "include_retry_command_in_exceptions": settings.include_retry_command_in_exceptions,
            "metrics_enabled": settings.metrics_enabled,
            "tracing_enabled": settings.tracing_enabled,
            "profiling_enabled": settings.profiling_enabled,
            "profile_output_dir": settings.profile_output_dir,
        }
        values.update(overrides)
        return cls(**values)

    def replace(self, **changes: Any) -> Runtime:
        return dataclasses.replace(self, **changes)

    @property
    def is_production(self) -> bool:
        return self.env.is_production

    @property
    def raises_piping_errors(self) -> bool:
        return self.raise_piping_errors_outside_production and self.env in (
            Environment.DEVELOPMENT,
            Environment.TESTING,
        )

    def log(self, message: str, level: LogLevel | str = LogLevel.INFO) -> None:
        level = LogLevel.from_string(level)
        getattr(self.logger, level.method_name)(message)


_default_runtime: Runtime | None = None
_default_lock = threading.Lock()


def get_default_runtime() -> Runtime:
    """Return the process-wide default runtime, building it from ``app_settings`` on first use."""
    global _default_runtime
    if _default_runtime is None:
        with _default_lock:
            if _default_runtime is None:
                _default_runtime = Runtime.from_settings()
    return _default_runtime


def set_default_runtime(runtime: Runtime | None) -> None:
    """Replace the default runtime; ``None`` rebuilds it from settings on next use."""
    global _default_runtime
    with _default_lock:
        _default_runtime = runtime
