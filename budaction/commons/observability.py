"""Observability infrastructure for budaction.

Structured logging through structlog, Prometheus metrics for action runs and
OpenTelemetry spans around each run. Without an OpenTelemetry SDK installed the
tracer is a no-op.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from opentelemetry import trace
from prometheus_client import Counter, Histogram

from budaction.__about__ import __version__

from .config import AppConfig, app_settings


ACTION_CALLS = Counter(
    "budaction_calls_total",
    "Total number of action runs",
    ["resource", "outcome"],
)

ACTION_DURATION = Histogram(
    "budaction_call_duration_seconds",
    "Action run duration in seconds",
    ["resource", "outcome"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 5, 10, 30, 60],
)

TRACER_NAME = "budaction"


def configure_structlog(settings: AppConfig | None = None) -> None:
    """Configure structlog for structured logging.

    Console rendering is used outside production, JSON rendering in production.

    Args:
        settings: Configuration to read env and log level from, defaults to ``app_settings``.
    """
    settings = settings or app_settings
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.debug:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=settings.log_level.numeric,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger.

    Args:
        name: Logger name (optional, defaults to module name).

    Returns:
        structlog logger instance.
    """
    return structlog.get_logger(name)


def get_tracer() -> trace.Tracer:
    """Return the tracer used for action spans."""
    return trace.get_tracer(TRACER_NAME, __version__.split("@")[-1])


def current_request_attributes() -> dict[str, Any]:
    """Return the ambient request-scoped attributes bound through structlog contextvars."""
    return dict(structlog.contextvars.get_contextvars())


def record_action_completed(resource: str, outcome: str, duration_seconds: float) -> None:
    """Record an action run with its outcome and duration."""
    ACTION_CALLS.labels(resource=resource, outcome=outcome).inc()
    ACTION_DURATION.labels(resource=resource, outcome=outcome).observe(duration_seconds)
