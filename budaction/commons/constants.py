"""Constants and enumerations shared across budaction."""

from __future__ import annotations

import logging
import re
from enum import Enum


class LogLevel(str, Enum):
    """Logging levels understood by the action loggers.

    Each member maps onto the method name used on structlog loggers and onto the
    numeric level of the standard library backend.
    """

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @staticmethod
    def from_string(value: str | LogLevel) -> LogLevel:
        """Convert a level name (case-insensitive, ``warn``/``fatal`` aliases accepted) to a ``LogLevel``.

        Raises:
            ValueError: If the name does not match a known level.
        """
        if isinstance(value, LogLevel):
            return value

        name = str(value).strip().upper()
        name = {"WARN": "WARNING", "FATAL": "CRITICAL"}.get(name, name)
        try:
            return LogLevel(name)
        except ValueError:
            raise ValueError(
                f"Invalid log level: {value}. Only the following levels are allowed: "
                f"{', '.join(LogLevel.__members__)}"
            ) from None

    @property
    def method_name(self) -> str:
        return self.value.lower()

    @property
    def numeric(self) -> int:
        return getattr(logging, self.value)


class Environment(str, Enum):
    """Application environments.

    Outside production, action log lines get decorative separators and piping errors
    may be configured to raise instead of being swallowed.
    """

    PRODUCTION = "PRODUCTION"
    DEVELOPMENT = "DEVELOPMENT"
    TESTING = "TESTING"

    @staticmethod
    def from_string(value: str | Environment) -> Environment:
        """Convert a string such as ``dev``, ``testing`` or ``production`` to an ``Environment``.

        Raises:
            ValueError: If the string does not match any valid environment.
        """
        if isinstance(value, Environment):
            return value

        matches = re.findall(r"(?i)\b(dev|prod|test)(elop|elopment|uction|ing|er)?\b", str(value))

        env = matches[0][0].lower() if len(matches) else ""
        if env == "dev":
            return Environment.DEVELOPMENT
        elif env == "prod":
            return Environment.PRODUCTION
        elif env == "test":
            return Environment.TESTING
        raise ValueError(
            f"Invalid environment: {value}. Only the following environments are allowed: "
            f"{', '.join(Environment.__members__)}"
        )

    @property
    def is_production(self) -> bool:
        return self is Environment.PRODUCTION


class Outcome(str, Enum):
    """Tri-state classification of a finished run."""

    SUCCESS = "success"
    FAILURE = "failure"
    EXCEPTION = "exception"


class Direction(str, Enum):
    """Direction of a declared contract field."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class MessageKind(str, Enum):
    """Channels a message rule can belong to."""

    SUCCESS = "success"
    ERROR = "error"


class CallbackEvent(str, Enum):
    """Lifecycle events that user callbacks can subscribe to."""

    ON_SUCCESS = "on_success"
    ON_ERROR = "on_error"
    ON_FAILURE = "on_failure"
    ON_EXCEPTION = "on_exception"


class HookKind(str, Enum):
    """Hooks wrapping the body of an action."""

    BEFORE = "before"
    AFTER = "after"
    AROUND = "around"


DEFAULT_ERROR_MESSAGE = "Something went wrong"
DEFAULT_SUCCESS_MESSAGE = "Action completed successfully"
DEFAULT_FAILURE_MESSAGE = "Execution was halted"

ANONYMOUS_ACTION_NAME = "Anonymous Action"

FILTERED_PLACEHOLDER = "[FILTERED]"
LOG_CONTEXT_MAX_LENGTH = 150
LOG_TRUNCATION_SUFFIX = "…<truncated>…"
LOG_SEPARATOR = "\n------\n"

# Names that collide with the action or result surface and cannot be declared as fields.
RESERVED_FIELD_NAMES = frozenset(
    {
        "action",
        "action_name",
        "additional_execution_context",
        "call",
        "call_or_raise",
        "default_error",
        "default_success",
        "done",
        "elapsed_ms",
        "elapsed_time",
        "error",
        "error_result",
        "exception",
        "execute",
        "expose",
        "fail",
        "failure",
        "finalized",
        "hoist_errors",
        "inputs",
        "is_exception",
        "is_failure",
        "log",
        "log_calls",
        "log_errors",
        "message",
        "messages",
        "ok",
        "ok_result",
        "outcome",
        "outputs",
        "profile",
        "raised",
        "result",
        "run",
        "run_or_raise",
        "runtime",
        "set_execution_context",
        "success",
    }
)
