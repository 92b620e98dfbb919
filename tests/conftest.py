"""Pytest configuration and fixtures for budaction tests."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from unittest.mock import MagicMock

import pytest

from budaction.commons.constants import Environment
from budaction.core.runtime import Runtime, set_default_runtime
from budaction.registry import action_registry


# ============ Runtime Fixtures ============


@pytest.fixture(autouse=True)
def default_runtime() -> Iterator[Runtime]:
    """Quiet, deterministic default runtime with a mocked logger."""
    runtime = Runtime(
        logger=MagicMock(),
        env=Environment.TESTING,
        log_calls_level=None,
        metrics_enabled=False,
        tracing_enabled=False,
        additional_context=None,
    )
    set_default_runtime(runtime)
    yield runtime
    set_default_runtime(None)


@pytest.fixture
def logger(default_runtime: Runtime) -> MagicMock:
    return default_runtime.logger


@pytest.fixture
def log_messages(logger: MagicMock) -> Callable[..., list[str]]:
    """Return a function listing the messages sent to the mocked logger, optionally for one level."""

    def _messages(level: str | None = None) -> list[str]:
        return [args[0] for name, args, _ in logger.mock_calls if level is None or name == level]

    return _messages


# ============ Registry Fixtures ============


@pytest.fixture(autouse=True)
def reset_registry() -> Iterator[None]:
    """Reset the global action registry around each test."""
    action_registry.reset()
    yield
    action_registry.reset()
