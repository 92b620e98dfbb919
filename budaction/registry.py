"""Action registry for lookup by name and plugin discovery.

Actions can be registered explicitly with the ``register`` decorator or discovered
through Python entry points in the ``budaction.actions`` group, so host
applications can run actions by name without importing them directly.
"""

from __future__ import annotations

import importlib.metadata
import threading
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from .core.action import Action
from .core.result import Result
from .core.runtime import Runtime


logger = structlog.get_logger()

ENTRY_POINT_GROUP = "budaction.actions"


class ActionRegistry:
    """Central registry of action classes keyed by name.

    Usage:
        from budaction import action_registry

        @action_registry.register
        class SendWelcomeEmail(Action):
            ...

        # or under an explicit name
        action_registry.register(SendWelcomeEmail, name="emails.welcome")

        result = action_registry.run("emails.welcome", {"user_id": 1})
    """

    _instance: ActionRegistry | None = None
    _lock: threading.Lock = threading.Lock()

    # Instance attributes - declared here for mypy
    _actions: dict[str, type[Action]]
    _loaded: bool
    _registry_lock: threading.Lock

    def __new__(cls) -> ActionRegistry:
        """Thread-safe singleton pattern."""
        if cls._instance is None:
            with cls._lock:
                # Double-check locking pattern
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._actions = {}
                    cls._instance._loaded = False
                    cls._instance._registry_lock = threading.Lock()
        return cls._instance

    def discover_actions(self) -> None:
        """Load every action class advertised in the ``budaction.actions`` entry point group.

        Entry points that fail to load are logged and skipped.
        """
        if self._loaded:
            return

        for ep in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP):
            try:
                self._register_action_class(ep.name, ep.load())
                logger.info("action_registered", action_name=ep.name)
            except Exception as e:
                logger.error("action_registration_failed", action_name=ep.name, error=str(e))

        self._loaded = True
        logger.info("action_discovery_complete", count=len(self._actions))

    def _register_action_class(self, name: str, action_class: Any) -> None:
        """Register ``action_class`` under ``name``.

        Raises:
            ValueError: If ``action_class`` is not an ``Action`` subclass, or ``name``
                is already taken by a different class.
        """
        if not isinstance(action_class, type) or not issubclass(action_class, Action):
            raise ValueError(f"Action {name} must inherit from Action")

        with self._registry_lock:
            existing = self._actions.get(name)
            if existing is not None and existing is not action_class:
                raise ValueError(f"Action name '{name}' is already registered to {existing.__qualname__}")
            self._actions[name] = action_class

    def register(self, action_class: type[Action] | None = None, *, name: str | None = None) -> Any:
        """Register an action class, usable as a bare or parameterized decorator.

        Usage:
            @action_registry.register
            class MyAction(Action): ...

            @action_registry.register(name="billing.charge")
            class Charge(Action): ...

        Args:
            action_class: The action class to register
            name: Registry key, defaults to the action's name

        Returns:
            The same action class (for decorator chaining)
        """

        def decorator(cls: type[Action]) -> type[Action]:
            key = name or cls.__action_name__
            if not key:
                raise ValueError("Anonymous actions must be registered with an explicit name")
            self._register_action_class(key, cls)
            logger.debug("action_registered", action_name=key)
            return cls

        return decorator(action_class) if action_class is not None else decorator

    def get(self, name: str) -> type[Action]:
        """Get an action class by name.

        Raises:
            KeyError: If no action is registered under ``name``
        """
        action_class = self._actions.get(name)
        if action_class is None:
            raise KeyError(f"Unknown action: {name}")
        return action_class

    def has(self, name: str) -> bool:
        return name in self._actions

    def list_actions(self) -> list[str]:
        """List all registered action names."""
        return list(self._actions.keys())

    def run(self, name: str, inputs: Mapping[str, Any] | None = None, runtime: Runtime | None = None) -> Result:
        """Run the action registered under ``name``.

        Raises:
            KeyError: If no action is registered under ``name``
        """
        return self.get(name).run(inputs, runtime)

    def reset(self) -> None:
        """Reset the registry (for testing).

        Clears all registered actions and resets the loaded flag.
        Thread-safe.
        """
        with self._registry_lock:
            self._actions.clear()
            self._loaded = False


# Global registry instance
action_registry = ActionRegistry()


def register_action(name: str | None = None) -> Callable[[type[Action]], type[Action]]:
    """Decorator registering an action class with the global registry."""
    return action_registry.register(name=name)
