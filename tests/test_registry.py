"""Tests for the action registry and the action factory."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from budaction import Action, ActionRegistry, action_registry, build_action, register_action, success


def _entry_point(name: str, loaded: object = None, error: Exception | None = None) -> MagicMock:
    ep = MagicMock()
    ep.name = name
    if error is not None:
        ep.load.side_effect = error
    else:
        ep.load.return_value = loaded
    return ep


class TestActionRegistry:
    """Tests for ActionRegistry."""

    def test_singleton(self) -> None:
        """Test that registry is a singleton."""
        assert ActionRegistry() is ActionRegistry()
        assert ActionRegistry() is action_registry

    def test_register_bare_decorator(self) -> None:
        @action_registry.register
        class SendWelcome(Action):
            pass

        assert action_registry.get("SendWelcome") is SendWelcome
        assert action_registry.has("SendWelcome")

    def test_register_with_name(self) -> None:
        @register_action(name="billing.charge")
        class Charge(Action):
            pass

        assert action_registry.get("billing.charge") is Charge
        assert action_registry.list_actions() == ["billing.charge"]

    def test_run_by_name(self) -> None:
        @action_registry.register
        class Hello(Action):
            messages = (success("hi"),)

        assert action_registry.run("Hello").success == "hi"

    def test_get_unknown(self) -> None:
        with pytest.raises(KeyError, match="Unknown action: missing"):
            action_registry.get("missing")

    def test_rejects_non_actions(self) -> None:
        with pytest.raises(ValueError, match="must inherit from Action"):
            action_registry.register(dict, name="not_an_action")  # type: ignore[arg-type]

    def test_name_conflict(self) -> None:
        class First(Action):
            pass

        class Second(Action):
            pass

        action_registry.register(First, name="shared")
        action_registry.register(First, name="shared")

        with pytest.raises(ValueError, match="already registered"):
            action_registry.register(Second, name="shared")

    def test_reset(self) -> None:
        @action_registry.register
        class Temporary(Action):
            pass

        action_registry.reset()

        assert action_registry.list_actions() == []

    def test_discover_actions(self) -> None:
        """Entry points are loaded once; broken ones are skipped."""

        class Plugin(Action):
            pass

        entry_points = [
            _entry_point("plugins.ok", Plugin),
            _entry_point("plugins.broken", error=ImportError("no module")),
            _entry_point("plugins.wrong", object),
        ]

        with patch("budaction.registry.importlib.metadata.entry_points", return_value=entry_points) as discover:
            action_registry.discover_actions()
            action_registry.discover_actions()

        discover.assert_called_once_with(group="budaction.actions")
        assert action_registry.list_actions() == ["plugins.ok"]
        assert action_registry.get("plugins.ok") is Plugin


class TestBuildAction:
    """Tests for build_action."""

    def test_builds_contract_and_body(self) -> None:
        Double = build_action(
            "Double",
            lambda action: action.expose(doubled=action.value * 2),
            expects={"value": {"type": int}},
            exposes=["doubled"],
        )

        assert issubclass(Double, Action)
        assert Double.call(value=2).doubled == 4
        assert Double.call(value="2").exception.message == "Value is not a int"

    def test_register(self) -> None:
        Named = build_action("reports.daily", register=True)

        assert action_registry.get("reports.daily") is Named
        assert Named.__name__ == "reports_daily"

    def test_anonymous(self, log_messages) -> None:
        Anonymous = build_action(log_calls="info")

        Anonymous.call()

        assert log_messages("info")[0] == "[Anonymous Action] About to execute with: {}"

    def test_anonymous_cannot_register(self) -> None:
        with pytest.raises(ValueError, match="cannot be registered"):
            build_action(register=True)

    def test_hooks_callbacks_and_messages(self) -> None:
        calls: list[str] = []

        def wrap(action: Action, chain) -> None:  # noqa: ANN001
            calls.append("around")
            chain()

        Built = build_action(
            "Built",
            lambda action: calls.append("body"),
            before=[lambda action: calls.append("before")],
            after=[lambda action: calls.append("after")],
            around=[wrap],
            on_success=[lambda action: calls.append("success")],
            messages=[success("built ok")],
        )

        result = Built.call()

        assert result.success == "built ok"
        assert calls == ["around", "before", "body", "after", "success"]

    def test_error_callbacks(self) -> None:
        seen: list[str] = []

        def boom(action: Action) -> None:
            raise RuntimeError("boom")

        Failing = build_action(
            "Failing",
            boom,
            on_error=[lambda action, exception: seen.append(f"error:{exception}")],
            on_exception=[lambda action: seen.append("exception")],
        )

        assert Failing.call().is_exception
        assert seen == ["error:boom", "exception"]

    def test_subclassing_a_base(self) -> None:
        class Base(Action):
            messages = (success("from base"),)

        Child = build_action("Child", base=Base)

        assert Child.call().success == "from base"
