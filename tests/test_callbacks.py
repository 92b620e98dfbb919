"""Tests for lifecycle callbacks and the global exception hook."""

from __future__ import annotations

from typing import Any

import pytest

from budaction import Action, Outcome, expects, exposes, on_error, on_exception, on_failure, on_success
from budaction.core.runtime import Runtime


class TestDispatch:
    """Tests for which callbacks fire for which outcome."""

    def test_on_failure_with_condition(self) -> None:
        """A failure callback fires when its condition matches the failure."""
        handled: list[str] = []

        class Halts(Action):
            def execute(self) -> None:
                self.fail("bad")

            @on_failure(if_=lambda e: e.message == "bad")
            def note(self, exception: Exception) -> None:
                handled.append(exception.message)

            @on_failure(if_=lambda e: e.message == "other")
            def never(self) -> None:
                handled.append("never")

        result = Halts.call()

        assert handled == ["bad"]
        assert result.error == "bad"
        assert result.outcome is Outcome.FAILURE
        assert result.exception is None

    def test_failure_and_exception_classification(self) -> None:
        """on_error fires for both, on_failure and on_exception only for their outcome."""
        events: list[str] = []

        class Classify(Action):
            mode = expects(type=str)

            def execute(self) -> None:
                if self.mode == "halt":
                    self.fail("no")
                raise RuntimeError("boom")

            @on_error
            def err(self) -> None:
                events.append("error")

            @on_failure
            def halted(self) -> None:
                events.append("failure")

            @on_exception
            def raised(self, exception: Exception) -> None:
                events.append(f"exception:{exception}")

        Classify.call(mode="halt")
        assert events == ["error", "failure"]

        events.clear()
        Classify.call(mode="raise")
        assert events == ["error", "exception:boom"]

    def test_on_success_not_called_on_failure(self) -> None:
        events: list[str] = []

        class Halts(Action):
            def execute(self) -> None:
                self.fail()

            @on_success
            def ok(self) -> None:
                events.append("success")

        Halts.call()

        assert events == []

    def test_keyword_callback(self) -> None:
        seen: list[Exception] = []

        class Keyword(Action):
            def execute(self) -> None:
                raise KeyError("k")

            @on_exception(if_=KeyError)
            def record(self, *, exception: Exception) -> None:
                seen.append(exception)

        Keyword.call()

        assert isinstance(seen[0], KeyError)

    def test_callbacks_can_expose(self) -> None:
        class Tracked(Action):
            attempts = exposes(allow_nil=True)

            def execute(self) -> None:
                raise RuntimeError("boom")

            @on_error
            def count(self) -> None:
                self.expose(attempts=1)

        assert Tracked.call().attempts == 1


class TestOrdering:
    """Tests for callback ordering, including inheritance."""

    def test_on_success_runs_newest_first(self) -> None:
        order: list[str] = []

        class Ordered(Action):
            @on_success
            def first(self) -> None:
                order.append("first")

            @on_success
            def second(self) -> None:
                order.append("second")

        Ordered.call()

        assert order == ["second", "first"]

    def test_error_callbacks_run_in_declaration_order(self) -> None:
        order: list[str] = []

        class Parent(Action):
            @on_error
            def parent_error(self) -> None:
                order.append("parent")

        class Child(Parent):
            @on_error
            def child_error(self) -> None:
                order.append("child")

            def execute(self) -> None:
                raise RuntimeError("boom")

        Child.call()

        assert order == ["parent", "child"]

    def test_inherited_on_success_runs_child_first(self) -> None:
        order: list[str] = []

        class Parent(Action):
            @on_success
            def parent_success(self) -> None:
                order.append("parent")

        class Child(Parent):
            @on_success
            def child_success(self) -> None:
                order.append("child")

        Child.call()

        assert order == ["child", "parent"]


class TestIsolation:
    """Tests for errors raised inside callbacks."""

    def test_raising_callback_does_not_stop_others(self, log_messages) -> None:
        """A failing on_success callback is logged and the remaining ones still run."""
        order: list[str] = []

        class Fragile(Action):
            @on_success
            def later(self) -> None:
                order.append("later")

            @on_success
            def broken(self) -> None:
                raise RuntimeError("handler broke")

        result = Fragile.call()

        assert result.ok
        assert order == ["later"]
        warnings = log_messages("warning")
        assert any("!! IGNORING EXCEPTION RAISED WHILE EXECUTING ON_SUCCESS CALLBACK !!" in w for w in warnings)
        assert any("* Message: handler broke" in w for w in warnings)

    def test_raising_callback_raises_when_configured(self, default_runtime: Runtime) -> None:
        """Piping errors are re-raised outside production when the runtime asks for it."""

        class Fragile(Action):
            @on_success
            def broken(self) -> None:
                raise RuntimeError("handler broke")

        strict = default_runtime.replace(raise_piping_errors_outside_production=True)

        with pytest.raises(RuntimeError, match="handler broke"):
            Fragile.run({}, runtime=strict)


class TestGlobalHook:
    """Tests for the runtime's on_exception hook."""

    @staticmethod
    def _action() -> type[Action]:
        class Explodes(Action):
            token = expects(sensitive=True)
            count = expects(type=int)
            total = exposes(allow_nil=True)

            def execute(self) -> None:
                self.set_execution_context(request_id="r-1", inputs="ignored")
                raise RuntimeError("boom")

        return Explodes

    def test_hook_receives_exception_action_and_context(self, default_runtime: Runtime) -> None:
        received: dict[str, Any] = {}

        def hook(exception: Exception, *, action: Action, context: dict[str, Any]) -> None:
            received.update(exception=exception, action=action, context=context)

        runtime = default_runtime.replace(on_exception=hook)
        result = self._action().run({"token": "secret", "count": 2}, runtime=runtime)

        assert received["exception"] is result.exception
        assert received["action"] is result.action
        assert received["context"] == {
            "inputs": {"token": "[FILTERED]", "count": 2},
            "outputs": {"total": None},
            "request_id": "r-1",
        }

    def test_hook_with_exception_only(self, default_runtime: Runtime) -> None:
        seen: list[Exception] = []
        runtime = default_runtime.replace(on_exception=lambda exception: seen.append(exception))

        self._action().run({"token": "secret", "count": 2}, runtime=runtime)

        assert len(seen) == 1
        assert str(seen[0]) == "boom"

    def test_retry_command_and_current_attributes(self, default_runtime: Runtime) -> None:
        contexts: list[dict[str, Any]] = []
        runtime = default_runtime.replace(
            on_exception=lambda exception, context: contexts.append(context),
            include_retry_command_in_exceptions=True,
            additional_context=lambda: {"user": "u-1"},
        )

        self._action().run({"token": "secret", "count": 2}, runtime=runtime)

        assert contexts[0]["retry_command"] == "Explodes.call(token='[FILTERED]', count=2)"
        assert contexts[0]["current_attributes"] == {"user": "u-1"}

    def test_additional_execution_context(self, default_runtime: Runtime) -> None:
        contexts: list[dict[str, Any]] = []

        class Detailed(Action):
            def additional_execution_context(self) -> dict[str, Any]:
                return {"shard": 3}

            def execute(self) -> None:
                raise RuntimeError("boom")

        runtime = default_runtime.replace(on_exception=lambda exception, context: contexts.append(context))
        Detailed.run({}, runtime=runtime)

        assert contexts[0]["shard"] == 3

    def test_hook_not_called_for_failures(self, default_runtime: Runtime) -> None:
        seen: list[Exception] = []

        class Halts(Action):
            def execute(self) -> None:
                self.fail("nope")

        Halts.run({}, runtime=default_runtime.replace(on_exception=seen.append))

        assert seen == []

    def test_handled_exception_banner(self, log_messages) -> None:
        self._action().call(token="secret", count=2)

        assert "[Explodes] ########## Handled exception (RuntimeError): boom ##########" in log_messages("info")

    def test_raising_hook_is_isolated(self, default_runtime: Runtime, log_messages) -> None:
        def hook(exception: Exception) -> None:
            raise ValueError("hook broke")

        runtime = default_runtime.replace(on_exception=hook)
        result = self._action().run({"token": "secret", "count": 2}, runtime=runtime)

        assert result.error == "Something went wrong"
        assert any("EXECUTING ON_EXCEPTION HOOKS" in message for message in log_messages("warning"))
