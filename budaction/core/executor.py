"""Execution pipeline for a single action run.

A run moves through these stages:

1. inbound contract: preprocess, defaults, validation;
2. around hooks wrapping before hooks, the body and after hooks;
3. outbound contract: defaults and validation of exposed fields;
4. ``on_success`` callbacks, or on a raised ``Failure``/exception the ``on_error``
   callbacks followed by ``on_failure``/``on_exception`` (plus the global hook);
5. result assembly with resolved messages, then logging, tracing and metrics.

Nothing raised during a run escapes ``Executor.run``; it is captured in the result.
"""

from __future__ import annotations

import contextlib
import functools
from collections.abc import Callable
from typing import Any

from opentelemetry.trace import Status, StatusCode

from ..commons.constants import LOG_SEPARATOR, CallbackEvent, Direction, HookKind, LogLevel, MessageKind, Outcome
from ..commons.exceptions import (
    DefaultAssignmentError,
    EarlyCompletion,
    Failure,
    InboundValidationError,
    OutboundValidationError,
)
from ..commons.observability import get_tracer, record_action_completed
from . import nesting
from .callables import call_with_desired_shape
from .contract import evaluate_default
from .handlers import HookEntry, call_handler, invoke
from .log_formatting import action_label, format_fields
from .messages import MessageResolver, exception_message
from .piping import piping_error
from .profiling import profiled
from .reporting import build_exception_context
from .result import Result


class Executor:
    """Runs one action instance to completion and builds its ``Result``."""

    def __init__(self, action: Any) -> None:
        self.action = action
        self.action_cls = type(action)
        self.context = action._context
        self.runtime = action.runtime
        self.handlers = self.action_cls._handlers

    def run(self) -> Result:
        with nesting.tracking(self.action):
            with self._span() as span:
                self._log_before()
                started = self.runtime.clock()
                self._execute()
                self.context.elapsed_time = self.runtime.clock() - started
                result = self._build_result()
                self._annotate_span(span, result)
                self._log_after(result)
        self._emit_metrics(result)
        return result

    # ============ Lifecycle ============

    def _execute(self) -> None:
        try:
            self._validate_inbound()
            try:
                self._run_with_hooks()
            except EarlyCompletion as signal:
                self.context.early_completion_message = signal.success_message
            self._finalize_outbound()
        except Exception as exc:
            self._handle_exception(exc)
        else:
            self._dispatch(CallbackEvent.ON_SUCCESS, None)

    def _validate_inbound(self) -> None:
        values, errors = self.context.contract.validate(self.context.provided, Direction.INBOUND, self.action)
        self.context.inputs = values
        self.context.validated = True
        if errors:
            raise InboundValidationError(errors)

    def _run_with_hooks(self) -> None:
        chain: Callable[[], None] = self._run_before_body_after
        # first declared around hook (the ancestor's) ends up outermost
        for hook in reversed(self.handlers.in_declaration_order(HookKind.AROUND)):
            chain = functools.partial(self._call_around, hook, chain)
        chain()

    def _call_around(self, hook: HookEntry, chain: Callable[[], None]) -> None:
        hook.handler.value.__get__(self.action, self.action_cls)(chain)

    def _run_before_body_after(self) -> None:
        for hook in self.handlers.in_declaration_order(HookKind.BEFORE):
            call_handler(hook.handler, self.action)

        with profiled(self.action, self.action_cls.profile):
            self.action.execute()

        for hook in self.handlers.in_declaration_order(HookKind.AFTER):
            call_handler(hook.handler, self.action)

    def _finalize_outbound(self) -> None:
        values, errors = self.context.contract.validate(self.context.outputs, Direction.OUTBOUND, self.action)
        self.context.outputs.update(values)
        if errors:
            raise OutboundValidationError(errors)

    def _handle_exception(self, exc: Exception) -> None:
        self.context.exception = exc
        self._apply_outbound_defaults()

        self._dispatch(CallbackEvent.ON_ERROR, exc)
        if isinstance(exc, Failure):
            self._dispatch(CallbackEvent.ON_FAILURE, exc)
        else:
            self._dispatch(CallbackEvent.ON_EXCEPTION, exc)
            self._trigger_global_hook(exc)

    def _apply_outbound_defaults(self) -> None:
        for spec in self.context.contract.outbound:
            if not spec.has_default or self.context.outputs.get(spec.name) is not None:
                continue
            try:
                self.context.outputs[spec.name] = evaluate_default(spec, self.action)
            except Exception as e:
                piping_error(
                    "applying outbound defaults",
                    DefaultAssignmentError(f"Error applying default for field '{spec.name}': {e}"),
                    action=self.action,
                )

    def _dispatch(self, event: CallbackEvent, exc: Exception | None) -> None:
        if event is CallbackEvent.ON_SUCCESS:
            entries = self.handlers.for_event(event)
        else:
            entries = self.handlers.in_declaration_order(event)
        for entry in entries:
            if entry.matches(self.action, exc):
                invoke(entry.handler, self.action, exc, operation=f"executing {event.value} callback")

    def _trigger_global_hook(self, exc: Exception) -> None:
        try:
            message = f"Handled exception ({type(exc).__name__}): {exception_message(exc)}"
            if not self.runtime.is_production:
                message = f"{'#' * 10} {message} {'#' * 10}"
            self.action.log(message)

            if self.runtime.on_exception is None:
                return
            call_with_desired_shape(
                self.runtime.on_exception,
                args=(exc,),
                kwargs={"action": self.action, "context": build_exception_context(self.action)},
            )
        except Exception as e:
            piping_error("executing on_exception hooks", e, action=self.action)

    # ============ Result ============

    def _build_result(self) -> Result:
        raised = self.context.exception
        success_message: str | None = None
        error_message: str | None = None

        if raised is None:
            success_message = self.context.early_completion_message or MessageResolver(
                self.handlers, MessageKind.SUCCESS, self.action, None
            ).resolve()
        else:
            error_message = self._user_provided_error(raised) or MessageResolver(
                self.handlers, MessageKind.ERROR, self.action, raised
            ).resolve()
            if self.context.error_prefix:
                error_message = f"{self.context.error_prefix.rstrip()} {error_message.lstrip()}"

        return Result(
            action=self.action,
            outputs=self.context.declared_outputs(),
            known_fields=frozenset(self.context.provided) | frozenset(self.context.contract.names(Direction.INBOUND)),
            raised=raised,
            exception=self._visible_exception(raised),
            elapsed_time=self.context.elapsed_time or 0.0,
            success=success_message,
            error=error_message,
        )

    @staticmethod
    def _user_provided_error(raised: BaseException) -> str | None:
        if not isinstance(raised, Failure) or raised.default_message:
            return None
        # re-raised from a nested bang call
        if raised.__cause__ is not None:
            return None
        return raised.message or None

    def _visible_exception(self, raised: BaseException | None) -> BaseException | None:
        if self.context.hoisted_exception is not None:
            return self.context.hoisted_exception
        if isinstance(raised, Failure) and raised.__cause__ is None and raised.source is None:
            return None
        return raised

    # ============ Observability ============

    def _span(self) -> Any:
        if not self.runtime.tracing_enabled:
            return contextlib.nullcontext()
        return get_tracer().start_as_current_span(
            "budaction.call",
            attributes={"budaction.resource": action_label(self.action_cls), "budaction.depth": nesting.depth()},
            record_exception=False,
            set_status_on_exception=False,
        )

    def _annotate_span(self, span: Any, result: Result) -> None:
        if span is None:
            return
        try:
            span.set_attribute("budaction.outcome", result.outcome.value)
            if result.outcome is Outcome.EXCEPTION and result.raised is not None:
                span.record_exception(result.raised)
            if not result.ok:
                span.set_status(Status(StatusCode.ERROR, result.error))
        except Exception as e:
            piping_error("updating OTel span", e, action=self.action)

    def _call_log_level(self) -> LogLevel | None:
        level = self.action_cls.log_calls
        if level is RUNTIME_DEFAULT:
            level = self.runtime.log_calls_level
        return LogLevel.from_string(level) if level else None

    def _log_before(self) -> None:
        try:
            level = self._call_log_level()
            if level is None:
                return
            inputs = format_fields(self.context.declared_inputs(), self.context.contract.sensitive_names())
            self.action.log(f"About to execute with: {inputs}", level=level)
        except Exception as e:
            piping_error("logging before hook", e, action=self.action)

    def _log_after(self, result: Result) -> None:
        try:
            self._write_after_log(result)
        except Exception as e:
            piping_error("logging after hook", e, action=self.action)

    def _write_after_log(self, result: Result) -> None:
        level = self._call_log_level()
        if level is None and not result.ok and self.action_cls.log_errors:
            level = LogLevel.from_string(self.action_cls.log_errors)
        if level is None:
            return

        outputs = format_fields(self.context.declared_outputs(), self.context.contract.sensitive_names())
        self.action.log(
            f"Execution completed (with outcome: {result.outcome.value}) in {result.elapsed_ms} milliseconds. "
            f"Set: {outputs}",
            level=level,
        )
        if not self.runtime.is_production and nesting.depth() == 1:
            self.runtime.log(LOG_SEPARATOR, level=level)

    def _emit_metrics(self, result: Result) -> None:
        resource = action_label(self.action_cls)
        if self.runtime.metrics_enabled:
            record_action_completed(resource, result.outcome.value, result.elapsed_time)
        if self.runtime.emit_metrics is None:
            return
        try:
            call_with_desired_shape(self.runtime.emit_metrics, kwargs={"resource": resource, "result": result})
        except Exception as e:
            piping_error("calling emit_metrics hook", e, action=self.action)


class _RuntimeDefault:
    def __repr__(self) -> str:
        return "RUNTIME_DEFAULT"


# ``log_calls`` value meaning "use the runtime's log_calls_level"
RUNTIME_DEFAULT: Any = _RuntimeDefault()
