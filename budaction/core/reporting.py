"""Context handed to the global exception hook."""

from __future__ import annotations

from typing import Any

from .log_formatting import action_label, filter_sensitive
from .piping import piping_error


def retry_command(action: Any) -> str:
    """Render the call that would re-run ``action`` with the same inputs."""
    context = action._context
    inputs = filter_sensitive(context.declared_inputs(), context.contract.sensitive_names())
    args = ", ".join(f"{key}={value!r}" for key, value in inputs.items())
    return f"{action_label(type(action))}.call({args})"


def build_exception_context(action: Any) -> dict[str, Any]:
    """Build the structured context for the global exception hook.

    Extra keys from ``set_execution_context`` and ``additional_execution_context`` are
    merged at the top level, next to ``inputs`` and ``outputs``.
    """
    context = action._context
    sensitive = context.contract.sensitive_names()
    report: dict[str, Any] = {
        "inputs": filter_sensitive(context.declared_inputs(), sensitive),
        "outputs": filter_sensitive(context.declared_outputs(), sensitive),
    }

    extra = dict(context.extra)
    try:
        extra.update(action.additional_execution_context() or {})
    except Exception as e:
        piping_error("building additional execution context", e, action=action)
    report.update({k: v for k, v in filter_sensitive(extra, sensitive).items() if k not in ("inputs", "outputs")})

    runtime = action.runtime
    if runtime.include_retry_command_in_exceptions:
        report["retry_command"] = retry_command(action)

    if runtime.additional_context is not None:
        try:
            current = runtime.additional_context() or {}
        except Exception as e:
            piping_error("reading current request attributes", e, action=action)
            current = {}
        if current:
            report["current_attributes"] = dict(current)
    return report
