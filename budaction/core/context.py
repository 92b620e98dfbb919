"""Per-run execution state."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..commons.constants import Direction
from ..commons.exceptions import UnknownExposure
from .contract import Contract


RESERVED_EXTRA_KEYS = ("inputs", "outputs")


class ExecutionContext:
    """Inputs, outputs and diagnostics of one run.

    Created fresh for every run and discarded once the ``Result`` is built.
    """

    def __init__(self, contract: Contract, provided: Mapping[str, Any]) -> None:
        self.contract = contract
        self.provided = dict(provided)
        self.inputs: dict[str, Any] = {}
        self.outputs: dict[str, Any] = {}
        self.extra: dict[str, Any] = {}
        self.validated = False

        self.exception: Exception | None = None
        self.hoisted_exception: BaseException | None = None
        self.error_prefix: str | None = None
        self.early_completion_message: str | None = None
        self.elapsed_time: float | None = None

    def read_input(self, name: str) -> Any:
        source = self.inputs if self.validated else self.provided
        return source.get(name)

    def expose(self, values: Mapping[str, Any]) -> None:
        """Set outputs.

        Raises:
            UnknownExposure: If a key is not a declared output.
        """
        allowed = self.contract.names(Direction.OUTBOUND)
        for key in values:
            if key not in allowed:
                raise UnknownExposure(key)
        self.outputs.update(values)

    def set_extra(self, values: Mapping[str, Any]) -> None:
        self.extra.update({k: v for k, v in values.items() if k not in RESERVED_EXTRA_KEYS})

    def declared_inputs(self) -> dict[str, Any]:
        """Provided (or validated) values of the declared top-level inputs."""
        source = self.inputs if self.validated else self.provided
        return {name: source.get(name) for name in self.contract.names(Direction.INBOUND) if name in source}

    def declared_outputs(self) -> dict[str, Any]:
        return {name: self.outputs.get(name) for name in self.contract.names(Direction.OUTBOUND)}
