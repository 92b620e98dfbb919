"""Declared input and output fields of an action.

Fields are declared as class attributes::

    class CreateUser(Action):
        email = expects(type=str, format=r"@")
        age = expects(type=int, numericality={"greater_than": 17}, default=18)
        user_id = exposes(type=int)

Each declaration becomes an immutable ``FieldSpec`` when the class is created, and
the class's ``Contract`` is its parent's contract extended with those specs.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..commons.constants import RESERVED_FIELD_NAMES, Direction
from ..commons.exceptions import DefaultAssignmentError, DuplicateFieldError, PreprocessingError, ReservedAttributeError
from .callables import MethodRef
from .validators import ValidationErrors, build_validators, find_record, run_validators


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@dataclass(frozen=True)
class FieldSpec:
    """One declared input or output field."""

    name: str
    direction: Direction
    validators: tuple[tuple[str, dict[str, Any]], ...] = ()
    default: Any = MISSING
    allow_blank: bool = False
    allow_nil: bool = False
    preprocess: Callable[[Any], Any] | None = None
    sensitive: bool = False
    on: str | None = None
    path: str | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    @property
    def is_subfield(self) -> bool:
        return self.on is not None

    @property
    def type_constraint(self) -> tuple[Any, ...] | None:
        for name, config in self.validators:
            if name == "type":
                return config["with"]
        return None

    @property
    def model(self) -> dict[str, Any] | None:
        for name, config in self.validators:
            if name == "model":
                return config
        return None


class FieldDeclaration:
    """Descriptor returned by ``expects``/``exposes``; reads the field on a running action."""

    def __init__(self, direction: Direction, options: dict[str, Any], validations: dict[str, Any]) -> None:
        self.direction = direction
        self.options = options
        self.validations = validations
        self.spec: FieldSpec | None = None

    def bind(self, name: str) -> FieldSpec:
        """Build the ``FieldSpec`` for the attribute ``name``.

        Raises:
            ReservedAttributeError: If ``name`` is reserved by the action surface.
            ValueError: If the validation configuration is invalid.
        """
        if name in RESERVED_FIELD_NAMES or name.startswith("_"):
            raise ReservedAttributeError(name)

        on = self.options.get("on")
        path = self.options.get("path") or (name if on else None)
        if on is not None and "." in on:
            raise ValueError(f"on: must name a top-level field, got '{on}'")

        self.spec = FieldSpec(
            name=name,
            direction=self.direction,
            validators=build_validators(
                path or name,
                self.validations,
                allow_blank=self.options.get("allow_blank", False),
                allow_nil=self.options.get("allow_nil", False),
            ),
            default=self.options.get("default", MISSING),
            allow_blank=self.options.get("allow_blank", False),
            allow_nil=self.options.get("allow_nil", False),
            preprocess=self.options.get("preprocess"),
            sensitive=self.options.get("sensitive", False),
            on=on,
            path=path,
        )
        return self.spec

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance._read_field(self.spec)

    def __set__(self, instance: Any, value: Any) -> None:
        if self.direction is Direction.OUTBOUND:
            raise AttributeError(f"Use expose({self.name}=...) to set outputs")
        raise AttributeError(f"Input '{self.name}' is read-only")


class ModelReader:
    """Read-only attribute returning the record looked up from a ``*_id`` field."""

    def __init__(self, spec: FieldSpec) -> None:
        self.spec = spec

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        cache = instance.__dict__.setdefault("_model_records", {})
        if self.spec.name not in cache:
            value = instance._read_field(self.spec)
            cache[self.spec.name] = None if value is None else find_record(self.spec.model, value)
        return cache[self.spec.name]


def expects(
    *,
    default: Any = MISSING,
    allow_blank: bool = False,
    allow_nil: bool = False,
    preprocess: Callable[[Any], Any] | None = None,
    sensitive: bool = False,
    on: str | None = None,
    path: str | None = None,
    **validations: Any,
) -> Any:
    """Declare an expected input.

    Args:
        default: Literal, zero-arg callable or ``method_ref`` applied when the value is missing or None.
        allow_blank: Skip validation for blank values (and do not imply presence).
        allow_nil: Skip validation for None (and do not imply presence).
        preprocess: Callable transforming the provided value before validation.
        sensitive: Redact the value in logs and exception reports.
        on: Validate a value nested inside another expected field.
        path: Dotted path inside ``on`` (defaults to the attribute name).
        **validations: ``type``, ``presence``, ``numericality``, ``inclusion``, ``exclusion``,
            ``length``, ``format``, ``validate`` or ``model``.
    """
    options = dict(
        default=default,
        allow_blank=allow_blank,
        allow_nil=allow_nil,
        preprocess=preprocess,
        sensitive=sensitive,
        on=on,
        path=path,
    )
    if path is not None and on is None:
        raise ValueError("path: requires on:")
    return FieldDeclaration(Direction.INBOUND, options, validations)


def exposes(
    *,
    default: Any = MISSING,
    allow_blank: bool = False,
    allow_nil: bool = False,
    sensitive: bool = False,
    **validations: Any,
) -> Any:
    """Declare an exposed output. Accepts the same validations as ``expects``."""
    options = dict(default=default, allow_blank=allow_blank, allow_nil=allow_nil, sensitive=sensitive)
    return FieldDeclaration(Direction.OUTBOUND, options, validations)


def extract_path(parent: Any, path: str) -> Any:
    """Read a dotted ``path`` from a mapping or an object."""
    value = parent
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


def _assign_path(parent: Mapping[str, Any], path: str, value: Any) -> dict[str, Any]:
    """Return a copy of ``parent`` with ``path`` set to ``value``; nested mappings are copied."""
    head, _, rest = path.partition(".")
    updated = dict(parent)
    if rest:
        child = updated.get(head)
        updated[head] = _assign_path(child if isinstance(child, Mapping) else {}, rest, value)
    else:
        updated[head] = value
    return updated


def evaluate_default(spec: FieldSpec, action: Any) -> Any:
    default = spec.default
    if isinstance(default, MethodRef):
        return getattr(action, default.name)()
    if callable(default) and not isinstance(default, type):
        return default()
    if isinstance(default, (list, dict, set)):
        return copy.copy(default)
    return default


@dataclass(frozen=True)
class Contract:
    """Ordered, immutable set of field specs for one action class."""

    fields: tuple[FieldSpec, ...] = field(default=())

    def extend(self, specs: Iterable[FieldSpec]) -> Contract:
        """Return a new contract with ``specs`` appended.

        Raises:
            DuplicateFieldError: If a name is already declared (in either direction).
            ValueError: If a subfield refers to an unknown parent field.
        """
        specs = tuple(specs)
        seen = {spec.name for spec in self.fields}
        duplicates: list[str] = []
        for spec in specs:
            if spec.name in seen:
                duplicates.append(spec.name)
            seen.add(spec.name)
        if duplicates:
            raise DuplicateFieldError(duplicates)

        combined = self.fields + specs
        inbound = {spec.name for spec in combined if spec.direction is Direction.INBOUND and not spec.is_subfield}
        for spec in specs:
            if spec.is_subfield and spec.on not in inbound:
                raise ValueError(f"expects does not support subfield '{spec.name}' on '{spec.on}' without a corresponding expects")
        return Contract(combined)

    def get(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def for_direction(self, direction: Direction) -> tuple[FieldSpec, ...]:
        return tuple(spec for spec in self.fields if spec.direction is direction)

    @property
    def inbound(self) -> tuple[FieldSpec, ...]:
        return self.for_direction(Direction.INBOUND)

    @property
    def outbound(self) -> tuple[FieldSpec, ...]:
        return self.for_direction(Direction.OUTBOUND)

    def names(self, direction: Direction) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.for_direction(direction) if not spec.is_subfield)

    def sensitive_names(self) -> frozenset[str]:
        return frozenset(spec.name for spec in self.fields if spec.sensitive)

    def validate(
        self, raw: Mapping[str, Any], direction: Direction, action: Any = None
    ) -> tuple[dict[str, Any], ValidationErrors]:
        """Preprocess, default and validate ``raw`` against the fields of ``direction``.

        ``raw`` is never mutated. Returns the coerced values of the declared top-level
        fields and the collected validation errors.

        Raises:
            PreprocessingError: If a ``preprocess`` callable raises.
            DefaultAssignmentError: If a callable default raises.
        """
        specs = self.for_direction(direction)
        values = {spec.name: raw.get(spec.name) for spec in specs if not spec.is_subfield}

        for spec in specs:
            if spec.is_subfield:
                continue
            if spec.preprocess is not None and values[spec.name] is not None:
                try:
                    values[spec.name] = spec.preprocess(values[spec.name])
                except Exception as e:
                    raise PreprocessingError(f"Error preprocessing field '{spec.name}': {e}") from e
            if spec.has_default and values[spec.name] is None:
                try:
                    values[spec.name] = evaluate_default(spec, action)
                except Exception as e:
                    raise DefaultAssignmentError(f"Error applying default for field '{spec.name}': {e}") from e

        for spec in specs:
            if spec.is_subfield:
                self._prepare_subfield(spec, values, action)

        errors = ValidationErrors()
        for spec in specs:
            value = extract_path(values.get(spec.on), spec.path) if spec.is_subfield else values[spec.name]
            run_validators(
                spec.path if spec.is_subfield else spec.name,
                value,
                spec.validators,
                errors,
                action,
                allow_blank=spec.allow_blank,
                allow_nil=spec.allow_nil,
            )
        return values, errors

    @staticmethod
    def _prepare_subfield(spec: FieldSpec, values: dict[str, Any], action: Any) -> None:
        parent = values.get(spec.on)
        value = extract_path(parent, spec.path)
        updated = value

        if spec.preprocess is not None and value is not None:
            try:
                updated = spec.preprocess(value)
            except Exception as e:
                raise PreprocessingError(f"Error preprocessing subfield '{spec.path}' on '{spec.on}': {e}") from e
        if spec.has_default and updated is None:
            try:
                updated = evaluate_default(spec, action)
            except Exception as e:
                raise DefaultAssignmentError(
                    f"Error applying default for subfield '{spec.path}' on '{spec.on}': {e}"
                ) from e

        # values can only be written back into mappings
        if updated is not value and isinstance(parent, Mapping):
            values[spec.on] = _assign_path(parent, spec.path, updated)
        elif updated is not value and parent is None:
            values[spec.on] = _assign_path({}, spec.path, updated)
