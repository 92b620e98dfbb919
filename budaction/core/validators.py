"""Field validators and the per-field error collection."""

from __future__ import annotations

import numbers
import re
from collections.abc import Callable, Iterator, Mapping, Sized
from decimal import Decimal, InvalidOperation
from typing import Any

from .callables import MethodRef
from .piping import piping_error


UUID_PATTERN = re.compile(r"\A[0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12}\Z", re.IGNORECASE)

TYPE_TAGS = ("boolean", "uuid", "params")


def is_blank_value(value: Any) -> bool:
    """Blank means ``None``, a whitespace-only string or an empty collection. ``False`` and ``0`` are present."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (bool, numbers.Number)):
        return False
    if isinstance(value, Sized):
        return len(value) == 0
    return False


def humanize(name: str) -> str:
    if name.endswith("_id"):
        name = name[:-3]
    text = name.replace("_", " ").replace(".", " ").strip()
    return text[:1].upper() + text[1:]


class ValidationErrors:
    """Messages collected per field, in the order they were added."""

    def __init__(self) -> None:
        self._errors: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        self._errors.setdefault(field, []).append(message)

    def __getitem__(self, field: str) -> list[str]:
        return list(self._errors.get(field, []))

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __len__(self) -> int:
        return sum(len(messages) for messages in self._errors.values())

    def __iter__(self) -> Iterator[tuple[str, str]]:
        for field, messages in self._errors.items():
            for message in messages:
                yield field, message

    def to_dict(self) -> dict[str, list[str]]:
        return {field: list(messages) for field, messages in self._errors.items()}

    def full_messages(self) -> list[str]:
        return [f"{humanize(field)} {message}" for field, message in self]

    def __repr__(self) -> str:
        return f"ValidationErrors({self.to_dict()!r})"


def _resolve_option(value: Any, action: Any) -> Any:
    """Options may refer to action methods (``method_ref``) or be zero-arg callables."""
    if isinstance(value, MethodRef):
        return getattr(action, value.name)()
    if callable(value) and not isinstance(value, type):
        return value()
    return value


# ============ Type ============


def _type_label(expected: Any) -> str:
    return expected if isinstance(expected, str) else getattr(expected, "__name__", str(expected))


def _matches_type(expected: Any, value: Any, allow_blank: bool) -> bool:
    if expected == "boolean" or expected is bool:
        return isinstance(value, bool)
    if expected == "uuid":
        if not isinstance(value, str):
            return False
        if allow_blank and not value.strip():
            return True
        return bool(UUID_PATTERN.match(value))
    if expected == "params":
        return isinstance(value, Mapping)
    # bool is an int subclass, but True is not a number for contract purposes
    if isinstance(value, bool) and expected is not object:
        return False
    return isinstance(value, expected)


def validate_type(field: str, value: Any, config: dict[str, Any], action: Any) -> list[str]:
    types = config["with"]
    if any(_matches_type(expected, value, config.get("allow_blank", False)) for expected in types):
        return []
    if config.get("message"):
        return [config["message"]]
    if len(types) == 1:
        return [f"is not a {_type_label(types[0])}"]
    return [f"is not one of {', '.join(_type_label(t) for t in types)}"]


# ============ Presence ============


def validate_presence(field: str, value: Any, config: dict[str, Any], action: Any) -> list[str]:
    if is_blank_value(value):
        return [config.get("message") or "can't be blank"]
    return []


# ============ Numericality ============


_NUMERIC_CHECKS: tuple[tuple[str, Callable[[Any, Any], bool], str], ...] = (
    ("greater_than", lambda v, c: v > c, "must be greater than {count}"),
    ("greater_than_or_equal_to", lambda v, c: v >= c, "must be greater than or equal to {count}"),
    ("equal_to", lambda v, c: v == c, "must be equal to {count}"),
    ("less_than", lambda v, c: v < c, "must be less than {count}"),
    ("less_than_or_equal_to", lambda v, c: v <= c, "must be less than or equal to {count}"),
    ("other_than", lambda v, c: v != c, "must be other than {count}"),
)


def _parse_number(value: Any) -> Any:
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Number):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return Decimal(text) if text else None
        except InvalidOperation:
            return None
    return None


def validate_numericality(field: str, value: Any, config: dict[str, Any], action: Any) -> list[str]:
    number = _parse_number(value)
    if number is None:
        return [config.get("message") or "is not a number"]

    errors: list[str] = []
    if config.get("only_integer") and not isinstance(number, int):
        return [config.get("message") or "must be an integer"]

    for option, check, template in _NUMERIC_CHECKS:
        if option not in config:
            continue
        count = _resolve_option(config[option], action)
        if not check(number, count):
            errors.append(config.get("message") or template.format(count=count))

    if config.get("odd") and int(number) % 2 == 0:
        errors.append(config.get("message") or "must be odd")
    if config.get("even") and int(number) % 2 == 1:
        errors.append(config.get("message") or "must be even")
    if "in" in config:
        allowed = _resolve_option(config["in"], action)
        if number not in allowed:
            errors.append(config.get("message") or f"must be in {allowed}")
    return errors


# ============ Inclusion / exclusion ============


def validate_inclusion(field: str, value: Any, config: dict[str, Any], action: Any) -> list[str]:
    allowed = _resolve_option(config["in"], action)
    if value in allowed:
        return []
    return [config.get("message") or "is not included in the list"]


def validate_exclusion(field: str, value: Any, config: dict[str, Any], action: Any) -> list[str]:
    forbidden = _resolve_option(config["in"], action)
    if value in forbidden:
        return [config.get("message") or "is reserved"]
    return []


# ============ Length ============


def _characters(count: int) -> str:
    return "character" if count == 1 else "characters"


def validate_length(field: str, value: Any, config: dict[str, Any], action: Any) -> list[str]:
    try:
        size = len(value)
    except TypeError:
        size = len(str(value))

    errors: list[str] = []
    minimum, maximum = config.get("minimum"), config.get("maximum")
    if "in" in config:
        bounds = config["in"]
        minimum, maximum = bounds[0], bounds[-1]
    if "is" in config and size != config["is"]:
        errors.append(
            config.get("message") or f"is the wrong length (should be {config['is']} {_characters(config['is'])})"
        )
    if minimum is not None and size < minimum:
        errors.append(config.get("message") or f"is too short (minimum is {minimum} {_characters(minimum)})")
    if maximum is not None and size > maximum:
        errors.append(config.get("message") or f"is too long (maximum is {maximum} {_characters(maximum)})")
    return errors


# ============ Format ============


def validate_format(field: str, value: Any, config: dict[str, Any], action: Any) -> list[str]:
    text = str(value)
    if "with" in config and not re.search(config["with"], text):
        return [config.get("message") or "is invalid"]
    if "without" in config and re.search(config["without"], text):
        return [config.get("message") or "is invalid"]
    return []


# ============ Custom ============


def validate_custom(field: str, value: Any, config: dict[str, Any], action: Any) -> list[str]:
    check = config["with"]
    try:
        if isinstance(check, MethodRef):
            message = getattr(action, check.name)(value)
        else:
            message = check(value)
    except Exception as e:
        piping_error("applying custom validation", e, action=action)
        return [f"failed validation: {e}"]
    if message is None or message is True or message == "":
        return []
    if message is False:
        return [config.get("message") or "is invalid"]
    return [str(message)]


# ============ Model ============


def find_record(config: dict[str, Any], value: Any) -> Any:
    """Look up the record for ``value`` through the configured finder."""
    finder = config.get("finder", "find")
    if callable(finder):
        return finder(value)
    return getattr(config["with"], finder)(value)


def validate_model(field: str, value: Any, config: dict[str, Any], action: Any) -> list[str]:
    if is_blank_value(value):
        return [config.get("message") or "not found (given a blank ID)"]

    klass = config["with"]
    try:
        record = find_record(config, value)
    except LookupError:
        record = None
    except Exception as e:
        piping_error(f"looking up {getattr(klass, '__name__', klass)} record", e, action=action)
        record = None

    if record is None:
        return [config.get("message") or f"not found for class {getattr(klass, '__name__', klass)} and ID {value}"]
    return []


VALIDATORS: dict[str, Callable[[str, Any, dict[str, Any], Any], list[str]]] = {
    "presence": validate_presence,
    "type": validate_type,
    "numericality": validate_numericality,
    "inclusion": validate_inclusion,
    "exclusion": validate_exclusion,
    "length": validate_length,
    "format": validate_format,
    "validate": validate_custom,
    "model": validate_model,
}


# ============ Declaration-time normalization ============


def _normalize(name: str, field: str, config: Any) -> dict[str, Any] | None:
    if config is False or config is None:
        return None

    if name == "type":
        types = config.get("with") if isinstance(config, dict) else config
        types = tuple(types) if isinstance(types, (list, tuple)) else (types,)
        for expected in types:
            if isinstance(expected, str) and expected not in TYPE_TAGS:
                raise ValueError(f"Unknown type tag for field '{field}': {expected!r} (use one of {', '.join(TYPE_TAGS)})")
            if not isinstance(expected, (str, type)):
                raise ValueError(f"type for field '{field}' must be a class or a type tag, got {expected!r}")
        extra = config if isinstance(config, dict) else {}
        return {**extra, "with": types}

    if name in ("validate", "model") and not isinstance(config, dict):
        config = {"with": config}
    elif name in ("inclusion", "exclusion") and not isinstance(config, dict):
        config = {"in": config}
    elif name == "format" and not isinstance(config, dict):
        config = {"with": config}
    elif config is True:
        config = {}

    if not isinstance(config, dict):
        raise ValueError(f"Invalid configuration for {name} on field '{field}': {config!r}")

    if name == "model":
        if not field.endswith("_id"):
            raise ValueError(f"Model validation expects to be given a field ending in _id (given: {field})")
        if "with" not in config or config["with"] is True:
            raise ValueError(f"Model validation on field '{field}' needs the model class")
    if name in ("inclusion", "exclusion") and "in" not in config:
        raise ValueError(f"{name} on field '{field}' needs an 'in' collection")
    if name == "validate" and not (callable(config.get("with")) or isinstance(config.get("with"), MethodRef)):
        raise ValueError(f"validate on field '{field}' needs a callable")
    return dict(config)


def build_validators(
    field: str,
    validations: dict[str, Any],
    allow_blank: bool,
    allow_nil: bool,
) -> tuple[tuple[str, dict[str, Any]], ...]:
    """Normalize declared validations into an ordered ``(name, config)`` tuple.

    Presence is implied (and checked first) unless blanks or nils are allowed, presence
    is configured explicitly, or the type is boolean or params.

    Raises:
        ValueError: For unknown validators or invalid validator configuration.
    """
    unknown = [name for name in validations if name not in VALIDATORS]
    if unknown:
        raise ValueError(f"Unknown validator(s) for field '{field}': {', '.join(unknown)}")

    normalized: list[tuple[str, dict[str, Any]]] = []
    for name, config in validations.items():
        entry = _normalize(name, field, config)
        if entry is None:
            continue
        if name == "type":
            entry["allow_blank"] = allow_blank
        normalized.append((name, entry))

    types = next((config["with"] for name, config in normalized if name == "type"), ())
    implied_presence = not (
        allow_blank
        or allow_nil
        or "presence" in validations
        or any(t in ("boolean", "params") or t is bool for t in types)
    )
    if implied_presence:
        normalized.insert(0, ("presence", {}))
    else:
        normalized.sort(key=lambda item: item[0] != "presence")
    return tuple(normalized)


def run_validators(
    field: str,
    value: Any,
    validators: tuple[tuple[str, dict[str, Any]], ...],
    errors: ValidationErrors,
    action: Any,
    allow_blank: bool = False,
    allow_nil: bool = False,
) -> None:
    """Run ``validators`` for one field, adding messages to ``errors``.

    A failed presence check stops validation of that field.
    """
    if value is None and (allow_nil or allow_blank):
        return
    if allow_blank and is_blank_value(value):
        return

    for name, config in validators:
        messages = VALIDATORS[name](field, value, config, action)
        for message in messages:
            errors.add(field, message)
        if name == "presence" and messages:
            return
