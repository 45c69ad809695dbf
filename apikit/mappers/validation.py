"""Typed filter and validation rules applied to record field sets.

Rules are plain frozen dataclasses tagged by ``kind``. Filters run first and
transform values; validation rules then check the filtered values. Any rule
other than ``Required`` accepts an empty value (None or ``""``).
"""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Mapping
from dataclasses import dataclass
import re
from typing import Any
from typing import ClassVar
from typing import Literal
from typing import Union

ValueType = Literal["int", "float", "bool", "str"]

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_UUID_PATTERN = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")
_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off", ""})


@dataclass(frozen=True)
class Trim:
    kind: ClassVar[str] = "trim"


@dataclass(frozen=True)
class Lowercase:
    kind: ClassVar[str] = "lowercase"


@dataclass(frozen=True)
class Uppercase:
    kind: ClassVar[str] = "uppercase"


@dataclass(frozen=True)
class Cast:
    to: ValueType
    kind: ClassVar[str] = "cast"


@dataclass(frozen=True)
class NullIfEmpty:
    kind: ClassVar[str] = "null_if_empty"


@dataclass(frozen=True)
class Required:
    kind: ClassVar[str] = "required"


@dataclass(frozen=True)
class Length:
    min: int | None = None
    max: int | None = None
    kind: ClassVar[str] = "length"

    def __post_init__(self) -> None:
        if self.min is None and self.max is None:
            raise ValueError("Length needs at least one bound")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("Length min must not exceed max")


@dataclass(frozen=True)
class Pattern:
    regex: str
    kind: ClassVar[str] = "pattern"


@dataclass(frozen=True)
class TypeOf:
    type: ValueType
    kind: ClassVar[str] = "type"


@dataclass(frozen=True)
class Email:
    kind: ClassVar[str] = "email"


@dataclass(frozen=True)
class OneOf:
    values: tuple[Any, ...]
    kind: ClassVar[str] = "one_of"


@dataclass(frozen=True)
class UUIDFormat:
    kind: ClassVar[str] = "uuid"


Filter = Union[Trim, Lowercase, Uppercase, Cast, NullIfEmpty]
Rule = Union[Required, Length, Pattern, TypeOf, Email, OneOf, UUIDFormat]
FilterRules = tuple[tuple[str, Filter], ...]
ValidationRules = tuple[tuple[str, Rule], ...]


def is_empty(value: Any) -> bool:
    return value is None or value == ""


def _cast(value: Any, to: ValueType) -> Any:
    if value is None:
        return None
    try:
        if to == "int":
            if isinstance(value, str):
                value = value.strip()
            return int(value)
        if to == "float":
            return float(value)
        if to == "bool":
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in _TRUE_STRINGS:
                    return True
                if lowered in _FALSE_STRINGS:
                    return False
                return value
            return bool(value)
        return str(value)
    except (TypeError, ValueError):
        # Left as-is so a TypeOf rule can report it.
        return value


def _apply_filter(rule: Filter, value: Any) -> Any:
    if isinstance(rule, Cast):
        return _cast(value, rule.to)
    if isinstance(rule, NullIfEmpty):
        return None if value == "" else value
    if not isinstance(value, str):
        return value
    if isinstance(rule, Trim):
        return value.strip()
    if isinstance(rule, Lowercase):
        return value.lower()
    if isinstance(rule, Uppercase):
        return value.upper()
    raise TypeError(f"Unsupported filter rule: {rule!r}")


def _matches_type(value: Any, expected: ValueType) -> bool:
    if expected == "bool":
        return isinstance(value, bool)
    if expected == "int":
        return isinstance(value, int) and not isinstance(value, bool)
    if expected == "float":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    return isinstance(value, str)


def _check_length(rule: Length, value: Any) -> bool:
    size = len(value) if isinstance(value, (str, list, tuple, dict)) else len(str(value))
    if rule.min is not None and size < rule.min:
        return False
    return rule.max is None or size <= rule.max


_CHECKS: dict[str, Callable[[Any, Any], bool]] = {
    Length.kind: _check_length,
    Pattern.kind: lambda rule, value: re.fullmatch(rule.regex, str(value)) is not None,
    TypeOf.kind: lambda rule, value: _matches_type(value, rule.type),
    Email.kind: lambda _, value: isinstance(value, str) and _EMAIL_PATTERN.match(value) is not None,
    OneOf.kind: lambda rule, value: value in rule.values,
    UUIDFormat.kind: lambda _, value: isinstance(value, str) and _UUID_PATTERN.match(value) is not None,
}


class ValidationEngine:
    """Applies filter rules then validation rules to a field mapping."""

    def filter(self, data: Mapping[str, Any], rules: FilterRules) -> dict[str, Any]:
        """Return a filtered copy of ``data``; fields missing from ``data`` are skipped."""
        filtered = dict(data)
        for name, rule in rules:
            if name in filtered:
                filtered[name] = _apply_filter(rule, filtered[name])
        return filtered

    def validate(self, data: Mapping[str, Any], rules: ValidationRules) -> dict[str, str]:
        """Return ``field -> rule kind`` for the first violated rule of each field."""
        errors: dict[str, str] = {}
        for name, rule in rules:
            if name in errors:
                continue
            if not self.check(rule, name, data):
                errors[name] = rule.kind
        return errors

    def check(self, rule: Rule, name: str, data: Mapping[str, Any]) -> bool:
        value = data.get(name)
        if isinstance(rule, Required):
            return name in data and not is_empty(value)
        if is_empty(value):
            return True
        check = _CHECKS.get(rule.kind)
        if check is None:
            raise TypeError(f"Unsupported validation rule: {rule!r}")
        return check(rule, value)

    def run(
        self,
        data: Mapping[str, Any],
        rules: ValidationRules,
        filters: FilterRules,
    ) -> dict[str, Any] | None:
        """Filter then validate; the filtered data when valid, otherwise None."""
        filtered = self.filter(data, filters)
        if self.validate(filtered, rules):
            return None
        return filtered


def describe_violation(name: str, kind: str) -> str:
    """Human readable message for a ``field -> rule kind`` violation."""
    messages = {
        Required.kind: "The {name} field is required.",
        Length.kind: "The {name} field has an invalid length.",
        Pattern.kind: "The {name} field has an invalid format.",
        TypeOf.kind: "The {name} field has an invalid type.",
        Email.kind: "The {name} field must be a valid email address.",
        OneOf.kind: "The {name} field has an unsupported value.",
        UUIDFormat.kind: "The {name} field must be a valid UUID.",
    }
    return messages.get(kind, "The {name} field is invalid.").format(name=name)
