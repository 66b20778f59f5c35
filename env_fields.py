"""
Field Model
===========

Normalized description of one environment variable (FieldSpec), the value
already stored for it (ExistingValue), and the intrinsic parse/stringify
rules shared by prompts, the session and the resolver.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Pattern, Union

TRUE_STRINGS: tuple[str, ...] = ("true", "1", "yes", "on", "y")
FALSE_STRINGS: tuple[str, ...] = ("false", "0", "no", "off", "n")

SECRET_MASK_CHAR = "•"

SecretPattern = Union[str, Pattern[str]]

DEFAULT_SECRET_PATTERNS: tuple[SecretPattern, ...] = (
    re.compile(r"password", re.IGNORECASE),
    re.compile(r"passphrase", re.IGNORECASE),
    re.compile(r"secret", re.IGNORECASE),
    re.compile(r"token", re.IGNORECASE),
    re.compile(r"api[_-]?key", re.IGNORECASE),
    re.compile(r"client[_-]?secret", re.IGNORECASE),
    re.compile(r"private[_-]?key", re.IGNORECASE),
    re.compile(r"connection(?:[_-]?string)?", re.IGNORECASE),
    re.compile(r"database(?:[_-]?url)?", re.IGNORECASE),
    re.compile(r"access[_-]?key", re.IGNORECASE),
    re.compile(r"credential", re.IGNORECASE),
)

_INT_LITERAL = re.compile(r"^[+-]?\d+$")

Validator = Callable[[Any], Union[str, None]]


class FieldType(str, Enum):
    """Native type of a field's value."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"


class FieldFormatError(ValueError):
    """Raised when raw text cannot be parsed as the field's native type."""


class ParseStatus(str, Enum):
    OK = "ok"
    ERROR = "error"
    ABSENT = "absent"


def parse_number(raw: str) -> int | float:
    """Parse an int when the text is an integer literal, otherwise a float."""
    text = raw.strip()
    if not text:
        raise FieldFormatError("Please enter a number")
    if _INT_LITERAL.match(text):
        return int(text)
    try:
        parsed = float(text)
    except ValueError:
        raise FieldFormatError(f'"{raw}" is not a valid number') from None
    if not math.isfinite(parsed):
        raise FieldFormatError(f'"{raw}" is not a valid number')
    return parsed


def parse_boolean(raw: str) -> bool:
    cleaned = raw.strip().lower()
    if cleaned in TRUE_STRINGS:
        return True
    if cleaned in FALSE_STRINGS:
        return False
    raise FieldFormatError(
        f'"{raw}" is not a valid boolean. Use: '
        f"{'/'.join(TRUE_STRINGS)} or {'/'.join(FALSE_STRINGS)}"
    )


def format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class FieldSpec:
    """Immutable description of one field, created once before prompting."""

    key: str
    type: FieldType
    required: bool = True
    default: Any = None
    description: str | None = None
    secret: bool = False
    values: tuple[str, ...] = field(default_factory=tuple)
    validate: Validator | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.type == FieldType.ENUM and not self.values:
            raise ValueError(f"Enum field {self.key} needs at least one allowed value")
        if self.secret and self.type != FieldType.STRING:
            raise ValueError(f"Only string fields can be secret ({self.key} is {self.type.value})")
        if self.type == FieldType.ENUM and self.default is not None and self.default not in self.values:
            raise ValueError(f"Default {self.default!r} is not an allowed value of {self.key}")

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def parse(self, raw: str) -> Any:
        """Intrinsic format check: raw text -> native value."""
        if self.type == FieldType.NUMBER:
            return parse_number(raw)
        if self.type == FieldType.BOOLEAN:
            return parse_boolean(raw)
        if self.type == FieldType.ENUM:
            if raw in self.values:
                return raw
            raise FieldFormatError(f'"{raw}" is not one of: {", ".join(self.values)}')
        return raw

    def stringify(self, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if self.type == FieldType.NUMBER and isinstance(value, (int, float)):
            return format_number(value)
        return str(value)

    def check(self, value: Any) -> str | None:
        """Run the field's validate predicate; never raises."""
        if self.validate is None:
            return None
        try:
            return self.validate(value)
        except Exception as exc:  # validators are opaque; surface as a message
            return str(exc) or exc.__class__.__name__


@dataclass(frozen=True)
class ExistingValue:
    """The value already stored for a field, parsed once per prompt."""

    raw: str | None
    status: ParseStatus
    value: Any = None
    error: str | None = None

    @classmethod
    def absent(cls) -> "ExistingValue":
        return cls(raw=None, status=ParseStatus.ABSENT)

    @classmethod
    def from_raw(cls, spec: FieldSpec, raw: str | None) -> "ExistingValue":
        if raw is None or not raw.strip():
            return cls.absent()
        try:
            value = spec.parse(raw)
        except FieldFormatError as exc:
            return cls(raw=raw, status=ParseStatus.ERROR, error=str(exc))
        return cls(raw=raw, status=ParseStatus.OK, value=value)

    @property
    def is_ok(self) -> bool:
        return self.status == ParseStatus.OK

    @property
    def is_invalid(self) -> bool:
        return self.status == ParseStatus.ERROR


def _matches(text: str | None, pattern: SecretPattern) -> bool:
    if not text:
        return False
    if isinstance(pattern, str):
        needle = pattern.strip().lower()
        return bool(needle) and needle in text.lower()
    return pattern.search(text) is not None


def is_secret_key(
    key: str,
    description: str | None,
    patterns: Iterable[SecretPattern],
) -> bool:
    """Return True when the key or description matches any secret pattern."""
    for pattern in patterns:
        if _matches(key, pattern) or _matches(description, pattern):
            return True
    return False


def mask_secret_value(value: str, mask_char: str = SECRET_MASK_CHAR) -> str:
    return mask_char * len(value)


def truncate_value(value: str, limit: int) -> str:
    if limit <= 0 or len(value) <= limit:
        return value
    return value[:limit] + "..."
