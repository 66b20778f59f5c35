"""Shared models for the field prompt, toolbar and session."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class SlotKind(str, Enum):
    """Where a selectable slot's value comes from."""

    INVALID_EXISTING = "invalid_existing"
    CURRENT = "current"
    DEFAULT = "default"
    CUSTOM = "custom"
    CHOICE = "choice"


@dataclass(frozen=True)
class Slot:
    """One selectable row of a field prompt."""

    kind: SlotKind
    value: Any = None
    raw: str | None = None
    is_current: bool = False
    is_default: bool = False

    @property
    def annotations(self) -> list[str]:
        labels: list[str] = []
        if self.kind == SlotKind.INVALID_EXISTING:
            labels.append("invalid")
        if self.is_current:
            labels.append("current")
        if self.is_default:
            labels.append("default")
        return labels


class Mode(str, Enum):
    SELECTING = "selecting"
    TYPING = "typing"


class ErrorKind(str, Enum):
    """Why a commit attempt was rejected."""

    MISSING_REQUIRED_VALUE = "missing_required_value"
    FORMAT_ERROR = "format_error"
    VALIDATION_ERROR = "validation_error"
    EXISTING_VALUE_INVALID = "existing_value_invalid"


class OutcomeKind(str, Enum):
    COMMIT = "commit"
    SKIP = "skip"
    PREVIOUS = "previous"
    CANCEL = "cancel"


@dataclass(frozen=True)
class Outcome:
    """Terminal result of a field prompt."""

    kind: OutcomeKind
    value: Any = None

    @classmethod
    def commit(cls, value: Any) -> "Outcome":
        return cls(OutcomeKind.COMMIT, value)

    @classmethod
    def skip(cls) -> "Outcome":
        return cls(OutcomeKind.SKIP)

    @classmethod
    def previous(cls) -> "Outcome":
        return cls(OutcomeKind.PREVIOUS)

    @classmethod
    def cancel(cls) -> "Outcome":
        return cls(OutcomeKind.CANCEL)


class ToolbarAction(str, Enum):
    """Options offered by the toolbar, in display order."""

    SKIP = "skip"
    PREVIOUS = "previous"
    TOGGLE_SECRET = "toggle_secret"
    CLOSE = "close"
