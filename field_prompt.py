"""
Field Prompt
============

Per-field interactive state machine. A prompt is built from a FieldSpec and
the field's ExistingValue, receives normalized key names (``up``, ``enter``,
``tab``...) plus printable characters, and eventually produces exactly one
Outcome. Rendering is delegated to prompt_render and never mutates state.
"""

from __future__ import annotations

from typing import Any

from env_fields import ExistingValue, FieldFormatError, FieldSpec, FieldType
from prompt_models import ErrorKind, Mode, Outcome, Slot, SlotKind, ToolbarAction
from prompt_render import Theme, render_prompt
from toolbar import Toolbar

DEFAULT_MAX_DISPLAY_LENGTH = 40

MSG_ENTER_VALUE = "Please enter a value"
MSG_ENTER_NUMBER = "Please enter a number"
MSG_VALID_NUMBER = "Please enter a valid number"


def compute_slots(spec: FieldSpec, existing: ExistingValue) -> list[Slot]:
    """Ordered selectable slots for a field; recomputed instead of cached."""
    slots: list[Slot] = []
    if existing.is_invalid:
        slots.append(Slot(SlotKind.INVALID_EXISTING, raw=existing.raw))

    if spec.type in (FieldType.BOOLEAN, FieldType.ENUM):
        choices: list[Any] = [True, False] if spec.type == FieldType.BOOLEAN else list(spec.values)
        for choice in choices:
            slots.append(
                Slot(
                    SlotKind.CHOICE,
                    value=choice,
                    raw=spec.stringify(choice),
                    is_current=existing.is_ok and existing.value == choice,
                    is_default=spec.has_default and spec.default == choice,
                )
            )
        return slots

    current_is_default = False
    if existing.is_ok:
        current_is_default = spec.has_default and existing.value == spec.default
        slots.append(
            Slot(
                SlotKind.CURRENT,
                value=existing.value,
                raw=existing.raw,
                is_current=True,
                is_default=current_is_default,
            )
        )
    if spec.has_default and not current_is_default:
        slots.append(
            Slot(
                SlotKind.DEFAULT,
                value=spec.default,
                raw=spec.stringify(spec.default),
                is_default=True,
            )
        )
    slots.append(Slot(SlotKind.CUSTOM))
    return slots


class FieldPrompt:
    """Interactive state for one field; discarded once it has an outcome."""

    def __init__(
        self,
        spec: FieldSpec,
        existing: ExistingValue | None = None,
        has_previous: bool = False,
        max_display_length: int = DEFAULT_MAX_DISPLAY_LENGTH,
        theme: Theme | None = None,
    ):
        self.spec = spec
        self.existing = existing or ExistingValue.absent()
        self.max_display_length = max_display_length
        self.theme = theme or Theme()
        self.toolbar = Toolbar(has_previous=has_previous, is_secret=spec.secret)

        self.mode = Mode.SELECTING
        self.input_buffer = ""
        self.secret_revealed = False
        self.validation_error: str | None = None
        self.error_kind: ErrorKind | None = None
        self.outcome: Outcome | None = None
        self._typeahead = ""

        self.cursor = self._initial_cursor()
        self.value = self.slots[self.cursor].value
        if self._starts_typing():
            self.mode = Mode.TYPING

    # -- slot helpers -------------------------------------------------------

    @property
    def slots(self) -> list[Slot]:
        return compute_slots(self.spec, self.existing)

    @property
    def current_slot(self) -> Slot:
        return self.slots[self.cursor]

    @property
    def has_previous(self) -> bool:
        return self.toolbar.has_previous

    @property
    def is_choice_field(self) -> bool:
        return self.spec.type in (FieldType.BOOLEAN, FieldType.ENUM)

    def _find(self, predicate) -> int | None:
        for index, slot in enumerate(self.slots):
            if predicate(slot):
                return index
        return None

    def _custom_index(self) -> int | None:
        return self._find(lambda slot: slot.kind == SlotKind.CUSTOM)

    def _starts_typing(self) -> bool:
        return (
            not self.is_choice_field
            and not self.existing.is_ok
            and not self.spec.has_default
        )

    def _initial_cursor(self) -> int:
        found = self._find(lambda slot: slot.is_current)
        if found is None:
            found = self._find(lambda slot: slot.is_default)
        if found is None and self.spec.type == FieldType.BOOLEAN:
            found = self._find(lambda slot: slot.kind == SlotKind.CHOICE and slot.value is False)
        if found is None:
            found = self._find(lambda slot: slot.kind != SlotKind.INVALID_EXISTING)
        return found if found is not None else 0

    def _only_custom(self) -> bool:
        slots = self.slots
        return len(slots) == 1 and slots[0].kind == SlotKind.CUSTOM

    # -- key handling -------------------------------------------------------

    def handle_key(self, key: str, character: str | None = None) -> Outcome | None:
        """
        Feed one key to the prompt.

        ``key`` is a normalized key name; ``character`` carries the printable
        text for character keys. Returns the Outcome once the prompt finishes.
        Keys received after an outcome are ignored.
        """
        if self.outcome is not None:
            return None
        if key == "ctrl+c":
            return self.cancel()
        if key == "ctrl+r":
            self._clear_error()
            self.toggle_secret()
            return None

        if key == "tab" or self.toolbar.open:
            self._clear_error()
            action = self.toolbar.handle_key(key)
            if action is not None:
                return self._activate(action)
            return None

        self._clear_error()
        if key == "enter":
            return self._commit()
        if key in ("up", "down"):
            self._move(-1 if key == "up" else 1)
        elif key == "escape":
            self._leave_typing()
        elif key == "backspace":
            if self.mode == Mode.TYPING:
                self.input_buffer = self.input_buffer[:-1]
        elif character and character.isprintable():
            self._type(character)
        return None

    def cancel(self) -> Outcome:
        if self.outcome is None:
            self.finalize(Outcome.cancel())
        return self.outcome

    def toggle_secret(self) -> None:
        if self.spec.secret:
            self.secret_revealed = not self.secret_revealed

    def _clear_error(self) -> None:
        self.validation_error = None
        self.error_kind = None

    def _select(self, index: int) -> None:
        self.cursor = index
        self.value = self.slots[index].value

    def _leave_typing(self) -> None:
        if self.mode == Mode.TYPING:
            self.mode = Mode.SELECTING
            self.input_buffer = ""
            self.value = self.current_slot.value

    def _move(self, delta: int) -> None:
        self._typeahead = ""
        if self._only_custom():
            return
        self._leave_typing()
        self._select((self.cursor + delta) % len(self.slots))

    def _type(self, character: str) -> None:
        if self.is_choice_field:
            self._type_ahead(character)
            return
        if self.mode == Mode.SELECTING:
            custom = self._custom_index()
            if custom is None:
                return
            self._select(custom)
            self.mode = Mode.TYPING
            self.input_buffer = character
            return
        self.input_buffer += character

    def _type_ahead(self, character: str) -> None:
        for prefix in (self._typeahead + character, character):
            found = self._find(
                lambda slot: slot.kind == SlotKind.CHOICE
                and (slot.raw or "").lower().startswith(prefix.lower())
            )
            if found is not None:
                self._typeahead = prefix
                self._select(found)
                return
        self._typeahead = ""

    def _activate(self, action: ToolbarAction) -> Outcome | None:
        if action == ToolbarAction.SKIP:
            return self.finalize(Outcome.skip())
        if action == ToolbarAction.PREVIOUS and self.has_previous:
            return self.finalize(Outcome.previous())
        if action == ToolbarAction.TOGGLE_SECRET:
            self.toggle_secret()
        return None

    # -- commit -------------------------------------------------------------

    def _reject(self, kind: ErrorKind, message: str) -> None:
        self.error_kind = kind
        self.validation_error = message
        return None

    def _missing_message(self) -> str:
        return MSG_ENTER_NUMBER if self.spec.type == FieldType.NUMBER else MSG_ENTER_VALUE

    def _commit(self) -> Outcome | None:
        slot = self.current_slot
        if slot.kind == SlotKind.INVALID_EXISTING:
            return self._reject(
                ErrorKind.EXISTING_VALUE_INVALID,
                self.existing.error or "Stored value is invalid",
            )

        if self.mode == Mode.TYPING:
            text = self.input_buffer
            if not text.strip():
                if self.spec.required or self.spec.type == FieldType.NUMBER:
                    return self._reject(ErrorKind.MISSING_REQUIRED_VALUE, self._missing_message())
                value = None
            else:
                try:
                    value = self.spec.parse(text)
                except FieldFormatError as exc:
                    message = MSG_VALID_NUMBER if self.spec.type == FieldType.NUMBER else str(exc)
                    return self._reject(ErrorKind.FORMAT_ERROR, message)
        elif slot.kind == SlotKind.CUSTOM:
            self.mode = Mode.TYPING
            self.input_buffer = ""
            return self._reject(ErrorKind.MISSING_REQUIRED_VALUE, self._missing_message())
        else:
            value = slot.value

        if value is not None:
            problem = self.spec.check(value)
            if problem:
                return self._reject(ErrorKind.VALIDATION_ERROR, problem)

        self.value = value
        return self.finalize(Outcome.commit(value))

    def finalize(self, outcome: Outcome) -> Outcome:
        self.outcome = outcome
        self.secret_revealed = False
        self.toolbar.close()
        return outcome

    # -- rendering ----------------------------------------------------------

    def render(self) -> str:
        return render_prompt(self)

    @property
    def rendered_line_count(self) -> int:
        return len(self.render().split("\n"))
