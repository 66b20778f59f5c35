"""
Prompt Rendering
================

Pure functions that turn prompt and session state into Rich markup strings.
Nothing here touches the terminal; the Textual host displays the markup and
the session counts its lines.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from rich.markup import escape

from env_fields import FieldType, mask_secret_value, truncate_value
from prompt_models import Mode, OutcomeKind, SlotKind
from toolbar import Toolbar

if TYPE_CHECKING:
    from field_prompt import FieldPrompt

S_BAR = "│"
S_BAR_END = "└"
S_BAR_START = "┌"
S_STEP_ACTIVE = "◆"
S_STEP_ERROR = "▲"
S_STEP_SUBMIT = "✔"
S_STEP_SKIP = "⏭"
S_STEP_PREVIOUS = "⏮"
S_STEP_CANCEL = "✕"
S_RADIO_ACTIVE = "●"
S_RADIO_INACTIVE = "○"
S_CURSOR = "█"

DEFAULT_THEME_COLOR = "magenta"


@dataclass(frozen=True)
class Theme:
    """Colour names used when building markup."""

    primary: str = DEFAULT_THEME_COLOR
    subtle: str = "grey50"
    warn: str = "yellow"
    error: str = "red"

    @classmethod
    def from_color(cls, color: str | None) -> "Theme":
        return cls(primary=(color or DEFAULT_THEME_COLOR).strip() or DEFAULT_THEME_COLOR)

    def paint(self, style: str, text: str) -> str:
        return f"[{style}]{text}[/]"

    def primary_text(self, text: str) -> str:
        return self.paint(self.primary, text)

    def subtle_text(self, text: str) -> str:
        return self.paint(self.subtle, text)

    def warn_text(self, text: str) -> str:
        return self.paint(self.warn, text)

    def error_text(self, text: str) -> str:
        return self.paint(self.error, text)


def display_value(text: str, secret: bool, revealed: bool, limit: int) -> str:
    """Mask, flatten, truncate and escape a stored or typed value for display."""
    shown = text.replace("\r", "").replace("\n", "\\n")
    if secret and not revealed:
        shown = mask_secret_value(shown)
    return escape(truncate_value(shown, limit))


def _key_text(key: str) -> str:
    return f"[bold]{escape(key)}[/bold]"


def _prompt_value(prompt: "FieldPrompt", text: str) -> str:
    return display_value(text, prompt.spec.secret, prompt.secret_revealed, prompt.max_display_length)


def _base_hint(prompt: "FieldPrompt") -> str:
    if prompt.spec.type == FieldType.NUMBER:
        return "Enter a number"
    if prompt.spec.type == FieldType.STRING:
        return "Enter a value"
    return "Use arrow keys to choose"


def render_footer(prompt: "FieldPrompt") -> str:
    theme = prompt.theme
    if prompt.validation_error:
        return theme.warn_text(escape(prompt.validation_error))
    toolbar = prompt.toolbar
    if toolbar.open:
        labels = []
        for index, action in enumerate(toolbar.options):
            label = Toolbar.label(action, prompt.secret_revealed)
            if index == toolbar.cursor:
                labels.append(theme.primary_text(label))
            else:
                labels.append(theme.subtle_text(label))
        return theme.subtle_text(" / ").join(labels)
    return theme.subtle_text(f"{_base_hint(prompt)} or tab for options")


def _input_text(prompt: "FieldPrompt") -> str:
    return _prompt_value(prompt, prompt.input_buffer) + S_CURSOR


def render_slot(prompt: "FieldPrompt", index: int) -> str:
    theme = prompt.theme
    slot = prompt.slots[index]
    selected = index == prompt.cursor
    dim = prompt.toolbar.open and not prompt.validation_error
    circle = S_RADIO_ACTIVE if selected else S_RADIO_INACTIVE
    circle = theme.primary_text(circle) if selected and not dim else f"[dim]{circle}[/dim]"

    if slot.kind == SlotKind.CUSTOM:
        if prompt.mode == Mode.TYPING:
            text = _input_text(prompt)
        else:
            text = "Other" if selected else theme.subtle_text("Other")
    else:
        text = _prompt_value(prompt, slot.raw or "")
        if slot.kind == SlotKind.INVALID_EXISTING:
            text = f"[strike]{text}[/strike]"
        if not selected:
            text = theme.subtle_text(text)
        if slot.annotations:
            text += " " + theme.subtle_text(f"({', '.join(slot.annotations)})")

    if dim:
        text = f"[dim]{text}[/dim]"
    return f"{circle} {text}"


def render_active(prompt: "FieldPrompt") -> str:
    theme = prompt.theme
    if prompt.validation_error:
        symbol = theme.warn_text(S_STEP_ERROR)
        bar, bar_end = theme.warn_text(S_BAR), theme.warn_text(S_BAR_END)
    else:
        symbol = theme.primary_text(S_STEP_ACTIVE)
        bar, bar_end = theme.primary_text(S_BAR), theme.primary_text(S_BAR_END)

    header = f"{symbol}  {_key_text(prompt.spec.key)}"
    if prompt.spec.description:
        header += " " + theme.subtle_text(escape(" ".join(prompt.spec.description.split())))
    lines = [header]

    only_custom = len(prompt.slots) == 1 and prompt.slots[0].kind == SlotKind.CUSTOM
    if only_custom:
        lines.append(f"{bar}  {_input_text(prompt)}")
    else:
        lines.extend(f"{bar}  {render_slot(prompt, index)}" for index in range(len(prompt.slots)))

    lines.append(f"{bar_end}  {render_footer(prompt)}")
    return "\n".join(lines)


def render_finalized(prompt: "FieldPrompt") -> str:
    """Single-line summary of a prompt that produced an outcome."""
    theme = prompt.theme
    outcome = prompt.outcome
    key = _key_text(prompt.spec.key)
    if outcome.kind == OutcomeKind.COMMIT:
        text = _prompt_value(prompt, prompt.spec.stringify(outcome.value))
        return f"{theme.primary_text(S_STEP_SUBMIT)}  {key}{theme.subtle_text('=')}{text}"
    if outcome.kind == OutcomeKind.SKIP:
        return f"[dim]{theme.primary_text(S_STEP_SKIP)}[/dim]  {theme.subtle_text(key)}"
    if outcome.kind == OutcomeKind.PREVIOUS:
        return f"[dim]{theme.primary_text(S_STEP_PREVIOUS)}[/dim]  {theme.subtle_text(key)}"
    return f"{theme.error_text(S_STEP_CANCEL)}  {theme.subtle_text(key)}"


def render_prompt(prompt: "FieldPrompt") -> str:
    if prompt.outcome is not None:
        return render_finalized(prompt)
    return render_active(prompt)


# Session chrome


def render_header(location: str, theme: Theme) -> str:
    return f"{theme.subtle_text(S_BAR_START)}  [bold]ask-env[/bold]  {theme.subtle_text(escape(location))}"


def render_separator(theme: Theme) -> str:
    return theme.subtle_text(S_BAR)


def render_complete(theme: Theme) -> str:
    return f"{theme.subtle_text(S_BAR_END)}  Setup complete"


def render_cancelled(theme: Theme) -> str:
    return f"{theme.subtle_text(S_BAR_END)}  {theme.error_text('Setup cancelled.')}"


def render_error(message: str, theme: Theme) -> str:
    flat = " ".join(message.split())
    return f"{theme.subtle_text(S_BAR_END)}  {theme.error_text(escape(flat))}"


def render_failed(key: str, error: str, theme: Theme) -> str:
    return render_error(f"Failed to save {key}: {error}", theme)
