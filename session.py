"""
Session Orchestrator
====================

Walks an ordered list of fields, builds one FieldPrompt per visit, waits for
the host to drive it to an Outcome, persists commits through a channel and
keeps the line bookkeeping needed to erase fields on back-navigation.

The host supplies ``run_prompt``: an async callable that receives the active
FieldPrompt and returns its Outcome. The Textual app feeds real key presses;
tests feed scripted ones.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from env_channels import EnvChannel
from env_fields import ExistingValue, FieldSpec
from field_prompt import DEFAULT_MAX_DISPLAY_LENGTH, FieldPrompt
from prompt_models import Outcome, OutcomeKind
from prompt_render import (
    Theme,
    render_cancelled,
    render_complete,
    render_error,
    render_failed,
    render_header,
    render_separator,
)
from run_logging import RunLogger

PromptRunner = Callable[[FieldPrompt], Awaitable[Outcome]]


class SessionStatus(str, Enum):
    SUCCESS = "success"
    CANCELLED = "cancelled"
    ERROR = "error"


class StoreWriteError(Exception):
    """A channel failed while persisting (or re-reading) a committed value."""

    def __init__(self, key: str | None, cause: BaseException):
        self.key = key
        self.cause = cause
        super().__init__(f"{key}: {cause}" if key else str(cause))


@dataclass
class SessionResult:
    status: SessionStatus
    values: dict[str, str] = field(default_factory=dict)
    failed_key: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == SessionStatus.SUCCESS


@dataclass
class SessionState:
    """Mutable orchestrator state; owned by the Session alone."""

    fields: list[FieldSpec]
    committed: dict[str, str] = field(default_factory=dict)
    history: list[int] = field(default_factory=list)
    index: int = 0
    snapshot: dict[str, str] = field(default_factory=dict)
    last_erased: int = 0

    @property
    def done(self) -> bool:
        return self.index >= len(self.fields)

    def latest_value(self, key: str) -> str | None:
        """Committed override first, then the last channel read; blank is absent."""
        value = self.committed.get(key)
        if value is None:
            value = self.snapshot.get(key)
        if value is None or not value.strip():
            return None
        return value


class Transcript:
    """Lines already printed above the active prompt."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def write(self, text: str) -> int:
        added = text.split("\n")
        self.lines.extend(added)
        return len(added)

    def erase(self, count: int) -> int:
        count = max(0, min(count, len(self.lines)))
        if count:
            del self.lines[-count:]
        return count

    def text(self) -> str:
        return "\n".join(self.lines)

    def __len__(self) -> int:
        return len(self.lines)


class Session:
    """Sequences prompts over ``fields`` and persists commits through ``channel``."""

    def __init__(
        self,
        fields: list[FieldSpec],
        channel: EnvChannel,
        run_prompt: PromptRunner,
        *,
        theme: Theme | None = None,
        max_display_length: int = DEFAULT_MAX_DISPLAY_LENGTH,
        run_logger: RunLogger | None = None,
        on_update: Callable[[], None] | None = None,
    ):
        keys = [spec.key for spec in fields]
        if len(set(keys)) != len(keys):
            raise ValueError("Field keys must be unique")
        self.state = SessionState(fields=list(fields))
        self.channel = channel
        self.run_prompt = run_prompt
        self.theme = theme or Theme()
        self.max_display_length = max_display_length
        self.run_logger = run_logger
        self.on_update = on_update
        self.transcript = Transcript()

    # -- helpers ------------------------------------------------------------

    def _log(self, event_type: str, message: str, key: str | None = None, **meta: Any) -> None:
        if self.run_logger is not None:
            self.run_logger.log_event(
                phase="field" if key else "session",
                event_type=event_type,
                message=message,
                key=key,
                meta=meta or None,
            )

    def _write(self, text: str) -> int:
        count = self.transcript.write(text)
        if self.on_update is not None:
            self.on_update()
        return count

    def _erase(self, count: int) -> int:
        erased = self.transcript.erase(count)
        if self.on_update is not None:
            self.on_update()
        return erased

    async def _read_channel(self, key: str | None) -> dict[str, str]:
        try:
            return dict(await asyncio.to_thread(self.channel.get))
        except Exception as exc:
            raise StoreWriteError(key, exc) from exc

    async def _persist(self, spec: FieldSpec, value: Any) -> None:
        text = spec.stringify(value)
        try:
            await asyncio.to_thread(self.channel.set, {spec.key: text})
        except Exception as exc:
            raise StoreWriteError(spec.key, exc) from exc
        self.state.snapshot = await self._read_channel(spec.key)
        self.state.committed[spec.key] = self.state.snapshot.get(spec.key, text)

    def build_prompt(self) -> FieldPrompt:
        """Fresh prompt for ``fields[index]`` seeded with its latest value."""
        state = self.state
        spec = state.fields[state.index]
        existing = ExistingValue.from_raw(spec, state.latest_value(spec.key))
        return FieldPrompt(
            spec,
            existing,
            has_previous=state.index > 0,
            max_display_length=self.max_display_length,
            theme=self.theme,
        )

    def _result(self, status: SessionStatus, **extra: Any) -> SessionResult:
        return SessionResult(status=status, values=dict(self.state.committed), **extra)

    # -- main loop ----------------------------------------------------------

    async def run(self) -> SessionResult:
        state = self.state
        location = self.channel.describe()
        self._write(render_header(location, self.theme))
        self._log("session_started", f"Prompting {len(state.fields)} field(s)", fields=len(state.fields))

        try:
            state.snapshot = await self._read_channel(None)
        except StoreWriteError as exc:
            self._write(render_error(f"Failed to read {location}: {exc.cause}", self.theme))
            self._log("store_write_failed", str(exc.cause))
            return self._result(SessionStatus.ERROR, error=str(exc.cause))

        while not state.done:
            spec = state.fields[state.index]
            added = 0
            if state.index > 0:
                added += self._write(render_separator(self.theme))

            prompt = self.build_prompt()
            outcome = await self.run_prompt(prompt)
            if prompt.outcome is None:
                prompt.finalize(outcome)
            added += self._write(prompt.render())

            if outcome.kind == OutcomeKind.CANCEL:
                self._write(render_separator(self.theme))
                self._write(render_cancelled(self.theme))
                self._log("session_cancelled", "Setup cancelled", key=spec.key)
                return self._result(SessionStatus.CANCELLED)

            if outcome.kind == OutcomeKind.PREVIOUS:
                previous_lines = state.history.pop() if state.history else 0
                state.last_erased = self._erase(added) + self._erase(previous_lines)
                state.index = max(state.index - 1, 0)
                self._log("field_previous", "Returned to previous field", key=spec.key, erased=state.last_erased)
                continue

            if outcome.kind == OutcomeKind.SKIP:
                state.history.append(added)
                state.index += 1
                self._log("field_skipped", "Field skipped", key=spec.key)
                continue

            try:
                await self._persist(spec, outcome.value)
            except StoreWriteError as exc:
                self._write(render_failed(spec.key, str(exc.cause), self.theme))
                self._log("store_write_failed", str(exc.cause), key=spec.key)
                return self._result(SessionStatus.ERROR, failed_key=spec.key, error=str(exc.cause))

            state.history.append(added)
            state.index += 1
            written = spec.stringify(outcome.value)
            if spec.secret:
                self._log("field_committed", "Value saved", key=spec.key, secret=True, length=len(written))
            else:
                self._log("field_committed", "Value saved", key=spec.key, value=written)

        self._write(render_separator(self.theme))
        self._write(render_complete(self.theme))
        self._log("session_complete", "Setup complete", committed=len(state.committed))
        return self._result(SessionStatus.SUCCESS)
