"""Textual host that runs an ask-env session in the terminal."""

from __future__ import annotations

import asyncio

from textual import events, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.css.query import NoMatches
from textual.widgets import Static

from env_channels import EnvChannel
from env_fields import FieldSpec
from field_prompt import DEFAULT_MAX_DISPLAY_LENGTH, FieldPrompt
from prompt_models import Outcome
from prompt_render import Theme
from run_logging import RunLogger
from session import Session, SessionResult

PROMPT_KEYS = ("up", "down", "left", "right", "enter", "escape", "tab", "backspace", "ctrl+r")


class AskEnvApp(App[SessionResult | None]):
    """Shows the session transcript above the active field prompt."""

    CSS = """
    Screen {
      height: auto;
      background: transparent;
    }
    #transcript, #prompt {
      height: auto;
      background: transparent;
    }
    """

    BINDINGS = [
        *(Binding(key, f"prompt_key('{key}')", show=False, priority=True) for key in PROMPT_KEYS),
        Binding("ctrl+c", "cancel_prompt", "Cancel", show=False, priority=True),
    ]

    def __init__(
        self,
        fields: list[FieldSpec],
        channel: EnvChannel,
        *,
        theme: Theme | None = None,
        max_display_length: int = DEFAULT_MAX_DISPLAY_LENGTH,
        run_logger: RunLogger | None = None,
    ) -> None:
        super().__init__()
        self.session = Session(
            fields,
            channel,
            self._run_prompt,
            theme=theme,
            max_display_length=max_display_length,
            run_logger=run_logger,
            on_update=self._refresh_view,
        )
        self.prompt: FieldPrompt | None = None
        self._pending: asyncio.Future[Outcome] | None = None
        self._cancel_requested = False

    def compose(self) -> ComposeResult:
        yield Static("", id="transcript", markup=True)
        yield Static("", id="prompt", markup=True)

    def on_mount(self) -> None:
        self.run_session()

    @work(exclusive=True)
    async def run_session(self) -> None:
        result = await self.session.run()
        self._refresh_view()
        self.exit(result)

    async def _run_prompt(self, prompt: FieldPrompt) -> Outcome:
        if self._cancel_requested:
            self._cancel_requested = False
            return prompt.cancel()
        self.prompt = prompt
        self._pending = asyncio.get_running_loop().create_future()
        self._refresh_view()
        try:
            return await self._pending
        finally:
            self.prompt = None
            self._pending = None

    def _refresh_view(self) -> None:
        try:
            transcript = self.query_one("#transcript", Static)
            prompt_view = self.query_one("#prompt", Static)
        except NoMatches:
            return
        transcript.update(self.session.transcript.text())
        prompt_view.update(self.prompt.render() if self.prompt else "")

    def _deliver(self, outcome: Outcome | None) -> None:
        self._refresh_view()
        if outcome is not None and self._pending is not None and not self._pending.done():
            self._pending.set_result(outcome)

    def action_prompt_key(self, key: str) -> None:
        if self.prompt is None:
            return
        self._deliver(self.prompt.handle_key(key))

    def action_cancel_prompt(self) -> None:
        if self.prompt is None:
            # Between prompts a channel call may be in flight; cancel at the next prompt.
            self._cancel_requested = True
            return
        self._deliver(self.prompt.cancel())

    def on_key(self, event: events.Key) -> None:
        if self.prompt is None or not event.is_printable or not event.character:
            return
        event.stop()
        self._deliver(self.prompt.handle_key(event.key, event.character))
