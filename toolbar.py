"""
Toolbar
=======

Secondary action bar layered over a field prompt. ``tab`` opens it (or
advances its cursor when already open); arrow keys move among the enabled
options with wraparound; ``enter`` activates; any other key closes it.
"""

from __future__ import annotations

from prompt_models import ToolbarAction

NEXT_KEYS = {"tab", "right", "down"}
PREVIOUS_KEYS = {"left", "up"}


class Toolbar:
    """Open/closed flag plus a cursor that always rests on an enabled option."""

    def __init__(self, has_previous: bool = False, is_secret: bool = False):
        self.has_previous = has_previous
        self.is_secret = is_secret
        self.open = False
        self.cursor = 0

    @property
    def options(self) -> list[ToolbarAction]:
        options = [ToolbarAction.SKIP]
        if self.has_previous:
            options.append(ToolbarAction.PREVIOUS)
        if self.is_secret:
            options.append(ToolbarAction.TOGGLE_SECRET)
        options.append(ToolbarAction.CLOSE)
        return options

    @property
    def selected(self) -> ToolbarAction:
        return self.options[self.cursor]

    def close(self) -> None:
        self.open = False

    def handle_key(self, key: str) -> ToolbarAction | None:
        """
        Process one key while the toolbar owns input.

        Returns the activated action (the toolbar is closed afterwards) or None.
        Callers route a key here when it is ``tab`` or the toolbar is open; every
        such key is consumed.
        """
        if not self.open:
            if key == "tab":
                self.open = True
                self.cursor = 0
            return None

        count = len(self.options)
        if key in NEXT_KEYS:
            self.cursor = (self.cursor + 1) % count
            return None
        if key in PREVIOUS_KEYS:
            self.cursor = (self.cursor - 1) % count
            return None
        if key == "enter":
            action = self.selected
            self.open = False
            return action

        self.open = False
        return None

    @staticmethod
    def label(action: ToolbarAction, secret_revealed: bool = False) -> str:
        if action == ToolbarAction.SKIP:
            return "Skip"
        if action == ToolbarAction.PREVIOUS:
            return "Previous"
        if action == ToolbarAction.TOGGLE_SECRET:
            return "Hide" if secret_revealed else "Show"
        return "Return"
