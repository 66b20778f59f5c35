#!/usr/bin/env python3
"""Tests for markup rendering helpers."""

import unittest

from rich.text import Text

from env_fields import ExistingValue, FieldSpec, FieldType
from field_prompt import FieldPrompt
from prompt_render import (
    Theme,
    display_value,
    render_error,
    render_failed,
    render_header,
)


def plain(markup: str) -> str:
    return Text.from_markup(markup).plain


class TestDisplayValue(unittest.TestCase):
    def test_masks_before_truncating(self):
        self.assertEqual(display_value("abcdef", secret=True, revealed=False, limit=3), "•••...")

    def test_revealed_secret_is_plain(self):
        self.assertEqual(display_value("abc", secret=True, revealed=True, limit=40), "abc")

    def test_newlines_are_flattened(self):
        self.assertEqual(display_value("a\nb", secret=False, revealed=False, limit=40), "a\\nb")

    def test_markup_is_escaped(self):
        self.assertEqual(plain(display_value("[bold]x[/bold]", False, False, 40)), "[bold]x[/bold]")


class TestPromptRendering(unittest.TestCase):
    def test_active_prompt_layout(self):
        spec = FieldSpec(key="PORT", type=FieldType.NUMBER, default=3000, description="HTTP port")
        prompt = FieldPrompt(spec, ExistingValue.from_raw(spec, "8080"))
        lines = plain(prompt.render()).split("\n")
        self.assertEqual(lines[0], "◆  PORT HTTP port")
        self.assertEqual(lines[1], "│  ● 8080 (current)")
        self.assertEqual(lines[2], "│  ○ 3000 (default)")
        self.assertEqual(lines[3], "│  ○ Other")
        self.assertTrue(lines[4].startswith("└  Enter a number"))

    def test_error_footer_and_symbol(self):
        spec = FieldSpec(key="PORT", type=FieldType.NUMBER)
        prompt = FieldPrompt(spec, ExistingValue.from_raw(spec, "abc"))
        prompt.handle_key("up")
        prompt.handle_key("enter")
        lines = plain(prompt.render()).split("\n")
        self.assertTrue(lines[0].startswith("▲"))
        self.assertIn("abc (invalid)", lines[1])
        self.assertEqual(lines[-1], f"└  {prompt.existing.error}")

    def test_toolbar_footer(self):
        spec = FieldSpec(key="TOKEN", type=FieldType.STRING, secret=True)
        prompt = FieldPrompt(spec, has_previous=True)
        prompt.handle_key("tab")
        self.assertEqual(plain(prompt.render()).split("\n")[-1], "└  Skip / Previous / Show / Return")

    def test_finalized_lines(self):
        spec = FieldSpec(key="DEBUG", type=FieldType.BOOLEAN, default=False)
        prompt = FieldPrompt(spec)
        prompt.handle_key("enter")
        self.assertEqual(plain(prompt.render()), "✔  DEBUG=false")

        skipped = FieldPrompt(spec)
        skipped.handle_key("tab")
        skipped.handle_key("enter")
        self.assertEqual(plain(skipped.render()), "⏭  DEBUG")


class TestChrome(unittest.TestCase):
    def test_header_and_errors(self):
        theme = Theme.from_color("cyan")
        self.assertEqual(theme.primary, "cyan")
        self.assertEqual(plain(render_header(".env", theme)), "┌  ask-env  .env")
        self.assertEqual(plain(render_failed("PORT", "disk full", theme)), "└  Failed to save PORT: disk full")
        self.assertEqual(plain(render_error("multi\nline", theme)), "└  multi line")

    def test_blank_theme_falls_back(self):
        self.assertEqual(Theme.from_color("  ").primary, "magenta")


if __name__ == "__main__":
    unittest.main()
