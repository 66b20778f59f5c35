#!/usr/bin/env python3
"""Tests for the session orchestrator, driven by scripted key presses."""

import json
import tempfile
import unittest
from pathlib import Path

from env_channels import DotenvChannel
from env_fields import FieldSpec, FieldType
from prompt_models import SlotKind
from run_logging import RunLogger
from session import Session, SessionStatus, Transcript


class MemoryChannel:
    def __init__(self, values=None, fail_on=None, fail_get=False):
        self.values = dict(values or {})
        self.writes = []
        self.fail_on = fail_on
        self.fail_get = fail_get

    def get(self):
        if self.fail_get:
            raise OSError("store offline")
        return dict(self.values)

    def set(self, values):
        if self.fail_on in values:
            raise OSError("disk full")
        self.writes.append(dict(values))
        self.values.update(values)

    def describe(self):
        return "memory"


def press(prompt, *keys):
    outcome = None
    for key in keys:
        outcome = prompt.handle_key(key, key) if len(key) == 1 else prompt.handle_key(key)
    return outcome


def scripted(*visits):
    """Prompt runner that answers each visit with the next key sequence."""
    queue = list(visits)
    prompts = []

    async def run_prompt(prompt):
        prompts.append(prompt)
        outcome = press(prompt, *queue.pop(0))
        if outcome is None:
            raise AssertionError(f"keys did not finish prompt for {prompt.spec.key}")
        return outcome

    return run_prompt, prompts


def TYPE(text):
    return [*text, "enter"]


SKIP = ["tab", "enter"]
PREVIOUS = ["tab", "right", "enter"]
CANCEL = ["ctrl+c"]


def string_fields(*keys):
    return [FieldSpec(key=key, type=FieldType.STRING) for key in keys]


class TestSessionFlow(unittest.IsolatedAsyncioTestCase):
    async def test_example_run_accepts_default_and_types_boolean(self):
        fields = [
            FieldSpec(key="PORT", type=FieldType.NUMBER, default=3000),
            FieldSpec(key="DEBUG", type=FieldType.BOOLEAN, default=False),
        ]
        channel = MemoryChannel()
        run_prompt, _ = scripted(["enter"], TYPE("true"))
        result = await Session(fields, channel, run_prompt).run()

        self.assertEqual(result.status, SessionStatus.SUCCESS)
        self.assertEqual(result.values, {"PORT": "3000", "DEBUG": "true"})
        self.assertEqual(channel.values, {"PORT": "3000", "DEBUG": "true"})

    async def test_previous_erases_both_fields_lines(self):
        channel = MemoryChannel()
        run_prompt, prompts = scripted(TYPE("a"), TYPE("b"), PREVIOUS, CANCEL)
        session = Session(string_fields("A", "B", "C"), channel, run_prompt)
        result = await session.run()

        self.assertEqual(result.status, SessionStatus.CANCELLED)
        self.assertEqual(session.state.index, 1)
        # B: separator + summary, C: separator + summary
        self.assertEqual(session.state.last_erased, 4)
        self.assertEqual(session.state.history, [1])
        self.assertEqual(prompts[3].spec.key, "B")
        self.assertEqual(prompts[3].existing.raw, "b")
        self.assertEqual(len(session.transcript), 6)

    async def test_previous_on_second_field_returns_to_first(self):
        run_prompt, prompts = scripted(SKIP, PREVIOUS, SKIP, SKIP)
        session = Session(string_fields("A", "B"), MemoryChannel(), run_prompt)
        result = await session.run()
        self.assertEqual(result.status, SessionStatus.SUCCESS)
        self.assertEqual([prompt.spec.key for prompt in prompts], ["A", "B", "A", "B"])
        self.assertFalse(prompts[0].has_previous)
        self.assertTrue(prompts[1].has_previous)

    async def test_committed_value_round_trips_on_revisit(self):
        fields = [
            FieldSpec(key="RATE", type=FieldType.NUMBER),
            FieldSpec(key="NAME", type=FieldType.STRING),
        ]
        channel = MemoryChannel()
        run_prompt, prompts = scripted(TYPE("2.50"), PREVIOUS, ["enter"], SKIP)
        result = await Session(fields, channel, run_prompt).run()

        self.assertEqual(result.status, SessionStatus.SUCCESS)
        self.assertEqual(channel.values, {"RATE": "2.5"})
        revisit = prompts[2]
        self.assertEqual(revisit.existing.value, 2.5)
        self.assertEqual(revisit.current_slot.kind, SlotKind.CURRENT)
        self.assertEqual(channel.writes, [{"RATE": "2.5"}, {"RATE": "2.5"}])

    async def test_skip_does_not_write(self):
        channel = MemoryChannel({"A": "keep"})
        run_prompt, _ = scripted(SKIP)
        result = await Session(string_fields("A"), channel, run_prompt).run()
        self.assertEqual(result.status, SessionStatus.SUCCESS)
        self.assertEqual(channel.writes, [])
        self.assertEqual(result.values, {})

    async def test_skip_after_rejected_commits_does_not_write(self):
        fields = [
            FieldSpec(key="PORT", type=FieldType.NUMBER, default=3000, validate=lambda value: "port is reserved"),
        ]
        channel = MemoryChannel({"PORT": "abc"})
        run_prompt, prompts = scripted(["enter", "up", "enter", *SKIP])
        result = await Session(fields, channel, run_prompt).run()

        self.assertEqual(result.status, SessionStatus.SUCCESS)
        self.assertEqual(channel.writes, [])
        self.assertEqual(channel.values, {"PORT": "abc"})
        self.assertEqual(result.values, {})
        self.assertEqual(prompts[0].outcome.kind.value, "skip")

    async def test_cancel_stops_writing(self):
        channel = MemoryChannel()
        run_prompt, prompts = scripted(TYPE("x"), CANCEL)
        session = Session(string_fields("A", "B", "C"), channel, run_prompt)
        result = await session.run()
        self.assertEqual(result.status, SessionStatus.CANCELLED)
        self.assertEqual(channel.writes, [{"A": "x"}])
        self.assertEqual(len(prompts), 2)
        self.assertTrue(session.transcript.lines[-1].endswith("Setup cancelled.[/]"))

    async def test_store_failure_reports_key(self):
        channel = MemoryChannel(fail_on="B")
        run_prompt, _ = scripted(TYPE("a"), TYPE("b"))
        session = Session(string_fields("A", "B", "C"), channel, run_prompt)
        result = await session.run()
        self.assertEqual(result.status, SessionStatus.ERROR)
        self.assertEqual(result.failed_key, "B")
        self.assertEqual(result.error, "disk full")
        self.assertEqual(result.values, {"A": "a"})
        self.assertIn("Failed to save B: disk full", session.transcript.lines[-1])

    async def test_initial_read_failure(self):
        run_prompt, prompts = scripted()
        result = await Session(string_fields("A"), MemoryChannel(fail_get=True), run_prompt).run()
        self.assertEqual(result.status, SessionStatus.ERROR)
        self.assertIsNone(result.failed_key)
        self.assertEqual(prompts, [])

    async def test_invalid_stored_value_is_shown_first(self):
        fields = [FieldSpec(key="PORT", type=FieldType.NUMBER, default=3000)]
        run_prompt, prompts = scripted(["enter"])
        result = await Session(fields, MemoryChannel({"PORT": "abc"}), run_prompt).run()
        self.assertEqual(prompts[0].slots[0].kind, SlotKind.INVALID_EXISTING)
        self.assertEqual(result.values, {"PORT": "3000"})

    async def test_blank_stored_value_is_absent(self):
        run_prompt, prompts = scripted(TYPE("v"))
        await Session(string_fields("A"), MemoryChannel({"A": "  "}), run_prompt).run()
        self.assertFalse(prompts[0].existing.is_ok)
        self.assertFalse(prompts[0].existing.is_invalid)

    async def test_duplicate_keys_rejected(self):
        run_prompt, _ = scripted()
        with self.assertRaises(ValueError):
            Session(string_fields("A", "A"), MemoryChannel(), run_prompt)

    async def test_dotenv_channel_end_to_end(self):
        with tempfile.TemporaryDirectory() as tmp:
            env_path = Path(tmp) / ".env"
            fields = [
                FieldSpec(key="PORT", type=FieldType.NUMBER, default=3000),
                FieldSpec(key="MODE", type=FieldType.ENUM, values=("dev", "prod")),
            ]
            run_prompt, _ = scripted(["enter"], ["down", "enter"])
            result = await Session(fields, DotenvChannel(env_path), run_prompt).run()
            self.assertEqual(result.status, SessionStatus.SUCCESS)
            self.assertEqual(DotenvChannel(env_path).get(), {"PORT": "3000", "MODE": "prod"})


class TestSessionLogging(unittest.IsolatedAsyncioTestCase):
    async def test_events_logged_without_secret_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            logger = RunLogger.create(enabled=True, base_dir=Path(tmp), env_path="memory", channel="memory")
            fields = [
                FieldSpec(key="API_SECRET", type=FieldType.STRING, secret=True),
                FieldSpec(key="NAME", type=FieldType.STRING),
            ]
            run_prompt, _ = scripted(TYPE("s3cr3t"), SKIP)
            await Session(fields, MemoryChannel(), run_prompt, run_logger=logger).run()

            assert logger.log_file is not None
            raw = logger.log_file.read_text(encoding="utf-8")
            self.assertNotIn("s3cr3t", raw)
            events = [json.loads(line) for line in raw.splitlines()]
            self.assertEqual(
                [event["event_type"] for event in events],
                ["session_started", "field_committed", "field_skipped", "session_complete"],
            )
            self.assertEqual(events[1]["meta"], {"secret": True, "length": 6})


class TestTranscript(unittest.TestCase):
    def test_write_and_erase_count_lines(self):
        transcript = Transcript()
        self.assertEqual(transcript.write("a\nb"), 2)
        transcript.write("c")
        self.assertEqual(transcript.erase(2), 2)
        self.assertEqual(transcript.lines, ["a"])
        self.assertEqual(transcript.erase(5), 1)
        self.assertEqual(transcript.text(), "")


if __name__ == "__main__":
    unittest.main()
