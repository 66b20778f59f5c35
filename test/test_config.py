#!/usr/bin/env python3
"""Tests for ask-env settings loading."""

import os
import re
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from config import AskEnvConfig, get_config, reload_config
from env_fields import DEFAULT_SECRET_PATTERNS


class TestConfig(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.cwd = patch("config.Path.cwd", return_value=Path(self.tmp.name))
        self.cwd.start()

    def tearDown(self):
        self.cwd.stop()
        self.tmp.cleanup()
        get_config.cache_clear()

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            cfg = reload_config()
        self.assertEqual(cfg.env_path, ".env")
        self.assertEqual(cfg.channel, "default")
        self.assertEqual(cfg.max_display_length, 40)
        self.assertEqual(cfg.theme, "magenta")
        self.assertFalse(cfg.run_log_enabled)
        self.assertEqual(cfg.secret_patterns, list(DEFAULT_SECRET_PATTERNS))

    def test_environment_overrides(self):
        env = {
            "ASK_ENV_PATH": ".env.local",
            "ASK_ENV_CHANNEL": "DotEnvX",
            "ASK_ENV_MAX_DISPLAY_LENGTH": "12",
            "ASK_ENV_SECRET_PATTERNS": "stripe, ^x_",
            "ASK_ENV_DEFAULT_SECRETS": "false",
            "ASK_ENV_RUN_LOG": "yes",
            "ASK_ENV_DOTENVX_BIN": "/usr/local/bin/dotenvx",
        }
        with patch.dict(os.environ, env, clear=True):
            cfg = reload_config()
        self.assertEqual(cfg.env_path, ".env.local")
        self.assertEqual(cfg.channel, "dotenvx")
        self.assertEqual(cfg.max_display_length, 12)
        self.assertTrue(cfg.run_log_enabled)
        self.assertEqual(cfg.dotenvx_bin, "/usr/local/bin/dotenvx")
        self.assertEqual([p.pattern for p in cfg.secret_patterns], ["stripe", "^x_"])

    def test_bad_values_fall_back(self):
        with patch.dict(os.environ, {"ASK_ENV_MAX_DISPLAY_LENGTH": "lots", "ASK_ENV_CHANNEL": "vault"}, clear=True):
            cfg = reload_config()
        self.assertEqual(cfg.max_display_length, 40)
        self.assertEqual(cfg.channel, "default")

    def test_settings_file_is_read_and_env_wins(self):
        Path(self.tmp.name, ".askenvrc").write_text(
            "ASK_ENV_THEME=cyan\nASK_ENV_PATH=from-file.env\n", encoding="utf-8"
        )
        with patch.dict(os.environ, {"ASK_ENV_PATH": "from-env.env"}, clear=True):
            cfg = reload_config()
        self.assertEqual(cfg.theme, "cyan")
        self.assertEqual(cfg.env_path, "from-env.env")

    def test_invalid_regex_kept_as_substring(self):
        cfg = AskEnvConfig(extra_secret_patterns="a[b", use_default_secret_patterns=False)
        self.assertEqual(cfg.secret_patterns, ["a[b"])

    def test_get_config_is_cached(self):
        with patch.dict(os.environ, {}, clear=True):
            self.assertIs(reload_config(), get_config())

    def test_regex_patterns_are_case_insensitive(self):
        cfg = AskEnvConfig(extra_secret_patterns="stripe", use_default_secret_patterns=False)
        (pattern,) = cfg.secret_patterns
        self.assertTrue(pattern.flags & re.IGNORECASE)


if __name__ == "__main__":
    unittest.main()
