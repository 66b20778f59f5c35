"""
Central Configuration Module
============================

Loads ask-env settings from environment variables, with an optional
``.askenvrc`` settings file (dotenv syntax) in the working directory.
Environment variables always win over the settings file.

Usage:
    from config import get_config
    cfg = get_config()
    print(cfg.env_path)
    print(cfg.secret_patterns)
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import dotenv_values

from env_channels import normalize_channel_name
from env_fields import DEFAULT_SECRET_PATTERNS, SecretPattern

SETTINGS_FILENAME = ".askenvrc"
DEFAULT_MAX_DISPLAY_LENGTH = 40


def _parse_bool_env(value: str | None, default: bool) -> bool:
    """Parse boolean-like env values with sensible defaults."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int_env(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _split_patterns(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class AskEnvConfig:
    """All ask-env settings, with sensible defaults."""

    # Target store
    env_path: str = ".env"
    channel: str = "default"
    dotenvx_bin: str = "dotenvx"

    # Display
    max_display_length: int = DEFAULT_MAX_DISPLAY_LENGTH
    theme: str = "magenta"

    # Secret detection (comma-separated extra patterns)
    extra_secret_patterns: str = ""
    use_default_secret_patterns: bool = True

    # Run log
    run_log_enabled: bool = False
    run_log_dir: str = ".ask-env/logs"

    @property
    def secret_patterns(self) -> list[SecretPattern]:
        """
        Compute the effective secret patterns.

        DEFAULT_SECRET_PATTERNS (unless disabled)
        + extra_secret_patterns (comma-separated, case-insensitive regexes)
        """
        patterns: list[SecretPattern] = []
        if self.use_default_secret_patterns:
            patterns.extend(DEFAULT_SECRET_PATTERNS)
        for pattern in _split_patterns(self.extra_secret_patterns):
            try:
                patterns.append(re.compile(pattern, re.IGNORECASE))
            except re.error:
                patterns.append(pattern)
        return patterns

    @property
    def run_log_path(self) -> Path:
        return Path(self.run_log_dir)


def load_settings_file(path: Path | None = None) -> dict[str, str]:
    """Read the optional settings file; missing file -> {}."""
    settings_path = path or Path.cwd() / SETTINGS_FILENAME
    if not settings_path.is_file():
        return {}
    values = dotenv_values(settings_path)
    return {key: value for key, value in values.items() if value is not None}


@lru_cache(maxsize=1)
def get_config() -> AskEnvConfig:
    """
    Return the singleton AskEnvConfig built from the environment.

    Call reload_config() after changing the environment or settings file.
    """
    settings = load_settings_file()

    def setting(name: str) -> str | None:
        return os.environ.get(name, settings.get(name))

    return AskEnvConfig(
        env_path=setting("ASK_ENV_PATH") or ".env",
        channel=normalize_channel_name(setting("ASK_ENV_CHANNEL")),
        dotenvx_bin=setting("ASK_ENV_DOTENVX_BIN") or "dotenvx",
        max_display_length=_parse_int_env(
            setting("ASK_ENV_MAX_DISPLAY_LENGTH"), DEFAULT_MAX_DISPLAY_LENGTH
        ),
        theme=setting("ASK_ENV_THEME") or "magenta",
        extra_secret_patterns=setting("ASK_ENV_SECRET_PATTERNS") or "",
        use_default_secret_patterns=_parse_bool_env(
            setting("ASK_ENV_DEFAULT_SECRETS"), True
        ),
        run_log_enabled=_parse_bool_env(setting("ASK_ENV_RUN_LOG"), False),
        run_log_dir=setting("ASK_ENV_RUN_LOG_DIR") or ".ask-env/logs",
    )


def reload_config() -> AskEnvConfig:
    """Clear the cached settings and rebuild them."""
    get_config.cache_clear()
    return get_config()
