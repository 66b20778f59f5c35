"""
Env Channels
============

Value stores a session reads from and writes to. Every channel maps keys to
strings and exposes get()/set()/describe():

  - DotenvChannel      a .env file, read and written with python-dotenv
  - ProcessEnvChannel  the current process environment (or any mapping)
  - DotenvxChannel     a .env file managed by the ``dotenvx`` CLI

Usage:
    from env_channels import resolve_channel
    channel = resolve_channel("default", ".env")
    channel.set({"PORT": "3000"})
"""

from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path
from typing import Mapping, MutableMapping, Protocol, runtime_checkable

from dotenv import dotenv_values, set_key

VALID_CHANNELS: set[str] = {"default", "dotenv", "processenv", "dotenvx"}


class ChannelError(RuntimeError):
    """Raised when a channel cannot read or write its backing store."""


@runtime_checkable
class EnvChannel(Protocol):
    def get(self) -> dict[str, str]: ...

    def set(self, values: Mapping[str, str]) -> None: ...

    def describe(self) -> str: ...


def normalize_channel_name(value: str | None) -> str:
    """Normalize channel names; missing/unknown values fall back to "default"."""
    if not value:
        return "default"
    normalized = value.strip().lower().replace("-", "").replace("_", "")
    if normalized in VALID_CHANNELS:
        return normalized
    return "default"


class DotenvChannel:
    """Reads and writes a dotenv file, touching only the keys it sets."""

    def __init__(self, path: str | Path = ".env"):
        self.path = Path(path)

    def get(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            values = dotenv_values(self.path, interpolate=False, encoding="utf-8")
        except OSError as exc:
            raise ChannelError(f"Cannot read {self.path}: {exc}") from exc
        return {key: value for key, value in values.items() if value is not None}

    def set(self, values: Mapping[str, str]) -> None:
        try:
            if not self.path.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.touch()
            for key, value in values.items():
                set_key(self.path, key, value, quote_mode="auto", encoding="utf-8")
        except OSError as exc:
            raise ChannelError(f"Cannot write {self.path}: {exc}") from exc

    def describe(self) -> str:
        return str(self.path)


class ProcessEnvChannel:
    """Reads and writes the process environment."""

    def __init__(self, environ: MutableMapping[str, str] | None = None):
        self.environ = os.environ if environ is None else environ

    def get(self) -> dict[str, str]:
        return dict(self.environ)

    def set(self, values: Mapping[str, str]) -> None:
        for key, value in values.items():
            self.environ[key] = value

    def describe(self) -> str:
        return "process environment"


class DotenvxChannel:
    """Delegates to the dotenvx CLI (``dotenvx get`` / ``dotenvx set``)."""

    def __init__(self, path: str | Path = ".env", binary: str = "dotenvx", encrypt: bool = True):
        self.path = Path(path)
        self.binary = binary
        self.encrypt = encrypt

    def _run(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        command = [self.binary, *args]
        try:
            result = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise ChannelError(f"Could not run {self.binary}: {exc}") from exc
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise ChannelError(
                f"{' '.join(command[:2])} exited with code {result.returncode}"
                + (f": {detail}" if detail else "")
            )
        return result

    def get(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        result = self._run(["get", "-f", str(self.path)])
        try:
            payload = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise ChannelError(f"Unexpected output from {self.binary} get: {exc}") from exc
        if not isinstance(payload, dict):
            raise ChannelError(f"Unexpected output from {self.binary} get")
        return {str(key): str(value) for key, value in payload.items() if value is not None}

    def set(self, values: Mapping[str, str]) -> None:
        if not self.path.exists():
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.touch()
            except OSError as exc:
                raise ChannelError(f"Cannot create {self.path}: {exc}") from exc
        for key, value in values.items():
            args = ["set", key, value, "-f", str(self.path)]
            if not self.encrypt:
                args.append("--plain")
            self._run(args)

    def describe(self) -> str:
        return f"{self.path} (dotenvx)"


def resolve_channel(
    name: str | None,
    path: str | Path = ".env",
    *,
    dotenvx_bin: str = "dotenvx",
    environ: MutableMapping[str, str] | None = None,
) -> EnvChannel:
    """Build the channel registered under ``name``."""
    normalized = (name or "default").strip().lower()
    if normalized in ("default", "dotenv"):
        return DotenvChannel(path)
    if normalized == "processenv":
        return ProcessEnvChannel(environ)
    if normalized == "dotenvx":
        return DotenvxChannel(path, binary=dotenvx_bin)
    raise ValueError(f"Unknown channel: {name!r} (expected one of {', '.join(sorted(VALID_CHANNELS))})")
