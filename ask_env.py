#!/usr/bin/env python3
"""
ask-env
=======

Interactively fill in environment variables declared by a schema and save
them to a .env file (or another channel).

Examples:
  ask-env --schema env.schema.json
  ask-env --model myapp.settings:Settings --path .env.local
  ask-env --schema env.schema.json --channel dotenvx --secret STRIPE
"""

from __future__ import annotations

import argparse
import importlib
import json
import sys
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel
from rich.console import Console

from ask_env_app import AskEnvApp
from config import get_config
from env_channels import EnvChannel, VALID_CHANNELS, resolve_channel
from env_fields import DEFAULT_SECRET_PATTERNS, SecretPattern
from field_resolver import SchemaResolutionError, resolve_fields
from prompt_render import Theme
from run_logging import RunLogger
from session import SessionResult, SessionStatus


def ask(
    schemas: Any,
    *,
    path: str | Path | None = None,
    channel: str | EnvChannel | None = None,
    secret_patterns: Iterable[SecretPattern] | None = None,
    max_display_length: int | None = None,
    theme: str | None = None,
    run_log: bool | None = None,
) -> SessionResult:
    """
    Prompt for every field in ``schemas`` and persist the answers.

    Unset keyword arguments fall back to get_config(). ``channel`` may be a
    channel name or an EnvChannel instance.
    """
    cfg = get_config()
    env_path = Path(path) if path is not None else Path(cfg.env_path)
    patterns = list(secret_patterns) if secret_patterns is not None else cfg.secret_patterns

    fields = resolve_fields(schemas, patterns)
    if isinstance(channel, str) or channel is None:
        channel_name = channel or cfg.channel
        store = resolve_channel(channel_name, env_path, dotenvx_bin=cfg.dotenvx_bin)
    else:
        channel_name = type(channel).__name__
        store = channel

    run_logger = RunLogger.create(
        enabled=cfg.run_log_enabled if run_log is None else run_log,
        base_dir=cfg.run_log_path,
        env_path=store.describe(),
        channel=channel_name,
    )

    app = AskEnvApp(
        fields,
        store,
        theme=Theme.from_color(theme or cfg.theme),
        max_display_length=cfg.max_display_length if max_display_length is None else max_display_length,
        run_logger=run_logger,
    )
    result = app.run(inline=True)

    console = Console()
    transcript = app.session.transcript.text()
    if transcript:
        console.print(transcript, highlight=False)

    if result is None:
        return SessionResult(status=SessionStatus.CANCELLED, values=dict(app.session.state.committed))
    return result


def load_schema_file(path: Path) -> dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise SchemaResolutionError(f"Cannot read schema {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise SchemaResolutionError(f"Schema {path} must be a JSON object")
    return payload


def load_model(reference: str) -> type[BaseModel]:
    """Import ``module:Class`` and return the pydantic model class."""
    module_name, _, attr = reference.partition(":")
    if not module_name or not attr:
        raise SchemaResolutionError(f"Expected module:Class, got {reference!r}")
    if str(Path.cwd()) not in sys.path:
        sys.path.insert(0, str(Path.cwd()))
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise SchemaResolutionError(f"Cannot import {module_name}: {exc}") from exc
    model = getattr(module, attr, None)
    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        raise SchemaResolutionError(f"{reference} is not a pydantic model")
    return model


def create_parser() -> argparse.ArgumentParser:
    cfg = get_config()

    parser = argparse.ArgumentParser(
        prog="ask-env",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--schema",
        type=Path,
        metavar="FILE",
        help="JSON schema describing the variables (properties + required)",
    )
    source.add_argument(
        "--model",
        type=str,
        metavar="MODULE:CLASS",
        help="Pydantic model whose fields describe the variables",
    )
    parser.add_argument(
        "--path",
        type=Path,
        default=None,
        help=f"Env file to read and write (default: {cfg.env_path})",
    )
    parser.add_argument(
        "--channel",
        choices=sorted(VALID_CHANNELS),
        default=None,
        help=f"Value store (default: {cfg.channel})",
    )
    parser.add_argument(
        "--secret",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Extra secret pattern (case-insensitive substring); repeatable",
    )
    parser.add_argument(
        "--no-default-secrets",
        action="store_true",
        help="Do not apply the built-in secret patterns",
    )
    parser.add_argument(
        "--max-display-length",
        type=int,
        default=None,
        help=f"Truncate displayed values (default: {cfg.max_display_length})",
    )
    parser.add_argument(
        "--theme",
        type=str,
        default=None,
        help=f"Primary colour (default: {cfg.theme})",
    )
    parser.add_argument(
        "--log",
        action="store_true",
        help=f"Write a JSONL run log under {cfg.run_log_dir}",
    )
    return parser


def _secret_patterns(args: argparse.Namespace) -> list[SecretPattern]:
    cfg = get_config()
    if args.no_default_secrets:
        patterns: list[SecretPattern] = [
            pattern for pattern in cfg.secret_patterns if pattern not in DEFAULT_SECRET_PATTERNS
        ]
    else:
        patterns = list(cfg.secret_patterns)
    patterns.extend(args.secret)
    return patterns


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        schemas: Any = load_schema_file(args.schema) if args.schema else load_model(args.model)
        result = ask(
            schemas,
            path=args.path,
            channel=args.channel,
            secret_patterns=_secret_patterns(args),
            max_display_length=args.max_display_length,
            theme=args.theme,
            run_log=True if args.log else None,
        )
    except ValueError as exc:
        # SchemaResolutionError and FieldSpec construction errors
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nSetup cancelled.")
        return 0

    if result.status == SessionStatus.ERROR:
        if result.failed_key:
            print(f"Error: failed to save {result.failed_key}: {result.error}", file=sys.stderr)
        else:
            print(f"Error: {result.error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
