"""Command line entry point: print the conversation a note's cursor maps to."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence, TextIO, get_args, get_origin, get_type_hints

from .services.settings import Settings, SettingsStore, redact_secret
from .thread import (
    ImageMode,
    NoHeadingsFound,
    ThreadError,
    build_selection_thread,
    build_system_prompt,
    build_thread,
)
from .thread.messages import to_params
from .utils import file_io, logging as logging_utils
from .vault import FileVault

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


def load_settings(
    path: Path | None = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def main(argv: Sequence[str] | None = None, *, stdout: TextIO | None = None, stderr: TextIO | None = None) -> int:
    """Entry point invoked by the ``mdthread`` console script."""

    out = stdout or sys.stdout
    err = stderr or sys.stderr
    args = _parse_cli_args(argv)

    settings_path = args.settings_path or os.environ.get("MDTHREAD_SETTINGS_PATH")
    store = SettingsStore(Path(settings_path).expanduser() if settings_path else None)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=err)
        return 2
    settings = load_settings(store=store, overrides=cli_overrides or None)
    logging_utils.setup_logging(debug=args.debug or settings.debug_logging, stream=err)
    try:
        return _run(args, settings, store, cli_overrides, out, err)
    finally:
        logging_utils.shutdown_logging()


def _run(
    args: argparse.Namespace,
    settings: Settings,
    store: SettingsStore,
    cli_overrides: Mapping[str, Any],
    out: TextIO,
    err: TextIO,
) -> int:
    if args.dump_settings:
        _dump_settings(settings, store, overrides=cli_overrides, stream=out)
        return 0
    if args.note is None:
        print("A note path is required unless --dump-settings is given.", file=err)
        return 2

    try:
        payload = asyncio.run(_build_payload(args, settings))
    except NoHeadingsFound as exc:
        print(exc.message, file=err)
        return 1
    except ThreadError as exc:
        print(str(exc), file=err)
        return 1
    except (OSError, ValueError) as exc:
        print(f"mdthread: {exc}", file=err)
        return 2
    json.dump(payload, out, indent=2, ensure_ascii=False)
    out.write("\n")
    return 0


async def _build_payload(args: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    note = Path(args.note).expanduser().resolve()
    vault = FileVault(args.vault or note.parent)
    path = vault.relative_path(note)
    text = file_io.read_text(note)
    services = vault.services()
    max_edge = args.max_edge or settings.max_image_edge
    system_message = await build_system_prompt(settings.system_prompt, settings.system_prompt_file, services)

    if args.selection:
        start, end = _parse_selection(args.selection)
        image_mode = ImageMode.RAW if args.raw_images else ImageMode(settings.image_mode)
        messages = await build_selection_thread(
            path,
            text,
            start,
            end,
            system_message,
            services,
            image_mode=image_mode,
            max_edge=max_edge,
        )
        return {"model": settings.model, "messages": to_params(messages)}

    cursor_line = args.line if args.line is not None else text.count("\n")
    result = await build_thread(path, text, cursor_line, system_message, services, max_edge=max_edge)
    return {
        "model": settings.model,
        "messages": result.to_params(),
        "last_heading": result.last_heading.text,
        "range_end": result.range_end.to_dict(),
        "reply_heading": result.reply_heading(),
        "follow_up_heading": result.follow_up_heading(),
    }


def _parse_selection(value: str) -> tuple[int, int]:
    start_text, sep, end_text = value.partition(":")
    if not sep:
        raise ValueError(f"Selection '{value}' must use START:END offsets")
    start, end = int(start_text, 10), int(end_text, 10)
    if start < 0 or end < start:
        raise ValueError(f"Selection '{value}' is not a valid offset range")
    return start, end


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mdthread",
        description="Print the chat-completion messages a markdown note's heading structure maps to.",
    )
    parser.add_argument("note", nargs="?", help="Markdown note to convert.")
    parser.add_argument("--vault", metavar="DIR", help="Vault root used to resolve embeds (default: note folder).")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--line", type=int, metavar="N", help="Zero-based cursor line (default: last line).")
    target.add_argument("--selection", metavar="START:END", help="Send only this offset range as one user turn.")
    parser.add_argument("--raw-images", action="store_true", help="Pass selected images as raw buffers.")
    parser.add_argument("--max-edge", type=int, metavar="PX", help="Longest image edge in pixels.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument("--settings-path", metavar="PATH", help="Override the default ~/.mdthread/settings.json path.")
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints.get(key, fields[key].type), raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    if raw_value.lower() in {"none", "null"} and target is not str:
        return None
    if target is bool:
        return _parse_bool(raw_value)
    if target is int:
        return int(raw_value, 10)
    return raw_value


def _resolve_annotation(annotation: Any) -> Any:
    if get_origin(annotation) is None:
        return annotation
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    return args[0] if args else annotation


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO,
) -> None:
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": sorted(name for name in os.environ if name.startswith("MDTHREAD_")),
        "log_path": str(logging_utils.get_log_path() or ""),
    }
    json.dump({"settings": payload, "meta": metadata}, stream, indent=2)
    stream.write("\n")


__all__ = ["load_settings", "main"]
