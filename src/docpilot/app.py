"""Command line entry point running one chat turn against a JSON document."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.client import AIClient, ClientSettings
from .ai.orchestration import (
    BackendError,
    ChatBackend,
    OpenAIChatBackend,
    TurnInputError,
    TurnRequest,
    TurnResponse,
    TurnStateMachine,
)
from .ai.prompts import build_error_message
from .ai.tools.registry import ToolRegistry
from .services.settings import Settings, SettingsStore, redact_secret
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging_utils.get_logger(__name__)

EXIT_TURN_FAILED = 1
EXIT_USAGE = 2


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure logging for the command line run."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, console=debug, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def build_backend(settings: Settings, *, debug_logging: bool = False) -> OpenAIChatBackend:
    """Construct the OpenAI-backed chat backend from ``settings``."""

    client_settings = ClientSettings.from_settings(settings, debug_logging=debug_logging)
    return OpenAIChatBackend(AIClient(client_settings))


def build_state_machine(settings: Settings, backend: ChatBackend) -> TurnStateMachine:
    registry = ToolRegistry(
        search_default_limit=settings.search_default_limit,
        search_max_limit=settings.search_max_limit,
    )
    return TurnStateMachine(backend, registry=registry, history_window=settings.history_window)


def main(argv: Sequence[str] | None = None, *, backend: ChatBackend | None = None) -> None:
    """Entry point invoked by the `docpilot` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = args.debug or _env_flag("DOCPILOT_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("DOCPILOT_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(EXIT_USAGE) from exc

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    if not args.document or not args.message:
        parser.error("--document and --message are required unless --dump-settings is given")

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)
        debug = True

    try:
        request = _build_request(args)
    except (OSError, ValueError) as exc:
        print(f"Unable to read input: {exc}", file=sys.stderr)
        raise SystemExit(EXIT_USAGE) from exc

    if backend is None:
        if not settings.api_key:
            print("API key not configured (use --set api_key=... or DOCPILOT_API_KEY)", file=sys.stderr)
            raise SystemExit(EXIT_USAGE)
        backend = build_backend(settings, debug_logging=debug)

    machine = build_state_machine(settings, backend)
    try:
        response = asyncio.run(_run(machine, request, backend))
    except TurnInputError as exc:
        print(str(exc), file=sys.stderr)
        raise SystemExit(EXIT_USAGE) from exc
    except BackendError as exc:
        _LOGGER.error("Turn failed during %s: %s", exc.stage, exc)
        _write_json(
            {
                "success": False,
                "error": "Failed to generate response",
                "stage": exc.stage,
                "message": build_error_message(),
            },
            args.output,
        )
        raise SystemExit(EXIT_TURN_FAILED) from exc

    _write_json(response.to_dict(), args.output)


async def _run(machine: TurnStateMachine, request: TurnRequest, backend: ChatBackend) -> TurnResponse:
    try:
        return await machine.run_turn(request)
    finally:
        close = getattr(backend, "aclose", None)
        if close is not None:
            await close()


def _build_request(args: argparse.Namespace) -> TurnRequest:
    document = _read_json(Path(args.document).expanduser())
    if not isinstance(document, Mapping):
        raise ValueError(f"{args.document} does not contain a JSON object")
    history: List[Any] = []
    if args.history:
        history = _read_json(Path(args.history).expanduser())
        if not isinstance(history, list):
            raise ValueError(f"{args.history} does not contain a JSON array")
    return TurnRequest.from_dict(
        {
            "message": args.message,
            "document": document,
            "chatHistory": history,
            "customInstructions": args.instructions,
        }
    )


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path} is not valid JSON: {exc}") from exc


def _write_json(payload: Mapping[str, Any], output: str | None) -> None:
    body = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        target = Path(output).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(body + "\n", encoding="utf-8")
        _LOGGER.info("Turn response written to %s", target)
        return
    sys.stdout.write(body + "\n")


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docpilot",
        description="Run one chat turn against a parsed document and print the JSON response.",
    )
    parser.add_argument("--document", metavar="PATH", help="Parsed document JSON (lines + metadata).")
    parser.add_argument("--message", help="The user's chat message; may contain @line/@page citations.")
    parser.add_argument("--history", metavar="PATH", help="JSON array of prior chat messages.")
    parser.add_argument("--instructions", help="Custom instructions added to the model context.")
    parser.add_argument("--output", metavar="PATH", help="Write the response JSON here instead of stdout.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging on the console.")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.docpilot/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    return parser


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    """Turn ``KEY=VALUE`` entries into typed :class:`Settings` overrides.

    Raises:
        ValueError: for malformed entries, unknown keys or unconvertible values.
    """

    kinds = _setting_kinds()
    overrides: Dict[str, Any] = {}
    for entry in items:
        key, raw = _split_override(entry)
        if key not in kinds:
            raise ValueError(f"unknown setting {key!r}")
        convert = _CONVERTERS.get(kinds[key], str)
        try:
            overrides[key] = convert(raw)
        except ValueError as exc:
            raise ValueError(f"{key}: {exc}") from exc
    return overrides


def _split_override(entry: str) -> tuple[str, str]:
    key, separator, raw = entry.partition("=")
    key = key.strip()
    if not separator or not key:
        raise ValueError(f"expected KEY=VALUE, got {entry!r}")
    return key, raw.strip()


def _setting_kinds() -> Dict[str, Any]:
    hints = get_type_hints(Settings)
    return {item.name: _base_type(hints[item.name]) for item in fields(Settings)}


def _base_type(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is dict:
        return dict
    # Optional fields convert as their non-None member.
    members = [arg for arg in get_args(annotation) if arg is not type(None)]
    return members[0] if members else str


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{value!r} is not a boolean")


def _parse_json_object(value: str) -> Dict[str, Any]:
    parsed = json.loads(value or "{}")
    if not isinstance(parsed, dict):
        raise ValueError("expected a JSON object")
    return parsed


_CONVERTERS: Dict[Any, Callable[[str], Any]] = {
    bool: _parse_bool,
    int: int,
    float: float,
    dict: _parse_json_object,
}


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.name,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("DOCPILOT_"))


if __name__ == "__main__":  # pragma: no cover - manual invocation
    main()
