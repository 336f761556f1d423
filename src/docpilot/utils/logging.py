"""Logging setup shared by the CLI and library callers.

Records go to ``docpilot.log`` under ``~/.docpilot/logs`` (or
``DOCPILOT_LOG_DIR``), rotated by size; a console handler is optional.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["setup_logging", "get_logger", "get_log_path"]

LOG_FILE_NAME = "docpilot.log"
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
# Third-party loggers that flood DEBUG output with transport chatter.
_QUIETED = ("asyncio", "httpx", "httpcore", "openai")

_active_path: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install file (and optionally console) handlers on the root logger.

    Repeated calls are no-ops returning the existing log path unless
    ``force`` is set, in which case the previous handlers are replaced.
    """

    global _active_path
    if _active_path is not None and not force:
        return _active_path

    directory = Path(log_dir or os.environ.get("DOCPILOT_LOG_DIR") or Path.home() / ".docpilot" / "logs")
    directory = directory.expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / LOG_FILE_NAME

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT)
    handlers = [_file_handler(path, formatter, max_bytes=max_bytes, backup_count=backup_count)]
    if console:
        handlers.append(_console_handler(formatter))

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    floor = max(level, logging.WARNING)
    for name in _QUIETED:
        logging.getLogger(name).setLevel(floor)

    _active_path = path
    return path


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_log_path() -> Path | None:
    """Path of the active log file, or ``None`` before :func:`setup_logging` ran."""

    return _active_path


def _file_handler(
    path: Path, formatter: logging.Formatter, *, max_bytes: int, backup_count: int
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setFormatter(formatter)
    return handler


def _console_handler(formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    return handler
