"""Tests for the logging setup helpers."""

from __future__ import annotations

import logging
from pathlib import Path

from docpilot.utils.logging import get_log_path, get_logger, setup_logging


def test_setup_logging_writes_rotating_file(tmp_path: Path) -> None:
    path = setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, force=True)

    get_logger("docpilot.test").info("hello from the test")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert path == tmp_path / "docpilot.log"
    assert get_log_path() == path
    assert "hello from the test" in path.read_text(encoding="utf-8")
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_is_idempotent_without_force(tmp_path: Path) -> None:
    first = setup_logging(log_dir=tmp_path / "a", console=False, force=True)

    assert setup_logging(log_dir=tmp_path / "b", console=False) == first
    assert not (tmp_path / "b").exists()


def test_log_dir_defaults_to_environment(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("DOCPILOT_LOG_DIR", str(tmp_path / "env-logs"))

    path = setup_logging(console=False, force=True)

    assert path == tmp_path / "env-logs" / "docpilot.log"
