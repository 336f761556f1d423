"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from docpilot.documents.model import Document

from tests.helpers import SAFE_TEXTS, make_document


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep log files and settings out of the real home directory."""

    monkeypatch.setenv("DOCPILOT_LOG_DIR", str(tmp_path / "logs"))
    for name in (
        "DOCPILOT_API_KEY",
        "DOCPILOT_BASE_URL",
        "DOCPILOT_MODEL",
        "DOCPILOT_ORGANIZATION",
        "DOCPILOT_DEBUG",
        "DOCPILOT_DEBUG_LOGGING",
        "DOCPILOT_REQUEST_TIMEOUT",
        "DOCPILOT_TEMPERATURE",
        "DOCPILOT_MAX_RETRIES",
        "DOCPILOT_HISTORY_WINDOW",
        "DOCPILOT_SETTINGS_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def safe_document() -> Document:
    return make_document(SAFE_TEXTS)


@pytest.fixture
def locked_safe_document() -> Document:
    return make_document(SAFE_TEXTS, locked=[3])
