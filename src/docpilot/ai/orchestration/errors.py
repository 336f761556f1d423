"""Errors that end a chat turn."""

from __future__ import annotations


class TurnError(Exception):
    """Base class for errors surfaced to the caller of a turn."""


class TurnInputError(TurnError, ValueError):
    """Raised before a turn starts when the message or document is missing."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class BackendError(TurnError):
    """Raised when the language-model backend fails; fatal for the turn."""

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage


__all__ = ["TurnError", "TurnInputError", "BackendError"]
