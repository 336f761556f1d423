"""Failures a document tool reports back to the model.

Each expected failure is a :class:`ToolError` subclass. ``to_dict`` produces
the JSON the model sees: an ``error`` code, a ``message``, and whatever
context fields the subclass carries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ErrorCode:
    """Machine-readable codes carried in the ``error`` field."""

    DOCUMENT_EMPTY = "document_empty"
    LINE_LOCKED = "line_locked"
    UNKNOWN_OPERATION = "unknown_operation"
    UNKNOWN_TOOL = "unknown_tool"
    INTERNAL_ERROR = "internal_error"
    INVALID_PARAMETER = "invalid_parameter"
    MISSING_PARAMETER = "missing_parameter"


@dataclass
class ToolError(Exception):
    """A tool failure the model can read and act on.

    ``suggestion`` tells the model how to recover; ``details`` holds any extra
    structured data worth echoing back.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def context(self) -> dict[str, Any]:
        """Subclass-specific fields added to :meth:`to_dict` when set."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            payload["details"] = dict(self.details)
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        payload.update({key: value for key, value in self.context().items() if value not in (None, [])})
        return payload


@dataclass
class DocumentEmptyError(ToolError):
    error_code: str = ErrorCode.DOCUMENT_EMPTY
    message: str = "Document is empty"
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = "Upload a document before asking for edits"


@dataclass
class LineLockedError(ToolError):
    """An edit touched locked lines, so none of it was applied."""

    error_code: str = ErrorCode.LINE_LOCKED
    message: str = "Cannot edit locked lines"
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = "Ask the user to unlock these lines first"
    lines: list[int] = field(default_factory=list)

    def context(self) -> dict[str, Any]:
        return {"lines": list(self.lines)}


@dataclass
class UnknownOperationError(ToolError):
    error_code: str = ErrorCode.UNKNOWN_OPERATION
    message: str = "Unknown operation"
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = "Use one of: replace, insert, delete"
    operation: str | None = None

    def context(self) -> dict[str, Any]:
        return {"operation": self.operation}


@dataclass
class UnknownToolError(ToolError):
    """The model asked for a tool outside the catalog."""

    error_code: str = ErrorCode.UNKNOWN_TOOL
    message: str = "Unknown tool"
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = "Use doc_analyze, doc_search, doc_read or doc_edit"
    tool_name: str | None = None

    def context(self) -> dict[str, Any]:
        return {"tool": self.tool_name}


@dataclass
class InvalidParameterError(ToolError):
    """Arguments failed schema validation or could not be decoded."""

    error_code: str = ErrorCode.INVALID_PARAMETER
    message: str = "Invalid tool arguments"
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = "Match the argument schema in the tool definition"
    parameter: str | None = None
    value: Any = None
    expected: str | None = None

    def context(self) -> dict[str, Any]:
        return {
            "parameter": self.parameter,
            "value": None if self.value is None else repr(self.value),
            "expected": self.expected,
        }


@dataclass
class MissingParameterError(ToolError):
    error_code: str = ErrorCode.MISSING_PARAMETER
    message: str = "A required argument is missing"
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = "Call the tool again with every required argument"
    parameter: str | None = None

    def context(self) -> dict[str, Any]:
        return {"parameter": self.parameter}


__all__ = [
    "ErrorCode",
    "ToolError",
    "DocumentEmptyError",
    "LineLockedError",
    "UnknownOperationError",
    "UnknownToolError",
    "InvalidParameterError",
    "MissingParameterError",
]
