"""Tool reading specific lines by number, never exposing locked lines."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable, List

from ...documents.model import Document, Line
from .base import BaseTool
from .errors import MissingParameterError

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ReadResult:
    success: bool
    lines: List[Line] = field(default_factory=list)
    skipped_locked: List[int] = field(default_factory=list)
    skipped_missing: List[int] = field(default_factory=list)
    error: str | None = None

    def render(self) -> str:
        return "\n".join(line.render() for line in self.lines)


def read_lines(document: Document, line_numbers: Iterable[int] | None) -> ReadResult:
    """Return the requested lines that exist and are unlocked.

    Locked and missing numbers are skipped and reported, they do not fail the
    read. Only an empty request is an error.
    """

    numbers = [int(number) for number in line_numbers or []]
    if not numbers:
        return ReadResult(success=False, error="No line numbers provided")

    LOGGER.info("Executing doc_read for lines: %s", ", ".join(str(n) for n in numbers))
    result = ReadResult(success=True)
    for number in numbers:
        line = document.find_line(number)
        if line is None:
            LOGGER.warning("Line %d not found", number)
            result.skipped_missing.append(number)
        elif line.is_locked:
            LOGGER.warning("Line %d is locked and cannot be read", number)
            result.skipped_locked.append(number)
        else:
            result.lines.append(line)

    LOGGER.info(
        "Read %d/%d line(s) (%d locked, %d missing)",
        len(result.lines),
        len(numbers),
        len(result.skipped_locked),
        len(result.skipped_missing),
    )
    return result


class ReadDocumentTool(BaseTool):
    """Read lines by number to verify their content before editing."""

    name: ClassVar[str] = "doc_read"
    description: ClassVar[str] = (
        "Read specific lines from the document by their line numbers. Use this to verify the "
        "current content of lines before editing them, or when the user references specific "
        "lines with @line notation."
    )
    parameters: ClassVar[dict[str, Any]] = {
        "type": "object",
        "properties": {
            "lines": {
                "type": "array",
                "items": {"type": "integer"},
                "description": "Array of line numbers to read (e.g., [5, 10, 15])",
            },
        },
        "required": ["lines"],
    }

    def validate(self, params: dict[str, Any]) -> None:
        if not params.get("lines"):
            raise MissingParameterError(message="No line numbers provided", parameter="lines")
        super().validate(params)

    def execute(self, document: Document, params: dict[str, Any]) -> dict[str, Any]:
        result = read_lines(document, params["lines"])
        return {
            "content": result.render(),
            "line_numbers": [line.line_number for line in result.lines],
            "count": len(result.lines),
            "skipped_locked": len(result.skipped_locked),
            "skipped_missing": len(result.skipped_missing),
        }


__all__ = ["ReadResult", "read_lines", "ReadDocumentTool"]
