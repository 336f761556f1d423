"""Line-level edits: replace, insert and delete.

Every edit is checked against locked lines before anything is touched, so a
rejected edit leaves the document exactly as it was. Structural edits
renumber the document to ``1..len(lines)`` and all successful edits refresh
``metadata.total_lines``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, List, Literal, Mapping

from ...documents.model import Document, Line
from .base import BaseTool
from .errors import (
    LineLockedError,
    MissingParameterError,
    ToolError,
    UnknownOperationError,
)

LOGGER = logging.getLogger(__name__)

EditOperation = Literal["replace", "insert", "delete"]
OPERATIONS: tuple[str, ...] = ("replace", "insert", "delete")


@dataclass(slots=True)
class EditParams:
    operation: str
    lines: List[int] = field(default_factory=list)
    new_text: str | None = None

    @classmethod
    def from_arguments(cls, arguments: Mapping[str, Any]) -> "EditParams":
        """Build params from tool-call arguments (``newText`` or ``new_text``)."""

        new_text = arguments.get("newText", arguments.get("new_text"))
        return cls(
            operation=str(arguments.get("operation") or ""),
            lines=[int(number) for number in arguments.get("lines") or []],
            new_text=None if new_text is None else str(new_text),
        )


@dataclass(slots=True)
class EditResult:
    success: bool
    modified_lines: List[int] = field(default_factory=list)
    error: str | None = None


def check_edit(params: EditParams) -> None:
    """Raise :class:`MissingParameterError` when ``params`` lacks what its operation needs.

    Unknown operations are rejected by :func:`apply_edit` after the locked-line scan.
    """

    if not params.lines:
        raise MissingParameterError(message="No line numbers provided", parameter="lines")
    if not params.operation:
        raise MissingParameterError(message="Operation is required", parameter="operation")
    if params.operation in ("replace", "insert") and not params.new_text:
        raise MissingParameterError(
            message=f"New text is required for {params.operation} operation",
            parameter="newText",
        )


def apply_edit(document: Document, params: EditParams) -> List[int]:
    """Apply ``params`` to ``document`` in place and return the targeted lines touched.

    Raises:
        ToolError: when validation fails or any target line is locked. The
            document is unchanged in that case.
    """

    LOGGER.info(
        "Executing doc_edit: %s on lines %s",
        params.operation,
        ", ".join(str(n) for n in params.lines),
    )
    check_edit(params)

    locked = [number for number in params.lines if _is_locked(document, number)]
    if locked:
        joined = ", ".join(str(n) for n in locked)
        LOGGER.warning("Cannot edit locked lines: %s", joined)
        raise LineLockedError(message=f"Cannot edit locked lines: {joined}", lines=locked)

    match params.operation:
        case "replace":
            modified = _replace(document, params.lines, params.new_text or "")
        case "delete":
            modified = _delete(document, params.lines)
        case "insert":
            modified = _insert(document, params.lines, params.new_text or "")
        case _:
            raise UnknownOperationError(
                message=f"Unknown operation: {params.operation}", operation=params.operation
            )

    document.sync_metadata()
    LOGGER.info("Successfully modified %d line(s)", len(modified))
    return modified


def edit_document(document: Document, params: EditParams) -> EditResult:
    """Apply an edit and report the outcome as an :class:`EditResult`."""

    try:
        modified = apply_edit(document, params)
    except ToolError as exc:
        return EditResult(success=False, error=exc.message)
    return EditResult(success=True, modified_lines=modified)


def _is_locked(document: Document, number: int) -> bool:
    line = document.find_line(number)
    return line is not None and line.is_locked


def _replace(document: Document, targets: List[int], text: str) -> List[int]:
    modified: list[int] = []
    for number in targets:
        line = document.find_line(number)
        if line is None:
            continue
        line.text = text
        modified.append(number)
        LOGGER.debug("Replaced line %d", number)
    return modified


def _delete(document: Document, targets: List[int]) -> List[int]:
    doomed = set(targets)
    modified: list[int] = []
    kept: list[Line] = []
    for line in document.lines:
        if line.line_number in doomed:
            modified.append(line.line_number)
            LOGGER.debug("Deleted line %d", line.line_number)
        else:
            kept.append(line)
    document.lines[:] = kept
    document.renumber()
    return modified


def _insert(document: Document, targets: List[int], text: str) -> List[int]:
    modified: list[int] = []
    for number in targets:
        index = document.index_of(number)
        if index == -1:
            continue
        anchor = document.lines[index]
        # The half step keeps the new line between its anchor and the next
        # original line until the final renumber.
        document.lines.insert(
            index + 1,
            Line(line_number=number + 0.5, text=text, page_number=anchor.page_number),  # type: ignore[arg-type]
        )
        modified.append(number)
        LOGGER.debug("Inserted line after %d", number)
    document.renumber()
    return modified


class EditDocumentTool(BaseTool):
    """Replace, insert or delete unlocked lines."""

    name: ClassVar[str] = "doc_edit"
    description: ClassVar[str] = (
        "ACTUALLY edit and modify lines in the document. Use this whenever the user asks to "
        "change, update, add, or delete content. Operations: replace (change existing line "
        "text), insert (add new lines), delete (remove lines). This tool makes real changes to "
        "the document that will be saved and visible to the user. Cannot edit locked lines."
    )
    parameters: ClassVar[dict[str, Any]] = {
        "type": "object",
        "properties": {
            "operation": {
                "type": "string",
                "enum": list(OPERATIONS),
                "description": (
                    "The edit operation: \"replace\" to change line text, \"insert\" to add new "
                    "lines after specified line numbers, \"delete\" to remove lines"
                ),
            },
            "lines": {
                "type": "array",
                "items": {"type": "integer"},
                "description": (
                    "Line numbers to edit. For replace: lines to change. For insert: lines "
                    "after which to insert. For delete: lines to remove."
                ),
            },
            "newText": {
                "type": "string",
                "description": (
                    "New text content (required for replace and insert operations). For "
                    "replace, this replaces the entire line. For insert, this creates a new line."
                ),
            },
        },
        "required": ["operation", "lines"],
    }

    def validate(self, params: dict[str, Any]) -> None:
        # Domain checks first so the model gets the specific message.
        lines = params.get("lines")
        if isinstance(lines, list):
            new_text = params.get("newText", params.get("new_text"))
            check_edit(
                EditParams(
                    operation=str(params.get("operation") or ""),
                    lines=lines,
                    new_text=new_text if isinstance(new_text, str) else None,
                )
            )
        super().validate(params)

    def execute(self, document: Document, params: dict[str, Any]) -> dict[str, Any]:
        edit = EditParams.from_arguments(params)
        modified = apply_edit(document, edit)
        return {
            "operation": edit.operation,
            "modified_lines": modified,
            "total_lines": document.metadata.total_lines,
        }


__all__ = [
    "EditOperation",
    "OPERATIONS",
    "EditParams",
    "EditResult",
    "check_edit",
    "apply_edit",
    "edit_document",
    "EditDocumentTool",
]
