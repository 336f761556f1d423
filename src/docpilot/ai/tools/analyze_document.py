"""Tool returning every unlocked line of the document."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, ClassVar

from ...documents.model import Document
from .base import BaseTool
from .errors import DocumentEmptyError

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AnalyzeResult:
    success: bool
    content: str
    total_lines: int


def analyze_document(document: Document | None, reason: str = "") -> AnalyzeResult:
    """Render the unlocked lines of ``document`` as ``Line N: text`` rows.

    ``reason`` is recorded in the log only. Locked lines are never part of the
    output and are not counted in ``total_lines``.
    """

    LOGGER.info("Executing doc_analyze: %s", reason or "(no reason given)")
    if document is None or document.is_empty:
        return AnalyzeResult(success=False, content="Document is empty", total_lines=0)

    unlocked = document.unlocked_lines()
    locked_count = len(document) - len(unlocked)
    if locked_count:
        LOGGER.info("Filtered out %d locked line(s) from analysis", locked_count)
    LOGGER.info("Returning %d unlocked line(s)", len(unlocked))
    return AnalyzeResult(
        success=True,
        content="\n".join(line.render() for line in unlocked),
        total_lines=len(unlocked),
    )


class AnalyzeDocumentTool(BaseTool):
    """Return the full unlocked document so the model can pick lines to edit."""

    name: ClassVar[str] = "doc_analyze"
    description: ClassVar[str] = (
        "Get the FULL document content to analyze and identify which lines to edit. "
        "Use this when: 1) doc_search returns 0 results, 2) user requests multiple changes "
        "at once, 3) you need to understand document structure. This returns the entire "
        "document with line numbers so you can see everything and decide what to edit."
    )
    parameters: ClassVar[dict[str, Any]] = {
        "type": "object",
        "properties": {
            "reason": {
                "type": "string",
                "description": (
                    "Why you need to analyze the full document (e.g., \"search returned no "
                    "results\", \"need to understand document structure\")"
                ),
            },
        },
        "required": ["reason"],
    }

    def execute(self, document: Document, params: dict[str, Any]) -> dict[str, Any]:
        reason = str(params.get("reason") or "")
        result = analyze_document(document, reason)
        if not result.success:
            raise DocumentEmptyError(message=result.content)
        return {
            "reason": reason,
            "content": result.content,
            "total_lines": result.total_lines,
        }


__all__ = ["AnalyzeResult", "analyze_document", "AnalyzeDocumentTool"]
