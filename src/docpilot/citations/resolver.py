"""Resolve parsed citations against the current document state."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Iterable, List, Sequence

from ..documents.model import Document, Line
from .types import Citation

__all__ = [
    "NOT_FOUND",
    "DOCUMENT_NOT_AVAILABLE",
    "CONTEXT_HEADER",
    "CONTEXT_FOOTER",
    "resolve_citations",
    "resolve_citation",
    "format_citations_as_context",
    "get_lines_by_numbers",
    "get_lines_by_page",
    "validate_line_numbers",
    "locked_lines_in_citations",
]

LOGGER = logging.getLogger(__name__)

NOT_FOUND = "[Not found]"
DOCUMENT_NOT_AVAILABLE = "[Document not available]"
CONTEXT_HEADER = "--- Referenced Content ---"
CONTEXT_FOOTER = "--- End Referenced Content ---"

_PAGE_REFERENCE = re.compile(r"@(?:page|p)(\d+)", re.IGNORECASE)


def resolve_citations(citations: Sequence[Citation], document: Document | None) -> List[Citation]:
    """Return resolved copies of ``citations``.

    Missing lines and pages become sentinel text rather than errors, and an
    empty or absent document degrades every citation to
    ``[Document not available]``.
    """

    if not citations:
        return []
    if document is None or document.is_empty:
        LOGGER.warning("Document is empty or missing; %d citation(s) left unresolved", len(citations))
        return [replace(citation, resolved_content=DOCUMENT_NOT_AVAILABLE) for citation in citations]

    resolved = [resolve_citation(citation, document) for citation in citations]
    LOGGER.info("Resolved %d citation(s)", len(resolved))
    return resolved


def resolve_citation(citation: Citation, document: Document) -> Citation:
    try:
        if citation.type == "line":
            return _resolve_line(citation, document)
        if citation.type == "range":
            return _resolve_range(citation, document)
        if citation.type == "page":
            return _resolve_page(citation, document)
    except Exception:
        LOGGER.exception("Failed to resolve citation %s", citation.reference)
        return replace(citation, resolved_content=f"[Error resolving {citation.reference}]")
    LOGGER.error("Unknown citation type: %s", citation.type)
    return replace(citation, resolved_content="[Unknown citation type]")


def _resolve_line(citation: Citation, document: Document) -> Citation:
    number = citation.line_numbers[0]
    line = document.find_line(number)
    if line is None:
        LOGGER.warning("Line %d not found in document", number)
        return replace(citation, resolved_content=f"Line {number}: {NOT_FOUND}")
    return replace(citation, resolved_content=line.render())


def _resolve_range(citation: Citation, document: Document) -> Citation:
    start, end = citation.line_numbers[0], citation.line_numbers[-1]
    lines = [line for line in document.lines if start <= line.line_number <= end]
    if not lines:
        LOGGER.warning("Range %d-%d not found in document", start, end)
        return replace(citation, resolved_content=f"Lines {start}-{end}: {NOT_FOUND}")
    LOGGER.debug("Resolved range %d-%d (%d lines)", start, end, len(lines))
    return replace(citation, resolved_content=_render(lines))


def _resolve_page(citation: Citation, document: Document) -> Citation:
    match = _PAGE_REFERENCE.search(citation.reference)
    if match is None:
        return replace(citation, resolved_content="[Invalid page reference]")
    page = int(match.group(1))
    lines = document.lines_on_page(page)
    if not lines:
        LOGGER.warning("Page %d not found in document", page)
        return replace(citation, resolved_content=f"Page {page}: {NOT_FOUND}")
    return replace(
        citation,
        line_numbers=[line.line_number for line in lines],
        resolved_content=f"Page {page}:\n{_render(lines)}",
    )


def _render(lines: Iterable[Line]) -> str:
    return "\n".join(line.render() for line in lines)


def format_citations_as_context(citations: Sequence[Citation]) -> str:
    """Join resolved content between the referenced-content banners."""

    if not citations:
        return ""
    blocks = [CONTEXT_HEADER, *(citation.resolved_content for citation in citations), CONTEXT_FOOTER]
    return "\n\n".join(blocks)


def get_lines_by_numbers(line_numbers: Iterable[int], document: Document) -> List[Line]:
    lines = [document.find_line(number) for number in line_numbers]
    return [line for line in lines if line is not None]


def get_lines_by_page(page_number: int, document: Document) -> List[Line]:
    return document.lines_on_page(page_number)


def validate_line_numbers(line_numbers: Iterable[int], document: Document) -> tuple[list[int], list[int]]:
    """Split ``line_numbers`` into ``(valid, invalid)`` for ``document``."""

    existing = {line.line_number for line in document.lines}
    valid: list[int] = []
    invalid: list[int] = []
    for number in line_numbers:
        (valid if number in existing else invalid).append(number)
    if invalid:
        LOGGER.warning("Invalid line numbers: %s", ", ".join(str(n) for n in invalid))
    return valid, invalid


def locked_lines_in_citations(citations: Sequence[Citation], document: Document | None) -> List[int]:
    """Return locked line numbers referenced by ``citations`` in cited order."""

    if document is None:
        return []
    locked: list[int] = []
    for citation in citations:
        for number in citation.line_numbers:
            line = document.find_line(number)
            if line is not None and line.is_locked and number not in locked:
                locked.append(number)
    return locked
