"""Tests for resolving citations against a document."""

from __future__ import annotations

from docpilot.citations import format_citations_as_context, locked_lines_in_citations, parse_citations
from docpilot.citations.resolver import (
    CONTEXT_FOOTER,
    CONTEXT_HEADER,
    DOCUMENT_NOT_AVAILABLE,
    NOT_FOUND,
    get_lines_by_numbers,
    get_lines_by_page,
    resolve_citations,
    validate_line_numbers,
)
from docpilot.documents.model import Document

from tests.helpers import make_document


def _document() -> Document:
    return make_document(
        ["Title", "Intro", "Body one", "Body two", "Appendix"],
        pages={1: 1, 2: 1, 3: 2, 4: 2, 5: 3},
        locked=[4],
    )


def test_line_citation_renders_line_prefix() -> None:
    resolved = resolve_citations(parse_citations("@l2"), _document())

    assert resolved[0].resolved_content == "Line 2: Intro"


def test_missing_line_uses_not_found_sentinel() -> None:
    resolved = resolve_citations(parse_citations("@l42"), _document())

    assert resolved[0].resolved_content == f"Line 42: {NOT_FOUND}"


def test_range_keeps_existing_lines_only() -> None:
    resolved = resolve_citations(parse_citations("@l4-9"), _document())

    assert resolved[0].resolved_content == "Line 4: Body two\nLine 5: Appendix"
    assert resolved[0].line_numbers == [4, 5, 6, 7, 8, 9]


def test_range_entirely_outside_document() -> None:
    resolved = resolve_citations(parse_citations("@l10-12"), _document())

    assert resolved[0].resolved_content == f"Lines 10-12: {NOT_FOUND}"


def test_page_citation_fills_line_numbers() -> None:
    resolved = resolve_citations(parse_citations("@p2"), _document())

    assert resolved[0].line_numbers == [3, 4]
    assert resolved[0].resolved_content == "Page 2:\nLine 3: Body one\nLine 4: Body two"


def test_missing_page_uses_not_found_sentinel() -> None:
    resolved = resolve_citations(parse_citations("@p9"), _document())

    assert resolved[0].resolved_content == f"Page 9: {NOT_FOUND}"
    assert resolved[0].line_numbers == []


def test_resolution_returns_copies() -> None:
    parsed = parse_citations("@p2")

    resolved = resolve_citations(parsed, _document())

    assert parsed[0].line_numbers == []
    assert parsed[0].resolved_content == ""
    assert resolved[0] is not parsed[0]


def test_empty_or_missing_document_degrades_every_citation() -> None:
    parsed = parse_citations("@l1 and @p1")

    for document in (None, Document()):
        resolved = resolve_citations(parsed, document)
        assert [c.resolved_content for c in resolved] == [DOCUMENT_NOT_AVAILABLE] * 2


def test_context_block_is_wrapped_in_banners() -> None:
    resolved = resolve_citations(parse_citations("@l1 @l2"), _document())

    context = format_citations_as_context(resolved)

    assert context == f"{CONTEXT_HEADER}\n\nLine 1: Title\n\nLine 2: Intro\n\n{CONTEXT_FOOTER}"
    assert format_citations_as_context([]) == ""


def test_locked_lines_in_citations_follow_citation_order() -> None:
    document = _document()
    resolved = resolve_citations(parse_citations("@p2 and @l4 and @l1"), document)

    assert locked_lines_in_citations(resolved, document) == [4]
    assert locked_lines_in_citations(resolved, None) == []


def test_line_lookup_helpers() -> None:
    document = _document()

    assert [line.text for line in get_lines_by_numbers([5, 7, 1], document)] == ["Appendix", "Title"]
    assert [line.line_number for line in get_lines_by_page(1, document)] == [1, 2]
    assert validate_line_numbers([1, 6, 3, 0], document) == ([1, 3], [6, 0])
