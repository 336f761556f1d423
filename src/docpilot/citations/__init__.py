"""Inline citation grammar and resolution."""

from .parser import extract_citation_references, has_citations, highlight_citations, parse_citations
from .resolver import format_citations_as_context, locked_lines_in_citations, resolve_citations
from .types import Citation, CitationType

__all__ = [
    "Citation",
    "CitationType",
    "parse_citations",
    "extract_citation_references",
    "has_citations",
    "highlight_citations",
    "resolve_citations",
    "format_citations_as_context",
    "locked_lines_in_citations",
]
