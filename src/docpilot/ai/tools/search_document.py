"""Keyword search over document lines.

Search looks at locked lines too: it only reports *where* a field lives, the
content handed to the model for editing comes from ``doc_read``/``doc_analyze``
which both filter locked lines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, ClassVar, List

from ...documents.model import Document
from .base import BaseTool

LOGGER = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
MAX_LIMIT = 20
EXACT_MATCH_SCORE = 1.0
PARTIAL_MATCH_SCORE = 0.5


@dataclass(slots=True)
class SearchResult:
    """A single matching line and its relevance score."""

    line_number: int
    text: str
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {"line_number": self.line_number, "text": self.text, "score": self.score}


def search_document(
    document: Document,
    query: str,
    limit: int | None = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> List[SearchResult]:
    """Case-insensitive substring search returning the best ``limit`` lines.

    Full-line matches score 1.0 and partial matches 0.5. Ties keep document
    order. A blank query returns an empty list.
    """

    LOGGER.info("Executing doc_search: %r", query)
    if not query or not query.strip():
        LOGGER.warning("Empty search query")
        return []

    if limit is None or limit <= 0:
        limit = DEFAULT_LIMIT
    needle = query.lower()
    results: list[SearchResult] = []
    for line in document.lines:
        haystack = line.text.lower()
        if needle not in haystack:
            continue
        score = EXACT_MATCH_SCORE if haystack == needle else PARTIAL_MATCH_SCORE
        results.append(SearchResult(line_number=line.line_number, text=line.text, score=score))

    results.sort(key=lambda result: result.score, reverse=True)
    limited = results[: min(limit, max_limit)]
    LOGGER.info("Found %d result(s), returning top %d", len(results), len(limited))
    return limited


class SearchDocumentTool(BaseTool):
    """Find the line numbers holding a given field name."""

    name: ClassVar[str] = "doc_search"
    description: ClassVar[str] = (
        "Search for WHERE to edit by finding lines with specific field names. Use 1-2 WORD "
        "keywords ONLY - just the field name you're looking for (e.g., \"investor\", "
        "\"purchase\", \"date\", \"company\"). Do NOT include values (NOT \"investor Sebastian "
        "Grol\", NOT \"date Oct 30\"). You're searching for the LOCATION to edit, not the VALUE "
        "to set. Returns up to 5 most relevant lines with their line numbers."
    )
    parameters: ClassVar[dict[str, Any]] = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": (
                    "Single FIELD NAME to search for (e.g., \"investor\" or \"purchase\" or "
                    "\"date\"). NEVER include values like names, amounts, or dates. Just the "
                    "field name!"
                ),
            },
            "limit": {
                "type": "integer",
                "description": f"Maximum number of results to return (default: {DEFAULT_LIMIT}, max: {MAX_LIMIT})",
            },
        },
        "required": ["query"],
    }

    def __init__(self, *, default_limit: int = DEFAULT_LIMIT, max_limit: int = MAX_LIMIT) -> None:
        self.default_limit = default_limit
        self.max_limit = max_limit

    def execute(self, document: Document, params: dict[str, Any]) -> dict[str, Any]:
        query = str(params.get("query") or "")
        limit = params.get("limit")
        results = search_document(
            document,
            query,
            limit=int(limit) if limit is not None else self.default_limit,
            max_limit=self.max_limit,
        )
        return {
            "query": query,
            "results": [result.to_dict() for result in results],
            "count": len(results),
        }


__all__ = [
    "DEFAULT_LIMIT",
    "MAX_LIMIT",
    "SearchResult",
    "search_document",
    "SearchDocumentTool",
]
