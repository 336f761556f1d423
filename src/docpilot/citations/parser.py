"""Citation parser for ``@line``, ``@l5-10`` and ``@page`` tokens in chat text.

Grammar (case-insensitive)::

    @line10 | @l10          single line
    @line5-10 | @l5-10      inclusive line range
    @page3 | @p3            whole page

Ranges are collected before single lines so that a range subsumes the lines it
covers. Identical spans are reported once; the first occurrence wins.
"""

from __future__ import annotations

import logging
import re
from typing import List

from .types import Citation

__all__ = [
    "RANGE_PATTERN",
    "LINE_PATTERN",
    "PAGE_PATTERN",
    "MAX_RANGE_SPAN",
    "parse_citations",
    "extract_citation_references",
    "has_citations",
    "highlight_citations",
]

LOGGER = logging.getLogger(__name__)

RANGE_PATTERN = re.compile(r"@(?:line|l)(\d+)-(\d+)", re.IGNORECASE)
# A single-line token must not be the head of a range token (valid or not).
LINE_PATTERN = re.compile(r"@(?:line|l)(\d+)(?!\d|-\d)", re.IGNORECASE)
PAGE_PATTERN = re.compile(r"@(?:page|p)(\d+)", re.IGNORECASE)
_ANY_PATTERN = re.compile(
    r"@(?:line|l)\d+-\d+|@(?:line|l)\d+(?!\d)|@(?:page|p)\d+",
    re.IGNORECASE,
)

# Widest range accepted from chat text.
MAX_RANGE_SPAN = 5_000


def parse_citations(text: str | None) -> List[Citation]:
    """Return the citations found in ``text`` ordered by first appearance.

    Never raises; malformed or empty input yields an empty list.
    """

    if not text:
        return []
    try:
        return _parse(text)
    except Exception:  # pragma: no cover - the grammar is regex-only
        LOGGER.exception("Citation parsing failed; ignoring citations")
        return []


def _parse(text: str) -> List[Citation]:
    found: list[tuple[int, Citation]] = []
    seen: set[str] = set()
    ranges: list[tuple[int, int]] = []

    for match in RANGE_PATTERN.finditer(text):
        start, end = int(match.group(1)), int(match.group(2))
        reference = match.group(0)
        if start > end:
            LOGGER.warning("Invalid range citation %s (start > end)", reference)
            continue
        if end - start + 1 > MAX_RANGE_SPAN:
            LOGGER.warning("Range citation %s spans more than %d lines", reference, MAX_RANGE_SPAN)
            continue
        key = f"range:{start}-{end}"
        if key in seen:
            continue
        seen.add(key)
        ranges.append((start, end))
        found.append(
            (
                match.start(),
                Citation(type="range", reference=reference, line_numbers=list(range(start, end + 1))),
            )
        )
        LOGGER.debug("Found range citation %s (lines %d-%d)", reference, start, end)

    for match in LINE_PATTERN.finditer(text):
        number = int(match.group(1))
        if any(start <= number <= end for start, end in ranges):
            continue
        key = f"line:{number}"
        if key in seen:
            continue
        seen.add(key)
        found.append((match.start(), Citation(type="line", reference=match.group(0), line_numbers=[number])))
        LOGGER.debug("Found line citation %s", match.group(0))

    for match in PAGE_PATTERN.finditer(text):
        key = f"page:{int(match.group(1))}"
        if key in seen:
            continue
        seen.add(key)
        found.append((match.start(), Citation(type="page", reference=match.group(0))))
        LOGGER.debug("Found page citation %s", match.group(0))

    found.sort(key=lambda item: item[0])
    citations = [citation for _, citation in found]
    if citations:
        LOGGER.info("Parsed %d citation(s)", len(citations))
    return citations


def extract_citation_references(text: str | None) -> List[str]:
    """Return every raw citation token in ``text``, de-duplicated in order."""

    if not text:
        return []
    references: list[str] = []
    for match in _ANY_PATTERN.finditer(text):
        token = match.group(0)
        if token not in references:
            references.append(token)
    return references


def has_citations(text: str | None) -> bool:
    return bool(text) and _ANY_PATTERN.search(text or "") is not None


def highlight_citations(text: str | None) -> str:
    """Wrap each citation token in ``<cite>`` markers for display."""

    if not text:
        return text or ""
    return _ANY_PATTERN.sub(lambda match: f"<cite>{match.group(0)}</cite>", text)
