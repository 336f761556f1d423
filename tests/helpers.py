"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Sequence

from docpilot.ai.orchestration.types import ModelReply, ToolCall
from docpilot.documents.model import Document, DocumentMetadata, Line


class FakeBackend:
    """Scripted :class:`ChatBackend` returning queued replies in order.

    Every call is recorded as ``(context, tools)`` so tests can assert on the
    prompt text and on whether tools were offered. Queue an exception instance
    to make that call fail.

    Example:
        backend = FakeBackend([reply(call("doc_search", query="investor")), reply(text="Done")])
    """

    def __init__(self, replies: Iterable[ModelReply | BaseException] = ()) -> None:
        self._replies = list(replies)
        self.calls: list[tuple[str, list[Mapping[str, Any]] | None]] = []
        self.closed = False

    async def chat(
        self,
        context: str,
        *,
        tools: Sequence[Mapping[str, Any]] | None = None,
    ) -> ModelReply:
        self.calls.append((context, list(tools) if tools else None))
        if not self._replies:
            return ModelReply()
        item = self._replies.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


def call(name: str, *, raw: bool = False, **arguments: Any) -> ToolCall:
    """Build a tool call; ``raw`` sends the arguments as a JSON string."""

    return ToolCall(name=name, arguments=json.dumps(arguments) if raw else arguments)


def reply(*calls: ToolCall, text: str = "") -> ModelReply:
    return ModelReply(text=text, tool_calls=tuple(calls))


def make_document(
    texts: Sequence[str],
    *,
    locked: Iterable[int] = (),
    pages: Mapping[int, int] | None = None,
    file_name: str = "safe.docx",
) -> Document:
    """Build a document from ``texts`` with optional locked lines and page map."""

    locked_numbers = set(locked)
    page_map = dict(pages or {})
    lines = [
        Line(
            line_number=number,
            text=text,
            page_number=page_map.get(number, 1),
            is_locked=number in locked_numbers,
        )
        for number, text in enumerate(texts, start=1)
    ]
    total_pages = max([line.page_number for line in lines], default=1)
    return Document(
        lines=lines,
        metadata=DocumentMetadata(
            total_lines=len(lines),
            total_pages=total_pages,
            format="docx",
            file_name=file_name,
        ),
    )


SAFE_TEXTS: tuple[str, ...] = (
    "SAFE AGREEMENT",
    "Company: [COMPANY NAME]",
    "Investor Name: [___]",
    "Purchase Amount: $[___]",
    "Date of Safe: [DATE]",
    "Governing Law: Delaware",
)
