"""Dataclasses representing a parsed, line-addressable document."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Literal, Mapping, Optional

__all__ = [
    "DocumentFormat",
    "Line",
    "DocumentMetadata",
    "Document",
]

DocumentFormat = Literal["docx", "pdf", "latex", "markdown"]


def _utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""

    return datetime.now(timezone.utc)


def _pick(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


@dataclass(slots=True)
class Line:
    """A single addressable line of a parsed document."""

    line_number: int
    text: str
    page_number: int = 1
    is_locked: bool = False
    is_placeholder: bool = False
    placeholder_names: List[str] = field(default_factory=list)
    formatting: Dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Line":
        """Build a line from the camelCase wire shape (snake_case also accepted)."""

        names = _pick(payload, "placeholderNames", "placeholder_names", default=[])
        formatting = payload.get("formatting")
        return cls(
            line_number=int(_pick(payload, "lineNumber", "line_number", default=0)),
            text=str(payload.get("text", "")),
            page_number=int(_pick(payload, "pageNumber", "page_number", default=1)),
            is_locked=bool(_pick(payload, "isLocked", "is_locked", default=False)),
            is_placeholder=bool(_pick(payload, "isPlaceholder", "is_placeholder", default=False)),
            placeholder_names=[str(name) for name in names],
            formatting=dict(formatting) if isinstance(formatting, Mapping) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "lineNumber": self.line_number,
            "text": self.text,
            "pageNumber": self.page_number,
            "isLocked": self.is_locked,
            "isPlaceholder": self.is_placeholder,
        }
        if self.placeholder_names:
            payload["placeholderNames"] = list(self.placeholder_names)
        if self.formatting:
            payload["formatting"] = dict(self.formatting)
        return payload

    def render(self) -> str:
        """Return the ``Line N: text`` form handed to the language model."""

        return f"Line {self.line_number}: {self.text}"


@dataclass(slots=True)
class DocumentMetadata:
    """Counts and provenance information for a parsed document."""

    total_lines: int = 0
    total_pages: int = 1
    format: str = "markdown"
    file_name: str | None = None
    file_size: int | None = None
    uploaded_at: datetime | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DocumentMetadata":
        size = _pick(payload, "fileSize", "file_size")
        return cls(
            total_lines=int(_pick(payload, "totalLines", "total_lines", default=0)),
            total_pages=int(_pick(payload, "totalPages", "total_pages", default=1)),
            format=str(payload.get("format", "markdown")).lower(),
            file_name=_pick(payload, "fileName", "file_name"),
            file_size=int(size) if size is not None else None,
            uploaded_at=_parse_timestamp(_pick(payload, "uploadedAt", "uploaded_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "totalLines": self.total_lines,
            "totalPages": self.total_pages,
            "format": self.format,
        }
        if self.file_name is not None:
            payload["fileName"] = self.file_name
        if self.file_size is not None:
            payload["fileSize"] = self.file_size
        if self.uploaded_at is not None:
            payload["uploadedAt"] = self.uploaded_at.isoformat()
        return payload


@dataclass(slots=True)
class Document:
    """Ordered line list plus metadata, owned by a single chat turn.

    Line numbers are the addressing key used by citations and tools. They are
    dense and 1-based after every structural edit; ``renumber`` re-establishes
    that and ``sync_metadata`` keeps ``metadata.total_lines`` in step.
    """

    lines: List[Line] = field(default_factory=list)
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def from_lines(
        cls,
        texts: Iterable[str],
        *,
        file_name: str | None = None,
        format: str = "markdown",
        page_number: int = 1,
    ) -> "Document":
        """Build a single-page document from plain strings."""

        lines = [
            Line(line_number=index, text=text, page_number=page_number)
            for index, text in enumerate(texts, start=1)
        ]
        metadata = DocumentMetadata(
            total_lines=len(lines),
            total_pages=page_number,
            format=format,
            file_name=file_name,
            uploaded_at=_utcnow(),
        )
        return cls(lines=lines, metadata=metadata)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Document":
        raw_lines = payload.get("lines") or []
        lines = [Line.from_dict(item) for item in raw_lines if isinstance(item, Mapping)]
        metadata_payload = payload.get("metadata")
        if isinstance(metadata_payload, Mapping):
            metadata = DocumentMetadata.from_dict(metadata_payload)
        else:
            metadata = DocumentMetadata(total_lines=len(lines))
        document_id = payload.get("id")
        if document_id:
            return cls(lines=lines, metadata=metadata, id=str(document_id))
        return cls(lines=lines, metadata=metadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lines": [line.to_dict() for line in self.lines],
            "metadata": self.metadata.to_dict(),
        }

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self) -> Iterator[Line]:
        return iter(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def find_line(self, line_number: int) -> Line | None:
        for line in self.lines:
            if line.line_number == line_number:
                return line
        return None

    def index_of(self, line_number: int) -> int:
        """Return the list index of ``line_number`` or ``-1`` when absent."""

        for index, line in enumerate(self.lines):
            if line.line_number == line_number:
                return index
        return -1

    def lines_on_page(self, page_number: int) -> List[Line]:
        return [line for line in self.lines if line.page_number == page_number]

    def unlocked_lines(self) -> List[Line]:
        return [line for line in self.lines if not line.is_locked]

    def renumber(self) -> None:
        """Rewrite line numbers to ``1..len(lines)`` in current order."""

        for index, line in enumerate(self.lines, start=1):
            line.line_number = index

    def sync_metadata(self) -> None:
        self.metadata.total_lines = len(self.lines)
