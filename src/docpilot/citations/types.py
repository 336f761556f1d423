"""Citation records extracted from chat text."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal

__all__ = ["CitationType", "Citation"]

CitationType = Literal["line", "range", "page"]


@dataclass(slots=True)
class Citation:
    """Structured reference to a line, an inclusive line range, or a page.

    ``line_numbers`` is empty for page citations until the resolver maps the
    page onto the document. ``resolved_content`` stays empty until resolution.
    """

    type: CitationType
    reference: str
    line_numbers: List[int] = field(default_factory=list)
    resolved_content: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "reference": self.reference,
            "lineNumbers": list(self.line_numbers),
            "resolvedContent": self.resolved_content,
        }
