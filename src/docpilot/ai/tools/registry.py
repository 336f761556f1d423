"""Closed catalog of the four document tools.

The model may only call the names in :class:`ToolName`; anything else is
rejected with :class:`UnknownToolError` by :meth:`ToolRegistry.dispatch`.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, List, Mapping

from ...documents.model import Document
from .analyze_document import AnalyzeDocumentTool
from .base import BaseTool, ToolResult
from .edit_document import EditDocumentTool
from .errors import InvalidParameterError, UnknownToolError
from .read_document import ReadDocumentTool
from .search_document import DEFAULT_LIMIT, MAX_LIMIT, SearchDocumentTool

LOGGER = logging.getLogger(__name__)


class ToolName(str, Enum):
    ANALYZE = "doc_analyze"
    SEARCH = "doc_search"
    READ = "doc_read"
    EDIT = "doc_edit"

    @classmethod
    def parse(cls, name: str) -> "ToolName":
        try:
            return cls(name)
        except ValueError:
            raise UnknownToolError(message=f"Unknown tool: {name}", tool_name=name) from None


class ToolRegistry:
    """Holds one instance of each tool and routes model tool calls to them."""

    def __init__(self, *, search_default_limit: int = DEFAULT_LIMIT, search_max_limit: int = MAX_LIMIT) -> None:
        self.analyze = AnalyzeDocumentTool()
        self.search = SearchDocumentTool(default_limit=search_default_limit, max_limit=search_max_limit)
        self.read = ReadDocumentTool()
        self.edit = EditDocumentTool()

    def tool(self, name: ToolName) -> BaseTool:
        match name:
            case ToolName.ANALYZE:
                return self.analyze
            case ToolName.SEARCH:
                return self.search
            case ToolName.READ:
                return self.read
            case ToolName.EDIT:
                return self.edit

    def specs(self) -> List[dict[str, Any]]:
        """Return OpenAI ``tools`` entries for every catalog tool."""

        return [self.tool(name).spec() for name in ToolName]

    def dispatch(
        self,
        name: str | ToolName,
        arguments: Mapping[str, Any] | str | None,
        document: Document,
    ) -> ToolResult:
        """Run the tool called ``name`` against ``document``.

        ``arguments`` may be the raw JSON string sent by the model. Malformed
        JSON becomes a failed result.

        Raises:
            UnknownToolError: when ``name`` is not in the catalog.
        """

        tool_name = name if isinstance(name, ToolName) else ToolName.parse(name)
        tool = self.tool(tool_name)
        try:
            params = coerce_arguments(arguments)
        except InvalidParameterError as exc:
            LOGGER.warning("Rejected arguments for %s: %s", tool_name.value, exc)
            return ToolResult(success=False, error=exc)
        LOGGER.info("Dispatching %s", tool_name.value)
        return tool.run(document, params)


def coerce_arguments(arguments: Mapping[str, Any] | str | None) -> dict[str, Any]:
    """Normalize tool-call arguments to a dictionary."""

    if arguments is None:
        return {}
    if isinstance(arguments, Mapping):
        return dict(arguments)
    text = str(arguments).strip()
    if not text:
        return {}
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidParameterError(
            message=f"Tool arguments are not valid JSON: {exc.msg}",
            value=text,
            expected="JSON object",
        ) from exc
    if not isinstance(decoded, Mapping):
        raise InvalidParameterError(
            message="Tool arguments must be a JSON object",
            value=decoded,
            expected="JSON object",
        )
    return dict(decoded)


__all__ = ["ToolName", "ToolRegistry", "coerce_arguments"]
