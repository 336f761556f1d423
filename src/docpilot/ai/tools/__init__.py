"""Document tools exposed to the language model."""

from .analyze_document import AnalyzeDocumentTool, AnalyzeResult, analyze_document
from .base import BaseTool, ToolResult
from .edit_document import EditDocumentTool, EditParams, EditResult, apply_edit, edit_document
from .errors import (
    DocumentEmptyError,
    ErrorCode,
    InvalidParameterError,
    LineLockedError,
    MissingParameterError,
    ToolError,
    UnknownOperationError,
    UnknownToolError,
)
from .read_document import ReadDocumentTool, ReadResult, read_lines
from .registry import ToolName, ToolRegistry
from .search_document import SearchDocumentTool, SearchResult, search_document

__all__ = [
    "AnalyzeDocumentTool",
    "AnalyzeResult",
    "analyze_document",
    "BaseTool",
    "ToolResult",
    "EditDocumentTool",
    "EditParams",
    "EditResult",
    "apply_edit",
    "edit_document",
    "ErrorCode",
    "ToolError",
    "DocumentEmptyError",
    "InvalidParameterError",
    "LineLockedError",
    "MissingParameterError",
    "UnknownOperationError",
    "UnknownToolError",
    "ReadDocumentTool",
    "ReadResult",
    "read_lines",
    "ToolName",
    "ToolRegistry",
    "SearchDocumentTool",
    "SearchResult",
    "search_document",
]
