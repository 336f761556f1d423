"""Unit tests for the four document tools."""

from __future__ import annotations

from copy import deepcopy

import pytest

from docpilot.ai.tools import (
    AnalyzeDocumentTool,
    EditDocumentTool,
    ReadDocumentTool,
    SearchDocumentTool,
)
from docpilot.ai.tools.analyze_document import analyze_document
from docpilot.ai.tools.edit_document import EditParams, apply_edit, check_edit, edit_document
from docpilot.ai.tools.errors import (
    ErrorCode,
    LineLockedError,
    MissingParameterError,
    ToolError,
    UnknownOperationError,
)
from docpilot.ai.tools.read_document import read_lines
from docpilot.ai.tools.search_document import search_document
from docpilot.documents.model import Document

from tests.helpers import SAFE_TEXTS, make_document


# ---------------------------------------------------------------------------
# doc_analyze
# ---------------------------------------------------------------------------


def test_analyze_excludes_locked_lines(locked_safe_document: Document) -> None:
    result = AnalyzeDocumentTool().run(locked_safe_document, {"reason": "need structure"})

    assert result.success
    assert result.data is not None
    assert "Investor Name" not in result.data["content"]
    assert result.data["content"].splitlines()[0] == "Line 1: SAFE AGREEMENT"
    assert result.data["total_lines"] == len(SAFE_TEXTS) - 1
    assert result.data["reason"] == "need structure"


def test_analyze_empty_document_fails() -> None:
    result = AnalyzeDocumentTool().run(Document(), {"reason": "x"})

    assert not result.success
    assert result.error is not None
    assert result.error.error_code == ErrorCode.DOCUMENT_EMPTY
    assert result.error_message == "Document is empty"
    assert analyze_document(None).success is False


def test_analyze_requires_reason(safe_document: Document) -> None:
    result = AnalyzeDocumentTool().run(safe_document, {})

    assert not result.success
    assert result.error is not None
    assert result.error.error_code == ErrorCode.INVALID_PARAMETER
    assert "reason" in result.error_message


# ---------------------------------------------------------------------------
# doc_search
# ---------------------------------------------------------------------------


def test_search_is_case_insensitive_and_includes_locked_lines(locked_safe_document: Document) -> None:
    results = search_document(locked_safe_document, "INVESTOR")

    assert [(r.line_number, r.score) for r in results] == [(3, 0.5)]


def test_search_scores_full_line_matches_first() -> None:
    document = make_document(["Company: Acme", "company", "Other company"])

    results = search_document(document, "Company")

    assert [(r.line_number, r.score) for r in results] == [(2, 1.0), (1, 0.5), (3, 0.5)]


def test_search_limit_defaults_and_caps() -> None:
    document = make_document([f"field {n}" for n in range(30)])

    assert len(search_document(document, "field")) == 5
    assert len(search_document(document, "field", limit=0)) == 5
    assert len(search_document(document, "field", limit=100)) == 20
    assert search_document(document, "   ") == []


def test_search_tool_payload(safe_document: Document) -> None:
    tool = SearchDocumentTool(default_limit=1)

    result = tool.run(safe_document, {"query": "name"})

    assert result.success
    assert result.data == {
        "query": "name",
        "results": [{"line_number": 2, "text": "Company: [COMPANY NAME]", "score": 0.5}],
        "count": 1,
    }


def test_search_no_matches_is_success_with_zero_count(safe_document: Document) -> None:
    result = SearchDocumentTool().run(safe_document, {"query": "valuation"})

    assert result.success
    assert result.data is not None
    assert result.data["count"] == 0


# ---------------------------------------------------------------------------
# doc_read
# ---------------------------------------------------------------------------


def test_read_skips_locked_and_missing_lines(locked_safe_document: Document) -> None:
    result = read_lines(locked_safe_document, [2, 3, 99])

    assert result.success
    assert result.render() == "Line 2: Company: [COMPANY NAME]"
    assert result.skipped_locked == [3]
    assert result.skipped_missing == [99]


def test_read_tool_payload(locked_safe_document: Document) -> None:
    result = ReadDocumentTool().run(locked_safe_document, {"lines": [1, 3]})

    assert result.success
    assert result.data == {
        "content": "Line 1: SAFE AGREEMENT",
        "line_numbers": [1],
        "count": 1,
        "skipped_locked": 1,
        "skipped_missing": 0,
    }


def test_read_requires_line_numbers(safe_document: Document) -> None:
    result = ReadDocumentTool().run(safe_document, {"lines": []})

    assert not result.success
    assert isinstance(result.error, MissingParameterError)
    assert result.error_message == "No line numbers provided"
    assert read_lines(safe_document, []).error == "No line numbers provided"


def test_read_rejects_non_integer_items(safe_document: Document) -> None:
    result = ReadDocumentTool().run(safe_document, {"lines": ["two"]})

    assert not result.success
    assert result.error is not None
    assert result.error.error_code == ErrorCode.INVALID_PARAMETER


# ---------------------------------------------------------------------------
# doc_edit
# ---------------------------------------------------------------------------


def test_replace_changes_text_only(safe_document: Document) -> None:
    modified = apply_edit(safe_document, EditParams("replace", [3], "Investor Name: John Doe"))

    assert modified == [3]
    assert safe_document.lines[2].text == "Investor Name: John Doe"
    assert [line.line_number for line in safe_document] == list(range(1, len(SAFE_TEXTS) + 1))


def test_replace_skips_missing_lines(safe_document: Document) -> None:
    modified = apply_edit(safe_document, EditParams("replace", [2, 40], "Company: Acme"))

    assert modified == [2]


def test_delete_renumbers_densely(safe_document: Document) -> None:
    modified = apply_edit(safe_document, EditParams("delete", [2, 4]))

    assert modified == [2, 4]
    assert [line.text for line in safe_document] == [
        "SAFE AGREEMENT",
        "Investor Name: [___]",
        "Date of Safe: [DATE]",
        "Governing Law: Delaware",
    ]
    assert [line.line_number for line in safe_document] == [1, 2, 3, 4]
    assert safe_document.metadata.total_lines == 4


def test_insert_places_new_lines_after_each_anchor() -> None:
    document = make_document(["a", "b", "c"], pages={3: 2})

    modified = apply_edit(document, EditParams("insert", [1, 3], "new"))

    assert modified == [1, 3]
    assert [line.text for line in document] == ["a", "new", "b", "c", "new"]
    assert [line.line_number for line in document] == [1, 2, 3, 4, 5]
    assert document.lines[4].page_number == 2
    assert document.metadata.total_lines == 5


def test_locked_target_rejects_whole_edit_and_leaves_document_identical(
    locked_safe_document: Document,
) -> None:
    before = deepcopy(locked_safe_document.to_dict())

    with pytest.raises(LineLockedError) as excinfo:
        apply_edit(locked_safe_document, EditParams("replace", [2, 3], "X"))

    assert excinfo.value.message == "Cannot edit locked lines: 3"
    assert excinfo.value.lines == [3]
    assert locked_safe_document.to_dict() == before


@pytest.mark.parametrize("operation", ["delete", "insert"])
def test_structural_edit_on_locked_line_is_rejected(locked_safe_document: Document, operation: str) -> None:
    before = deepcopy(locked_safe_document.to_dict())

    result = edit_document(locked_safe_document, EditParams(operation, [3], "text"))

    assert not result.success
    assert result.error == "Cannot edit locked lines: 3"
    assert locked_safe_document.to_dict() == before


def test_check_edit_messages() -> None:
    with pytest.raises(MissingParameterError, match="No line numbers provided"):
        check_edit(EditParams("replace", [], "x"))
    with pytest.raises(MissingParameterError, match="Operation is required"):
        check_edit(EditParams("", [1], "x"))
    with pytest.raises(MissingParameterError, match="New text is required for insert operation"):
        check_edit(EditParams("insert", [1], ""))
    check_edit(EditParams("move", [1], "x"))


def test_unknown_operation_is_rejected_after_locked_check(locked_safe_document: Document) -> None:
    before = deepcopy(locked_safe_document.to_dict())

    with pytest.raises(LineLockedError, match="Cannot edit locked lines: 3"):
        apply_edit(locked_safe_document, EditParams("move", [3]))
    with pytest.raises(UnknownOperationError, match="Unknown operation: move") as excinfo:
        apply_edit(locked_safe_document, EditParams("move", [2]))

    assert excinfo.value.to_dict()["operation"] == "move"
    assert locked_safe_document.to_dict() == before


def test_edit_tool_accepts_camel_and_snake_case_text(safe_document: Document) -> None:
    tool = EditDocumentTool()

    first = tool.run(safe_document, {"operation": "replace", "lines": [2], "newText": "Company: Acme"})
    second = tool.run(safe_document, {"operation": "replace", "lines": [3], "new_text": "Investor: Jo"})

    assert first.success and second.success
    assert first.data == {"operation": "replace", "modified_lines": [2], "total_lines": len(SAFE_TEXTS)}
    assert safe_document.lines[2].text == "Investor: Jo"


def test_edit_tool_reports_locked_failure(locked_safe_document: Document) -> None:
    result = EditDocumentTool().run(locked_safe_document, {"operation": "delete", "lines": [3]})

    assert not result.success
    assert result.error is not None
    assert result.error.error_code == ErrorCode.LINE_LOCKED
    assert result.to_dict()["error"] == ErrorCode.LINE_LOCKED


def test_edit_tool_schema_rejects_bad_operation_type(safe_document: Document) -> None:
    result = EditDocumentTool().run(safe_document, {"operation": "replace", "lines": "3", "newText": "x"})

    assert not result.success
    assert result.error is not None
    assert result.error.error_code == ErrorCode.INVALID_PARAMETER
    assert result.error_message.startswith("Invalid arguments for doc_edit")


def test_tool_errors_serialize_with_code_and_message() -> None:
    error = LineLockedError(message="Cannot edit locked lines: 4", lines=[4])

    assert isinstance(error, ToolError)
    assert str(error) == "[line_locked] Cannot edit locked lines: 4"
    assert error.to_dict()["message"] == "Cannot edit locked lines: 4"


def test_tool_spec_shape() -> None:
    spec = EditDocumentTool().spec()

    assert spec["type"] == "function"
    assert spec["function"]["name"] == "doc_edit"
    assert spec["function"]["parameters"]["required"] == ["operation", "lines"]
