"""Tests for prompt builders and transcript formatting."""

from __future__ import annotations

from docpilot.ai import prompts
from docpilot.ai.orchestration.types import ChatMessage, ToolOutcome
from docpilot.ai.tools.base import ToolResult
from docpilot.ai.tools.errors import LineLockedError
from docpilot.documents.model import Document


def test_system_prompt_lists_tools_and_document_facts(safe_document: Document) -> None:
    text = prompts.build_system_prompt(safe_document)

    for name in ("doc_search", "doc_read", "doc_analyze", "doc_edit"):
        assert name in text
    assert "@l5-10" in text
    assert "- Format: DOCX" in text
    assert "- Total Lines: 6" in text
    assert "- File: safe.docx" in text
    assert "## Current Document" not in prompts.build_system_prompt()


def test_prompt_with_context_orders_header_citations_request(safe_document: Document) -> None:
    text = prompts.build_prompt_with_context("fix it", "--- Referenced Content ---", safe_document)

    assert text == (
        "Document: safe.docx (6 lines, 1 pages)\n\n--- Referenced Content ---\n\nUser request: fix it"
    )
    assert prompts.build_prompt_with_context("fix it") == "User request: fix it"


def test_history_window_keeps_most_recent_messages() -> None:
    history = [ChatMessage.user("one"), ChatMessage.assistant("two"), ChatMessage.user("three")]

    assert prompts.format_history(history, 2) == "Recent conversation:\nAssistant: two\nUser: three\n\n"
    assert prompts.format_history(history, 0) == ""
    assert prompts.format_history([], 5) == ""


def test_custom_instructions_block() -> None:
    assert prompts.format_custom_instructions("  ") == ""
    assert prompts.format_custom_instructions(None) == ""
    assert prompts.format_custom_instructions("Use British spelling") == (
        "## User's Custom Instructions\n\nUse British spelling\n\n"
    )


def test_conversation_context_appends_locked_warning(safe_document: Document) -> None:
    text = prompts.build_conversation_context(
        "User request: x",
        document=safe_document,
        locked_lines=[3, 5],
    )

    assert text.startswith(prompts.build_system_prompt(safe_document))
    assert text.endswith(prompts.build_locked_lines_warning([3, 5]))
    assert "referenced lines 3, 5 which are LOCKED" in text


def test_follow_up_prompt_embeds_transcript(safe_document: Document) -> None:
    text = prompts.build_follow_up_prompt(
        "rename company",
        ["Search results:\nLine 2: Company: [COMPANY NAME]"],
        document=safe_document,
        custom_instructions="Be brief",
    )

    assert "CRITICAL INSTRUCTION" in text
    assert "Tool execution results:\nSearch results:\nLine 2: Company: [COMPANY NAME]" in text
    assert 'The user\'s original request was: "rename company"' in text
    assert "Be brief" in text


def test_summary_prompt_lists_searches_and_edit_outcomes() -> None:
    outcomes = [
        ToolOutcome("doc_search", {"query": "investor"}, ToolResult(success=True, data={"count": 2})),
        ToolOutcome("doc_analyze", {"reason": "r"}, ToolResult(success=True, data={"total_lines": 9})),
        ToolOutcome(
            "doc_edit",
            {"operation": "replace", "lines": [3], "newText": "secret value"},
            ToolResult(success=True, data={"modified_lines": [3]}),
        ),
        ToolOutcome(
            "doc_edit",
            {"operation": "delete", "lines": [4, 5]},
            ToolResult(success=True, data={"modified_lines": [4, 5]}),
        ),
        ToolOutcome(
            "doc_edit",
            {"operation": "replace", "lines": [11], "newText": "x"},
            ToolResult(success=False, error=LineLockedError(message="Cannot edit locked lines: 11", lines=[11])),
        ),
    ]

    text = prompts.build_summary_prompt(outcomes)

    assert '- Searched for "investor" - found 2 result(s)' in text
    assert "- Analyzed full document (9 lines)" in text
    assert "Successfully edited: line 3, line 4, 5 (deleted)" in text
    assert "Failed to edit: line 11 (Cannot edit locked lines: 11)" in text
    assert "secret value" not in text


def test_format_tool_result_per_tool() -> None:
    search = ToolResult(success=True, data={"results": [{"line_number": 2, "text": "Company: X"}]})
    empty_search = ToolResult(success=True, data={"results": [], "count": 0})
    edit = ToolResult(success=True, data={"modified_lines": [1, 2]})
    failed_edit = ToolResult(success=False, error=LineLockedError(message="Cannot edit locked lines: 1"))

    assert prompts.format_tool_result("doc_search", search) == "Search results:\nLine 2: Company: X"
    assert prompts.format_tool_result("doc_search", empty_search) == "No results found"
    assert prompts.format_tool_result("doc_edit", edit) == "Successfully edited lines: 1, 2"
    assert prompts.format_tool_result("doc_edit", failed_edit) == "Edit failed: Cannot edit locked lines: 1"
    assert prompts.format_tool_result("doc_read", ToolResult(success=True, data={"content": "Line 1: a"})) == (
        "Lines read:\nLine 1: a"
    )
    assert prompts.format_tool_result(
        "doc_analyze", ToolResult(success=True, data={"content": "Line 1: a"})
    ) == "Full document analysis:\nLine 1: a"


def test_user_facing_messages() -> None:
    assert prompts.build_error_message() == prompts.TURN_ERROR_MESSAGE
    assert prompts.build_edit_success_message("replace", [3]) == "Successfully replaced line 3"
    assert prompts.build_edit_success_message("delete", [3, 4]) == "Successfully deleted lines 3, 4"
    assert prompts.build_edit_success_message("insert", [1]) == "Successfully inserted new content after line 1"


def test_summarize_arguments_truncates() -> None:
    text = prompts.summarize_arguments({"newText": "x" * 500}, limit=50)

    assert len(text) == 50
    assert text.endswith("...")
