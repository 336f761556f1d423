"""Prompt templates and context builders for the editing agent.

Every model call is stateless, so each builder here returns the complete text
sent in one request: system prompt, conversation window, citation context and
tool transcripts.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Sequence

from ..documents.model import Document
from .tools.base import ToolResult

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from .orchestration.types import ChatMessage, ToolOutcome

HISTORY_WINDOW = 5
DEFAULT_REPLY = "I've completed the requested operations."
NO_RESPONSE_REPLY = "I received your message but could not generate a response."
CUSTOM_INSTRUCTIONS_HEADER = "## User's Custom Instructions"


def build_system_prompt(document: Document | None = None) -> str:
    """Return the agent system prompt, with document facts when available."""

    prompt = f"""{_role_section()}

## CRITICAL: You MUST use tools to perform actions

{_tool_usage_section()}

## Available Tools

{_tools_section()}

## Citation Syntax

{_citation_section()}

## Workflow for Edit Requests

{_workflow_section()}

## Guidelines

{_guidelines_section()}"""

    if document is None:
        return prompt
    metadata = document.metadata
    return (
        f"{prompt}\n\n## Current Document\n\n"
        f"- Format: {metadata.format.upper()}\n"
        f"- Total Lines: {metadata.total_lines}\n"
        f"- Total Pages: {metadata.total_pages}\n"
        f"- File: {metadata.file_name or 'Untitled'}"
    )


def _role_section() -> str:
    return (
        "You are an intelligent document editing assistant with the ability to search, read, "
        "and edit documents. Your goal is to help users edit their documents efficiently and "
        "accurately."
    )


def _tool_usage_section() -> str:
    return """When users ask you to make changes to the document, you MUST:
1. Use doc_read or doc_search to find the relevant lines
2. Use doc_edit to ACTUALLY make the changes IN THE SAME RESPONSE
3. After tools execute successfully, provide a conversational response about what you did

DO NOT just describe what you would do or show diffs - ACTUALLY execute the tools.

You can call MULTIPLE tools in a single response. Call doc_analyze or doc_search and then
call doc_edit in the same response. Do NOT wait for another message to call doc_edit."""


def _tools_section() -> str:
    return """1. **doc_search(query)** - Search for lines containing a field name
   - Returns up to 5 most relevant lines with line numbers
   - NOT a terminal action: after searching, call doc_edit
2. **doc_read(lines)** - Read specific lines by their line numbers, e.g. [5, 10, 15]
   - Use this to verify content before editing
   - NOT a terminal action: after reading, call doc_edit
3. **doc_analyze(reason)** - Get the FULL document content with line numbers
   - Use when search returns 0 results or you need the full structure
   - NOT a terminal action: after analyzing, call doc_edit
4. **doc_edit(operation, lines, newText)** - Edit document lines
   - 'replace' sets the text of the given lines to newText
   - 'insert' adds newText as a new line after each given line
   - 'delete' removes the given lines
   - Locked lines cannot be edited
   - This IS the terminal action: after doc_edit, respond to the user"""


def _citation_section() -> str:
    return """Users can reference specific parts of the document using:
- @line10 or @l10 - Reference line 10
- @l5-10 - Reference lines 5 through 10
- @page3 or @p3 - Reference all lines on page 3

Referenced content is included in the context automatically."""


def _workflow_section() -> str:
    return """### When the user provides line numbers (e.g. "@l17", "at line 13")
1. The current content is already in the context
2. Replace placeholders like [___], {{TEXT}} or [CONSTANT] COMPLETELY with the actual values
3. Call doc_edit to make the change, then respond conversationally

### When the user does NOT provide line numbers (e.g. "change investor name to John Doe")
NEVER ask the user for clarification. ALWAYS act immediately.
1. Extract the field names from the request ("investor", "purchase", "date")
2. Call doc_search once per field with 1-2 word keywords, the FIELD NAME only, never the value
   - correct: doc_search("investor")
   - wrong: doc_search("investor name Sebastian Grol")
3. If ANY search returns 0 results, call doc_analyze to see the full document
4. Call doc_edit for each line that needs to change, in the SAME response

### Example
User: "change company name to Paranoid"
1. doc_search("company") returns 0 results
2. doc_analyze("search for company returned no results") shows the name on line 5
3. doc_edit(operation='replace', lines=[5], newText='Paranoid')
4. Respond that the company name was updated"""


def _guidelines_section() -> str:
    return """1. **Always use tools** - Don't describe what you would do, do it
2. **Verify before editing** - Use doc_read to check content before changing it
3. **Respect locked lines** - Never attempt to edit locked lines (the tool will fail)
4. **Be precise** - Use exact line numbers when editing
5. **Respond after tool execution** - Tell users what you changed once the tools ran
6. **Handle errors gracefully** - If a tool fails, explain why and suggest alternatives"""


# -----------------------------------------------------------------------------
# Turn Context
# -----------------------------------------------------------------------------


def build_prompt_with_context(
    message: str,
    citation_context: str = "",
    document: Document | None = None,
) -> str:
    """Combine the user request with the document header and cited content."""

    prompt = ""
    if document is not None:
        metadata = document.metadata
        prompt += (
            f"Document: {metadata.file_name or 'Untitled'} "
            f"({metadata.total_lines} lines, {metadata.total_pages} pages)\n\n"
        )
    if citation_context:
        prompt += f"{citation_context}\n\n"
    return prompt + f"User request: {message}"


def format_custom_instructions(instructions: str | None) -> str:
    text = (instructions or "").strip()
    if not text:
        return ""
    return f"{CUSTOM_INSTRUCTIONS_HEADER}\n\n{text}\n\n"


def format_history(history: Sequence["ChatMessage"], window: int = HISTORY_WINDOW) -> str:
    """Render the last ``window`` messages as a ``Recent conversation`` block."""

    recent = list(history)[-window:] if window > 0 else []
    if not recent:
        return ""
    rows = [f"{'User' if item.role == 'user' else 'Assistant'}: {item.content}" for item in recent]
    return "Recent conversation:\n" + "\n".join(rows) + "\n\n"


def build_locked_lines_warning(locked_lines: Sequence[int]) -> str:
    joined = ", ".join(str(number) for number in locked_lines)
    return (
        f"\n\nIMPORTANT: The user has referenced lines {joined} which are LOCKED and cannot be "
        "edited. If the user is trying to edit these lines, politely inform them that these "
        "lines are immutable and locked by the user. Suggest that they unlock the lines first "
        "if they want to make changes."
    )


def build_conversation_context(
    prompt: str,
    *,
    document: Document | None,
    history: Sequence["ChatMessage"] = (),
    custom_instructions: str | None = None,
    locked_lines: Sequence[int] = (),
    history_window: int = HISTORY_WINDOW,
) -> str:
    """Assemble the first request of a turn.

    The system prompt is only included when there is no prior history; later
    turns rely on the recent-conversation window instead.
    """

    context = ""
    if not history:
        context += f"{build_system_prompt(document)}\n\n"
    context += format_custom_instructions(custom_instructions)
    context += format_history(history, history_window)
    context += f"Current user request: {prompt}"
    if locked_lines:
        context += build_locked_lines_warning(locked_lines)
    return context


def build_follow_up_prompt(
    message: str,
    tool_results: Sequence[str],
    *,
    document: Document | None,
    custom_instructions: str | None = None,
) -> str:
    """Return the single follow-up request that demands a ``doc_edit`` call."""

    transcript = "\n\n".join(tool_results)
    return (
        f"{build_system_prompt(document)}\n\n"
        f"{format_custom_instructions(custom_instructions)}"
        "CRITICAL INSTRUCTION: You just executed tool calls and now you MUST complete the "
        "user's request by calling doc_edit.\n\n"
        f"Tool execution results:\n{transcript}\n\n"
        f"The user's original request was: \"{message}\"\n\n"
        "You have the document content above from your tool calls. Now you MUST:\n"
        "1. Identify which line numbers need to be edited based on the user's request\n"
        "2. Call doc_edit with operation='replace', lines=[...], and newText='...'\n"
        "3. DO NOT respond with text - You are a tool-using agent - ONLY make function calls\n\n"
        "REMEMBER: You can only communicate through tool calls. Call doc_edit RIGHT NOW to make "
        "the changes the user requested. Do not provide text responses - ONLY tool calls."
    )


# -----------------------------------------------------------------------------
# Summary
# -----------------------------------------------------------------------------


def describe_outcomes(outcomes: Sequence["ToolOutcome"]) -> tuple[list[str], list[str], list[str]]:
    """Split tool outcomes into ``(searches, successful_edits, failed_edits)`` phrases.

    Edit phrases name line numbers only; the written text is left out so the
    final reply does not echo it back.
    """

    searches: list[str] = []
    successful: list[str] = []
    failed: list[str] = []
    for outcome in outcomes:
        data = (outcome.result.data or {}) if outcome.result else {}
        if outcome.tool == "doc_analyze":
            searches.append(f"Analyzed full document ({data.get('total_lines', 0)} lines)")
        elif outcome.tool == "doc_search":
            query = outcome.arguments.get("query", "")
            searches.append(f'Searched for "{query}" - found {data.get("count", 0)} result(s)')
        elif outcome.tool == "doc_edit":
            lines = outcome.arguments.get("lines")
            numbers = ", ".join(str(n) for n in lines) if isinstance(lines, list) else str(lines)
            if outcome.result is not None and outcome.result.success:
                suffix = " (deleted)" if outcome.arguments.get("operation") == "delete" else ""
                successful.append(f"line {numbers}{suffix}")
            else:
                reason = outcome.result.error_message if outcome.result else "unknown error"
                failed.append(f"line {numbers} ({reason or 'unknown error'})")
    return searches, successful, failed


def build_summary_prompt(outcomes: Sequence["ToolOutcome"]) -> str:
    """Return the tools-disabled request asking for a short conversational reply."""

    searches, successful, failed = describe_outcomes(outcomes)
    prompt = "You just executed the following tool calls:\n\n"
    if searches:
        prompt += "Searches performed:\n" + "\n".join(f"- {item}" for item in searches) + "\n\n"
    if successful:
        prompt += f"Successfully edited: {', '.join(successful)}\n"
    if failed:
        prompt += f"Failed to edit: {', '.join(failed)}\n"
    return prompt + f"\n{_summary_instructions()}"


def _summary_instructions() -> str:
    return """Provide a brief, natural, conversational response (1-2 sentences) summarizing what you did:

IMPORTANT:
- DO NOT repeat the exact text you wrote to each line (that's already shown in the edit details)
- Instead, describe WHAT you changed (e.g., "investor name", "valuation cap", "company name")
- If edits failed, acknowledge them and explain why
- Be concise and friendly

Example good responses:
- "I've updated the investor name and purchase amount as requested."
- "I've filled in the valuation cap with $5 million USD."
- "I couldn't edit line 11 because it's locked by you. The other changes were made successfully."

BAD responses (don't do this):
- "I've updated line 17 to 'The Post-Money Valuation Cap is $5,000,000 USD'" (repeats the edit)
- Repeating the exact full text that was written to the document"""


# -----------------------------------------------------------------------------
# Result Formatting
# -----------------------------------------------------------------------------


def format_tool_result(tool_name: str, result: ToolResult) -> str:
    """Render a tool result as transcript text for the follow-up request."""

    data = result.data or {}
    match tool_name:
        case "doc_analyze":
            if result.success and data.get("content"):
                return f"Full document analysis:\n{data['content']}"
            return f"Error: {result.error_message or 'Could not analyze document'}"
        case "doc_search":
            rows = data.get("results") or []
            if result.success and rows:
                formatted = "\n".join(f"Line {row['line_number']}: {row['text']}" for row in rows)
                return f"Search results:\n{formatted}"
            return "No results found"
        case "doc_read":
            if result.success:
                return f"Lines read:\n{data.get('content', '')}"
            return f"Error: {result.error_message or 'Could not read lines'}"
        case "doc_edit":
            if result.success:
                modified = ", ".join(str(n) for n in data.get("modified_lines", []))
                return f"Successfully edited lines: {modified}"
            return f"Edit failed: {result.error_message or 'Unknown error'}"
        case _:
            return json.dumps(result.to_dict(), default=str)


TURN_ERROR_MESSAGE = "I couldn't reach the language model. Please try again or rephrase your request."


def build_error_message() -> str:
    """Return the end-user sentence for a turn that could not complete.

    The underlying exception is logged by the caller and never shown to the user.
    """

    return TURN_ERROR_MESSAGE


def build_edit_success_message(operation: str, line_numbers: Sequence[int]) -> str:
    noun = "line" if len(line_numbers) == 1 else "lines"
    joined = ", ".join(str(n) for n in line_numbers)
    match operation:
        case "replace":
            return f"Successfully replaced {noun} {joined}"
        case "insert":
            return f"Successfully inserted new content after {noun} {joined}"
        case "delete":
            return f"Successfully deleted {noun} {joined}"
        case _:
            return f"Successfully performed {operation} on {noun} {joined}"


def summarize_arguments(arguments: Any, limit: int = 200) -> str:
    """Compact JSON rendering of tool arguments for log lines."""

    try:
        text = json.dumps(arguments, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        text = repr(arguments)
    return text if len(text) <= limit else f"{text[: limit - 3]}..."


__all__ = [
    "HISTORY_WINDOW",
    "DEFAULT_REPLY",
    "NO_RESPONSE_REPLY",
    "build_system_prompt",
    "build_prompt_with_context",
    "build_conversation_context",
    "build_follow_up_prompt",
    "build_locked_lines_warning",
    "build_summary_prompt",
    "describe_outcomes",
    "format_custom_instructions",
    "format_history",
    "format_tool_result",
    "TURN_ERROR_MESSAGE",
    "build_error_message",
    "build_edit_success_message",
    "summarize_arguments",
]
