"""Turn state machine driving one user message to a reply.

States run in a fixed order and each handler names the next state::

    DISPATCH -> EXECUTE_TOOLS -> FALLBACK_CHECK -> FOLLOW_UP? -> SUMMARIZE -> DONE

``EXECUTE_TOOLS`` jumps straight to ``DONE`` when the model answered with
text only. ``FOLLOW_UP`` runs at most once, so a turn makes at most two
tool-enabled backend calls plus one summary call. Tool calls run one after the
other against the document owned by the turn.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Sequence

from ...citations import format_citations_as_context, locked_lines_in_citations, parse_citations, resolve_citations
from ...citations.types import Citation
from ...documents.model import Document
from .. import prompts
from ..tools.base import ToolResult
from ..tools.errors import UnknownToolError
from ..tools.registry import ToolName, ToolRegistry
from .backend import ChatBackend
from .errors import BackendError, TurnInputError
from .types import Action, ActionType, ModelReply, ToolCall, ToolOutcome, TurnRequest, TurnResponse

LOGGER = logging.getLogger(__name__)

FALLBACK_REASON = "Fallback: all searches empty"
FALLBACK_ANALYZE_REASON = "All searches returned no results - analyzing full document"


class TurnState(str, Enum):
    DISPATCH = "dispatch"
    EXECUTE_TOOLS = "execute_tools"
    FALLBACK_CHECK = "fallback_check"
    FOLLOW_UP = "follow_up"
    SUMMARIZE = "summarize"
    DONE = "done"


@dataclass(slots=True)
class TurnRun:
    """Mutable state of a single turn; never shared between turns."""

    request: TurnRequest
    document: Document
    citations: List[Citation] = field(default_factory=list)
    context: str = ""
    reply: ModelReply | None = None
    reply_text: str = ""
    actions: List[Action] = field(default_factory=list)
    outcomes: List[ToolOutcome] = field(default_factory=list)
    tool_results: List[str] = field(default_factory=list)
    needs_follow_up: bool = False
    has_doc_edit: bool = False
    states: List[TurnState] = field(default_factory=list)

    def outcomes_for(self, name: ToolName) -> List[ToolOutcome]:
        return [outcome for outcome in self.outcomes if outcome.tool == name.value]

    @property
    def edit_succeeded(self) -> bool:
        return any(action.type == "edit" and action.success for action in self.actions)

    def response(self) -> TurnResponse:
        return TurnResponse(
            reply_text=self.reply_text,
            citations=list(self.citations) or None,
            actions=list(self.actions) or None,
            document=self.document if self.edit_succeeded else None,
        )


class TurnStateMachine:
    """Runs chat turns against a :class:`ChatBackend` and the tool registry."""

    def __init__(
        self,
        backend: ChatBackend,
        *,
        registry: ToolRegistry | None = None,
        history_window: int = prompts.HISTORY_WINDOW,
    ) -> None:
        self._backend = backend
        self._registry = registry or ToolRegistry()
        self._history_window = history_window
        self._handlers: Dict[TurnState, Callable[[TurnRun], Awaitable[TurnState]]] = {
            TurnState.DISPATCH: self._dispatch,
            TurnState.EXECUTE_TOOLS: self._execute_tools,
            TurnState.FALLBACK_CHECK: self._fallback_check,
            TurnState.FOLLOW_UP: self._follow_up,
            TurnState.SUMMARIZE: self._summarize,
        }

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def run_turn(self, request: TurnRequest) -> TurnResponse:
        """Run one turn to completion.

        Raises:
            TurnInputError: when the message is blank or the document missing.
            BackendError: when any backend call fails.
        """

        run = self.prepare(request)
        state = TurnState.DISPATCH
        while state is not TurnState.DONE:
            run.states.append(state)
            next_state = await self._handlers[state](run)
            LOGGER.debug("Turn transition %s -> %s", state.value, next_state.value)
            state = next_state
        run.states.append(TurnState.DONE)
        LOGGER.info(
            "Turn finished: %d action(s), document %s",
            len(run.actions),
            "modified" if run.edit_succeeded else "unchanged",
        )
        return run.response()

    def prepare(self, request: TurnRequest) -> TurnRun:
        """Validate the request and build the dispatch context."""

        if not request.message or not request.message.strip():
            raise TurnInputError("Message is required", field="message")
        if request.document is None:
            raise TurnInputError("Document is required", field="document")

        document = request.document
        citations = resolve_citations(parse_citations(request.message), document)
        LOGGER.info("Found %d citation(s)", len(citations))
        prompt = prompts.build_prompt_with_context(
            request.message,
            format_citations_as_context(citations),
            document,
        )
        locked = locked_lines_in_citations(citations, document)
        if locked:
            LOGGER.warning("User referenced locked lines: %s", locked)
        context = prompts.build_conversation_context(
            prompt,
            document=document,
            history=request.chat_history,
            custom_instructions=request.custom_instructions,
            locked_lines=locked,
            history_window=self._history_window,
        )
        LOGGER.debug(
            "Conversation context: %d char(s), first message=%s",
            len(context),
            not request.chat_history,
        )
        return TurnRun(request=request, document=document, citations=citations, context=context)

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    async def _dispatch(self, run: TurnRun) -> TurnState:
        run.reply = await self._call_backend(run.context, tools=self._registry.specs(), stage="dispatch")
        return TurnState.EXECUTE_TOOLS

    async def _execute_tools(self, run: TurnRun) -> TurnState:
        reply = run.reply or ModelReply()
        if not reply.has_tool_calls:
            run.reply_text = reply.text.strip() or prompts.NO_RESPONSE_REPLY
            return TurnState.DONE

        LOGGER.info("Processing %d tool call(s)", len(reply.tool_calls))
        for call in reply.tool_calls:
            self._execute_call(run, call)
        return TurnState.FALLBACK_CHECK

    async def _fallback_check(self, run: TurnRun) -> TurnState:
        searches = run.outcomes_for(ToolName.SEARCH)
        if (
            searches
            and not run.outcomes_for(ToolName.ANALYZE)
            and not run.has_doc_edit
            and all(_search_count(outcome.result) == 0 for outcome in searches)
        ):
            LOGGER.warning("All %d search(es) returned no results; running doc_analyze", len(searches))
            self._run_fallback_analyze(run)
        if run.needs_follow_up and not run.has_doc_edit:
            return TurnState.FOLLOW_UP
        return TurnState.SUMMARIZE

    async def _follow_up(self, run: TurnRun) -> TurnState:
        LOGGER.info("Model used read-only tools without editing; requesting doc_edit")
        context = prompts.build_follow_up_prompt(
            run.request.message,
            run.tool_results,
            document=run.document,
            custom_instructions=run.request.custom_instructions,
        )
        reply = await self._call_backend(context, tools=self._registry.specs(), stage="follow_up")
        for call in reply.tool_calls:
            if call.name == ToolName.EDIT.value:
                self._execute_call(run, call)
            else:
                LOGGER.warning("Unexpected follow-up tool: %s", call.name)
                run.tool_results.append(f"Unexpected tool: {call.name}")
        return TurnState.SUMMARIZE

    async def _summarize(self, run: TurnRun) -> TurnState:
        context = prompts.build_summary_prompt(run.outcomes)
        reply = await self._call_backend(context, tools=None, stage="summarize")
        run.reply_text = reply.text.strip() or prompts.DEFAULT_REPLY
        return TurnState.DONE

    # ------------------------------------------------------------------
    # Tool execution
    # ------------------------------------------------------------------

    def _execute_call(self, run: TurnRun, call: ToolCall) -> None:
        arguments = call.parsed_arguments()
        LOGGER.info("Executing tool %s %s", call.name, prompts.summarize_arguments(arguments))
        try:
            name = ToolName.parse(call.name)
        except UnknownToolError as exc:
            LOGGER.warning("Unknown tool requested: %s", call.name)
            run.actions.append(
                Action(type=_action_type_for(call.name), success=False, details={"tool": call.name, "error": exc.message})
            )
            run.tool_results.append(json.dumps({"error": exc.message}, separators=(",", ":")))
            return

        try:
            result = self._registry.dispatch(name, call.arguments, run.document)
        except Exception as exc:
            LOGGER.exception("Error executing tool %s", call.name)
            run.actions.append(
                Action(type=_action_type_for(call.name), success=False, details={"error": str(exc) or "Unknown error"})
            )
            run.tool_results.append(f"Error executing {call.name}: {str(exc) or 'Unknown error'}")
            run.outcomes.append(ToolOutcome(tool=name.value, arguments=arguments, result=None))
            return

        run.actions.append(self._record(run, name, arguments, result))
        run.tool_results.append(prompts.format_tool_result(name.value, result))
        run.outcomes.append(ToolOutcome(tool=name.value, arguments=arguments, result=result))

    def _record(self, run: TurnRun, name: ToolName, arguments: Mapping[str, Any], result: ToolResult) -> Action:
        data = result.data or {}
        match name:
            case ToolName.ANALYZE:
                run.needs_follow_up = True
                return Action(
                    type="read",
                    success=result.success,
                    details={"reason": arguments.get("reason"), "lines": data.get("total_lines", 0)},
                )
            case ToolName.SEARCH:
                run.needs_follow_up = True
                return Action(
                    type="search",
                    success=result.success,
                    details={"query": arguments.get("query"), "results": data.get("count", 0)},
                )
            case ToolName.READ:
                run.needs_follow_up = True
                return Action(
                    type="read",
                    success=result.success,
                    details={"lines": arguments.get("lines"), "found": data.get("count", 0)},
                )
            case ToolName.EDIT:
                run.has_doc_edit = True
                details: Dict[str, Any] = {
                    "operation": arguments.get("operation"),
                    "lines": arguments.get("lines"),
                    "modified": len(data.get("modified_lines", [])),
                    "newText": arguments.get("newText", arguments.get("new_text")),
                }
                if not result.success:
                    details["error"] = result.error_message
                return Action(type="edit", success=result.success, details=details)

    def _run_fallback_analyze(self, run: TurnRun) -> None:
        result = self._registry.analyze.run(run.document, {"reason": FALLBACK_ANALYZE_REASON})
        data = result.data or {}
        run.actions.append(
            Action(
                type="read",
                success=result.success,
                details={"reason": FALLBACK_REASON, "lines": data.get("total_lines", 0), "fallback": True},
            )
        )
        run.tool_results.append(prompts.format_tool_result(ToolName.ANALYZE.value, result))
        run.outcomes.append(
            ToolOutcome(
                tool=ToolName.ANALYZE.value,
                arguments={"reason": FALLBACK_REASON},
                result=result,
                fallback=True,
            )
        )
        run.needs_follow_up = True

    async def _call_backend(
        self,
        context: str,
        *,
        tools: Sequence[Mapping[str, Any]] | None,
        stage: str,
    ) -> ModelReply:
        LOGGER.info("Calling model (%s, tools=%s)", stage, "on" if tools else "off")
        try:
            reply = await self._backend.chat(context, tools=tools)
        except Exception as exc:
            LOGGER.exception("Model call failed during %s", stage)
            raise BackendError(str(exc) or exc.__class__.__name__, stage=stage) from exc
        LOGGER.debug("Model reply (%s): text=%s tool_calls=%d", stage, bool(reply.text), len(reply.tool_calls))
        return reply


def _search_count(result: ToolResult | None) -> int:
    if result is None or not result.success or not result.data:
        return 0
    return int(result.data.get("count", 0))


def _action_type_for(tool_name: str) -> ActionType:
    name = tool_name.lower()
    if "edit" in name:
        return "edit"
    if "search" in name:
        return "search"
    return "read"


async def run_turn(request: TurnRequest, backend: ChatBackend, **options: Any) -> TurnResponse:
    """Run a single turn with a throwaway :class:`TurnStateMachine`."""

    return await TurnStateMachine(backend, **options).run_turn(request)


__all__ = [
    "FALLBACK_REASON",
    "TurnState",
    "TurnRun",
    "TurnStateMachine",
    "run_turn",
]
