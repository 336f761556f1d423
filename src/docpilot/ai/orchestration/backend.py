"""Language-model backend contract and its OpenAI implementation.

The state machine only sees :class:`ChatBackend`: one stateless call taking
the full context text and an optional tool catalog, returning text and tool
calls. Every call resends the complete context.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol, Sequence

from ..client import AIClient, AIStreamEvent
from .types import ModelReply, ToolCall

LOGGER = logging.getLogger(__name__)


class ChatBackend(Protocol):
    """Function-call-capable chat completion service."""

    async def chat(
        self,
        context: str,
        *,
        tools: Sequence[Mapping[str, Any]] | None = None,
    ) -> ModelReply:
        ...


class OpenAIChatBackend:
    """:class:`ChatBackend` over :class:`AIClient` streaming completions."""

    def __init__(self, client: AIClient) -> None:
        self._client = client

    @property
    def client(self) -> AIClient:
        return self._client

    async def chat(
        self,
        context: str,
        *,
        tools: Sequence[Mapping[str, Any]] | None = None,
    ) -> ModelReply:
        messages = [{"role": "user", "content": context}]
        events: list[AIStreamEvent] = []
        async for event in self._client.stream_chat(messages, tools=list(tools) if tools else None):
            events.append(event)
        text, tool_calls = aggregate_streaming_events(events)
        LOGGER.debug("Backend reply: %d char(s), %d tool call(s)", len(text), len(tool_calls))
        return ModelReply(text=text, tool_calls=tuple(tool_calls))

    async def aclose(self) -> None:
        await self._client.aclose()


def aggregate_streaming_events(events: Sequence[AIStreamEvent]) -> tuple[str, list[ToolCall]]:
    """Aggregate streaming events into reply text and ordered tool calls.

    Argument deltas are stitched per tool index; the complete arguments of a
    ``.done`` event win over the stitched deltas.
    """
    content_parts: list[str] = []
    final_content: str | None = None
    calls_by_index: dict[int, dict[str, Any]] = {}

    for event in events:
        if event.type == "content.delta":
            if event.content:
                content_parts.append(event.content)
        elif event.type == "content.done":
            final_content = event.content
        elif event.is_tool_event:
            index = event.tool_index if event.tool_index is not None else 0
            entry = calls_by_index.setdefault(index, {"id": None, "name": "", "parts": []})
            if event.tool_name:
                entry["name"] = event.tool_name
            if event.tool_call_id:
                entry["id"] = event.tool_call_id
            if event.type.endswith(".delta"):
                if event.arguments_delta:
                    entry["parts"].append(event.arguments_delta)
            elif event.tool_arguments is not None:
                entry["arguments"] = event.tool_arguments

    text = "".join(content_parts)
    if not text and final_content:
        text = final_content

    calls: list[ToolCall] = []
    for index in sorted(calls_by_index):
        entry = calls_by_index[index]
        arguments = entry.get("arguments")
        if arguments is None:
            arguments = "".join(entry["parts"])
        calls.append(ToolCall(name=entry["name"], arguments=arguments, id=entry["id"]))
    return text, calls


__all__ = ["ChatBackend", "OpenAIChatBackend", "aggregate_streaming_events"]
