"""Core type definitions for a chat turn.

Requests, responses and audit records that flow through the turn state
machine. Audit records are frozen once created.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Sequence

from ...citations.types import Citation
from ...documents.model import Document
from ..tools.base import ToolResult

__all__ = [
    "ActionType",
    "Action",
    "ChatMessage",
    "ToolCall",
    "ModelReply",
    "ToolOutcome",
    "TurnRequest",
    "TurnResponse",
]


def _utcnow() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


# -----------------------------------------------------------------------------
# Audit Records
# -----------------------------------------------------------------------------

ActionType = Literal["search", "read", "edit"]


@dataclass(slots=True, frozen=True)
class Action:
    """Immutable audit record of one tool invocation during a turn.

    Attributes:
        type: ``search``, ``read`` (analyze and read) or ``edit``.
        success: Whether the tool reported success.
        details: Tool-specific payload (query and result count, edited lines...).
        timestamp: When the action was recorded.
    """

    type: ActionType
    success: bool
    details: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "success": self.success,
            "details": dict(self.details),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(slots=True)
class ToolOutcome:
    """A tool call together with its result, kept for transcripts and summaries."""

    tool: str
    arguments: Dict[str, Any]
    result: ToolResult | None
    fallback: bool = False


# -----------------------------------------------------------------------------
# Conversation Types
# -----------------------------------------------------------------------------

MessageRole = Literal["user", "assistant"]


@dataclass(slots=True, frozen=True)
class ChatMessage:
    """One prior message of the conversation shown to the model."""

    role: MessageRole
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls(role="assistant", content=content)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ChatMessage":
        role = "user" if payload.get("role") == "user" else "assistant"
        message_id = payload.get("id")
        if message_id:
            return cls(role=role, content=str(payload.get("content", "")), id=str(message_id))
        return cls(role=role, content=str(payload.get("content", "")))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(slots=True, frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""

    name: str
    arguments: Mapping[str, Any] | str = field(default_factory=dict)
    id: str | None = None

    def parsed_arguments(self) -> Dict[str, Any]:
        """Return the arguments as a dict, or ``{}`` when they are not a JSON object."""
        if isinstance(self.arguments, Mapping):
            return dict(self.arguments)
        try:
            decoded = json.loads(self.arguments or "{}")
        except json.JSONDecodeError:
            return {}
        return dict(decoded) if isinstance(decoded, Mapping) else {}


@dataclass(slots=True, frozen=True)
class ModelReply:
    """Text and tool calls returned by one backend call."""

    text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


# -----------------------------------------------------------------------------
# Turn Boundary
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class TurnRequest:
    """Input for one chat turn.

    Attributes:
        message: The user's chat message (may contain citations).
        document: The live document; mutated in place by edits.
        chat_history: Prior messages, only the most recent window is used.
        custom_instructions: Optional user-provided standing instructions.
    """

    message: str
    document: Document | None
    chat_history: Sequence[ChatMessage] = ()
    custom_instructions: str | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TurnRequest":
        raw_document = payload.get("document")
        history = payload.get("chatHistory", payload.get("chat_history")) or []
        return cls(
            message=str(payload.get("message") or ""),
            document=Document.from_dict(raw_document) if isinstance(raw_document, Mapping) else None,
            chat_history=tuple(ChatMessage.from_dict(item) for item in history if isinstance(item, Mapping)),
            custom_instructions=payload.get("customInstructions", payload.get("customPrompt")),
        )


@dataclass(slots=True)
class TurnResponse:
    """Output of one chat turn.

    ``document`` is only set when at least one edit succeeded, signalling the
    caller should persist the new state.
    """

    reply_text: str
    citations: List[Citation] | None = None
    actions: List[Action] | None = None
    document: Document | None = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": True, "message": self.reply_text}
        if self.citations:
            payload["citations"] = [citation.to_dict() for citation in self.citations]
        if self.actions:
            payload["actions"] = [action.to_dict() for action in self.actions]
        if self.document is not None:
            payload["document"] = self.document.to_dict()
        return payload
