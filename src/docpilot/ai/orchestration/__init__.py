"""Turn orchestration: backend contract, state machine and turn types."""

from .backend import ChatBackend, OpenAIChatBackend, aggregate_streaming_events
from .errors import BackendError, TurnError, TurnInputError
from .state_machine import TurnState, TurnStateMachine, run_turn
from .types import Action, ChatMessage, ModelReply, ToolCall, ToolOutcome, TurnRequest, TurnResponse

__all__ = [
    "ChatBackend",
    "OpenAIChatBackend",
    "aggregate_streaming_events",
    "TurnError",
    "TurnInputError",
    "BackendError",
    "TurnState",
    "TurnStateMachine",
    "run_turn",
    "Action",
    "ChatMessage",
    "ModelReply",
    "ToolCall",
    "ToolOutcome",
    "TurnRequest",
    "TurnResponse",
]
