"""Streaming chat client for OpenAI-compatible endpoints.

The client knows nothing about documents or tools beyond passing the tool
catalog through; it turns the SDK's stream into :class:`AIStreamEvent`
records and owns the retry policy for transport failures.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Dict, Iterable, List, Mapping

import httpx
from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)
from openai.types.chat import ChatCompletionMessageParam, ChatCompletionToolChoiceOptionParam
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..services.settings import Settings

LOGGER = logging.getLogger(__name__)

# 4xx responses other than 429 are never retried.
_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    APIConnectionError,
    APITimeoutError,
    RateLimitError,
    InternalServerError,
    httpx.TimeoutException,
)
_MESSAGE_ROLES = frozenset({"system", "user", "assistant", "tool"})
TOOL_ARGUMENT_EVENTS = frozenset(
    {"tool_calls.function.arguments.delta", "tool_calls.function.arguments.done"}
)


@dataclass(slots=True)
class ClientSettings:
    """Connection and sampling options for :class:`AIClient`.

    ``max_retries`` counts attempts, so the default of 1 sends each request
    exactly once and a failed call surfaces to the caller immediately.
    """

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    temperature: float | None = 0.2
    request_timeout: float | None = 90.0
    max_retries: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    default_headers: Mapping[str, str] | None = None
    metadata: Mapping[str, str] | None = None
    debug_logging: bool = False

    @classmethod
    def from_settings(cls, settings: "Settings", *, debug_logging: bool = False) -> "ClientSettings":
        return cls(
            base_url=settings.base_url,
            api_key=settings.api_key,
            model=settings.model,
            organization=settings.organization,
            temperature=settings.temperature,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
            default_headers=dict(settings.default_headers) or None,
            metadata={key: str(value) for key, value in settings.metadata.items()} or None,
            debug_logging=debug_logging or settings.debug_logging,
        )


@dataclass(slots=True, frozen=True)
class AIStreamEvent:
    """One normalized streaming event.

    Text arrives as ``content.delta`` pieces followed by ``content.done``;
    tool calls arrive as argument deltas keyed by ``tool_index`` and a final
    ``.done`` event carrying the complete arguments.
    """

    type: str
    content: str | None = None
    parsed: Any | None = None
    tool_name: str | None = None
    tool_index: int | None = None
    tool_arguments: str | None = None
    arguments_delta: str | None = None
    tool_call_id: str | None = None

    @property
    def is_tool_event(self) -> bool:
        return self.type in TOOL_ARGUMENT_EVENTS


class AIClient:
    """Async chat client streaming completions through ``AsyncOpenAI``."""

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client if client is not None else _open_client(settings)

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def model(self) -> str:
        return self._settings.model

    async def stream_chat(
        self,
        messages: Iterable[Mapping[str, Any]],
        *,
        tools: Iterable[Mapping[str, Any]] | None = None,
        tool_choice: ChatCompletionToolChoiceOptionParam | None = None,
        temperature: float | None = None,
        max_completion_tokens: int | None = None,
        metadata: Mapping[str, str] | None = None,
        **extra_params: Any,
    ) -> AsyncIterator[AIStreamEvent]:
        """Yield normalized events for one chat completion.

        Transient transport errors are retried up to ``max_retries`` attempts,
        but only while nothing has been yielded yet; a stream that fails
        midway raises to the caller.

        Raises:
            ValueError: when ``messages`` is empty.
        """

        payload = self.build_payload(
            _prepare_messages(messages),
            tools=tools,
            tool_choice=tool_choice,
            temperature=temperature,
            max_completion_tokens=max_completion_tokens,
            metadata=metadata,
            **extra_params,
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        streamed = False

        def _retryable(exc: BaseException) -> bool:
            return not streamed and isinstance(exc, _TRANSIENT_ERRORS)

        async for attempt in self._retry_policy(_retryable):
            with attempt:
                number = attempt.retry_state.attempt_number
                if number > 1:
                    LOGGER.warning("Retrying chat completion (attempt %d/%d)", number, self._settings.max_retries)
                async with self._client.chat.completions.stream(**payload) as stream:
                    async for raw_event in stream:
                        event = _to_stream_event(raw_event)
                        if event is None:
                            continue
                        streamed = True
                        yield event

    def build_payload(
        self,
        messages: List[ChatCompletionMessageParam],
        *,
        tools: Iterable[Mapping[str, Any]] | None = None,
        tool_choice: ChatCompletionToolChoiceOptionParam | None = None,
        temperature: float | None = None,
        max_completion_tokens: int | None = None,
        metadata: Mapping[str, str] | None = None,
        **extra_params: Any,
    ) -> Dict[str, Any]:
        """Return the keyword arguments sent to ``chat.completions.stream``."""

        payload: Dict[str, Any] = {"model": self._settings.model, "messages": messages}
        tool_list = [dict(tool) for tool in tools or ()]
        if tool_list:
            payload["tools"] = tool_list
            if tool_choice:
                payload["tool_choice"] = tool_choice
        sampling = self._settings.temperature if temperature is None else temperature
        if sampling is not None:
            payload["temperature"] = sampling
        if max_completion_tokens is not None:
            payload["max_completion_tokens"] = max_completion_tokens
        merged = {**(self._settings.metadata or {}), **(metadata or {})}
        if merged:
            payload["metadata"] = merged
        payload.update(extra_params)
        LOGGER.debug(
            "Chat request for %s: %d message(s), %d tool(s)",
            self._settings.model,
            len(messages),
            len(tool_list),
        )
        return payload

    def _retry_policy(self, predicate: Callable[[BaseException], bool]) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception(predicate),
            reraise=True,
        )

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        characters = sum(len(str(message.get("content") or "")) for message in payload.get("messages", ()))
        LOGGER.debug("Prompt size: %d character(s)", characters)
        try:
            LOGGER.debug("Prompt payload:\n%s", json.dumps(payload, ensure_ascii=False, indent=2))
        except (TypeError, ValueError):
            LOGGER.debug("Prompt payload (not JSON serializable): %r", payload)

    async def aclose(self) -> None:
        """Release the underlying HTTP connection pool."""

        closer = getattr(self._client, "close", None)
        if closer is None:
            return
        outcome = closer()
        if inspect.isawaitable(outcome):
            await outcome


def _open_client(settings: ClientSettings) -> AsyncOpenAI:
    # max_retries=0: the SDK must not retry underneath the tenacity policy.
    return AsyncOpenAI(
        api_key=settings.api_key,
        base_url=settings.base_url,
        organization=settings.organization,
        timeout=settings.request_timeout,
        max_retries=0,
        default_headers=dict(settings.default_headers) if settings.default_headers else None,
    )


def _prepare_messages(messages: Iterable[Mapping[str, Any]]) -> List[ChatCompletionMessageParam]:
    prepared: List[ChatCompletionMessageParam] = []
    for message in messages:
        if not isinstance(message, Mapping):
            raise TypeError(f"Chat messages must be mappings, got {type(message).__name__}")
        role = message.get("role")
        if role not in _MESSAGE_ROLES:
            raise ValueError(f"Unsupported chat message role: {role!r}")
        prepared.append(dict(message))  # type: ignore[arg-type]
    if not prepared:
        raise ValueError("At least one message is required to start a chat")
    return prepared


def _to_stream_event(raw: Any) -> AIStreamEvent | None:
    kind = getattr(raw, "type", None)
    match kind:
        case "content.delta":
            piece = getattr(raw, "delta", None)
            return AIStreamEvent(type=kind, content=str(piece)) if piece else None
        case "content.done":
            return AIStreamEvent(type=kind, content=getattr(raw, "content", None), parsed=getattr(raw, "parsed", None))
        case "refusal.done":
            refusal = getattr(raw, "refusal", None)
            LOGGER.warning("Model refused the request: %s", refusal)
            return AIStreamEvent(type=kind, content=refusal)
        case _ if kind in TOOL_ARGUMENT_EVENTS:
            return AIStreamEvent(
                type=kind,
                tool_name=getattr(raw, "name", None),
                tool_index=getattr(raw, "index", None),
                tool_arguments=getattr(raw, "arguments", None),
                arguments_delta=getattr(raw, "arguments_delta", None),
                parsed=getattr(raw, "parsed_arguments", None),
                tool_call_id=getattr(raw, "id", None) or getattr(raw, "tool_call_id", None),
            )
        case _:
            return None


__all__ = ["ClientSettings", "AIStreamEvent", "AIClient", "TOOL_ARGUMENT_EVENTS"]
