"""
Stream sources for the toolstream conversation package.

Defines the ``StreamSource`` Protocol so the ``AgenticLoop`` can work with any
backend that yields typed stream events, without being tied to a specific
vendor or SDK.  A stream source owns transport, authentication and retry
policy; the loop only reads events.

The concrete implementation, ``OpenAICompatibleStreamSource``, uses
``openai.AsyncOpenAI`` streaming chat completions, which covers OpenAI,
Ollama, vLLM and Claude/Bedrock via a LiteLLM proxy.  It translates SDK
chunks into the events in ``toolstream.conversation.events`` and SDK
exceptions into the typed errors in ``toolstream.errors``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol, runtime_checkable

from openai import (
    APIConnectionError,
    APIStatusError,
    AsyncOpenAI,
    RateLimitError,
)

from toolstream.conversation.events import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    MessageStartEvent,
    MessageStopEvent,
    MetadataEvent,
    StreamEvent,
)
from toolstream.conversation.messages import (
    JsonContent,
    ReasoningBlock,
    TextBlock,
    TextContent,
    ToolResultBlock,
    ToolUseBlock,
    Turn,
)
from toolstream.conversation.tools.base import ToolDefinition
from toolstream.errors import (
    InternalServerError,
    LLMError,
    ServiceUnavailableError,
    StreamError,
    ThrottlingError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.5


# ---------------------------------------------------------------------------
# Request data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RequestOptions:
    """Per-query inference configuration, passed through to the stream source.

    Attributes:
        model: Model identifier.
        max_tokens: Maximum output tokens per pass.
        temperature: Sampling temperature.
        system_prompt: Optional system instruction.
        thinking_budget: Reasoning token budget, or ``None`` to disable.
        output_schema: JSON Schema constraining the final answer, or ``None``.
    """

    model: str
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    system_prompt: str | None = None
    thinking_budget: int | None = None
    output_schema: dict[str, Any] | None = None


@dataclass(frozen=True)
class StreamRequest:
    """Everything a stream source needs to open one pass."""

    model: str
    messages: tuple[Turn, ...]
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    system_prompt: str | None = None
    tools: tuple[ToolDefinition, ...] = field(default_factory=tuple)
    thinking_budget: int | None = None
    output_schema: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# StreamSource Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class StreamSource(Protocol):
    """Protocol for backends that stream one pass as typed events."""

    def open(self, request: StreamRequest) -> AsyncIterator[StreamEvent]:
        """Start a streaming request and yield its events in order.

        Raises:
            LLMError: Transport failures must surface as one of the typed
                ``LLMError`` subclasses, either raised here or delivered as a
                ``StreamErrorEvent``.
        """
        ...


# ---------------------------------------------------------------------------
# Concrete stream source
# ---------------------------------------------------------------------------

_FINISH_REASONS: dict[str, str] = {
    "tool_calls": "tool_use",
    "function_call": "tool_use",
    "stop": "end_turn",
    "length": "max_tokens",
}


class OpenAICompatibleStreamSource:
    """Stream source backed by any OpenAI-compatible chat-completions endpoint.

    Works with:
    - OpenAI (``https://api.openai.com/v1``)
    - Ollama (``http://localhost:11434/v1``)
    - Claude via LiteLLM proxy (reasoning deltas arrive as
      ``reasoning_content``)

    Attributes:
        base_url: The API base URL.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434/v1",
        api_key: str = "ollama",
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.base_url = base_url
        self._client = client or AsyncOpenAI(base_url=base_url, api_key=api_key)

    async def open(self, request: StreamRequest) -> AsyncIterator[StreamEvent]:
        """Stream one chat completion as toolstream events.

        Raises:
            ThrottlingError: If the API returns a 429 response.
            ServiceUnavailableError: If the endpoint cannot be reached or
                returns 503.
            ValidationError: If the API rejects the request (400/422).
            InternalServerError: For other 5xx responses.
            StreamError: For any other API failure.
        """
        kwargs = build_chat_kwargs(request)
        logger.debug(
            "LLM request: model=%s, messages=%d, tools=%d",
            request.model,
            len(kwargs["messages"]),
            len(request.tools),
        )
        try:
            stream = await self._client.chat.completions.create(**kwargs)
            translator = _ChunkTranslator()
            async with stream:
                async for chunk in stream:
                    for event in translator.translate(chunk):
                        yield event
            for event in translator.finish():
                yield event
        except (RateLimitError, APIConnectionError, APIStatusError) as exc:
            raise _map_api_error(exc) from exc


class _ChunkTranslator:
    """Turns chat-completion chunks into block-structured stream events."""

    def __init__(self) -> None:
        self._started = False
        self._stopped = False
        self._block_index = -1
        self._open: str | None = None  # "text" | "reasoning" | "tool"
        self._tool_calls: dict[int, str] = {}

    def translate(self, chunk: Any) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        if not self._started:
            self._started = True
            events.append(MessageStartEvent())

        for choice in chunk.choices or []:
            events.extend(self._translate_delta(choice.delta))
            if choice.finish_reason:
                events.extend(self._close_block())
                self._stopped = True
                events.append(
                    MessageStopEvent(
                        stop_reason=_FINISH_REASONS.get(
                            choice.finish_reason, choice.finish_reason
                        )
                    )
                )

        usage = getattr(chunk, "usage", None)
        if usage is not None:
            events.append(
                MetadataEvent(
                    input_tokens=usage.prompt_tokens or 0,
                    output_tokens=usage.completion_tokens or 0,
                )
            )
        return events

    def finish(self) -> list[StreamEvent]:
        """Close whatever is still open if the stream ended without a finish reason."""
        events = self._close_block()
        if self._started and not self._stopped:
            events.append(MessageStopEvent(stop_reason="end_turn"))
        return events

    def _translate_delta(self, delta: Any) -> list[StreamEvent]:
        if delta is None:
            return []
        events: list[StreamEvent] = []

        reasoning = getattr(delta, "reasoning_content", None)
        if reasoning:
            events.extend(self._ensure_block("reasoning"))
            events.append(
                ContentBlockDeltaEvent(index=self._block_index, reasoning_text=reasoning)
            )

        if delta.content:
            events.extend(self._ensure_block("text"))
            events.append(ContentBlockDeltaEvent(index=self._block_index, text=delta.content))

        for tc in delta.tool_calls or []:
            if tc.id and self._tool_calls.get(tc.index) != tc.id:
                events.extend(self._close_block())
                self._block_index += 1
                self._open = "tool"
                self._tool_calls[tc.index] = tc.id
                events.append(
                    ContentBlockStartEvent(
                        index=self._block_index,
                        tool_use_id=tc.id,
                        name=tc.function.name if tc.function else "",
                    )
                )
            arguments = tc.function.arguments if tc.function else None
            if arguments and self._open == "tool":
                events.append(
                    ContentBlockDeltaEvent(index=self._block_index, tool_input=arguments)
                )
        return events

    def _ensure_block(self, kind: str) -> list[StreamEvent]:
        if self._open == kind:
            return []
        events = self._close_block()
        self._block_index += 1
        self._open = kind
        events.append(ContentBlockStartEvent(index=self._block_index))
        return events

    def _close_block(self) -> list[StreamEvent]:
        if self._open is None:
            return []
        self._open = None
        return [ContentBlockStopEvent(index=self._block_index)]


# ---------------------------------------------------------------------------
# Request building
# ---------------------------------------------------------------------------


def build_chat_kwargs(request: StreamRequest) -> dict[str, Any]:
    """Build ``chat.completions.create`` keyword arguments for *request*."""
    messages: list[dict[str, Any]] = []
    if request.system_prompt:
        messages.append({"role": "system", "content": request.system_prompt})
    for turn in request.messages:
        messages.extend(turn_to_openai(turn))

    kwargs: dict[str, Any] = {
        "model": request.model,
        "messages": messages,
        "max_tokens": request.max_tokens,
        "temperature": request.temperature,
        "stream": True,
        "stream_options": {"include_usage": True},
    }
    if request.tools:
        kwargs["tools"] = [t.to_openai_format() for t in request.tools]
        kwargs["tool_choice"] = "auto"
    if request.thinking_budget:
        kwargs["extra_body"] = {
            "thinking": {"type": "enabled", "budget_tokens": request.thinking_budget}
        }
    if request.output_schema:
        kwargs["response_format"] = {
            "type": "json_schema",
            "json_schema": {
                "name": request.output_schema.get("title", "OutputSchema"),
                "description": request.output_schema.get(
                    "description", "Structured output schema"
                ),
                "schema": request.output_schema,
            },
        }
    return kwargs


def turn_to_openai(turn: Turn) -> list[dict[str, Any]]:
    """Convert one turn to chat-completions messages.

    Tool results become one ``role="tool"`` message each.  Reasoning blocks
    are not replayed; chat-completions has no slot for them.
    """
    texts: list[str] = []
    tool_calls: list[dict[str, Any]] = []
    tool_messages: list[dict[str, Any]] = []

    for block in turn.content:
        if isinstance(block, TextBlock):
            texts.append(block.text)
        elif isinstance(block, ToolUseBlock):
            tool_calls.append(
                {
                    "id": block.tool_use_id,
                    "type": "function",
                    "function": {"name": block.name, "arguments": json.dumps(block.input)},
                }
            )
        elif isinstance(block, ToolResultBlock):
            tool_messages.append(
                {
                    "role": "tool",
                    "tool_call_id": block.tool_use_id,
                    "content": _render_tool_result(block),
                }
            )
        elif isinstance(block, ReasoningBlock):
            continue
        else:
            raise TypeError(f"Not a content block: {type(block).__name__}")

    messages: list[dict[str, Any]] = list(tool_messages)
    if turn.role == "assistant":
        if texts or tool_calls:
            message: dict[str, Any] = {
                "role": "assistant",
                "content": "".join(texts) if texts else None,
            }
            if tool_calls:
                message["tool_calls"] = tool_calls
            messages.append(message)
    elif texts:
        messages.append({"role": "user", "content": "\n".join(texts)})
    return messages


def _render_tool_result(block: ToolResultBlock) -> str:
    parts = []
    for entry in block.content:
        if isinstance(entry, TextContent):
            parts.append(entry.text)
        elif isinstance(entry, JsonContent):
            parts.append(json.dumps(entry.value))
    return "\n".join(parts)


def _map_api_error(exc: Exception) -> LLMError:
    if isinstance(exc, RateLimitError):
        logger.warning("LLM rate limit exceeded: %s", exc)
        return ThrottlingError(f"Rate limit exceeded: {exc}", status_code=429)
    if isinstance(exc, APIConnectionError):
        logger.error("LLM connection failed: %s", exc)
        return ServiceUnavailableError(f"Could not connect to LLM endpoint: {exc}")
    if isinstance(exc, APIStatusError):
        status = exc.status_code
        logger.error("LLM API error %d: %s", status, exc)
        message = f"LLM API returned status {status}: {exc}"
        if status in (400, 422):
            return ValidationError(message, status_code=status)
        if status == 503:
            return ServiceUnavailableError(message, status_code=status)
        if status >= 500:
            return InternalServerError(message, status_code=status)
        return StreamError(message, status_code=status)
    return StreamError(str(exc))
