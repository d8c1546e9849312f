"""
StreamAccumulator: folds one pass of stream events into a ``StreamState``.

The accumulator is a small state machine keyed by the currently open block::

    Idle -> TextOpen | ToolUseOpen | ReasoningOpen -> Idle

Text deltas go straight into ``accumulated_text``.  Tool-use blocks buffer
their raw JSON fragments until the block stops, then parse the whole buffer
once.  Reasoning blocks open on their first reasoning delta and are appended
to ``reasoning_blocks`` when the block stops.

Malformed tool input never fails the pass: the tool use is recorded with a
``{"_raw": ..., "_parse_error": ...}`` input and the dispatcher reports the
problem back to the model instead.  Error events and structural violations
(interleaved blocks) do fail the pass with a typed ``LLMError``.

One accumulator instance handles exactly one pass; events are processed
strictly in arrival order and every event produces at most one observer
notification per payload.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, Iterable

from toolstream.conversation.events import (
    ChunkType,
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    MessageStartEvent,
    MessageStopEvent,
    MetadataEvent,
    Observer,
    StreamChunk,
    StreamErrorEvent,
    StreamEvent,
)
from toolstream.conversation.messages import ReasoningBlock, ToolUseBlock, Usage
from toolstream.errors import StreamProtocolError, error_for_kind

_logger = logging.getLogger(__name__)


@dataclass
class PendingToolUse:
    """A tool-use block whose input is still streaming."""

    tool_use_id: str
    name: str


@dataclass
class PendingReasoning:
    """A reasoning block that has not been closed yet."""

    text: str = ""
    signature: str | None = None

    def freeze(self) -> ReasoningBlock:
        return ReasoningBlock(text=self.text, signature=self.signature)


@dataclass
class StreamState:
    """Mutable accumulator state for a single streaming pass.

    Attributes:
        accumulated_text: All text deltas, concatenated.
        tool_uses: Completed tool uses, in stream order.
        current_tool: The tool-use block being assembled, if any.
        tool_input_buffer: Raw JSON fragments for ``current_tool``.
        reasoning_blocks: Completed reasoning blocks, in stream order.
        current_reasoning: The reasoning block being assembled, if any.
        stop_reason: Set by the message-stop event.
        usage: Token usage for this pass.
    """

    accumulated_text: str = ""
    tool_uses: list[ToolUseBlock] = field(default_factory=list)
    current_tool: PendingToolUse | None = None
    tool_input_buffer: str = ""
    reasoning_blocks: list[ReasoningBlock] = field(default_factory=list)
    current_reasoning: PendingReasoning | None = None
    stop_reason: str | None = None
    usage: Usage = field(default_factory=Usage)

    @property
    def wants_tools(self) -> bool:
        """True when the model stopped to call tools and asked for at least one."""
        return self.stop_reason == "tool_use" and bool(self.tool_uses)


class StreamAccumulator:
    """Folds stream events into a ``StreamState`` and notifies an observer.

    Args:
        observer: Optional callable receiving one ``StreamChunk`` per
            notification, synchronously and in event order.
        logger: Optional logger; defaults to this module's logger.
    """

    def __init__(
        self,
        observer: Observer | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.observer = observer
        self.logger = logger or _logger
        self.state = StreamState()

    async def consume(
        self, events: AsyncIterable[StreamEvent] | Iterable[StreamEvent]
    ) -> StreamState:
        """Feed every event from *events* and return the final state.

        The iterator is drained completely; usage metadata may legitimately
        follow the message-stop event.  An async generator is closed when
        consumption stops early, so the source can release its connection.

        Raises:
            LLMError: If an error event arrives or the block structure is
                violated.  Errors raised by the iterator itself propagate
                unchanged.
        """
        if hasattr(events, "__aiter__"):
            try:
                async for event in events:  # type: ignore[union-attr]
                    self.feed(event)
            finally:
                aclose = getattr(events, "aclose", None)
                if aclose is not None:
                    await aclose()
        else:
            for event in events:  # type: ignore[union-attr]
                self.feed(event)
        return self.state

    def feed(self, event: StreamEvent) -> None:
        """Apply a single event to the state."""
        if isinstance(event, MessageStartEvent):
            self._emit(StreamChunk(type=ChunkType.MESSAGE_START))
        elif isinstance(event, ContentBlockStartEvent):
            self._on_block_start(event)
        elif isinstance(event, ContentBlockDeltaEvent):
            self._on_block_delta(event)
        elif isinstance(event, ContentBlockStopEvent):
            self._on_block_stop(event)
        elif isinstance(event, MessageStopEvent):
            self._on_message_stop(event)
        elif isinstance(event, MetadataEvent):
            self._on_metadata(event)
        elif isinstance(event, StreamErrorEvent):
            self._on_error(event)
        else:
            raise TypeError(f"Unsupported stream event: {type(event).__name__}")

    # ------------------------------------------------------------------
    # Block start / delta / stop
    # ------------------------------------------------------------------

    def _on_block_start(self, event: ContentBlockStartEvent) -> None:
        state = self.state
        if state.current_tool is not None or state.current_reasoning is not None:
            raise StreamProtocolError(
                f"Content block {event.index} started while another block is still open"
            )
        if not event.is_tool_use:
            return

        state.current_tool = PendingToolUse(
            tool_use_id=event.tool_use_id or "",
            name=event.name or "",
        )
        state.tool_input_buffer = ""
        self._emit(
            StreamChunk(
                type=ChunkType.TOOL_USE_START,
                tool_use_id=state.current_tool.tool_use_id,
                tool_name=state.current_tool.name,
                content_block_index=event.index,
            )
        )

    def _on_block_delta(self, event: ContentBlockDeltaEvent) -> None:
        if event.text is not None:
            self._on_text_delta(event)
        if event.tool_input is not None:
            self._on_tool_input_delta(event)
        if event.reasoning_text is not None or event.reasoning_signature is not None:
            self._on_reasoning_delta(event)

    def _on_text_delta(self, event: ContentBlockDeltaEvent) -> None:
        state = self.state
        if state.current_tool is not None:
            raise StreamProtocolError(
                f"Text delta received inside tool-use block {state.current_tool.name!r}"
            )
        state.accumulated_text += event.text or ""
        self._emit(
            StreamChunk(
                type=ChunkType.TEXT,
                content=event.text,
                content_block_index=event.index,
            )
        )

    def _on_tool_input_delta(self, event: ContentBlockDeltaEvent) -> None:
        state = self.state
        if state.current_tool is None:
            raise StreamProtocolError("Tool input delta received outside a tool-use block")
        state.tool_input_buffer += event.tool_input or ""
        self._emit(
            StreamChunk(
                type=ChunkType.TOOL_USE_DELTA,
                content=event.tool_input,
                tool_use_id=state.current_tool.tool_use_id,
                tool_name=state.current_tool.name,
                content_block_index=event.index,
            )
        )

    def _on_reasoning_delta(self, event: ContentBlockDeltaEvent) -> None:
        state = self.state
        if state.current_tool is not None:
            raise StreamProtocolError(
                f"Reasoning delta received inside tool-use block {state.current_tool.name!r}"
            )
        if state.current_reasoning is None:
            state.current_reasoning = PendingReasoning()

        if event.reasoning_text is not None:
            state.current_reasoning.text += event.reasoning_text
            self._emit(
                StreamChunk(
                    type=ChunkType.REASONING,
                    content=event.reasoning_text,
                    content_block_index=event.index,
                )
            )
        if event.reasoning_signature is not None:
            state.current_reasoning.signature = event.reasoning_signature
            self._emit(
                StreamChunk(
                    type=ChunkType.REASONING_SIGNATURE,
                    signature=event.reasoning_signature,
                    content_block_index=event.index,
                )
            )

    def _on_block_stop(self, event: ContentBlockStopEvent) -> None:
        state = self.state
        if state.current_tool is not None:
            self._finish_tool_use(event)
            return
        if state.current_reasoning is not None:
            state.reasoning_blocks.append(state.current_reasoning.freeze())
            state.current_reasoning = None
        self._emit(
            StreamChunk(type=ChunkType.CONTENT_BLOCK_STOP, content_block_index=event.index)
        )

    def _finish_tool_use(self, event: ContentBlockStopEvent) -> None:
        state = self.state
        pending = state.current_tool
        assert pending is not None

        state.tool_uses.append(
            ToolUseBlock(
                tool_use_id=pending.tool_use_id,
                name=pending.name,
                input=self._parse_tool_input(pending.name, state.tool_input_buffer),
            )
        )
        state.current_tool = None
        state.tool_input_buffer = ""
        self._emit(
            StreamChunk(
                type=ChunkType.TOOL_USE_END,
                tool_use_id=pending.tool_use_id,
                tool_name=pending.name,
                content_block_index=event.index,
            )
        )

    def _parse_tool_input(self, name: str, buffer: str) -> Any:
        if not buffer:
            return {}
        try:
            return json.loads(buffer)
        except json.JSONDecodeError as exc:
            self.logger.warning("Failed to parse tool input JSON for %r: %s", name, exc)
            return {"_raw": buffer, "_parse_error": str(exc)}

    # ------------------------------------------------------------------
    # Message-level events
    # ------------------------------------------------------------------

    def _on_message_stop(self, event: MessageStopEvent) -> None:
        self.state.stop_reason = event.stop_reason
        self.logger.info("Message stopped: %s", event.stop_reason)
        self._emit(StreamChunk(type=ChunkType.MESSAGE_STOP, stop_reason=event.stop_reason))

    def _on_metadata(self, event: MetadataEvent) -> None:
        input_tokens = event.input_tokens or 0
        output_tokens = event.output_tokens or 0
        self.state.usage.add(input_tokens, output_tokens)
        self._emit(
            StreamChunk(
                type=ChunkType.METADATA,
                usage=self.state.usage.to_dict(),
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )
        )

    def _on_error(self, event: StreamErrorEvent) -> None:
        error = error_for_kind(event.kind, event.message)
        if event.kind == "throttling":
            self.logger.warning("Stream throttled: %s", event.message)
        else:
            self.logger.error("Stream error (%s): %s", event.kind, event.message)
        raise error

    def _emit(self, chunk: StreamChunk) -> None:
        if self.observer is not None:
            self.observer(chunk)
