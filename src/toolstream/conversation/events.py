"""
Stream events (input) and stream chunks (output) for one streaming pass.

A stream source yields the ``*Event`` dataclasses below, already
demultiplexed from the wire.  The accumulator folds them and emits one
``StreamChunk`` per processed event to the caller's observer, which can use
them for real-time display::

    def observer(chunk: StreamChunk) -> None:
        if chunk.is_text:
            print(chunk.content, end="", flush=True)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Union

# ---------------------------------------------------------------------------
# Input events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MessageStartEvent:
    role: str = "assistant"


@dataclass(frozen=True)
class ContentBlockStartEvent:
    """Opens a content block.  ``tool_use_id``/``name`` are set for tool-use blocks."""

    index: int = 0
    tool_use_id: str | None = None
    name: str | None = None

    @property
    def is_tool_use(self) -> bool:
        return self.tool_use_id is not None


@dataclass(frozen=True)
class ContentBlockDeltaEvent:
    """An incremental piece of the open block.

    Exactly one payload field is normally set.  ``tool_input`` fragments are
    not individually valid JSON.
    """

    index: int = 0
    text: str | None = None
    tool_input: str | None = None
    reasoning_text: str | None = None
    reasoning_signature: str | None = None


@dataclass(frozen=True)
class ContentBlockStopEvent:
    index: int = 0


@dataclass(frozen=True)
class MessageStopEvent:
    stop_reason: str | None = None


@dataclass(frozen=True)
class MetadataEvent:
    """Token usage for part of the pass; counts are deltas, not running totals."""

    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class StreamErrorEvent:
    """An error reported in-band.

    ``kind`` is one of ``internal_server``, ``model_stream``, ``throttling``,
    ``validation``, ``service_unavailable``; any other value is a generic
    stream error.
    """

    kind: str
    message: str


StreamEvent = Union[
    MessageStartEvent,
    ContentBlockStartEvent,
    ContentBlockDeltaEvent,
    ContentBlockStopEvent,
    MessageStopEvent,
    MetadataEvent,
    StreamErrorEvent,
]


# ---------------------------------------------------------------------------
# Output chunks
# ---------------------------------------------------------------------------


class ChunkType(str, Enum):
    TEXT = "text"
    TOOL_USE_START = "tool_use_start"
    TOOL_USE_DELTA = "tool_use_delta"
    TOOL_USE_END = "tool_use_end"
    MESSAGE_START = "message_start"
    MESSAGE_STOP = "message_stop"
    METADATA = "metadata"
    CONTENT_BLOCK_STOP = "content_block_stop"
    REASONING = "reasoning"
    REASONING_SIGNATURE = "reasoning_signature"


@dataclass(frozen=True)
class StreamChunk:
    """A normalised progress notification delivered to the observer.

    Attributes:
        type: What happened.
        content: Text, tool-input fragment or reasoning text.
        tool_use_id: Id of the tool call (tool_use_* chunks).
        tool_name: Name of the tool (tool_use_* chunks).
        stop_reason: Why the model stopped (message_stop).
        usage: Running usage totals for this pass (metadata).
        content_block_index: Index of the block the event belongs to.
        signature: Reasoning signature (reasoning_signature).
        input_tokens: Input-token delta carried by this event (metadata).
        output_tokens: Output-token delta carried by this event (metadata).
    """

    type: ChunkType
    content: str | None = None
    tool_use_id: str | None = None
    tool_name: str | None = None
    stop_reason: str | None = None
    usage: dict[str, int] | None = None
    content_block_index: int | None = None
    signature: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None

    @property
    def is_text(self) -> bool:
        return self.type is ChunkType.TEXT

    @property
    def is_tool_use_start(self) -> bool:
        return self.type is ChunkType.TOOL_USE_START

    @property
    def is_tool_use_delta(self) -> bool:
        return self.type is ChunkType.TOOL_USE_DELTA

    @property
    def is_tool_use_end(self) -> bool:
        return self.type is ChunkType.TOOL_USE_END

    @property
    def is_message_start(self) -> bool:
        return self.type is ChunkType.MESSAGE_START

    @property
    def is_message_stop(self) -> bool:
        return self.type is ChunkType.MESSAGE_STOP

    @property
    def is_tool_use_stop(self) -> bool:
        """True when the model stopped in order to call tools."""
        return self.stop_reason == "tool_use"

    @property
    def is_metadata(self) -> bool:
        return self.type is ChunkType.METADATA

    @property
    def is_content_block_stop(self) -> bool:
        return self.type is ChunkType.CONTENT_BLOCK_STOP

    @property
    def is_reasoning(self) -> bool:
        return self.type is ChunkType.REASONING

    @property
    def is_reasoning_signature(self) -> bool:
        return self.type is ChunkType.REASONING_SIGNATURE


# Observer callback: receives chunks synchronously, in event order.
Observer = Callable[[StreamChunk], Any]
