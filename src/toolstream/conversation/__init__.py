"""
toolstream conversation package.

Implements the streaming accumulator, the tool dispatcher and the agentic
tool-calling loop, plus the ``ChatSession`` facade that callers use.
"""

from toolstream.conversation.accumulator import StreamAccumulator, StreamState
from toolstream.conversation.dispatcher import ToolDispatcher
from toolstream.conversation.events import ChunkType, Observer, StreamChunk
from toolstream.conversation.loop import AgenticLoop
from toolstream.conversation.messages import (
    ConversationResult,
    JsonContent,
    ReasoningBlock,
    TextBlock,
    TextContent,
    ToolResultBlock,
    ToolUseBlock,
    Turn,
)
from toolstream.conversation.providers import (
    OpenAICompatibleStreamSource,
    RequestOptions,
    StreamRequest,
    StreamSource,
)
from toolstream.conversation.session import ChatSession

__all__ = [
    "AgenticLoop",
    "ChatSession",
    "ChunkType",
    "ConversationResult",
    "JsonContent",
    "Observer",
    "OpenAICompatibleStreamSource",
    "ReasoningBlock",
    "RequestOptions",
    "StreamAccumulator",
    "StreamChunk",
    "StreamRequest",
    "StreamSource",
    "StreamState",
    "TextBlock",
    "TextContent",
    "ToolDispatcher",
    "ToolResultBlock",
    "ToolUseBlock",
    "Turn",
]
