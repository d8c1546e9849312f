"""
toolstream - streaming tool-use orchestration for LLM chat APIs.

This library turns a stream of typed protocol events into structured
conversation turns and resolves model-requested tool calls automatically:

- Stream accumulator (text, tool use, reasoning, usage)
- Tool dispatcher with parallel execution, timeouts and failure isolation
- Agentic loop with an iteration cap
- ``ChatSession`` facade with restorable history

Quick Start:
    >>> from toolstream import ChatSession, OpenAICompatibleStreamSource
    >>> session = ChatSession(OpenAICompatibleStreamSource(), model="llama3.1:8b")
    >>> result = await session.query("What time is it in Tokyo?")
    >>> print(result.text)
"""

import logging

from toolstream.config import Settings, get_settings
from toolstream.conversation import (
    AgenticLoop,
    ChatSession,
    ConversationResult,
    OpenAICompatibleStreamSource,
    StreamChunk,
)
from toolstream.conversation.tools import FunctionTool, ToolRegistry, tool
from toolstream.errors import (
    ConfigurationError,
    LLMError,
    ToolIterationLimitExceeded,
    ToolstreamError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
__all__ = [
    "AgenticLoop",
    "ChatSession",
    "ConfigurationError",
    "ConversationResult",
    "FunctionTool",
    "LLMError",
    "OpenAICompatibleStreamSource",
    "Settings",
    "StreamChunk",
    "ToolIterationLimitExceeded",
    "ToolRegistry",
    "ToolstreamError",
    "get_settings",
    "tool",
]
