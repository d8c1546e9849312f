"""
ChatSession: caller-facing facade over the ``AgenticLoop``.

A session owns the configuration (model, inference settings, tools) and the
conversation history, expressed as the list of prior ``ConversationResult``
objects.  Each ``query`` runs a fresh ``AgenticLoop`` seeded with the
flattened history and appends its result.

History can be persisted and restored::

    saved = [r.to_dict() for r in session.responses]
    ...
    restored = ChatSession(stream_source=source, model="llama3.1:8b")
    for data in saved:
        restored.add_response(ConversationResult.from_dict(data))

All configuration is validated up front: a ``ConfigurationError`` is raised
before any request is sent.
"""

from __future__ import annotations

import logging
import math
from numbers import Real
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from toolstream.conversation.dispatcher import TOOL_TIMEOUT_SECONDS
from toolstream.conversation.events import Observer
from toolstream.conversation.loop import MAX_TOOL_ITERATIONS, AgenticLoop
from toolstream.conversation.messages import ConversationResult, Turn
from toolstream.conversation.providers import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    OpenAICompatibleStreamSource,
    RequestOptions,
    StreamSource,
)
from toolstream.conversation.tools.base import Tool
from toolstream.conversation.tools.registry import ToolRegistry
from toolstream.errors import ConfigurationError

if TYPE_CHECKING:
    from toolstream.config import Settings

_logger = logging.getLogger(__name__)


class ChatSession:
    """Multi-turn conversation with automatic tool resolution.

    Attributes:
        stream_source: Backend that streams each pass.
        model: Model identifier.
        registry: Tools available to the model.
    """

    def __init__(
        self,
        stream_source: StreamSource,
        model: str,
        logger: logging.Logger | None = None,
        tool_timeout: float = TOOL_TIMEOUT_SECONDS,
        max_iterations: int = MAX_TOOL_ITERATIONS,
    ) -> None:
        if not isinstance(model, str) or not model.strip():
            raise ConfigurationError("model must be a non-empty string")

        self.stream_source = stream_source
        self.model = model
        self.registry = ToolRegistry()
        self.logger = logger or _logger
        self.tool_timeout = tool_timeout
        self.max_iterations = max_iterations

        self._max_tokens = DEFAULT_MAX_TOKENS
        self._temperature = DEFAULT_TEMPERATURE
        self._system_prompt: str | None = None
        self._thinking_budget: int | None = None
        self._output_schema: dict[str, Any] | None = None
        self._responses: list[ConversationResult] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        stream_source: StreamSource | None = None,
    ) -> ChatSession:
        """Build a session from ``Settings``; creates an OpenAI-compatible source if none is given."""
        source = stream_source or OpenAICompatibleStreamSource(
            base_url=settings.base_url, api_key=settings.api_key
        )
        session = cls(
            stream_source=source,
            model=settings.model,
            tool_timeout=settings.tool_timeout,
            max_iterations=settings.max_tool_iterations,
        )
        session.set_max_tokens(settings.max_tokens)
        session.set_temperature(settings.temperature)
        if settings.system_prompt:
            session.set_system_prompt(settings.system_prompt)
        if settings.thinking_budget:
            session.enable_thinking(budget_tokens=settings.thinking_budget)
        return session

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_temperature(self, value: float) -> ChatSession:
        """Set the sampling temperature (0.0 to 1.0; exactly 1.0 while thinking)."""
        if isinstance(value, bool) or not isinstance(value, Real) or not 0.0 <= value <= 1.0:
            raise ConfigurationError("Temperature must be a number between 0.0 and 1.0")
        if self._thinking_budget is not None and not _is_one(value):
            raise ConfigurationError("Temperature must be 1.0 when thinking is enabled")
        self._temperature = float(value)
        return self

    def set_max_tokens(self, value: int) -> ChatSession:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigurationError("max_tokens must be a positive integer")
        self._max_tokens = value
        return self

    def set_system_prompt(self, prompt: str) -> ChatSession:
        if not isinstance(prompt, str) or not prompt.strip():
            raise ConfigurationError("System prompt must be a non-empty string")
        self._system_prompt = prompt
        return self

    def enable_thinking(self, budget_tokens: int = 10_000) -> ChatSession:
        """Enable extended reasoning with a token budget.

        The temperature must already be 1.0.
        """
        if isinstance(budget_tokens, bool) or not isinstance(budget_tokens, int) or budget_tokens <= 0:
            raise ConfigurationError("budget_tokens must be a positive integer")
        if not _is_one(self._temperature):
            raise ConfigurationError("Temperature must be 1.0 when thinking is enabled")
        self._thinking_budget = budget_tokens
        return self

    def disable_thinking(self) -> ChatSession:
        self._thinking_budget = None
        return self

    def set_output_schema(self, schema: dict[str, Any] | type[BaseModel] | None) -> ChatSession:
        """Constrain the final answer to a JSON Schema (dict or pydantic model class).

        Pass ``None`` to clear.
        """
        if schema is None:
            self._output_schema = None
        elif isinstance(schema, type) and issubclass(schema, BaseModel):
            self._output_schema = schema.model_json_schema()
        elif isinstance(schema, dict):
            self._output_schema = schema
        else:
            raise ConfigurationError(
                "Schema must be a JSON Schema dict or a pydantic model class"
            )
        return self

    def add_tool(self, tool: Tool) -> ChatSession:
        """Register a tool; duplicate names raise ``ConfigurationError``."""
        self.registry.register(tool)
        return self

    def add_response(self, response: ConversationResult) -> ChatSession:
        """Append a prior exchange (e.g. one restored from storage) to the history."""
        if not isinstance(response, ConversationResult):
            raise ConfigurationError(
                f"Expected a ConversationResult, got {type(response).__name__}"
            )
        self._responses.append(response)
        return self

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def options(self) -> RequestOptions:
        return RequestOptions(
            model=self.model,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            system_prompt=self._system_prompt,
            thinking_budget=self._thinking_budget,
            output_schema=self._output_schema,
        )

    @property
    def responses(self) -> list[ConversationResult]:
        return list(self._responses)

    @property
    def messages(self) -> list[Turn]:
        """All prior turns, flattened across responses."""
        return [turn for response in self._responses for turn in response.messages]

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    async def query(self, prompt: str, observer: Observer | None = None) -> ConversationResult:
        """Send *prompt*, resolve tool calls, record and return the result.

        Raises:
            ConfigurationError: If *prompt* is empty or not a string.
            ToolIterationLimitExceeded: If the tool loop does not converge.
            LLMError: Transport failures from the stream source.
        """
        if not isinstance(prompt, str) or not prompt.strip():
            raise ConfigurationError("Prompt must be a non-empty string")

        loop = AgenticLoop(
            stream_source=self.stream_source,
            registry=self.registry,
            options=self.options,
            prior_messages=self.messages,
            logger=self.logger,
            max_iterations=self.max_iterations,
            tool_timeout=self.tool_timeout,
        )
        result = await loop.run(prompt, observer=observer)
        self.add_response(result)
        return result

    def __repr__(self) -> str:
        return (
            f"ChatSession(model={self.model!r}, tools={self.registry.names()!r}, "
            f"responses={len(self._responses)})"
        )


def _is_one(value: float) -> bool:
    return math.isclose(float(value), 1.0, abs_tol=1e-9)
