"""
AgenticLoop: the streaming tool-calling engine for toolstream.

This module implements the core "agentic" behaviour: streaming one pass from
the model, dispatching the tool calls it requests, folding the results back
into the conversation, and repeating until the model produces a final answer.

Message bookkeeping per pass:

- Tool-use pass: an ``assistant`` turn (reasoning blocks, then text if any,
  then tool uses) followed by a ``user`` turn with one tool result per tool
  use, in request order.
- Final pass: an ``assistant`` turn (reasoning blocks, then text), omitted
  when the pass produced neither text nor reasoning.

The reported answer is the final pass's text only; narration from tool-use
passes stays in ``messages`` but never leaks into ``text``.
"""

from __future__ import annotations

import logging
import time
from typing import Sequence

from toolstream.conversation.accumulator import StreamAccumulator, StreamState
from toolstream.conversation.dispatcher import TOOL_TIMEOUT_SECONDS, ToolDispatcher
from toolstream.conversation.events import Observer
from toolstream.conversation.messages import (
    ContentBlock,
    ConversationResult,
    TextBlock,
    Turn,
    Usage,
)
from toolstream.conversation.providers import RequestOptions, StreamRequest, StreamSource
from toolstream.conversation.tools.registry import ToolRegistry
from toolstream.errors import ConfigurationError, ToolIterationLimitExceeded

_logger = logging.getLogger(__name__)

MAX_TOOL_ITERATIONS = 20


class AgenticLoop:
    """Executes the stream + tool-calling loop for a single query.

    Typical usage::

        loop = AgenticLoop(
            stream_source=OpenAICompatibleStreamSource(),
            registry=registry,
            options=RequestOptions(model="llama3.1:8b"),
        )
        result = await loop.run("What is the weather in Kansas?", observer=print)

    Attributes:
        stream_source: Backend that streams one pass as typed events.
        registry: Tools available to the model.
        options: Inference configuration, immutable for the query.
        prior_messages: Turns from earlier queries, sent before this query's
            turns on every pass.
        max_iterations: Maximum number of passes per query.
    """

    def __init__(
        self,
        stream_source: StreamSource,
        registry: ToolRegistry | None,
        options: RequestOptions,
        prior_messages: Sequence[Turn] = (),
        logger: logging.Logger | None = None,
        max_iterations: int = MAX_TOOL_ITERATIONS,
        tool_timeout: float = TOOL_TIMEOUT_SECONDS,
    ) -> None:
        self.stream_source = stream_source
        self.registry = registry if registry is not None else ToolRegistry()
        self.options = options
        self.prior_messages = tuple(prior_messages)
        self.max_iterations = max_iterations
        self.logger = logger or _logger
        self.dispatcher = ToolDispatcher(self.registry, timeout=tool_timeout, logger=self.logger)

    async def run(self, prompt: str, observer: Observer | None = None) -> ConversationResult:
        """Run one query through the loop.

        Args:
            prompt: The user's message.  Must be a non-blank string.
            observer: Optional callable receiving a ``StreamChunk`` per
                processed stream event.

        Returns:
            An immutable ``ConversationResult``.

        Raises:
            ConfigurationError: If *prompt* is empty or not a string.
            ToolIterationLimitExceeded: If the model keeps requesting tools
                past ``max_iterations`` passes.
            LLMError: Transport or protocol failures, propagated unchanged.
        """
        if not isinstance(prompt, str) or not prompt.strip():
            raise ConfigurationError("Prompt must be a non-empty string")

        messages: list[Turn] = [Turn.user_text(prompt)]
        usage = Usage()
        text = ""
        started = time.monotonic()
        self.logger.info("Streaming query to %s", self.options.model)

        iteration = 0
        while True:
            iteration += 1
            if iteration > self.max_iterations:
                self.logger.error("Tool iteration limit (%d) exceeded", self.max_iterations)
                raise ToolIterationLimitExceeded(
                    f"Maximum tool iteration depth ({self.max_iterations}) exceeded"
                )

            self.logger.info("Starting iteration %d", iteration)
            state = await self._stream_pass(messages, observer)
            usage.add(state.usage.input_tokens, state.usage.output_tokens)

            if state.wants_tools:
                self.logger.info(
                    "Model requested tool_use: %s",
                    ", ".join(tu.name for tu in state.tool_uses),
                )
                messages.append(_assistant_turn(state, include_tool_uses=True))
                results = await self.dispatcher.dispatch(state.tool_uses)
                messages.append(Turn(role="user", content=tuple(results)))
                continue

            text = state.accumulated_text
            if state.accumulated_text or state.reasoning_blocks:
                messages.append(_assistant_turn(state, include_tool_uses=False))
            break

        self.logger.info(
            "Completed in %d iteration(s) in %.3fs (input_tokens=%d, output_tokens=%d)",
            iteration,
            time.monotonic() - started,
            usage.input_tokens,
            usage.output_tokens,
        )
        return ConversationResult(
            text=text,
            messages=tuple(messages),
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )

    def build_request(self, in_flight: Sequence[Turn]) -> StreamRequest:
        """Assemble the request for the next pass."""
        options = self.options
        return StreamRequest(
            model=options.model,
            messages=self.prior_messages + tuple(in_flight),
            max_tokens=options.max_tokens,
            temperature=options.temperature,
            system_prompt=options.system_prompt,
            tools=tuple(self.registry.get_definitions()),
            thinking_budget=options.thinking_budget,
            output_schema=options.output_schema,
        )

    async def _stream_pass(
        self, in_flight: Sequence[Turn], observer: Observer | None
    ) -> StreamState:
        request = self.build_request(in_flight)
        self.logger.info("Sending %d message(s) to %s", len(request.messages), request.model)
        accumulator = StreamAccumulator(observer=observer, logger=self.logger)
        return await accumulator.consume(self.stream_source.open(request))


def _assistant_turn(state: StreamState, include_tool_uses: bool) -> Turn:
    content: list[ContentBlock] = list(state.reasoning_blocks)
    if state.accumulated_text:
        content.append(TextBlock(state.accumulated_text))
    if include_tool_uses:
        content.extend(state.tool_uses)
    return Turn(role="assistant", content=tuple(content))
