"""Unit tests for toolstream.conversation.providers."""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from toolstream.conversation.accumulator import StreamAccumulator
from toolstream.conversation.events import (
    ContentBlockDeltaEvent,
    ContentBlockStartEvent,
    ContentBlockStopEvent,
    MessageStartEvent,
    MessageStopEvent,
    MetadataEvent,
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
from toolstream.conversation.providers import (
    OpenAICompatibleStreamSource,
    StreamRequest,
    StreamSource,
    _ChunkTranslator,
    build_chat_kwargs,
    turn_to_openai,
)
from toolstream.conversation.tools.base import ToolDefinition
from toolstream.errors import (
    InternalServerError,
    ServiceUnavailableError,
    StreamError,
    ThrottlingError,
    ValidationError,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _request(**overrides: Any) -> StreamRequest:
    fields: dict[str, Any] = {"model": "test-model", "messages": (Turn.user_text("Hi"),)}
    fields.update(overrides)
    return StreamRequest(**fields)


def _chunk(
    content: str | None = None,
    reasoning: str | None = None,
    tool_calls: list[Any] | None = None,
    finish_reason: str | None = None,
    usage: Any = None,
    choices: bool = True,
) -> SimpleNamespace:
    delta = SimpleNamespace(content=content, reasoning_content=reasoning, tool_calls=tool_calls)
    choice = SimpleNamespace(delta=delta, finish_reason=finish_reason)
    return SimpleNamespace(choices=[choice] if choices else [], usage=usage)


def _tool_call(index: int, id_: str | None = None, name: str | None = None, arguments: str = "") -> Any:
    return SimpleNamespace(
        index=index, id=id_, function=SimpleNamespace(name=name, arguments=arguments)
    )


def _translate(*chunks: Any) -> list[Any]:
    translator = _ChunkTranslator()
    events: list[Any] = []
    for chunk in chunks:
        events.extend(translator.translate(chunk))
    events.extend(translator.finish())
    return events


class _FakeStream:
    """Stands in for the SDK's AsyncStream: async iterable and async context manager."""

    def __init__(self, chunks: list[Any]) -> None:
        self.chunks = list(chunks)
        self.closed = False

    async def __aenter__(self) -> "_FakeStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        self.closed = True
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            yield chunk


def _source_with(create: AsyncMock) -> OpenAICompatibleStreamSource:
    client = MagicMock()
    client.chat.completions.create = create
    return OpenAICompatibleStreamSource(client=client)


async def _drain(source: OpenAICompatibleStreamSource, request: StreamRequest) -> list[Any]:
    return [event async for event in source.open(request)]


# ---------------------------------------------------------------------------
# build_chat_kwargs
# ---------------------------------------------------------------------------


def test_minimal_kwargs() -> None:
    kwargs = build_chat_kwargs(_request())

    assert kwargs == {
        "model": "test-model",
        "messages": [{"role": "user", "content": "Hi"}],
        "max_tokens": 4096,
        "temperature": 0.5,
        "stream": True,
        "stream_options": {"include_usage": True},
    }


def test_system_prompt_comes_first() -> None:
    kwargs = build_chat_kwargs(_request(system_prompt="Be terse."))
    assert kwargs["messages"][0] == {"role": "system", "content": "Be terse."}


def test_tools_are_advertised() -> None:
    definition = ToolDefinition("get_time", "Current time.", {"type": "object", "properties": {}})

    kwargs = build_chat_kwargs(_request(tools=(definition,)))

    assert kwargs["tools"] == [definition.to_openai_format()]
    assert kwargs["tool_choice"] == "auto"


def test_thinking_budget_and_output_schema() -> None:
    schema = {"title": "Answer", "type": "object", "properties": {"value": {"type": "integer"}}}

    kwargs = build_chat_kwargs(_request(thinking_budget=2048, output_schema=schema))

    assert kwargs["extra_body"] == {"thinking": {"type": "enabled", "budget_tokens": 2048}}
    assert kwargs["response_format"]["type"] == "json_schema"
    assert kwargs["response_format"]["json_schema"]["name"] == "Answer"
    assert kwargs["response_format"]["json_schema"]["schema"] is schema


# ---------------------------------------------------------------------------
# turn_to_openai
# ---------------------------------------------------------------------------


def test_assistant_turn_with_tool_uses() -> None:
    turn = Turn(
        role="assistant",
        content=(
            ReasoningBlock("private"),
            TextBlock("Checking."),
            ToolUseBlock("call_1", "get_weather", {"location": "Paris"}),
        ),
    )

    assert turn_to_openai(turn) == [
        {
            "role": "assistant",
            "content": "Checking.",
            "tool_calls": [
                {
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": "get_weather", "arguments": '{"location": "Paris"}'},
                }
            ],
        }
    ]


def test_assistant_turn_without_text_has_null_content() -> None:
    turn = Turn(role="assistant", content=(ToolUseBlock("call_1", "get_time", {}),))
    assert turn_to_openai(turn)[0]["content"] is None


def test_reasoning_only_turn_is_dropped() -> None:
    assert turn_to_openai(Turn(role="assistant", content=(ReasoningBlock("hmm"),))) == []


def test_tool_results_become_tool_messages() -> None:
    turn = Turn(
        role="user",
        content=(
            ToolResultBlock("call_1", (JsonContent({"temp": 18}),)),
            ToolResultBlock("call_2", (TextContent("Error: boom"),), status="error"),
        ),
    )

    assert turn_to_openai(turn) == [
        {"role": "tool", "tool_call_id": "call_1", "content": json.dumps({"temp": 18})},
        {"role": "tool", "tool_call_id": "call_2", "content": "Error: boom"},
    ]


def test_user_text_blocks_are_joined() -> None:
    turn = Turn(role="user", content=(TextBlock("one"), TextBlock("two")))
    assert turn_to_openai(turn) == [{"role": "user", "content": "one\ntwo"}]


# ---------------------------------------------------------------------------
# _ChunkTranslator
# ---------------------------------------------------------------------------


def test_text_stream_translation() -> None:
    events = _translate(
        _chunk(content="Hel"),
        _chunk(content="lo"),
        _chunk(finish_reason="stop"),
        _chunk(choices=False, usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3)),
    )

    assert events == [
        MessageStartEvent(),
        ContentBlockStartEvent(index=0),
        ContentBlockDeltaEvent(index=0, text="Hel"),
        ContentBlockDeltaEvent(index=0, text="lo"),
        ContentBlockStopEvent(index=0),
        MessageStopEvent(stop_reason="end_turn"),
        MetadataEvent(input_tokens=12, output_tokens=3),
    ]


def test_tool_call_translation() -> None:
    events = _translate(
        _chunk(content="Let me look."),
        _chunk(tool_calls=[_tool_call(0, "call_a", "get_weather", '{"loc')]),
        _chunk(tool_calls=[_tool_call(0, arguments='ation": "Oslo"}')]),
        _chunk(tool_calls=[_tool_call(1, "call_b", "get_time", "{}")]),
        _chunk(finish_reason="tool_calls"),
    )

    assert events == [
        MessageStartEvent(),
        ContentBlockStartEvent(index=0),
        ContentBlockDeltaEvent(index=0, text="Let me look."),
        ContentBlockStopEvent(index=0),
        ContentBlockStartEvent(index=1, tool_use_id="call_a", name="get_weather"),
        ContentBlockDeltaEvent(index=1, tool_input='{"loc'),
        ContentBlockDeltaEvent(index=1, tool_input='ation": "Oslo"}'),
        ContentBlockStopEvent(index=1),
        ContentBlockStartEvent(index=2, tool_use_id="call_b", name="get_time"),
        ContentBlockDeltaEvent(index=2, tool_input="{}"),
        ContentBlockStopEvent(index=2),
        MessageStopEvent(stop_reason="tool_use"),
    ]


def test_translated_tool_stream_accumulates_cleanly() -> None:
    accumulator = StreamAccumulator()
    for event in _translate(
        _chunk(reasoning="Need weather."),
        _chunk(tool_calls=[_tool_call(0, "call_a", "get_weather", '{"location": "Oslo"}')]),
        _chunk(finish_reason="tool_calls"),
    ):
        accumulator.feed(event)

    state = accumulator.state
    assert state.wants_tools
    assert state.reasoning_blocks == [ReasoningBlock("Need weather.")]
    assert state.tool_uses == [ToolUseBlock("call_a", "get_weather", {"location": "Oslo"})]


def test_length_finish_reason_maps_to_max_tokens() -> None:
    events = _translate(_chunk(content="cut"), _chunk(finish_reason="length"))
    assert events[-1] == MessageStopEvent(stop_reason="max_tokens")


def test_stream_without_finish_reason_is_closed() -> None:
    events = _translate(_chunk(content="partial"))
    assert events[-2:] == [ContentBlockStopEvent(index=0), MessageStopEvent(stop_reason="end_turn")]


# ---------------------------------------------------------------------------
# OpenAICompatibleStreamSource
# ---------------------------------------------------------------------------


def test_satisfies_stream_source_protocol() -> None:
    assert isinstance(OpenAICompatibleStreamSource(client=MagicMock()), StreamSource)


@pytest.mark.anyio
async def test_open_streams_translated_events() -> None:
    stream = _FakeStream([_chunk(content="Hi!"), _chunk(finish_reason="stop")])
    create = AsyncMock(return_value=stream)
    source = _source_with(create)

    events = await _drain(source, _request(system_prompt="Be kind."))

    assert ContentBlockDeltaEvent(index=0, text="Hi!") in events
    assert events[-1] == MessageStopEvent(stop_reason="end_turn")
    assert stream.closed
    kwargs = create.await_args.kwargs
    assert kwargs["stream"] is True
    assert kwargs["messages"][0]["role"] == "system"


@pytest.mark.anyio
async def test_stream_is_closed_when_consumer_stops_early() -> None:
    stream = _FakeStream(
        [_chunk(content="a"), _chunk(content="b"), _chunk(content="c"), _chunk(finish_reason="stop")]
    )
    source = _source_with(AsyncMock(return_value=stream))

    events = source.open(_request())
    first = await events.__anext__()
    assert not stream.closed

    await events.aclose()

    assert first == MessageStartEvent()
    assert stream.closed


@pytest.mark.anyio
async def test_failing_observer_closes_stream() -> None:
    stream = _FakeStream([_chunk(content="a"), _chunk(content="b"), _chunk(finish_reason="stop")])
    source = _source_with(AsyncMock(return_value=stream))

    def observer(chunk: Any) -> None:
        if chunk.is_text:
            raise RuntimeError("display went away")

    with pytest.raises(RuntimeError, match="display went away"):
        await StreamAccumulator(observer=observer).consume(source.open(_request()))

    assert stream.closed


@pytest.mark.anyio
async def test_default_client_uses_base_url() -> None:
    with patch("toolstream.conversation.providers.AsyncOpenAI") as mock_cls:
        source = OpenAICompatibleStreamSource(base_url="http://llm.local/v1", api_key="k")

    mock_cls.assert_called_once_with(base_url="http://llm.local/v1", api_key="k")
    assert source.base_url == "http://llm.local/v1"


@pytest.mark.anyio
async def test_rate_limit_maps_to_throttling_error() -> None:
    from openai import RateLimitError

    create = AsyncMock(
        side_effect=RateLimitError("rate limit", response=MagicMock(status_code=429), body={})
    )

    with pytest.raises(ThrottlingError) as exc_info:
        await _drain(_source_with(create), _request())
    assert exc_info.value.status_code == 429


@pytest.mark.anyio
async def test_connection_failure_maps_to_service_unavailable() -> None:
    from openai import APIConnectionError

    create = AsyncMock(side_effect=APIConnectionError(request=MagicMock()))

    with pytest.raises(ServiceUnavailableError):
        await _drain(_source_with(create), _request())


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("status", "error_cls"),
    [
        (400, ValidationError),
        (422, ValidationError),
        (500, InternalServerError),
        (503, ServiceUnavailableError),
        (404, StreamError),
    ],
)
async def test_status_errors_map_to_typed_errors(status: int, error_cls: type[Exception]) -> None:
    from openai import APIStatusError

    mock_response = MagicMock()
    mock_response.status_code = status
    create = AsyncMock(side_effect=APIStatusError("failed", response=mock_response, body={}))

    with pytest.raises(error_cls) as exc_info:
        await _drain(_source_with(create), _request())
    assert exc_info.value.status_code == status
