"""Unit tests for toolstream.conversation.tools.base."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import BaseModel

from toolstream.conversation.tools.base import (
    FunctionTool,
    Tool,
    ToolDefinition,
    definition_for,
    is_coroutine_tool,
    schema_from,
    tool,
)


class _CityArgs(BaseModel):
    city: str
    units: str = "metric"


# ---------------------------------------------------------------------------
# ToolDefinition
# ---------------------------------------------------------------------------


def test_to_openai_format() -> None:
    definition = ToolDefinition(
        name="get_weather",
        description="Weather lookup.",
        parameters={"type": "object", "properties": {"city": {"type": "string"}}},
    )
    assert definition.to_openai_format() == {
        "type": "function",
        "function": {
            "name": "get_weather",
            "description": "Weather lookup.",
            "parameters": {"type": "object", "properties": {"city": {"type": "string"}}},
        },
    }


def test_definition_for_fills_empty_schema() -> None:
    class _Bare:
        name = "bare"
        description = "No parameters."
        input_schema: dict[str, Any] = {}

        def invoke(self, arguments):
            return "ok"

    assert definition_for(_Bare()).parameters == {"type": "object", "properties": {}}


# ---------------------------------------------------------------------------
# schema_from
# ---------------------------------------------------------------------------


def test_schema_from_none() -> None:
    assert schema_from(None) == {"type": "object", "properties": {}}


def test_schema_from_pydantic_model() -> None:
    schema = schema_from(_CityArgs)
    assert schema["type"] == "object"
    assert set(schema["properties"]) == {"city", "units"}
    assert schema["required"] == ["city"]


def test_schema_from_dict_is_passed_through() -> None:
    schema = {"type": "object", "properties": {"x": {"type": "integer"}}}
    assert schema_from(schema) is schema


def test_schema_from_rejects_other_types() -> None:
    with pytest.raises(TypeError, match="pydantic model"):
        schema_from("not a schema")  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# FunctionTool / @tool
# ---------------------------------------------------------------------------


def test_function_tool_defaults_from_function() -> None:
    def add(a: int, b: int) -> int:
        """Add two integers.

        Longer explanation that should not appear.
        """
        return a + b

    wrapped = FunctionTool(add)
    assert wrapped.name == "add"
    assert wrapped.description == "Add two integers."
    assert wrapped.invoke({"a": 2, "b": 3}) == 5
    assert not wrapped.is_coroutine
    assert isinstance(wrapped, Tool)


def test_function_tool_without_docstring_gets_placeholder_description() -> None:
    wrapped = FunctionTool(lambda: None, name="noop")
    assert wrapped.description == "Tool: noop"


def test_tool_decorator_with_arguments() -> None:
    @tool(name="weather", parameters=_CityArgs)
    async def lookup(city: str, units: str = "metric") -> dict:
        """Look up weather."""
        return {"city": city, "units": units}

    assert isinstance(lookup, FunctionTool)
    assert lookup.name == "weather"
    assert lookup.is_coroutine
    assert is_coroutine_tool(lookup)
    assert "city" in lookup.input_schema["properties"]


def test_tool_decorator_without_arguments() -> None:
    @tool
    def ping() -> str:
        """Reply with pong."""
        return "pong"

    assert ping.name == "ping"
    assert ping.invoke({}) == "pong"


@pytest.mark.anyio
async def test_async_function_tool_returns_awaitable() -> None:
    @tool
    async def double(n: int) -> int:
        return n * 2

    assert await double.invoke({"n": 4}) == 8


def test_is_coroutine_tool_inspects_invoke() -> None:
    class _AsyncTool:
        async def invoke(self, arguments):
            return None

    class _SyncTool:
        def invoke(self, arguments):
            return None

    assert is_coroutine_tool(_AsyncTool())
    assert not is_coroutine_tool(_SyncTool())
