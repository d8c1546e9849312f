"""
Tool capabilities for the toolstream agentic loop.

Any object with ``name``, ``description``, ``input_schema`` and
``invoke(arguments)`` is a tool.  ``FunctionTool`` / ``@tool`` wrap plain
functions; ``WeatherTool`` and ``DateTimeTool`` are ready-made examples.

Quick-start example::

    from toolstream.conversation.tools import DateTimeTool, ToolRegistry, tool

    @tool
    def add(a: int, b: int) -> int:
        return a + b

    registry = ToolRegistry([add, DateTimeTool()])
"""

from toolstream.conversation.tools.base import (
    FunctionTool,
    Tool,
    ToolDefinition,
    definition_for,
    tool,
)
from toolstream.conversation.tools.datetime_tool import DateTimeTool
from toolstream.conversation.tools.registry import ToolRegistry
from toolstream.conversation.tools.weather import WeatherTool

__all__ = [
    "DateTimeTool",
    "FunctionTool",
    "Tool",
    "ToolDefinition",
    "ToolRegistry",
    "WeatherTool",
    "definition_for",
    "tool",
]
