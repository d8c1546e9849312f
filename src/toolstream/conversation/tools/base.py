"""
Tool capability interface.

Any object with ``name``, ``description``, ``input_schema`` and an
``invoke(arguments)`` method is a tool; no base class is required.
``invoke`` may return a plain value or an awaitable.

``FunctionTool`` adapts an ordinary function (sync or ``async def``)::

    @tool(parameters={"type": "object", "properties": {"city": {"type": "string"}}})
    async def get_weather(city: str) -> dict:
        ...

    registry.register(get_weather)
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, runtime_checkable

from pydantic import BaseModel

_EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


@dataclass
class ToolDefinition:
    """Describes a callable tool available to the LLM.

    Attributes:
        name: The tool's unique name (used by the LLM to invoke it).
        description: Human-readable description shown in the LLM's tool prompt.
        parameters: JSON Schema dict describing the tool's input parameters.
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_openai_format(self) -> dict[str, Any]:
        """Serialise to OpenAI tool definition format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@runtime_checkable
class Tool(Protocol):
    """Protocol for tool capabilities executed by the dispatcher."""

    name: str
    description: str
    input_schema: dict[str, Any]

    def invoke(self, arguments: dict[str, Any]) -> Any:
        """Run the tool.

        Returns a dict, list, str or any other value (or an awaitable
        resolving to one).  May raise; the dispatcher converts exceptions
        into error results.
        """
        ...


def definition_for(tool: Tool) -> ToolDefinition:
    """Build the ``ToolDefinition`` advertised to the model for *tool*."""
    return ToolDefinition(
        name=tool.name,
        description=tool.description,
        parameters=tool.input_schema or dict(_EMPTY_SCHEMA),
    )


def is_coroutine_tool(tool: Any) -> bool:
    """True if invoking *tool* produces a coroutine rather than a value."""
    flag = getattr(tool, "is_coroutine", None)
    if flag is not None:
        return bool(flag)
    return inspect.iscoroutinefunction(getattr(tool, "invoke", None))


def schema_from(parameters: dict[str, Any] | type[BaseModel] | None) -> dict[str, Any]:
    """Normalise a parameters spec into a JSON Schema dict."""
    if parameters is None:
        return dict(_EMPTY_SCHEMA)
    if isinstance(parameters, type) and issubclass(parameters, BaseModel):
        return parameters.model_json_schema()
    if isinstance(parameters, dict):
        return parameters
    raise TypeError(
        "parameters must be a JSON Schema dict or a pydantic model class, "
        f"got {type(parameters).__name__}"
    )


class FunctionTool:
    """Wraps a function as a tool; arguments are passed as keyword arguments.

    Attributes:
        func: The wrapped function (sync or ``async def``).
        name: Tool name; defaults to ``func.__name__``.
        description: Defaults to the first docstring paragraph.
        input_schema: JSON Schema for the arguments.
        is_coroutine: Whether ``func`` is a coroutine function.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        name: str | None = None,
        description: str | None = None,
        parameters: dict[str, Any] | type[BaseModel] | None = None,
    ) -> None:
        self.func = func
        self.name = name or func.__name__
        self.description = description or _first_paragraph(func) or f"Tool: {self.name}"
        self.input_schema = schema_from(parameters)
        self.is_coroutine = inspect.iscoroutinefunction(func)

    def invoke(self, arguments: dict[str, Any]) -> Any:
        return self.func(**arguments)

    def __repr__(self) -> str:
        return f"FunctionTool(name={self.name!r})"


def tool(
    func: Callable[..., Any] | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
    parameters: dict[str, Any] | type[BaseModel] | None = None,
) -> Any:
    """Decorator form of ``FunctionTool``; usable with or without arguments."""

    def wrap(f: Callable[..., Any]) -> FunctionTool:
        return FunctionTool(f, name=name, description=description, parameters=parameters)

    if func is not None:
        return wrap(func)
    return wrap


def _first_paragraph(func: Callable[..., Any]) -> str:
    doc = inspect.getdoc(func)
    if not doc:
        return ""
    return doc.split("\n\n", 1)[0].replace("\n", " ").strip()
