"""
Tool registry for the toolstream agentic loop.

Provides ``ToolRegistry``, an insertion-ordered ``name -> Tool`` mapping used
by the dispatcher to resolve tool calls and by the loop to advertise tool
definitions to the model.

Typical usage::

    from toolstream.conversation.tools import DateTimeTool, ToolRegistry, WeatherTool

    registry = ToolRegistry()
    registry.register(WeatherTool())
    registry.register(DateTimeTool())

    loop = AgenticLoop(stream_source=source, registry=registry, options=options)
"""

from __future__ import annotations

import logging
from typing import Iterator

from toolstream.conversation.tools.base import Tool, ToolDefinition, definition_for
from toolstream.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry mapping tool names to tool capabilities.

    Attributes:
        _tools: Internal dict of registered tools, in registration order.
    """

    def __init__(self, tools: list[Tool] | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        for t in tools or []:
            self.register(t)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, tool: Tool) -> None:
        """Register a tool under its ``name``.

        Raises:
            ConfigurationError: If *tool* does not implement the ``Tool``
                interface, has a blank name, or the name is already taken.
        """
        if not isinstance(tool, Tool):
            raise ConfigurationError(
                f"Expected a tool with name/description/input_schema/invoke, "
                f"got {type(tool).__name__}"
            )
        if not isinstance(tool.name, str) or not tool.name.strip():
            raise ConfigurationError("Tool name must be a non-empty string")
        if tool.name in self._tools:
            raise ConfigurationError(f"A tool named {tool.name!r} is already registered")
        self._tools[tool.name] = tool
        logger.debug("Registered tool: %r", tool.name)

    def deregister(self, name: str) -> None:
        """Remove a registered tool by name.

        Raises:
            KeyError: If the tool is not registered.
        """
        if name not in self._tools:
            raise KeyError(f"Tool {name!r} is not registered.")
        del self._tools[name]
        logger.debug("Deregistered tool: %r", name)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> Tool | None:
        """Return the tool registered as *name*, or ``None``."""
        return self._tools.get(name)

    def get_definitions(self) -> list[ToolDefinition]:
        """Return a ``ToolDefinition`` per registered tool (insertion order)."""
        return [definition_for(t) for t in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(list(self._tools.values()))
