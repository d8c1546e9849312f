"""
ToolDispatcher: executes the tool calls requested in one pass.

Every request resolves to exactly one ``ToolResultBlock`` carrying the
request's ``tool_use_id``; results come back in request order regardless of
completion order.  Failures never escape: unknown tools, malformed input,
exceptions raised by the tool and timeouts all become ``status="error"``
results that the model sees on the next pass.

Concurrency:

- A single request runs inline, with no task and no timeout.
- Two or more requests run as one ``asyncio`` task each, every task bounded
  by ``asyncio.wait_for(..., timeout)``.  Synchronous tools run on a thread
  pool owned by that batch so a blocking tool cannot stall its siblings.

On timeout, a coroutine tool is cancelled by ``wait_for``.  A synchronous
tool's worker thread cannot be interrupted and is abandoned: the batch's
pool is shut down without waiting, so neither the dispatcher nor the event
loop's shutdown joins it, and its eventual return value is discarded.

Each tool receives a deep copy of its arguments; the ``ToolUseBlock`` kept in
the conversation history is never touched by tool code.
"""

from __future__ import annotations

import asyncio
import copy
import dataclasses
import inspect
import json
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Sequence

from toolstream.conversation.messages import (
    JsonContent,
    TextContent,
    ToolResultBlock,
    ToolResultContent,
    ToolUseBlock,
)
from toolstream.conversation.tools.base import Tool, is_coroutine_tool
from toolstream.conversation.tools.registry import ToolRegistry

_logger = logging.getLogger(__name__)

TOOL_TIMEOUT_SECONDS = 30.0


class ToolDispatcher:
    """Runs tool calls against a ``ToolRegistry`` with failure isolation.

    Args:
        registry: Where tool names are resolved.
        timeout: Per-call timeout in seconds for parallel batches.
        logger: Optional logger; defaults to this module's logger.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        timeout: float = TOOL_TIMEOUT_SECONDS,
        logger: logging.Logger | None = None,
    ) -> None:
        self.registry = registry
        self.timeout = timeout
        self.logger = logger or _logger

    async def dispatch(self, tool_uses: Sequence[ToolUseBlock]) -> list[ToolResultBlock]:
        """Execute *tool_uses* and return one result per request, in order."""
        if not tool_uses:
            return []
        if len(tool_uses) == 1:
            return [await self._execute(tool_uses[0], executor=None)]

        self.logger.info("Executing %d tools in parallel", len(tool_uses))
        slots: list[ToolResultBlock | None] = [None] * len(tool_uses)
        executor = ThreadPoolExecutor(
            max_workers=len(tool_uses), thread_name_prefix="toolstream-tool"
        )

        async def _run_slot(position: int, tool_use: ToolUseBlock) -> None:
            try:
                slots[position] = await asyncio.wait_for(
                    self._execute(tool_use, executor=executor), timeout=self.timeout
                )
            except asyncio.TimeoutError:
                message = f"Error: tool '{tool_use.name}' timed out after {self.timeout:g}s"
                self.logger.error(message)
                slots[position] = _error_result(tool_use, message)

        try:
            await asyncio.gather(*(_run_slot(i, tu) for i, tu in enumerate(tool_uses)))
        finally:
            # Hung workers are abandoned rather than joined.
            executor.shutdown(wait=False, cancel_futures=True)
        return [slot for slot in slots if slot is not None]

    # ------------------------------------------------------------------
    # Single request
    # ------------------------------------------------------------------

    async def _execute(
        self, tool_use: ToolUseBlock, executor: Executor | None
    ) -> ToolResultBlock:
        name = tool_use.name

        if tool_use.is_malformed:
            parse_error = tool_use.input["_parse_error"]
            self.logger.error(
                "Skipping tool %r due to malformed input: %s", name, parse_error
            )
            return _error_result(
                tool_use, f"Error: malformed tool input JSON for '{name}': {parse_error}"
            )

        if not isinstance(tool_use.input, dict):
            self.logger.error("Skipping tool %r: input is not a JSON object", name)
            return _error_result(
                tool_use, f"Error: tool input for '{name}' must be a JSON object"
            )

        tool = self.registry.get(name)
        if tool is None:
            self.logger.warning("Unknown tool %r", name)
            return _error_result(tool_use, f"Error: Unknown tool '{name}'")

        self.logger.info("Executing tool %r with args: %r", name, tool_use.input)
        try:
            result = await self._invoke(tool, tool_use.input, executor)
            content = _to_content(result)
        except Exception as exc:
            self.logger.error("Tool %r raised: %s", name, exc, exc_info=True)
            return _error_result(tool_use, f"Error executing tool '{name}': {exc}")

        self.logger.info("Tool %r completed successfully", name)
        return ToolResultBlock(tool_use_id=tool_use.tool_use_id, content=content)

    async def _invoke(
        self, tool: Tool, arguments: dict[str, Any], executor: Executor | None
    ) -> Any:
        arguments = copy.deepcopy(arguments)
        if executor is not None and not is_coroutine_tool(tool):
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(executor, tool.invoke, arguments)
        else:
            result = tool.invoke(arguments)
        if inspect.isawaitable(result):
            result = await result
        return result


# ---------------------------------------------------------------------------
# Result normalisation
# ---------------------------------------------------------------------------


def _error_result(tool_use: ToolUseBlock, message: str) -> ToolResultBlock:
    return ToolResultBlock(
        tool_use_id=tool_use.tool_use_id,
        content=(TextContent(message),),
        status="error",
    )


def _to_content(result: Any) -> tuple[ToolResultContent, ...]:
    """Map a tool's return value to tool-result content.

    dict -> one JSON entry; list/tuple -> one JSON entry ``{"items": [...]}``;
    str -> one text entry; anything else -> its ``str()`` as text.
    """
    if isinstance(result, dict):
        return (JsonContent(json_safe(result)),)
    if isinstance(result, (list, tuple)):
        return (JsonContent(json_safe({"items": list(result)})),)
    if isinstance(result, str):
        return (TextContent(result),)
    return (TextContent(str(result)),)


def json_safe(value: Any) -> Any:
    """Round-trip *value* through JSON so only primitives, dicts and lists remain.

    Raises:
        ValueError: If *value* contains NaN or an infinite float.
    """
    return json.loads(json.dumps(value, default=_json_default, allow_nan=False))


def _json_default(obj: Any) -> Any:
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    return str(obj)
