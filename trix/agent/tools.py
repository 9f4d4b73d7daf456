from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence, Union

from ..llm.models import Tool, ToolCall

logger = logging.getLogger("trix.agent.tools")

ToolHandler = Callable[..., Union[Any, Awaitable[Any]]]

DEFAULT_MAX_OUTPUT_CHARS = 8000


@dataclass(frozen=True)
class ToolExecution:
    call: ToolCall
    output: str
    success: bool
    duration: float = 0.0


class ToolRegistry:
    """Maps tool names to their declaration and handler.

    Handlers receive the call's parameters as keyword arguments and may be
    plain functions (run in a worker thread) or coroutines.
    """

    def __init__(self, max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS) -> None:
        self._tools: dict[str, tuple[Tool, ToolHandler]] = {}
        self.max_output_chars = max_output_chars

    def register(self, tool: Tool, handler: ToolHandler) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = (tool, handler)
        logger.debug(f"Registered tool {tool.name}")

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def tools(self) -> list[Tool]:
        return [tool for tool, _ in self._tools.values()]

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    async def dispatch(self, call: ToolCall) -> ToolExecution:
        """Run one tool call. Tool-level failures become result text."""
        entry = self._tools.get(call.name)
        if entry is None:
            logger.warning(f"Model requested unknown tool '{call.name}'")
            available = ", ".join(self.names) or "none"
            return ToolExecution(
                call,
                f"Tool '{call.name}' is not available. Registered tools: {available}.",
                success=False,
            )

        _, handler = entry
        start = time.monotonic()
        try:
            if inspect.iscoroutinefunction(handler):
                result = await handler(**call.parameters)
            else:
                result = await asyncio.to_thread(handler, **call.parameters)
        except Exception as e:
            logger.error(f"Tool {call.name} failed: {e}")
            return ToolExecution(
                call,
                f"ERROR: tool '{call.name}' failed: {e}",
                success=False,
                duration=time.monotonic() - start,
            )

        duration = time.monotonic() - start
        logger.info(f"Tool {call.name} completed in {duration:.2f}s")
        return ToolExecution(call, self.format_output(result), success=True, duration=duration)

    async def dispatch_all(self, calls: Sequence[ToolCall]) -> list[ToolExecution]:
        """Run independent calls concurrently; results keep the order received."""
        if len(calls) == 1:
            return [await self.dispatch(calls[0])]
        return list(await asyncio.gather(*(self.dispatch(c) for c in calls)))

    def format_output(self, result: Any) -> str:
        if result is None:
            return "(no output)"
        if isinstance(result, str):
            content = result
        else:
            content = json.dumps(result, indent=2, default=str)
        if not content.strip():
            return "(no output)"
        return truncate_output(content, self.max_output_chars)


def truncate_output(content: str, max_chars: int) -> str:
    """Keep the head and tail of oversized output."""
    if max_chars <= 0 or len(content) <= max_chars:
        return content
    head = content[: max_chars * 3 // 4]
    tail = content[-(max_chars // 4):]
    dropped = len(content) - len(head) - len(tail)
    return f"{head}\n\n... [{dropped} more chars] ...\n\n{tail}"
