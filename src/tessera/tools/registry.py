"""Tool registry: the set of tools offered to the model in a turn."""

import logging
from collections.abc import Iterable
from typing import Any

from .base import Tool, ToolResult

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Named tools, their schemas, and dispatch of model tool calls."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Add a tool. Names must be unique."""
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """Tool names in registration order."""
        return list(self._tools)

    def get_tools_schema(self) -> list[dict[str, Any]]:
        return [tool.get_schema() for tool in self._tools.values()]

    async def dispatch(self, tool_name: str, args: dict[str, Any]) -> ToolResult:
        """Run one tool call from the model.

        Never raises: unknown tools, invalid arguments and tool exceptions
        all come back as a failed ``ToolResult`` the model can read.
        """
        tool = self.get(tool_name)
        if tool is None:
            return ToolResult.failure(f"Unknown tool: {tool_name}")

        valid, error = tool.validate_args(args)
        if not valid:
            logger.debug("rejected %s call: %s", tool_name, error)
            return ToolResult.failure(error or "Invalid arguments")

        try:
            return await tool.execute(**args)
        except Exception as e:
            logger.exception(f"Tool '{tool_name}' raised")
            return ToolResult.failure(f"Tool execution failed: {e}")
