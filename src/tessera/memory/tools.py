"""Memory tools the model can call during a turn.

Each tool is bound to one user at construction, so the model can never
reach another user's memories.
"""

from typing import Any

from ..tools.base import Tool, ToolResult
from .errors import MemoryServiceError
from .manager import MemoryManager


class RememberTool(Tool):
    """Tool for saving an explicit memory about the user."""

    def __init__(self, manager: MemoryManager, user_id: str) -> None:
        """Initialize with a memory manager.

        Args:
            manager: The MemoryManager that stores the memory.
            user_id: Owner of every memory this tool creates.
        """
        self.manager = manager
        self.user_id = user_id

    @property
    def name(self) -> str:
        return "remember"

    @property
    def description(self) -> str:
        return (
            "Save a fact about the user for future conversations. "
            "Use when the user explicitly asks you to remember something."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": (
                        "The fact to remember, in third person "
                        "(e.g., 'User is allergic to peanuts')"
                    ),
                },
                "importance": {
                    "type": "integer",
                    "description": "How important the fact is, from 1 to 10 (default 7)",
                },
            },
            "required": ["content"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        """Store the memory.

        Args:
            content: The fact to remember.
            importance: Optional importance, 1-10.

        Returns:
            ToolResult with the new memory id.
        """
        content = kwargs.get("content", "")
        importance = kwargs.get("importance", 7)

        try:
            memory = await self.manager.create(
                self.user_id,
                content,
                summary=content.strip() if isinstance(content, str) else None,
                importance=importance,
                metadata={"source": "tool"},
            )
        except MemoryServiceError as e:
            return ToolResult.failure(e.message)

        return ToolResult(
            success=True,
            output=f"Remembered (id {memory.id}): {memory.display_text}",
            metadata={"memory_id": memory.id},
        )


class RecallTool(Tool):
    """Tool for searching the user's memories."""

    def __init__(self, manager: MemoryManager, user_id: str) -> None:
        self.manager = manager
        self.user_id = user_id

    @property
    def name(self) -> str:
        return "recall"

    @property
    def description(self) -> str:
        return (
            "Search what you remember about the user. "
            "Returns the closest matching memories with their ids."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "What to look for (e.g., 'favorite food')",
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of memories to return (default 5)",
                },
            },
            "required": ["query"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        query = kwargs.get("query", "")
        limit = kwargs.get("limit", 5)

        try:
            result = await self.manager.search(query, self.user_id, limit)
        except MemoryServiceError as e:
            return ToolResult.failure(e.message)

        if not result.memories:
            return ToolResult(success=True, output="No matching memories")

        lines = [f"[{m.id}] {m.display_text}" for m in result.memories]
        return ToolResult(
            success=True,
            output="\n".join(lines),
            metadata={"mode": result.mode, "degraded": result.degraded},
        )


class ForgetTool(Tool):
    """Tool for deleting one of the user's memories."""

    def __init__(self, manager: MemoryManager, user_id: str) -> None:
        self.manager = manager
        self.user_id = user_id

    @property
    def name(self) -> str:
        return "forget"

    @property
    def description(self) -> str:
        return (
            "Delete a memory by id. Use recall first to find the id "
            "when the user asks you to forget something."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "memory_id": {
                    "type": "integer",
                    "description": "Id of the memory to delete",
                },
            },
            "required": ["memory_id"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        memory_id = kwargs.get("memory_id")

        try:
            memory = await self.manager.delete(self.user_id, memory_id)
        except MemoryServiceError as e:
            return ToolResult.failure(e.message)

        return ToolResult(success=True, output=f"Forgot: {memory.display_text}")


def memory_tools(manager: MemoryManager, user_id: str) -> list[Tool]:
    """The memory tools bound to ``user_id``."""
    return [
        RememberTool(manager, user_id),
        RecallTool(manager, user_id),
        ForgetTool(manager, user_id),
    ]
