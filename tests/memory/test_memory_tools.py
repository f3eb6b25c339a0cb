"""Tests for the memory tools exposed to the model."""

import pytest

from tessera.memory import ForgetTool, MemoryManager, RecallTool, RememberTool, memory_tools
from tessera.tools import ToolRegistry


class TestRememberTool:
    """Tests for RememberTool."""

    def test_schema(self, manager: MemoryManager):
        schema = RememberTool(manager, "alice").get_schema()
        assert schema["function"]["name"] == "remember"
        assert schema["function"]["parameters"]["required"] == ["content"]

    @pytest.mark.asyncio
    async def test_saves_for_bound_user(self, manager: MemoryManager, store):
        tool = RememberTool(manager, "alice")

        result = await tool.execute(content="User is allergic to peanuts")

        assert result.success
        assert "allergic to peanuts" in result.output
        memories = store.list_by_user("alice")
        assert len(memories) == 1
        assert memories[0].importance == 7
        assert memories[0].metadata == {"source": "tool"}
        assert store.list_by_user("bob") == []

    @pytest.mark.asyncio
    async def test_custom_importance(self, manager: MemoryManager, store):
        await RememberTool(manager, "alice").execute(content="Birthday is May 3", importance=9)
        assert store.list_by_user("alice")[0].importance == 9

    @pytest.mark.asyncio
    async def test_empty_content_fails(self, manager: MemoryManager):
        result = await RememberTool(manager, "alice").execute(content="  ")
        assert not result.success
        assert "Content is required" in result.error


class TestRecallTool:
    """Tests for RecallTool."""

    @pytest.mark.asyncio
    async def test_finds_memories(self, manager: MemoryManager):
        memory = await manager.create("alice", "User enjoys hiking in the mountains")

        result = await RecallTool(manager, "alice").execute(query="outdoor activities")

        assert result.success
        assert f"[{memory.id}]" in result.output
        assert result.metadata == {"mode": "semantic", "degraded": False}

    @pytest.mark.asyncio
    async def test_nothing_found(self, manager: MemoryManager):
        result = await RecallTool(manager, "alice").execute(query="anything")
        assert result.success
        assert result.output == "No matching memories"

    @pytest.mark.asyncio
    async def test_other_users_memories_invisible(self, manager: MemoryManager):
        await manager.create("bob", "User enjoys hiking")
        result = await RecallTool(manager, "alice").execute(query="hiking")
        assert result.output == "No matching memories"


class TestForgetTool:
    """Tests for ForgetTool."""

    @pytest.mark.asyncio
    async def test_deletes(self, manager: MemoryManager, store):
        memory = await manager.create("alice", "User likes tea")

        result = await ForgetTool(manager, "alice").execute(memory_id=memory.id)

        assert result.success
        assert result.output == "Forgot: User likes tea"
        assert store.count("alice") == 0

    @pytest.mark.asyncio
    async def test_cannot_delete_other_users_memory(self, manager: MemoryManager, store):
        memory = await manager.create("bob", "User likes tea")

        result = await ForgetTool(manager, "alice").execute(memory_id=memory.id)

        assert not result.success
        assert "not found" in result.error
        assert store.count("bob") == 1


@pytest.mark.asyncio
async def test_registry_dispatch(manager: MemoryManager, store):
    registry = ToolRegistry(memory_tools(manager, "alice"))
    assert registry.list_tools() == ["remember", "recall", "forget"]

    result = await registry.dispatch("remember", {"content": "User plays guitar"})

    assert result.success
    assert store.count("alice") == 1
