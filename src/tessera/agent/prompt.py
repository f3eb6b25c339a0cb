"""Prompt builder for the agent."""

from typing import Any

SYSTEM_PROMPT_BASE = """You are Tessera, a helpful personal assistant that remembers what users tell you across conversations.

You have access to the following tools:
{tools_description}

Guidelines:
- Answer directly and keep a friendly, concise tone
- Save a memory with `remember` only when the user asks you to remember something
- Use `recall` when you need something about the user that is not already in your notes
- Use `forget` when the user asks you to forget something; confirm what was removed
- Never invent facts about the user

If you cannot help with a request, explain why."""


def build_system_prompt(tools_schema: list[dict[str, Any]]) -> str:
    """Build the base system prompt listing the available tools.

    Memories are added afterwards by the memory augmenter, so this prompt
    is identical for every user.

    Args:
        tools_schema: List of tool schemas for the LLM.

    Returns:
        System prompt string.
    """
    if not tools_schema:
        tools_desc = "No tools available."
    else:
        tools_desc = "\n".join(
            f"- {t['function']['name']}: {t['function']['description']}"
            for t in tools_schema
        )

    return SYSTEM_PROMPT_BASE.format(tools_description=tools_desc)


def format_tool_result(tool_name: str, success: bool, output: str, error: str | None) -> str:
    """Format a tool result for the conversation."""
    if success:
        return f"[{tool_name}] Success:\n{output}"
    else:
        return f"[{tool_name}] Error: {error}"
