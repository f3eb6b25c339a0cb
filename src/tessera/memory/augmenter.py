"""Injection of retrieved memories into generation instructions."""

from collections.abc import Sequence

from .models import SemanticMemory
from .retriever import MemoryContext

MEMORY_HEADER = "Notes from earlier conversations with this user:"
PROFILE_HEADING = "User profile:"
LOCATION_HEADING = "User location:"
RELATED_HEADING = "Related to this message:"
MEMORY_INSTRUCTION = (
    "Use this context to personalize your answers, and recall these facts "
    "about the user whenever they are relevant."
)


def _bullets(memories: Sequence[SemanticMemory], show_importance: bool) -> str:
    lines = []
    for memory in memories:
        line = f"- {memory.display_text}"
        if show_importance:
            line += f" [importance: {memory.importance}/10]"
        lines.append(line)
    return "\n".join(lines)


def format_memory_block(
    memories: Sequence[SemanticMemory] | MemoryContext,
    show_importance: bool = False,
) -> str:
    """Format memories as an XML-delimited block, or "" if there are none.

    A ``MemoryContext`` is rendered group by group, each non-empty group
    under its own heading, so the model can tell standing profile facts
    from the user's location and from matches for the current message.
    A plain sequence is rendered as a single list.
    """
    if not memories:
        return ""

    if isinstance(memories, MemoryContext):
        sections = [
            f"{heading}\n{_bullets(group, show_importance)}"
            for heading, group in (
                (PROFILE_HEADING, memories.profile),
                (LOCATION_HEADING, memories.location),
                (RELATED_HEADING, memories.related),
            )
            if group
        ]
        content = "\n\n".join(sections)
    else:
        content = _bullets(memories, show_importance)

    return f"""<memory>
{MEMORY_HEADER}
{content}
</memory>
{MEMORY_INSTRUCTION}"""


def build_instructions(
    base_prompt: str,
    memories: Sequence[SemanticMemory] | MemoryContext,
    show_importance: bool = False,
) -> str:
    """Append a memory section to ``base_prompt``.

    Returns ``base_prompt`` unchanged when there are no memories.
    """
    block = format_memory_block(memories, show_importance=show_importance)
    if not block:
        return base_prompt
    return f"{base_prompt}\n\n{block}"
