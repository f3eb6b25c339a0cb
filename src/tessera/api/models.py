"""Request bodies for the HTTP API.

Fields whose rules the memory manager already enforces (content, query,
limit, importance) are typed loosely so that a bad value produces the
manager's own 400 message instead of a generic schema error.
"""

from typing import Any

from pydantic import BaseModel, Field


class CreateMemoryRequest(BaseModel):
    """Explicitly store a memory."""

    content: Any = None
    summary: str | None = None
    conversation_id: str | None = None
    importance: Any = 5
    metadata: dict[str, Any] | None = None
    context: str | None = None
    generate_embedding: bool = Field(True, description="Embed the content for semantic search")


class SearchRequest(BaseModel):
    """Semantic search over the caller's memories."""

    query: Any = None
    limit: Any = 10


class ChatMessage(BaseModel):
    """One message of a conversation."""

    role: str
    content: str


class ChatRequest(BaseModel):
    """Run one assistant turn."""

    messages: list[ChatMessage] = Field(..., min_length=1)
    conversation_id: str | None = None
