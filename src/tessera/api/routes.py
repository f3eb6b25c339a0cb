"""REST endpoints for memories and chat.

Every endpoint acts on behalf of the user named by the ``x-user-id``
header, falling back to the configured default user.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Header, Query, Request

from ..agent import AgentLoop
from ..memory import MemoryManager, ValidationError
from .models import ChatRequest, CreateMemoryRequest, SearchRequest

router = APIRouter(prefix="/api", tags=["memory"])

HISTORY_ROLES = ("user", "assistant")


def get_memory(request: Request) -> MemoryManager:
    return request.app.state.memory


def get_user_id(
    request: Request,
    x_user_id: str | None = Header(default=None),
) -> str:
    """Caller identity from the ``x-user-id`` header."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return request.app.state.default_user


@router.get("/health")
async def health_check(memory: MemoryManager = Depends(get_memory)) -> dict[str, Any]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "pending_writes": memory.pending,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/memories")
async def create_memory(
    body: CreateMemoryRequest,
    user_id: str = Depends(get_user_id),
    memory: MemoryManager = Depends(get_memory),
) -> dict[str, Any]:
    """Store a memory for the caller."""
    created = await memory.create(
        user_id,
        body.content,
        summary=body.summary,
        conversation_id=body.conversation_id,
        importance=body.importance,
        metadata=body.metadata,
        context=body.context,
        generate_embedding=body.generate_embedding,
    )
    return {"memory": created.to_dict()}


@router.get("/memories")
async def list_memories(
    limit: int = Query(100, ge=1, le=1000),
    user_id: str = Depends(get_user_id),
    memory: MemoryManager = Depends(get_memory),
) -> dict[str, Any]:
    """List the caller's memories, newest first."""
    memories = await memory.list_memories(user_id, limit)
    return {"memories": [m.to_dict() for m in memories]}


@router.post("/search")
async def search_memories(
    body: SearchRequest,
    user_id: str = Depends(get_user_id),
    memory: MemoryManager = Depends(get_memory),
) -> dict[str, Any]:
    """Semantic search over the caller's memories.

    Returns:
        Ranked results with scores, plus the search mode and whether the
        text fallback answered.
    """
    result = await memory.search(body.query, user_id, body.limit)
    return result.to_dict()


@router.delete("/memories/{memory_id}")
async def delete_memory(
    memory_id: int,
    user_id: str = Depends(get_user_id),
    memory: MemoryManager = Depends(get_memory),
) -> dict[str, Any]:
    """Delete one of the caller's memories."""
    deleted = await memory.delete(user_id, memory_id)
    return {"memory": deleted.to_dict()}


@router.post("/chat")
async def chat(
    body: ChatRequest,
    request: Request,
    user_id: str = Depends(get_user_id),
) -> dict[str, Any]:
    """Run one assistant turn for the latest user message.

    Memories are added to the instructions before generation and the
    exchange is remembered in the background after the reply is ready.
    """
    *earlier, latest = body.messages
    if latest.role != "user" or not latest.content.strip():
        raise ValidationError("The last message must be a non-empty user message")

    history = [
        {"role": m.role, "content": m.content}
        for m in earlier
        if m.role in HISTORY_ROLES
    ]
    conversation_id = body.conversation_id or f"api-{uuid.uuid4().hex[:8]}"

    agent: AgentLoop = request.app.state.agent_factory(user_id)
    result = await agent.run(latest.content, chat_id=conversation_id, history=history)

    return {
        "response": result.response,
        "stop_reason": result.stop_reason.value,
        "turns": result.turns,
        "conversation_id": conversation_id,
        "memories_used": result.memories_used,
    }
