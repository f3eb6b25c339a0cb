"""Data models for the memory system."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FactType(str, Enum):
    """Category of an extracted fact."""

    PERSONAL_INFO = "personal_info"
    PREFERENCE = "preference"
    LOCATION = "location"
    WORK = "work"
    RELATIONSHIP = "relationship"
    GENERAL = "general"


@dataclass(frozen=True)
class ExtractedFact:
    """A fact derived from a single exchange.

    Facts are transient: they are folded into a memory's summary and
    never stored on their own.

    Attributes:
        fact: Human-readable statement (e.g., "User's name is Alice").
        type: Category of the fact.
        importance: Intrinsic salience of this fact, 1-10.
    """

    fact: str
    type: FactType
    importance: int


@dataclass
class NewMemory:
    """Request to create a memory, before the store assigns an id."""

    user_id: str
    content: str
    summary: str | None = None
    conversation_id: str | None = None
    importance: int = 5
    embedding: list[float] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    context: str | None = None


@dataclass(frozen=True)
class SemanticMemory:
    """A persisted, user-scoped memory.

    Attributes:
        id: Database ID assigned on creation.
        user_id: Owner of the memory.
        content: Full text of the exchange or fact detail.
        summary: Short condensation used for display and prompts.
        importance: Exchange-level salience, 1-10.
        conversation_id: Originating conversation, if any.
        embedding: Vector for ``content``, None if embedding was skipped.
        metadata: Caller-supplied key-value context.
        context: Optional free-text context supplied at creation.
        created_at: ISO timestamp when created.
        last_accessed: ISO timestamp of the last search hit.
        access_count: Number of times returned by a similarity search.
    """

    id: int
    user_id: str
    content: str
    summary: str | None = None
    importance: int = 5
    conversation_id: str | None = None
    embedding: list[float] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    context: str | None = None
    created_at: str | None = None
    last_accessed: str | None = None
    access_count: int = 0

    @property
    def display_text(self) -> str:
        """Text used when the memory is shown or injected into a prompt."""
        return self.summary or self.content

    def to_dict(self, include_embedding: bool = False) -> dict[str, Any]:
        """Convert to a JSON-friendly dict."""
        data: dict[str, Any] = {
            "id": self.id,
            "user_id": self.user_id,
            "conversation_id": self.conversation_id,
            "content": self.content,
            "summary": self.summary,
            "importance": self.importance,
            "metadata": dict(self.metadata),
            "context": self.context,
            "created_at": self.created_at,
            "last_accessed": self.last_accessed,
            "access_count": self.access_count,
            "has_embedding": self.embedding is not None,
        }
        if include_embedding:
            data["embedding"] = self.embedding
        return data


@dataclass
class SearchResult:
    """Ranked memories returned by a search.

    ``mode`` is "semantic" when ranked by vector similarity and "text"
    when the embedding provider failed and a substring match answered
    instead; ``degraded`` is True in the latter case.
    """

    memories: list[SemanticMemory] = field(default_factory=list)
    mode: str = "semantic"
    degraded: bool = False
    scores: list[float | None] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.memories)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict."""
        results = []
        for index, memory in enumerate(self.memories):
            item = memory.to_dict()
            item["score"] = self.scores[index] if index < len(self.scores) else None
            results.append(item)
        return {"results": results, "mode": self.mode, "degraded": self.degraded}
