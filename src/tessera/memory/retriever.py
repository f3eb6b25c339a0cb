"""Similarity search over a user's memories."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .embeddings import EmbeddingProvider
from .errors import EmbeddingError, StorageError, ValidationError
from .models import SearchResult, SemanticMemory
from .store import MemoryStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Queries mentioning any of these get the user's location pulled in.
TIME_LOCATION_KEYWORDS = (
    "time",
    "date",
    "weather",
    "timezone",
    "clock",
    "now",
    "today",
    "temperature",
    "forecast",
    "local",
)
# Stored location facts read "User is from/lives in ...".
LOCATION_TERMS = ("lives in", "is from", "location", "timezone")
LOCATION_LIMIT = 5


def validate_query(query: Any) -> str:
    """Return the stripped query or raise ``ValidationError``."""
    if not isinstance(query, str) or not query.strip():
        raise ValidationError("Query is required and must be a non-empty string")
    return query.strip()


def validate_limit(limit: Any) -> int:
    """Return ``limit`` if it is a positive integer."""
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ValidationError("Limit must be a positive integer")
    return limit


def validate_user_id(user_id: Any) -> str:
    """Return ``user_id`` if it is a non-empty string."""
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("User id is required")
    return user_id


def needs_location(query: str) -> bool:
    """Whether a query is time or place sensitive."""
    lowered = query.lower()
    return any(keyword in lowered for keyword in TIME_LOCATION_KEYWORDS)


@dataclass
class MemoryContext:
    """Memories gathered for one chat turn, grouped by why they were picked."""

    profile: list[SemanticMemory] = field(default_factory=list)
    location: list[SemanticMemory] = field(default_factory=list)
    related: list[SemanticMemory] = field(default_factory=list)
    mode: str = "semantic"
    degraded: bool = False

    @property
    def memories(self) -> list[SemanticMemory]:
        """All memories in priority order: profile, location, related."""
        return [*self.profile, *self.location, *self.related]

    def __len__(self) -> int:
        return len(self.profile) + len(self.location) + len(self.related)


class SemanticRetriever:
    """Ranks a user's memories against a query.

    The query is embedded and compared with stored embeddings by cosine
    similarity. If the embedding provider fails, search degrades to a
    substring match and says so in the result (``mode="text"``,
    ``degraded=True``) instead of returning an empty list.
    """

    def __init__(
        self,
        store: MemoryStore,
        embedder: EmbeddingProvider,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the retriever.

        Args:
            store: Memory store to query.
            embedder: Provider used to embed queries.
            timeout: Seconds allowed for each embedding or store call.
        """
        self.store = store
        self.embedder = embedder
        self.timeout = timeout

    async def _embed(self, text: str) -> list[float]:
        try:
            return await asyncio.wait_for(self.embedder.embed(text), self.timeout)
        except asyncio.TimeoutError as e:
            raise EmbeddingError(f"Embedding timed out after {self.timeout}s") from e

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), self.timeout)
        except asyncio.TimeoutError as e:
            raise StorageError(f"Memory store timed out after {self.timeout}s") from e

    async def search(
        self,
        query: Any,
        user_id: str,
        limit: Any = 10,
        allow_text_fallback: bool = True,
    ) -> SearchResult:
        """Find the memories most similar to ``query`` for one user.

        Args:
            query: Search text.
            user_id: Owner whose memories are searched.
            limit: Maximum number of results.
            allow_text_fallback: Degrade to text search when embedding
                fails; if False the ``EmbeddingError`` propagates.

        Returns:
            Ranked memories, best match first, at most ``limit``.

        Raises:
            ValidationError: Empty query, bad limit or missing user.
            EmbeddingError: Embedding failed and fallback is disabled.
            StorageError: The store failed or timed out.
        """
        query = validate_query(query)
        limit = validate_limit(limit)
        user_id = validate_user_id(user_id)

        try:
            query_embedding = await self._embed(query)
        except EmbeddingError as e:
            if not allow_text_fallback:
                raise
            logger.warning("Embedding failed (%s); falling back to text search", e)
            memories = await self._run(self.store.search_by_text, user_id, query, limit)
            return SearchResult(
                memories=memories,
                mode="text",
                degraded=True,
                scores=[None] * len(memories),
            )

        ranked = await self._run(
            self.store.query_by_similarity, user_id, query_embedding, limit
        )
        return SearchResult(
            memories=[memory for memory, _ in ranked],
            mode="semantic",
            scores=[round(score, 4) for _, score in ranked],
        )

    async def relevant_context(
        self,
        query: Any,
        user_id: str,
        limit: int = 5,
        include_profile: bool = True,
        min_profile_importance: int = 7,
    ) -> MemoryContext:
        """Gather the memories worth showing the model for one turn.

        Profile memories (high importance) come first, then location
        memories when the query is about time, weather or local matters,
        then the top matches for the query itself. A memory appears once,
        in the first group that picked it.
        """
        query = validate_query(query)
        user_id = validate_user_id(user_id)

        profile: list[SemanticMemory] = []
        if include_profile:
            profile = await self._run(
                self.store.list_profile, user_id, min_profile_importance
            )

        location: list[SemanticMemory] = []
        if needs_location(query):
            location = await self._location_memories(user_id)

        related = await self.search(query, user_id, limit)

        context = MemoryContext(mode=related.mode, degraded=related.degraded)
        seen: set[int] = set()
        for group, memories in (
            (context.profile, profile),
            (context.location, location),
            (context.related, related.memories),
        ):
            for memory in memories:
                if memory.id not in seen:
                    seen.add(memory.id)
                    group.append(memory)
        return context

    async def _location_memories(self, user_id: str) -> list[SemanticMemory]:
        return await self._run(
            self.store.search_by_terms, user_id, LOCATION_TERMS, LOCATION_LIMIT
        )
