"""Memory manager for orchestrating memory writes and retrieval."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..logging import JSONLLogger, get_logger
from .augmenter import build_instructions
from .embeddings import EmbeddingProvider
from .errors import EmbeddingError, MemoryServiceError, NotFoundError, StorageError, ValidationError
from .extractor import FactExtractor, format_exchange
from .models import NewMemory, SearchResult, SemanticMemory
from .retriever import MemoryContext, SemanticRetriever, validate_limit, validate_user_id
from .scoring import calculate_importance
from .store import MemoryStore
from .summary import generate_summary

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class MemoryConfig:
    """Configuration for the memory manager."""

    timeout: float = 10.0
    context_limit: int = 5
    profile_min_importance: int = 7
    include_profile: bool = True
    show_importance: bool = False


class MemoryManager:
    """Orchestrates memory operations: writing, searching and prompt context.

    This is the main interface for the memory system. The automatic paths
    (``remember_exchange``, ``schedule_remember``, ``context_for_turn``,
    ``augment``) never raise: a failure is logged and the chat turn goes on
    without memory. The explicit operations (``create``, ``list_memories``,
    ``search``, ``delete``) raise ``MemoryServiceError`` subclasses for the
    caller to report.
    """

    def __init__(
        self,
        store: MemoryStore,
        embedder: EmbeddingProvider,
        config: MemoryConfig | None = None,
        extractor: FactExtractor | None = None,
        json_logger: JSONLLogger | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            store: The MemoryStore for persistence.
            embedder: Provider used for memory and query embeddings.
            config: Timeouts and context limits.
            extractor: Fact extractor; the default rule set if omitted.
            json_logger: Structured event logger; the global one if omitted.
        """
        self.store = store
        self.embedder = embedder
        self.config = config or MemoryConfig()
        self.extractor = extractor or FactExtractor()
        self.events = json_logger or get_logger()
        self.retriever = SemanticRetriever(store, embedder, timeout=self.config.timeout)
        self._pending: set[asyncio.Task[SemanticMemory | None]] = set()

    @property
    def pending(self) -> int:
        """Number of background writes still running."""
        return len(self._pending)

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking store call in a worker thread, bounded by the timeout.

        A timeout abandons the wait, not the thread: the call may still
        finish and commit afterwards.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args), self.config.timeout
            )
        except asyncio.TimeoutError as e:
            raise StorageError(
                f"Memory store timed out after {self.config.timeout}s"
            ) from e

    async def _embed(self, text: str) -> list[float]:
        try:
            return await asyncio.wait_for(self.embedder.embed(text), self.config.timeout)
        except asyncio.TimeoutError as e:
            raise EmbeddingError(
                f"Embedding timed out after {self.config.timeout}s"
            ) from e

    async def _embed_or_none(self, text: str, user_id: str) -> list[float] | None:
        try:
            return await self._embed(text)
        except EmbeddingError as e:
            logger.warning(f"Storing memory without embedding for {user_id}: {e}")
            return None

    # Write path

    def build_memory(
        self,
        user_id: str,
        user_message: str,
        assistant_response: str | None = None,
        conversation_id: str | None = None,
    ) -> NewMemory:
        """Turn one exchange into a memory ready to embed and store.

        Runs extraction, scoring and summarization. Pure apart from debug
        logging, and never fails.
        """
        facts = self.extractor.extract(user_message, assistant_response)
        return NewMemory(
            user_id=user_id,
            conversation_id=conversation_id,
            content=format_exchange(user_message, assistant_response),
            summary=generate_summary(user_message, facts),
            importance=calculate_importance(user_message, facts),
            metadata={
                "source": "exchange",
                "facts": [{"fact": f.fact, "type": f.type.value} for f in facts],
            },
        )

    async def remember_exchange(
        self,
        user_id: str,
        user_message: str,
        assistant_response: str | None = None,
        conversation_id: str | None = None,
    ) -> SemanticMemory | None:
        """Persist a memory of one exchange, best effort.

        An embedding failure still stores the memory, without a vector.
        A storage failure is logged and yields None. A store timeout is
        logged as ``memory_write_unconfirmed`` since the insert may still
        have committed.

        Returns:
            The stored memory, or None if nothing was stored.
        """
        if not user_message or not user_message.strip():
            return None

        start = time.monotonic()
        new_memory = self.build_memory(
            user_id, user_message, assistant_response, conversation_id
        )
        new_memory.embedding = await self._embed_or_none(new_memory.content, user_id)

        try:
            memory = await self._run(self.store.create, new_memory)
        except MemoryServiceError as e:
            # a timed out insert may still land, so its outcome is unknown
            if isinstance(e.__cause__, asyncio.TimeoutError):
                event = "memory_write_unconfirmed"
            else:
                event = "memory_write_failed"
            logger.warning(f"Failed to store memory for {user_id}: {e}")
            self.events.log_memory_failure(
                event, str(e), user_id=user_id, chat_id=conversation_id
            )
            return None

        self.events.log_memory_created(
            user_id,
            memory.id,
            memory.importance,
            has_embedding=memory.embedding is not None,
            source="exchange",
            duration_ms=(time.monotonic() - start) * 1000,
        )
        return memory

    def schedule_remember(
        self,
        user_id: str,
        user_message: str,
        assistant_response: str | None = None,
        conversation_id: str | None = None,
    ) -> asyncio.Task[SemanticMemory | None]:
        """Run ``remember_exchange`` in the background.

        The task is kept referenced until it finishes so it is not
        garbage collected mid-write. Must be called from a running loop.
        """
        task = asyncio.create_task(
            self._remember_safely(user_id, user_message, assistant_response, conversation_id)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _remember_safely(
        self,
        user_id: str,
        user_message: str,
        assistant_response: str | None,
        conversation_id: str | None,
    ) -> SemanticMemory | None:
        try:
            return await self.remember_exchange(
                user_id, user_message, assistant_response, conversation_id
            )
        except Exception as e:
            logger.exception("Background memory write failed")
            self.events.log_memory_failure(
                "memory_write_failed", str(e), user_id=user_id, chat_id=conversation_id
            )
            return None

    async def drain(self) -> None:
        """Wait for every pending background write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # Explicit operations

    async def create(
        self,
        user_id: str,
        content: Any,
        *,
        summary: str | None = None,
        conversation_id: str | None = None,
        importance: Any = 5,
        metadata: dict[str, Any] | None = None,
        context: str | None = None,
        generate_embedding: bool = True,
    ) -> SemanticMemory:
        """Store a memory supplied directly by a caller.

        Raises:
            ValidationError: Empty content, importance outside 1-10 or a
                non-dict metadata.
            StorageError: The store failed or timed out.
        """
        user_id = validate_user_id(user_id)
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Content is required and must be a non-empty string")
        if isinstance(importance, bool) or not isinstance(importance, int) or not 1 <= importance <= 10:
            raise ValidationError("Importance must be an integer from 1 to 10")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("Metadata must be an object")

        start = time.monotonic()
        embedding = None
        if generate_embedding:
            embedding = await self._embed_or_none(content, user_id)

        memory = await self._run(
            self.store.create,
            NewMemory(
                user_id=user_id,
                content=content,
                summary=summary,
                conversation_id=conversation_id,
                importance=importance,
                embedding=embedding,
                metadata=metadata or {},
                context=context,
            ),
        )
        self.events.log_memory_created(
            user_id,
            memory.id,
            memory.importance,
            has_embedding=memory.embedding is not None,
            source="explicit",
            duration_ms=(time.monotonic() - start) * 1000,
        )
        return memory

    async def list_memories(self, user_id: str, limit: Any = 100) -> list[SemanticMemory]:
        """List a user's memories, newest first."""
        user_id = validate_user_id(user_id)
        limit = validate_limit(limit)
        return await self._run(self.store.list_by_user, user_id, limit)

    async def search(self, query: Any, user_id: str, limit: Any = 10) -> SearchResult:
        """Semantic search with text fallback. See ``SemanticRetriever.search``."""
        return await self.retriever.search(query, user_id, limit)

    async def delete(self, user_id: str, memory_id: Any) -> SemanticMemory:
        """Delete one of the user's memories.

        Raises:
            ValidationError: ``memory_id`` is not a positive integer.
            NotFoundError: The user owns no memory with that id.
        """
        user_id = validate_user_id(user_id)
        if isinstance(memory_id, bool) or not isinstance(memory_id, int) or memory_id <= 0:
            raise ValidationError("Memory id must be a positive integer")

        deleted = await self._run(self.store.delete_by_id_for_user, user_id, memory_id)
        if deleted is None:
            raise NotFoundError(f"Memory {memory_id} not found")

        self.events.log("memory_deleted", user_id=user_id, memory_id=memory_id)
        return deleted

    # Read path

    async def gather_context(
        self, query: str, user_id: str, chat_id: str | None = None
    ) -> MemoryContext:
        """Memories to show the model for a turn, grouped; empty on any failure.

        This runs inside every chat turn, so no exception escapes it. A
        typed memory failure is logged as a warning, anything else with
        its traceback, and both record ``memory_context_failed``.
        """
        if not query or not query.strip():
            return MemoryContext()

        start = time.monotonic()
        try:
            context = await self.retriever.relevant_context(
                query,
                user_id,
                limit=self.config.context_limit,
                include_profile=self.config.include_profile,
                min_profile_importance=self.config.profile_min_importance,
            )
        except MemoryServiceError as e:
            logger.warning(f"Memory context unavailable for {user_id}: {e}")
            self.events.log_memory_failure(
                "memory_context_failed", str(e), user_id=user_id, chat_id=chat_id
            )
            return MemoryContext(degraded=True)
        except Exception as e:
            logger.exception(f"Unexpected error gathering memory context for {user_id}")
            self.events.log_memory_failure(
                "memory_context_failed",
                f"{type(e).__name__}: {e}",
                user_id=user_id,
                chat_id=chat_id,
            )
            return MemoryContext(degraded=True)

        self.events.log_memory_context(
            user_id,
            len(context),
            mode=context.mode,
            degraded=context.degraded,
            chat_id=chat_id,
            duration_ms=(time.monotonic() - start) * 1000,
        )
        return context

    async def context_for_turn(
        self, query: str, user_id: str, chat_id: str | None = None
    ) -> list[SemanticMemory]:
        """Memories to show the model for a turn, flattened in priority order."""
        context = await self.gather_context(query, user_id, chat_id=chat_id)
        return context.memories

    async def augment(
        self,
        base_prompt: str,
        query: str,
        user_id: str,
        chat_id: str | None = None,
    ) -> tuple[str, list[SemanticMemory]]:
        """Add relevant memories to ``base_prompt``.

        Returns:
            The instructions to send and the memories that went into them.
            With no memories the instructions are ``base_prompt`` itself.
        """
        context = await self.gather_context(query, user_id, chat_id=chat_id)
        instructions = build_instructions(
            base_prompt, context, show_importance=self.config.show_importance
        )
        return instructions, context.memories
