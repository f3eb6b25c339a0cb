"""SQLite storage for semantic memories."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

import numpy as np

from .embeddings import cosine_similarities, pack_embedding, unpack_embedding
from .errors import StorageError
from .models import NewMemory, SemanticMemory

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, user_id, conversation_id, content, summary, context, importance, "
    "embedding, metadata, created_at, last_accessed, access_count"
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def rank_by_similarity(
    scored: Sequence[tuple[SemanticMemory, float]], limit: int
) -> list[tuple[SemanticMemory, float]]:
    """Order (memory, similarity) pairs best-first and keep ``limit``.

    Ties on similarity go to the more important memory, then to the more
    recent one.
    """
    ordered = sorted(
        scored,
        key=lambda pair: (
            pair[1],
            pair[0].importance,
            pair[0].created_at or "",
            pair[0].id,
        ),
        reverse=True,
    )
    return ordered[:limit]


class MemoryStore:
    """Persistent storage for memories using SQLite.

    Every read and delete is scoped by ``user_id``; there is no query that
    crosses users. The connection is shared across threads (the manager
    calls the store from ``asyncio.to_thread``) and guarded by a lock.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create the memories table and indexes if they don't exist."""
        with self._lock:
            conn = self._get_connection()
            conn.execute("""
                CREATE TABLE IF NOT EXISTS memories (
                    id               INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id          TEXT NOT NULL,
                    conversation_id  TEXT,
                    content          TEXT NOT NULL,
                    summary          TEXT,
                    context          TEXT,
                    importance       INTEGER NOT NULL DEFAULT 5,
                    embedding        BLOB,
                    metadata         TEXT NOT NULL DEFAULT '{}',
                    created_at       TEXT NOT NULL,
                    last_accessed    TEXT,
                    access_count     INTEGER NOT NULL DEFAULT 0
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_memories_user ON memories(user_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_memories_user_importance "
                "ON memories(user_id, importance)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_memories_user_created "
                "ON memories(user_id, created_at)"
            )
            conn.commit()

    def create(self, memory: NewMemory) -> SemanticMemory:
        """Insert a memory and return it with its id and timestamp.

        Raises:
            StorageError: If the insert fails.
        """
        blob = pack_embedding(memory.embedding) if memory.embedding else None
        created_at = _now()
        try:
            with self._lock:
                conn = self._get_connection()
                cursor = conn.execute(
                    """
                    INSERT INTO memories (
                        user_id, conversation_id, content, summary, context,
                        importance, embedding, metadata, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        memory.user_id,
                        memory.conversation_id,
                        memory.content,
                        memory.summary,
                        memory.context,
                        memory.importance,
                        blob,
                        json.dumps(memory.metadata or {}),
                        created_at,
                    ),
                )
                conn.commit()
                memory_id = cursor.lastrowid
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise StorageError(f"Failed to store memory: {e}") from e

        assert memory_id is not None
        logger.debug("stored memory id=%d user=%s", memory_id, memory.user_id)
        return SemanticMemory(
            id=memory_id,
            user_id=memory.user_id,
            conversation_id=memory.conversation_id,
            content=memory.content,
            summary=memory.summary,
            context=memory.context,
            importance=memory.importance,
            embedding=list(memory.embedding) if memory.embedding else None,
            metadata=dict(memory.metadata or {}),
            created_at=created_at,
        )

    def get_for_user(self, user_id: str, memory_id: int) -> SemanticMemory | None:
        """Get one memory, only if ``user_id`` owns it."""
        rows = self._fetch(
            f"SELECT {_COLUMNS} FROM memories WHERE id = ? AND user_id = ?",
            (memory_id, user_id),
        )
        return rows[0] if rows else None

    def list_by_user(self, user_id: str, limit: int = 100) -> list[SemanticMemory]:
        """List a user's memories, newest first."""
        return self._fetch(
            f"SELECT {_COLUMNS} FROM memories WHERE user_id = ? "
            "ORDER BY created_at DESC, id DESC LIMIT ?",
            (user_id, limit),
        )

    def list_profile(
        self, user_id: str, min_importance: int = 7, limit: int = 10
    ) -> list[SemanticMemory]:
        """List a user's high-importance memories.

        Ordered by importance, then by how often they were retrieved.
        """
        return self._fetch(
            f"SELECT {_COLUMNS} FROM memories WHERE user_id = ? AND importance >= ? "
            "ORDER BY importance DESC, access_count DESC, created_at DESC LIMIT ?",
            (user_id, min_importance, limit),
        )

    def query_by_similarity(
        self,
        user_id: str,
        query_embedding: Sequence[float],
        limit: int,
        track_access: bool = True,
    ) -> list[tuple[SemanticMemory, float]]:
        """Rank a user's embedded memories by cosine similarity to a query.

        Memories embedded with a different dimension (an earlier embedding
        model) cannot be compared and are left out.

        Args:
            user_id: Owner whose memories are searched.
            query_embedding: Vector of the query text.
            limit: Maximum number of results.
            track_access: Bump access bookkeeping on returned memories.

        Returns:
            (memory, similarity) pairs, best match first.
        """
        candidates = self._fetch(
            f"SELECT {_COLUMNS} FROM memories "
            "WHERE user_id = ? AND embedding IS NOT NULL",
            (user_id,),
        )

        dimension = len(query_embedding)
        comparable = [m for m in candidates if m.embedding and len(m.embedding) == dimension]
        if len(comparable) < len(candidates):
            logger.warning(
                "Skipped %d memories of %s whose embedding is not %d-dimensional",
                len(candidates) - len(comparable),
                user_id,
                dimension,
            )
        if not comparable:
            return []

        matrix = np.array([m.embedding for m in comparable], dtype=np.float32)
        scores = cosine_similarities(query_embedding, matrix)

        ranked = rank_by_similarity(list(zip(comparable, scores.tolist())), limit)
        if track_access and ranked:
            self.record_access([memory.id for memory, _ in ranked])
        return ranked

    def search_by_text(
        self, user_id: str, query: str, limit: int
    ) -> list[SemanticMemory]:
        """Case-insensitive substring search over content and summary."""
        pattern = f"%{_escape_like(query)}%"
        return self._fetch(
            f"SELECT {_COLUMNS} FROM memories WHERE user_id = ? "
            "AND (content LIKE ? ESCAPE '\\' OR summary LIKE ? ESCAPE '\\') "
            "ORDER BY importance DESC, created_at DESC LIMIT ?",
            (user_id, pattern, pattern, limit),
        )

    def search_by_terms(
        self, user_id: str, terms: Sequence[str], limit: int
    ) -> list[SemanticMemory]:
        """Memories whose content or summary contains any of ``terms``."""
        if not terms:
            return []
        clauses = []
        params: list[object] = [user_id]
        for term in terms:
            clauses.append("content LIKE ? ESCAPE '\\' OR summary LIKE ? ESCAPE '\\'")
            pattern = f"%{_escape_like(term)}%"
            params.extend([pattern, pattern])
        params.append(limit)
        return self._fetch(
            f"SELECT {_COLUMNS} FROM memories WHERE user_id = ? "
            f"AND ({' OR '.join(clauses)}) "
            "ORDER BY importance DESC, created_at DESC LIMIT ?",
            tuple(params),
        )

    def record_access(self, memory_ids: Sequence[int]) -> None:
        """Increment access_count and set last_accessed for the given ids."""
        if not memory_ids:
            return
        placeholders = ", ".join("?" for _ in memory_ids)
        try:
            with self._lock:
                conn = self._get_connection()
                conn.execute(
                    f"UPDATE memories SET access_count = access_count + 1, "
                    f"last_accessed = ? WHERE id IN ({placeholders})",
                    (_now(), *memory_ids),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to record access: {e}") from e

    def delete_by_id_for_user(
        self, user_id: str, memory_id: int
    ) -> SemanticMemory | None:
        """Delete a memory owned by ``user_id``.

        Returns:
            The deleted memory, or None if no owned memory had that id.
        """
        try:
            with self._lock:
                conn = self._get_connection()
                row = conn.execute(
                    f"SELECT {_COLUMNS} FROM memories WHERE id = ? AND user_id = ?",
                    (memory_id, user_id),
                ).fetchone()
                if row is None:
                    return None
                conn.execute(
                    "DELETE FROM memories WHERE id = ? AND user_id = ?",
                    (memory_id, user_id),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete memory: {e}") from e
        return self._row_to_memory(row)

    def count(self, user_id: str) -> int:
        """Number of memories a user has."""
        try:
            with self._lock:
                row = self._get_connection().execute(
                    "SELECT COUNT(*) FROM memories WHERE user_id = ?", (user_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to count memories: {e}") from e
        return int(row[0])

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _fetch(self, sql: str, params: tuple[object, ...]) -> list[SemanticMemory]:
        try:
            with self._lock:
                rows = self._get_connection().execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read memories: {e}") from e
        return [self._row_to_memory(row) for row in rows]

    def _row_to_memory(self, row: sqlite3.Row) -> SemanticMemory:
        """Convert a database row to a SemanticMemory."""
        embedding = unpack_embedding(row["embedding"]) if row["embedding"] else None
        try:
            metadata = json.loads(row["metadata"] or "{}")
        except json.JSONDecodeError:
            logger.warning("Corrupt metadata on memory id=%s", row["id"])
            metadata = {}
        return SemanticMemory(
            id=row["id"],
            user_id=row["user_id"],
            conversation_id=row["conversation_id"],
            content=row["content"],
            summary=row["summary"],
            context=row["context"],
            importance=row["importance"],
            embedding=embedding,
            metadata=metadata,
            created_at=row["created_at"],
            last_accessed=row["last_accessed"],
            access_count=row["access_count"],
        )
