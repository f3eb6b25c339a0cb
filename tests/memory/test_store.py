"""Tests for MemoryStore."""

from pathlib import Path

import pytest

from tessera.memory import MemoryStore, NewMemory, SemanticMemory, StorageError
from tessera.memory.store import rank_by_similarity


def add(store: MemoryStore, user_id: str = "alice", content: str = "note", **kwargs) -> SemanticMemory:
    return store.create(NewMemory(user_id=user_id, content=content, **kwargs))


class TestMemoryStoreInit:
    """Tests for MemoryStore initialization."""

    def test_creates_db_directory(self, tmp_path: Path):
        """Store creates parent directories if they don't exist."""
        nested_path = tmp_path / "nested" / "dir" / "memory.db"
        store = MemoryStore(nested_path)
        store.init_db()
        assert nested_path.exists()
        store.close()

    def test_creates_memories_table_and_indexes(self, store: MemoryStore):
        conn = store._get_connection()
        names = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type IN ('table', 'index')")
        }
        assert "memories" in names
        assert {"idx_memories_user", "idx_memories_user_importance", "idx_memories_user_created"} <= names

    def test_init_db_idempotent(self, store: MemoryStore):
        store.init_db()
        store.init_db()  # Should not raise


class TestCreate:
    """Tests for inserting memories."""

    def test_assigns_id_and_timestamp(self, store: MemoryStore):
        memory = add(store, content="User likes tea", summary="likes tea", importance=6)
        assert memory.id > 0
        assert memory.created_at is not None
        assert memory.summary == "likes tea"
        assert memory.importance == 6
        assert memory.access_count == 0

    def test_round_trips_embedding_and_metadata(self, store: MemoryStore):
        created = add(store, embedding=[0.5, 0.25], metadata={"source": "test"}, context="ctx")
        loaded = store.get_for_user("alice", created.id)
        assert loaded is not None
        assert loaded.embedding == [0.5, 0.25]
        assert loaded.metadata == {"source": "test"}
        assert loaded.context == "ctx"

    def test_null_embedding(self, store: MemoryStore):
        created = add(store)
        loaded = store.get_for_user("alice", created.id)
        assert loaded.embedding is None
        assert loaded.to_dict()["has_embedding"] is False

    def test_unserializable_metadata_raises_storage_error(self, store: MemoryStore):
        with pytest.raises(StorageError):
            add(store, metadata={"bad": object()})

    def test_closed_connection_is_reopened(self, store: MemoryStore):
        store.close()
        assert add(store).id > 0


class TestUserScoping:
    """No query crosses users."""

    def test_get_for_other_user_is_none(self, store: MemoryStore):
        memory = add(store, user_id="alice")
        assert store.get_for_user("bob", memory.id) is None

    def test_list_only_own(self, store: MemoryStore):
        add(store, user_id="alice", content="alice note")
        add(store, user_id="bob", content="bob note")
        assert [m.content for m in store.list_by_user("alice")] == ["alice note"]

    def test_similarity_only_own(self, store: MemoryStore):
        add(store, user_id="bob", content="bob", embedding=[1.0, 0.0])
        assert store.query_by_similarity("alice", [1.0, 0.0], 10) == []

    def test_text_search_only_own(self, store: MemoryStore):
        add(store, user_id="bob", content="secret recipe")
        assert store.search_by_text("alice", "recipe", 10) == []

    def test_delete_other_users_memory_is_noop(self, store: MemoryStore):
        memory = add(store, user_id="alice")
        assert store.delete_by_id_for_user("bob", memory.id) is None
        assert store.count("alice") == 1


class TestListing:
    """Tests for list_by_user and list_profile."""

    def test_newest_first(self, store: MemoryStore):
        for content in ("first", "second", "third"):
            add(store, content=content)
        assert [m.content for m in store.list_by_user("alice")] == ["third", "second", "first"]

    def test_limit(self, store: MemoryStore):
        for i in range(5):
            add(store, content=f"note {i}")
        assert len(store.list_by_user("alice", limit=2)) == 2

    def test_profile_filters_and_orders(self, store: MemoryStore):
        add(store, content="low", importance=5)
        add(store, content="work", importance=7)
        add(store, content="name", importance=9)
        add(store, content="place", importance=8)
        profile = store.list_profile("alice", min_importance=7)
        assert [m.content for m in profile] == ["name", "place", "work"]

    def test_profile_prefers_frequently_accessed(self, store: MemoryStore):
        a = add(store, content="a", importance=8)
        b = add(store, content="b", importance=8)
        store.record_access([a.id])
        assert [m.id for m in store.list_profile("alice")] == [a.id, b.id]


class TestSimilarity:
    """Tests for query_by_similarity."""

    def test_ranked_by_similarity(self, store: MemoryStore):
        add(store, content="far", embedding=[0.0, 1.0])
        add(store, content="near", embedding=[1.0, 0.1])
        add(store, content="middle", embedding=[1.0, 1.0])
        ranked = store.query_by_similarity("alice", [1.0, 0.0], 10)
        assert [m.content for m, _ in ranked] == ["near", "middle", "far"]
        scores = [score for _, score in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_top_k(self, store: MemoryStore):
        for i in range(6):
            add(store, content=f"n{i}", embedding=[1.0, float(i)])
        assert len(store.query_by_similarity("alice", [1.0, 0.0], 3)) == 3

    def test_skips_memories_without_embedding(self, store: MemoryStore):
        add(store, content="no vector")
        add(store, content="vector", embedding=[1.0])
        ranked = store.query_by_similarity("alice", [1.0], 10)
        assert [m.content for m, _ in ranked] == ["vector"]

    def test_skips_embeddings_of_another_dimension(self, store: MemoryStore, caplog):
        add(store, content="old model", embedding=[1.0, 0.0, 0.0])
        add(store, content="current", embedding=[0.0, 1.0])

        with caplog.at_level("WARNING", logger="tessera.memory.store"):
            ranked = store.query_by_similarity("alice", [1.0, 0.0], 10)

        assert [m.content for m, _ in ranked] == ["current"]
        assert ranked[0][1] == pytest.approx(0.0)
        assert "Skipped 1 memories" in caplog.text

    def test_only_other_dimensions_gives_nothing(self, store: MemoryStore):
        memory = add(store, embedding=[1.0, 0.0, 0.0])
        assert store.query_by_similarity("alice", [1.0, 0.0], 10) == []
        assert store.get_for_user("alice", memory.id).access_count == 0

    def test_zero_vector_scores_zero(self, store: MemoryStore):
        add(store, content="zero", embedding=[0.0, 0.0])
        add(store, content="match", embedding=[2.0, 0.0])
        ranked = store.query_by_similarity("alice", [1.0, 0.0], 10)
        assert [(m.content, round(s, 4)) for m, s in ranked] == [("match", 1.0), ("zero", 0.0)]

    def test_records_access(self, store: MemoryStore):
        memory = add(store, embedding=[1.0])
        store.query_by_similarity("alice", [1.0], 10)
        loaded = store.get_for_user("alice", memory.id)
        assert loaded.access_count == 1
        assert loaded.last_accessed is not None

    def test_no_tracking_when_disabled(self, store: MemoryStore):
        memory = add(store, embedding=[1.0])
        store.query_by_similarity("alice", [1.0], 10, track_access=False)
        assert store.get_for_user("alice", memory.id).access_count == 0

    def test_ties_broken_by_importance_then_recency(self):
        older = SemanticMemory(id=1, user_id="u", content="a", importance=5, created_at="2024-01-01")
        newer = SemanticMemory(id=2, user_id="u", content="b", importance=5, created_at="2024-02-01")
        important = SemanticMemory(id=3, user_id="u", content="c", importance=9, created_at="2023-01-01")
        ranked = rank_by_similarity([(older, 0.5), (newer, 0.5), (important, 0.5)], 3)
        assert [m.id for m, _ in ranked] == [3, 2, 1]


class TestTextSearch:
    """Tests for the substring fallback."""

    def test_case_insensitive_over_content_and_summary(self, store: MemoryStore):
        add(store, content="User: I love Hiking", importance=5)
        add(store, content="unrelated", summary="User likes hiking", importance=8)
        add(store, content="nothing here")
        results = store.search_by_text("alice", "hiking", 10)
        assert [m.importance for m in results] == [8, 5]

    def test_like_wildcards_are_literal(self, store: MemoryStore):
        add(store, content="100% sure")
        add(store, content="100 percent")
        assert [m.content for m in store.search_by_text("alice", "100%", 10)] == ["100% sure"]

    def test_search_by_terms(self, store: MemoryStore):
        add(store, content="x", summary="User is from/lives in Paris")
        add(store, content="User likes tea")
        results = store.search_by_terms("alice", ("lives in", "timezone"), 5)
        assert [m.summary for m in results] == ["User is from/lives in Paris"]

    def test_search_by_no_terms(self, store: MemoryStore):
        add(store)
        assert store.search_by_terms("alice", (), 5) == []


class TestDelete:
    """Tests for owner-scoped deletion."""

    def test_returns_deleted_memory(self, store: MemoryStore):
        memory = add(store, content="bye")
        deleted = store.delete_by_id_for_user("alice", memory.id)
        assert deleted is not None
        assert deleted.content == "bye"
        assert store.get_for_user("alice", memory.id) is None

    def test_missing_id(self, store: MemoryStore):
        assert store.delete_by_id_for_user("alice", 999) is None


def test_corrupt_metadata_reads_as_empty(store: MemoryStore):
    memory = add(store, metadata={"ok": True})
    conn = store._get_connection()
    conn.execute("UPDATE memories SET metadata = 'not json' WHERE id = ?", (memory.id,))
    conn.commit()
    assert store.get_for_user("alice", memory.id).metadata == {}


def test_sqlite_errors_become_storage_errors(store: MemoryStore):
    conn = store._get_connection()
    conn.execute("DROP TABLE memories")
    conn.commit()
    with pytest.raises(StorageError):
        store.list_by_user("alice")
