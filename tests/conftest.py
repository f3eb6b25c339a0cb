"""Shared fixtures: temporary stores and a deterministic embedder."""

import re
from pathlib import Path

import pytest

from tessera.logging import JSONLLogger
from tessera.memory import EmbeddingError, MemoryManager, MemoryStore

# Words that share a dimension are "semantically related" for the stub.
CONCEPTS: dict[str, tuple[str, ...]] = {
    "outdoors": ("hiking", "mountains", "outdoor", "outdoors", "camping", "trail", "activities", "nature"),
    "food": ("pizza", "food", "sushi", "cooking", "eat", "restaurant", "dinner"),
    "work": ("engineer", "developer", "work", "works", "job", "company", "office"),
    "place": ("paris", "france", "berlin", "lives", "live", "city", "from"),
    "music": ("music", "guitar", "jazz", "song", "concert"),
    "identity": ("name", "called", "alice", "bob"),
}


class KeywordEmbedder:
    """Embeds text as counts of concept keywords.

    Texts that mention the same concept end up close together, so
    similarity search behaves predictably without a real model.
    """

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingError("Embedding provider unavailable")
        words = re.findall(r"[a-z]+", text.lower())
        vector = [float(sum(word in keywords for word in words)) for keywords in CONCEPTS.values()]
        # constant dimension keeps every vector non-zero
        vector.append(0.1)
        return vector


@pytest.fixture
def store(tmp_path: Path) -> MemoryStore:
    """Create a MemoryStore with a temporary database."""
    store = MemoryStore(tmp_path / "test_memory.db")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def events(tmp_path: Path) -> JSONLLogger:
    """Structured event logger writing under tmp_path."""
    return JSONLLogger(log_dir=tmp_path / "logs")


@pytest.fixture
def manager(store: MemoryStore, embedder: KeywordEmbedder, events: JSONLLogger) -> MemoryManager:
    return MemoryManager(store, embedder, json_logger=events)


@pytest.fixture
def failing_embedder() -> KeywordEmbedder:
    """Embedder whose every call raises EmbeddingError."""
    return KeywordEmbedder(fail=True)
