"""Configuration loaded from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from .agent import DEFAULT_USER_ID, AgentConfig
from .memory import OpenAIEmbeddingProvider, MemoryConfig, MemoryManager, MemoryStore
from .memory.embeddings import DEFAULT_EMBEDDING_MODEL, DEFAULT_EMBEDDING_URL

TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class EmbeddingConfig:
    """Where and how memory embeddings are computed."""

    base_url: str = DEFAULT_EMBEDDING_URL
    model: str = DEFAULT_EMBEDDING_MODEL
    api_key: str | None = None


@dataclass
class Settings:
    """Everything the CLI and the API need to start."""

    home: Path = field(default_factory=lambda: Path.home() / ".tessera")
    db_path: Path | None = None
    default_user: str = DEFAULT_USER_ID
    host: str = "127.0.0.1"
    port: int = 8000
    agent: AgentConfig = field(default_factory=AgentConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)

    @property
    def database(self) -> Path:
        """SQLite file for memories."""
        return self.db_path or self.home / "memory.db"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in TRUE_VALUES


def load_config() -> Settings:
    """Load configuration from environment variables.

    Raises:
        ValueError: If a numeric variable is not a number.
    """
    home = Path(os.getenv("TESSERA_HOME", str(Path.home() / ".tessera"))).expanduser()
    db_path = os.getenv("TESSERA_DB_PATH")

    return Settings(
        home=home,
        db_path=Path(db_path).expanduser() if db_path else None,
        default_user=os.getenv("TESSERA_DEFAULT_USER", DEFAULT_USER_ID),
        host=os.getenv("TESSERA_HOST", "127.0.0.1"),
        port=int(os.getenv("TESSERA_PORT", "8000")),
        agent=AgentConfig(
            model=os.getenv("GROQ_MODEL", "llama-3.1-70b-versatile"),
        ),
        memory=MemoryConfig(
            timeout=float(os.getenv("MEMORY_TIMEOUT", "10")),
            context_limit=int(os.getenv("MEMORY_CONTEXT_LIMIT", "5")),
            profile_min_importance=int(os.getenv("MEMORY_PROFILE_MIN_IMPORTANCE", "7")),
            include_profile=_env_bool("MEMORY_INCLUDE_PROFILE", True),
        ),
        embedding=EmbeddingConfig(
            base_url=os.getenv("EMBEDDING_BASE_URL", DEFAULT_EMBEDDING_URL),
            model=os.getenv("EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
            api_key=os.getenv("EMBEDDING_API_KEY") or os.getenv("OPENAI_API_KEY"),
        ),
    )


def build_memory_manager(settings: Settings) -> MemoryManager:
    """Open the memory store and wire a manager around it."""
    store = MemoryStore(settings.database)
    store.init_db()
    embedder = OpenAIEmbeddingProvider(
        base_url=settings.embedding.base_url,
        model=settings.embedding.model,
        api_key=settings.embedding.api_key,
        timeout=settings.memory.timeout,
    )
    return MemoryManager(store, embedder, config=settings.memory)
