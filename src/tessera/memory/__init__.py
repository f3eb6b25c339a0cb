"""Semantic memory: extraction, storage, retrieval and prompt augmentation."""

from .augmenter import build_instructions, format_memory_block
from .embeddings import (
    EmbeddingProvider,
    OpenAIEmbeddingProvider,
    cosine_similarities,
    cosine_similarity,
)
from .errors import (
    EmbeddingError,
    MemoryServiceError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .extractor import FactExtractor, extract_facts
from .manager import MemoryConfig, MemoryManager
from .models import ExtractedFact, FactType, NewMemory, SearchResult, SemanticMemory
from .retriever import MemoryContext, SemanticRetriever
from .scoring import calculate_importance
from .store import MemoryStore
from .summary import generate_summary
from .tools import ForgetTool, RecallTool, RememberTool, memory_tools

__all__ = [
    "EmbeddingError",
    "EmbeddingProvider",
    "ExtractedFact",
    "FactExtractor",
    "FactType",
    "ForgetTool",
    "MemoryConfig",
    "MemoryContext",
    "MemoryManager",
    "MemoryServiceError",
    "MemoryStore",
    "NewMemory",
    "NotFoundError",
    "OpenAIEmbeddingProvider",
    "RecallTool",
    "RememberTool",
    "SearchResult",
    "SemanticMemory",
    "SemanticRetriever",
    "StorageError",
    "ValidationError",
    "build_instructions",
    "calculate_importance",
    "cosine_similarities",
    "cosine_similarity",
    "extract_facts",
    "format_memory_block",
    "generate_summary",
    "memory_tools",
]
