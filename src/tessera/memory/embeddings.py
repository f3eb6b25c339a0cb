"""Embedding providers and vector helpers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

import httpx
import numpy as np
import openai
from numpy.typing import NDArray
from openai import AsyncOpenAI

from .errors import EmbeddingError

DEFAULT_EMBEDDING_URL = "https://api.openai.com/v1"
DEFAULT_EMBEDDING_MODEL = "text-embedding-ada-002"

# The client refuses an empty key; keyless local servers ignore this one
UNUSED_API_KEY = "unused"


class EmbeddingProvider(Protocol):
    """Converts text into a fixed-length vector.

    Implementations raise ``EmbeddingError`` on any provider or network
    failure; callers decide whether that is fatal.
    """

    async def embed(self, text: str) -> list[float]:
        """Embed a single piece of text."""
        ...


class OpenAIEmbeddingProvider:
    """Embedding provider for OpenAI-compatible ``/embeddings`` endpoints.

    Works with OpenAI itself and with local servers that expose the same
    API (Ollama, LM Studio, vLLM) through ``base_url``.

    Example:
        provider = OpenAIEmbeddingProvider(api_key="sk-...")
        vector = await provider.embed("User enjoys hiking")
    """

    def __init__(
        self,
        base_url: str = DEFAULT_EMBEDDING_URL,
        model: str = DEFAULT_EMBEDDING_MODEL,
        api_key: str | None = None,
        timeout: float = 10.0,
        max_retries: int = 0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            base_url: API root, without the trailing ``/embeddings``.
            model: Embedding model name.
            api_key: API key, if the endpoint requires one.
            timeout: Request timeout in seconds.
            max_retries: Client-side retries. The memory manager already
                degrades on failure, so none by default.
            http_client: Optional httpx client (mainly for tests).
        """
        self.model = model
        self.timeout = timeout
        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key or UNUSED_API_KEY,
            timeout=timeout,
            max_retries=max_retries,
            http_client=http_client,
        )

    async def embed(self, text: str) -> list[float]:
        """Embed ``text`` with the configured model.

        Raises:
            EmbeddingError: On empty input, transport errors, error
                responses or a payload without a usable vector.
        """
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        try:
            response = await self.client.embeddings.create(
                model=self.model, input=text, encoding_format="float"
            )
        except openai.APITimeoutError as e:
            raise EmbeddingError(
                f"Embedding request timed out after {self.timeout}s"
            ) from e
        except openai.APIConnectionError as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e
        except openai.APIStatusError as e:
            raise EmbeddingError(
                f"Embedding provider returned HTTP {e.status_code}",
                detail=e.response.text[:200],
            ) from e
        except openai.APIError as e:
            raise EmbeddingError(f"Malformed embedding response: {e}") from e

        return _parse_vector(response)


def _parse_vector(response: Any) -> list[float]:
    try:
        vector = np.asarray(response.data[0].embedding, dtype=np.float64)
    except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
        raise EmbeddingError("Malformed embedding response") from e

    if vector.ndim != 1 or vector.size == 0:
        raise EmbeddingError("Embedding response contained no vector")
    if not np.all(np.isfinite(vector)):
        raise EmbeddingError("Embedding response contained non-finite values")
    return vector.tolist()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity between two vectors; 0.0 for zero or mismatched vectors."""
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def cosine_similarities(
    query: Sequence[float], matrix: NDArray[np.float32]
) -> NDArray[np.float32]:
    """Cosine similarity of ``query`` against every row of ``matrix``.

    Rows (or a query) with zero norm score 0.0.
    """
    q = np.asarray(query, dtype=np.float32)
    dots = matrix @ q
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    return np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)


def pack_embedding(vector: Sequence[float]) -> bytes:
    """Serialize a vector to float32 bytes for storage."""
    return np.asarray(vector, dtype=np.float32).tobytes()


def unpack_embedding(blob: bytes) -> list[float]:
    """Deserialize float32 bytes back to a vector."""
    return np.frombuffer(blob, dtype=np.float32).tolist()
