"""
Embeddings Module - Single Responsibility: Generate text embeddings.

It has ONE job: convert text to vector embeddings.

Three providers, one contract:
- OpenAIEmbeddings: remote API, may fail (raises EmbeddingFailure)
- LocalEmbeddings: deterministic vocabulary projection, never fails
- FallbackEmbeddings: wraps a remote provider with a timeout and falls back
  to the local one, so the engine's provider never fails
"""

from __future__ import annotations

import asyncio
import logging
import os

import numpy as np
from openai import AsyncOpenAI

from nutrition_rag.config import EngineConfig
from nutrition_rag.core.errors import EmbeddingFailure
from nutrition_rag.core.protocols import EmbeddingProvider
from nutrition_rag.embeddings.local import local_embedding

logger = logging.getLogger(__name__)


def normalize_text(text: str, max_chars: int = 512) -> str:
    """Collapse newlines to spaces and truncate for the remote model."""
    return text.replace("\r\n", " ").replace("\n", " ")[:max_chars]


def _check_shape(vector: np.ndarray, dimensions: int) -> np.ndarray:
    if vector.ndim != 1 or vector.shape[0] != dimensions:
        raise EmbeddingFailure(
            f"Unexpected embedding shape {vector.shape}, expected ({dimensions},)"
        )
    return vector


class OpenAIEmbeddings:
    """
    OpenAI-based embedding provider.

    Uses text-embedding-3-small reduced to 384 dimensions by default, the
    same dimension as the local fallback, so both paths fit one store.
    """

    kind = "remote"

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        dimensions: int = 384,
        max_chars: int = 512,
    ):
        self.model = model
        self._api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self._dimensions = dimensions
        self._max_chars = max_chars
        self._client: AsyncOpenAI | None = None

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    def _request_kwargs(self) -> dict:
        kwargs: dict = {"model": self.model}
        # Only the text-embedding-3 family accepts a reduced dimension.
        if self.model.startswith("text-embedding-3"):
            kwargs["dimensions"] = self._dimensions
        return kwargs

    async def embed(self, text: str) -> np.ndarray:
        """Generate embedding for a single text."""
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts in one API call."""
        if not texts:
            return []

        inputs = [normalize_text(t, self._max_chars) for t in texts]
        if any(not t.strip() for t in inputs):
            raise EmbeddingFailure("Cannot embed empty text remotely")

        try:
            response = await self.client.embeddings.create(input=inputs, **self._request_kwargs())
        except Exception as e:
            raise EmbeddingFailure(f"OpenAI embeddings request failed: {e}") from e

        data = getattr(response, "data", None) or []
        if len(data) != len(inputs):
            raise EmbeddingFailure(
                f"Expected {len(inputs)} embeddings, got {len(data)}"
            )

        return [
            _check_shape(np.asarray(item.embedding, dtype=np.float32), self._dimensions)
            for item in data
        ]


class LocalEmbeddings:
    """
    Deterministic local embedding provider.

    Pure CPU work; the async methods never suspend.
    """

    kind = "local"

    def __init__(self, dimensions: int = 384):
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str) -> np.ndarray:
        return local_embedding(text, self._dimensions)

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        return [local_embedding(text, self._dimensions) for text in texts]


class FallbackEmbeddings:
    """
    Never-failing provider: primary with timeout, local fallback otherwise.

    Failures are logged and counted, never raised.
    """

    def __init__(
        self,
        primary: EmbeddingProvider,
        fallback: EmbeddingProvider | None = None,
        timeout_s: float = 10.0,
    ):
        self._primary = primary
        self._fallback = fallback or LocalEmbeddings(primary.dimensions)
        if self._fallback.dimensions != primary.dimensions:
            raise ValueError(
                f"Fallback dimension {self._fallback.dimensions} "
                f"!= primary dimension {primary.dimensions}"
            )
        self._timeout_s = timeout_s
        self.kind = primary.kind
        self.fallback_count = 0

    @property
    def dimensions(self) -> int:
        return self._primary.dimensions

    async def embed(self, text: str) -> np.ndarray:
        try:
            vector = await asyncio.wait_for(self._primary.embed(text), timeout=self._timeout_s)
            return _check_shape(np.asarray(vector, dtype=np.float32), self.dimensions)
        except asyncio.TimeoutError:
            logger.warning(f"Embedding timed out after {self._timeout_s}s, using local fallback")
        except Exception as e:
            logger.warning(f"Embedding failed ({e}), using local fallback")

        self.fallback_count += 1
        return await self._fallback.embed(text)

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        if not texts:
            return []
        try:
            vectors = await asyncio.wait_for(
                self._primary.embed_batch(texts), timeout=self._timeout_s
            )
            if len(vectors) != len(texts):
                raise EmbeddingFailure(f"Expected {len(texts)} embeddings, got {len(vectors)}")
            return [
                _check_shape(np.asarray(v, dtype=np.float32), self.dimensions)
                for v in vectors
            ]
        except asyncio.TimeoutError:
            logger.warning(
                f"Batch embedding of {len(texts)} texts timed out after "
                f"{self._timeout_s}s, using local fallback"
            )
        except Exception as e:
            logger.warning(f"Batch embedding failed ({e}), using local fallback")

        self.fallback_count += len(texts)
        return await self._fallback.embed_batch(texts)


def get_embedding_provider(
    config: EngineConfig | None = None,
    use_local: bool = False,
) -> EmbeddingProvider:
    """
    Factory function to get the appropriate embedding provider.

    Args:
        config: Engine configuration (uses defaults if not provided)
        use_local: If True, return LocalEmbeddings regardless of credentials

    Returns:
        LocalEmbeddings when no API key is configured, otherwise
        FallbackEmbeddings wrapping OpenAIEmbeddings
    """
    config = config or EngineConfig()

    if use_local or not config.openai_api_key:
        logger.info("No remote embedding credential configured, using local embeddings")
        return LocalEmbeddings(config.embedding_dim)

    remote = OpenAIEmbeddings(
        model=config.embedding_model,
        api_key=config.openai_api_key,
        dimensions=config.embedding_dim,
        max_chars=config.embedding_max_chars,
    )
    return FallbackEmbeddings(
        remote,
        LocalEmbeddings(config.embedding_dim),
        timeout_s=config.embedding_timeout_s,
    )
