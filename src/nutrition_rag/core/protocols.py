"""
Core protocols defining contracts for the entire engine.

All infrastructure components implement these protocols,
enabling dependency injection and easy testing.

PATTERN: Protocol -> production implementation -> test double -> factory
- EmbeddingProvider: OpenAIEmbeddings, LocalEmbeddings, FallbackEmbeddings
- VectorStore: PgVectorStore, FileVectorStore, InMemoryVectorStore
- RecordSource: InMemoryRecordSource, JsonRecordSource (see ingestion.records)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

import numpy as np

if TYPE_CHECKING:
    from nutrition_rag.retrieval.document import Document
    from nutrition_rag.retrieval.filters import Filter


# ---------------------------------------------------------------------------
# EMBEDDING PROVIDER PROTOCOL
# ---------------------------------------------------------------------------


@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Contract for embedding generation.

    `kind` is "remote" or "local"; the search engine uses it to pick a
    default similarity threshold.
    """

    kind: str

    @property
    def dimensions(self) -> int:
        ...

    async def embed(self, text: str) -> np.ndarray:
        """Generate embedding for a single text."""
        ...

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts, in input order."""
        ...


# ---------------------------------------------------------------------------
# VECTOR STORE PROTOCOL
# ---------------------------------------------------------------------------


@dataclass
class ScoredDocument:
    """A retrieved document with its cosine similarity to the query."""
    document: Document
    similarity: float


@dataclass
class StoreStats:
    count: int
    backend: str
    collection_name: str


@dataclass
class SearchResult:
    """Result of a similarity search, as handed to callers."""
    documents: list[Document] = field(default_factory=list)
    similarity_scores: list[float] = field(default_factory=list)
    search_time_ms: float = 0.0
    total_results: int = 0

    @classmethod
    def from_scored(cls, scored: list[ScoredDocument], search_time_ms: float) -> SearchResult:
        return cls(
            documents=[s.document for s in scored],
            similarity_scores=[s.similarity for s in scored],
            search_time_ms=search_time_ms,
            total_results=len(scored),
        )


@runtime_checkable
class VectorStore(Protocol):
    """
    Contract for vector persistence and nearest-neighbor search.

    Implementations:
    - PgVectorStore (external, PostgreSQL + pgvector)
    - FileVectorStore (JSON file on disk)
    - InMemoryVectorStore (process memory, tests and last resort)

    Stores are synchronous; async callers run them in a worker thread.
    """

    kind: str
    dimensions: int
    collection_name: str

    def open(self) -> None:
        """Initialize the backend. Raises BackendUnavailable on failure."""
        ...

    def close(self) -> None:
        ...

    def add(self, doc: Document, vector: np.ndarray) -> None:
        """Insert or fully replace a document."""
        ...

    def add_batch(self, docs: Sequence[Document], vectors: Sequence[np.ndarray]) -> None:
        ...

    def search(
        self,
        query_vector: np.ndarray,
        top_k: int = 5,
        filter: Filter | None = None,
        min_similarity: float = 0.0,
    ) -> list[ScoredDocument]:
        """Return up to top_k documents ranked by similarity desc, then id."""
        ...

    def delete(self, doc_id: str) -> bool:
        """Remove a document. Deleting a missing id is not an error."""
        ...

    def clear(self) -> None:
        ...

    def stats(self) -> StoreStats:
        ...
