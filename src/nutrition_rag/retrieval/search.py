"""
Similarity search - embeds a query and ranks stored documents against it.

The store is synchronous, so the scan runs in a worker thread and never
blocks the event loop (the external backend does network I/O).
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from nutrition_rag.config import EngineConfig, get_config, get_tracing_config
from nutrition_rag.core.errors import BackendUnavailable, RetrievalError, StoreReadError
from nutrition_rag.core.protocols import SearchResult
from nutrition_rag.observability import (
    RETRIEVAL_LATENCY_MS,
    RETRIEVAL_RESULT_COUNT,
    get_tracer,
    search_attributes,
)
from nutrition_rag.retrieval.filters import type_filter

if TYPE_CHECKING:
    from nutrition_rag.core.protocols import EmbeddingProvider, VectorStore
    from nutrition_rag.retrieval.document import DocumentType
    from nutrition_rag.retrieval.filters import Filter

logger = logging.getLogger(__name__)


class SimilaritySearch:
    """
    Query-side entry point over a vector store.

    Embedding never fails (the provider falls back to the local
    embedding); backend read failures surface as StoreReadError.
    """

    def __init__(
        self,
        store: VectorStore,
        embeddings: EmbeddingProvider,
        config: EngineConfig | None = None,
    ):
        self.store = store
        self.embeddings = embeddings
        self.config = config or get_config()

    def default_min_similarity(self) -> float:
        return self.config.default_min_similarity(self.embeddings.kind)

    async def search_similar(
        self,
        query: str,
        top_k: int | None = None,
        filter: Filter | None = None,
        min_similarity: float | None = None,
    ) -> SearchResult:
        """
        Find the documents most similar to a query.

        Args:
            query: Free-text query
            top_k: Maximum number of results (config default when None)
            filter: Optional metadata filter
            min_similarity: Admission threshold (provider-dependent default when None)

        Returns:
            SearchResult ordered by similarity desc, then id asc
        """
        if top_k is None:
            top_k = self.config.default_top_k
        if min_similarity is None:
            min_similarity = self.default_min_similarity()

        tracing = get_tracing_config()
        attrs = search_attributes(
            top_k=top_k,
            min_similarity=min_similarity,
            backend=self.store.kind,
            embedding_kind=self.embeddings.kind,
            filter_repr=repr(filter) if filter else None,
            query=query if tracing.capture_content else None,
        )

        with get_tracer().start_span("retrieval.search_similar", attributes=attrs) as span:
            start = time.perf_counter()

            query_vector = await self.embeddings.embed(query)
            try:
                scored = await asyncio.to_thread(
                    self.store.search,
                    query_vector,
                    top_k=top_k,
                    filter=filter,
                    min_similarity=min_similarity,
                )
            except StoreReadError:
                raise
            except BackendUnavailable as e:
                # Closed or dropped connection: the search cannot be answered
                raise StoreReadError(f"Search failed: {e}") from e
            except (RetrievalError, ValueError):
                # Programming errors (bad filter, wrong dimension) are not read failures
                raise
            except Exception as e:
                raise StoreReadError(f"Search failed on {self.store.kind} backend: {e}") from e

            elapsed_ms = (time.perf_counter() - start) * 1000
            span.set_attributes({RETRIEVAL_RESULT_COUNT: len(scored), RETRIEVAL_LATENCY_MS: elapsed_ms})

        logger.debug(f"Search returned {len(scored)} documents in {elapsed_ms:.1f}ms")
        return SearchResult.from_scored(scored, search_time_ms=elapsed_ms)

    async def search_by_type(
        self,
        query: str,
        doc_type: DocumentType | str,
        top_k: int = 3,
        min_similarity: float | None = None,
    ) -> SearchResult:
        """Search restricted to one document type."""
        return await self.search_similar(
            query,
            top_k=top_k,
            filter=type_filter(doc_type),
            min_similarity=min_similarity,
        )
