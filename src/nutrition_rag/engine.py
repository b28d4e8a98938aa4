"""
Knowledge engine - the library's public entry point.

Owns one vector store and one embedding provider and wires the search,
context assembly and ingestion components over them. Nothing here is a
module-level singleton: build as many engines as you need, each with its
own store.

USAGE:
------
engine = create_engine()
await engine.ingest_all()
context = await engine.get_relevant_context("high protein breakfast")
engine.close()
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from nutrition_rag.config import EngineConfig, get_config
from nutrition_rag.embeddings import get_embedding_provider
from nutrition_rag.ingestion.pipeline import IngestionResult, IngestionStatus, KnowledgeIngestion
from nutrition_rag.retrieval.context import ContextAssembler, RetrievedContext, UserContextHints
from nutrition_rag.retrieval.search import SimilaritySearch
from nutrition_rag.retrieval.store import VectorStoreConfig, open_vector_store

if TYPE_CHECKING:
    from nutrition_rag.core.protocols import EmbeddingProvider, SearchResult, VectorStore
    from nutrition_rag.ingestion.records import RecordSource
    from nutrition_rag.retrieval.document import Document
    from nutrition_rag.retrieval.filters import Filter

logger = logging.getLogger(__name__)


class KnowledgeEngine:
    """Facade over store, embeddings, search, context assembly and ingestion."""

    def __init__(
        self,
        store: VectorStore,
        embeddings: EmbeddingProvider,
        records: RecordSource | None = None,
        config: EngineConfig | None = None,
    ):
        if store.dimensions != embeddings.dimensions:
            raise ValueError(
                f"Store dimension {store.dimensions} does not match "
                f"embedding dimension {embeddings.dimensions}"
            )
        self.config = config or get_config()
        self.store = store
        self.embeddings = embeddings
        self.search = SimilaritySearch(store, embeddings, self.config)
        self.assembler = ContextAssembler(self.search, self.config)
        self.ingestion = KnowledgeIngestion(store, embeddings, records, self.config)

    # Ingestion / maintenance

    async def ingest_all(self) -> IngestionResult:
        return await self.ingestion.ingest_all()

    async def add_document(self, doc: Document) -> None:
        """Index one document. Raises StoreWriteError if the write fails."""
        await self.ingestion.add_documents_batch([doc])

    async def update_document(self, doc: Document) -> None:
        """Replace a document wholesale (same as add: writes are upserts)."""
        await self.add_document(doc)

    async def delete_document(self, doc_id: str) -> bool:
        return await self.ingestion.delete_document(doc_id)

    def ingestion_status(self) -> IngestionStatus:
        return self.ingestion.status()

    # Queries

    async def search_similar(
        self,
        query: str,
        top_k: int | None = None,
        filter: Filter | None = None,
        min_similarity: float | None = None,
    ) -> SearchResult:
        return await self.search.search_similar(
            query, top_k=top_k, filter=filter, min_similarity=min_similarity
        )

    async def get_relevant_context(
        self,
        query: str,
        hints: UserContextHints | None = None,
        max_tokens: int | None = None,
    ) -> str:
        return await self.assembler.get_relevant_context(query, hints, max_tokens)

    async def retrieve(
        self,
        query: str,
        hints: UserContextHints | None = None,
        max_tokens: int | None = None,
    ) -> RetrievedContext:
        return await self.assembler.retrieve(query, hints, max_tokens)

    # Store management

    def stats(self) -> dict[str, Any]:
        stats = self.store.stats()
        return {
            "total_documents": stats.count,
            "backend": stats.backend,
            "collection_name": stats.collection_name,
        }

    async def clear(self) -> None:
        await asyncio.to_thread(self.store.clear)
        logger.info(f"Cleared {self.store.kind} vector store")

    def close(self) -> None:
        self.store.close()


def create_engine(
    config: EngineConfig | None = None,
    records: RecordSource | None = None,
    store: VectorStore | None = None,
    embeddings: EmbeddingProvider | None = None,
) -> KnowledgeEngine:
    """
    Factory function to build a KnowledgeEngine.

    Args:
        config: Engine configuration (uses env vars if not provided)
        records: Record source for ingestion (seed library only if None)
        store: Pre-opened vector store (runs the backend chain if None)
        embeddings: Embedding provider (chosen from config if None)

    Returns:
        A ready-to-use KnowledgeEngine
    """
    config = config or get_config()

    if embeddings is None:
        embeddings = get_embedding_provider(config)
    if store is None:
        store = open_vector_store(VectorStoreConfig.from_engine_config(config))

    return KnowledgeEngine(store, embeddings, records=records, config=config)
