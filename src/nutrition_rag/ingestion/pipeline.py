"""
Knowledge ingestion pipeline.

Pulls records from a RecordSource plus the curated seed library, adapts
them into Documents and writes them through the embedding provider into
the vector store in fixed-size batches.

A full run fans out over every source concurrently. One failing source
is reported in the result and never aborts the others; re-run it on its
own with ingest_source(name).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Sequence

from nutrition_rag.config import EngineConfig, get_config
from nutrition_rag.core.errors import RetrievalError, StoreWriteError
from nutrition_rag.ingestion.adapters import (
    catalog_to_document,
    fact_to_document,
    meal_plan_to_document,
    recipe_to_document,
)
from nutrition_rag.observability import (
    INGESTION_DOCUMENT_COUNT,
    INGESTION_ERROR_COUNT,
    INGESTION_STATE,
    get_tracer,
    ingestion_attributes,
)
from nutrition_rag.retrieval.seeds import get_reference_documents, get_supplement_documents

if TYPE_CHECKING:
    from nutrition_rag.core.protocols import EmbeddingProvider, VectorStore
    from nutrition_rag.ingestion.records import RecordSource
    from nutrition_rag.retrieval.document import Document

logger = logging.getLogger(__name__)


class IngestionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"


@dataclass
class IngestionResult:
    success: bool
    total_documents: int
    errors: list[str] = field(default_factory=list)


@dataclass
class IngestionStatus:
    total_documents: int
    last_ingestion: datetime | None
    is_healthy: bool
    state: IngestionState


def chunked(items: Sequence, size: int):
    """Yield consecutive slices of at most `size` items."""
    for i in range(0, len(items), size):
        yield items[i:i + size]


class KnowledgeIngestion:
    """
    Adapts records into Documents and indexes them.

    The record source is optional: without one, only the curated seed
    library (references and supplements) is ingested.
    """

    def __init__(
        self,
        store: VectorStore,
        embeddings: EmbeddingProvider,
        records: RecordSource | None = None,
        config: EngineConfig | None = None,
    ):
        self.store = store
        self.embeddings = embeddings
        self.records = records
        self.config = config or get_config()
        self.state = IngestionState.IDLE
        self.last_ingestion: datetime | None = None

        self._sources: dict[str, Callable[[], Awaitable[int]]] = {
            "facts": self.ingest_facts,
            "catalog": self.ingest_catalog,
            "recipes": self.ingest_recipes,
            "references": self.ingest_references,
            "supplements": self.ingest_supplements,
            "meal_plans": self.ingest_meal_plans,
        }

    @property
    def source_names(self) -> list[str]:
        return list(self._sources)

    # -----------------------------------------------------------------------
    # BATCH WRITES
    # -----------------------------------------------------------------------

    async def add_documents_batch(self, docs: Sequence[Document]) -> int:
        """
        Embed and write documents in fixed-size batches.

        Within a batch, embeddings are computed concurrently and written in
        submission order with one store call.

        Raises:
            StoreWriteError: if the backend rejects a batch
        """
        batch_size = self.config.batch_size
        written = 0

        for number, batch in enumerate(chunked(list(docs), batch_size), start=1):
            vectors = await asyncio.gather(*(self.embeddings.embed(doc.content) for doc in batch))
            await asyncio.to_thread(self.store.add_batch, batch, vectors)
            written += len(batch)
            logger.debug(f"Wrote batch {number} ({len(batch)} documents)")

        return written

    async def _ingest(self, source: str, load: Callable[[], list[Document]]) -> int:
        with get_tracer().start_span("ingestion.source", attributes=ingestion_attributes(source)) as span:
            docs = await asyncio.to_thread(load)
            count = await self.add_documents_batch(docs) if docs else 0
            span.set_attribute(INGESTION_DOCUMENT_COUNT, count)

        logger.info(f"Ingested {count} documents from {source}")
        return count

    def _require_records(self, source: str) -> RecordSource | None:
        if self.records is None:
            logger.debug(f"No record source configured, skipping {source}")
        return self.records

    # -----------------------------------------------------------------------
    # PER-SOURCE ENTRY POINTS
    # -----------------------------------------------------------------------

    async def ingest_facts(self) -> int:
        records = self._require_records("facts")
        if records is None:
            return 0
        return await self._ingest("facts", lambda: [fact_to_document(f) for f in records.facts()])

    async def ingest_catalog(self) -> int:
        records = self._require_records("catalog")
        if records is None:
            return 0
        limit = self.config.catalog_limit
        return await self._ingest(
            "catalog",
            lambda: [catalog_to_document(c) for c in records.catalog_items(limit)],
        )

    async def ingest_recipes(self) -> int:
        records = self._require_records("recipes")
        if records is None:
            return 0
        return await self._ingest("recipes", lambda: [recipe_to_document(r) for r in records.recipes()])

    async def ingest_references(self) -> int:
        return await self._ingest("references", get_reference_documents)

    async def ingest_supplements(self) -> int:
        return await self._ingest("supplements", get_supplement_documents)

    async def ingest_meal_plans(self) -> int:
        records = self._require_records("meal_plans")
        if records is None:
            return 0
        limit = self.config.plan_limit
        return await self._ingest(
            "meal_plans",
            lambda: [meal_plan_to_document(p) for p in records.meal_plans(limit)],
        )

    async def ingest_source(self, name: str) -> int:
        """Re-run a single source by name (see source_names)."""
        try:
            ingest = self._sources[name]
        except KeyError:
            raise ValueError(
                f"Unknown ingestion source '{name}'. Available: {', '.join(self._sources)}"
            ) from None
        return await ingest()

    # -----------------------------------------------------------------------
    # FULL RUN
    # -----------------------------------------------------------------------

    async def ingest_all(self) -> IngestionResult:
        """
        Ingest every source concurrently; failures are collected, not raised.
        """
        self.state = IngestionState.RUNNING
        logger.info("Starting knowledge ingestion")

        with get_tracer().start_span("ingestion.ingest_all") as span:
            names = list(self._sources)
            outcomes = await asyncio.gather(
                *(self._sources[name]() for name in names),
                return_exceptions=True,
            )

            total = 0
            errors: list[str] = []
            for name, outcome in zip(names, outcomes):
                if isinstance(outcome, BaseException):
                    errors.append(f"{name} ingestion failed: {outcome}")
                    logger.error(f"{name} ingestion failed: {outcome}")
                else:
                    total += outcome

            self.state = (
                IngestionState.COMPLETED_WITH_ERRORS if errors else IngestionState.COMPLETED
            )
            self.last_ingestion = datetime.now(timezone.utc)

            span.set_attribute(INGESTION_DOCUMENT_COUNT, total)
            span.set_attribute(INGESTION_ERROR_COUNT, len(errors))
            span.set_attribute(INGESTION_STATE, self.state.value)

        logger.info(f"Knowledge ingestion {self.state.value}: {total} documents, {len(errors)} errors")
        return IngestionResult(success=not errors, total_documents=total, errors=errors)

    # -----------------------------------------------------------------------
    # INCREMENTAL MAINTENANCE
    # -----------------------------------------------------------------------

    def _lookup(self, source: str, source_id: str) -> Document | None:
        records = self.records
        if records is None:
            return None
        if source == "fact":
            record = records.get_fact(source_id)
            return fact_to_document(record) if record else None
        if source == "catalog":
            record = records.get_catalog_item(source_id)
            return catalog_to_document(record) if record else None
        if source == "recipe":
            record = records.get_recipe(source_id)
            return recipe_to_document(record) if record else None
        if source == "plan":
            record = records.get_meal_plan(source_id)
            return meal_plan_to_document(record) if record else None
        raise ValueError(f"Unknown record source '{source}'. Available: fact, catalog, recipe, plan")

    async def update_single_document(self, source: str, source_id: str) -> bool:
        """
        Re-fetch one record and upsert its document.

        Returns:
            False if the record does not exist or the write failed
        """
        doc = await asyncio.to_thread(self._lookup, source, source_id)
        if doc is None:
            logger.warning(f"No {source} record with id {source_id}")
            return False

        try:
            await self.add_documents_batch([doc])
        except StoreWriteError as e:
            logger.error(f"Updating document {doc.id} failed: {e}")
            return False
        return True

    async def delete_document(self, doc_id: str) -> bool:
        """Remove a document; False only when the write failed."""
        try:
            await asyncio.to_thread(self.store.delete, doc_id)
        except StoreWriteError as e:
            logger.error(f"Deleting document {doc_id} failed: {e}")
            return False
        return True

    def status(self) -> IngestionStatus:
        try:
            count = self.store.stats().count
        except RetrievalError as e:
            logger.error(f"Reading ingestion status failed: {e}")
            return IngestionStatus(
                total_documents=0,
                last_ingestion=None,
                is_healthy=False,
                state=self.state,
            )

        return IngestionStatus(
            total_documents=count,
            last_ingestion=self.last_ingestion,
            is_healthy=count > 0,
            state=self.state,
        )
