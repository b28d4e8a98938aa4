"""
Vector store implementations and backend selection.

Pattern: Protocol -> implementations -> factory

This module contains:
1. VectorStoreConfig - Configuration dataclass
2. prepare_vector / rank_documents - boundary rules shared by every backend
3. InMemoryVectorStore - process memory (tests, last-resort fallback)
4. FileVectorStore - JSON file on disk (offline / sandboxed deployments)
5. open_vector_store() - the backend fallback chain

The external backend (PgVectorStore) lives in pgvector_store.py.

Every vector is validated against the store dimension and L2-normalized
before it is stored or used as a query, so cosine similarity reduces to a
dot product and does not depend on which embedding path produced a vector.

Scaling note: the in-process and file backends answer queries with a linear
scan, O(n*d) per query. That is fine for corpora in the low thousands of
documents; beyond that, use the external backend.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterable, Mapping, Sequence

import numpy as np

from nutrition_rag.core.errors import BackendUnavailable, DimensionMismatch, StoreWriteError
from nutrition_rag.core.protocols import ScoredDocument, StoreStats
from nutrition_rag.retrieval.document import Document, StoredDocument

if TYPE_CHECKING:
    from nutrition_rag.config import EngineConfig
    from nutrition_rag.core.protocols import VectorStore
    from nutrition_rag.retrieval.filters import Filter

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CONFIGURATION
# ---------------------------------------------------------------------------


class BackendKind(str, Enum):
    EXTERNAL = "external"
    FILE = "file"
    IN_PROCESS = "in_process"


# Attempted in this order; the first backend that opens wins.
FALLBACK_CHAIN: tuple[BackendKind, ...] = (
    BackendKind.EXTERNAL,
    BackendKind.FILE,
    BackendKind.IN_PROCESS,
)

_PINNED_BACKENDS = {
    "auto": BackendKind.EXTERNAL,
    "external": BackendKind.EXTERNAL,
    "file": BackendKind.FILE,
    "memory": BackendKind.IN_PROCESS,
}


@dataclass
class VectorStoreConfig:
    """Configuration for the vector store."""

    connection_string: str | None = None
    embedding_dim: int = 384
    table_name: str = "nutrition_knowledge"
    index_type: str = "hnsw"  # or "ivfflat"
    file_path: str = ".rag-store.json"
    backend: str = "auto"

    @classmethod
    def from_engine_config(cls, config: EngineConfig) -> VectorStoreConfig:
        return cls(
            connection_string=config.database_url,
            embedding_dim=config.embedding_dim,
            table_name=config.table_name,
            file_path=config.store_path,
            backend=config.backend,
        )


# ---------------------------------------------------------------------------
# SHARED BOUNDARY RULES
# ---------------------------------------------------------------------------


def prepare_vector(vector: np.ndarray | Sequence[float], dimensions: int) -> np.ndarray:
    """
    Validate and L2-normalize a vector for storage or querying.

    Raises DimensionMismatch when the length differs from the store
    dimension. The zero vector is returned unchanged (similarity 0 to
    everything).
    """
    arr = np.asarray(vector, dtype=np.float64)
    if arr.ndim != 1 or arr.shape[0] != dimensions:
        actual = arr.shape[0] if arr.ndim == 1 else int(arr.size)
        raise DimensionMismatch(dimensions, actual)
    if not np.all(np.isfinite(arr)):
        raise ValueError("Vector contains non-finite values")

    magnitude = np.linalg.norm(arr)
    if magnitude > 0:
        arr = arr / magnitude
    return arr.astype(np.float32)


def rank_documents(
    documents: Iterable[StoredDocument],
    query_vector: np.ndarray,
    top_k: int,
    filter: Filter | None,
    min_similarity: float,
) -> list[ScoredDocument]:
    """
    Linear-scan ranking over already-normalized vectors.

    Admits documents passing the filter with similarity >= min_similarity,
    sorts by similarity desc with id asc as tie-break, returns the first
    top_k.
    """
    if top_k <= 0:
        return []

    scored: list[tuple[float, StoredDocument]] = []
    for stored in documents:
        if filter and not filter.matches(stored.document.metadata):
            continue
        similarity = float(np.dot(query_vector, stored.embedding))
        if similarity >= min_similarity:
            scored.append((similarity, stored))

    scored.sort(key=lambda item: (-item[0], item[1].id))

    return [
        ScoredDocument(document=stored.document, similarity=similarity)
        for similarity, stored in scored[:top_k]
    ]


# ---------------------------------------------------------------------------
# IN-MEMORY STORE
# ---------------------------------------------------------------------------


class InMemoryVectorStore:
    """
    In-process vector store.

    The backing map is copy-on-write: writers serialize on a lock, build a
    new map and swap the reference; readers scan whichever immutable snapshot
    was current when they started, so a scan never observes a half-applied
    write.
    """

    kind = BackendKind.IN_PROCESS.value
    collection_name = "in-memory-nutrition-knowledge"

    def __init__(self, dimensions: int = 384):
        self.dimensions = dimensions
        self._documents: Mapping[str, StoredDocument] = MappingProxyType({})
        self._write_lock = threading.Lock()

    def open(self) -> None:
        logger.info(f"In-memory vector store ready with {len(self._documents)} documents")

    def close(self) -> None:
        """No-op for in-memory store."""
        pass

    # -- copy-on-write plumbing ---------------------------------------------

    def _snapshot(self) -> Mapping[str, StoredDocument]:
        return self._documents

    def _commit(self, documents: dict[str, StoredDocument]) -> None:
        """Publish a new map. Subclasses persist before publishing."""
        self._documents = MappingProxyType(documents)

    # -- writes ---------------------------------------------------------------

    def add(self, doc: Document, vector: np.ndarray) -> None:
        """Insert or fully replace a document."""
        self.add_batch([doc], [vector])

    def add_batch(self, docs: Sequence[Document], vectors: Sequence[np.ndarray]) -> None:
        """Insert or replace several documents as one write."""
        if len(docs) != len(vectors):
            raise ValueError(f"Got {len(docs)} documents but {len(vectors)} vectors")
        if not docs:
            return

        # Validate everything before touching the map: a batch lands whole or not at all.
        prepared = [
            StoredDocument(document=doc, embedding=prepare_vector(vec, self.dimensions))
            for doc, vec in zip(docs, vectors)
        ]

        with self._write_lock:
            documents = dict(self._documents)
            for stored in prepared:
                documents[stored.id] = stored
            self._commit(documents)

        logger.debug(f"Stored {len(prepared)} documents in {self.kind} store")

    def delete(self, doc_id: str) -> bool:
        with self._write_lock:
            if doc_id not in self._documents:
                return False
            documents = dict(self._documents)
            del documents[doc_id]
            self._commit(documents)

        logger.debug(f"Deleted document from {self.kind} store: {doc_id}")
        return True

    def clear(self) -> None:
        with self._write_lock:
            self._commit({})
        logger.info(f"Cleared {self.kind} store")

    # -- reads ----------------------------------------------------------------

    def search(
        self,
        query_vector: np.ndarray,
        top_k: int = 5,
        filter: Filter | None = None,
        min_similarity: float = 0.0,
    ) -> list[ScoredDocument]:
        """Search using cosine similarity over a consistent snapshot."""
        query = prepare_vector(query_vector, self.dimensions)
        snapshot = self._snapshot()
        return rank_documents(snapshot.values(), query, top_k, filter, min_similarity)

    def get(self, doc_id: str) -> Document | None:
        stored = self._snapshot().get(doc_id)
        return stored.document if stored else None

    def stats(self) -> StoreStats:
        return StoreStats(
            count=len(self._snapshot()),
            backend=self.kind,
            collection_name=self.collection_name,
        )


# ---------------------------------------------------------------------------
# FILE-BACKED STORE
# ---------------------------------------------------------------------------


class FileVectorStore(InMemoryVectorStore):
    """
    In-process store persisted to a JSON file after every write.

    Writes go to a temporary file in the same directory and are moved into
    place with os.replace, so a crash mid-write leaves the previous file
    intact. The persistence format is internal and not a compatibility
    surface.
    """

    kind = BackendKind.FILE.value
    collection_name = "file-based-nutrition-knowledge"

    def __init__(self, path: str | Path = ".rag-store.json", dimensions: int = 384):
        super().__init__(dimensions)
        self.path = Path(path)

    def open(self) -> None:
        """Load existing documents. Raises BackendUnavailable if unusable."""
        directory = self.path.parent if str(self.path.parent) else Path(".")
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackendUnavailable(self.kind, f"cannot create {directory}: {e}") from e
        if not os.access(directory, os.W_OK):
            raise BackendUnavailable(self.kind, f"directory {directory} is not writable")

        documents: dict[str, StoredDocument] = {}
        if self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as f:
                    raw = json.load(f)
                for item in raw:
                    stored = StoredDocument.from_dict(item)
                    if stored.embedding.shape != (self.dimensions,):
                        raise DimensionMismatch(self.dimensions, stored.embedding.shape[0])
                    documents[stored.id] = stored
            except (OSError, ValueError, KeyError, TypeError) as e:
                raise BackendUnavailable(self.kind, f"cannot load {self.path}: {e}") from e

        self._documents = MappingProxyType(documents)
        logger.info(f"File-based store initialized from {self.path} with {len(documents)} documents")

    def _commit(self, documents: dict[str, StoredDocument]) -> None:
        self._persist(documents)
        super()._commit(documents)

    def _persist(self, documents: Mapping[str, StoredDocument]) -> None:
        payload = [stored.to_dict() for stored in documents.values()]
        directory = self.path.parent if str(self.path.parent) else Path(".")
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".rag-store-", suffix=".tmp", dir=directory)
        except OSError as e:
            raise StoreWriteError(f"Persisting to {self.path} failed: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                logger.debug(f"Could not remove temporary file {tmp_path}")
            raise StoreWriteError(f"Persisting to {self.path} failed: {e}") from e


# ---------------------------------------------------------------------------
# FACTORY / FALLBACK CHAIN
# ---------------------------------------------------------------------------


def build_backend(kind: BackendKind, config: VectorStoreConfig) -> VectorStore:
    """Construct (but do not open) a backend of the given kind."""
    if kind is BackendKind.EXTERNAL:
        from nutrition_rag.retrieval.pgvector_store import PgVectorStore

        return PgVectorStore(config)
    if kind is BackendKind.FILE:
        return FileVectorStore(config.file_path, config.embedding_dim)
    return InMemoryVectorStore(config.embedding_dim)


def backend_chain(config: VectorStoreConfig) -> tuple[BackendKind, ...]:
    """The backends to try, starting from the configured (or default) one."""
    start = _PINNED_BACKENDS.get(config.backend)
    if start is None:
        raise ValueError(f"Unknown vector backend '{config.backend}'")
    return FALLBACK_CHAIN[FALLBACK_CHAIN.index(start):]


def open_vector_store(config: VectorStoreConfig | None = None) -> VectorStore:
    """
    Bind the first backend that initializes, in External -> File -> In-process order.

    The choice is made once here and holds for the store's lifetime; nothing
    on the read/write path falls back afterwards. Skipped backends are logged.
    """
    config = config or VectorStoreConfig()

    for kind in backend_chain(config):
        store = build_backend(kind, config)
        try:
            store.open()
        except BackendUnavailable as e:
            logger.warning(f"Skipping {kind.value} vector store: {e.reason}")
            continue
        logger.info(f"Using {kind.value} vector store ({store.collection_name})")
        return store

    # Unreachable: the in-process backend always opens.
    raise BackendUnavailable("all", "no vector store backend could be initialized")
