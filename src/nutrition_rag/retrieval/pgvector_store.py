"""
pgvector-based external vector store.

WHY PGVECTOR:
- POSTGRES: Battle-tested, ACID compliant, your team already knows it
- HYBRID SEARCH: Combine vector similarity with metadata filters in SQL
- HNSW INDEX: Fast approximate nearest neighbor search
- NO VENDOR LOCK: Open source, runs anywhere

Metadata is stored as JSONB so the typed filters compile to containment
(Equals) and key-existence (In) operators backed by a GIN index.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Sequence

import numpy as np

from nutrition_rag.core.errors import BackendUnavailable, StoreReadError, StoreWriteError
from nutrition_rag.core.protocols import ScoredDocument, StoreStats
from nutrition_rag.retrieval.document import Document, Metadata
from nutrition_rag.retrieval.filters import Equals, In
from nutrition_rag.retrieval.store import BackendKind, VectorStoreConfig, prepare_vector

if TYPE_CHECKING:
    from nutrition_rag.retrieval.filters import Filter

# Optional at runtime: without the driver the selection chain moves on to
# the file-backed store.
try:
    import psycopg
    from pgvector.psycopg import register_vector
    from psycopg.types.json import Jsonb

    PGVECTOR_AVAILABLE = True
except ImportError:
    PGVECTOR_AVAILABLE = False

logger = logging.getLogger(__name__)


def _json_value(value: Any) -> Any:
    """Enum members are stored by value in JSONB."""
    return getattr(value, "value", value)


def compile_filter(filter: Filter | None) -> tuple[list[str], list[Any]]:
    """
    Translate a typed Filter into SQL conditions and parameters.

    Field names come from the validated metadata schema, so inlining them
    as JSON keys is safe.
    """
    conditions: list[str] = []
    params: list[Any] = []
    if not filter:
        return conditions, params

    for clause in filter.clauses:
        if isinstance(clause, Equals):
            conditions.append("metadata @> %s")
            params.append(Jsonb({clause.field: _json_value(clause.value)}))
        elif isinstance(clause, In):
            conditions.append(f"metadata -> '{clause.field}' ?| %s::text[]")
            params.append(sorted(str(_json_value(v)) for v in clause.values))
    return conditions, params


class PgVectorStore:
    """
    PostgreSQL vector store using pgvector.

    Holds a single connection; calls arrive from worker threads, so every
    round trip is serialized on a lock.
    """

    kind = BackendKind.EXTERNAL.value

    def __init__(self, config: VectorStoreConfig):
        self.config = config
        self.dimensions = config.embedding_dim
        self.collection_name = config.table_name
        self._conn = None
        self._lock = threading.Lock()

    def open(self) -> None:
        """Connect and ensure the schema exists. Raises BackendUnavailable."""
        if not PGVECTOR_AVAILABLE:
            raise BackendUnavailable(
                self.kind,
                "pgvector not available. Install with: pip install pgvector psycopg[binary]",
            )
        if not self.config.connection_string:
            raise BackendUnavailable(self.kind, "DATABASE_URL not configured")

        try:
            self.connect()
            self.create_schema()
        except psycopg.Error as e:
            self.close()
            raise BackendUnavailable(self.kind, str(e)) from e

        logger.info(f"Connected to pgvector table {self.config.table_name}")

    def connect(self) -> None:
        """Establish database connection."""
        self._conn = psycopg.connect(
            self.config.connection_string, autocommit=True, connect_timeout=5
        )
        self._conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
        register_vector(self._conn)

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def create_schema(self) -> None:
        """Create the documents table and indexes."""
        table = self.config.table_name

        self._conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                content TEXT NOT NULL,
                metadata JSONB NOT NULL,
                embedding vector({self.dimensions}) NOT NULL
            )
        """
        )

        # Create vector index for fast similarity search
        if self.config.index_type == "ivfflat":
            index_sql = "USING ivfflat (embedding vector_cosine_ops) WITH (lists = 100)"
        else:
            index_sql = "USING hnsw (embedding vector_cosine_ops) WITH (m = 16, ef_construction = 64)"
        self._conn.execute(
            f"CREATE INDEX IF NOT EXISTS {table}_embedding_idx ON {table} {index_sql}"
        )

        # Create GIN index for metadata filtering
        self._conn.execute(
            f"""
            CREATE INDEX IF NOT EXISTS {table}_metadata_idx
            ON {table}
            USING GIN (metadata)
        """
        )

    def _require_conn(self):
        if self._conn is None:
            raise BackendUnavailable(self.kind, "store is not open")
        return self._conn

    def _upsert_sql(self) -> str:
        return f"""
            INSERT INTO {self.config.table_name} (id, content, metadata, embedding)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (id) DO UPDATE SET
                content = EXCLUDED.content,
                metadata = EXCLUDED.metadata,
                embedding = EXCLUDED.embedding
        """

    def add(self, doc: Document, vector: np.ndarray) -> None:
        """Insert or fully replace a document."""
        self.add_batch([doc], [vector])

    def add_batch(self, docs: Sequence[Document], vectors: Sequence[np.ndarray]) -> None:
        """Upsert a batch in a single transaction."""
        if len(docs) != len(vectors):
            raise ValueError(f"Got {len(docs)} documents but {len(vectors)} vectors")
        if not docs:
            return

        rows = [
            (doc.id, doc.content, Jsonb(doc.metadata.to_dict()), prepare_vector(vec, self.dimensions))
            for doc, vec in zip(docs, vectors)
        ]

        with self._lock:
            conn = self._require_conn()
            try:
                with conn.transaction():
                    with conn.cursor() as cur:
                        cur.executemany(self._upsert_sql(), rows)
            except psycopg.Error as e:
                raise StoreWriteError(f"Upserting {len(rows)} documents failed: {e}") from e

    def search(
        self,
        query_vector: np.ndarray,
        top_k: int = 5,
        filter: Filter | None = None,
        min_similarity: float = 0.0,
    ) -> list[ScoredDocument]:
        """Search for similar documents."""
        if top_k <= 0:
            return []

        query = prepare_vector(query_vector, self.dimensions)
        conditions, params = compile_filter(filter)
        # Cosine distance to a zero vector is NaN, which PostgreSQL sorts above every number
        conditions.append("vector_norm(embedding) > 0")
        conditions.append("1 - (embedding <=> %s) >= %s")
        params.extend([query, min_similarity])

        sql = f"""
            SELECT id, content, metadata,
                   1 - (embedding <=> %s) AS similarity
            FROM {self.config.table_name}
            WHERE {" AND ".join(conditions)}
            ORDER BY similarity DESC, id ASC
            LIMIT %s
        """

        with self._lock:
            conn = self._require_conn()
            # A zero query matches nothing
            if not np.any(query):
                return []
            try:
                rows = conn.execute(sql, [query, *params, top_k]).fetchall()
            except psycopg.Error as e:
                raise StoreReadError(f"pgvector search failed: {e}") from e

        # Convert distance to similarity already done in SQL
        return [
            ScoredDocument(
                document=Document(id=row[0], content=row[1], metadata=Metadata.from_dict(row[2])),
                similarity=float(row[3]),
            )
            for row in rows
        ]

    def delete(self, doc_id: str) -> bool:
        with self._lock:
            conn = self._require_conn()
            try:
                cur = conn.execute(
                    f"DELETE FROM {self.config.table_name} WHERE id = %s", (doc_id,)
                )
            except psycopg.Error as e:
                raise StoreWriteError(f"Deleting {doc_id} failed: {e}") from e
        return cur.rowcount > 0

    def clear(self) -> None:
        with self._lock:
            conn = self._require_conn()
            try:
                conn.execute(f"TRUNCATE {self.config.table_name}")
            except psycopg.Error as e:
                raise StoreWriteError(f"Clearing {self.config.table_name} failed: {e}") from e
        logger.info(f"Cleared pgvector table {self.config.table_name}")

    def stats(self) -> StoreStats:
        with self._lock:
            conn = self._require_conn()
            try:
                count = conn.execute(f"SELECT COUNT(*) FROM {self.config.table_name}").fetchone()[0]
            except psycopg.Error as e:
                raise StoreReadError(f"Counting documents failed: {e}") from e
        return StoreStats(count=int(count), backend=self.kind, collection_name=self.collection_name)
