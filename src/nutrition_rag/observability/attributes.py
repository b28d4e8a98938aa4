"""
Span attribute keys.

Follows OpenTelemetry naming style with custom `retrieval.*` and
`ingestion.*` namespaces.
"""

from nutrition_rag.core.errors import BackendUnavailable

# ---------------------------------------------------------------------------
# RETRIEVAL NAMESPACE
# ---------------------------------------------------------------------------

RETRIEVAL_QUERY = "retrieval.query"  # only when content capture is enabled
RETRIEVAL_TOP_K = "retrieval.top_k"
RETRIEVAL_MIN_SIMILARITY = "retrieval.min_similarity"
RETRIEVAL_FILTER = "retrieval.filter"
RETRIEVAL_RESULT_COUNT = "retrieval.result_count"
RETRIEVAL_LATENCY_MS = "retrieval.latency_ms"
RETRIEVAL_BACKEND = "retrieval.backend"
RETRIEVAL_EMBEDDING_KIND = "retrieval.embedding_kind"  # "remote", "local"

# Context assembly
CONTEXT_SEARCH_COUNT = "retrieval.context.search_count"
CONTEXT_DOCUMENT_COUNT = "retrieval.context.document_count"
CONTEXT_MAX_TOKENS = "retrieval.context.max_tokens"
CONTEXT_TOKENS_USED = "retrieval.context.tokens_used"
CONTEXT_TRUNCATED = "retrieval.context.truncated"  # bool


# ---------------------------------------------------------------------------
# INGESTION NAMESPACE
# ---------------------------------------------------------------------------

INGESTION_SOURCE = "ingestion.source"  # "facts", "catalog", ...
INGESTION_DOCUMENT_COUNT = "ingestion.document_count"
INGESTION_ERROR_COUNT = "ingestion.error_count"
INGESTION_STATE = "ingestion.state"


# ---------------------------------------------------------------------------
# FAILURES
# ---------------------------------------------------------------------------

ERROR_KIND = "error.type"  # engine error class, e.g. "StoreReadError"
ERROR_BACKEND = "error.backend"  # set for BackendUnavailable


# ---------------------------------------------------------------------------
# HELPER FUNCTIONS
# ---------------------------------------------------------------------------


def search_attributes(
    top_k: int,
    min_similarity: float,
    backend: str,
    embedding_kind: str,
    filter_repr: str | None = None,
    query: str | None = None,
) -> dict:
    """Create attributes dict for a similarity search span."""
    attrs = {
        RETRIEVAL_TOP_K: top_k,
        RETRIEVAL_MIN_SIMILARITY: min_similarity,
        RETRIEVAL_BACKEND: backend,
        RETRIEVAL_EMBEDDING_KIND: embedding_kind,
    }
    if filter_repr:
        attrs[RETRIEVAL_FILTER] = filter_repr
    if query is not None:
        attrs[RETRIEVAL_QUERY] = query
    return attrs


def ingestion_attributes(
    source: str,
    document_count: int | None = None,
) -> dict:
    """Create attributes dict for an ingestion span."""
    attrs: dict = {INGESTION_SOURCE: source}
    if document_count is not None:
        attrs[INGESTION_DOCUMENT_COUNT] = document_count
    return attrs


def error_attributes(exc: BaseException) -> dict:
    """Create attributes dict describing a failed span."""
    attrs: dict = {ERROR_KIND: type(exc).__name__}
    if isinstance(exc, BackendUnavailable):
        attrs[ERROR_BACKEND] = exc.backend
    return attrs
