"""
Engine Configuration

Loads retrieval settings from environment variables. Every tunable the
engine uses (thresholds, budgets, batch sizes, backend locations) lives
here so call sites never hard-code them.

Environment Variables:
    OPENAI_API_KEY: Enables the remote embedding path (optional)
    EMBEDDING_MODEL: Remote embedding model (default: text-embedding-3-small)
    EMBEDDING_DIM: Vector dimension for every store (default: 384)
    EMBEDDING_MAX_CHARS: Text truncation before remote embedding (default: 512)
    EMBEDDING_TIMEOUT_S: Remote embedding timeout in seconds (default: 10)
    DATABASE_URL: PostgreSQL connection string for the external backend
    VECTOR_TABLE: Table used by the external backend (default: nutrition_knowledge)
    VECTOR_STORE_PATH: JSON file for the file-backed backend (default: .rag-store.json)
    VECTOR_BACKEND: auto | external | file | memory (default: auto)
    INGEST_BATCH_SIZE: Documents per embed/write batch (default: 50)
    INGEST_CATALOG_LIMIT: Max catalog records per run (default: 1000)
    INGEST_PLAN_LIMIT: Max meal plans per run (default: 50)

Tracing has its own TracingConfig below (TRACING_* variables).
"""

from __future__ import annotations

import os
from dataclasses import dataclass

BACKEND_CHOICES = ("auto", "external", "file", "memory")


def _env_int(key: str, default: int) -> int:
    value = os.environ.get(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer, got: {value}")


def _env_float(key: str, default: float) -> float:
    value = os.environ.get(key)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be a float, got: {value}")


def _env_bool(key: str, default: bool = False) -> bool:
    value = os.environ.get(key)
    if value is None or value == "":
        return default
    return value.lower() in ("true", "1", "yes")


@dataclass
class EngineConfig:
    """Configuration for the retrieval engine."""

    # Embeddings
    openai_api_key: str | None = None
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 384
    embedding_max_chars: int = 512
    embedding_timeout_s: float = 10.0

    # Vector store
    database_url: str | None = None
    table_name: str = "nutrition_knowledge"
    store_path: str = ".rag-store.json"
    backend: str = "auto"

    # Ingestion
    batch_size: int = 50
    catalog_limit: int = 1000
    plan_limit: int = 50

    # Search
    default_top_k: int = 5
    min_similarity_remote: float = 0.5
    min_similarity_local: float = 0.3

    # Context assembly
    general_top_k: int = 3
    general_min_similarity: float = 0.6
    goal_top_k: int = 2
    max_documents: int = 5
    default_max_tokens: int = 2000
    min_truncation_chars: int = 100

    def __post_init__(self):
        if self.backend not in BACKEND_CHOICES:
            raise ValueError(
                f"backend must be one of {', '.join(BACKEND_CHOICES)}, got: {self.backend}"
            )
        if self.embedding_dim <= 0:
            raise ValueError("embedding_dim must be positive")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load config from environment variables."""
        return cls(
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            embedding_model=os.environ.get("EMBEDDING_MODEL", "text-embedding-3-small"),
            embedding_dim=_env_int("EMBEDDING_DIM", 384),
            embedding_max_chars=_env_int("EMBEDDING_MAX_CHARS", 512),
            embedding_timeout_s=_env_float("EMBEDDING_TIMEOUT_S", 10.0),
            database_url=os.environ.get("DATABASE_URL") or None,
            table_name=os.environ.get("VECTOR_TABLE", "nutrition_knowledge"),
            store_path=os.environ.get("VECTOR_STORE_PATH", ".rag-store.json"),
            backend=os.environ.get("VECTOR_BACKEND", "auto").lower(),
            batch_size=_env_int("INGEST_BATCH_SIZE", 50),
            catalog_limit=_env_int("INGEST_CATALOG_LIMIT", 1000),
            plan_limit=_env_int("INGEST_PLAN_LIMIT", 50),
        )

    def default_min_similarity(self, embedding_kind: str) -> float:
        """Admission threshold when a caller does not pass one.

        The deterministic local embedding has weaker recall, so it gets
        the looser threshold.
        """
        if embedding_kind == "local":
            return self.min_similarity_local
        return self.min_similarity_remote


# Global config singleton
_config: EngineConfig | None = None


def get_config() -> EngineConfig:
    """Get the global engine config (lazy-loaded from env)."""
    global _config
    if _config is None:
        _config = EngineConfig.from_env()
    return _config


def reset_config() -> None:
    """Reset config (useful for testing)."""
    global _config
    _config = None


# ---------------------------------------------------------------------------
# TRACING
# ---------------------------------------------------------------------------


@dataclass
class TracingConfig:
    """Configuration for retrieval and ingestion spans.

    Environment Variables:
        TRACING_ENABLED: Export OpenTelemetry spans (default: false)
        TRACING_SERVICE_NAME: Service name on exported spans (default: nutrition-rag)
        OTEL_EXPORTER_OTLP_ENDPOINT: Remote OTLP endpoint (local Phoenix when empty)
        TRACING_CAPTURE_CONTENT: Attach raw query text to search spans (default: false)

    Queries can mention health goals or conditions, so content capture
    stays off unless explicitly enabled.
    """

    enabled: bool = False
    service_name: str = "nutrition-rag"
    collector_endpoint: str | None = None
    capture_content: bool = False

    @classmethod
    def from_env(cls) -> "TracingConfig":
        return cls(
            enabled=_env_bool("TRACING_ENABLED"),
            service_name=os.environ.get("TRACING_SERVICE_NAME") or "nutrition-rag",
            collector_endpoint=os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT") or None,
            capture_content=_env_bool("TRACING_CAPTURE_CONTENT"),
        )


_tracing_config: TracingConfig | None = None


def get_tracing_config() -> TracingConfig:
    global _tracing_config
    if _tracing_config is None:
        _tracing_config = TracingConfig.from_env()
    return _tracing_config


def reset_tracing_config() -> None:
    global _tracing_config
    _tracing_config = None
