"""
Observability Module - OpenTelemetry tracing for retrieval and ingestion.

USAGE:
------
# At application startup:
from nutrition_rag.observability import init_tracing

init_tracing()  # No-op unless TRACING_ENABLED=true

# In code that needs tracing:
from nutrition_rag.observability import get_tracer

tracer = get_tracer()
with tracer.start_span("my_operation", attributes={"key": "value"}) as span:
    # ... do work ...
    span.set_attribute("result_count", 3)

# An exception escaping the block marks the span failed and propagates.
"""

from __future__ import annotations

import logging

from nutrition_rag.observability.attributes import (
    CONTEXT_DOCUMENT_COUNT,
    CONTEXT_MAX_TOKENS,
    CONTEXT_SEARCH_COUNT,
    CONTEXT_TOKENS_USED,
    CONTEXT_TRUNCATED,
    INGESTION_DOCUMENT_COUNT,
    INGESTION_ERROR_COUNT,
    INGESTION_SOURCE,
    INGESTION_STATE,
    ERROR_BACKEND,
    ERROR_KIND,
    RETRIEVAL_LATENCY_MS,
    RETRIEVAL_RESULT_COUNT,
    ingestion_attributes,
    error_attributes,
    search_attributes,
)
from nutrition_rag.config import (
    TracingConfig,
    get_tracing_config,
    reset_tracing_config,
)
from nutrition_rag.observability.tracer import (
    NoOpSpan,
    NoOpTracer,
    OTelTracer,
    SpanProtocol,
    TracerProtocol,
    get_tracer,
    reset_tracer,
)

logger = logging.getLogger(__name__)

_tracing_initialized = False


def init_tracing(config: TracingConfig | None = None) -> bool:
    """
    Initialize OpenTelemetry tracing.

    This should be called once at application startup. Exports to the
    configured OTLP endpoint, or to a local Phoenix app when none is set.

    Args:
        config: Optional config (uses env vars if not provided)

    Returns:
        True if tracing was initialized, False if disabled or failed
    """
    global _tracing_initialized
    if _tracing_initialized:
        return True

    config = config or get_tracing_config()

    if not config.enabled:
        logger.debug("Tracing disabled")
        return False

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        if config.collector_endpoint:
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
            exporter = OTLPSpanExporter(endpoint=config.collector_endpoint)
            logger.info(f"Tracing exporting to: {config.collector_endpoint}")
        else:
            import phoenix as px
            session = px.launch_app()
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
            exporter = OTLPSpanExporter(endpoint=f"{session.url.rstrip('/')}/v1/traces")
            logger.info(f"Phoenix UI available at: {session.url}")

        provider = TracerProvider(resource=Resource.create({"service.name": config.service_name}))
        provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)

        from nutrition_rag.observability.instrumentation import register_instrumentors
        register_instrumentors()

        reset_tracer()
        _tracing_initialized = True
        return True

    except ImportError as e:
        logger.warning(f"Tracing dependencies not installed, tracing disabled: {e}")
        return False
    except Exception as e:
        logger.error(f"Failed to initialize tracing: {e}")
        return False


def shutdown_tracing() -> None:
    """Flush spans and release exporter resources."""
    global _tracing_initialized

    if not _tracing_initialized:
        return

    try:
        from opentelemetry import trace
        provider = trace.get_tracer_provider()
        if hasattr(provider, "shutdown"):
            provider.shutdown()
    except Exception as e:
        logger.warning(f"Error shutting down tracing: {e}")

    reset_tracer()
    reset_tracing_config()
    _tracing_initialized = False


__all__ = [
    # Initialization
    "init_tracing",
    "shutdown_tracing",
    # Config
    "TracingConfig",
    "get_tracing_config",
    "reset_tracing_config",
    # Tracer
    "TracerProtocol",
    "SpanProtocol",
    "NoOpTracer",
    "NoOpSpan",
    "OTelTracer",
    "get_tracer",
    "reset_tracer",
    # Attributes
    "RETRIEVAL_RESULT_COUNT",
    "RETRIEVAL_LATENCY_MS",
    "CONTEXT_SEARCH_COUNT",
    "CONTEXT_DOCUMENT_COUNT",
    "CONTEXT_MAX_TOKENS",
    "CONTEXT_TOKENS_USED",
    "CONTEXT_TRUNCATED",
    "INGESTION_SOURCE",
    "INGESTION_DOCUMENT_COUNT",
    "INGESTION_ERROR_COUNT",
    "INGESTION_STATE",
    "ERROR_KIND",
    "ERROR_BACKEND",
    # Helpers
    "search_attributes",
    "ingestion_attributes",
    "error_attributes",
]
