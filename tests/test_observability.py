"""
Unit Tests for Observability Module

Tests the OpenTelemetry integration with focus on:
1. Graceful degradation (NoOpTracer when disabled)
2. Configuration loading from environment
3. Span creation and attribute helpers
4. Failure bookkeeping on OTel spans (exported to an in-memory exporter)
"""

import pytest
from unittest.mock import patch

from nutrition_rag.observability import init_tracing
from nutrition_rag.config import TracingConfig, get_tracing_config, reset_tracing_config
from nutrition_rag.core.errors import BackendUnavailable, StoreReadError
from nutrition_rag.observability.tracer import (
    NoOpSpan,
    NoOpTracer,
    OTelTracer,
    get_tracer,
    reset_tracer,
)
from nutrition_rag.observability.attributes import (
    ERROR_BACKEND,
    ERROR_KIND,
    INGESTION_DOCUMENT_COUNT,
    INGESTION_SOURCE,
    RETRIEVAL_BACKEND,
    RETRIEVAL_FILTER,
    RETRIEVAL_QUERY,
    RETRIEVAL_TOP_K,
    error_attributes,
    ingestion_attributes,
    search_attributes,
)


# ---------------------------------------------------------------------------
# CONFIG TESTS
# ---------------------------------------------------------------------------


class TestTracingConfig:
    """Test configuration loading."""

    def setup_method(self):
        reset_tracing_config()

    def teardown_method(self):
        reset_tracing_config()

    def test_config_defaults(self):
        """Config should have sensible defaults when env vars not set."""
        with patch.dict("os.environ", {}, clear=True):
            config = TracingConfig.from_env()

            assert config.enabled is False
            assert config.service_name == "nutrition-rag"
            assert config.collector_endpoint is None
            # Queries can mention health conditions: off by default
            assert config.capture_content is False

    @pytest.mark.parametrize("value", ["true", "1", "yes", "TRUE"])
    def test_config_enabled_values(self, value):
        with patch.dict("os.environ", {"TRACING_ENABLED": value}):
            assert TracingConfig.from_env().enabled is True

    @pytest.mark.parametrize("value", ["false", "0", "no", ""])
    def test_config_disabled_values(self, value):
        with patch.dict("os.environ", {"TRACING_ENABLED": value}):
            assert TracingConfig.from_env().enabled is False

    def test_config_reads_endpoint_and_service(self):
        env = {
            "OTEL_EXPORTER_OTLP_ENDPOINT": "https://otel.example.com/v1/traces",
            "TRACING_SERVICE_NAME": "rag-worker",
            "TRACING_CAPTURE_CONTENT": "true",
        }
        with patch.dict("os.environ", env):
            config = TracingConfig.from_env()

        assert config.collector_endpoint == "https://otel.example.com/v1/traces"
        assert config.service_name == "rag-worker"
        assert config.capture_content is True

    def test_get_tracing_config_singleton(self):
        assert get_tracing_config() is get_tracing_config()


# ---------------------------------------------------------------------------
# NOOP TRACER TESTS
# ---------------------------------------------------------------------------


class TestNoOpTracer:
    """Test NoOpTracer for graceful degradation."""

    def test_noop_tracer_creates_spans(self):
        tracer = NoOpTracer()

        with tracer.start_span("test_span") as span:
            assert isinstance(span, NoOpSpan)

    def test_noop_span_accepts_everything(self):
        tracer = NoOpTracer()

        with tracer.start_span("op", attributes={"k": "v"}) as span:
            span.set_attribute("count", 3)
            span.set_attributes({"backend": "file", "latency_ms": 1.5})

    def test_noop_tracer_does_not_swallow_exceptions(self):
        tracer = NoOpTracer()

        with pytest.raises(ValueError):
            with tracer.start_span("failing_operation"):
                raise ValueError("Test error")


# ---------------------------------------------------------------------------
# OTEL TRACER TESTS
# ---------------------------------------------------------------------------


@pytest.fixture
def exporter():
    from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

    return InMemorySpanExporter()


@pytest.fixture
def tracer(exporter):
    """OTelTracer over a private provider; the global provider is untouched."""
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import SimpleSpanProcessor

    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return OTelTracer(provider.get_tracer("test"))


class TestOTelTracer:
    """Spans close themselves with ok or error status."""

    def test_successful_span_is_ok(self, tracer, exporter):
        from opentelemetry.trace import StatusCode

        with tracer.start_span("retrieval.search_similar", attributes={"retrieval.top_k": 5}) as span:
            span.set_attributes({"retrieval.result_count": 2})

        (finished,) = exporter.get_finished_spans()
        assert finished.status.status_code == StatusCode.OK
        assert finished.attributes["retrieval.top_k"] == 5
        assert finished.attributes["retrieval.result_count"] == 2

    def test_read_error_marks_span_failed(self, tracer, exporter):
        from opentelemetry.trace import StatusCode

        with pytest.raises(StoreReadError):
            with tracer.start_span("retrieval.search_similar"):
                raise StoreReadError("pgvector search failed")

        (finished,) = exporter.get_finished_spans()
        assert finished.status.status_code == StatusCode.ERROR
        assert finished.status.description == "pgvector search failed"
        assert finished.attributes[ERROR_KIND] == "StoreReadError"
        assert [event.name for event in finished.events] == ["exception"]

    def test_unavailable_backend_is_named(self, tracer, exporter):
        with pytest.raises(BackendUnavailable):
            with tracer.start_span("ingestion.source"):
                raise BackendUnavailable("external", "store is not open")

        (finished,) = exporter.get_finished_spans()
        assert finished.attributes[ERROR_BACKEND] == "external"


# ---------------------------------------------------------------------------
# GET_TRACER FACTORY TESTS
# ---------------------------------------------------------------------------


class TestGetTracer:
    """Test the get_tracer factory function."""

    def setup_method(self):
        reset_tracer()
        reset_tracing_config()

    def teardown_method(self):
        reset_tracer()
        reset_tracing_config()

    def test_get_tracer_returns_noop_when_disabled(self):
        with patch.dict("os.environ", {"TRACING_ENABLED": "false"}):
            assert isinstance(get_tracer(), NoOpTracer)

    def test_get_tracer_singleton(self):
        with patch.dict("os.environ", {"TRACING_ENABLED": "false"}):
            assert get_tracer() is get_tracer()

    def test_get_tracer_noop_before_init_even_when_enabled(self):
        """Without init_tracing() there is no SDK provider to export to."""
        with patch.dict("os.environ", {"TRACING_ENABLED": "true"}):
            tracer = get_tracer()

        assert isinstance(tracer, NoOpTracer)

    def test_init_tracing_disabled_returns_false(self):
        assert init_tracing(TracingConfig(enabled=False)) is False


# ---------------------------------------------------------------------------
# ATTRIBUTE HELPER TESTS
# ---------------------------------------------------------------------------


class TestAttributeHelpers:
    """Test attribute helper functions."""

    def test_search_attributes(self):
        attrs = search_attributes(
            top_k=5,
            min_similarity=0.5,
            backend="file",
            embedding_kind="local",
            filter_repr="Filter(Equals(field='type', value=...))",
        )

        assert attrs[RETRIEVAL_TOP_K] == 5
        assert attrs[RETRIEVAL_BACKEND] == "file"
        assert RETRIEVAL_FILTER in attrs
        assert RETRIEVAL_QUERY not in attrs

    def test_search_attributes_with_query(self):
        attrs = search_attributes(
            top_k=3, min_similarity=0.6, backend="in_process", embedding_kind="remote",
            query="protein for breakfast",
        )

        assert attrs[RETRIEVAL_QUERY] == "protein for breakfast"
        assert RETRIEVAL_FILTER not in attrs

    def test_error_attributes(self):
        assert error_attributes(StoreReadError("down")) == {ERROR_KIND: "StoreReadError"}

        attrs = error_attributes(BackendUnavailable("file", "read-only directory"))
        assert attrs == {ERROR_KIND: "BackendUnavailable", ERROR_BACKEND: "file"}

    def test_ingestion_attributes(self):
        assert ingestion_attributes("recipes") == {INGESTION_SOURCE: "recipes"}

        attrs = ingestion_attributes("facts", document_count=12)
        assert attrs[INGESTION_DOCUMENT_COUNT] == 12
