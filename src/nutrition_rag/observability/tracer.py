"""
Engine spans.

get_tracer() hands out an OTel-backed tracer once init_tracing() has
installed an SDK provider, and a NoOpTracer otherwise. Spans close
themselves: an exception escaping the body is recorded with its engine
error kind (and the failing backend, for BackendUnavailable), the span is
marked failed, and the exception propagates unchanged. Call sites only
set their own attributes.
"""

from __future__ import annotations

from contextlib import AbstractContextManager, contextmanager
from typing import Any, Iterator, Protocol

from nutrition_rag.config import get_tracing_config
from nutrition_rag.observability.attributes import error_attributes


class SpanProtocol(Protocol):
    def set_attribute(self, key: str, value: Any) -> None:
        ...

    def set_attributes(self, attributes: dict[str, Any]) -> None:
        ...


class TracerProtocol(Protocol):
    def start_span(
        self, name: str, attributes: dict[str, Any] | None = None
    ) -> AbstractContextManager[SpanProtocol]:
        ...


# ---------------------------------------------------------------------------
# NOOP (tracing disabled or not initialized)
# ---------------------------------------------------------------------------


class NoOpSpan:
    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_attributes(self, attributes: dict[str, Any]) -> None:
        pass


class NoOpTracer:
    @contextmanager
    def start_span(self, name: str, attributes: dict[str, Any] | None = None) -> Iterator[NoOpSpan]:
        yield NoOpSpan()


# ---------------------------------------------------------------------------
# OPENTELEMETRY
# ---------------------------------------------------------------------------


class OTelSpan:
    def __init__(self, span: Any):
        self._span = span

    def set_attribute(self, key: str, value: Any) -> None:
        self._span.set_attribute(key, value)

    def set_attributes(self, attributes: dict[str, Any]) -> None:
        self._span.set_attributes(attributes)


class OTelTracer:
    """Wraps an OTel tracer; failure bookkeeping happens here, not at call sites."""

    def __init__(self, tracer: Any):
        self._tracer = tracer

    @contextmanager
    def start_span(self, name: str, attributes: dict[str, Any] | None = None) -> Iterator[OTelSpan]:
        from opentelemetry.trace import Status, StatusCode

        with self._tracer.start_as_current_span(
            name,
            attributes=attributes,
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            try:
                yield OTelSpan(span)
            except Exception as e:
                failure = error_attributes(e)
                span.record_exception(e, attributes=failure)
                span.set_attributes(failure)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise
            span.set_status(Status(StatusCode.OK))


# ---------------------------------------------------------------------------
# FACTORY
# ---------------------------------------------------------------------------


_tracer: TracerProtocol | None = None


def get_tracer() -> TracerProtocol:
    """Return the process tracer, choosing OTel or no-op on first use."""
    global _tracer
    if _tracer is not None:
        return _tracer

    config = get_tracing_config()
    if not config.enabled:
        _tracer = NoOpTracer()
        return _tracer

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider
    except ImportError:
        _tracer = NoOpTracer()
        return _tracer

    provider = trace.get_tracer_provider()
    if not isinstance(provider, TracerProvider):
        # init_tracing() has not run yet
        _tracer = NoOpTracer()
        return _tracer

    _tracer = OTelTracer(provider.get_tracer("nutrition_rag"))
    return _tracer


def reset_tracer() -> None:
    """Forget the cached tracer (init_tracing and tests)."""
    global _tracer
    _tracer = None
