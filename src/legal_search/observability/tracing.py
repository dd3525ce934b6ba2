"""OpenTelemetry spans around indexing, search and reindex operations."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as GrpcOTLPSpanExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter as HttpOTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, Tracer

from legal_search.config import ObservabilityCollectorConfig
from legal_search.observability.context import update_span_id
from legal_search.observability.otlp import build_exporter


logger = logging.getLogger(__name__)

_tracer_holder: dict[str, Tracer | None] = {"tracer": None}


def init_tracing(
    service_name: str = "legal-search",
    resource_attributes: Mapping[str, str] | None = None,
) -> TracerProvider:
    """Install a global ``TracerProvider`` and bind the module tracer to it."""
    provider = TracerProvider(resource=Resource.create({"service.name": service_name, **(resource_attributes or {})}))
    trace.set_tracer_provider(provider)
    _tracer_holder["tracer"] = provider.get_tracer("legal_search")
    logger.info("Tracing initialized for service: %s", service_name)
    return provider


def configure_trace_exporter(
    config: ObservabilityCollectorConfig | None,
    provider: TracerProvider | None = None,
) -> bool:
    """Attach a batching OTLP span exporter; True when one was attached."""
    if not config or not config.enabled:
        return False

    active = provider or trace.get_tracer_provider()
    if not isinstance(active, TracerProvider):
        active = init_tracing(resource_attributes=config.resource_attributes)

    try:
        exporter = build_exporter(
            config, "traces", grpc_exporter=GrpcOTLPSpanExporter, http_exporter=HttpOTLPSpanExporter
        )
    except Exception:
        logger.error("Failed to configure OTLP span exporter", exc_info=True)
        return False

    active.add_span_processor(BatchSpanProcessor(exporter))
    logger.info("OTLP trace export enabled (%s) to %s", config.otlp_protocol, config.collector_endpoint)
    return True


def get_tracer() -> Tracer:
    """Return the module tracer, bound lazily to whichever provider is global."""
    tracer = _tracer_holder["tracer"]
    if tracer is None:
        tracer = trace.get_tracer("legal_search")
        _tracer_holder["tracer"] = tracer
    return tracer


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: Mapping[str, Any] | None = None,
) -> Iterator[Span]:
    """Open a span named ``name`` and expose its id to JSON log records.

    Exceptions escaping the block mark the span as failed and are re-raised.
    """
    with get_tracer().start_as_current_span(
        name,
        kind=kind,
        attributes=dict(attributes or {}),
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        span_context = span.get_span_context()
        if span_context.is_valid:
            update_span_id(format(span_context.span_id, "016x"))
        try:
            yield span
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.record_exception(exc)
            raise
