"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from legal_search.observability.context import (
    get_trace_context,
    operation_context,
    set_trace_context,
    trace_context,
)
from legal_search.observability.logging import (
    JsonFormatter,
    configure_log_exporter,
    configure_logging,
    init_log_exporter,
)
from legal_search.observability.metrics import (
    ENRICHMENT_FAILURES,
    INDEX_DOC_COUNT,
    INDEX_OPERATIONS,
    INDEXING_QUEUE_DEPTH,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    MetricBridge,
    configure_metrics_exporter,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    track_latency,
)
from legal_search.observability.tracing import (
    configure_trace_exporter,
    create_span,
    get_tracer,
    init_tracing,
)


__all__ = [
    "ENRICHMENT_FAILURES",
    "INDEXING_QUEUE_DEPTH",
    "INDEX_DOC_COUNT",
    "INDEX_OPERATIONS",
    "SEARCH_LATENCY",
    "SEARCH_REQUESTS",
    "JsonFormatter",
    "MetricBridge",
    "configure_log_exporter",
    "configure_logging",
    "configure_metrics_exporter",
    "configure_trace_exporter",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_log_exporter",
    "init_metrics",
    "init_tracing",
    "operation_context",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
