"""Engine metrics recorded in Prometheus and mirrored to OpenTelemetry.

Prometheus stays the source of truth for the scrape endpoint. Each
``MetricBridge`` forwards the same observation to an OTel instrument that is
created lazily, so importing this module never installs a meter provider.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
import logging
import time
from typing import Any

from opentelemetry import metrics as otel_metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter as GrpcOTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter as HttpOTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

from legal_search.config import ObservabilityCollectorConfig
from legal_search.observability.otlp import build_exporter


logger = logging.getLogger(__name__)

LabelKey = tuple[tuple[str, str], ...]

_meter_state: dict[str, Any] = {"provider": None, "meter": None, "reader": None}


def _install_provider(
    service_name: str,
    resource_attributes: Mapping[str, str] | None,
    readers: list[MetricReader],
) -> MeterProvider:
    provider = MeterProvider(
        resource=Resource.create({"service.name": service_name, **(resource_attributes or {})}),
        metric_readers=readers,
    )
    otel_metrics.set_meter_provider(provider)
    _meter_state["provider"] = provider
    _meter_state["meter"] = provider.get_meter("legal_search")
    return provider


def init_metrics(
    service_name: str = "legal-search",
    resource_attributes: Mapping[str, str] | None = None,
) -> MeterProvider:
    """Return the process meter provider, installing one without readers if needed."""
    provider = _meter_state["provider"]
    if isinstance(provider, MeterProvider):
        return provider
    return _install_provider(service_name, resource_attributes, [])


def configure_metrics_exporter(
    config: ObservabilityCollectorConfig | None,
    *,
    service_name: str = "legal-search",
) -> bool:
    """Install a provider that pushes metrics to the collector periodically.

    A provider's readers are fixed at construction, so this must run before
    :func:`init_metrics` for the export to take effect. Returns True when the
    reader was installed.
    """
    if not config or not config.enabled or _meter_state["reader"] is not None:
        return False
    try:
        exporter = build_exporter(
            config, "metrics", grpc_exporter=GrpcOTLPMetricExporter, http_exporter=HttpOTLPMetricExporter
        )
    except Exception:
        logger.error("Failed to configure OTLP metric exporter", exc_info=True)
        return False

    reader = PeriodicExportingMetricReader(exporter)
    _install_provider(service_name, config.resource_attributes, [reader])
    _meter_state["reader"] = reader
    logger.info("OTLP metric export enabled (%s) to %s", config.otlp_protocol, config.collector_endpoint)
    return True


def _meter() -> otel_metrics.Meter:
    if _meter_state["meter"] is None:
        init_metrics()
    return _meter_state["meter"]


@dataclass(frozen=True)
class BoundMetric:
    """A bridge with its label values fixed, mirroring ``prometheus_client`` children."""

    bridge: MetricBridge
    label_values: dict[str, str]

    def inc(self, amount: float = 1.0) -> None:
        self.bridge.record_increment(self.label_values, amount)

    def observe(self, value: float) -> None:
        self.bridge.record_observation(self.label_values, value)

    def set(self, value: float) -> None:
        self.bridge.record_level(self.label_values, value)


class MetricBridge:
    """Pair a Prometheus metric with the OTel instrument of the same name.

    ``otel_kind`` is one of ``counter``, ``histogram`` or ``gauge``. Gauges map
    to up-down counters, which only accept deltas, so the last value per label
    set is remembered.
    """

    _FACTORIES = {
        "counter": "create_counter",
        "histogram": "create_histogram",
        "gauge": "create_up_down_counter",
    }

    def __init__(
        self,
        prom_metric: Counter | Histogram | Gauge,
        *,
        otel_name: str,
        otel_description: str,
        otel_kind: str,
    ) -> None:
        self.prometheus_metric = prom_metric
        self.otel_name = otel_name
        self.otel_description = otel_description
        self.otel_kind = otel_kind
        self._instrument: Any = None
        self._levels: dict[LabelKey, float] = {}

    def labels(self, **label_values: str) -> BoundMetric:
        return BoundMetric(self, label_values)

    @property
    def instrument(self) -> Any:
        if self._instrument is None:
            factory = self._FACTORIES.get(self.otel_kind)
            if factory is None:
                raise ValueError(f"Unknown metric kind: {self.otel_kind!r}")
            self._instrument = getattr(_meter(), factory)(self.otel_name, description=self.otel_description)
        return self._instrument

    def _child(self, label_values: dict[str, str]) -> Any:
        if not label_values:
            return self.prometheus_metric
        return self.prometheus_metric.labels(**label_values)

    def record_increment(self, label_values: dict[str, str], amount: float) -> None:
        self._child(label_values).inc(amount)
        self.instrument.add(amount, label_values)

    def record_observation(self, label_values: dict[str, str], value: float) -> None:
        self._child(label_values).observe(value)
        self.instrument.record(value, label_values)

    def record_level(self, label_values: dict[str, str], value: float) -> None:
        self._child(label_values).set(value)
        key: LabelKey = tuple(sorted(label_values.items()))
        delta = value - self._levels.get(key, 0.0)
        self._levels[key] = value
        if delta:
            self.instrument.add(delta, label_values)


def _counter(name: str, description: str, labelnames: tuple[str, ...] = ()) -> MetricBridge:
    return MetricBridge(
        Counter(name, description, labelnames),
        otel_name=name,
        otel_description=description,
        otel_kind="counter",
    )


def _gauge(name: str, description: str) -> MetricBridge:
    return MetricBridge(Gauge(name, description), otel_name=name, otel_description=description, otel_kind="gauge")


SEARCH_LATENCY = MetricBridge(
    Histogram(
        "search_latency_seconds",
        "Search query latency",
        buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
    ),
    otel_name="search_latency_seconds",
    otel_description="Search query latency",
    otel_kind="histogram",
)
SEARCH_REQUESTS = _counter("search_requests_total", "Search requests by outcome", ("status",))
INDEX_OPERATIONS = _counter("index_operations_total", "Index writes by operation and outcome", ("operation", "status"))
ENRICHMENT_FAILURES = _counter(
    "enrichment_failures_total", "Enrichment stages that degraded to their default", ("stage",)
)
INDEX_DOC_COUNT = _gauge("index_document_count", "Documents currently indexed")
INDEXING_QUEUE_DEPTH = _gauge("indexing_queue_depth", "Jobs waiting in the indexing queue")


@contextmanager
def track_latency(histogram: MetricBridge, **label_values: str) -> Iterator[None]:
    """Observe the wall time of the block, including blocks that raise."""
    started = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**label_values).observe(time.perf_counter() - started)


def get_metrics() -> bytes:
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
