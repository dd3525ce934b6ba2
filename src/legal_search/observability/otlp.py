"""OTLP exporter construction shared by the trace, metric and log pipelines."""

from __future__ import annotations

from typing import Any, Literal

from legal_search.config import ObservabilityCollectorConfig


Signal = Literal["traces", "metrics", "logs"]

_SIGNAL_PATHS = ("/v1/traces", "/v1/metrics", "/v1/logs")


def signal_endpoint(config: ObservabilityCollectorConfig, signal: Signal) -> str:
    """Return the collector endpoint for ``signal``.

    gRPC collectors serve every signal on one endpoint. OTLP/HTTP collectors
    use one path per signal, so any configured signal path is swapped for the
    requested one.
    """
    endpoint = config.collector_endpoint.rstrip("/")
    if config.otlp_protocol == "grpc":
        return endpoint
    for path in _SIGNAL_PATHS:
        if endpoint.endswith(path):
            endpoint = endpoint.removesuffix(path)
            break
    return f"{endpoint}/v1/{signal}"


def build_exporter(
    config: ObservabilityCollectorConfig,
    signal: Signal,
    *,
    grpc_exporter: type,
    http_exporter: type,
) -> Any:
    """Instantiate the gRPC or HTTP exporter class matching ``config``."""
    options: dict[str, Any] = {
        "endpoint": signal_endpoint(config, signal),
        "headers": dict(config.headers),
        "timeout": config.timeout_seconds,
    }
    if config.otlp_protocol == "grpc":
        return grpc_exporter(insecure=config.grpc_insecure, **options)
    return http_exporter(**options)
