"""Process-level wiring: observability first, then the search service."""

from __future__ import annotations

import logging

from legal_search.config import Settings
from legal_search.observability import (
    configure_log_exporter,
    configure_logging,
    configure_metrics_exporter,
    configure_trace_exporter,
    init_log_exporter,
    init_metrics,
    init_tracing,
)
from legal_search.search.storage_factory import has_search_index
from legal_search.service_layer import SearchIndexingService


logger = logging.getLogger(__name__)

SERVICE_NAME = "legal-search"


def configure_observability(settings: Settings) -> None:
    """Install logging and, when a collector is configured, OTLP exporters."""
    configure_logging(level=settings.log_level, json_output=settings.log_json)
    collector = settings.observability
    if not collector.enabled:
        return
    resource_attributes = dict(collector.resource_attributes)
    configure_metrics_exporter(collector, service_name=SERVICE_NAME)
    init_metrics(service_name=SERVICE_NAME, resource_attributes=resource_attributes)
    init_tracing(service_name=SERVICE_NAME, resource_attributes=resource_attributes)
    configure_trace_exporter(collector)
    init_log_exporter(service_name=SERVICE_NAME, resource_attributes=resource_attributes)
    configure_log_exporter(collector)


def build_search_service(settings: Settings | None = None) -> SearchIndexingService:
    """Configure observability and return a ready ``SearchIndexingService``."""
    settings = settings or Settings()
    configure_observability(settings)
    if settings.is_persistent() and has_search_index(settings.index_path):
        logger.info("Reusing existing index at %s", settings.index_path)
    service = SearchIndexingService(settings)
    logger.info(
        "Search service ready (backend=%s, documents=%d)",
        settings.index_backend,
        service.index.count(),
    )
    return service
