"""Structured JSON logging correlated with the active search operation.

Legal documents and free-text queries routinely carry client names, so log
records never embed full document bodies: long string extras are clipped and
credential-like keys are masked.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
import logging
from pathlib import Path
import sys
from typing import IO, Any

from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter as GrpcOTLPLogExporter
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter as HttpOTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource
import orjson

from legal_search.config import ObservabilityCollectorConfig
from legal_search.observability.context import get_trace_context
from legal_search.observability.otlp import build_exporter


_STANDARD_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}

PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per record with trace and operation correlation."""

    REDACT_KEYS = frozenset({"password", "token", "api_key", "secret", "authorization"})
    MAX_MESSAGE_LEN = 2000
    MAX_FIELD_LEN = 500

    def format(self, record: logging.LogRecord) -> str:
        entry = self._base_fields(record)
        entry.update(self._context_fields())
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(self._extra_fields(record))
        return orjson.dumps(entry, default=self._json_default).decode("utf-8")

    def _base_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        message = record.getMessage()
        if len(message) > self.MAX_MESSAGE_LEN:
            message = message[: self.MAX_MESSAGE_LEN] + "..."
        fields: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "message": message,
            "logger": record.name,
        }
        if "." in record.name:
            fields["component"] = record.name.rsplit(".", 1)[-1]
        return fields

    @staticmethod
    def _context_fields() -> dict[str, Any]:
        ctx = get_trace_context()
        fields = {"trace_id": ctx.get("trace_id", ""), "span_id": ctx.get("span_id", "")}
        if operation := ctx.get("operation"):
            fields["operation"] = operation
        return fields

    def _extra_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        return {
            key: self._scrub(key, value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_")
        }

    def _scrub(self, key: str, value: Any) -> Any:
        if key.lower() in self.REDACT_KEYS:
            return "[REDACTED]"
        if isinstance(value, str) and len(value) > self.MAX_FIELD_LEN:
            return value[: self.MAX_FIELD_LEN] + "..."
        return value

    @staticmethod
    def _json_default(value: Any) -> Any:
        if isinstance(value, (set, frozenset)):
            try:
                return sorted(value)
            except TypeError:
                return list(value)
        if isinstance(value, (bytes, bytearray)):
            return value.decode("utf-8", errors="replace")
        if isinstance(value, (Path, Exception)):
            return str(value)
        return repr(value)


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    *,
    logger_levels: Mapping[str, str] | None = None,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """Replace the root handlers with one stream handler and return it.

    Args:
        level: Root log level name, case-insensitive.
        json_output: Emit ``JsonFormatter`` records instead of plain text.
        logger_levels: Per-logger overrides, e.g. ``{"legal_search.search": "debug"}``.
        stream: Destination stream; defaults to stdout.
    """
    root = logging.getLogger()
    root.setLevel(_resolve_level(level))
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(PLAIN_FORMAT))
    root.addHandler(handler)

    for logger_name, logger_level in (logger_levels or {}).items():
        logging.getLogger(logger_name).setLevel(_resolve_level(logger_level))
    return handler


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


_log_pipeline: dict[str, Any] = {"provider": None, "handler": None}


def init_log_exporter(
    service_name: str = "legal-search",
    resource_attributes: Mapping[str, str] | None = None,
) -> LoggerProvider:
    """Install a global OpenTelemetry ``LoggerProvider`` for this process."""
    provider = LoggerProvider(resource=Resource.create({"service.name": service_name, **(resource_attributes or {})}))
    set_logger_provider(provider)
    _log_pipeline["provider"] = provider
    return provider


def configure_log_exporter(
    config: ObservabilityCollectorConfig | None,
    provider: LoggerProvider | None = None,
) -> bool:
    """Bridge stdlib records to the OTLP collector; True when a handler was added."""
    if not config or not config.enabled or _log_pipeline["handler"] is not None:
        return False

    active = provider or _log_pipeline["provider"]
    if not isinstance(active, LoggerProvider):
        active = init_log_exporter(resource_attributes=config.resource_attributes)

    exporter = build_exporter(config, "logs", grpc_exporter=GrpcOTLPLogExporter, http_exporter=HttpOTLPLogExporter)
    active.add_log_record_processor(BatchLogRecordProcessor(exporter))
    handler = LoggingHandler(level=logging.INFO, logger_provider=active)
    logging.getLogger().addHandler(handler)
    _log_pipeline["handler"] = handler
    return True
