"""Centralized configuration for legal-search using Pydantic Settings."""

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObservabilityCollectorConfig(BaseModel):
    """Configuration for OTLP trace, metric and log export."""

    model_config = {"extra": "forbid"}

    enabled: Annotated[bool, Field(description="Enable OTLP export to an external collector")] = False

    otlp_protocol: Annotated[Literal["http", "grpc"], Field(description="OTLP transport protocol")] = "grpc"

    collector_endpoint: Annotated[
        str,
        Field(
            description="OTLP collector endpoint (HTTP uses /v1/traces)",
            examples=["http://localhost:4317", "http://localhost:4318/v1/traces"],
        ),
    ] = "http://localhost:4317"

    headers: Annotated[dict[str, str], Field(description="Optional headers to include with OTLP requests")] = Field(
        default_factory=dict
    )

    timeout_seconds: Annotated[int, Field(ge=1, le=60, description="OTLP exporter timeout in seconds")] = 10

    grpc_insecure: Annotated[bool, Field(description="Disable TLS for gRPC exporters")] = True

    resource_attributes: Annotated[
        dict[str, str], Field(description="Extra OpenTelemetry resource attributes")
    ] = Field(default_factory=dict)


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Every field can be overridden with a ``LEGAL_SEARCH_`` prefixed variable,
    e.g. ``LEGAL_SEARCH_INDEX_BACKEND=sqlite``.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEGAL_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Index store
    index_backend: Literal["memory", "sqlite"] = Field(default="memory", description="Index store backend")
    index_path: Path = Field(default=Path("search-index/index.db"), description="SQLite index database path")

    # Enrichment
    keyword_count: int = Field(default=10, ge=1, description="Keywords kept per indexed document")
    summary_sentences: int = Field(default=3, ge=1, description="Sentences used for extractive summaries")
    summary_max_chars: int = Field(default=200, ge=20, description="Maximum summary length in characters")
    max_content_chars: int = Field(default=20000, ge=100, description="Stored content is truncated to this length")

    # Query
    default_page_size: int = Field(default=20, ge=1, description="Default page size for search results")
    max_page_size: int = Field(default=100, ge=1, description="Upper bound for requested page sizes")
    suggestion_limit: int = Field(default=10, ge=1, description="Default number of search suggestions")
    title_boost: float = Field(default=2.0, ge=0.0, description="Relevance weight for title terms")
    tag_boost: float = Field(default=1.6, ge=0.0, description="Relevance weight for tag terms")
    cjk_char_weight: float = Field(
        default=0.3, ge=0.0, description="Relevance weight for single CJK characters inside longer words"
    )

    # Indexing concurrency
    reindex_concurrency: int = Field(default=4, ge=1, description="Concurrent indexing calls during reindex")
    indexing_workers: int = Field(default=2, ge=1, description="Workers consuming the indexing queue")
    indexing_queue_size: int = Field(default=256, ge=1, description="Pending indexing jobs before backpressure")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    observability: ObservabilityCollectorConfig = Field(default_factory=ObservabilityCollectorConfig)

    @model_validator(mode="after")
    def _check_page_sizes(self) -> "Settings":
        if self.max_page_size < self.default_page_size:
            raise ValueError(
                f"max_page_size ({self.max_page_size}) must be >= default_page_size ({self.default_page_size})"
            )
        return self

    def is_persistent(self) -> bool:
        """Return True when the configured backend survives process restarts."""
        return self.index_backend == "sqlite"
