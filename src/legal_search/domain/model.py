"""Domain value objects for indexing and search.

Value objects are immutable pydantic models. Field names are snake_case in
Python and camelCase on the wire, so HTTP handlers can feed JSON request bodies
straight into ``model_validate``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


_VALUE_OBJECT_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class EntityType(str, Enum):
    """Kinds of source entities that can be projected into the index."""

    DOCUMENT = "document"
    TEMPLATE = "template"
    EVIDENCE = "evidence"
    CASE = "case"
    USER = "user"
    KNOWLEDGE_ARTICLE = "knowledge_article"


class SearchDocument(BaseModel):
    """Denormalized projection of a source entity; the unit of indexing.

    The index never owns the source entity. Exactly one ``SearchDocument`` exists
    per ``(entity_id, entity_type)``; re-indexing replaces the whole record.
    """

    model_config = _VALUE_OBJECT_CONFIG

    id: str = Field(min_length=1)
    entity_id: str = Field(min_length=1)
    entity_type: EntityType
    title: str = ""
    content: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    language: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        seen: set[str] = set()
        tags: list[str] = []
        for tag in value:
            normalized = tag.strip()
            if normalized and normalized not in seen:
                seen.add(normalized)
                tags.append(normalized)
        return tags

    @field_validator("created_at", "updated_at")
    @classmethod
    def _ensure_timezone(cls, value: datetime) -> datetime:
        return _aware(value)

    @property
    def index_key(self) -> tuple[str, str]:
        """Identity of the entry inside the index store."""
        return (self.entity_type.value, self.entity_id)

    @property
    def mime_type(self) -> str | None:
        value = self.metadata.get("mimeType")
        return str(value) if value else None

    @property
    def size(self) -> float | None:
        value = self.metadata.get("size")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)

    @property
    def created_by(self) -> str | None:
        value = self.metadata.get("createdBy")
        return str(value) if value else None


class IndexingOptions(BaseModel):
    """Toggles for the enrichment stages; every stage defaults to on."""

    model_config = _VALUE_OBJECT_CONFIG

    extract_keywords: bool = True
    generate_summary: bool = True
    analyze_sentiment: bool = True
    extract_entities: bool = True
    categorize_content: bool = True


class ExtractedEntity(BaseModel):
    """Pattern-detected entity with a ``[start, end)`` span into the content."""

    model_config = _VALUE_OBJECT_CONFIG

    type: Literal["email", "phone", "date", "amount", "article"]
    value: str
    confidence: float
    start: int
    end: int


class DateRange(BaseModel):
    model_config = _VALUE_OBJECT_CONFIG

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _ensure_timezone(cls, value: datetime) -> datetime:
        return _aware(value)

    @model_validator(mode="after")
    def _check_order(self) -> DateRange:
        if self.start > self.end:
            raise ValueError("date range start must not be after end")
        return self


class SizeRange(BaseModel):
    model_config = _VALUE_OBJECT_CONFIG

    min: float = Field(default=0, ge=0)
    max: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> SizeRange:
        if self.max is not None and self.min > self.max:
            raise ValueError("size range min must not exceed max")
        return self


class SearchFilters(BaseModel):
    """Structured filters; every set filter is an AND-ed predicate.

    An unset or empty filter places no constraint on the result set.
    """

    model_config = _VALUE_OBJECT_CONFIG

    entity_type: list[EntityType] | None = None
    tags: list[str] | None = None
    date_range: DateRange | None = None
    created_by: list[str] | None = None
    mime_type: list[str] | None = None
    size_range: SizeRange | None = None
    custom_filters: dict[str, Any] | None = None

    def is_empty(self) -> bool:
        return not any(
            (
                self.entity_type,
                self.tags,
                self.date_range,
                self.created_by,
                self.mime_type,
                self.size_range,
                self.custom_filters,
            )
        )


SortField = Literal["relevance", "date", "title", "size"]
SortOrder = Literal["asc", "desc"]


class SearchSort(BaseModel):
    model_config = _VALUE_OBJECT_CONFIG

    field: SortField = "relevance"
    order: SortOrder = "desc"


class SearchPagination(BaseModel):
    model_config = _VALUE_OBJECT_CONFIG

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)


class SearchQuery(BaseModel):
    """Search request: free text plus optional filters, sort and pagination."""

    model_config = _VALUE_OBJECT_CONFIG

    query: str = ""
    filters: SearchFilters = Field(default_factory=SearchFilters)
    sort_by: SearchSort | None = None
    pagination: SearchPagination | None = None

    @field_validator("query", mode="before")
    @classmethod
    def _null_query(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("filters", mode="before")
    @classmethod
    def _null_filters(cls, value: Any) -> Any:
        return SearchFilters() if value is None else value


class FacetDateRange(BaseModel):
    model_config = _VALUE_OBJECT_CONFIG

    min: datetime | None = None
    max: datetime | None = None


class SearchFacets(BaseModel):
    """Count breakdowns of the filtered (pre-pagination) candidate set."""

    model_config = _VALUE_OBJECT_CONFIG

    entity_type: dict[str, int] = Field(default_factory=dict)
    tags: dict[str, int] = Field(default_factory=dict)
    mime_type: dict[str, int] = Field(default_factory=dict)
    date_range: FacetDateRange = Field(default_factory=FacetDateRange)


class SearchResult(BaseModel):
    model_config = _VALUE_OBJECT_CONFIG

    documents: list[SearchDocument]
    total: int
    page: int
    limit: int
    facets: SearchFacets
    query: str
    processing_time: float


class ReindexSummary(BaseModel):
    """Aggregate outcome of a full reindex pass."""

    model_config = _VALUE_OBJECT_CONFIG

    total: int = 0
    indexed: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)
