"""Domain layer: immutable value objects shared by the indexer and query engine."""

from legal_search.domain.model import (
    DateRange,
    EntityType,
    ExtractedEntity,
    FacetDateRange,
    IndexingOptions,
    ReindexSummary,
    SearchDocument,
    SearchFacets,
    SearchFilters,
    SearchPagination,
    SearchQuery,
    SearchResult,
    SearchSort,
    SizeRange,
)


__all__ = [
    "DateRange",
    "EntityType",
    "ExtractedEntity",
    "FacetDateRange",
    "IndexingOptions",
    "ReindexSummary",
    "SearchDocument",
    "SearchFacets",
    "SearchFilters",
    "SearchPagination",
    "SearchQuery",
    "SearchResult",
    "SearchSort",
    "SizeRange",
]
