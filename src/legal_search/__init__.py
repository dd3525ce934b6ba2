"""Search indexing and query engine for legal case-management content."""

from legal_search.config import Settings
from legal_search.domain import IndexingOptions, SearchDocument, SearchQuery, SearchResult
from legal_search.errors import IndexingBackpressureError, IndexStoreError, InvalidQueryError, SearchEngineError
from legal_search.service_layer import SearchIndexingService


__version__ = "0.1.0"

__all__ = [
    "IndexStoreError",
    "IndexingBackpressureError",
    "IndexingOptions",
    "InvalidQueryError",
    "SearchDocument",
    "SearchEngineError",
    "SearchIndexingService",
    "SearchQuery",
    "SearchResult",
    "Settings",
]
