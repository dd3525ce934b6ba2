"""Service layer - async orchestration of indexing and search."""

from .analytics import AnalyticsSnapshot, SearchAnalytics
from .indexing_queue import IndexingQueue
from .search_service import SearchIndexingService


__all__ = [
    "AnalyticsSnapshot",
    "IndexingQueue",
    "SearchAnalytics",
    "SearchIndexingService",
]
