"""Exception hierarchy for the search indexing and query engine."""

from __future__ import annotations

from typing import Any


class SearchEngineError(Exception):
    """Base class for all errors raised by legal_search."""


class IndexStoreError(SearchEngineError):
    """Raised when the index store cannot be read or written."""


class InvalidQueryError(SearchEngineError, ValueError):
    """Raised when a search request is malformed.

    Distinguishes a rejected request from a search that simply matched nothing.
    ``details`` carries the structured validation errors when available.
    """

    def __init__(self, message: str, *, details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class IndexingBackpressureError(SearchEngineError):
    """Raised when the indexing queue is full and cannot accept more work."""
