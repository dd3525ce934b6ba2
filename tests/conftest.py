"""Shared test fixtures and configuration."""

from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone
import os
from pathlib import Path
from typing import Any

import pytest


# Complete test environment that overrides every configurable default
TEST_ENV = {
    "LEGAL_SEARCH_INDEX_BACKEND": "memory",
    "LEGAL_SEARCH_LOG_LEVEL": "info",
    "LEGAL_SEARCH_LOG_JSON": "false",
    "LEGAL_SEARCH_DEFAULT_PAGE_SIZE": "20",
    "LEGAL_SEARCH_MAX_PAGE_SIZE": "100",
    "LEGAL_SEARCH_SUGGESTION_LIMIT": "10",
    "LEGAL_SEARCH_OBSERVABILITY__ENABLED": "false",
}


# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value

from legal_search.config import Settings
from legal_search.domain import EntityType, SearchDocument
from legal_search.search.sqlite_storage import SqliteIndexStore
from legal_search.search.storage import IndexStore, MemoryIndexStore


BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

DocumentFactory = Callable[..., SearchDocument]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset LEGAL_SEARCH_* variables to test defaults before each test."""
    for key in list(os.environ):
        if key.startswith("LEGAL_SEARCH_") and key not in TEST_ENV:
            monkeypatch.delenv(key, raising=False)
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def make_document() -> DocumentFactory:
    """Factory for projections; ``entity_id`` defaults to ``doc_id``."""

    def _make(
        doc_id: str,
        *,
        title: str = "",
        content: str = "",
        entity_type: EntityType = EntityType.DOCUMENT,
        entity_id: str | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        created_at: datetime | None = None,
        age_days: int = 0,
        language: str = "",
    ) -> SearchDocument:
        created = created_at or BASE_TIME - timedelta(days=age_days)
        return SearchDocument(
            id=doc_id,
            entity_id=entity_id or doc_id,
            entity_type=entity_type,
            title=title,
            content=content,
            tags=tags or [],
            metadata=metadata or {},
            language=language,
            created_at=created,
            updated_at=created,
        )

    return _make


@pytest.fixture
def chinese_corpus(make_document: DocumentFactory) -> list[SearchDocument]:
    """Three short Chinese titles: two contracts and one evidence guide."""
    return [
        make_document("d1", title="合同审查流程", tags=["contract"], age_days=3),
        make_document("d2", title="证据提交指南", tags=["evidence"], age_days=2),
        make_document("d3", title="合同模板", tags=["contract", "template"], age_days=1),
    ]


@pytest.fixture
def test_settings() -> Settings:
    """Memory-backed settings with explicit values for readability in tests."""
    return Settings(index_backend="memory", log_json=False)


@pytest.fixture(params=["memory", "sqlite"])
def index_store(request, tmp_path: Path) -> Iterator[IndexStore]:
    """Every store-level contract is exercised against both backends."""
    store: IndexStore
    if request.param == "sqlite":
        store = SqliteIndexStore(tmp_path / "index.db")
    else:
        store = MemoryIndexStore()
    yield store
    store.close()
