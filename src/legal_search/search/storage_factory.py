"""Storage factory for choosing between the memory and SQLite backends."""

import logging
from pathlib import Path

from legal_search.config import Settings
from legal_search.search.sqlite_storage import SqliteIndexStore
from legal_search.search.storage import IndexStore, MemoryIndexStore


logger = logging.getLogger(__name__)


def create_index_store(settings: Settings) -> IndexStore:
    """Create the index store named by ``settings.index_backend``."""
    if settings.is_persistent():
        logger.info("Using SQLite index store at %s", settings.index_path)
        return SqliteIndexStore(settings.index_path)
    logger.info("Using in-memory index store")
    return MemoryIndexStore()


def has_search_index(index_path: Path) -> bool:
    """Check whether a persisted index database exists at ``index_path``."""
    return index_path.expanduser().is_file()
