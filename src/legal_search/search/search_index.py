"""Search index: the store plus the corpus statistics derived from it.

Every write goes through ``SearchIndex`` so the index store and the term
statistics change together under one lock. Reads take a store snapshot and
never take the lock.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging
import threading

from legal_search.domain import EntityType
from legal_search.observability.metrics import INDEX_DOC_COUNT
from legal_search.search.stats import TermStatistics
from legal_search.search.storage import IndexedDocument, IndexKey, IndexStore, MemoryIndexStore


logger = logging.getLogger(__name__)


class SearchIndex:
    """Owns an ``IndexStore`` and the ``TermStatistics`` that mirror it."""

    def __init__(self, store: IndexStore | None = None) -> None:
        self.store = store if store is not None else MemoryIndexStore()
        self.stats = TermStatistics()
        self._write_lock = threading.Lock()
        self.rebuild_statistics()

    def rebuild_statistics(self) -> int:
        """Recompute statistics from the store; returns the document count."""
        with self._write_lock:
            records = self.store.all()
            self.stats = TermStatistics.from_documents((record.key, record.term_frequencies) for record in records)
            count = len(records)
        INDEX_DOC_COUNT.labels().set(count)
        if count:
            logger.info("Rebuilt term statistics from %d indexed documents", count)
        return count

    def put(self, record: IndexedDocument) -> bool:
        """Upsert ``record``; returns True when it replaced an existing entry."""
        with self._write_lock:
            previous = self.store.upsert(record)
            self.stats.add_document(record.key, record.term_frequencies)
        INDEX_DOC_COUNT.labels().set(self.stats.document_count)
        return previous is not None

    def remove(self, entity_id: str, entity_type: EntityType | None = None) -> list[IndexedDocument]:
        with self._write_lock:
            removed = self.store.delete(entity_id, entity_type)
            for record in removed:
                self.stats.remove_document(record.key)
        INDEX_DOC_COUNT.labels().set(self.stats.document_count)
        return removed

    def clear(self) -> None:
        with self._write_lock:
            self.store.clear()
            self.stats.clear()
        INDEX_DOC_COUNT.labels().set(0)

    def records(self) -> Sequence[IndexedDocument]:
        return self.store.all()

    def get(self, key: IndexKey) -> IndexedDocument | None:
        return self.store.get(key)

    def count(self) -> int:
        return self.store.count()

    def close(self) -> None:
        self.store.close()
