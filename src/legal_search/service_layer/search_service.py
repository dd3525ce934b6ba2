"""Search indexing service: the inbound and outbound contract of the engine.

Inbound: ``index_document``, ``submit_for_indexing``, ``delete_from_index``,
``reindex_all_documents``. Outbound: ``search``, ``get_search_suggestions``
and analytics snapshots. Engine work is synchronous and runs in worker
threads so async callers never block the event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
import logging
import time
from typing import Any

from legal_search.adapters.document_source import AbstractDocumentSource
from legal_search.config import Settings
from legal_search.domain import EntityType, IndexingOptions, ReindexSummary, SearchDocument, SearchQuery, SearchResult
from legal_search.errors import IndexStoreError, InvalidQueryError
from legal_search.observability.context import operation_context
from legal_search.observability.metrics import INDEX_OPERATIONS, SEARCH_LATENCY, SEARCH_REQUESTS, track_latency
from legal_search.observability.tracing import create_span
from legal_search.search.indexer import DocumentIndexer
from legal_search.search.query import QueryEngine
from legal_search.search.search_index import SearchIndex
from legal_search.search.storage import IndexStore
from legal_search.search.storage_factory import create_index_store
from legal_search.search.suggestions import SuggestionEngine
from legal_search.service_layer.analytics import AnalyticsSnapshot, SearchAnalytics
from legal_search.service_layer.indexing_queue import IndexingQueue


logger = logging.getLogger(__name__)


class SearchIndexingService:
    """Facade wiring the index, indexer, query and suggestion engines."""

    def __init__(self, settings: Settings | None = None, *, store: IndexStore | None = None) -> None:
        self.settings = settings or Settings()
        self.index = SearchIndex(store if store is not None else create_index_store(self.settings))
        self.indexer = DocumentIndexer(self.index, self.settings)
        self.query_engine = QueryEngine(self.index, self.settings)
        self.suggestions = SuggestionEngine(self.index, default_limit=self.settings.suggestion_limit)
        self.analytics = SearchAnalytics()
        self.queue = IndexingQueue(
            self.index_document,
            maxsize=self.settings.indexing_queue_size,
            workers=self.settings.indexing_workers,
        )

    async def __aenter__(self) -> SearchIndexingService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self, *, drain: bool = True) -> None:
        await self.queue.stop(drain=drain)
        self.index.close()

    async def index_document(
        self,
        document: SearchDocument,
        options: IndexingOptions | None = None,
    ) -> SearchDocument:
        """Enrich and upsert ``document``; returns the stored projection.

        Raises:
            IndexStoreError: when the index store rejects the write.
        """
        attributes = {"entity.type": document.entity_type.value, "entity.id": document.entity_id}
        with operation_context("index_document"), create_span("search.index_document", attributes=attributes):
            outcome = await asyncio.to_thread(self.indexer.index_document, document, options)
        if outcome.failed_stages:
            logger.info(
                "Indexed %s:%s with degraded stages: %s",
                document.entity_type.value,
                document.entity_id,
                ", ".join(outcome.failed_stages),
            )
        return outcome.document

    def submit_for_indexing(self, document: SearchDocument, options: IndexingOptions | None = None) -> None:
        """Fire-and-forget indexing; must be called from a running event loop.

        Raises:
            IndexingBackpressureError: when the indexing queue is full.
        """
        self.queue.submit(document, options)

    async def search(self, query: SearchQuery | Mapping[str, Any]) -> SearchResult:
        text = query.query if isinstance(query, SearchQuery) else str(query.get("query", "") or "")
        started = time.perf_counter()
        with (
            operation_context("search"),
            create_span("search.query", attributes={"search.query_length": len(text)}) as span,
            track_latency(SEARCH_LATENCY),
        ):
            try:
                result = await asyncio.to_thread(self.query_engine.search, query)
            except InvalidQueryError:
                SEARCH_REQUESTS.labels(status="invalid").inc()
                raise
            except IndexStoreError:
                SEARCH_REQUESTS.labels(status="error").inc()
                self.analytics.record(text, total=0, processing_time=(time.perf_counter() - started) * 1000, success=False)
                logger.error("Search unavailable: index store failure", exc_info=True)
                raise
            span.set_attribute("search.total", result.total)
        SEARCH_REQUESTS.labels(status="success").inc()
        self.analytics.record(text, total=result.total, processing_time=result.processing_time)
        return result

    async def get_search_suggestions(self, query: str, limit: int | None = None) -> list[str]:
        return await asyncio.to_thread(self.suggestions.suggest, query, limit)

    async def delete_from_index(self, entity_id: str, entity_type: EntityType | None = None) -> int:
        """Remove entries for ``entity_id``; a missing entry is a no-op.

        Returns the number of removed entries.
        """
        with operation_context("delete_from_index"), create_span(
            "search.delete", attributes={"entity.id": entity_id}
        ):
            try:
                removed = await asyncio.to_thread(self.index.remove, entity_id, entity_type)
            except IndexStoreError:
                INDEX_OPERATIONS.labels(operation="delete", status="error").inc()
                raise
        INDEX_OPERATIONS.labels(operation="delete", status="success" if removed else "noop").inc()
        logger.debug("Removed %d index entries for entity %s", len(removed), entity_id)
        return len(removed)

    async def reindex_all_documents(
        self,
        sources: Sequence[AbstractDocumentSource],
        options: IndexingOptions | None = None,
        *,
        prune: bool = False,
    ) -> ReindexSummary:
        """Re-run indexing for every active entity of ``sources``.

        Per-entity failures are collected into the summary and the pass keeps
        going. An ``IndexStoreError`` aborts the pass. With ``prune`` enabled,
        entries whose entity no source reported are removed afterwards.
        """
        with operation_context("reindex_all_documents"), create_span(
            "search.reindex", attributes={"reindex.sources": len(sources)}
        ):
            return await self._reindex(sources, options, prune=prune)

    async def _reindex(
        self,
        sources: Sequence[AbstractDocumentSource],
        options: IndexingOptions | None,
        *,
        prune: bool,
    ) -> ReindexSummary:
        started = time.perf_counter()
        errors: list[str] = []
        documents: list[SearchDocument] = []
        sources_failed = False
        for source in sources:
            try:
                documents.extend(await source.list_active_documents())
            except Exception as exc:
                sources_failed = True
                logger.error("Failed to list documents from source %s", source.name, exc_info=True)
                errors.append(f"source:{source.name}: {exc}")

        semaphore = asyncio.Semaphore(self.settings.reindex_concurrency)

        async def reindex_one(document: SearchDocument) -> bool:
            async with semaphore:
                try:
                    await self.index_document(document, options)
                except IndexStoreError:
                    raise
                except Exception as exc:
                    logger.warning(
                        "Reindex failed for %s:%s", document.entity_type.value, document.entity_id, exc_info=True
                    )
                    errors.append(f"{document.entity_type.value}:{document.entity_id}: {exc}")
                    return False
                return True

        tasks = [asyncio.create_task(reindex_one(document)) for document in documents]
        try:
            outcomes = await asyncio.gather(*tasks)
        except IndexStoreError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            INDEX_OPERATIONS.labels(operation="reindex", status="error").inc()
            logger.error("Reindex aborted: index store unavailable", exc_info=True)
            raise

        if prune and not sources_failed:
            await self._prune({document.index_key for document in documents})

        indexed = sum(1 for outcome in outcomes if outcome)
        summary = ReindexSummary(total=len(documents), indexed=indexed, failed=len(documents) - indexed, errors=errors)
        INDEX_OPERATIONS.labels(operation="reindex", status="success" if not errors else "partial").inc()
        logger.info(
            "Reindex finished: %d/%d indexed, %d failed in %.2fs",
            summary.indexed,
            summary.total,
            summary.failed,
            time.perf_counter() - started,
        )
        return summary

    async def _prune(self, active_keys: set[tuple[str, str]]) -> None:
        stale = [record.key for record in self.index.records() if record.key not in active_keys]
        for entity_type, entity_id in stale:
            await asyncio.to_thread(self.index.remove, entity_id, EntityType(entity_type))
        if stale:
            logger.info("Pruned %d stale index entries", len(stale))

    def analytics_snapshot(self) -> AnalyticsSnapshot:
        return self.analytics.snapshot()
