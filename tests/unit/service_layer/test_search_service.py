"""Unit tests for the async SearchIndexingService facade."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from legal_search.adapters import AbstractDocumentSource, StaticDocumentSource
from legal_search.config import Settings
from legal_search.domain import EntityType, SearchDocument
from legal_search.errors import IndexingBackpressureError, IndexStoreError, InvalidQueryError
from legal_search.search.storage import IndexStore, MemoryIndexStore
from legal_search.service_layer import SearchIndexingService


class BrokenSource(AbstractDocumentSource):
    name = "broken"

    async def iter_active_documents(self) -> AsyncIterator[SearchDocument]:
        raise RuntimeError("source offline")
        yield  # pragma: no cover


class ReadOnlyStore(MemoryIndexStore):
    """Store whose writes fail as if the disk were gone."""

    def upsert(self, record):
        raise IndexStoreError("index database is read-only")


class UnreadableStore(MemoryIndexStore):
    def all(self):
        raise IndexStoreError("index database is locked")


def _service(store: IndexStore | None = None, **overrides) -> SearchIndexingService:
    settings = Settings(index_backend="memory", **overrides)
    return SearchIndexingService(settings, store=store if store is not None else MemoryIndexStore())


@pytest.mark.asyncio
async def test_chinese_scenario_end_to_end(chinese_corpus) -> None:
    async with _service() as service:
        for document in chinese_corpus:
            await service.index_document(document)

        result = await service.search({"query": "合同", "pagination": {"page": 1, "limit": 10}})
        assert sorted(document.id for document in result.documents) == ["d1", "d3"]
        assert all(document.metadata["relevanceScore"] > 0 for document in result.documents)

        narrowed = await service.search(
            {"query": "合同", "filters": {"entityType": ["document"], "tags": ["template"]}}
        )
        assert [document.id for document in narrowed.documents] == ["d3"]

        assert await service.get_search_suggestions("证据") == ["证据提交指南"]
        assert await service.delete_from_index("d2") == 1
        assert await service.get_search_suggestions("证据") == []

        browse = await service.search({})
        assert "d2" not in [document.id for document in browse.documents]


@pytest.mark.asyncio
async def test_index_document_returns_enriched_projection(make_document) -> None:
    async with _service() as service:
        stored = await service.index_document(
            make_document("e1", title="Lease Agreement", content="The agreement was approved on 2024-01-02.")
        )

    assert stored.metadata["category"] == "contract"
    assert stored.metadata["sentiment"] == "positive"
    assert stored.metadata["entities"][0]["value"] == "2024-01-02"


@pytest.mark.asyncio
async def test_indexing_twice_keeps_one_entry(make_document) -> None:
    document = make_document("e1", content="Confidentiality obligations survive termination.")
    async with _service() as service:
        first = await service.index_document(document)
        second = await service.index_document(document)
        result = await service.search({"query": "confidentiality"})

    assert first == second
    assert result.total == 1


@pytest.mark.asyncio
async def test_upsert_replaces_searchable_content(make_document) -> None:
    async with _service() as service:
        await service.index_document(make_document("e1", content="alpha clause"))
        await service.index_document(make_document("e1", content="beta clause"))

        assert (await service.search({"query": "alpha"})).total == 0
        assert (await service.search({"query": "beta"})).total == 1
        assert service.index.stats.document_count == 1


@pytest.mark.asyncio
async def test_concurrent_writes_to_one_entity_stay_consistent(make_document) -> None:
    versions = [make_document("e1", content=f"version{idx} clause") for idx in range(8)]
    async with _service() as service:
        await asyncio.gather(*(service.index_document(document) for document in versions))

        record = service.index.get(("document", "e1"))
        assert record is not None
        assert service.index.count() == 1
        assert service.index.stats.document_count == 1
        for idx in range(8):
            expected = 1 if f"version{idx}" in record.content_terms else 0
            assert service.index.stats.document_frequency(f"version{idx}") == expected


@pytest.mark.asyncio
async def test_delete_scopes_by_entity_type(make_document) -> None:
    async with _service() as service:
        await service.index_document(make_document("doc-9", entity_id="9", content="shared clause"))
        await service.index_document(
            make_document("tpl-9", entity_id="9", entity_type=EntityType.TEMPLATE, content="shared clause")
        )

        assert await service.delete_from_index("9", EntityType.TEMPLATE) == 1
        assert await service.delete_from_index("9", EntityType.TEMPLATE) == 0
        result = await service.search({"query": "shared"})

    assert [document.id for document in result.documents] == ["doc-9"]


@pytest.mark.asyncio
async def test_invalid_query_is_distinct_from_no_results() -> None:
    async with _service() as service:
        with pytest.raises(InvalidQueryError):
            await service.search({"pagination": {"page": 0}})
        empty = await service.search({"query": "nothing"})
        snapshot = service.analytics_snapshot()

    assert empty.total == 0
    assert snapshot.total_searches == 1
    assert snapshot.zero_result_searches == 1


@pytest.mark.asyncio
async def test_index_store_error_propagates_from_index_document(make_document) -> None:
    async with _service(ReadOnlyStore()) as service:
        with pytest.raises(IndexStoreError, match="read-only"):
            await service.index_document(make_document("e1", content="text"))


@pytest.mark.asyncio
async def test_search_records_failures_in_analytics(make_document) -> None:
    service = _service()
    service.index.store = UnreadableStore()
    try:
        with pytest.raises(IndexStoreError):
            await service.search({"query": "lease"})
        snapshot = service.analytics_snapshot()
    finally:
        await service.close()

    assert snapshot.failed_searches == 1


@pytest.mark.asyncio
async def test_reindex_collects_per_entity_failures(make_document, monkeypatch) -> None:
    documents = [
        make_document("ok-1", content="lease terms"),
        make_document("bad", content="lease terms"),
        make_document("ok-2", content="lease terms"),
    ]
    async with _service(reindex_concurrency=2) as service:
        original = service.indexer.index_document

        def flaky(document, options=None):
            if document.id == "bad":
                raise RuntimeError("boom")
            return original(document, options)

        monkeypatch.setattr(service.indexer, "index_document", flaky)

        summary = await service.reindex_all_documents([StaticDocumentSource(documents)])

        assert (summary.total, summary.indexed, summary.failed) == (3, 2, 1)
        assert summary.errors == ["document:bad: boom"]
        assert service.index.count() == 2


@pytest.mark.asyncio
async def test_reindex_reports_unavailable_sources(make_document) -> None:
    async with _service() as service:
        summary = await service.reindex_all_documents(
            [BrokenSource(), StaticDocumentSource([make_document("s1", content="lease")])]
        )

    assert (summary.total, summary.indexed, summary.failed) == (1, 1, 0)
    assert summary.errors == ["source:broken: source offline"]


@pytest.mark.asyncio
async def test_reindex_aborts_when_store_is_unavailable(make_document) -> None:
    async with _service(ReadOnlyStore()) as service:
        with pytest.raises(IndexStoreError):
            await service.reindex_all_documents([StaticDocumentSource([make_document("s1"), make_document("s2")])])


@pytest.mark.asyncio
async def test_reindex_prune_removes_stale_entries(make_document) -> None:
    async with _service() as service:
        await service.index_document(make_document("stale", content="old matter"))

        summary = await service.reindex_all_documents(
            [StaticDocumentSource([make_document("fresh", content="new matter")])], prune=True
        )
        ids = [document.id for document in (await service.search({})).documents]

    assert summary.indexed == 1
    assert ids == ["fresh"]


@pytest.mark.asyncio
async def test_prune_is_skipped_when_a_source_fails(make_document) -> None:
    async with _service() as service:
        await service.index_document(make_document("kept", content="old matter"))

        await service.reindex_all_documents([BrokenSource()], prune=True)

        assert service.index.count() == 1


@pytest.mark.asyncio
async def test_submit_for_indexing_is_fire_and_forget(make_document) -> None:
    async with _service() as service:
        service.submit_for_indexing(make_document("f1", content="deposition transcript"))
        await service.queue.join()

        result = await service.search({"query": "deposition"})

    assert [document.id for document in result.documents] == ["f1"]


@pytest.mark.asyncio
async def test_submit_for_indexing_raises_on_backpressure(make_document) -> None:
    async with _service(indexing_queue_size=1, indexing_workers=1) as service:
        service.submit_for_indexing(make_document("f1"))
        with pytest.raises(IndexingBackpressureError):
            service.submit_for_indexing(make_document("f2"))


@pytest.mark.asyncio
async def test_sqlite_backend_persists_between_services(tmp_path: Path, make_document) -> None:
    settings = Settings(index_backend="sqlite", index_path=tmp_path / "index.db")

    async with SearchIndexingService(settings) as service:
        await service.index_document(make_document("p1", title="合同审查流程", content="Arbitration clause"))

    async with SearchIndexingService(settings) as reopened:
        result = await reopened.search({"query": "arbitration"})
        assert reopened.index.stats.document_count == 1

    assert [document.id for document in result.documents] == ["p1"]
