"""Contract tests for the index store backends."""

from __future__ import annotations

from pathlib import Path
import sqlite3

import orjson
import pytest

from legal_search.domain import EntityType, SearchDocument
from legal_search.errors import IndexStoreError
from legal_search.search.sqlite_storage import SqliteIndexStore
from legal_search.search.storage import (
    IndexedDocument,
    IndexStore,
    MemoryIndexStore,
    deserialize_terms,
    serialize_terms,
)


def _record(document: SearchDocument, **content_terms: int) -> IndexedDocument:
    return IndexedDocument(document=document, title_terms={"title": 1}, content_terms=content_terms)


def test_upsert_returns_previous_entry(index_store: IndexStore, make_document) -> None:
    first = _record(make_document("d1", content="old"), old=1)
    second = _record(make_document("d1", content="new"), new=2)

    assert index_store.upsert(first) is None
    previous = index_store.upsert(second)

    assert previous is not None
    assert previous.document.content == "old"
    assert index_store.count() == 1
    stored = index_store.get(("document", "d1"))
    assert stored is not None
    assert stored.content_terms == {"new": 2}


def test_round_trips_documents_and_terms(index_store: IndexStore, make_document) -> None:
    document = make_document(
        "d1",
        title="合同审查",
        content="Agreement text",
        tags=["contract"],
        metadata={"size": 1024, "mimeType": "application/pdf", "keywords": ["agreement"]},
    )
    index_store.upsert(_record(document, agreement=1, text=1))

    stored = index_store.get(document.index_key)

    assert stored is not None
    assert stored.document == document
    assert stored.term_frequencies == {"title": 1, "agreement": 1, "text": 1}
    assert stored.length == 3


def test_tag_and_character_terms_round_trip(index_store: IndexStore, make_document) -> None:
    record = IndexedDocument(
        document=make_document("d1", title="法院判决", tags=["urgent"]),
        title_terms={"法院": 1, "院判": 1, "判决": 1},
        tag_terms={"urgent": 1},
        char_terms={"法": 1, "院": 1, "判": 1, "决": 1},
    )
    index_store.upsert(record)

    stored = index_store.get(("document", "d1"))

    assert stored == record
    assert stored.term_frequencies["urgent"] == 1
    assert stored.length == 8


def test_same_entity_id_across_types_is_distinct(index_store: IndexStore, make_document) -> None:
    index_store.upsert(_record(make_document("doc-7", entity_id="7")))
    index_store.upsert(_record(make_document("tpl-7", entity_id="7", entity_type=EntityType.TEMPLATE)))

    assert index_store.count() == 2


def test_delete_by_type_only_removes_that_entry(index_store: IndexStore, make_document) -> None:
    index_store.upsert(_record(make_document("doc-7", entity_id="7")))
    index_store.upsert(_record(make_document("tpl-7", entity_id="7", entity_type=EntityType.TEMPLATE)))

    removed = index_store.delete("7", EntityType.TEMPLATE)

    assert [record.document.id for record in removed] == ["tpl-7"]
    assert index_store.get(("document", "7")) is not None


def test_delete_without_type_removes_every_entry(index_store: IndexStore, make_document) -> None:
    index_store.upsert(_record(make_document("doc-7", entity_id="7")))
    index_store.upsert(_record(make_document("tpl-7", entity_id="7", entity_type=EntityType.TEMPLATE)))

    removed = index_store.delete("7")

    assert sorted(record.document.id for record in removed) == ["doc-7", "tpl-7"]
    assert index_store.count() == 0


def test_delete_missing_entry_is_a_noop(index_store: IndexStore) -> None:
    assert index_store.delete("missing") == []


def test_all_reflects_writes(index_store: IndexStore, make_document) -> None:
    index_store.upsert(_record(make_document("d1")))
    assert len(index_store.all()) == 1

    index_store.upsert(_record(make_document("d2")))
    index_store.delete("d1")

    assert [record.document.id for record in index_store.all()] == ["d2"]


def test_clear_empties_the_store(index_store: IndexStore, make_document) -> None:
    index_store.upsert(_record(make_document("d1")))
    index_store.upsert(_record(make_document("d2")))

    index_store.clear()

    assert index_store.count() == 0
    assert index_store.all() == ()


def test_memory_snapshots_are_immutable(make_document) -> None:
    store = MemoryIndexStore()
    store.upsert(_record(make_document("d1")))
    snapshot = store.all()

    store.upsert(_record(make_document("d2")))

    assert len(snapshot) == 1
    assert len(store.all()) == 2


def test_sqlite_store_survives_reopen(tmp_path: Path, make_document) -> None:
    db_path = tmp_path / "nested" / "index.db"
    store = SqliteIndexStore(db_path)
    store.upsert(_record(make_document("d1", content="persisted"), persisted=1))
    store.close()

    reopened = SqliteIndexStore(db_path)
    try:
        stored = reopened.get(("document", "d1"))
        assert stored is not None
        assert stored.document.content == "persisted"
        assert stored.content_terms == {"persisted": 1}
    finally:
        reopened.close()


def test_sqlite_open_failure_raises_index_store_error(tmp_path: Path) -> None:
    with pytest.raises(IndexStoreError, match="Cannot open index database"):
        SqliteIndexStore(tmp_path)


def test_sqlite_write_after_close_raises_index_store_error(tmp_path: Path, make_document) -> None:
    store = SqliteIndexStore(tmp_path / "index.db")
    store.close()

    with pytest.raises(IndexStoreError):
        store.upsert(_record(make_document("d1")))


def test_term_serialization_is_sorted_json() -> None:
    payload = serialize_terms({"beta": 2, "alpha": 1})

    assert payload == b'{"alpha":1,"beta":2}'
    assert deserialize_terms(payload) == {"alpha": 1, "beta": 2}
    assert deserialize_terms(None) == {}


def test_payload_round_trip(make_document) -> None:
    record = _record(make_document("d1", tags=["contract"]), clause=2)

    assert IndexedDocument.from_payload(record.to_payload()) == record


def test_sqlite_adds_term_columns_to_an_older_index(tmp_path: Path, make_document) -> None:
    db_path = tmp_path / "index.db"
    document = make_document("d1", content="legacy")
    conn = sqlite3.connect(db_path)
    conn.execute(
        "CREATE TABLE index_entries (entity_type TEXT NOT NULL, entity_id TEXT NOT NULL, doc_id TEXT NOT NULL, "
        "document BLOB NOT NULL, title_terms BLOB NOT NULL, content_terms BLOB NOT NULL, "
        "updated_at TEXT NOT NULL, PRIMARY KEY (entity_type, entity_id)) WITHOUT ROWID"
    )
    conn.execute(
        "INSERT INTO index_entries VALUES (?, ?, ?, ?, ?, ?, ?)",
        (
            "document",
            "d1",
            "d1",
            orjson.dumps(document.model_dump(mode="json", by_alias=True)),
            b"{}",
            b'{"legaci":1}',
            document.updated_at.isoformat(),
        ),
    )
    conn.commit()
    conn.close()

    store = SqliteIndexStore(db_path)
    try:
        stored = store.get(("document", "d1"))
        assert stored is not None
        assert stored.content_terms == {"legaci": 1}
        assert stored.tag_terms == {}
        assert stored.char_terms == {}

        store.upsert(IndexedDocument(document=document, tag_terms={"urgent": 1}))
        assert store.get(("document", "d1")).tag_terms == {"urgent": 1}
    finally:
        store.close()
