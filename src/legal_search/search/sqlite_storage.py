"""SQLite-backed index store.

- WAL journal with NORMAL synchronous so readers never block the writer
- One writer connection serialized by a lock (last writer wins per key)
- Thread-local, query-only reader connections
- ``WITHOUT ROWID`` table clustered on ``(entity_type, entity_id)``
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
import logging
from pathlib import Path
import sqlite3
import threading

import orjson

from legal_search.domain import EntityType, SearchDocument
from legal_search.errors import IndexStoreError
from legal_search.search.storage import (
    IndexedDocument,
    IndexKey,
    IndexStore,
    deserialize_terms,
    serialize_terms,
)


logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS index_entries (
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    document BLOB NOT NULL,
    title_terms BLOB NOT NULL,
    content_terms BLOB NOT NULL,
    tag_terms BLOB NOT NULL DEFAULT '{}',
    char_terms BLOB NOT NULL DEFAULT '{}',
    updated_at TEXT NOT NULL,
    PRIMARY KEY (entity_type, entity_id)
) WITHOUT ROWID;
CREATE INDEX IF NOT EXISTS idx_index_entries_entity_id ON index_entries (entity_id);
"""

_TERM_COLUMNS = ("title_terms", "content_terms", "tag_terms", "char_terms")

_SELECT_COLUMNS = f"SELECT document, {', '.join(_TERM_COLUMNS)} FROM index_entries"


def apply_read_pragmas(conn: sqlite3.Connection, *, busy_timeout_ms: int = 30000) -> None:
    conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
    conn.execute("PRAGMA cache_size = -16384")
    conn.execute("PRAGMA temp_store = MEMORY")
    conn.execute("PRAGMA query_only = 1")


def apply_write_pragmas(conn: sqlite3.Connection, *, busy_timeout_ms: int = 30000) -> None:
    conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute("PRAGMA foreign_keys = ON")


def _row_to_record(row: sqlite3.Row | tuple) -> IndexedDocument:
    document_blob, *term_blobs = row
    terms = {column: deserialize_terms(blob) for column, blob in zip(_TERM_COLUMNS, term_blobs)}
    return IndexedDocument(document=SearchDocument.model_validate(orjson.loads(document_blob)), **terms)


def _add_missing_columns(conn: sqlite3.Connection) -> None:
    existing = {row[1] for row in conn.execute("PRAGMA table_info(index_entries)")}
    for column in _TERM_COLUMNS:
        if column not in existing:
            conn.execute(f"ALTER TABLE index_entries ADD COLUMN {column} BLOB NOT NULL DEFAULT '{{}}'")
            logger.info("Added column %s to index_entries", column)


class SQLiteConnectionPool:
    """Thread-local read connections; every connection is tracked for shutdown."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._local = threading.local()
        self._lock = threading.Lock()
        self._connections: list[sqlite3.Connection] = []

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = self._create_connection()
            self._local.connection = conn
        yield conn

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        apply_read_pragmas(conn)
        with self._lock:
            self._connections.append(conn)
        return conn

    def close_all(self) -> None:
        with self._lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error:
                logger.debug("Failed to close SQLite reader connection", exc_info=True)
        self._local = threading.local()


class SqliteIndexStore(IndexStore):
    """Durable index store; survives process restarts."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path).expanduser()
        self._write_lock = threading.Lock()
        self._generation = 0
        self._cache: tuple[int, tuple[IndexedDocument, ...]] | None = None
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._writer = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
            apply_write_pragmas(self._writer)
            self._writer.executescript(_SCHEMA)
            _add_missing_columns(self._writer)
        except (OSError, sqlite3.Error) as exc:
            raise IndexStoreError(f"Cannot open index database {self.db_path}: {exc}") from exc
        self._readers = SQLiteConnectionPool(self.db_path)
        logger.debug("Opened SQLite index store at %s", self.db_path)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._write_lock:
            try:
                self._writer.execute("BEGIN IMMEDIATE")
                try:
                    yield self._writer
                except BaseException:
                    self._writer.execute("ROLLBACK")
                    raise
                self._writer.execute("COMMIT")
            except sqlite3.Error as exc:
                raise IndexStoreError(f"Index write failed: {exc}") from exc
            finally:
                self._generation += 1

    def upsert(self, record: IndexedDocument) -> IndexedDocument | None:
        document = record.document
        payload = orjson.dumps(document.model_dump(mode="json", by_alias=True))
        with self._transaction() as conn:
            row = conn.execute(
                f"{_SELECT_COLUMNS} WHERE entity_type = ? AND entity_id = ?",
                record.key,
            ).fetchone()
            conn.execute(
                "INSERT OR REPLACE INTO index_entries "
                "(entity_type, entity_id, doc_id, document, "
                "title_terms, content_terms, tag_terms, char_terms, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    document.entity_type.value,
                    document.entity_id,
                    document.id,
                    payload,
                    serialize_terms(record.title_terms),
                    serialize_terms(record.content_terms),
                    serialize_terms(record.tag_terms),
                    serialize_terms(record.char_terms),
                    document.updated_at.isoformat(),
                ),
            )
        return _row_to_record(row) if row else None

    def get(self, key: IndexKey) -> IndexedDocument | None:
        with self._read() as conn:
            row = conn.execute(f"{_SELECT_COLUMNS} WHERE entity_type = ? AND entity_id = ?", key).fetchone()
        return _row_to_record(row) if row else None

    def delete(self, entity_id: str, entity_type: EntityType | None = None) -> list[IndexedDocument]:
        clause = "WHERE entity_id = ?"
        params: tuple[str, ...] = (entity_id,)
        if entity_type is not None:
            clause += " AND entity_type = ?"
            params = (entity_id, entity_type.value)
        with self._transaction() as conn:
            rows = conn.execute(f"{_SELECT_COLUMNS} {clause}", params).fetchall()
            if rows:
                conn.execute(f"DELETE FROM index_entries {clause}", params)
        return [_row_to_record(row) for row in rows]

    def all(self) -> Sequence[IndexedDocument]:
        generation = self._generation
        cached = self._cache
        if cached is not None and cached[0] == generation:
            return cached[1]
        with self._read() as conn:
            rows = conn.execute(_SELECT_COLUMNS).fetchall()
        records = tuple(_row_to_record(row) for row in rows)
        self._cache = (generation, records)
        return records

    def count(self) -> int:
        with self._read() as conn:
            row = conn.execute("SELECT COUNT(*) FROM index_entries").fetchone()
        return int(row[0] if row else 0)

    def clear(self) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM index_entries")

    def close(self) -> None:
        self._readers.close_all()
        with self._write_lock:
            try:
                self._writer.close()
            except sqlite3.Error:
                logger.debug("Failed to close SQLite writer connection", exc_info=True)

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        try:
            with self._readers.get_connection() as conn:
                yield conn
        except sqlite3.Error as exc:
            raise IndexStoreError(f"Index read failed: {exc}") from exc
