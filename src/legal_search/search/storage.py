"""Index store abstractions and the in-memory backend.

The storage module provides:

* ``IndexedDocument`` - the stored record: the enriched ``SearchDocument`` plus
  the analyzed term frequencies of its title, content and tags, and the
  single CJK characters used for one-character lookups.
* ``IndexStore`` - the backend contract. Writes are upserts keyed by
  ``(entity_type, entity_id)`` so the last writer wins.
* ``MemoryIndexStore`` - copy-on-write backend. Readers grab an immutable
  snapshot and never wait on writers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import logging
import threading
from types import MappingProxyType
from typing import Any

import orjson

from legal_search.domain import EntityType, SearchDocument


logger = logging.getLogger(__name__)

IndexKey = tuple[str, str]


@dataclass(frozen=True)
class IndexedDocument:
    """Stored index entry: the projection plus its analyzed terms."""

    document: SearchDocument
    title_terms: Mapping[str, int] = field(default_factory=dict)
    content_terms: Mapping[str, int] = field(default_factory=dict)
    tag_terms: Mapping[str, int] = field(default_factory=dict)
    char_terms: Mapping[str, int] = field(default_factory=dict)

    @property
    def key(self) -> IndexKey:
        return self.document.index_key

    @property
    def term_frequencies(self) -> dict[str, int]:
        """Counts summed over every field; the basis of corpus statistics."""
        combined: dict[str, int] = {}
        for field_terms in (self.title_terms, self.content_terms, self.tag_terms, self.char_terms):
            for term, count in field_terms.items():
                combined[term] = combined.get(term, 0) + count
        return combined

    @property
    def length(self) -> int:
        return sum(self.term_frequencies.values())

    def to_payload(self) -> dict[str, Any]:
        return {
            "document": self.document.model_dump(mode="json", by_alias=True),
            "title_terms": dict(self.title_terms),
            "content_terms": dict(self.content_terms),
            "tag_terms": dict(self.tag_terms),
            "char_terms": dict(self.char_terms),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> IndexedDocument:
        return cls(
            document=SearchDocument.model_validate(payload["document"]),
            title_terms=dict(payload.get("title_terms") or {}),
            content_terms=dict(payload.get("content_terms") or {}),
            tag_terms=dict(payload.get("tag_terms") or {}),
            char_terms=dict(payload.get("char_terms") or {}),
        )


def serialize_terms(terms: Mapping[str, int]) -> bytes:
    return orjson.dumps(dict(terms), option=orjson.OPT_SORT_KEYS)


def deserialize_terms(payload: bytes | str | None) -> dict[str, int]:
    if not payload:
        return {}
    return {str(term): int(count) for term, count in orjson.loads(payload).items()}


class IndexStore(ABC):
    """Backend contract for persisted index entries."""

    @abstractmethod
    def upsert(self, record: IndexedDocument) -> IndexedDocument | None:
        """Store ``record``, returning the entry it replaced (if any)."""

    @abstractmethod
    def get(self, key: IndexKey) -> IndexedDocument | None:
        """Return the entry stored under ``key``."""

    @abstractmethod
    def delete(self, entity_id: str, entity_type: EntityType | None = None) -> list[IndexedDocument]:
        """Remove entries for ``entity_id`` (optionally one type) and return them."""

    @abstractmethod
    def all(self) -> Sequence[IndexedDocument]:
        """Return a consistent snapshot of every entry."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored entries."""

    def clear(self) -> None:
        """Remove every entry."""
        for record in self.all():
            self.delete(record.document.entity_id, record.document.entity_type)

    def close(self) -> None:  # noqa: B027 - optional hook for resource cleanup
        """Release backend resources."""


class MemoryIndexStore(IndexStore):
    """Process-local store that swaps immutable snapshots on every write."""

    def __init__(self) -> None:
        self._write_lock = threading.Lock()
        self._snapshot: Mapping[IndexKey, IndexedDocument] = MappingProxyType({})

    def upsert(self, record: IndexedDocument) -> IndexedDocument | None:
        with self._write_lock:
            entries = dict(self._snapshot)
            previous = entries.get(record.key)
            entries[record.key] = record
            self._snapshot = MappingProxyType(entries)
        return previous

    def get(self, key: IndexKey) -> IndexedDocument | None:
        return self._snapshot.get(key)

    def delete(self, entity_id: str, entity_type: EntityType | None = None) -> list[IndexedDocument]:
        with self._write_lock:
            removed = [
                record
                for key, record in self._snapshot.items()
                if key[1] == entity_id and (entity_type is None or key[0] == entity_type.value)
            ]
            if not removed:
                return []
            entries = dict(self._snapshot)
            for record in removed:
                entries.pop(record.key, None)
            self._snapshot = MappingProxyType(entries)
        return removed

    def all(self) -> Sequence[IndexedDocument]:
        return tuple(self._snapshot.values())

    def count(self) -> int:
        return len(self._snapshot)

    def clear(self) -> None:
        with self._write_lock:
            self._snapshot = MappingProxyType({})
