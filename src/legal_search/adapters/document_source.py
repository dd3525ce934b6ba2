"""Document source abstractions consumed by full reindex passes.

Source services (documents, knowledge base articles, templates, ...) own the
entities; the index only asks them for the current projections.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable
import logging

from legal_search.domain import SearchDocument


logger = logging.getLogger(__name__)


class AbstractDocumentSource(ABC):
    """Yields the ``SearchDocument`` projection of every active source entity."""

    name: str = "source"

    @abstractmethod
    def iter_active_documents(self) -> AsyncIterator[SearchDocument]:
        """Stream projections of the active entities."""
        raise NotImplementedError

    async def list_active_documents(self) -> list[SearchDocument]:
        return [document async for document in self.iter_active_documents()]


class StaticDocumentSource(AbstractDocumentSource):
    """Serve a fixed collection of projections."""

    def __init__(self, documents: Iterable[SearchDocument], *, name: str = "static") -> None:
        self._documents = list(documents)
        self.name = name

    async def iter_active_documents(self) -> AsyncIterator[SearchDocument]:
        for document in self._documents:
            yield document
