"""Query engine: filter, score, sort, paginate and facet the index snapshot.

Ordering is deterministic. Relevance ties and every other sort break by
``created_at`` descending, then ``id`` ascending, so repeated calls against an
unchanged index page through the same sequence.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
import logging
import time
from typing import Any

from pydantic import ValidationError

from legal_search.config import Settings
from legal_search.domain import (
    FacetDateRange,
    SearchDocument,
    SearchFacets,
    SearchFilters,
    SearchPagination,
    SearchQuery,
    SearchResult,
    SearchSort,
)
from legal_search.errors import InvalidQueryError
from legal_search.search.analyzers import MixedScriptTokenizer, StandardAnalyzer, get_analyzer
from legal_search.search.highlights import build_highlights
from legal_search.search.search_index import SearchIndex
from legal_search.search.stats import bm25
from legal_search.search.storage import IndexedDocument


logger = logging.getLogger(__name__)

_DEFAULT_SORT = SearchSort()


@dataclass(frozen=True)
class RankedDocument:
    record: IndexedDocument
    score: float = 0.0

    @property
    def document(self) -> SearchDocument:
        return self.record.document


def parse_query(payload: SearchQuery | Mapping[str, Any]) -> SearchQuery:
    """Validate a request payload, raising ``InvalidQueryError`` on bad shapes."""
    if isinstance(payload, SearchQuery):
        return payload
    try:
        return SearchQuery.model_validate(payload)
    except ValidationError as exc:
        raise InvalidQueryError(f"Invalid search query: {exc.error_count()} error(s)", details=exc.errors()) from exc


def matches_filters(document: SearchDocument, filters: SearchFilters) -> bool:
    """Return True when ``document`` satisfies every set filter."""
    if filters.entity_type and document.entity_type not in filters.entity_type:
        return False
    if filters.tags and not set(filters.tags).intersection(document.tags):
        return False
    if filters.date_range and not filters.date_range.start <= document.created_at <= filters.date_range.end:
        return False
    if filters.created_by and document.created_by not in filters.created_by:
        return False
    if filters.mime_type and document.mime_type not in filters.mime_type:
        return False
    if filters.size_range:
        size = document.size
        if size is None or size < filters.size_range.min:
            return False
        if filters.size_range.max is not None and size > filters.size_range.max:
            return False
    if filters.custom_filters:
        for key, expected in filters.custom_filters.items():
            if key not in document.metadata or document.metadata[key] != expected:
                return False
    return True


def compute_facets(documents: Sequence[SearchDocument]) -> SearchFacets:
    entity_types: Counter[str] = Counter()
    tags: Counter[str] = Counter()
    mime_types: Counter[str] = Counter()
    earliest: datetime | None = None
    latest: datetime | None = None
    for document in documents:
        entity_types[document.entity_type.value] += 1
        tags.update(document.tags)
        if document.mime_type:
            mime_types[document.mime_type] += 1
        if earliest is None or document.created_at < earliest:
            earliest = document.created_at
        if latest is None or document.created_at > latest:
            latest = document.created_at
    return SearchFacets(
        entity_type=dict(sorted(entity_types.items())),
        tags=dict(sorted(tags.items())),
        mime_type=dict(sorted(mime_types.items())),
        date_range=FacetDateRange(min=earliest, max=latest),
    )


def _sort_value(ranked: RankedDocument, field: str, order: str) -> Any:
    document = ranked.document
    if field == "relevance":
        return ranked.score
    if field == "date":
        return document.created_at
    if field == "title":
        return (document.title.casefold(), document.title)
    size = document.size
    # unsized documents go last in either direction
    missing = size is None if order == "asc" else size is not None
    return (missing, size or 0.0)


def sort_ranked(ranked: list[RankedDocument], sort: SearchSort, *, has_text: bool) -> list[RankedDocument]:
    """Sort with the deterministic ``created_at`` desc, ``id`` asc tie-break."""
    field, order = sort.field, sort.order
    if field == "relevance" and not has_text:
        field, order = "date", "desc"
    ordered = sorted(ranked, key=lambda item: item.document.id)
    ordered.sort(key=lambda item: item.document.created_at, reverse=True)
    ordered.sort(key=lambda item: _sort_value(item, field, order), reverse=order == "desc")
    return ordered


class QueryEngine:
    """Answer ``SearchQuery`` requests from a ``SearchIndex`` snapshot."""

    def __init__(
        self,
        index: SearchIndex,
        settings: Settings | None = None,
        *,
        analyzer: StandardAnalyzer | None = None,
    ) -> None:
        self.index = index
        self.settings = settings or Settings()
        self.analyzer = analyzer or get_analyzer()
        self._surface_tokenizer = MixedScriptTokenizer()

    def search(self, payload: SearchQuery | Mapping[str, Any]) -> SearchResult:
        started = time.perf_counter()
        query = parse_query(payload)
        pagination = self._resolve_pagination(query.pagination)
        sort = query.sort_by or _DEFAULT_SORT
        text = query.query.strip()
        terms = self.analyzer.terms(text) if text else []

        records = self.index.records()
        filtered = [record for record in records if matches_filters(record.document, query.filters)]

        if terms:
            ranked = self._score(filtered, Counter(terms))
        elif text:
            # only stopwords or punctuation: nothing can match
            ranked = []
        else:
            ranked = [RankedDocument(record=record) for record in filtered]

        ordered = sort_ranked(ranked, sort, has_text=bool(terms))
        offset = (pagination.page - 1) * pagination.limit
        page = ordered[offset : offset + pagination.limit]

        highlight_terms = self._highlight_terms(text, terms) if terms else []
        documents = [self._present(item, highlight_terms) for item in page] if terms else [item.document for item in page]

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            "Search %r matched %d of %d filtered (%d indexed) in %.2fms",
            text,
            len(ordered),
            len(filtered),
            len(records),
            elapsed_ms,
        )
        return SearchResult(
            documents=documents,
            total=len(ordered),
            page=pagination.page,
            limit=pagination.limit,
            facets=compute_facets([record.document for record in filtered]),
            query=query.query,
            processing_time=elapsed_ms,
        )

    def _resolve_pagination(self, pagination: SearchPagination | None) -> SearchPagination:
        if pagination is None:
            return SearchPagination(page=1, limit=self.settings.default_page_size)
        if pagination.limit > self.settings.max_page_size:
            return SearchPagination(page=pagination.page, limit=self.settings.max_page_size)
        return pagination

    def _score(self, records: Sequence[IndexedDocument], query_tf: Counter[str]) -> list[RankedDocument]:
        stats = self.index.stats
        avg_length = stats.length_stats().average_length
        idf = {term: stats.idf(term) for term in query_tf}
        field_weights = (
            ("content_terms", 1.0),
            ("title_terms", self.settings.title_boost),
            ("tag_terms", self.settings.tag_boost),
            ("char_terms", self.settings.cjk_char_weight),
        )
        ranked: list[RankedDocument] = []
        for record in records:
            overlap = False
            score = 0.0
            for term, qtf in query_tf.items():
                weighted_tf = 0.0
                for name, weight in field_weights:
                    tf = getattr(record, name).get(term, 0)
                    if tf:
                        overlap = True
                        weighted_tf += weight * tf
                if weighted_tf:
                    score += qtf * idf[term] * bm25(weighted_tf, record.length, avg_length)
            if overlap:
                ranked.append(RankedDocument(record=record, score=score))
        return ranked

    def _highlight_terms(self, text: str, terms: Sequence[str]) -> list[str]:
        surface = [token.text for token in self._surface_tokenizer(text) if len(token.text) > 1 or not token.text.isascii()]
        return sorted(set(surface) | {term for term in terms if len(term) > 1 or not term.isascii()})

    def _present(self, item: RankedDocument, highlight_terms: Sequence[str]) -> SearchDocument:
        document = item.document
        source = document.content or document.title
        fragments = build_highlights(source, highlight_terms)
        metadata = {
            **document.metadata,
            "relevanceScore": round(item.score, 6),
            "highlights": [fragment.to_dict() for fragment in fragments],
        }
        return document.model_copy(update={"metadata": metadata})
