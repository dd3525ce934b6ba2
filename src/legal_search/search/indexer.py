"""Document indexer: enrichment pipeline plus the index upsert.

Enrichment stages degrade independently. A failing stage is logged, counted
and replaced by its default value; only index store failures reach the caller.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass
import logging
from typing import Any, TypeVar

from legal_search.config import Settings
from legal_search.domain import IndexingOptions, SearchDocument
from legal_search.observability.metrics import ENRICHMENT_FAILURES, INDEX_OPERATIONS
from legal_search.search import enrichment
from legal_search.search.analyzers import StandardAnalyzer, get_analyzer
from legal_search.search.search_index import SearchIndex
from legal_search.search.storage import IndexedDocument


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_OPTIONS = IndexingOptions()


@dataclass(frozen=True)
class IndexOutcome:
    """Result of indexing one document."""

    document: SearchDocument
    replaced: bool
    failed_stages: tuple[str, ...] = ()


class DocumentIndexer:
    """Build enriched index records and upsert them into a ``SearchIndex``."""

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

    def index_document(self, document: SearchDocument, options: IndexingOptions | None = None) -> IndexOutcome:
        options = options or DEFAULT_OPTIONS
        failed: list[str] = []

        def stage(name: str, enabled: bool, default: T, func: Callable[[], T]) -> T:
            if not enabled:
                return default
            try:
                return func()
            except Exception:
                logger.warning(
                    "Enrichment stage %s failed for %s:%s",
                    name,
                    document.entity_type.value,
                    document.entity_id,
                    exc_info=True,
                )
                ENRICHMENT_FAILURES.labels(stage=name).inc()
                failed.append(name)
                return default

        content = document.content[: self.settings.max_content_chars]
        title_tokens = self.analyzer(document.title)
        content_tokens = self.analyzer(content)
        title_terms = enrichment.term_frequencies(title_tokens)
        content_terms = enrichment.term_frequencies(content_tokens)
        tag_terms = enrichment.term_frequencies([token for tag in document.tags for token in self.analyzer(tag)])
        char_terms = Counter(self.analyzer.characters(f"{document.title}\n{content}"))

        keywords = stage(
            "keywords",
            options.extract_keywords,
            [],
            lambda: enrichment.extract_keywords(
                content_tokens,
                content,
                self.index.stats.idf_for_document(document.index_key, content_terms),
                count=self.settings.keyword_count,
            ),
        )
        summary = stage(
            "summary",
            options.generate_summary,
            "",
            lambda: enrichment.generate_summary(
                content,
                sentences=self.settings.summary_sentences,
                max_chars=self.settings.summary_max_chars,
            ),
        )
        sentiment = stage("sentiment", options.analyze_sentiment, "neutral", lambda: enrichment.analyze_sentiment(content))
        entities = stage(
            "entities",
            options.extract_entities,
            [],
            lambda: [entity.model_dump(mode="json") for entity in enrichment.extract_entities(content)],
        )
        category = stage(
            "category",
            options.categorize_content,
            enrichment.CATEGORY_OTHER,
            lambda: enrichment.categorize(content, title=document.title, mime_type=document.mime_type),
        )
        language = document.language or stage(
            "language", True, "unknown", lambda: enrichment.detect_language(f"{document.title}\n{content}")
        )

        metadata: dict[str, Any] = {
            **document.metadata,
            "keywords": keywords,
            "summary": summary,
            "sentiment": sentiment,
            "entities": entities,
            "category": category,
            "language": language,
        }
        enriched = document.model_copy(update={"content": content, "metadata": metadata, "language": language})
        record = IndexedDocument(
            document=enriched,
            title_terms=dict(title_terms),
            content_terms=dict(content_terms),
            tag_terms=dict(tag_terms),
            char_terms=dict(char_terms),
        )

        try:
            replaced = self.index.put(record)
        except Exception:
            INDEX_OPERATIONS.labels(operation="index", status="error").inc()
            raise
        INDEX_OPERATIONS.labels(operation="index", status="success").inc()
        logger.debug(
            "Indexed %s:%s (%d title terms, %d content terms, replaced=%s)",
            document.entity_type.value,
            document.entity_id,
            len(title_terms),
            len(content_terms),
            replaced,
        )
        return IndexOutcome(document=enriched, replaced=replaced, failed_stages=tuple(failed))
