"""Prefix suggestions drawn from indexed titles, title words, tags and keywords."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator

from legal_search.search.analyzers import MixedScriptTokenizer
from legal_search.search.search_index import SearchIndex
from legal_search.search.storage import IndexedDocument


class SuggestionEngine:
    """Rank completions by how many indexed entries contribute them."""

    def __init__(self, index: SearchIndex, *, default_limit: int = 10) -> None:
        self.index = index
        self.default_limit = default_limit
        self._tokenizer = MixedScriptTokenizer()

    def suggest(self, partial: str, limit: int | None = None) -> list[str]:
        prefix = partial.strip().lower()
        limit = self.default_limit if limit is None else limit
        if not prefix or limit <= 0:
            return []

        contributors: dict[str, set[tuple[str, str]]] = {}
        spellings: dict[str, Counter[str]] = {}
        for record in self.index.records():
            for candidate in self._candidates(record):
                normalized = candidate.lower()
                if not normalized.startswith(prefix):
                    continue
                contributors.setdefault(normalized, set()).add(record.key)
                spellings.setdefault(normalized, Counter())[candidate] += 1

        ranked = sorted(contributors, key=lambda item: (-len(contributors[item]), len(item), item))
        return [self._display_form(spellings[item]) for item in ranked[:limit]]

    def _candidates(self, record: IndexedDocument) -> Iterator[str]:
        document = record.document
        title = document.title.strip()
        if title:
            yield title
            for token in self._tokenizer(title):
                if len(token.text) > 1 and token.text != title:
                    yield token.text
        yield from (tag for tag in document.tags if tag)
        keywords = document.metadata.get("keywords") or []
        if isinstance(keywords, list):
            yield from (str(keyword) for keyword in keywords if keyword)

    @staticmethod
    def _display_form(spellings: Counter[str]) -> str:
        return min(spellings.items(), key=lambda item: (-item[1], item[0]))[0]
