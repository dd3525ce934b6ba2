"""Corpus statistics and BM25-style weighting helpers.

``calculate_idf`` and ``bm25`` stay independent of any storage backend.
``TermStatistics`` owns the running corpus model: document frequency per term
plus per-document term counts and lengths. Every mutation goes through one
lock, so concurrent indexing keeps the counts exact.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import math
import threading


@dataclass(frozen=True)
class FieldLengthStats:
    """Aggregated term statistics for the indexed corpus."""

    total_terms: int
    document_count: int

    @property
    def average_length(self) -> float:
        if self.document_count == 0:
            return 0.0
        return self.total_terms / self.document_count


def calculate_idf(doc_freq: int, total_docs: int, *, floor: float = 1e-6) -> float:
    """Return inverse document frequency with small-sample smoothing.

    The floor keeps IDF positive, so a term present in every document of a
    tiny corpus still contributes a small weight instead of a negative one.
    """

    if total_docs <= 0:
        return 0.0
    df = max(0, min(doc_freq, total_docs))
    numerator = total_docs - df + 0.5
    denominator = df + 0.5
    ratio = max(numerator / denominator, floor)
    raw_idf = math.log(ratio + floor) + 1.0
    return max(raw_idf, floor)


def bm25(tf: float, doc_length: int, avg_doc_length: float, *, k1: float = 1.5, b: float = 0.75) -> float:
    """Compute the saturated BM25 term weight without IDF.

    The length ratio is capped at 4x the average so very long filings are
    not buried below short notes.
    """

    if tf <= 0:
        return 0.0
    max_length_ratio = 4.0
    raw_ratio = doc_length / max(avg_doc_length, 1e-9)
    normalized_length = min(raw_ratio, max_length_ratio)
    denominator = tf + k1 * (1 - b + b * normalized_length)
    return (tf * (k1 + 1)) / denominator


class TermStatistics:
    """Lock-protected document-frequency model keyed by index key."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._doc_freq: Counter[str] = Counter()
        self._doc_terms: dict[tuple[str, str], dict[str, int]] = {}
        self._doc_lengths: dict[tuple[str, str], int] = {}
        self._total_terms = 0

    @classmethod
    def from_documents(cls, entries: Iterable[tuple[tuple[str, str], Mapping[str, int]]]) -> TermStatistics:
        """Rebuild statistics from ``(index_key, term_frequencies)`` pairs."""
        stats = cls()
        for key, frequencies in entries:
            stats.add_document(key, frequencies)
        return stats

    def add_document(self, key: tuple[str, str], term_frequencies: Mapping[str, int]) -> None:
        """Register a document, replacing any earlier counts for the same key."""
        frequencies = {term: count for term, count in term_frequencies.items() if count > 0}
        with self._lock:
            self._discard(key)
            for term in frequencies:
                self._doc_freq[term] += 1
            self._doc_terms[key] = frequencies
            length = sum(frequencies.values())
            self._doc_lengths[key] = length
            self._total_terms += length

    def remove_document(self, key: tuple[str, str]) -> bool:
        with self._lock:
            return self._discard(key)

    def _discard(self, key: tuple[str, str]) -> bool:
        previous = self._doc_terms.pop(key, None)
        if previous is None:
            return False
        for term in previous:
            self._doc_freq[term] -= 1
            if self._doc_freq[term] <= 0:
                del self._doc_freq[term]
        self._total_terms -= self._doc_lengths.pop(key, 0)
        return True

    def clear(self) -> None:
        with self._lock:
            self._doc_freq.clear()
            self._doc_terms.clear()
            self._doc_lengths.clear()
            self._total_terms = 0

    @property
    def document_count(self) -> int:
        with self._lock:
            return len(self._doc_terms)

    def document_frequency(self, term: str) -> int:
        with self._lock:
            return self._doc_freq.get(term, 0)

    def idf(self, term: str) -> float:
        with self._lock:
            return calculate_idf(self._doc_freq.get(term, 0), len(self._doc_terms))

    def idf_for_document(self, key: tuple[str, str], terms: Iterable[str]) -> dict[str, float]:
        """Return IDF per term as if ``key`` were registered with ``terms``.

        A prior version of the same document is replaced rather than counted
        twice, so re-indexing unchanged content yields the same weights.
        """
        with self._lock:
            prior = self._doc_terms.get(key)
            total = len(self._doc_terms) + (0 if prior is not None else 1)
            weights: dict[str, float] = {}
            for term in terms:
                df = self._doc_freq.get(term, 0)
                if prior is None or term not in prior:
                    df += 1
                weights[term] = calculate_idf(df, total)
        return weights

    def length_stats(self) -> FieldLengthStats:
        with self._lock:
            return FieldLengthStats(total_terms=self._total_terms, document_count=len(self._doc_terms))

    def document_length(self, key: tuple[str, str]) -> int:
        with self._lock:
            return self._doc_lengths.get(key, 0)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._doc_terms
