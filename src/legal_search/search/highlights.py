"""Highlight fragments with sentence-boundary awareness.

Fragments are cut around term occurrences, widened to the nearest sentence
boundary (Latin or CJK punctuation) when one is close, and report the match
spans relative to the fragment so callers can render their own markup.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import re
from typing import Any


SENTENCE_END_PATTERN = re.compile(r"[.!?]\s+|[。！？；]\s*|\n+")
WORD_BOUNDARY_PATTERN = re.compile(r"\s+")


@dataclass(frozen=True)
class HighlightFragment:
    text: str
    matches: tuple[tuple[int, int], ...]

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "matches": [list(span) for span in self.matches]}


def find_sentence_start(text: str, position: int, max_lookback: int = 75) -> int:
    """Find the start of the sentence containing ``position``.

    Falls back to a word boundary, then to ``position - max_lookback``.
    """
    if position <= 0:
        return 0

    start_search = max(0, position - max_lookback)
    search_text = text[start_search:position]

    matches = list(SENTENCE_END_PATTERN.finditer(search_text))
    if matches:
        return start_search + matches[-1].end()

    if start_search == 0:
        return 0

    words = list(WORD_BOUNDARY_PATTERN.finditer(search_text))
    if words:
        return start_search + words[0].end()

    return start_search


def find_sentence_end(text: str, position: int, max_lookahead: int = 75) -> int:
    """Find the end of the sentence containing ``position``."""
    if position >= len(text):
        return len(text)

    end_search = min(len(text), position + max_lookahead)
    search_text = text[position:end_search]

    match = SENTENCE_END_PATTERN.search(search_text)
    if match:
        return position + match.start() + len(match.group(0).rstrip())

    if end_search == len(text):
        return end_search

    words = list(WORD_BOUNDARY_PATTERN.finditer(search_text))
    if words:
        return position + words[-1].start()

    return end_search


def find_term_spans(text: str, terms: Sequence[str]) -> list[tuple[int, int]]:
    """Return case-insensitive occurrences of ``terms``, overlaps merged."""
    spans: list[tuple[int, int]] = []
    for term in {term for term in terms if term}:
        pattern = re.compile(re.escape(term), re.IGNORECASE)
        spans.extend((match.start(), match.end()) for match in pattern.finditer(text))
    spans.sort()

    merged: list[tuple[int, int]] = []
    for start, end in spans:
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def build_highlights(
    text: str,
    query_terms: Sequence[str],
    max_fragments: int = 3,
    fragment_chars: int = 150,
) -> list[HighlightFragment]:
    """Build up to ``max_fragments`` fragments of at most ``fragment_chars``.

    Occurrences that fall inside an already emitted fragment are reported as
    extra spans of that fragment instead of opening a new one.
    """
    if not text or not query_terms or max_fragments <= 0:
        return []

    spans = find_term_spans(text, query_terms)
    fragments: list[HighlightFragment] = []
    context = max(fragment_chars // 2, 1)
    idx = 0
    while idx < len(spans) and len(fragments) < max_fragments:
        match_start, match_end = spans[idx]
        start = find_sentence_start(text, match_start, max_lookback=context)
        end = find_sentence_end(text, match_end, max_lookahead=context)
        if end - start > fragment_chars:
            center = (match_start + match_end) // 2
            start = max(0, min(center - fragment_chars // 2, match_start))
            end = min(len(text), max(start + fragment_chars, match_end))
            start = max(0, end - fragment_chars) if end - start > fragment_chars else start

        covered: list[tuple[int, int]] = []
        while idx < len(spans) and spans[idx][0] >= start and spans[idx][1] <= end:
            covered.append((spans[idx][0] - start, spans[idx][1] - start))
            idx += 1
        if not covered:
            covered.append((match_start - start, min(match_end, end) - start))
            idx += 1

        raw = text[start:end]
        stripped = raw.lstrip()
        offset = len(raw) - len(stripped)
        fragment = stripped.rstrip()
        fragments.append(
            HighlightFragment(
                text=fragment,
                matches=tuple((max(s - offset, 0), min(e - offset, len(fragment))) for s, e in covered),
            )
        )
    return fragments
