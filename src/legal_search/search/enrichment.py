"""Enrichment stages folded into indexed document metadata.

Every stage is a pure function of its inputs. Heuristics are fixed lexicons and
patterns so the same content always yields the same enrichment.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
import re

from legal_search.domain import ExtractedEntity
from legal_search.search.analyzers import CJK_CHARS, DATE_PATTERN, EMAIL_PATTERN, PHONE_PATTERN, Token


CATEGORY_OTHER = "other"

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "contract": ("合同", "协议", "agreement", "contract"),
    "lawsuit": ("诉讼", "起诉", "lawsuit", "litigation"),
    "evidence": ("证据", "evidence", "exhibit"),
    "judgment": ("判决", "裁定", "judgment", "order"),
    "legal_opinion": ("法律意见", "legal opinion", "memorandum"),
}

POSITIVE_WORDS = ("好", "优秀", "成功", "满意", "同意", "批准", "通过", "胜诉", "good", "excellent", "success", "approved")
NEGATIVE_WORDS = ("坏", "失败", "拒绝", "反对", "问题", "错误", "败诉", "bad", "failed", "rejected", "error")

ENTITY_CONFIDENCE: dict[str, float] = {"email": 0.95, "phone": 0.9, "article": 0.9, "date": 0.85, "amount": 0.8}

_CURRENCY = r"(?:元|人民币|美元|欧元)"
AMOUNT_PATTERN = rf"(?<![\d.,])\d[\d,]*(?:\.\d+)?\s*(?:(?:百万|亿|万|千){_CURRENCY}?|{_CURRENCY})"
ARTICLE_PATTERN = r"第[一二三四五六七八九十百千万零〇\d]+条"

_ENTITY_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("email", re.compile(EMAIL_PATTERN)),
    ("phone", re.compile(PHONE_PATTERN)),
    ("date", re.compile(DATE_PATTERN)),
    ("amount", re.compile(AMOUNT_PATTERN)),
    ("article", re.compile(ARTICLE_PATTERN)),
)

_SENTENCE_SPLIT = re.compile(r"(?<=[。！？!?])|(?<=\.)(?=\s|$)|\n+")
_CJK_CHAR = re.compile(f"[{CJK_CHARS}]")
_LATIN_CHAR = re.compile(r"[A-Za-z]")
_LATIN_KEYWORD = re.compile(r"^[a-z]+(?: [a-z]+)*$")


def _lexicon_pattern(word: str) -> re.Pattern[str]:
    if _LATIN_KEYWORD.match(word):
        return re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)
    return re.compile(re.escape(word), re.IGNORECASE)


_CATEGORY_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    category: tuple(_lexicon_pattern(word) for word in words) for category, words in CATEGORY_KEYWORDS.items()
}
_POSITIVE_PATTERNS = tuple(_lexicon_pattern(word) for word in POSITIVE_WORDS)
_NEGATIVE_PATTERNS = tuple(_lexicon_pattern(word) for word in NEGATIVE_WORDS)


def term_frequencies(tokens: Sequence[Token]) -> Counter[str]:
    return Counter(token.text for token in tokens if token.text)


def extract_keywords(
    tokens: Sequence[Token],
    text: str,
    idf: Mapping[str, float],
    *,
    count: int = 10,
) -> list[str]:
    """Rank analyzed terms by ``tf * idf`` and return the top ``count``.

    Each stem is reported by its most frequent lowercase surface form so the
    keyword reads as a word. Ties break alphabetically on the surface form.
    """
    if count <= 0:
        return []
    frequencies: Counter[str] = Counter()
    surfaces: dict[str, Counter[str]] = {}
    for token in tokens:
        if len(token.text) < 2 or token.text.isdigit():
            continue
        frequencies[token.text] += 1
        surface = text[token.start_char : token.end_char].lower() or token.text
        surfaces.setdefault(token.text, Counter())[surface] += 1

    ranked: list[tuple[float, str]] = []
    for term, tf in frequencies.items():
        surface = min(surfaces[term].items(), key=lambda item: (-item[1], item[0]))[0]
        ranked.append((tf * idf.get(term, 1.0), surface))
    ranked.sort(key=lambda item: (-item[0], item[1]))

    keywords: list[str] = []
    for _, surface in ranked:
        if surface not in keywords:
            keywords.append(surface)
        if len(keywords) >= count:
            break
    return keywords


def split_sentences(text: str) -> list[str]:
    """Split on Latin and CJK sentence terminators and line breaks."""
    return [part.strip() for part in _SENTENCE_SPLIT.split(text) if part and part.strip()]


def generate_summary(text: str, *, sentences: int = 3, max_chars: int = 200) -> str:
    """Naive extractive summary: the first non-trivial sentences, capped."""
    candidates = [sentence for sentence in split_sentences(text) if len(sentence) >= 2]
    if not candidates:
        return ""
    summary = candidates[0][:max_chars]
    for sentence in candidates[1:sentences]:
        if len(summary) + 1 + len(sentence) > max_chars:
            break
        summary = f"{summary} {sentence}"
    return summary


def analyze_sentiment(text: str) -> str:
    """Classify as positive, negative or neutral by lexicon hit counts."""
    positive = sum(len(pattern.findall(text)) for pattern in _POSITIVE_PATTERNS)
    negative = sum(len(pattern.findall(text)) for pattern in _NEGATIVE_PATTERNS)
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def extract_entities(text: str) -> list[ExtractedEntity]:
    """Detect emails, CN mobile numbers, dates, amounts and article references.

    Entities are ordered by start offset.

    When matches overlap (a phone number used as a mailbox name), the earlier
    and longer match wins.
    """
    found: list[tuple[int, int, str, str]] = []
    for kind, pattern in _ENTITY_PATTERNS:
        found.extend((match.start(), match.end(), kind, match.group(0)) for match in pattern.finditer(text))
    found.sort(key=lambda item: (item[0], -(item[1] - item[0])))

    entities: list[ExtractedEntity] = []
    last_end = -1
    for start, end, kind, value in found:
        if start < last_end:
            continue
        entities.append(
            ExtractedEntity(type=kind, value=value, confidence=ENTITY_CONFIDENCE[kind], start=start, end=end)
        )
        last_end = end
    return entities


def _match_category(text: str) -> str | None:
    for category, patterns in _CATEGORY_PATTERNS.items():
        if any(pattern.search(text) for pattern in patterns):
            return category
    return None


def categorize(text: str, *, title: str = "", mime_type: str | None = None) -> str:
    """Assign one of the closed legal categories.

    Content keywords win. Otherwise PDFs and word-processor files fall back to
    the title keywords, images count as evidence, and everything else is
    ``other``.
    """
    category = _match_category(text)
    if category:
        return category
    mime = (mime_type or "").lower()
    if "pdf" in mime or "word" in mime:
        return _match_category(title) or CATEGORY_OTHER
    if mime.startswith("image/"):
        return "evidence"
    return CATEGORY_OTHER


def detect_language(text: str) -> str:
    """Return ``zh``, ``en`` or ``mixed`` from the script mix of ``text``."""
    cjk = len(_CJK_CHAR.findall(text))
    latin = len(_LATIN_CHAR.findall(text))
    if cjk == 0 and latin == 0:
        return "unknown"
    ratio = cjk / (cjk + latin)
    if ratio >= 0.7:
        return "zh"
    if ratio <= 0.3:
        return "en"
    return "mixed"
