"""Text analysis shared by indexing and querying.

An analyzer is a tokenizer followed by a chain of filters, each consuming and
producing a stream of ``Token`` objects. Documents and queries go through the
same chain so a query term can only match what indexing produced.

Chinese text is not segmented with a dictionary. Each run of CJK ideographs
becomes overlapping two-character terms. The characters of longer runs are
also counted on their own so a one-character query can still match. Latin
words are lowercased and stemmed. Emails and dates are matched before
anything else so their punctuation is kept.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, MutableMapping, Sequence
from dataclasses import dataclass, field, replace
import re
from typing import Any, Protocol


CJK_CHARS = "\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff"

EMAIL_PATTERN = r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"
DATE_PATTERN = r"\d{4}-\d{1,2}-\d{1,2}|\d{4}/\d{1,2}/\d{1,2}|\d{4}年\d{1,2}月\d{1,2}日"
PHONE_PATTERN = r"(?<!\d)1[3-9]\d{9}(?!\d)"

_TOKEN_PATTERN = (
    rf"(?P<entity>{EMAIL_PATTERN}|{DATE_PATTERN})"
    rf"|(?P<cjk>[{CJK_CHARS}]+)"
    rf"|(?P<word>(?:(?![{CJK_CHARS}])[\w'])+)"
)

ENGLISH_STOPWORDS = tuple(
    """
    a an and are as at be been being but by did do does for had has have if in
    into is it no not of on or such that the their then there these they this
    to was were will with
    """.split()
)

CHINESE_STOPWORDS = tuple(
    """
    的 了 在 是 我 有 和 就 不 人 都 一 个 上 也 很 到 说 要 去 你 会 着 看 好 这 那
    他 她 它 们 些 谁 几 没有 自己 什么 怎么 为什么 哪里 多少
    """.split()
)

DEFAULT_STOPWORDS = ENGLISH_STOPWORDS + CHINESE_STOPWORDS

_CJK_CHAR = re.compile(f"^[{CJK_CHARS}]$")


@dataclass
class Token:
    """One analyzed term and where it came from in the source text."""

    text: str
    position: int
    start_char: int
    end_char: int
    boost: float = 1.0
    attributes: MutableMapping[str, Any] = field(default_factory=dict)

    def copy_with(self, **changes: Any) -> Token:
        changes.setdefault("attributes", dict(self.attributes))
        return replace(self, **changes)

    @property
    def is_entity(self) -> bool:
        return bool(self.attributes.get("entity"))

    @property
    def is_cjk(self) -> bool:
        return self.attributes.get("script") == "cjk"


class Tokenizer(Protocol):
    def __call__(self, text: str) -> Iterator[Token]: ...


class TokenFilter(Protocol):
    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]: ...


class Analyzer(Protocol):
    def __call__(self, text: str) -> list[Token]: ...


class MixedScriptTokenizer:
    """Split text into entity, CJK-run and Latin-word tokens.

    Punctuation outside emails and dates is discarded.
    """

    def __init__(self, pattern: str = _TOKEN_PATTERN) -> None:
        self._regex = re.compile(pattern, re.UNICODE)

    def __call__(self, text: str) -> Iterator[Token]:
        for index, found in enumerate(self._regex.finditer(text)):
            kind = found.lastgroup
            if kind == "entity":
                attributes: dict[str, Any] = {"entity": True}
            elif kind == "cjk":
                attributes = {"script": "cjk"}
            else:
                attributes = {}
            yield Token(found.group(), index, found.start(), found.end(), attributes=attributes)


class LowercaseFilter:
    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            lowered = token.text.lower()
            yield token if token.is_cjk or lowered == token.text else token.copy_with(text=lowered)


class CJKBigramFilter:
    """Split CJK runs into overlapping character bigrams.

    Bigrams are taken over the whole run, so words containing a common
    character such as 上诉 or 人民 stay searchable. Bigrams that are stopwords
    are removed later by ``StopFilter``. A one-character run is emitted as a
    unigram unless it is a stop character.
    """

    def __init__(self, stop_chars: Iterable[str] | None = None) -> None:
        if stop_chars is None:
            stop_chars = (word for word in CHINESE_STOPWORDS if len(word) == 1)
        self.stop_chars = frozenset(stop_chars)

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.is_cjk:
                yield from self._bigrams(token)
            else:
                yield token

    def _bigrams(self, token: Token) -> Iterator[Token]:
        run, start = token.text, token.start_char
        if len(run) == 1:
            if run not in self.stop_chars:
                yield token
            return
        for shift in range(len(run) - 1):
            yield token.copy_with(
                text=run[shift : shift + 2],
                start_char=start + shift,
                end_char=start + shift + 2,
            )


class StopFilter:
    def __init__(self, stopwords: Sequence[str] | None = None) -> None:
        self.stopwords = frozenset(word.lower() for word in (DEFAULT_STOPWORDS if stopwords is None else stopwords))

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        return (token for token in tokens if token.text.lower() not in self.stopwords)


# (suffix, replacement) for derivational endings, longest first
_DERIVATIONAL_SUFFIXES = (
    ("ization", "ize"),
    ("ational", "ate"),
    ("fulness", "ful"),
    ("ousness", "ous"),
    ("iveness", "ive"),
    ("tional", "tion"),
    ("biliti", "ble"),
    ("lessli", "less"),
    ("entli", "ent"),
    ("izer", "ize"),
    ("ousli", "ous"),
    ("ness", ""),
    ("ment", ""),
)

_INFLECTIONAL_SUFFIXES = ("ingly", "edly", "ing", "ies", "ed", "ly", "es", "s")

_VERBAL_SUFFIXES = frozenset({"ingly", "edly", "ing", "ed"})

_MIN_STEM = 3

_LATIN_WORD = re.compile(r"^[a-z]+$")


def _undouble(stem: str) -> str:
    # committed -> commit, but filled -> fill
    if len(stem) > _MIN_STEM and stem[-1] == stem[-2] and stem[-1] not in "aeiouylsz":
        return stem[:-1]
    return stem


def _strip_inflection(word: str) -> str:
    for suffix in _INFLECTIONAL_SUFFIXES:
        stem = word[: -len(suffix)]
        if not word.endswith(suffix) or len(stem) < _MIN_STEM:
            continue
        if suffix == "ies":
            return stem + "y"
        if suffix == "es" and not stem.endswith(("s", "x", "z", "ch", "sh")):
            continue
        if suffix == "s" and stem.endswith(("s", "u")):
            # business, status
            return word
        return _undouble(stem) if suffix in _VERBAL_SUFFIXES else stem
    return word


def _strip_derivation(word: str) -> str:
    for suffix, replacement in _DERIVATIONAL_SUFFIXES:
        if word.endswith(suffix) and len(word) - len(suffix) >= _MIN_STEM:
            return word[: -len(suffix)] + replacement
    return word


def _strip_final_e(word: str) -> str:
    # file, files, filed and filing all end up as "fil"
    if word.endswith("e") and len(word) > _MIN_STEM:
        return word[:-1]
    return word


def stem_word(word: str) -> str:
    """Reduce an English word to a crude Porter-like stem.

    Inflections are removed before derivations so "agreements" and
    "agreement" land on the same stem. A trailing ``e`` is dropped last so
    "charge" and "charged" agree.
    """
    return _strip_final_e(_strip_derivation(_strip_inflection(word.lower())))


class PorterStemFilter:
    """Stem plain Latin words and pass every other token through untouched."""

    def __init__(self, stemmer: Callable[[str], str] = stem_word) -> None:
        self._stemmer = stemmer

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.is_entity or token.is_cjk or not _LATIN_WORD.match(token.text):
                yield token
            else:
                yield token.copy_with(text=self._stemmer(token.text))


class AnalyzerPipeline:
    """Run a tokenizer through a filter chain and renumber positions densely."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] = ()) -> None:
        self.tokenizer = tokenizer
        self.filters = tuple(filters)

    def __call__(self, text: str) -> list[Token]:
        stream: Iterable[Token] = self.tokenizer(text)
        for stage in self.filters:
            stream = stage(stream)
        tokens = list(stream)
        for position, token in enumerate(tokens):
            token.position = position
        return tokens


class StandardAnalyzer:
    """Tokenize, lowercase, bigram CJK runs, drop stopwords, then optionally stem."""

    def __init__(self, *, stopwords: Sequence[str] | None = None, apply_stemming: bool = True) -> None:
        vocab = tuple(DEFAULT_STOPWORDS if stopwords is None else stopwords)
        self.stop_chars = frozenset(word for word in vocab if _CJK_CHAR.match(word))
        stages: list[TokenFilter] = [
            LowercaseFilter(),
            CJKBigramFilter(self.stop_chars),
            StopFilter(vocab),
        ]
        if apply_stemming:
            stages.append(PorterStemFilter())
        self.pipeline = AnalyzerPipeline(MixedScriptTokenizer(), stages)

    def __call__(self, text: str) -> list[Token]:
        return self.pipeline(text)

    def terms(self, text: str) -> list[str]:
        """Analyzed term texts in order, duplicates kept."""
        return [token.text for token in self.pipeline(text) if token.text]

    def characters(self, text: str) -> list[str]:
        """Single CJK characters of multi-character runs, stop characters excluded.

        One-character runs are already terms of their own and are not repeated.
        """
        return [
            char
            for token in self.pipeline.tokenizer(text)
            if token.is_cjk and len(token.text) > 1
            for char in token.text
            if char not in self.stop_chars
        ]


ANALYZERS: dict[str, Callable[[], StandardAnalyzer]] = {
    "default": StandardAnalyzer,
    "nostem": lambda: StandardAnalyzer(apply_stemming=False),
}


def get_analyzer(name: str | None = None) -> StandardAnalyzer:
    """Build the analyzer registered under ``name`` (``default`` when omitted)."""
    factory = ANALYZERS.get((name or "default").lower())
    if factory is None:
        raise ValueError(f"Unknown analyzer '{name}'. Available: {sorted(ANALYZERS)}")
    return factory()
