"""Unit tests for corpus statistics and BM25 helpers."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from legal_search.search.stats import FieldLengthStats, TermStatistics, bm25, calculate_idf


DOC_A = ("document", "a")
DOC_B = ("document", "b")


def test_calculate_idf_rewards_rare_terms() -> None:
    idf_rare = calculate_idf(doc_freq=1, total_docs=10)
    idf_common = calculate_idf(doc_freq=5, total_docs=10)

    assert idf_rare > idf_common > 0


def test_calculate_idf_stays_positive_for_ubiquitous_terms() -> None:
    assert calculate_idf(doc_freq=3, total_docs=3) > 0
    assert calculate_idf(doc_freq=0, total_docs=0) == 0.0


def test_bm25_saturates_with_term_frequency() -> None:
    tf_one = bm25(1, doc_length=100, avg_doc_length=80)
    tf_three = bm25(3, doc_length=100, avg_doc_length=80)
    tf_thirty = bm25(30, doc_length=100, avg_doc_length=80)

    assert tf_thirty > tf_three > tf_one
    assert tf_thirty < 2.5


def test_bm25_penalizes_long_documents_up_to_a_cap() -> None:
    short = bm25(2, doc_length=10, avg_doc_length=50)
    long = bm25(2, doc_length=200, avg_doc_length=50)
    very_long = bm25(2, doc_length=2000, avg_doc_length=50)

    assert short > long
    assert long == very_long
    assert bm25(0, doc_length=10, avg_doc_length=10) == 0.0


def test_field_length_stats_average() -> None:
    assert FieldLengthStats(total_terms=150, document_count=2).average_length == 75
    assert FieldLengthStats(total_terms=0, document_count=0).average_length == 0.0


def test_add_document_tracks_frequency_and_length() -> None:
    stats = TermStatistics()
    stats.add_document(DOC_A, {"contract": 2, "party": 1})
    stats.add_document(DOC_B, {"contract": 1})

    assert stats.document_count == 2
    assert stats.document_frequency("contract") == 2
    assert stats.document_frequency("party") == 1
    assert stats.document_length(DOC_A) == 3
    assert stats.length_stats() == FieldLengthStats(total_terms=4, document_count=2)
    assert DOC_A in stats


def test_add_document_replaces_previous_counts() -> None:
    stats = TermStatistics()
    stats.add_document(DOC_A, {"alpha": 1})
    stats.add_document(DOC_A, {"beta": 3})

    assert stats.document_count == 1
    assert stats.document_frequency("alpha") == 0
    assert stats.document_frequency("beta") == 1
    assert stats.length_stats().total_terms == 3


def test_remove_document_restores_counts() -> None:
    stats = TermStatistics.from_documents([(DOC_A, {"alpha": 1}), (DOC_B, {"alpha": 2, "beta": 1})])

    assert stats.remove_document(DOC_B) is True
    assert stats.remove_document(DOC_B) is False
    assert stats.document_frequency("alpha") == 1
    assert stats.document_frequency("beta") == 0
    assert stats.length_stats() == FieldLengthStats(total_terms=1, document_count=1)


def test_idf_for_document_counts_new_document_once() -> None:
    stats = TermStatistics.from_documents([(DOC_A, {"alpha": 1})])

    weights = stats.idf_for_document(DOC_B, {"alpha", "beta"})

    assert weights["alpha"] == calculate_idf(2, 2)
    assert weights["beta"] == calculate_idf(1, 2)


def test_idf_for_document_is_stable_across_reindexing() -> None:
    stats = TermStatistics.from_documents([(DOC_A, {"alpha": 1})])
    before = stats.idf_for_document(DOC_B, {"alpha", "beta"})

    stats.add_document(DOC_B, {"alpha": 1, "beta": 1})
    after = stats.idf_for_document(DOC_B, {"alpha", "beta"})

    assert before == after


def test_clear_resets_everything() -> None:
    stats = TermStatistics.from_documents([(DOC_A, {"alpha": 1})])
    stats.clear()

    assert stats.document_count == 0
    assert stats.idf("alpha") == 0.0
    assert stats.length_stats().total_terms == 0


def test_concurrent_updates_keep_counts_exact() -> None:
    stats = TermStatistics()

    def register(idx: int) -> None:
        stats.add_document(("document", str(idx)), {"shared": 1, f"own-{idx}": 2})

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(register, range(200)))

    assert stats.document_count == 200
    assert stats.document_frequency("shared") == 200
    assert stats.length_stats().total_terms == 600
