"""Unit tests for in-process search analytics."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from legal_search.service_layer.analytics import SearchAnalytics, TopQuery


def test_empty_snapshot() -> None:
    snapshot = SearchAnalytics().snapshot()

    assert snapshot.total_searches == 0
    assert snapshot.average_processing_time == 0.0
    assert snapshot.p95_processing_time == 0.0
    assert snapshot.top_queries == []


def test_counts_failures_and_zero_results() -> None:
    analytics = SearchAnalytics()
    analytics.record("lease", total=3, processing_time=2.0)
    analytics.record("missing", total=0, processing_time=1.0)
    analytics.record("lease", total=0, processing_time=9.0, success=False)

    snapshot = analytics.snapshot()

    assert snapshot.total_searches == 3
    assert snapshot.failed_searches == 1
    assert snapshot.zero_result_searches == 1
    assert snapshot.average_processing_time == pytest.approx(1.5)


def test_p95_uses_nearest_rank() -> None:
    analytics = SearchAnalytics()
    for value in range(1, 21):
        analytics.record("q", total=1, processing_time=float(value))

    assert analytics.snapshot().p95_processing_time == 19.0


def test_top_queries_order_by_count_then_text() -> None:
    analytics = SearchAnalytics(top_n=2)
    for query in ("Lease", "lease", "合同", "合同", "arbitration"):
        analytics.record(query, total=1, processing_time=1.0)
    analytics.record("   ", total=1, processing_time=1.0)

    assert analytics.snapshot().top_queries == [TopQuery(query="lease", count=2), TopQuery(query="合同", count=2)]


def test_history_window_bounds_aggregates_not_totals() -> None:
    analytics = SearchAnalytics(max_history=3)
    for idx in range(5):
        analytics.record(f"q{idx}", total=1, processing_time=float(idx))

    snapshot = analytics.snapshot()

    assert snapshot.total_searches == 5
    assert [top.query for top in snapshot.top_queries] == ["q2", "q3", "q4"]
    assert snapshot.average_processing_time == pytest.approx(3.0)


def test_reset_clears_everything() -> None:
    analytics = SearchAnalytics()
    analytics.record("lease", total=1, processing_time=1.0)

    analytics.reset()

    assert analytics.snapshot().total_searches == 0


def test_concurrent_recording_is_exact() -> None:
    analytics = SearchAnalytics(max_history=10_000)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda idx: analytics.record("q", total=idx % 2, processing_time=1.0), range(400)))

    snapshot = analytics.snapshot()
    assert snapshot.total_searches == 400
    assert snapshot.zero_result_searches == 200


def test_rejects_empty_history() -> None:
    with pytest.raises(ValueError):
        SearchAnalytics(max_history=0)
