"""In-process search analytics: volumes, latency percentiles and top queries."""

from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime, timezone
import math
import threading

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class SearchEvent:
    query: str
    total: int
    processing_time: float
    success: bool
    recorded_at: datetime


class TopQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    count: int


class AnalyticsSnapshot(BaseModel):
    """Aggregates over the retained search history."""

    model_config = ConfigDict(frozen=True)

    total_searches: int = 0
    failed_searches: int = 0
    zero_result_searches: int = 0
    average_processing_time: float = 0.0
    p95_processing_time: float = 0.0
    top_queries: list[TopQuery] = Field(default_factory=list)


class SearchAnalytics:
    """Thread-safe recorder with a bounded history window.

    Totals cover every recorded search; timing and top-query aggregates cover
    only the last ``max_history`` events.
    """

    def __init__(self, *, max_history: int = 1000, top_n: int = 10) -> None:
        if max_history < 1:
            raise ValueError("max_history must be >= 1")
        self._lock = threading.Lock()
        self._events: deque[SearchEvent] = deque(maxlen=max_history)
        self._top_n = top_n
        self._total = 0
        self._failed = 0
        self._zero_results = 0

    def record(self, query: str, *, total: int, processing_time: float, success: bool = True) -> None:
        event = SearchEvent(
            query=query.strip(),
            total=total,
            processing_time=processing_time,
            success=success,
            recorded_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._events.append(event)
            self._total += 1
            if not success:
                self._failed += 1
            elif total == 0:
                self._zero_results += 1

    def snapshot(self) -> AnalyticsSnapshot:
        with self._lock:
            events = list(self._events)
            total, failed, zero = self._total, self._failed, self._zero_results

        timings = sorted(event.processing_time for event in events if event.success)
        average = sum(timings) / len(timings) if timings else 0.0
        p95 = timings[max(math.ceil(0.95 * len(timings)) - 1, 0)] if timings else 0.0

        counts = Counter(event.query.lower() for event in events if event.query)
        top = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[: self._top_n]
        return AnalyticsSnapshot(
            total_searches=total,
            failed_searches=failed,
            zero_result_searches=zero,
            average_processing_time=average,
            p95_processing_time=p95,
            top_queries=[TopQuery(query=query, count=count) for query, count in top],
        )

    def reset(self) -> None:
        with self._lock:
            self._events.clear()
            self._total = self._failed = self._zero_results = 0
