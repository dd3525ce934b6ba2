"""Bounded fire-and-forget indexing queue.

Upstream CRUD flows hand documents to the queue and return immediately.
Worker tasks drain it; failures are logged and counted instead of reaching
the request that triggered them. A full queue pushes back on the producer.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any

from legal_search.domain import IndexingOptions, SearchDocument
from legal_search.errors import IndexingBackpressureError
from legal_search.observability.metrics import INDEXING_QUEUE_DEPTH


logger = logging.getLogger(__name__)

IndexHandler = Callable[[SearchDocument, IndexingOptions | None], Awaitable[Any]]


@dataclass(frozen=True)
class IndexingJob:
    document: SearchDocument
    options: IndexingOptions | None = None
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class IndexingQueue:
    """``asyncio.Queue`` of indexing jobs consumed by a fixed worker pool."""

    def __init__(self, handler: IndexHandler, *, maxsize: int = 256, workers: int = 2) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._handler = handler
        self._queue: asyncio.Queue[IndexingJob] = asyncio.Queue(maxsize=maxsize)
        self._worker_count = workers
        self._workers: list[asyncio.Task] = []
        self._processed = 0
        self._failed = 0

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "pending": self.pending,
            "processed": self._processed,
            "failed": self._failed,
            "workers": sum(1 for task in self._workers if not task.done()),
        }

    def start(self) -> None:
        """Spawn the workers on the running loop; no-op when already running."""
        if self.running:
            return
        self._workers = [
            asyncio.create_task(self._worker(idx), name=f"indexing-worker-{idx}") for idx in range(self._worker_count)
        ]
        logger.debug("Started %d indexing workers", self._worker_count)

    def submit(self, document: SearchDocument, options: IndexingOptions | None = None) -> None:
        """Enqueue without waiting; raise ``IndexingBackpressureError`` when full."""
        self.start()
        try:
            self._queue.put_nowait(IndexingJob(document=document, options=options))
        except asyncio.QueueFull as exc:
            raise IndexingBackpressureError(
                f"Indexing queue is full ({self._queue.maxsize} pending); "
                f"rejected {document.entity_type.value}:{document.entity_id}"
            ) from exc
        INDEXING_QUEUE_DEPTH.labels().set(self._queue.qsize())

    async def submit_wait(self, document: SearchDocument, options: IndexingOptions | None = None) -> None:
        """Enqueue, waiting for free space when the queue is full."""
        self.start()
        await self._queue.put(IndexingJob(document=document, options=options))
        INDEXING_QUEUE_DEPTH.labels().set(self._queue.qsize())

    async def join(self) -> None:
        """Wait until every submitted job has been handled."""
        await self._queue.join()

    async def stop(self, *, drain: bool = False) -> None:
        if drain and self.running:
            await self.join()
        for task in self._workers:
            task.cancel()
        for task in self._workers:
            with suppress(asyncio.CancelledError):
                await task
        self._workers = []
        INDEXING_QUEUE_DEPTH.labels().set(self._queue.qsize())

    async def _worker(self, idx: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._handler(job.document, job.options)
                self._processed += 1
            except Exception:
                self._failed += 1
                logger.error(
                    "Indexing worker %d failed for %s:%s",
                    idx,
                    job.document.entity_type.value,
                    job.document.entity_id,
                    exc_info=True,
                )
            finally:
                self._queue.task_done()
                INDEXING_QUEUE_DEPTH.labels().set(self._queue.qsize())
