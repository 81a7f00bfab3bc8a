"""Queue worker loop: claim an item, process it, apply the outcome.

The loop polls one :class:`WorkQueue`, hands each claimed item to a
processor (the export or import worker) and maps the result onto the
queue:

    ItemOutcome.SUCCESS / DROP   → item deleted
    ItemOutcome.RETRY            → item released, claimable after retry_delay
    retryable SyncError          → released
    non-retryable SyncError      → deleted, logged as an error
    any other exception          → released, logged with traceback

A crashed worker never gets to release its item; the lease expires and
another worker claims it.

Usage::

    loop = QueueWorkerLoop(WorkQueue(conn, "cdf_export"), export_worker)
    loop.run_until_empty()   # drain (cron / tests)
    loop.start()             # blocking, runs until SIGINT/SIGTERM
"""

from __future__ import annotations

import logging
import signal
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from cdfsync.core.errors import SyncError
from cdfsync.core.logging import LogContext

from .queue import ItemOutcome, QueueItem, WorkQueue

if TYPE_CHECKING:
    from cdfsync.core.settings import CdfSyncSettings

logger = logging.getLogger(__name__)

Processor = Callable[[dict[str, Any]], ItemOutcome]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class WorkerStats:
    """Aggregate statistics for a worker loop."""

    total_claimed: int = 0
    total_succeeded: int = 0
    total_dropped: int = 0
    total_retried: int = 0
    total_failed: int = 0
    uptime_seconds: float = 0
    last_poll_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_claimed": self.total_claimed,
            "total_succeeded": self.total_succeeded,
            "total_dropped": self.total_dropped,
            "total_retried": self.total_retried,
            "total_failed": self.total_failed,
            "uptime_seconds": self.uptime_seconds,
            "last_poll_at": self.last_poll_at.isoformat() if self.last_poll_at else None,
        }


class QueueWorkerLoop:
    """Single-threaded poll loop over one work queue."""

    def __init__(
        self,
        queue: WorkQueue,
        processor: Processor,
        *,
        lease_time: float = 3600,
        poll_interval: float = 5.0,
        batch_size: int = 50,
        retry_delay: float | None = None,
        worker_id: str | None = None,
    ):
        """
        Args:
            queue: Queue to poll
            processor: Callable taking the item's data and returning an outcome
            lease_time: Visibility timeout for claimed items, in seconds
            poll_interval: Seconds to sleep when the queue is empty
            batch_size: Max items processed per poll
            retry_delay: Seconds a retried item stays invisible. Defaults to
                ``poll_interval``.
            worker_id: Custom identifier. Auto-generated if ``None``.
        """
        self._queue = queue
        self._processor = processor
        self._lease_time = lease_time
        self._poll_interval = poll_interval
        self._batch_size = batch_size
        self._retry_delay = poll_interval if retry_delay is None else retry_delay
        self._worker_id = worker_id or f"{queue.name}-{uuid.uuid4().hex[:8]}"
        self._shutdown = threading.Event()
        self._started_at = _utcnow()
        self._stats = WorkerStats()

    @classmethod
    def from_settings(
        cls, queue: WorkQueue, processor: Processor, settings: CdfSyncSettings, **kwargs: Any
    ) -> QueueWorkerLoop:
        """Build a loop using the lease, poll and batch settings."""
        kwargs.setdefault("lease_time", settings.queue_lease_time)
        kwargs.setdefault("poll_interval", settings.poll_interval)
        kwargs.setdefault("batch_size", settings.batch_size)
        return cls(queue, processor, **kwargs)

    @property
    def worker_id(self) -> str:
        return self._worker_id

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        """Start the poll loop (blocking). Installs signal handlers for
        graceful shutdown on SIGINT / SIGTERM.
        """
        logger.info(
            "Worker %s starting on queue %s, polling every %.1fs, batch=%d",
            self._worker_id,
            self._queue.name,
            self._poll_interval,
            self._batch_size,
        )

        try:
            signal.signal(signal.SIGINT, self._handle_signal)
            signal.signal(signal.SIGTERM, self._handle_signal)
        except (ValueError, OSError):
            pass  # not in main thread

        while not self._shutdown.is_set():
            completed = self._stats.total_succeeded + self._stats.total_dropped
            try:
                processed = self.run_once()
            except Exception:
                logger.exception("Worker %s poll error", self._worker_id)
                processed = 0
            completed = self._stats.total_succeeded + self._stats.total_dropped - completed
            # A full batch of retries is not progress.
            if processed < self._batch_size or completed == 0:
                self._shutdown.wait(self._poll_interval)

        logger.info(
            "Worker %s stopped (succeeded=%d, retried=%d, dropped=%d, failed=%d)",
            self._worker_id,
            self._stats.total_succeeded,
            self._stats.total_retried,
            self._stats.total_dropped,
            self._stats.total_failed,
        )

    def stop(self) -> None:
        """Request graceful shutdown."""
        logger.info("Worker %s shutting down", self._worker_id)
        self._shutdown.set()

    def get_stats(self) -> WorkerStats:
        """Return current worker statistics."""
        self._stats.uptime_seconds = (_utcnow() - self._started_at).total_seconds()
        return self._stats

    # ------------------------------------------------------------------ #
    # Processing
    # ------------------------------------------------------------------ #

    def run_once(self) -> int:
        """Claim and process up to ``batch_size`` items. Returns count processed.

        Each item is attempted at most once per call: retried items keep
        their lease until the poll ends, then are released together.
        """
        processed = 0
        retried: list[QueueItem] = []
        self._stats.last_poll_at = _utcnow()
        try:
            while processed < self._batch_size and not self._shutdown.is_set():
                item = self._queue.claim_item(self._lease_time)
                if item is None:
                    break
                self._stats.total_claimed += 1
                if self.process_item(item, release=False) is ItemOutcome.RETRY:
                    retried.append(item)
                processed += 1
        finally:
            for item in retried:
                self._queue.release_item(item, self._retry_delay)
        return processed

    def run_until_empty(self, max_items: int | None = None) -> int:
        """
        Process items until no claimable item is left.

        With ``retry_delay=0`` a released item is claimable again at once, so
        ``max_items`` (default: the queue size when the call starts) bounds
        how many attempts are made.
        """
        limit = self._queue.number_of_items() if max_items is None else max_items
        processed = 0
        while processed < limit:
            item = self._queue.claim_item(self._lease_time)
            if item is None:
                break
            self._stats.total_claimed += 1
            self.process_item(item)
            processed += 1
        return processed

    def process_item(self, item: QueueItem, *, release: bool = True) -> ItemOutcome:
        """Run the processor on one claimed item and apply the outcome.

        With ``release=False`` a retried item is left claimed; the caller
        releases it.
        """
        with LogContext(queue=self._queue.name, item_id=item.item_id):
            try:
                outcome = self._processor(item.data)
            except SyncError as exc:
                if exc.retryable:
                    logger.warning("Worker %s item %s will be retried: %s", self._worker_id, item.item_id, exc)
                    outcome = ItemOutcome.RETRY
                else:
                    logger.error("Worker %s item %s dropped: %s", self._worker_id, item.item_id, exc)
                    self._stats.total_failed += 1
                    outcome = ItemOutcome.DROP
            except Exception:
                logger.exception("Worker %s item %s failed", self._worker_id, item.item_id)
                self._stats.total_failed += 1
                outcome = ItemOutcome.RETRY

            self._apply(item, outcome, release)
            return outcome

    def _apply(self, item: QueueItem, outcome: ItemOutcome, release: bool = True) -> None:
        if outcome is ItemOutcome.RETRY:
            if release:
                self._queue.release_item(item, self._retry_delay)
            self._stats.total_retried += 1
            return
        self._queue.delete_item(item)
        if outcome is ItemOutcome.SUCCESS:
            self._stats.total_succeeded += 1
        else:
            self._stats.total_dropped += 1

    def _handle_signal(self, signum, frame):
        logger.info("Worker %s received signal %s, shutting down", self._worker_id, signum)
        self.stop()
