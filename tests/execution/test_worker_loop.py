"""Tests for QueueWorkerLoop outcome handling."""

import signal
import threading
import time

import pytest

from cdfsync.core.errors import ImportFailureError, ImportValidationError, SyncError
from cdfsync.execution.queue import ItemOutcome, WorkQueue
from cdfsync.execution.worker import QueueWorkerLoop, WorkerStats


# ── Helpers ─────────────────────────────────────────────────────────


def _returning(outcome):
    def processor(data):
        return outcome

    return processor


def _raising(exc):
    def processor(data):
        raise exc

    return processor


@pytest.fixture
def queue(conn):
    q = WorkQueue(conn, "cdf_export")
    q.create_item({"uuid": "a"})
    return q


# ── Outcomes ────────────────────────────────────────────────────────


class TestOutcomes:
    @pytest.mark.parametrize("outcome", [ItemOutcome.SUCCESS, ItemOutcome.DROP])
    def test_success_and_drop_delete_item(self, queue, outcome):
        loop = QueueWorkerLoop(queue, _returning(outcome))
        assert loop.run_once() == 1
        assert queue.number_of_items() == 0

    def test_retry_releases_item(self, queue):
        loop = QueueWorkerLoop(queue, _returning(ItemOutcome.RETRY), retry_delay=0)
        loop.run_until_empty()
        assert queue.number_of_items() == 1
        assert queue.items()[0].expire == 0
        assert loop.get_stats().total_retried == 1

    def test_retry_delay_hides_item(self, queue):
        loop = QueueWorkerLoop(queue, _returning(ItemOutcome.RETRY), retry_delay=30)
        before = time.time()
        loop.run_once()
        assert queue.items()[0].expire >= before + 30
        assert queue.claim_item() is None

    def test_retryable_error_releases_item(self, queue):
        loop = QueueWorkerLoop(queue, _raising(ImportValidationError("missing", uuids=["z"])))
        item = queue.claim_item()
        queue.release_item(item)
        assert loop.process_item(item) is ItemOutcome.RETRY
        assert queue.number_of_items() == 1

    def test_non_retryable_error_drops_item(self, queue):
        loop = QueueWorkerLoop(queue, _raising(SyncError("fatal")))
        loop.run_once()
        assert queue.number_of_items() == 0
        stats = loop.get_stats()
        assert stats.total_failed == 1
        assert stats.total_dropped == 1

    @pytest.mark.parametrize("stalled, remaining", [(False, 0), (True, 1)])
    def test_import_failure_dropped_unless_stalled(self, queue, stalled, remaining):
        loop = QueueWorkerLoop(queue, _raising(ImportFailureError(unprocessed=["a"], stalled=stalled)))
        loop.run_once()
        assert queue.number_of_items() == remaining

    def test_unexpected_error_is_retried(self, queue):
        loop = QueueWorkerLoop(queue, _raising(RuntimeError("bug")))
        loop.run_once()
        assert queue.number_of_items() == 1
        assert loop.get_stats().total_failed == 1


# ── Loop control ────────────────────────────────────────────────────


class TestLoopControl:
    def test_run_until_empty_bounded_by_initial_size(self, queue):
        queue.create_item({"uuid": "b"})
        calls = []

        def processor(data):
            calls.append(data["uuid"])
            return ItemOutcome.RETRY

        loop = QueueWorkerLoop(queue, processor)
        assert loop.run_until_empty() == 2
        assert len(calls) == 2

    @pytest.mark.parametrize("retry_delay", [0, 5.0])
    def test_failing_item_does_not_starve_queue(self, queue, retry_delay):
        queue.create_item({"uuid": "b"})
        attempts = []

        def processor(data):
            attempts.append(data["uuid"])
            return ItemOutcome.RETRY if data["uuid"] == "a" else ItemOutcome.SUCCESS

        loop = QueueWorkerLoop(queue, processor, retry_delay=retry_delay)
        assert loop.run_once() == 2
        assert attempts == ["a", "b"]
        assert [item.data for item in queue.items()] == [{"uuid": "a"}]
        assert loop.get_stats().total_retried == 1

    def test_start_waits_when_only_retrying(self, queue, monkeypatch):
        monkeypatch.setattr(signal, "signal", lambda *args: None)
        attempts = []

        def processor(data):
            attempts.append(data)
            return ItemOutcome.RETRY

        loop = QueueWorkerLoop(queue, processor, poll_interval=0.05, batch_size=1, retry_delay=0)
        timer = threading.Timer(0.12, loop.stop)
        timer.start()
        loop.start()
        timer.join()
        assert 1 <= len(attempts) <= 4

    def test_run_once_respects_batch_size(self, queue):
        queue.create_item({"uuid": "b"})
        loop = QueueWorkerLoop(queue, _returning(ItemOutcome.SUCCESS), batch_size=1)
        assert loop.run_once() == 1
        assert queue.number_of_items() == 1

    def test_processor_receives_item_data(self, queue):
        seen = []
        loop = QueueWorkerLoop(queue, lambda data: seen.append(data) or ItemOutcome.SUCCESS)
        loop.run_until_empty()
        assert seen == [{"uuid": "a"}]

    def test_start_returns_after_stop(self, queue, monkeypatch):
        monkeypatch.setattr(signal, "signal", lambda *args: None)
        loop = QueueWorkerLoop(queue, _returning(ItemOutcome.SUCCESS), poll_interval=0.01)
        timer = threading.Timer(0.05, loop.stop)
        timer.start()
        loop.start()
        timer.join()
        assert loop.get_stats().total_succeeded == 1

    def test_from_settings(self, queue, settings):
        settings = settings.model_copy(update={"queue_lease_time": 120, "poll_interval": 0.5, "batch_size": 1})
        queue.create_item({"uuid": "b"})
        loop = QueueWorkerLoop.from_settings(queue, _returning(ItemOutcome.RETRY), settings)
        before = time.time()
        assert loop.run_once() == 1
        retried, waiting = queue.items()
        assert before + 0.5 <= retried.expire < before + 120
        assert waiting.expire == 0

    def test_worker_id(self, queue):
        assert QueueWorkerLoop(queue, _returning(ItemOutcome.SUCCESS)).worker_id.startswith("cdf_export-")
        assert QueueWorkerLoop(queue, _returning(ItemOutcome.SUCCESS), worker_id="w1").worker_id == "w1"


class TestWorkerStats:
    def test_to_dict(self):
        d = WorkerStats(total_claimed=3).to_dict()
        assert d["total_claimed"] == 3
        assert d["last_poll_at"] is None
