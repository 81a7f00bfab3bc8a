"""Tests for ImportQueueWorker."""

import pytest

from cdfsync.core.errors import ImportValidationError, SyncError
from cdfsync.core.settings import CdfSyncSettings
from cdfsync.execution.import_worker import ImportQueueWorker
from cdfsync.execution.queue import ItemOutcome
from cdfsync.ingestion.importer import CdfImporter
from cdfsync.interest.models import InterestReason, SiteRole, SyndicationStatus
from cdfsync.tracking.models import SubscriberStatus
from tests._support.fakes import ORIGIN, WEBHOOK, FakeEntity, make_cdf, uid

A, B, C, Z = uid(40), uid(41), uid(42), uid(49)
SUBSCRIBER = SiteRole.SUBSCRIBER.value


@pytest.fixture
def importer(client, tracked_engine, subscriber_tracker):
    return CdfImporter(client, tracked_engine, subscriber_tracker)


@pytest.fixture
def worker(importer, subscriber_tracker, client, settings):
    return ImportQueueWorker(importer, subscriber_tracker, client, settings)


def _item(*uuids, **extra):
    return {"uuids": ", ".join(uuids), **extra}


# ── Success ─────────────────────────────────────────────────────────


class TestImport:
    def test_imports_closure_and_tracks(self, worker, client, store, subscriber_tracker):
        client.publish(make_cdf(A, [B]), make_cdf(B))
        client.set_interests(WEBHOOK, SUBSCRIBER, [A])
        subscriber_tracker.queue(A)
        subscriber_tracker.set_queue_item_by_uuid(A, 3)

        assert worker.process_item(_item(A)) is ItemOutcome.SUCCESS

        assert store.save_order == [B, A]
        assert subscriber_tracker.get(A).status == SubscriberStatus.IMPORTED.value
        assert subscriber_tracker.get(B).status == SubscriberStatus.IMPORTED.value
        assert subscriber_tracker.get_queue_id(A, tracker_only=True) is None

    def test_success_updates_interest_list(self, worker, client):
        client.publish(make_cdf(A, [B]), make_cdf(B))
        client.set_interests(WEBHOOK, SUBSCRIBER, [A])

        worker.process_item(_item(A))

        assert client.updated == [
            (WEBHOOK, SUBSCRIBER, {"uuids": [A], "status": SyndicationStatus.IMPORT_SUCCESSFUL.value})
        ]
        [(_, role, added)] = client.added
        assert role == SUBSCRIBER
        assert set(added["uuids"]) == {A, B}
        assert added["reason"] == InterestReason.MANUAL.value

    def test_filter_uuid_becomes_interest_reason(self, worker, client):
        client.publish(make_cdf(A))
        client.set_interests(WEBHOOK, SUBSCRIBER, [A])
        worker.process_item(_item(A, filter_uuid=uid(77)))
        assert client.added[0][2]["reason"] == uid(77)

    def test_no_interest_updates_when_disabled(self, importer, subscriber_tracker, client):
        settings = CdfSyncSettings(_env_file=None, origin=ORIGIN, webhook_uuid=WEBHOOK, send_hub_updates=False)
        worker = ImportQueueWorker(importer, subscriber_tracker, client, settings)
        client.publish(make_cdf(A))
        client.set_interests(WEBHOOK, SUBSCRIBER, [A])
        assert worker.process_item(_item(A)) is ItemOutcome.SUCCESS
        assert client.updated == []
        assert client.added == []


# ── Interest list filtering ─────────────────────────────────────────


class TestInterestFiltering:
    def test_uuids_deleted_upstream_are_skipped(self, worker, client, store):
        client.publish(make_cdf(A), make_cdf(C))
        client.set_interests(WEBHOOK, SUBSCRIBER, [A])

        assert worker.process_item(_item(A, C)) is ItemOutcome.SUCCESS
        assert client.get_calls[0] == [A]
        assert store.save_order == [A]

    def test_nothing_left_to_import(self, worker, client):
        client.set_interests(WEBHOOK, SUBSCRIBER, [])
        assert worker.process_item(_item(A)) is ItemOutcome.DROP
        assert client.get_calls == []

    def test_interest_fetch_failure_is_retried(self, worker, client):
        client.interest_error = SyncError("service unavailable")
        assert worker.process_item(_item(A)) is ItemOutcome.RETRY
        assert client.get_calls == []


# ── Failures ────────────────────────────────────────────────────────


class TestFailures:
    def test_all_requested_missing_upstream_is_forgotten(self, worker, client, subscriber_tracker):
        client.set_interests(WEBHOOK, SUBSCRIBER, [A])
        subscriber_tracker.queue(A)

        assert worker.process_item(_item(A)) is ItemOutcome.DROP
        assert subscriber_tracker.get(A) is None
        assert client.deleted_interests == [(A, WEBHOOK)]

    def test_locally_existing_entity_is_kept(self, worker, store, subscriber_tracker, client):
        subscriber_tracker.track(store.add(FakeEntity(A)), "h")
        assert not worker.delete_from_tracking_table_and_interest_list(A, WEBHOOK)
        assert subscriber_tracker.get(A) is not None
        assert client.deleted_interests == []

    def test_missing_dependency_marks_failed_and_raises(self, worker, client, store):
        client.publish(make_cdf(A, [Z]))
        client.set_interests(WEBHOOK, SUBSCRIBER, [A])

        with pytest.raises(ImportValidationError) as exc_info:
            worker.process_item(_item(A))

        assert exc_info.value.uuids == [Z]
        assert exc_info.value.retryable
        assert client.updated == [
            (WEBHOOK, SUBSCRIBER, {"uuids": [A], "status": SyndicationStatus.IMPORT_FAILED.value})
        ]
        assert store.save_order == []

    def test_no_client(self, importer, subscriber_tracker, settings):
        worker = ImportQueueWorker(importer, subscriber_tracker, None, settings)
        assert worker.process_item(_item(A)) is ItemOutcome.DROP

    def test_no_webhook(self, importer, subscriber_tracker, client):
        settings = CdfSyncSettings(_env_file=None, origin=ORIGIN)
        worker = ImportQueueWorker(importer, subscriber_tracker, client, settings)
        assert worker.process_item(_item(A)) is ItemOutcome.DROP
