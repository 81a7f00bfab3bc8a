"""Tests for ExportQueueWorker."""

import pytest

from cdfsync.core.events import HandlerChain
from cdfsync.execution.export_worker import ExportQueueWorker
from cdfsync.execution.queue import ItemOutcome
from cdfsync.ingestion.serializer import CdfSerializer
from cdfsync.interest.models import SiteRole, SyndicationStatus
from cdfsync.tracking.models import PublisherStatus
from tests._support.fakes import (
    ORIGIN,
    FakeDependencyCalculator,
    FakeEntity,
    FakeNormalizer,
    uid,
)

ROOT, TERM, FILE = uid(30), uid(31), uid(32)


@pytest.fixture
def seeded(store):
    store.add(FakeEntity(ROOT, fields={"title": "Article"}))
    store.add(FakeEntity(TERM, entity_type="taxonomy_term", fields={"name": "News"}))
    store.add(FakeEntity(FILE, entity_type="file", fields={"uri": "public://a.png"}))
    return store


@pytest.fixture
def worker(seeded, publisher_tracker, client, settings):
    serializer = CdfSerializer(FakeNormalizer(), FakeDependencyCalculator(seeded, {ROOT: [TERM, FILE]}), ORIGIN)
    return ExportQueueWorker(seeded, serializer, publisher_tracker, client, settings)


def _item(uuid=ROOT, entity_type="node", **extra):
    return {"type": entity_type, "uuid": uuid, **extra}


# ── Delivery ────────────────────────────────────────────────────────


class TestDelivery:
    def test_accepted_export_is_tracked(self, worker, client, publisher_tracker):
        publisher_tracker.queue(worker.store.load("node", ROOT))
        publisher_tracker.set_queue_item_by_uuid(ROOT, 5)

        assert worker.process_item(_item()) is ItemOutcome.SUCCESS

        assert client.put_calls == [[ROOT, TERM, FILE]]
        for uuid in (ROOT, TERM, FILE):
            record = publisher_tracker.get(uuid)
            assert record.status == PublisherStatus.EXPORTED.value
            assert record.hash == client.remote[uuid].hash
        assert publisher_tracker.get_queue_id(ROOT, tracker_only=True) is None

    def test_success_updates_interest_list(self, worker, client, settings):
        worker.process_item(_item())
        [(webhook, role, interest_list)] = client.updated
        assert webhook == settings.webhook_uuid
        assert role == SiteRole.PUBLISHER.value
        assert interest_list["status"] == SyndicationStatus.EXPORT_SUCCESSFUL.value
        assert interest_list["uuids"] == [ROOT, TERM, FILE]

    def test_rejected_export_is_retried_untracked(self, worker, client, publisher_tracker):
        publisher_tracker.queue(worker.store.load("node", ROOT))
        client.put_status = 500

        assert worker.process_item(_item()) is ItemOutcome.RETRY

        assert publisher_tracker.get(ROOT).status == PublisherStatus.QUEUED.value
        assert publisher_tracker.get_hash(ROOT) is None
        assert publisher_tracker.get(TERM) is None
        assert client.updated[0][2]["status"] == SyndicationStatus.EXPORT_FAILED.value

    def test_retry_after_rejection_delivers_everything(self, worker, client):
        client.put_status = 500
        worker.process_item(_item())
        client.put_status = 202
        worker.process_item(_item())
        assert client.put_calls[-1] == [ROOT, TERM, FILE]

    def test_no_interest_update_without_webhook(self, seeded, publisher_tracker, client, settings):
        settings.webhook_uuid = ""
        serializer = CdfSerializer(FakeNormalizer(), FakeDependencyCalculator(seeded), ORIGIN)
        worker = ExportQueueWorker(seeded, serializer, publisher_tracker, client, settings)
        assert worker.process_item(_item()) is ItemOutcome.SUCCESS
        assert client.updated == []


# ── Dropped items ───────────────────────────────────────────────────


class TestDropped:
    def test_missing_entity_deletes_tracking(self, worker, publisher_tracker, client):
        publisher_tracker.queue(FakeEntity(uid(39), id=9))
        assert worker.process_item(_item(uid(39))) is ItemOutcome.DROP
        assert publisher_tracker.get(uid(39)) is None
        assert client.put_calls == []

    def test_no_client(self, seeded, publisher_tracker, settings):
        serializer = CdfSerializer(FakeNormalizer(), FakeDependencyCalculator(seeded), ORIGIN)
        worker = ExportQueueWorker(seeded, serializer, publisher_tracker, None, settings)
        assert worker.process_item(_item()) is ItemOutcome.DROP


# ── Pruning ─────────────────────────────────────────────────────────


class TestPruning:
    def test_unmodified_dependencies_are_not_resent(self, worker, client):
        worker.process_item(_item())
        worker.process_item(_item())
        assert client.put_calls[-1] == [ROOT]

    def test_modified_dependency_is_resent(self, worker, client, seeded):
        worker.process_item(_item())
        seeded.load("taxonomy_term", TERM).fields["name"] = "Sport"
        worker.process_item(_item())
        assert client.put_calls[-1] == [ROOT, TERM]

    def test_nullified_hashes_force_full_export(self, worker, client, publisher_tracker):
        worker.process_item(_item())
        publisher_tracker.nullify_hashes(entity_types=["file"])
        worker.process_item(_item())
        assert client.put_calls[-1] == [ROOT, FILE]

    def test_empty_document_after_pruning(self, worker, client):
        chain = HandlerChain("prune_publish_cdf_entities")
        chain.register(lambda ctx: [ctx.document.remove_entity(u) for u in ctx.document.uuids()])
        worker.prune = chain
        assert worker.process_item(_item()) is ItemOutcome.SUCCESS
        assert client.put_calls == []

    def test_dependency_calculation_can_be_skipped(self, worker, client):
        worker.process_item(_item(calculate_dependencies=False))
        assert client.put_calls == [[ROOT]]
