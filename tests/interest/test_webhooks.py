"""Tests for webhook dispatch and the built-in webhook handlers."""

import pytest

from cdfsync.cdf.models import CONFIG_ENTITY, CONTENT_ENTITY
from cdfsync.core.errors import SyncError
from cdfsync.execution.actions import PublisherActions
from cdfsync.execution.enqueuer import EntityEnqueuer, ImportQueue
from cdfsync.ingestion.serializer import CdfSerializer
from cdfsync.interest.models import SiteRole
from cdfsync.interest.webhooks import (
    ConfirmExport,
    DeleteAssets,
    ImportUpdateAssets,
    ReExport,
    WebhookContext,
    WebhookDispatcher,
    WebhookResponse,
)
from cdfsync.tracking.models import PublisherStatus
from tests._support.fakes import (
    ORIGIN,
    REMOTE_ORIGIN,
    WEBHOOK,
    FakeDependencyCalculator,
    FakeEntity,
    FakeNormalizer,
    uid,
)

A, B, C = uid(60), uid(61), uid(62)


def _payload(crud, initiator=REMOTE_ORIGIN, assets=(), status="successful", **extra):
    return {
        "status": status,
        "crud": crud,
        "initiator": initiator,
        "assets": [{"uuid": uuid, "type": kind} for uuid, kind in assets],
        **extra,
    }


# ── Dispatcher ──────────────────────────────────────────────────────


class TestDispatcher:
    def test_messages_joined_when_nobody_responds(self):
        dispatcher = WebhookDispatcher()
        dispatcher.register(lambda ctx: ctx.messages.append("one"), priority=2)
        dispatcher.register(lambda ctx: ctx.messages.append("two"), priority=1)
        assert dispatcher.handle({"crud": "update"}) == WebhookResponse(body="one\ntwo")

    def test_respond_stops_propagation(self):
        seen = []
        dispatcher = WebhookDispatcher()
        dispatcher.register(lambda ctx: ctx.respond("done", 202), priority=10)
        dispatcher.register(lambda ctx: seen.append(ctx), priority=1)
        assert dispatcher.handle({}) == WebhookResponse(status_code=202, body="done")
        assert seen == []

    def test_handler_priority_attribute_is_used(self, publisher_tracker):
        dispatcher = WebhookDispatcher()
        dispatcher.register(ConfirmExport(publisher_tracker, ORIGIN))
        dispatcher.register(lambda ctx: None, priority=500)
        assert isinstance(dispatcher.chain.handlers[-1], ConfirmExport)

    def test_context_accessors(self):
        ctx = WebhookContext(payload=_payload("delete", assets=[(A, CONTENT_ENTITY)]))
        assert (ctx.status, ctx.crud, ctx.initiator) == ("successful", "delete", REMOTE_ORIGIN)
        assert ctx.assets == [{"uuid": A, "type": CONTENT_ENTITY}]
        assert WebhookContext(payload={}).assets == []


# ── ReExport ────────────────────────────────────────────────────────


class TestReExport:
    @pytest.fixture
    def handler(self, store, publisher_tracker, export_queue, settings, client):
        store.add(FakeEntity(A, fields={"title": "Article"}))
        store.add(FakeEntity(B, entity_type="taxonomy_term", fields={"name": "News"}))
        serializer = CdfSerializer(FakeNormalizer(), FakeDependencyCalculator(store, {A: [B]}), ORIGIN)
        enqueuer = EntityEnqueuer(export_queue, publisher_tracker, settings, client)
        return ReExport(PublisherActions(publisher_tracker, serializer, enqueuer), store, ORIGIN)

    def test_cdf_payload_enqueues_entity(self, handler, export_queue):
        ctx = WebhookContext(payload=_payload("republish", cdf={"uuid": A, "type": "node", "dependencies": [B]}))
        handler(ctx)
        assert ctx.propagation_stopped
        assert ctx.response.status_code == 200
        assert f"node/{A}" in ctx.response.body
        assert export_queue.items()[0].data["uuid"] == A

    def test_entities_payload_reports_unknown(self, handler):
        entries = [{"uuid": A, "type": "node"}, {"uuid": C, "type": "node"}]
        ctx = WebhookContext(payload=_payload("republish", entities=entries))
        handler(ctx)
        assert "successfully enqueued" in ctx.response.body
        assert f"could not be re-exported. Requesting client: {REMOTE_ORIGIN}. Entities: node/{C}." in ctx.response.body

    def test_own_request_is_ignored(self, handler, export_queue):
        ctx = WebhookContext(payload=_payload("republish", initiator=ORIGIN, cdf={"uuid": A, "type": "node"}))
        handler(ctx)
        assert ctx.response is None
        assert export_queue.number_of_items() == 0


# ── ConfirmExport ───────────────────────────────────────────────────


class TestConfirmExport:
    def test_confirms_exported_rows_only(self, publisher_tracker):
        publisher_tracker.track(FakeEntity(A, id=1), "h")
        publisher_tracker.queue(FakeEntity(B, id=2))
        assets = [(A, CONTENT_ENTITY), (B, CONTENT_ENTITY), (C, CONTENT_ENTITY)]
        ctx = WebhookContext(payload=_payload("update", initiator=ORIGIN, assets=assets))

        ConfirmExport(publisher_tracker, ORIGIN)(ctx)

        assert publisher_tracker.get(A).status == PublisherStatus.CONFIRMED.value
        assert publisher_tracker.get(B).status == PublisherStatus.QUEUED.value
        assert ctx.messages == ["Confirmed 1 exported entities."]

    def test_foreign_update_ignored(self, publisher_tracker):
        publisher_tracker.track(FakeEntity(A, id=1), "h")
        ctx = WebhookContext(payload=_payload("update", assets=[(A, CONTENT_ENTITY)]))
        ConfirmExport(publisher_tracker, ORIGIN)(ctx)
        assert publisher_tracker.get(A).status == PublisherStatus.EXPORTED.value


# ── ImportUpdateAssets ──────────────────────────────────────────────


class TestImportUpdateAssets:
    @pytest.fixture
    def handler(self, import_work_queue, subscriber_tracker, settings, client):
        return ImportUpdateAssets(ImportQueue(import_work_queue, subscriber_tracker), settings, client)

    def test_supported_assets_are_queued(self, handler, import_work_queue, client):
        ctx = WebhookContext(
            payload=_payload("update", assets=[(A, CONTENT_ENTITY), (B, CONFIG_ENTITY), (C, "rendering")])
        )
        handler(ctx)
        assert import_work_queue.items()[0].data == {"uuids": f"{A}, {B}"}
        assert ctx.messages == ["Queued 2 entities for import."]
        assert client.added == [(WEBHOOK, SiteRole.SUBSCRIBER.value, {"uuids": [A, B]})]

    @pytest.mark.parametrize(
        "payload",
        [
            _payload("update", initiator=ORIGIN, assets=[(A, CONTENT_ENTITY)]),
            _payload("update", status="pending", assets=[(A, CONTENT_ENTITY)]),
            _payload("update"),
            _payload("delete", assets=[(A, CONTENT_ENTITY)]),
        ],
    )
    def test_ignored_payloads(self, handler, import_work_queue, payload):
        handler(WebhookContext(payload=payload))
        assert import_work_queue.number_of_items() == 0

    def test_interest_failure_keeps_queue_item(self, handler, import_work_queue, client):
        def fail(*args):
            raise SyncError("hub down")

        client.add_entities_to_interest_list_by_site_role = fail
        handler(WebhookContext(payload=_payload("update", assets=[(A, CONTENT_ENTITY)])))
        assert import_work_queue.number_of_items() == 1


# ── DeleteAssets ────────────────────────────────────────────────────


class TestDeleteAssets:
    @pytest.fixture
    def handler(self, subscriber_tracker, store, settings, client):
        return DeleteAssets(subscriber_tracker, store, settings, client)

    def _delete(self, handler, *uuids, initiator=REMOTE_ORIGIN):
        assets = [(uuid, CONTENT_ENTITY) for uuid in uuids]
        handler(WebhookContext(payload=_payload("delete", initiator=initiator, assets=assets)))

    def test_imported_entity_is_deleted(self, handler, store, subscriber_tracker):
        subscriber_tracker.track(store.add(FakeEntity(A)), "h")
        self._delete(handler, A)
        assert store.deleted == [A]
        assert subscriber_tracker.get(A) is None

    def test_auto_update_disabled_entity_is_kept(self, handler, store, subscriber_tracker):
        subscriber_tracker.track(store.add(FakeEntity(A)), "h")
        subscriber_tracker.disable_auto_update(A)
        self._delete(handler, A)
        assert store.deleted == []
        assert store.load("node", A) is not None
        assert subscriber_tracker.get(A) is None

    def test_never_imported_entity_drops_interest(self, handler, subscriber_tracker, client):
        subscriber_tracker.queue(B)
        self._delete(handler, B)
        assert subscriber_tracker.get(B) is None
        assert client.deleted_interests == [(B, WEBHOOK)]

    def test_own_delete_ignored(self, handler, store, subscriber_tracker):
        subscriber_tracker.track(store.add(FakeEntity(A)), "h")
        self._delete(handler, A, initiator=ORIGIN)
        assert store.deleted == []
        assert subscriber_tracker.get(A) is not None
