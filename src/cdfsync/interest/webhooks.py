"""
Inbound webhook dispatch.

The transport and its signature verification live outside this package;
``WebhookDispatcher.handle`` receives the already verified payload::

    {"status": "successful", "crud": "update", "initiator": "<origin>",
     "assets": [{"uuid": "...", "type": "content_entity"}]}

Republish requests use the same entry point with ``crud = "republish"``
and either a ``cdf`` object or an ``entities`` list.

Handlers, by descending priority::

    ReExport            1000  republish request → full re-export (publisher)
    ConfirmExport        200  our own update processed → CONFIRMED (publisher)
    ImportUpdateAssets   100  assets updated elsewhere → import queue (subscriber)
    DeleteAssets         100  assets deleted elsewhere → local cleanup (subscriber)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from cdfsync.cdf.models import CONFIG_ENTITY, CONTENT_ENTITY
from cdfsync.core.errors import SyncError
from cdfsync.core.events import HandlerChain, HookContext
from cdfsync.core.logging import get_logger
from cdfsync.tracking.models import PublisherStatus, SubscriberStatus

from .models import SiteRole, build_interest_list

if TYPE_CHECKING:
    from cdfsync.core.protocols import EntityStore, RemoteClient
    from cdfsync.core.settings import CdfSyncSettings
    from cdfsync.execution.actions import PublisherActions
    from cdfsync.execution.enqueuer import ImportQueue
    from cdfsync.tracking.publisher import PublisherTracker
    from cdfsync.tracking.subscriber import SubscriberTracker

logger = get_logger(__name__)

SUPPORTED_TYPES = (CONTENT_ENTITY, CONFIG_ENTITY)


@dataclass
class WebhookResponse:
    status_code: int = 200
    body: str = ""


@dataclass
class WebhookContext(HookContext):
    payload: dict[str, Any]
    response: WebhookResponse | None = None
    messages: list[str] = field(default_factory=list)

    @property
    def status(self) -> str | None:
        return self.payload.get("status")

    @property
    def crud(self) -> str | None:
        return self.payload.get("crud")

    @property
    def initiator(self) -> str | None:
        return self.payload.get("initiator")

    @property
    def assets(self) -> list[dict[str, Any]]:
        return list(self.payload.get("assets") or [])

    def respond(self, body: str, status_code: int = 200) -> None:
        self.response = WebhookResponse(status_code=status_code, body=body)
        self.stop_propagation()


class WebhookDispatcher:
    def __init__(self, chain: HandlerChain[WebhookContext] | None = None) -> None:
        self.chain = chain if chain is not None else HandlerChain("handle_webhook")

    def register(self, handler, priority: int | None = None) -> None:
        self.chain.register(handler, priority if priority is not None else getattr(handler, "priority", 0))

    def handle(self, payload: dict[str, Any]) -> WebhookResponse:
        ctx = self.chain.dispatch(WebhookContext(payload=payload))
        if ctx.response is not None:
            return ctx.response
        return WebhookResponse(body="\n".join(ctx.messages))


# ── Publisher side ──────────────────────────────────────────────────


class ReExport:
    priority = 1000

    def __init__(self, actions: PublisherActions, store: EntityStore, origin: str) -> None:
        self.actions = actions
        self.store = store
        self.origin = origin

    def __call__(self, ctx: WebhookContext) -> None:
        if ctx.status != "successful" or ctx.crud != "republish" or ctx.initiator == self.origin:
            return
        entries = list(ctx.payload.get("entities") or [])
        if not entries and ctx.payload.get("cdf"):
            entries = [ctx.payload["cdf"]]
        if not entries:
            return

        enqueued: list[str] = []
        not_found: list[str] = []
        for entry in entries:
            uuid = entry["uuid"]
            entity_type = entry.get("type")
            entity = self.store.load(entity_type, uuid) if entity_type else None
            if entity is None:
                not_found.append(f"{entity_type}/{uuid}")
                continue
            self.actions.reexport_entity_full(entity, entry.get("dependencies") or [])
            enqueued.append(f"{entity_type}/{uuid}")

        body = ""
        if enqueued:
            body = "Entities have been successfully enqueued by origin = {}. Entities: {}.\n".format(
                ctx.initiator, ", ".join(enqueued)
            )
            logger.info("republish_enqueued", initiator=ctx.initiator, entities=enqueued)
        if not_found:
            body += "The entities could not be re-exported. Requesting client: {}. Entities: {}.".format(
                ctx.initiator, ", ".join(not_found)
            )
            logger.error("republish_entities_not_found", initiator=ctx.initiator, entities=not_found)
        ctx.respond(body)


class ConfirmExport:
    priority = 200

    def __init__(self, tracker: PublisherTracker, origin: str) -> None:
        self.tracker = tracker
        self.origin = origin

    def __call__(self, ctx: WebhookContext) -> None:
        if ctx.status != "successful" or ctx.crud != "update" or ctx.initiator != self.origin:
            return
        confirmed = []
        for asset in ctx.assets:
            record = self.tracker.get(asset["uuid"])
            if record is None or record.status != PublisherStatus.EXPORTED.value:
                continue
            self.tracker.confirm(record.entity_uuid)
            confirmed.append(record.entity_uuid)
        if confirmed:
            logger.info("export_confirmed", uuids=confirmed)
            ctx.messages.append(f"Confirmed {len(confirmed)} exported entities.")


# ── Subscriber side ─────────────────────────────────────────────────


class ImportUpdateAssets:
    priority = 100

    def __init__(
        self,
        import_queue: ImportQueue,
        settings: CdfSyncSettings,
        client: RemoteClient | None = None,
    ) -> None:
        self.import_queue = import_queue
        self.settings = settings
        self.client = client

    def __call__(self, ctx: WebhookContext) -> None:
        if ctx.crud != "update":
            return
        if ctx.status != "successful" or not ctx.assets:
            logger.info("webhook_ignored", reason="not successful or no assets")
            return
        if ctx.initiator == self.settings.origin:
            return

        uuids = []
        for asset in ctx.assets:
            if asset.get("type") not in SUPPORTED_TYPES:
                logger.info("webhook_asset_unsupported", uuid=asset.get("uuid"), type=asset.get("type"))
                continue
            uuids.append(asset["uuid"])
        if not uuids:
            return

        queue_id = self.import_queue.enqueue_uuids(uuids)
        if queue_id is None:
            return
        ctx.messages.append(f"Queued {len(uuids)} entities for import.")
        if not self.settings.send_hub_updates or self.client is None:
            return
        try:
            self.client.add_entities_to_interest_list_by_site_role(
                self.settings.webhook_uuid, SiteRole.SUBSCRIBER.value, build_interest_list(uuids)
            )
        except SyncError as exc:
            logger.error("interest_list_add_failed", uuids=uuids, error=str(exc))


class DeleteAssets:
    priority = 100

    def __init__(
        self,
        tracker: SubscriberTracker,
        store: EntityStore,
        settings: CdfSyncSettings,
        client: RemoteClient | None = None,
    ) -> None:
        self.tracker = tracker
        self.store = store
        self.settings = settings
        self.client = client

    def __call__(self, ctx: WebhookContext) -> None:
        if ctx.status != "successful" or ctx.crud != "delete" or ctx.initiator == self.settings.origin:
            return
        for asset in ctx.assets:
            if asset.get("type") not in SUPPORTED_TYPES:
                continue
            self._delete(asset["uuid"])

    def _delete(self, uuid: str) -> None:
        record = self.tracker.get(uuid)
        entity = None
        if record is not None and record.entity_type and record.entity_id is not None:
            entity = self.store.load_by_id(record.entity_type, record.entity_id)

        if entity is None:
            # Deleted upstream before it was ever imported.
            self.tracker.delete(uuid)
            if self.settings.send_hub_updates and self.client is not None:
                try:
                    self.client.delete_interest(uuid, self.settings.webhook_uuid)
                except SyncError as exc:
                    logger.error("interest_delete_failed", uuid=uuid, error=str(exc))
            logger.info("remote_delete_untracked", uuid=uuid)
            return

        self.tracker.delete(uuid)
        if record.status == SubscriberStatus.AUTO_UPDATE_DISABLED.value:
            logger.info("remote_delete_kept_local", uuid=uuid)
            return
        self.store.delete(entity)
        logger.info("remote_delete_applied", uuid=uuid, entity_type=record.entity_type)
