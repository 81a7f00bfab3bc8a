"""
Export queue worker.

Processes ``{type, uuid[, calculate_dependencies]}`` items::

    load entity ── missing ──→ delete tracking row, DROP
        │
    serialize entity + dependency closure
        │
    prune_publish chain (RemoveUnmodifiedEntities)
        │ empty → warn, SUCCESS
        │
    client.put_entities(...)
        ├── 202   → PublisherTracker.track(hash) + nullify_queue_id
        │           interest list EXPORT_SUCCESSFUL, SUCCESS
        └── other → interest list EXPORT_FAILED, RETRY
                    (tracker stays QUEUED)

Tracking is only written after the remote accepted the payload, so a
failed or retried export never records a hash that was not delivered.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from cdfsync.cdf.models import CDFDocument
from cdfsync.core.errors import SyncError
from cdfsync.core.events import HandlerChain, HookContext
from cdfsync.core.logging import get_logger
from cdfsync.core.settings import is_valid_uuid
from cdfsync.interest.models import SiteRole, SyndicationStatus, build_interest_list

from .queue import ItemOutcome

if TYPE_CHECKING:
    from cdfsync.core.protocols import EntityStore, RemoteClient
    from cdfsync.core.settings import CdfSyncSettings
    from cdfsync.ingestion.serializer import CdfSerializer
    from cdfsync.tracking.publisher import PublisherTracker

logger = get_logger(__name__)

ACCEPTED = 202


@dataclass
class PrunePublishContext(HookContext):
    document: CDFDocument
    root_uuid: str
    origin: str


class RemoveUnmodifiedEntities:
    """Drop dependency objects whose tracked hash equals their new hash."""

    priority = 100

    def __init__(self, tracker: PublisherTracker) -> None:
        self.tracker = tracker

    def __call__(self, ctx: PrunePublishContext) -> None:
        for cdf in ctx.document:
            if cdf.uuid == ctx.root_uuid:
                continue
            tracked = self.tracker.get_hash(cdf.uuid)
            if tracked and tracked == cdf.hash:
                ctx.document.remove_entity(cdf.uuid)


class ExportQueueWorker:
    def __init__(
        self,
        store: EntityStore,
        serializer: CdfSerializer,
        tracker: PublisherTracker,
        client: RemoteClient | None,
        settings: CdfSyncSettings,
        prune: HandlerChain[PrunePublishContext] | None = None,
    ) -> None:
        self.store = store
        self.serializer = serializer
        self.tracker = tracker
        self.client = client
        self.settings = settings
        if prune is None:
            prune = HandlerChain("prune_publish_cdf_entities")
            prune.register(RemoveUnmodifiedEntities(tracker), RemoveUnmodifiedEntities.priority)
        self.prune = prune

    def __call__(self, data: dict[str, Any]) -> ItemOutcome:
        return self.process_item(data)

    def process_item(self, data: dict[str, Any]) -> ItemOutcome:
        if self.client is None:
            logger.error("client_not_configured", queue="export")
            return ItemOutcome.DROP

        entity_type = data["type"]
        uuid = data["uuid"]
        entity = self.store.load(entity_type, uuid)
        if entity is None:
            self.tracker.delete(uuid)
            logger.warning("export_entity_missing", uuid=uuid, entity_type=entity_type)
            return ItemOutcome.DROP

        calculate_dependencies = data.get("calculate_dependencies", True)
        try:
            objects, wrappers = self.serializer.get_entity_cdf(entity, calculate_dependencies=calculate_dependencies)
        except SyncError as exc:
            logger.error("export_serialization_failed", uuid=uuid, entity_type=entity_type, error=str(exc))
            raise

        document = CDFDocument(*objects)
        self.prune.dispatch(PrunePublishContext(document=document, root_uuid=uuid, origin=self.settings.origin or ""))
        if not document.has_entities():
            logger.warning("export_empty_cdf", uuid=uuid, entity_type=entity_type)
            return ItemOutcome.SUCCESS

        exported = document.uuids()
        status = self.client.put_entities(*document)
        webhook = self.settings.webhook_uuid
        if status != ACCEPTED:
            logger.error("export_rejected", uuid=uuid, status_code=status, exported=exported)
            self._update_interest_list(exported, webhook, SyndicationStatus.EXPORT_FAILED)
            return ItemOutcome.RETRY

        for exported_uuid in exported:
            wrapper = wrappers.get(exported_uuid)
            if wrapper is None:
                continue
            self.tracker.track(wrapper.entity, wrapper.hash)
            self.tracker.nullify_queue_id(exported_uuid)
        logger.info("exported", uuid=uuid, entity_type=entity_type, exported=exported)

        self._update_interest_list(exported, webhook, SyndicationStatus.EXPORT_SUCCESSFUL)
        return ItemOutcome.SUCCESS

    def _update_interest_list(self, uuids: Iterable[str], webhook: str | None, status: SyndicationStatus) -> None:
        uuids = list(uuids)
        if not is_valid_uuid(webhook):
            logger.warning("interest_list_webhook_invalid", uuids=uuids)
            return
        if not self.settings.send_hub_updates:
            return
        try:
            self.client.update_interest_list_by_site_role(
                webhook, SiteRole.PUBLISHER.value, build_interest_list(uuids, status)
            )
        except SyncError as exc:
            logger.error("interest_list_update_failed", webhook=webhook, status=status.value, uuids=uuids, error=str(exc))
        else:
            logger.info("interest_list_updated", webhook=webhook, status=status.value, uuids=uuids)
