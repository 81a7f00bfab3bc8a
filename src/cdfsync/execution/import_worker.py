"""
Import queue worker.

Processes ``{"uuids": "a, b, c"[, "filter_uuid": ...]}`` items:

1. UUIDs absent from this site's SUBSCRIBER interest list were deleted
   upstream before the import ran; they are skipped and logged.
2. The remaining UUIDs are imported as one closure-fetch batch.
3. On ``ImportValidationError`` where every requested UUID is reported
   missing upstream, tracking rows and interests are removed and the item
   is dropped. Any other failure marks the interests ``IMPORT_FAILED``
   and propagates, so the queue retries the item.
4. On success the interests are marked ``IMPORT_SUCCESSFUL`` and every
   entity of the run is added to the interest list with the reason
   ``filter_uuid`` (or ``manual``).
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from cdfsync.core.errors import ImportValidationError, SyncError
from cdfsync.core.logging import get_logger
from cdfsync.interest.models import InterestReason, SiteRole, SyndicationStatus, build_interest_list

from .queue import ItemOutcome

if TYPE_CHECKING:
    from cdfsync.core.protocols import RemoteClient
    from cdfsync.core.settings import CdfSyncSettings
    from cdfsync.ingestion.importer import CdfImporter
    from cdfsync.ingestion.stack import DependencyStack
    from cdfsync.tracking.subscriber import SubscriberTracker

logger = get_logger(__name__)

SITE_ROLE = SiteRole.SUBSCRIBER.value

MISSING_ENTITIES_NOTE = (
    "Check export table, nullify hashes of entities marked as missing "
    "and try to re-export original entity/entities."
)


class ImportQueueWorker:
    def __init__(
        self,
        importer: CdfImporter,
        tracker: SubscriberTracker,
        client: RemoteClient | None,
        settings: CdfSyncSettings,
    ) -> None:
        self.importer = importer
        self.tracker = tracker
        self.client = client
        self.settings = settings

    def __call__(self, data: dict[str, Any]) -> ItemOutcome:
        return self.process_item(data)

    @property
    def should_send_update(self) -> bool:
        return self.settings.send_hub_updates

    def process_item(self, data: dict[str, Any]) -> ItemOutcome:
        if self.client is None:
            logger.error("client_not_configured", queue="import")
            return ItemOutcome.DROP
        webhook = self.settings.webhook_uuid
        if not webhook:
            logger.error("webhook_not_configured", queue="import")
            return ItemOutcome.DROP

        try:
            interests = self.client.get_interests_by_webhook_and_site_role(webhook, SITE_ROLE)
        except SyncError as exc:
            logger.error("interest_list_fetch_failed", webhook=webhook, error=str(exc))
            return ItemOutcome.RETRY

        process_items = [uuid for uuid in data.get("uuids", "").split(", ") if uuid]
        uuids = [uuid for uuid in process_items if uuid in interests]
        if len(uuids) != len(process_items):
            skipped = [uuid for uuid in process_items if uuid not in uuids]
            logger.info("import_skipped_missing", uuids=skipped, note="deleted at the publisher before importing")
        if not uuids:
            logger.info("import_nothing_to_do", requested=process_items)
            return ItemOutcome.DROP

        stack = self._import_entities(uuids, webhook)
        if stack is None:
            return ItemOutcome.DROP

        for uuid in uuids:
            self.tracker.nullify_queue_id(uuid)
        imported = [wrapper.remote_uuid or wrapper.uuid for wrapper in stack.wrappers()]
        logger.info("imported", uuids=uuids, entities=imported)

        if not self.should_send_update:
            return ItemOutcome.SUCCESS
        self._update_interest_list(webhook, uuids, SyndicationStatus.IMPORT_SUCCESSFUL)
        self._add_dependencies_to_interest_list(webhook, imported, data.get("filter_uuid"))
        return ItemOutcome.SUCCESS

    def _import_entities(self, uuids: list[str], webhook: str) -> DependencyStack | None:
        try:
            return self.importer.import_entities(*uuids)
        except ImportValidationError as exc:
            deletable = set(uuids) <= set(exc.uuids) and exc.is_entities_missing()
            if not deletable:
                note = MISSING_ENTITIES_NOTE if exc.is_entities_missing() else "N/A"
                logger.error("import_failed", uuids=exc.uuids, error=exc.message, note=note)
                if self.should_send_update:
                    self._update_interest_list(webhook, uuids, SyndicationStatus.IMPORT_FAILED)
                raise
            for uuid in uuids:
                self.delete_from_tracking_table_and_interest_list(uuid, webhook)
            return None
        except SyncError as exc:
            logger.error("import_failed", uuids=uuids, error=exc.message)
            if self.should_send_update:
                self._update_interest_list(webhook, uuids, SyndicationStatus.IMPORT_FAILED)
            raise

    def delete_from_tracking_table_and_interest_list(self, uuid: str, webhook: str) -> bool:
        """Forget ``uuid`` unless it still exists locally. Returns True if removed."""
        record = self.tracker.get(uuid)
        if record is not None and record.entity_type and record.entity_id is not None:
            if self.importer.engine.store.load_by_id(record.entity_type, record.entity_id) is not None:
                return False
        try:
            if self.should_send_update:
                self.client.delete_interest(uuid, webhook)
            self.tracker.delete(uuid)
        except SyncError as exc:
            logger.error("tracking_and_interest_delete_failed", uuid=uuid, error=str(exc))
            return False
        logger.info("tracking_and_interest_deleted", uuid=uuid)
        return True

    def _update_interest_list(self, webhook: str, uuids: list[str], status: SyndicationStatus) -> None:
        try:
            self.client.update_interest_list_by_site_role(webhook, SITE_ROLE, build_interest_list(uuids, status))
        except SyncError as exc:
            logger.error("interest_list_update_failed", webhook=webhook, status=status.value, error=str(exc))

    def _add_dependencies_to_interest_list(self, webhook: str, uuids: Iterable[str], filter_uuid: str | None) -> None:
        uuids = list(uuids)
        interest_list = build_interest_list(
            uuids, SyndicationStatus.IMPORT_SUCCESSFUL, filter_uuid or InterestReason.MANUAL
        )
        try:
            self.client.add_entities_to_interest_list_by_site_role(webhook, SITE_ROLE, interest_list)
        except SyncError as exc:
            logger.error("interest_list_add_failed", webhook=webhook, uuids=uuids, error=str(exc))
        else:
            logger.info("interest_list_added", webhook=webhook, uuids=uuids)
