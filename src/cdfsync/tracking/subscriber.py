"""Subscriber Tracker: import-side state (queued → imported | auto_update_disabled)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from cdfsync.core.logging import get_logger
from cdfsync.core.schema import TABLES

from .base import BaseTracker
from .models import SubscriberStatus, TrackingRecord

if TYPE_CHECKING:
    from cdfsync.ingestion.hooks import EntityImportContext

logger = get_logger(__name__)


class SubscriberTracker(BaseTracker):
    """
    Per-UUID import tracking, keyed by the remote (CDF) UUID.

    ``AUTO_UPDATE_DISABLED`` marks an entity that exists locally but must
    not be overwritten by incoming updates; ``track`` never leaves that
    state on its own.
    """

    table = TABLES["subscriber_tracking"]
    statuses = SubscriberStatus

    def queue(self, uuid: str) -> None:
        """Mark ``uuid`` QUEUED. Rows in AUTO_UPDATE_DISABLED are left alone."""
        if self.get_status_by_uuid(uuid) == SubscriberStatus.AUTO_UPDATE_DISABLED.value:
            return
        self._insert_or_update(uuid, SubscriberStatus.QUEUED)

    def track(self, entity: Any, hash: str | None, remote_uuid: str | None = None) -> None:
        """Record that ``entity`` was imported with content ``hash``."""
        uuid = remote_uuid or entity.uuid
        status = SubscriberStatus.IMPORTED
        if self.get_status_by_uuid(uuid) == SubscriberStatus.AUTO_UPDATE_DISABLED.value:
            status = SubscriberStatus.AUTO_UPDATE_DISABLED
        self._insert_or_update(uuid, status, entity_type=entity.entity_type, entity_id=entity.id, hash=hash)

    def get_status_by_uuid(self, uuid: str) -> str | None:
        record = self.get(uuid)
        return record.status if record else None

    def is_auto_update_disabled(self, uuid: str) -> bool:
        return self.get_status_by_uuid(uuid) == SubscriberStatus.AUTO_UPDATE_DISABLED.value

    def disable_auto_update(self, uuid: str) -> bool:
        return self.set_status_by_uuid(uuid, SubscriberStatus.AUTO_UPDATE_DISABLED)

    def get_by_remote_id_and_hash(self, uuid: str, hash: str | None) -> TrackingRecord | None:
        """
        Record for an entity that does not need to be imported again.

        Matches when the local entity is known and either its tracked hash
        equals ``hash`` or auto update is disabled for it.
        """
        record = self.get(uuid)
        if record is None or record.entity_id is None or record.entity_type is None:
            return None
        if record.status == SubscriberStatus.AUTO_UPDATE_DISABLED.value:
            return record
        if hash and record.hash == hash:
            return record
        return None


class TrackImportedEntity:
    """``entity_imported`` handler that records every materialized entity."""

    priority = 100

    def __init__(self, tracker: SubscriberTracker) -> None:
        self.tracker = tracker

    def __call__(self, ctx: EntityImportContext) -> None:
        self.tracker.track(ctx.entity, ctx.cdf.hash, remote_uuid=ctx.cdf.uuid)
        logger.debug("entity_tracked", uuid=ctx.cdf.uuid, new=ctx.is_new)
