"""
Tracked-entity audit.

Compares tracking rows of one status against what the remote hub holds::

    remote object absent        → "not published"
    remote hash != tracked hash → "outdated"
    local entity unloadable     → stale row deleted, counted as failed

With ``reprocess=True`` flagged entities are queued again: publisher rows
through the ``EntityEnqueuer``, subscriber rows through the ``ImportQueue``.

A missing client, or a failed bulk fetch, aborts the batch before any
row is touched. Per-entity problems are logged and counted, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from cdfsync.core.errors import ClientNotConfiguredError, EntityLoadError
from cdfsync.core.logging import get_logger

if TYPE_CHECKING:
    from cdfsync.core.protocols import EntityStore, RemoteClient
    from cdfsync.execution.enqueuer import EntityEnqueuer, ImportQueue
    from cdfsync.tracking.base import BaseTracker
    from cdfsync.tracking.models import TrackingRecord

logger = get_logger(__name__)


@dataclass
class AuditResult:
    audited: int = 0
    not_published: int = 0
    outdated: int = 0
    failed: int = 0
    requeued: int = 0
    messages: list[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"Total number of audited entities not found in the remote service: {self.not_published}\n"
            f"Total number of audited entities found outdated in the remote service: {self.outdated}"
        )


def _describe(record: TrackingRecord, message: str) -> str:
    return "{}: Entity Type = {}, UUID = {}, ID = {}, Modified = {}".format(
        message, record.entity_type, record.entity_uuid, record.entity_id, record.modified
    )


class TrackingAudit:
    def __init__(
        self,
        tracker: BaseTracker,
        client: RemoteClient | None,
        store: EntityStore,
        enqueuer: EntityEnqueuer | None = None,
        import_queue: ImportQueue | None = None,
        batch_size: int = 50,
    ) -> None:
        self.tracker = tracker
        self.client = client
        self.store = store
        self.enqueuer = enqueuer
        self.import_queue = import_queue
        self.batch_size = max(1, batch_size)

    def audit(self, status: str | Enum, entity_type: str | None = None, reprocess: bool = False) -> AuditResult:
        if self.client is None:
            raise ClientNotConfiguredError(
                "The remote service client is not connected so no operations could be performed."
            )

        records = self.tracker.list_tracked_entities(status, entity_type)
        result = AuditResult()
        for start in range(0, len(records), self.batch_size):
            self._audit_batch(records[start : start + self.batch_size], reprocess, result)

        logger.info(
            "audit_complete",
            table=self.tracker.table,
            status=getattr(status, "value", status),
            audited=result.audited,
            not_published=result.not_published,
            outdated=result.outdated,
            failed=result.failed,
            requeued=result.requeued,
        )
        result.messages.append(result.summary())
        return result

    def _audit_batch(self, records: list[TrackingRecord], reprocess: bool, result: AuditResult) -> None:
        document = self.client.get_entities([record.entity_uuid for record in records])

        for record in records:
            result.audited += 1
            remote = document.get_entity(record.entity_uuid)
            if remote is None:
                self._flag(record, "Entity not published", result)
                result.not_published += 1
            elif remote.hash != record.hash:
                self._flag(record, "Outdated entity", result)
                result.outdated += 1
            else:
                continue

            entity = self._load(record)
            if entity is None:
                self.tracker.delete(record.entity_uuid)
                result.failed += 1
                result.messages.append(
                    _describe(record, "This entity exists in the tracking table but could not be loaded")
                )
                continue
            if reprocess and self._requeue(entity, record):
                result.requeued += 1

    def _flag(self, record: TrackingRecord, message: str, result: AuditResult) -> None:
        result.messages.append(_describe(record, message))
        logger.info(
            "audit_flagged",
            reason=message,
            uuid=record.entity_uuid,
            entity_type=record.entity_type,
            entity_id=record.entity_id,
        )

    def _load(self, record: TrackingRecord) -> Any:
        entity = None
        if record.entity_type and record.entity_id is not None:
            entity = self.store.load_by_id(record.entity_type, record.entity_id)
        if entity is None:
            error = EntityLoadError(record.entity_type or "unknown", record.entity_uuid)
            logger.warning("stale_tracking_row_deleted", table=self.tracker.table, **error.to_dict())
        return entity

    def _requeue(self, entity: Any, record: TrackingRecord) -> bool:
        # Subscriber rows are keyed by the remote UUID, which may differ from the local one.
        if self.enqueuer is not None:
            return self.enqueuer.enqueue_entity(entity, "update") is not None
        if self.import_queue is not None:
            return self.import_queue.enqueue_uuids([record.entity_uuid]) is not None
        return False
