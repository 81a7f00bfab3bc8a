"""Publisher Tracker: export-side state (queued → exported → confirmed)."""

from __future__ import annotations

from typing import Any

from cdfsync.core.schema import TABLES

from .base import BaseTracker
from .models import PublisherStatus


class PublisherTracker(BaseTracker):
    """
    Per-UUID export tracking.

    Example:
        >>> tracker = PublisherTracker(conn)
        >>> tracker.queue(node)
        >>> tracker.track(node, "a1b2...")
        >>> tracker.get(node.uuid).status
        'exported'
    """

    table = TABLES["publisher_tracking"]
    statuses = PublisherStatus

    def queue(self, entity: Any) -> None:
        """Mark ``entity`` QUEUED; the stored hash is kept."""
        self._insert_or_update(
            entity.uuid, PublisherStatus.QUEUED, entity_type=entity.entity_type, entity_id=entity.id
        )

    def track(self, entity: Any, hash: str) -> None:
        """Mark ``entity`` EXPORTED with the hash of the CDF that was sent."""
        self._insert_or_update(
            entity.uuid, PublisherStatus.EXPORTED, entity_type=entity.entity_type, entity_id=entity.id, hash=hash
        )

    def confirm(self, uuid: str) -> bool:
        """Remote confirmation of an export. Returns False if untracked."""
        return self.set_status_by_uuid(uuid, PublisherStatus.CONFIRMED)

    def get_hash(self, uuid: str) -> str | None:
        record = self.get(uuid)
        return record.hash if record else None
