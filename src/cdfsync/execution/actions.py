"""Administrative publisher operations."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from cdfsync.core.errors import SyncError
from cdfsync.core.logging import get_logger
from cdfsync.core.settings import is_valid_uuid

if TYPE_CHECKING:
    from cdfsync.ingestion.serializer import CdfSerializer
    from cdfsync.tracking.publisher import PublisherTracker

    from .enqueuer import EntityEnqueuer

logger = get_logger(__name__)

REEXPORT_OPERATIONS = ("insert", "update")


class PublisherActions:
    def __init__(self, tracker: PublisherTracker, serializer: CdfSerializer, enqueuer: EntityEnqueuer) -> None:
        self.tracker = tracker
        self.serializer = serializer
        self.enqueuer = enqueuer

    def reexport_entity_full(
        self,
        entity: Any,
        dependencies: Iterable[str] | None = None,
        op: str = "update",
    ) -> int | None:
        """
        Force a full re-export of ``entity`` and its dependencies.

        Hashes of the entity and of every dependency are nullified so the
        next export re-serializes all of them, then the entity is enqueued.
        Dependencies are recalculated when not given (or not UUIDs).

        Returns:
            The queue item id, or ``None`` if the enqueuer declined.
        """
        if op not in REEXPORT_OPERATIONS:
            raise SyncError(
                f'Wrong operation provided (op = "{op}") to re-queue entity '
                f"{entity.entity_type}/{entity.id} for export."
            )

        dependencies = list(dependencies or [])
        if not dependencies or not is_valid_uuid(dependencies[0]):
            wrapper, _stack = self.serializer.calculate(entity)
            dependencies = list(wrapper.dependencies)

        uuids = [entity.uuid, *dependencies]
        nullified = self.tracker.nullify_hashes(uuids=uuids)
        logger.info("reexport_requested", uuid=entity.uuid, dependencies=len(dependencies), nullified=nullified)
        return self.enqueuer.enqueue_entity(entity, op)

    def delete_entity(self, entity: Any) -> bool:
        """Forget a locally deleted entity. Returns False if it was not tracked."""
        removed = self.tracker.delete(entity.uuid)
        if removed:
            logger.info("tracking_removed", uuid=entity.uuid, entity_type=entity.entity_type)
        return removed
