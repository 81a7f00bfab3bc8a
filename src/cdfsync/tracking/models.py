"""Tracking record model and the status enums of both trackers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class PublisherStatus(str, Enum):
    """Export side: queued → exported → confirmed."""

    QUEUED = "queued"
    EXPORTED = "exported"
    CONFIRMED = "confirmed"


class SubscriberStatus(str, Enum):
    """Import side: queued → imported, plus auto_update_disabled."""

    QUEUED = "queued"
    IMPORTED = "imported"
    AUTO_UPDATE_DISABLED = "auto_update_disabled"


@dataclass
class TrackingRecord:
    """
    One tracking row.

    ``hash`` of ``None`` means the entity must be re-exported (publisher)
    or re-imported (subscriber) regardless of its content.
    """

    entity_uuid: str
    status: str
    entity_type: str | None = None
    entity_id: str | None = None
    hash: str | None = None
    queue_id: str | None = None
    created: str | None = None
    modified: str | None = None

    COLUMNS = ("entity_type", "entity_id", "entity_uuid", "status", "hash", "queue_id", "created", "modified")

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> TrackingRecord:
        values = dict(zip(cls.COLUMNS, row, strict=True))
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {column: getattr(self, column) for column in self.COLUMNS}
