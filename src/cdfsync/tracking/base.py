"""
Shared sqlite storage for the publisher and subscriber trackers.

Both trackers are one row per UUID with a status, a nullable content hash
and a nullable queue correlation id. Every write is a single-row
statement scoped by ``entity_uuid`` and committed immediately, so workers
acting on different UUIDs never contend and re-running a write is
harmless.

Query surface::

    get(uuid)                         record or None
    list_tracked_entities(status, entity_type=None)
    set_status_by_uuid(uuid, status)
    nullify_hashes(statuses=, entity_types=, uuids=)
    delete(uuid)
    get_queue_id(uuid) / set_queue_item_by_uuid / nullify_queue_id
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any, ClassVar

from cdfsync.core.errors import InvalidTransitionError
from cdfsync.core.schema import TABLES
from cdfsync.core.timestamps import to_iso8601, utc_now

from .models import TrackingRecord

_SELECT = "SELECT " + ", ".join(TrackingRecord.COLUMNS) + " FROM {table}"


def _status_value(status: str | Enum) -> str:
    return status.value if isinstance(status, Enum) else status


class BaseTracker:
    """Row-per-UUID tracking table."""

    table: ClassVar[str]
    statuses: ClassVar[type[Enum]]

    def __init__(self, conn) -> None:
        """
        Args:
            conn: Database connection (sqlite3.Connection or compatible)
        """
        self._conn = conn

    # -- validation ------------------------------------------------------

    def _check_status(self, status: str | Enum) -> str:
        value = _status_value(status)
        allowed = [s.value for s in self.statuses]
        if value not in allowed:
            raise InvalidTransitionError(value, allowed)
        return value

    # -- reads -----------------------------------------------------------

    def get(self, uuid: str) -> TrackingRecord | None:
        cursor = self._conn.cursor()
        cursor.execute(_SELECT.format(table=self.table) + " WHERE entity_uuid = ?", (uuid,))
        row = cursor.fetchone()
        if row is None:
            return None
        return TrackingRecord.from_row(row)

    def is_tracked(self, uuid: str) -> bool:
        cursor = self._conn.cursor()
        cursor.execute(f"SELECT 1 FROM {self.table} WHERE entity_uuid = ?", (uuid,))
        return cursor.fetchone() is not None

    def list_tracked_entities(
        self,
        status: str | Enum | Iterable[str | Enum],
        entity_type: str | None = None,
    ) -> list[TrackingRecord]:
        """List records in one or more statuses, optionally of one entity type."""
        if isinstance(status, (str, Enum)):
            statuses = [self._check_status(status)]
        else:
            statuses = [self._check_status(s) for s in status]

        query = _SELECT.format(table=self.table)
        query += " WHERE status IN ({})".format(", ".join("?" for _ in statuses))
        params: list[Any] = list(statuses)
        if entity_type:
            query += " AND entity_type = ?"
            params.append(entity_type)
        query += " ORDER BY created, entity_uuid"

        cursor = self._conn.cursor()
        cursor.execute(query, params)
        return [TrackingRecord.from_row(row) for row in cursor.fetchall()]

    def count(self, status: str | Enum | None = None) -> int:
        cursor = self._conn.cursor()
        if status is None:
            cursor.execute(f"SELECT COUNT(*) FROM {self.table}")
        else:
            cursor.execute(f"SELECT COUNT(*) FROM {self.table} WHERE status = ?", (self._check_status(status),))
        row = cursor.fetchone()
        return row[0] if row else 0

    # -- writes ----------------------------------------------------------

    def _insert_or_update(
        self,
        uuid: str,
        status: str | Enum,
        *,
        entity_type: str | None = None,
        entity_id: Any = None,
        hash: str | None = None,
    ) -> None:
        """
        Upsert one row.

        Existing rows keep their ``created`` date, and keep their hash
        unless a new one is supplied. Entity type/id are filled in when
        they become known.
        """
        value = self._check_status(status)
        now = to_iso8601(utc_now())
        entity_id = None if entity_id is None else str(entity_id)
        self._conn.execute(
            f"""
            INSERT INTO {self.table} (
                entity_type, entity_id, entity_uuid, status, hash, created, modified
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(entity_uuid) DO UPDATE SET
                status = excluded.status,
                modified = excluded.modified,
                hash = COALESCE(excluded.hash, {self.table}.hash),
                entity_type = COALESCE(excluded.entity_type, {self.table}.entity_type),
                entity_id = COALESCE(excluded.entity_id, {self.table}.entity_id)
            """,
            (entity_type, entity_id, uuid, value, hash or None, now, now),
        )
        self._conn.commit()

    def set_status_by_uuid(self, uuid: str, status: str | Enum) -> bool:
        """Change the status of an existing row. Returns False if untracked."""
        value = self._check_status(status)
        cursor = self._conn.cursor()
        cursor.execute(
            f"UPDATE {self.table} SET status = ?, modified = ? WHERE entity_uuid = ?",
            (value, to_iso8601(utc_now()), uuid),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    def nullify_hashes(
        self,
        statuses: Iterable[str | Enum] = (),
        entity_types: Iterable[str] = (),
        uuids: Iterable[str] = (),
    ) -> int:
        """
        Blank ``hash`` for every row matching all given filters.

        Status is left untouched. With no filters every row is affected.

        Returns:
            Number of rows updated
        """
        query = f"UPDATE {self.table} SET hash = NULL WHERE 1=1"
        params: list[Any] = []
        for column, values in (
            ("status", [self._check_status(s) for s in statuses]),
            ("entity_type", list(entity_types)),
            ("entity_uuid", list(uuids)),
        ):
            if values:
                query += " AND {} IN ({})".format(column, ", ".join("?" for _ in values))
                params.extend(values)
        cursor = self._conn.cursor()
        cursor.execute(query, params)
        self._conn.commit()
        return cursor.rowcount

    def delete(self, uuid: str) -> bool:
        cursor = self._conn.cursor()
        cursor.execute(f"DELETE FROM {self.table} WHERE entity_uuid = ?", (uuid,))
        self._conn.commit()
        return cursor.rowcount > 0

    # -- queue correlation -----------------------------------------------

    def get_queue_id(self, uuid: str, tracker_only: bool = False) -> str | None:
        """
        Queue item id stored for ``uuid``.

        Unless ``tracker_only`` is set, the id is only returned while the
        item still exists in the live work queue.
        """
        cursor = self._conn.cursor()
        cursor.execute(f"SELECT queue_id FROM {self.table} WHERE entity_uuid = ?", (uuid,))
        row = cursor.fetchone()
        queue_id = row[0] if row else None
        if tracker_only or not queue_id:
            return queue_id or None

        cursor.execute(f"SELECT item_id FROM {TABLES['queue']} WHERE item_id = ?", (queue_id,))
        live = cursor.fetchone()
        return str(live[0]) if live else None

    def set_queue_item_by_uuid(self, uuid: str, queue_id: str | int) -> bool:
        cursor = self._conn.cursor()
        cursor.execute(
            f"UPDATE {self.table} SET queue_id = ? WHERE entity_uuid = ?",
            (str(queue_id), uuid),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    def nullify_queue_id(self, uuid: str) -> None:
        self._conn.execute(f"UPDATE {self.table} SET queue_id = NULL WHERE entity_uuid = ?", (uuid,))
        self._conn.commit()
