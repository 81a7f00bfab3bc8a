"""
SQLite work queue with a visibility timeout.

Items are JSON payloads stored in ``cdf_queue`` under a queue name. A
worker *claims* an item by setting ``expire`` to a lease deadline; until
then no other worker can claim it. The worker then deletes the item
(success or drop) or releases it (retry). An item whose lease ran out,
because its worker crashed, becomes claimable again, which is what makes
delivery at-least-once.

Architecture:
    ::

        WorkQueue(conn, "cdf_export")
          ├── .create_item(data)        → item_id
          ├── .claim_item(lease_time)   → QueueItem | None
          ├── .release_item(item, delay) expire = now + delay (retry)
          ├── .delete_item(item)        done (success / drop)
          ├── .item_exists(item_id)
          ├── .number_of_items()
          └── .delete_queue()

Tags:
    queue, visibility-timeout, at-least-once, cdf-sync

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cdfsync.core.schema import TABLES

_TABLE = TABLES["queue"]


class ItemOutcome(str, Enum):
    """What the worker loop does with an item after processing it."""

    SUCCESS = "success"  # delete
    DROP = "drop"  # delete, nothing left to do
    RETRY = "retry"  # release for another attempt


@dataclass
class QueueItem:
    item_id: int
    name: str
    data: dict[str, Any] = field(default_factory=dict)
    expire: float = 0.0
    created: float = 0.0


class WorkQueue:
    """A named queue stored in the shared ``cdf_queue`` table."""

    def __init__(self, conn, name: str, clock=time.time) -> None:
        self._conn = conn
        self.name = name
        self._clock = clock

    def create_item(self, data: dict[str, Any]) -> int:
        cursor = self._conn.cursor()
        cursor.execute(
            f"INSERT INTO {_TABLE} (name, data, expire, created) VALUES (?, ?, 0, ?)",
            (self.name, json.dumps(data), self._clock()),
        )
        self._conn.commit()
        return cursor.lastrowid

    def claim_item(self, lease_time: float = 3600) -> QueueItem | None:
        """
        Claim the oldest available item for ``lease_time`` seconds.

        Available means never claimed, released, or with an expired lease.
        The UPDATE re-checks availability so two workers cannot claim the
        same item.
        """
        while True:
            now = self._clock()
            cursor = self._conn.cursor()
            cursor.execute(
                f"""
                SELECT item_id, name, data, expire, created FROM {_TABLE}
                WHERE name = ? AND (expire = 0 OR expire < ?)
                ORDER BY created, item_id
                LIMIT 1
                """,
                (self.name, now),
            )
            row = cursor.fetchone()
            if row is None:
                return None

            expire = now + lease_time
            cursor.execute(
                f"UPDATE {_TABLE} SET expire = ? WHERE item_id = ? AND expire = ?",
                (expire, row[0], row[3]),
            )
            self._conn.commit()
            if cursor.rowcount == 1:
                return QueueItem(item_id=row[0], name=row[1], data=json.loads(row[2]), expire=expire, created=row[4])

    def release_item(self, item: QueueItem, delay: float = 0) -> bool:
        """Make a claimed item available again, after ``delay`` seconds if given."""
        expire = self._clock() + delay if delay > 0 else 0
        cursor = self._conn.cursor()
        cursor.execute(f"UPDATE {_TABLE} SET expire = ? WHERE item_id = ?", (expire, item.item_id))
        self._conn.commit()
        return cursor.rowcount > 0

    def delete_item(self, item: QueueItem) -> None:
        self._conn.execute(f"DELETE FROM {_TABLE} WHERE item_id = ?", (item.item_id,))
        self._conn.commit()

    def item_exists(self, item_id: int | str) -> bool:
        cursor = self._conn.cursor()
        cursor.execute(f"SELECT 1 FROM {_TABLE} WHERE item_id = ? AND name = ?", (item_id, self.name))
        return cursor.fetchone() is not None

    def number_of_items(self) -> int:
        cursor = self._conn.cursor()
        cursor.execute(f"SELECT COUNT(*) FROM {_TABLE} WHERE name = ?", (self.name,))
        row = cursor.fetchone()
        return row[0] if row else 0

    def items(self) -> list[QueueItem]:
        cursor = self._conn.cursor()
        cursor.execute(
            f"SELECT item_id, name, data, expire, created FROM {_TABLE} WHERE name = ? ORDER BY created, item_id",
            (self.name,),
        )
        return [
            QueueItem(item_id=r[0], name=r[1], data=json.loads(r[2]), expire=r[3], created=r[4])
            for r in cursor.fetchall()
        ]

    def delete_queue(self) -> int:
        cursor = self._conn.cursor()
        cursor.execute(f"DELETE FROM {_TABLE} WHERE name = ?", (self.name,))
        self._conn.commit()
        return cursor.rowcount
