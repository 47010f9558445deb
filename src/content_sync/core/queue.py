"""
At-least-once work queues for batch pipelines.

An item is claimed with a lease, processed, then deleted. An item that was
claimed but never deleted (the run was interrupted) becomes claimable again
once its lease expires, or immediately after :meth:`WorkQueue.reset_claims`,
which every pipeline stage calls when it starts. Claims are FIFO by
insertion order.

Queue names carry a run id so an interrupted run can be resumed by name:
``content_sync_sync:<run_id>``.
"""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from content_sync.core.db import get_connection

logger = logging.getLogger(__name__)

DELETE_QUEUE_PREFIX = "content_sync_delete"
SYNC_QUEUE_PREFIX = "content_sync_sync"
EXPORT_QUEUE_PREFIX = "content_sync_export"

DEFAULT_LEASE_SECONDS = 30.0


def queue_name(prefix: str, run_id: str) -> str:
    return f"{prefix}:{run_id}"


@dataclass
class QueueItem:
    item_id: int
    data: Any
    created: float
    expire: float = 0.0


@runtime_checkable
class WorkQueue(Protocol):
    """Protocol for persistent or in-memory work queues."""

    name: str

    def create_item(self, data: Any) -> int:
        """Append *data* and return the new item id."""
        ...

    def number_of_items(self) -> int:
        """Count items still in the queue, claimed or not."""
        ...

    def claim_item(self, lease_time: float = DEFAULT_LEASE_SECONDS) -> QueueItem | None:
        """Claim the oldest unclaimed (or lease-expired) item, or None if drained."""
        ...

    def delete_item(self, item: QueueItem) -> None:
        """Remove a processed item."""
        ...

    def release_item(self, item: QueueItem) -> None:
        """Give up a claim without processing the item."""
        ...

    def reset_claims(self) -> int:
        """Make every claimed item claimable again. Returns how many were reset."""
        ...

    def delete_queue(self) -> None:
        """Remove every item of this queue."""
        ...


class MemoryQueue:
    """Work queue held in process memory."""

    def __init__(self, name: str, clock: Callable[[], float] = time.time) -> None:
        self.name = name
        self._clock = clock
        self._items: list[QueueItem] = []
        self._next_id = 1

    def create_item(self, data: Any) -> int:
        item = QueueItem(item_id=self._next_id, data=copy.deepcopy(data), created=self._clock())
        self._next_id += 1
        self._items.append(item)
        return item.item_id

    def number_of_items(self) -> int:
        return len(self._items)

    def claim_item(self, lease_time: float = DEFAULT_LEASE_SECONDS) -> QueueItem | None:
        now = self._clock()
        for item in self._items:
            if item.expire == 0 or item.expire < now:
                item.expire = now + lease_time
                return QueueItem(item.item_id, copy.deepcopy(item.data), item.created, item.expire)
        return None

    def delete_item(self, item: QueueItem) -> None:
        self._items = [i for i in self._items if i.item_id != item.item_id]

    def release_item(self, item: QueueItem) -> None:
        for i in self._items:
            if i.item_id == item.item_id:
                i.expire = 0.0

    def reset_claims(self) -> int:
        count = 0
        for item in self._items:
            if item.expire:
                item.expire = 0.0
                count += 1
        return count

    def delete_queue(self) -> None:
        self._items.clear()


class SqliteQueue:
    """
    Work queue persisted in SQLite, surviving process restarts.

    Payloads are stored as JSON, so items must be JSON-serializable.

    Example:
        >>> queue = SqliteQueue(db_path, queue_name(SYNC_QUEUE_PREFIX, run_id))
        >>> queue.create_item({"entity_type": "node", "name": "node.article.5b6c"})
        >>> item = queue.claim_item()
        >>> queue.delete_item(item)
    """

    TABLE = "cs_queue"

    def __init__(
        self, db_path: Path | str, name: str, clock: Callable[[], float] = time.time
    ) -> None:
        self.db_path = Path(db_path)
        self.name = name
        self._clock = clock
        self.ensure_schema(self.db_path)

    @classmethod
    def ensure_schema(cls, db_path: Path) -> None:
        with get_connection(db_path) as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {cls.TABLE} (
                    item_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    data TEXT NOT NULL,
                    expire REAL NOT NULL DEFAULT 0,
                    created REAL NOT NULL
                )
                """
            )
            conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{cls.TABLE}_name ON {cls.TABLE}(name)")

    @classmethod
    def list_queues(cls, db_path: Path | str, prefix: str = "") -> list[str]:
        """Names of non-empty queues starting with *prefix*."""
        try:
            with get_connection(db_path) as conn:
                rows = conn.execute(
                    f"""
                    SELECT DISTINCT name FROM {cls.TABLE}
                    WHERE substr(name, 1, ?) = ? ORDER BY name
                    """,
                    (len(prefix), prefix),
                ).fetchall()
        except sqlite3.OperationalError:
            return []
        return [row["name"] for row in rows]

    def create_item(self, data: Any) -> int:
        with get_connection(self.db_path) as conn:
            cursor = conn.execute(
                f"INSERT INTO {self.TABLE} (name, data, created) VALUES (?, ?, ?)",
                (self.name, json.dumps(data, ensure_ascii=False, default=str), self._clock()),
            )
        return int(cursor.lastrowid or 0)

    def number_of_items(self) -> int:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                f"SELECT COUNT(*) AS total FROM {self.TABLE} WHERE name = ?", (self.name,)
            ).fetchone()
        return int(row["total"])

    def claim_item(self, lease_time: float = DEFAULT_LEASE_SECONDS) -> QueueItem | None:
        now = self._clock()
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                f"""
                SELECT item_id, data, created, expire FROM {self.TABLE}
                WHERE name = ? AND (expire = 0 OR expire < ?)
                ORDER BY item_id LIMIT 1
                """,
                (self.name, now),
            ).fetchone()
            if row is None:
                return None
            expire = now + lease_time
            conn.execute(
                f"UPDATE {self.TABLE} SET expire = ? WHERE item_id = ?",
                (expire, row["item_id"]),
            )
        return QueueItem(
            item_id=row["item_id"],
            data=json.loads(row["data"]),
            created=row["created"],
            expire=expire,
        )

    def delete_item(self, item: QueueItem) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute(f"DELETE FROM {self.TABLE} WHERE item_id = ?", (item.item_id,))

    def release_item(self, item: QueueItem) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute(
                f"UPDATE {self.TABLE} SET expire = 0 WHERE item_id = ?", (item.item_id,)
            )

    def reset_claims(self) -> int:
        with get_connection(self.db_path) as conn:
            cursor = conn.execute(
                f"UPDATE {self.TABLE} SET expire = 0 WHERE name = ? AND expire <> 0",
                (self.name,),
            )
        if cursor.rowcount:
            logger.info("Reset %d stale claims on %s", cursor.rowcount, self.name)
        return cursor.rowcount

    def delete_queue(self) -> None:
        with get_connection(self.db_path) as conn:
            conn.execute(f"DELETE FROM {self.TABLE} WHERE name = ?", (self.name,))
