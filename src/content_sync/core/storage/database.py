"""
SQLite snapshot storage.

The snapshot table records the last-written representation of every
entity, keyed by ``(collection, name)``. It is a change-detection cache for
exports and the "active" side of import diffs, never a source of truth.

On top of the collection-scoped storage protocol it offers
collection-independent ``content_sync_*`` accessors keyed by name alone,
used by the export resolver and the pipelines.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from content_sync.core.db import get_connection
from content_sync.core.names import DEFAULT_COLLECTION
from content_sync.core.storage.base import StorageError

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "cs_db_snapshot"


class DatabaseStorage:
    """Content storage persisted in a SQLite table."""

    def __init__(
        self,
        db_path: Path | str,
        table: str = DEFAULT_TABLE,
        collection: str = DEFAULT_COLLECTION,
    ) -> None:
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table!r}")
        self.db_path = Path(db_path)
        self.table = table
        self.collection = collection

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def ensure_table_exists(self) -> bool:
        """Create the snapshot table if needed. Returns False on failure."""
        try:
            with get_connection(self.db_path) as conn:
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self.table} (
                        collection TEXT NOT NULL DEFAULT '',
                        name TEXT NOT NULL,
                        data TEXT NOT NULL,
                        PRIMARY KEY (collection, name)
                    )
                    """
                )
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{self.table}_name ON {self.table}(name)"
                )
        except (sqlite3.Error, OSError) as e:
            logger.error("Failed to create table %s in %s: %s", self.table, self.db_path, e)
            return False
        return True

    @staticmethod
    def encode(data: dict[str, Any]) -> str:
        # YAML timestamps decode to date/datetime; store them as ISO strings.
        return json.dumps(data, ensure_ascii=False, separators=(",", ":"), default=str)

    @staticmethod
    def decode(raw: str) -> dict[str, Any]:
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise StorageError(f"Invalid snapshot data: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Expected a JSON object, got {type(data).__name__}")
        return data

    # ------------------------------------------------------------------
    # Collection-scoped storage protocol
    # ------------------------------------------------------------------

    def exists(self, name: str) -> bool:
        try:
            with get_connection(self.db_path) as conn:
                row = conn.execute(
                    f"SELECT 1 AS found FROM {self.table} WHERE collection = ? AND name = ?",
                    (self.collection, name),
                ).fetchone()
        except sqlite3.Error:
            return False
        return row is not None

    def read(self, name: str) -> dict[str, Any] | None:
        try:
            with get_connection(self.db_path) as conn:
                row = conn.execute(
                    f"SELECT data FROM {self.table} WHERE collection = ? AND name = ?",
                    (self.collection, name),
                ).fetchone()
        except sqlite3.Error:
            return None
        if row is None:
            return None
        return self.decode(row["data"])

    def read_multiple(self, names: list[str]) -> dict[str, dict[str, Any]]:
        result: dict[str, dict[str, Any]] = {}
        for name in names:
            data = self.read(name)
            if data is not None:
                result[name] = data
        return result

    def write(self, name: str, data: dict[str, Any]) -> bool:
        return self.content_sync_write(name, data, self.collection)

    def delete(self, name: str) -> bool:
        try:
            with get_connection(self.db_path) as conn:
                cursor = conn.execute(
                    f"DELETE FROM {self.table} WHERE collection = ? AND name = ?",
                    (self.collection, name),
                )
        except sqlite3.Error:
            return False
        return cursor.rowcount > 0

    def delete_all(self) -> None:
        """Remove every row of the snapshot table, across all collections."""
        try:
            with get_connection(self.db_path) as conn:
                conn.execute(f"DELETE FROM {self.table}")
        except sqlite3.OperationalError:
            # Table not created yet; nothing to clear.
            pass

    def list_all(self, prefix: str = "") -> list[str]:
        try:
            with get_connection(self.db_path) as conn:
                rows = conn.execute(
                    f"""
                    SELECT name FROM {self.table}
                    WHERE collection = ? AND substr(name, 1, ?) = ?
                    ORDER BY name
                    """,
                    (self.collection, len(prefix), prefix),
                ).fetchall()
        except sqlite3.Error:
            return []
        return [row["name"] for row in rows]

    def create_collection(self, collection: str) -> DatabaseStorage:
        return DatabaseStorage(self.db_path, self.table, collection)

    def get_all_collection_names(self) -> list[str]:
        try:
            with get_connection(self.db_path) as conn:
                rows = conn.execute(
                    f"""
                    SELECT DISTINCT collection FROM {self.table}
                    WHERE collection <> '' ORDER BY collection
                    """
                ).fetchall()
        except sqlite3.Error:
            return []
        return [row["collection"] for row in rows]

    # ------------------------------------------------------------------
    # Collection-independent accessors
    # ------------------------------------------------------------------

    def content_sync_write(self, name: str, data: dict[str, Any], collection: str) -> bool:
        """
        Replace the row for *name* under *collection*.

        Any row for *name* in another collection is removed first. A missing
        table is created and the write retried once.

        Raises:
            StorageError: If the write fails for any other reason
        """
        try:
            encoded = self.encode(data)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Cannot encode {name}: {e}") from e
        try:
            return self._content_sync_do_write(name, encoded, collection)
        except sqlite3.Error as e:
            if self.ensure_table_exists():
                try:
                    return self._content_sync_do_write(name, encoded, collection)
                except sqlite3.Error as retry_error:
                    raise StorageError(str(retry_error)) from retry_error
            raise StorageError(str(e)) from e

    def _content_sync_do_write(self, name: str, encoded: str, collection: str) -> bool:
        with get_connection(self.db_path) as conn:
            conn.execute(f"DELETE FROM {self.table} WHERE name = ?", (name,))
            conn.execute(
                f"INSERT INTO {self.table} (collection, name, data) VALUES (?, ?, ?)",
                (collection, name, encoded),
            )
        return True

    def content_sync_read(self, name: str) -> dict[str, Any] | None:
        """Read *name* from any collection. Returns None if absent or unreadable."""
        try:
            with get_connection(self.db_path) as conn:
                row = conn.execute(
                    f"SELECT data FROM {self.table} WHERE name = ? LIMIT 1", (name,)
                ).fetchone()
            if row is not None:
                return self.decode(row["data"])
        except (sqlite3.Error, StorageError):
            # No database or table yet; the caller treats this as absent.
            pass
        return None

    def content_sync_delete(self, name: str) -> bool:
        """Delete *name* from every collection."""
        try:
            with get_connection(self.db_path) as conn:
                cursor = conn.execute(f"DELETE FROM {self.table} WHERE name = ?", (name,))
        except sqlite3.OperationalError:
            return False
        return cursor.rowcount > 0
