"""
SQLite connection helpers shared by the snapshot store and the work queue.

Both live in the same database file under the state directory
(``.content-sync/content_sync.db`` by default).

Usage:
    from content_sync.core.db import get_connection

    with get_connection(db_path) as conn:
        rows = conn.execute("SELECT name FROM cs_db_snapshot").fetchall()
        for row in rows:
            print(row["name"])
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

DEFAULT_DB_NAME = "content_sync.db"


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """
    Row factory that returns rows as dictionaries.

    Enables dict-like access to query results: row["column_name"]
    instead of positional access: row[0].
    """
    fields = [column[0] for column in cursor.description]
    return dict(zip(fields, row))


def configure_connection(conn: sqlite3.Connection) -> None:
    """
    Configure a SQLite connection.

    Settings applied:
    - WAL mode: readers do not block the single pipeline writer
    - dict_factory: dict-like row access
    """
    conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = dict_factory


@contextmanager
def get_connection(db_path: Path | str) -> Iterator[sqlite3.Connection]:
    """
    Get a database connection as a context manager.

    Commits when the block exits cleanly, rolls back if it raises, and
    always closes the connection.

    Args:
        db_path: Path to the SQLite database file

    Yields:
        Configured SQLite connection
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    configure_connection(conn)

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
