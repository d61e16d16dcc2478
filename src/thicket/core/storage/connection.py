"""
Database connection management for the thicket cache.

Settings applied to every connection:
- WAL mode for concurrent readers while the CLI writes
- Foreign key enforcement (label rows cascade with their ticket)
- Row factory for dict-like access

Usage:
    from thicket.core.storage.connection import init_db

    conn = init_db(Path(".thicket/cache.db"))
    row = execute_one(conn, "SELECT * FROM tickets WHERE id = ?", ("TH-abc123",))
    conn.close()
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from thicket.core.storage.schema import migrate


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """
    Row factory that returns rows as dictionaries.

    Enables dict-like access to query results: row["column_name"]
    instead of positional access: row[0].
    """
    fields = [column[0] for column in cursor.description]
    return dict(zip(fields, row))


def configure_connection(conn: sqlite3.Connection) -> None:
    """Configure a SQLite connection with thicket's settings."""
    # In-memory databases report "memory" and ignore the request
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = dict_factory


def init_db(db_path: Path | str) -> sqlite3.Connection:
    """
    Open (creating if needed) the cache database and bring its schema current.

    Args:
        db_path: Path to the SQLite database file, or ":memory:"

    Returns:
        Configured SQLite connection
    """
    if str(db_path) == ":memory:":
        conn = sqlite3.connect(":memory:")
    else:
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(db_path))

    try:
        configure_connection(conn)
        migrate(conn)
    except Exception:
        conn.close()
        raise
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Run a block in a transaction: commit on success, roll back on error.

    Example:
        >>> with transaction(conn):
        ...     conn.execute("DELETE FROM tickets")
        ...     conn.execute("INSERT INTO tickets (...) VALUES (...)")
    """
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


def execute_query(
    conn: sqlite3.Connection,
    query: str,
    params: tuple[Any, ...] | dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Execute a query and return all results as a list of dicts."""
    if params is None:
        params = ()

    cursor = conn.execute(query, params)
    return cursor.fetchall()


def execute_one(
    conn: sqlite3.Connection,
    query: str,
    params: tuple[Any, ...] | dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """Execute a query and return the first result as a dict, or None."""
    if params is None:
        params = ()

    cursor = conn.execute(query, params)
    result = cursor.fetchone()
    # fetchone() returns dict[str, Any] or None when dict_factory is configured
    return result  # type: ignore[no-any-return]
