"""
SQLite schema for the thicket cache database.

The cache is a derived index over tickets.jsonl and can always be rebuilt
from it, so migrations are destructive: an out-of-date schema is dropped and
recreated, and the next sync repopulates it.

Schema Design:
- tickets: one row per ticket
- ticket_labels: label join table (position preserves label order)
- comments: one row per comment, indexed by owning ticket
- dependencies: one row per edge, unique on (from, to, type)
- metadata: key/value store holding the staleness checkpoint
- schema_info: version tracking for migrations

Timestamps are stored as fixed-width RFC 3339 UTC strings, so ORDER BY on
the text column is chronological.
"""

import logging
import sqlite3

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 1

# Tables owned by the cache, in drop order
CACHE_TABLES = [
    "ticket_labels",
    "comments",
    "dependencies",
    "tickets",
    "metadata",
    "schema_info",
]

# SQLite schema DDL
SCHEMA_DDL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_info (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    description TEXT
);

CREATE TABLE IF NOT EXISTS tickets (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    type TEXT,
    status TEXT NOT NULL DEFAULT 'open',
    priority INTEGER NOT NULL DEFAULT 0,
    assignee TEXT,
    created TEXT NOT NULL,
    updated TEXT NOT NULL
);

-- Labels are a set per ticket; position keeps the order they were added in
CREATE TABLE IF NOT EXISTS ticket_labels (
    ticket_id TEXT NOT NULL,
    label TEXT NOT NULL,
    position INTEGER NOT NULL,

    FOREIGN KEY (ticket_id) REFERENCES tickets(id) ON DELETE CASCADE,

    PRIMARY KEY (ticket_id, label)
);

-- ticket_id is a soft reference: comments may name tickets not in the log
CREATE TABLE IF NOT EXISTS comments (
    id TEXT PRIMARY KEY,
    ticket_id TEXT NOT NULL,
    content TEXT NOT NULL,
    created TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS dependencies (
    id TEXT PRIMARY KEY,
    from_ticket_id TEXT NOT NULL,
    to_ticket_id TEXT NOT NULL,
    type TEXT NOT NULL CHECK(type IN ('blocked_by', 'created_from')),
    created TEXT NOT NULL,

    -- Prevent duplicate edges
    UNIQUE(from_ticket_id, to_ticket_id, type)
);

CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT
);

-- Indexes for performance
CREATE INDEX IF NOT EXISTS idx_tickets_status ON tickets(status);
CREATE INDEX IF NOT EXISTS idx_tickets_priority ON tickets(priority);

CREATE INDEX IF NOT EXISTS idx_ticket_labels_label ON ticket_labels(label);

CREATE INDEX IF NOT EXISTS idx_comments_ticket_id ON comments(ticket_id);

CREATE INDEX IF NOT EXISTS idx_dependencies_from ON dependencies(from_ticket_id);
CREATE INDEX IF NOT EXISTS idx_dependencies_to ON dependencies(to_ticket_id);
CREATE INDEX IF NOT EXISTS idx_dependencies_type ON dependencies(type);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """
    Create the database schema.

    Executes all DDL statements to create tables and indexes.
    This is idempotent - safe to call multiple times.

    Args:
        conn: SQLite database connection

    Example:
        >>> import sqlite3
        >>> conn = sqlite3.connect(":memory:")
        >>> create_schema(conn)
        >>> cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        >>> tables = [row[0] for row in cursor.fetchall()]
        >>> assert "tickets" in tables
        >>> assert "dependencies" in tables
    """
    conn.executescript(SCHEMA_DDL)

    conn.execute(
        """
        INSERT OR REPLACE INTO schema_info (version, description)
        VALUES (?, ?)
        """,
        (SCHEMA_VERSION, "Tickets, labels, comments, dependencies and sync metadata"),
    )

    conn.commit()


def drop_schema(conn: sqlite3.Connection) -> None:
    """Drop every cache table. The next sync rebuilds them from the log."""
    for table in CACHE_TABLES:
        conn.execute(f"DROP TABLE IF EXISTS {table}")
    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """
    Get the current schema version from the database.

    Returns:
        Current schema version, or None if schema_info table doesn't exist
    """
    try:
        cursor = conn.execute("SELECT MAX(version) AS version FROM schema_info")
        row = cursor.fetchone()
    except sqlite3.OperationalError:
        # schema_info table doesn't exist
        return None
    if row is None:
        return None
    version = row["version"] if isinstance(row, dict) else row[0]
    return int(version) if version is not None else None


def needs_migration(conn: sqlite3.Connection) -> bool:
    """
    Check if database needs migration to current schema version.

    Example:
        >>> import sqlite3
        >>> conn = sqlite3.connect(":memory:")
        >>> assert needs_migration(conn) is True  # No schema yet
        >>> create_schema(conn)
        >>> assert needs_migration(conn) is False  # Up to date
    """
    return get_schema_version(conn) != SCHEMA_VERSION


def migrate(conn: sqlite3.Connection) -> bool:
    """
    Bring the schema to SCHEMA_VERSION.

    Returns:
        True if tables were (re)created, False if already current
    """
    if not needs_migration(conn):
        return False
    current = get_schema_version(conn)
    if current is not None:
        logger.info(f"Cache schema v{current} is stale (want v{SCHEMA_VERSION}); recreating")
        drop_schema(conn)
    create_schema(conn)
    return True
