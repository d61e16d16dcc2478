"""
Relational cache over the ticket log.

TicketCache wraps a configured SQLite connection (see connection.py) and
maps between table rows and the Ticket/Comment/Dependency models. It holds
nothing that is not in tickets.jsonl: rebuild(log.read_all()) followed by
snapshot() returns the same records, labels, edge kinds and timestamps
included.

Usage:
    conn = init_db(paths.cache)
    cache = TicketCache(conn)
    cache.rebuild(LogStore(paths.tickets).read_all())
    ready_candidates = cache.list_tickets(status=TicketStatus.OPEN)
"""

import logging
import sqlite3
from collections import Counter
from typing import Any

from thicket.core.exceptions import LogCorruptedError, TicketNotFoundError
from thicket.core.storage.connection import execute_one, execute_query, transaction
from thicket.core.storage.log import LogSnapshot
from thicket.core.tickets.models import (
    Comment,
    Dependency,
    DependencyType,
    Ticket,
    TicketStatus,
    format_timestamp,
)

logger = logging.getLogger(__name__)

_TICKET_COLUMNS = "id, title, description, type, status, priority, assignee, created, updated"
_TICKET_ORDER = "ORDER BY t.priority ASC, t.created ASC, t.id ASC"
_LABEL_BATCH = 500


class TicketCache:
    """
    Query and write access to the cache tables.

    Single-record writes commit immediately; rebuild() replaces every table
    inside one transaction so a failed rebuild leaves the previous contents.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """
        Args:
            conn: SQLite connection with dict_factory and schema applied
        """
        self.conn = conn

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def _labels_for(self, ticket_ids: list[str]) -> dict[str, list[str]]:
        labels: dict[str, list[str]] = {}
        # Chunked to stay under SQLite's bound-parameter limit
        for start in range(0, len(ticket_ids), _LABEL_BATCH):
            batch = ticket_ids[start : start + _LABEL_BATCH]
            placeholders = ",".join("?" * len(batch))
            rows = execute_query(
                self.conn,
                f"""
                SELECT ticket_id, label FROM ticket_labels
                WHERE ticket_id IN ({placeholders})
                ORDER BY ticket_id, position
                """,
                tuple(batch),
            )
            for row in rows:
                labels.setdefault(row["ticket_id"], []).append(row["label"])
        return labels

    def _tickets_from_rows(self, rows: list[dict[str, Any]]) -> list[Ticket]:
        labels = self._labels_for([row["id"] for row in rows])
        return [
            Ticket.model_validate({**row, "labels": labels.get(row["id"], [])}) for row in rows
        ]

    @staticmethod
    def _ticket_params(ticket: Ticket) -> tuple[Any, ...]:
        return (
            ticket.id,
            ticket.title,
            ticket.description,
            ticket.type.value if ticket.type is not None else None,
            ticket.status.value,
            ticket.priority,
            ticket.assignee,
            format_timestamp(ticket.created),
            format_timestamp(ticket.updated),
        )

    def _write_labels(self, ticket: Ticket) -> None:
        self.conn.execute("DELETE FROM ticket_labels WHERE ticket_id = ?", (ticket.id,))
        self.conn.executemany(
            "INSERT INTO ticket_labels (ticket_id, label, position) VALUES (?, ?, ?)",
            [(ticket.id, label, pos) for pos, label in enumerate(ticket.labels)],
        )

    def _insert_ticket_row(self, ticket: Ticket) -> None:
        self.conn.execute(
            f"INSERT INTO tickets ({_TICKET_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            self._ticket_params(ticket),
        )
        self._write_labels(ticket)

    def _insert_comment_row(self, comment: Comment) -> None:
        self.conn.execute(
            "INSERT INTO comments (id, ticket_id, content, created) VALUES (?, ?, ?, ?)",
            (comment.id, comment.ticket_id, comment.content, format_timestamp(comment.created)),
        )

    def _insert_dependency_row(self, dep: Dependency) -> None:
        self.conn.execute(
            """
            INSERT INTO dependencies (id, from_ticket_id, to_ticket_id, type, created)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                dep.id,
                dep.from_ticket_id,
                dep.to_ticket_id,
                dep.type.value,
                format_timestamp(dep.created),
            ),
        )

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------

    def insert_ticket(self, ticket: Ticket) -> None:
        """Insert a new ticket row and its labels."""
        with transaction(self.conn):
            self._insert_ticket_row(ticket)

    def update_ticket(self, ticket: Ticket) -> None:
        """
        Overwrite an existing ticket row and its labels.

        Raises:
            TicketNotFoundError: If no row has ticket.id. Callers confirm
                existence first, so this indicates a programming error.
        """
        with transaction(self.conn):
            cursor = self.conn.execute(
                """
                UPDATE tickets
                SET title = ?, description = ?, type = ?, status = ?, priority = ?,
                    assignee = ?, created = ?, updated = ?
                WHERE id = ?
                """,
                (*self._ticket_params(ticket)[1:], ticket.id),
            )
            if cursor.rowcount == 0:
                raise TicketNotFoundError(ticket.id)
            self._write_labels(ticket)

    def get_ticket(self, ticket_id: str) -> Ticket | None:
        """Point lookup by ID; None when absent."""
        row = execute_one(
            self.conn, f"SELECT {_TICKET_COLUMNS} FROM tickets WHERE id = ?", (ticket_id,)
        )
        if row is None:
            return None
        return self._tickets_from_rows([row])[0]

    def ticket_exists(self, ticket_id: str) -> bool:
        row = execute_one(self.conn, "SELECT 1 AS found FROM tickets WHERE id = ?", (ticket_id,))
        return row is not None

    def list_tickets(
        self,
        status: TicketStatus | str | None = None,
        label: str | None = None,
    ) -> list[Ticket]:
        """
        List tickets ordered by priority, then creation time, then ID.

        Args:
            status: Only tickets with this status
            label: Only tickets carrying this label (case-sensitive)
        """
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            clauses.append("t.status = ?")
            params.append(TicketStatus(status).value)
        if label is not None:
            clauses.append(
                "EXISTS (SELECT 1 FROM ticket_labels l WHERE l.ticket_id = t.id AND l.label = ?)"
            )
            params.append(label)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        columns = ", ".join(f"t.{c.strip()}" for c in _TICKET_COLUMNS.split(","))
        rows = execute_query(
            self.conn,
            f"SELECT {columns} FROM tickets t {where} {_TICKET_ORDER}",
            tuple(params),
        )
        return self._tickets_from_rows(rows)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def insert_comment(self, comment: Comment) -> None:
        with transaction(self.conn):
            self._insert_comment_row(comment)

    def get_comments(self, ticket_id: str) -> list[Comment]:
        """Comments on a ticket, oldest first."""
        rows = execute_query(
            self.conn,
            """
            SELECT id, ticket_id, content, created FROM comments
            WHERE ticket_id = ?
            ORDER BY created ASC, id ASC
            """,
            (ticket_id,),
        )
        return [Comment.model_validate(row) for row in rows]

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def insert_dependency(self, dep: Dependency) -> None:
        with transaction(self.conn):
            self._insert_dependency_row(dep)

    def dependency_exists(
        self, from_id: str, to_id: str, dep_type: DependencyType | str
    ) -> bool:
        """Check whether the (from, to, type) edge is already present."""
        row = execute_one(
            self.conn,
            """
            SELECT 1 AS found FROM dependencies
            WHERE from_ticket_id = ? AND to_ticket_id = ? AND type = ?
            """,
            (from_id, to_id, DependencyType(dep_type).value),
        )
        return row is not None

    def _select_dependencies(self, where: str, params: tuple[Any, ...]) -> list[Dependency]:
        rows = execute_query(
            self.conn,
            f"""
            SELECT id, from_ticket_id, to_ticket_id, type, created FROM dependencies
            {where}
            ORDER BY created ASC, id ASC
            """,
            params,
        )
        return [Dependency.model_validate(row) for row in rows]

    def get_dependencies_from(
        self, ticket_id: str, dep_type: DependencyType | str | None = None
    ) -> list[Dependency]:
        """Edges whose source is ticket_id, optionally of one kind."""
        if dep_type is None:
            return self._select_dependencies("WHERE from_ticket_id = ?", (ticket_id,))
        return self._select_dependencies(
            "WHERE from_ticket_id = ? AND type = ?",
            (ticket_id, DependencyType(dep_type).value),
        )

    def get_dependencies_to(
        self, ticket_id: str, dep_type: DependencyType | str | None = None
    ) -> list[Dependency]:
        """Edges whose target is ticket_id, optionally of one kind."""
        if dep_type is None:
            return self._select_dependencies("WHERE to_ticket_id = ?", (ticket_id,))
        return self._select_dependencies(
            "WHERE to_ticket_id = ? AND type = ?",
            (ticket_id, DependencyType(dep_type).value),
        )

    def get_dependencies(self, dep_type: DependencyType | str | None = None) -> list[Dependency]:
        """All edges, optionally of one kind."""
        if dep_type is None:
            return self._select_dependencies("", ())
        return self._select_dependencies("WHERE type = ?", (DependencyType(dep_type).value,))

    # ------------------------------------------------------------------
    # Snapshot / rebuild
    # ------------------------------------------------------------------

    def snapshot(self) -> LogSnapshot:
        """Every cached record, in log order. Used for rebuild validation."""
        tickets = self._tickets_from_rows(
            execute_query(self.conn, f"SELECT {_TICKET_COLUMNS} FROM tickets ORDER BY id")
        )
        comments = [
            Comment.model_validate(row)
            for row in execute_query(
                self.conn, "SELECT id, ticket_id, content, created FROM comments ORDER BY id"
            )
        ]
        dependencies = self._select_dependencies("", ())
        dependencies.sort(key=lambda d: d.id)
        return LogSnapshot(tickets=tickets, comments=comments, dependencies=dependencies)

    def rebuild(self, snapshot: LogSnapshot) -> None:
        """
        Replace all cached records with *snapshot* in one transaction.

        Raises:
            LogCorruptedError: If the snapshot repeats a ticket ID or an edge
        """
        _check_unique(snapshot)

        with transaction(self.conn):
            self.conn.execute("DELETE FROM ticket_labels")
            self.conn.execute("DELETE FROM tickets")
            self.conn.execute("DELETE FROM comments")
            self.conn.execute("DELETE FROM dependencies")

            for ticket in snapshot.tickets:
                self._insert_ticket_row(ticket)
            for comment in snapshot.comments:
                self._insert_comment_row(comment)
            for dep in snapshot.dependencies:
                self._insert_dependency_row(dep)

        logger.info(
            f"Rebuilt cache: {len(snapshot.tickets)} tickets, {len(snapshot.comments)} "
            f"comments, {len(snapshot.dependencies)} dependencies"
        )

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_metadata(self, key: str) -> str | None:
        row = execute_one(self.conn, "SELECT value FROM metadata WHERE key = ?", (key,))
        return row["value"] if row is not None else None

    def set_metadata(self, key: str, value: str) -> None:
        with transaction(self.conn):
            self.conn.execute(
                """
                INSERT INTO metadata (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )

    def delete_metadata(self, key: str) -> None:
        with transaction(self.conn):
            self.conn.execute("DELETE FROM metadata WHERE key = ?", (key,))


def _check_unique(snapshot: LogSnapshot) -> None:
    """Reject logs that break ID or edge uniqueness instead of half-loading them."""
    for kind, ids in (
        ("ticket", [t.id for t in snapshot.tickets]),
        ("comment", [c.id for c in snapshot.comments]),
        ("dependency", [d.id for d in snapshot.dependencies]),
    ):
        dupes = sorted(i for i, n in Counter(ids).items() if n > 1)
        if dupes:
            raise LogCorruptedError(f"duplicate {kind} ID(s) in log: {', '.join(dupes)}")

    edges = Counter(d.edge_key for d in snapshot.dependencies)
    dupe_edges = sorted(e for e, n in edges.items() if n > 1)
    if dupe_edges:
        shown = ", ".join(f"{f} {k} {t}" for f, t, k in dupe_edges)
        raise LogCorruptedError(f"duplicate dependency edge(s) in log: {shown}")
