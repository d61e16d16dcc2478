"""
Store: the synchronized entry point to ticket storage.

The Store owns one LogStore (tickets.jsonl, the source of truth) and one
TicketCache (cache.db, derived). Callers never touch either directly.

Sync protocol:
- open: compare the log's mtime with the ``jsonl_modtime`` checkpoint kept
  in the cache's metadata table. A missing or different checkpoint triggers
  a full rebuild from the log; a match trusts the cache as-is.
- mutate: validate and check invariants, then apply in two phases (see
  Store._apply). Nothing is written when a check fails.
- close: release the database connection.

Usage:
    with Store.open(paths) as store:
        ticket = Ticket.new("TH", "Fix login redirect", priority=1)
        store.add_ticket(ticket)
        for t in store.list_ready():
            print(t.id, t.title)
"""

import logging
import sqlite3
from collections.abc import Callable
from pathlib import Path
from types import TracebackType
from typing import Protocol

from thicket.core.exceptions import (
    CircularDependencyError,
    DuplicateDependencyError,
    DuplicateTicketError,
    SelfDependencyError,
    TicketNotFoundError,
)
from thicket.core.storage.cache import TicketCache
from thicket.core.storage.connection import init_db
from thicket.core.storage.log import LogStore
from thicket.core.tickets.graph import DependencyGraph
from thicket.core.tickets.models import (
    Comment,
    Dependency,
    DependencyType,
    Ticket,
    TicketStatus,
)

logger = logging.getLogger(__name__)

CHECKPOINT_KEY = "jsonl_modtime"


class StorePaths(Protocol):
    """The two file locations a Store needs (satisfied by ThicketPaths)."""

    @property
    def tickets(self) -> Path: ...

    @property
    def cache(self) -> Path: ...


class Store:
    """
    Synchronized access to the ticket log and its cache.

    Not thread-safe and not reentrant: callers serialize calls, and a
    callback (such as a file watcher) must not call in while a mutation is
    running.

    Attributes:
        log: The authoritative log store
        cache: The derived query cache
        stale: True after a cache write failed following a successful log
            write. Queries rebuild from the log before answering while set.
    """

    def __init__(self, log: LogStore, conn: sqlite3.Connection):
        self.log = log
        self.conn: sqlite3.Connection | None = conn
        self.cache = TicketCache(conn)
        self.stale = False

    @classmethod
    def open(cls, paths: StorePaths) -> "Store":
        """
        Open the cache database and sync it with the log.

        Raises:
            LogCorruptedError: If the log has a line that cannot be decoded
            sqlite3.Error: If the cache database cannot be opened
        """
        conn = init_db(paths.cache)
        store = cls(LogStore(paths.tickets), conn)
        try:
            store.sync()
        except Exception:
            store.close()
            raise
        return store

    def __enter__(self) -> "Store":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the database connection. Safe to call more than once."""
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def _stored_checkpoint(self) -> int | None:
        value = self.cache.get_metadata(CHECKPOINT_KEY)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Ignoring unreadable cache checkpoint {value!r}")
            return None

    def _write_checkpoint(self) -> None:
        self.cache.set_metadata(CHECKPOINT_KEY, str(self.log.mtime_ns()))

    def is_current(self) -> bool:
        """True if the cache checkpoint matches the log's modification time."""
        return self._stored_checkpoint() == self.log.mtime_ns()

    def sync(self) -> bool:
        """
        Rebuild the cache if the log changed since the last checkpoint.

        Returns:
            True if a rebuild happened
        """
        if not self.stale and self.is_current():
            logger.debug(f"Cache is current with {self.log.path}")
            return False
        self.rebuild()
        return True

    def rebuild(self) -> None:
        """
        Discard the cache contents and reload everything from the log.

        The tables are replaced in one transaction and the checkpoint is
        written afterwards, so an interrupted rebuild is retried on the next
        open. A blocked_by cycle in the loaded log is reported but kept: the
        log is authoritative and is never repaired here.
        """
        snapshot = self.log.read_all()
        self.cache.rebuild(snapshot)
        self._write_checkpoint()
        self.stale = False

        if DependencyGraph(snapshot.dependencies).has_cycle():
            logger.warning(
                f"{self.log.path} contains a blocked_by cycle; affected tickets "
                "will never become ready until an edge is removed by hand"
            )

    def _refresh_if_stale(self) -> None:
        if self.stale:
            logger.info("Cache marked stale after a failed write; rebuilding from log")
            self.rebuild()

    def _apply(
        self,
        operation: str,
        write_log: Callable[[], None],
        mirror: Callable[[], None],
    ) -> None:
        """
        Two-phase apply of a mutation that has already passed validation.

        Phase 1 writes the log. Any exception there propagates and nothing
        else is touched.

        Phase 2 mirrors the change into the cache and advances the
        checkpoint. A failure here does not propagate: the log already holds
        the change, so the cache is marked stale, its checkpoint is removed
        so the next open rebuilds, and the error is logged.
        """
        write_log()
        logger.debug(f"{operation}: written to {self.log.path}")

        try:
            mirror()
            self._write_checkpoint()
        except Exception as e:
            logger.warning(f"{operation}: cache update failed, will rebuild from log: {e}")
            self.stale = True
            try:
                self.cache.delete_metadata(CHECKPOINT_KEY)
            except sqlite3.Error as cleanup_error:
                # mtime moved with the log write, so the old checkpoint mismatches anyway
                logger.error(f"Could not clear cache checkpoint: {cleanup_error}")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_ticket(self, ticket: Ticket) -> None:
        """
        Persist a new ticket.

        Raises:
            DuplicateTicketError: If a ticket with the same ID exists
        """
        self._refresh_if_stale()
        if self.cache.ticket_exists(ticket.id):
            raise DuplicateTicketError(ticket.id)
        self._apply(
            f"add ticket {ticket.id}",
            lambda: self.log.append_one(ticket),
            lambda: self.cache.insert_ticket(ticket),
        )

    def update_ticket(self, ticket: Ticket) -> None:
        """
        Persist changes to an existing ticket.

        Raises:
            TicketNotFoundError: If no ticket with this ID exists
        """
        self._refresh_if_stale()
        if not self.cache.ticket_exists(ticket.id):
            raise TicketNotFoundError(ticket.id)
        self._apply(
            f"update ticket {ticket.id}",
            lambda: self.log.replace_ticket(ticket),
            lambda: self.cache.update_ticket(ticket),
        )

    def add_comment(self, comment: Comment) -> None:
        """Persist a comment. The owning ticket is not required to exist."""
        self._refresh_if_stale()
        self._apply(
            f"add comment {comment.id}",
            lambda: self.log.append_one(comment),
            lambda: self.cache.insert_comment(comment),
        )

    def add_dependency(self, dep: Dependency) -> None:
        """
        Persist a dependency edge after checking graph invariants.

        Checks run in order, before anything is written: self-edge,
        duplicate (from, to, type), then for blocked_by edges a cycle check
        against the current blocked_by graph.

        Raises:
            SelfDependencyError: If both endpoints are the same ticket
            DuplicateDependencyError: If the same edge already exists
            CircularDependencyError: If the edge would close a blocked_by cycle
        """
        self._refresh_if_stale()
        if dep.is_self_edge:
            raise SelfDependencyError(dep.from_ticket_id)
        if self.cache.dependency_exists(dep.from_ticket_id, dep.to_ticket_id, dep.type):
            raise DuplicateDependencyError(dep.from_ticket_id, dep.to_ticket_id, dep.type.value)
        if dep.type == DependencyType.BLOCKED_BY:
            graph = DependencyGraph(self.cache.get_dependencies(DependencyType.BLOCKED_BY))
            if graph.would_create_cycle(dep.from_ticket_id, dep.to_ticket_id):
                raise CircularDependencyError(dep.from_ticket_id, dep.to_ticket_id)

        self._apply(
            f"add dependency {dep.id}",
            lambda: self.log.append_one(dep),
            lambda: self.cache.insert_dependency(dep),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_ticket(self, ticket_id: str) -> Ticket | None:
        self._refresh_if_stale()
        return self.cache.get_ticket(ticket_id)

    def list_tickets(
        self,
        status: TicketStatus | str | None = None,
        label: str | None = None,
    ) -> list[Ticket]:
        """List tickets by priority, then creation time, optionally filtered."""
        self._refresh_if_stale()
        return self.cache.list_tickets(status=status, label=label)

    def get_comments(self, ticket_id: str) -> list[Comment]:
        self._refresh_if_stale()
        return self.cache.get_comments(ticket_id)

    def get_dependencies_from(self, ticket_id: str) -> list[Dependency]:
        self._refresh_if_stale()
        return self.cache.get_dependencies_from(ticket_id)

    def get_dependencies_to(self, ticket_id: str) -> list[Dependency]:
        self._refresh_if_stale()
        return self.cache.get_dependencies_to(ticket_id)

    def _tickets_for(self, ticket_ids: list[str]) -> list[Ticket]:
        # Dangling references are skipped
        tickets = []
        for ticket_id in ticket_ids:
            ticket = self.cache.get_ticket(ticket_id)
            if ticket is not None:
                tickets.append(ticket)
        return tickets

    def get_blockers(self, ticket_id: str) -> list[Ticket]:
        """Tickets that *ticket_id* is directly blocked by."""
        self._refresh_if_stale()
        deps = self.cache.get_dependencies_from(ticket_id, DependencyType.BLOCKED_BY)
        return self._tickets_for([d.to_ticket_id for d in deps])

    def get_blocking(self, ticket_id: str) -> list[Ticket]:
        """Tickets directly blocked by *ticket_id*."""
        self._refresh_if_stale()
        deps = self.cache.get_dependencies_to(ticket_id, DependencyType.BLOCKED_BY)
        return self._tickets_for([d.from_ticket_id for d in deps])

    def get_created_from(self, ticket_id: str) -> Ticket | None:
        """The ticket *ticket_id* was created from, if recorded and present."""
        self._refresh_if_stale()
        deps = self.cache.get_dependencies_from(ticket_id, DependencyType.CREATED_FROM)
        if not deps:
            return None
        return self.cache.get_ticket(deps[0].to_ticket_id)

    def get_created(self, ticket_id: str) -> list[Ticket]:
        """Tickets that record *ticket_id* as their origin."""
        self._refresh_if_stale()
        deps = self.cache.get_dependencies_to(ticket_id, DependencyType.CREATED_FROM)
        return self._tickets_for([d.from_ticket_id for d in deps])

    def is_blocked(self, ticket_id: str) -> bool:
        """True if any direct blocker of *ticket_id* is open."""
        return any(t.status == TicketStatus.OPEN for t in self.get_blockers(ticket_id))

    def list_ready(self) -> list[Ticket]:
        """
        Open tickets with no open direct blocker.

        One hop only: a blocker's own blockers are not consulted. Sorted by
        priority, then creation time, then ID.
        """
        self._refresh_if_stale()
        graph = DependencyGraph(self.cache.get_dependencies(DependencyType.BLOCKED_BY))
        return graph.ready(self.cache.list_tickets())

    def next_ready(self) -> Ticket | None:
        """The most urgent ready ticket, or None when nothing is ready."""
        ready = self.list_ready()
        return ready[0] if ready else None
