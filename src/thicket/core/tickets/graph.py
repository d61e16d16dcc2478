"""
Dependency graph over blocked_by edges.

Provides a query object built from a snapshot of dependency edges. Used by
the Store to reject cycle-introducing edges before they are written and to
answer the "ready" query.

Only blocked_by edges are materialised; created_from edges are provenance
and never affect readiness or cycles.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from .models import Dependency, DependencyType, Ticket, TicketStatus


def ready_sort_key(ticket: Ticket) -> tuple[int, datetime, str]:
    """Sort key for ready lists: priority, then creation time, then ID."""
    return (ticket.priority, ticket.created, ticket.id)


class DependencyGraph:
    """Graph of blocked_by edges built from a snapshot of dependencies.

    Edge direction follows the log: ``A blocked_by B`` is stored as
    ``blockers[A] = {B}`` and means A is not ready while B is open.

    Example::

        graph = DependencyGraph(cache.get_dependencies(DependencyType.BLOCKED_BY))
        if graph.would_create_cycle("TH-aaaaaa", "TH-bbbbbb"):
            raise CircularDependencyError("TH-aaaaaa", "TH-bbbbbb")
    """

    __slots__ = ("_blockers",)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def __init__(self, dependencies: Iterable[Dependency]) -> None:
        # blockers[A] = {B, C} means A is blocked by B and C
        self._blockers: dict[str, set[str]] = {}

        for dep in dependencies:
            if dep.type != DependencyType.BLOCKED_BY:
                continue
            self._blockers.setdefault(dep.from_ticket_id, set()).add(dep.to_ticket_id)

    # ------------------------------------------------------------------
    # Core queries
    # ------------------------------------------------------------------

    def blockers_of(self, ticket_id: str) -> list[str]:
        """Return IDs that directly block *ticket_id*."""
        return sorted(self._blockers.get(ticket_id, set()))

    def would_create_cycle(self, from_id: str, to_id: str) -> bool:
        """True if adding ``from_id blocked_by to_id`` would close a cycle.

        Depth-first search from *to_id* along existing blocked_by edges; the
        new edge closes a cycle exactly when *from_id* is already reachable.
        The visited set bounds the walk to O(V+E).
        """
        if from_id == to_id:
            return True
        visited: set[str] = set()
        stack = [to_id]
        while stack:
            current = stack.pop()
            if current == from_id:
                return True
            if current in visited:
                continue
            visited.add(current)
            stack.extend(self._blockers.get(current, set()))
        return False

    def is_blocked(self, ticket_id: str, open_ids: set[str]) -> bool:
        """True if any direct blocker of *ticket_id* is in *open_ids*."""
        return any(b in open_ids for b in self._blockers.get(ticket_id, set()))

    def ready(self, tickets: Iterable[Ticket]) -> list[Ticket]:
        """Open tickets with no currently-open direct blocker.

        One hop only: a ticket blocked solely by closed tickets is ready even
        if those tickets had open blockers of their own. Blockers that are not
        among *tickets* (dangling references) do not block.
        """
        tickets = list(tickets)
        open_ids = {t.id for t in tickets if t.status == TicketStatus.OPEN}
        ready = [
            t
            for t in tickets
            if t.status == TicketStatus.OPEN and not self.is_blocked(t.id, open_ids)
        ]
        ready.sort(key=ready_sort_key)
        return ready

    def has_cycle(self) -> bool:
        """Detect cycles using three-color DFS (white / gray / black).

        Iterative with an explicit stack of (node, pending blockers), so long
        blocked_by chains do not hit the interpreter recursion limit.
        """
        WHITE, GRAY, BLACK = 0, 1, 2  # noqa: N806
        nodes = set(self._blockers)
        for targets in self._blockers.values():
            nodes |= targets
        color: dict[str, int] = {n: WHITE for n in nodes}

        for root in sorted(nodes):
            if color[root] != WHITE:
                continue
            color[root] = GRAY
            stack = [(root, iter(self._blockers.get(root, ())))]
            while stack:
                node, pending = stack[-1]
                for dep in pending:
                    if color[dep] == GRAY:
                        return True
                    if color[dep] == WHITE:
                        color[dep] = GRAY
                        stack.append((dep, iter(self._blockers.get(dep, ()))))
                        break
                else:
                    color[node] = BLACK
                    stack.pop()
        return False
