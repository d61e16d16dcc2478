"""Tests for DependencyGraph: cycle checks and the one-hop ready query."""

from __future__ import annotations

from conftest import make_dep, make_ticket
from thicket.core.tickets.graph import DependencyGraph, ready_sort_key
from thicket.core.tickets.models import DependencyType, TicketStatus

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

A, B, C, D = "TH-aaaaaa", "TH-bbbbbb", "TH-cccccc", "TH-dddddd"


def _chain() -> DependencyGraph:
    """A blocked_by B, B blocked_by C."""
    return DependencyGraph([make_dep(1, A, B), make_dep(2, B, C)])


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_empty(self) -> None:
        g = DependencyGraph([])
        assert g.blockers_of(A) == []
        assert g.has_cycle() is False

    def test_created_from_edges_ignored(self) -> None:
        g = DependencyGraph([make_dep(1, A, B, DependencyType.CREATED_FROM)])
        assert g.blockers_of(A) == []

    def test_direct_lookups(self) -> None:
        g = DependencyGraph([make_dep(1, A, B), make_dep(2, A, C), make_dep(3, D, B)])
        assert g.blockers_of(A) == [B, C]
        assert g.blockers_of(D) == [B]
        assert g.blockers_of(B) == []


# ---------------------------------------------------------------------------
# Cycle checks
# ---------------------------------------------------------------------------


class TestWouldCreateCycle:
    def test_closing_a_chain(self) -> None:
        # A -> B -> C; adding C blocked_by A closes the loop
        assert _chain().would_create_cycle(C, A) is True

    def test_direct_reverse_edge(self) -> None:
        assert _chain().would_create_cycle(B, A) is True

    def test_forward_shortcut_is_fine(self) -> None:
        assert _chain().would_create_cycle(A, C) is False

    def test_unrelated_tickets(self) -> None:
        assert _chain().would_create_cycle(D, A) is False
        assert _chain().would_create_cycle(A, D) is False

    def test_self_edge(self) -> None:
        assert DependencyGraph([]).would_create_cycle(A, A) is True

    def test_created_from_does_not_count(self) -> None:
        g = DependencyGraph([make_dep(1, A, B, DependencyType.CREATED_FROM)])
        assert g.would_create_cycle(B, A) is False

    def test_diamond_terminates(self) -> None:
        deps = [make_dep(1, A, B), make_dep(2, A, C), make_dep(3, B, D), make_dep(4, C, D)]
        g = DependencyGraph(deps)
        assert g.would_create_cycle(D, A) is True
        assert g.would_create_cycle(B, C) is False


class TestHasCycle:
    def test_chain_has_no_cycle(self) -> None:
        assert _chain().has_cycle() is False

    def test_loaded_cycle_detected(self) -> None:
        g = DependencyGraph([make_dep(1, A, B), make_dep(2, B, C), make_dep(3, C, A)])
        assert g.has_cycle() is True

    def test_long_chain_has_no_cycle(self) -> None:
        ids = [f"TH-{i:06d}" for i in range(2001)]
        g = DependencyGraph(make_dep(i + 1, a, b) for i, (a, b) in enumerate(zip(ids, ids[1:])))
        assert g.has_cycle() is False

    def test_long_loop_detected(self) -> None:
        ids = [f"TH-{i:06d}" for i in range(2000)]
        edges = list(zip(ids, ids[1:] + ids[:1]))
        g = DependencyGraph(make_dep(i + 1, a, b) for i, (a, b) in enumerate(edges))
        assert g.has_cycle() is True

    def test_shared_blocker_is_not_a_cycle(self) -> None:
        deps = [make_dep(1, A, B), make_dep(2, A, C), make_dep(3, B, D), make_dep(4, C, D)]
        assert DependencyGraph(deps).has_cycle() is False


# ---------------------------------------------------------------------------
# Ready query
# ---------------------------------------------------------------------------


class TestReady:
    def test_no_blockers_means_ready(self) -> None:
        tickets = [make_ticket("aaaaaa")]
        assert DependencyGraph([]).ready(tickets) == tickets

    def test_closed_and_icebox_not_ready(self) -> None:
        tickets = [
            make_ticket("aaaaaa", status=TicketStatus.CLOSED),
            make_ticket("bbbbbb", status=TicketStatus.ICEBOX),
        ]
        assert DependencyGraph([]).ready(tickets) == []

    def test_open_blocker_excludes(self) -> None:
        x = make_ticket("aaaaaa")
        y = make_ticket("bbbbbb")
        g = DependencyGraph([make_dep(1, x.id, y.id)])
        assert [t.id for t in g.ready([x, y])] == [y.id]

        y.close()
        assert [t.id for t in g.ready([x, y])] == [x.id]

    def test_one_hop_through_closed_blocker(self) -> None:
        # X blocked_by Y (closed), Y blocked_by Z (open): X is ready
        x = make_ticket("aaaaaa")
        y = make_ticket("bbbbbb", status=TicketStatus.CLOSED)
        z = make_ticket("cccccc")
        g = DependencyGraph([make_dep(1, x.id, y.id), make_dep(2, y.id, z.id)])
        assert {t.id for t in g.ready([x, y, z])} == {x.id, z.id}

    def test_one_hop_through_actionable_blocker(self) -> None:
        # X blocked_by Y (open), Y blocked_by Z (closed): Y is ready, X still is not
        x = make_ticket("aaaaaa")
        y = make_ticket("bbbbbb")
        z = make_ticket("cccccc", status=TicketStatus.CLOSED)
        g = DependencyGraph([make_dep(1, x.id, y.id), make_dep(2, y.id, z.id)])
        assert [t.id for t in g.ready([x, y, z])] == [y.id]

    def test_icebox_blocker_does_not_block(self) -> None:
        x = make_ticket("aaaaaa")
        y = make_ticket("bbbbbb", status=TicketStatus.ICEBOX)
        g = DependencyGraph([make_dep(1, x.id, y.id)])
        assert [t.id for t in g.ready([x, y])] == [x.id]

    def test_dangling_blocker_does_not_block(self) -> None:
        x = make_ticket("aaaaaa")
        g = DependencyGraph([make_dep(1, x.id, "TH-gone00")])
        assert g.ready([x]) == [x]

    def test_sorted_by_priority_then_created_then_id(self) -> None:
        tickets = [
            make_ticket("cccccc", priority=1, minutes=5),
            make_ticket("bbbbbb", priority=1, minutes=5),
            make_ticket("aaaaaa", priority=1, minutes=9),
            make_ticket("dddddd", priority=0, minutes=20),
        ]
        ready = DependencyGraph([]).ready(tickets)
        assert [t.id for t in ready] == ["TH-dddddd", "TH-bbbbbb", "TH-cccccc", "TH-aaaaaa"]
        assert ready == sorted(tickets, key=ready_sort_key)

    def test_is_blocked(self) -> None:
        g = DependencyGraph([make_dep(1, A, B)])
        assert g.is_blocked(A, {A, B}) is True
        assert g.is_blocked(A, {A}) is False
        assert g.is_blocked(B, {A, B}) is False
