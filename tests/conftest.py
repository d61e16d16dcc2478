"""
Pytest configuration and shared fixtures.

Provides fixtures for temp projects, an open Store, and deterministic sample
records used across the test suite.
"""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from thicket.core.config import ThicketPaths, init_project
from thicket.core.storage import Store
from thicket.core.tickets.models import (
    Comment,
    Dependency,
    DependencyType,
    Ticket,
    TicketStatus,
)

BASE_TIME = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


# ==============================================================================
# Record helpers
# ==============================================================================


def make_ticket(
    suffix: str,
    *,
    priority: int = 0,
    status: TicketStatus = TicketStatus.OPEN,
    minutes: int = 0,
    labels: list[str] | None = None,
    title: str | None = None,
) -> Ticket:
    """Build a ticket with a fixed ID (TH-<suffix>) and a fixed timestamp."""
    created = BASE_TIME + timedelta(minutes=minutes)
    return Ticket(
        id=f"TH-{suffix}",
        title=title or f"Ticket {suffix}",
        priority=priority,
        status=status,
        labels=labels or [],
        created=created,
        updated=created,
    )


def make_comment(n: int, ticket_id: str, content: str = "A comment", minutes: int = 0) -> Comment:
    return Comment(
        id=f"TH-c{n:06x}",
        ticket_id=ticket_id,
        content=content,
        created=BASE_TIME + timedelta(minutes=minutes),
    )


def make_dep(
    n: int,
    from_id: str,
    to_id: str,
    dep_type: DependencyType = DependencyType.BLOCKED_BY,
) -> Dependency:
    return Dependency(
        id=f"TH-d{n:06x}",
        from_ticket_id=from_id,
        to_ticket_id=to_id,
        type=dep_type,
        created=BASE_TIME,
    )


def bump_mtime(path: Path, seconds: int = 1) -> None:
    """Push a file's mtime forward so change detection cannot miss a rewrite."""
    st = path.stat()
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + seconds * 1_000_000_000))


# ==============================================================================
# Directory Fixtures
# ==============================================================================


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Provide an empty project directory."""
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def paths(project_dir: Path) -> ThicketPaths:
    """Provide an initialised thicket project with code TH."""
    return init_project(project_dir, "TH")


@pytest.fixture
def store(paths: ThicketPaths):
    """Provide an open Store, closed after the test."""
    s = Store.open(paths)
    yield s
    s.close()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the developer's THICKET_DIR and user .env out of tests."""
    # setenv first so the variable is restored (or removed) on teardown even
    # when load_layered_env sets it from a .env file
    monkeypatch.setenv("THICKET_DIR", "")
    monkeypatch.delenv("THICKET_DIR")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


# ==============================================================================
# Sample Data Fixtures
# ==============================================================================


@pytest.fixture
def sample_tickets() -> list[Ticket]:
    """Three open tickets with distinct priorities and one closed ticket."""
    return [
        make_ticket("aaaaaa", priority=2, minutes=0, labels=["backend"]),
        make_ticket("bbbbbb", priority=1, minutes=1, labels=["frontend", "ui"]),
        make_ticket("cccccc", priority=1, minutes=2),
        make_ticket("dddddd", priority=0, minutes=3, status=TicketStatus.CLOSED),
    ]
