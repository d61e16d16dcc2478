"""
Unit tests for the tickets.jsonl log store.

Tests reading, sorted atomic rewrites, appends, ticket replacement and
error handling for corrupted files.
"""

import json
import os
from pathlib import Path

import pytest

from conftest import make_comment, make_dep, make_ticket
from thicket.core.exceptions import LogCorruptedError, TicketNotFoundError
from thicket.core.storage.log import LogSnapshot, LogStore

# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / ".thicket" / "tickets.jsonl"


@pytest.fixture
def log(log_path: Path) -> LogStore:
    return LogStore(log_path)


def _ids_in_file(path: Path) -> list[str]:
    return [json.loads(line)["id"] for line in path.read_text().splitlines() if line.strip()]


# ==============================================================================
# Reading
# ==============================================================================


class TestReadAll:
    """Test LogStore.read_all."""

    def test_missing_file_is_empty(self, log: LogStore) -> None:
        snapshot = log.read_all()
        assert len(snapshot) == 0
        assert not log.path.exists()

    def test_skips_blank_lines(self, log: LogStore, log_path: Path) -> None:
        log.write_all([make_ticket("aaaaaa"), make_ticket("bbbbbb")])
        content = log_path.read_text()
        log_path.write_text("\n" + content.replace("\n", "\n\n   \n"))

        snapshot = log.read_all()
        assert [t.id for t in snapshot.tickets] == ["TH-aaaaaa", "TH-bbbbbb"]

    def test_groups_records_by_kind(self, log: LogStore) -> None:
        log.write_all(
            [make_ticket("aaaaaa")],
            [make_comment(1, "TH-aaaaaa")],
            [make_dep(1, "TH-aaaaaa", "TH-bbbbbb")],
        )
        snapshot = log.read_all()
        assert len(snapshot.tickets) == 1
        assert len(snapshot.comments) == 1
        assert len(snapshot.dependencies) == 1

    def test_corrupted_line_reports_line_number(self, log: LogStore, log_path: Path) -> None:
        log.write_all([make_ticket("aaaaaa"), make_ticket("bbbbbb")])
        with open(log_path, "a", encoding="utf-8") as f:
            f.write('{"id": "TH-cccccc", "title": \n')

        with pytest.raises(LogCorruptedError) as exc_info:
            log.read_all()
        assert exc_info.value.line_num == 3
        assert "Line 3" in str(exc_info.value)

    def test_invalid_utf8_reports_line_number(self, log: LogStore, log_path: Path) -> None:
        log_path.parent.mkdir(parents=True)
        log_path.write_bytes(b'{"id":"TH-aaaaaa","title":"\xff"}\n')

        with pytest.raises(LogCorruptedError, match="invalid UTF-8") as exc_info:
            log.read_all()
        assert exc_info.value.line_num == 1

    def test_invalid_utf8_on_later_line(self, log: LogStore, log_path: Path) -> None:
        log.write_all([make_ticket("aaaaaa")])
        with open(log_path, "ab") as f:
            f.write(b"\n\xc3\x28\n")

        with pytest.raises(LogCorruptedError) as exc_info:
            log.read_all()
        assert exc_info.value.line_num == 3


# ==============================================================================
# Writing
# ==============================================================================


class TestWriteAll:
    """Test LogStore.write_all ordering and atomicity."""

    def test_sorted_order(self, log: LogStore, log_path: Path) -> None:
        log.write_all(
            [make_ticket("zzzzzz"), make_ticket("aaaaaa")],
            [make_comment(2, "TH-aaaaaa"), make_comment(1, "TH-zzzzzz")],
            [make_dep(9, "TH-aaaaaa", "TH-zzzzzz"), make_dep(3, "TH-zzzzzz", "TH-bbbbbb")],
        )
        assert _ids_in_file(log_path) == [
            "TH-aaaaaa",
            "TH-zzzzzz",
            "TH-c000001",
            "TH-c000002",
            "TH-d000003",
            "TH-d000009",
        ]

    def test_read_back_equals_sorted_input(self, log: LogStore) -> None:
        snapshot = LogSnapshot(
            tickets=[make_ticket("bbbbbb", labels=["x"]), make_ticket("aaaaaa")],
            comments=[make_comment(1, "TH-aaaaaa")],
            dependencies=[make_dep(1, "TH-bbbbbb", "TH-aaaaaa")],
        )
        log.write_snapshot(snapshot)
        assert log.read_all() == snapshot.sorted()

    def test_same_records_produce_identical_bytes(self, log: LogStore, log_path: Path) -> None:
        tickets = [make_ticket("aaaaaa"), make_ticket("bbbbbb")]
        log.write_all(tickets)
        first = log_path.read_bytes()
        log.write_all(list(reversed(tickets)))
        assert log_path.read_bytes() == first

    def test_failed_rename_keeps_original(
        self, log: LogStore, log_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        log.write_all([make_ticket("aaaaaa")])
        original = log_path.read_bytes()

        def fail_replace(src: str, dst: Path) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", fail_replace)
        with pytest.raises(OSError, match="disk full"):
            log.write_all([make_ticket("aaaaaa"), make_ticket("bbbbbb")])

        assert log_path.read_bytes() == original
        assert [p.name for p in log_path.parent.iterdir()] == ["tickets.jsonl"]

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        log = LogStore(tmp_path / "new" / "dir" / "tickets.jsonl")
        log.write_all([make_ticket("aaaaaa")])
        assert log.path.exists()


class TestAppendAndReplace:
    """Test LogStore.append_one and LogStore.replace_ticket."""

    def test_append_keeps_file_sorted(self, log: LogStore, log_path: Path) -> None:
        log.append_one(make_ticket("mmmmmm"))
        log.append_one(make_dep(1, "TH-mmmmmm", "TH-aaaaaa"))
        log.append_one(make_comment(1, "TH-mmmmmm"))
        log.append_one(make_ticket("aaaaaa"))
        assert _ids_in_file(log_path) == ["TH-aaaaaa", "TH-mmmmmm", "TH-c000001", "TH-d000001"]

    def test_replace_ticket(self, log: LogStore) -> None:
        log.write_all([make_ticket("aaaaaa"), make_ticket("bbbbbb")], [make_comment(1, "TH-aaaaaa")])
        updated = make_ticket("aaaaaa", title="Renamed", priority=4)
        log.replace_ticket(updated)

        snapshot = log.read_all()
        assert snapshot.tickets[0] == updated
        assert snapshot.tickets[1].title == "Ticket bbbbbb"
        assert len(snapshot.comments) == 1

    def test_replace_missing_ticket(self, log: LogStore, log_path: Path) -> None:
        log.write_all([make_ticket("aaaaaa")])
        before = log_path.read_bytes()
        with pytest.raises(TicketNotFoundError):
            log.replace_ticket(make_ticket("bbbbbb"))
        assert log_path.read_bytes() == before


class TestModTime:
    """Test LogStore.mtime_ns."""

    def test_missing_file_is_zero(self, log: LogStore) -> None:
        assert log.mtime_ns() == 0

    def test_matches_stat(self, log: LogStore, log_path: Path) -> None:
        log.write_all([make_ticket("aaaaaa")])
        assert log.mtime_ns() == log_path.stat().st_mtime_ns
        assert log.mtime_ns() > 0
