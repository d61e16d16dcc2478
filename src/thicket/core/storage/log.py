"""
Log store for tickets.jsonl.

The log is the single source of truth. Every write is a full atomic rewrite
with tickets, then comments, then dependencies, each group sorted by ID, so
that two writers producing the same records produce byte-identical files and
version control diffs stay small.

File format:
    {"id":"TH-abc123","title":"...","status":"open",...}
    {"id":"TH-c1a2b3","ticket_id":"TH-abc123","content":"...",...}
    {"id":"TH-d4e5f6","from_ticket_id":"TH-abc123","to_ticket_id":"...",...}
"""

import logging
import os
import tempfile
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from thicket.core.exceptions import LogCorruptedError, TicketNotFoundError
from thicket.core.tickets.codec import Record, decode_line, encode_record
from thicket.core.tickets.models import Comment, Dependency, Ticket

logger = logging.getLogger(__name__)


def _decoded_lines(f: BinaryIO) -> Iterator[tuple[int, str]]:
    """
    Yield (line_num, text) for each non-blank line of a binary file.

    Raises:
        LogCorruptedError: If a line is not valid UTF-8
    """
    for line_num, raw in enumerate(f, start=1):
        try:
            line = raw.decode("utf-8").strip()
        except UnicodeDecodeError as e:
            raise LogCorruptedError(f"invalid UTF-8 - {e}", line_num=line_num) from e
        if line:
            yield line_num, line


@dataclass
class LogSnapshot:
    """All records of the log, grouped by kind."""

    tickets: list[Ticket] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)

    def sorted(self) -> "LogSnapshot":
        """Return a copy with each group ordered by ID."""
        return LogSnapshot(
            tickets=sorted(self.tickets, key=lambda t: t.id),
            comments=sorted(self.comments, key=lambda c: c.id),
            dependencies=sorted(self.dependencies, key=lambda d: d.id),
        )

    def records(self) -> list[Record]:
        """Records in on-disk order."""
        ordered = self.sorted()
        return [*ordered.tickets, *ordered.comments, *ordered.dependencies]

    def add(self, record: Record) -> None:
        if isinstance(record, Ticket):
            self.tickets.append(record)
        elif isinstance(record, Comment):
            self.comments.append(record)
        elif isinstance(record, Dependency):
            self.dependencies.append(record)
        else:
            raise TypeError(f"Not a log record: {type(record).__name__}")

    def __len__(self) -> int:
        return len(self.tickets) + len(self.comments) + len(self.dependencies)


class LogStore:
    """
    Reader/writer for the tickets.jsonl log.

    Example:
        >>> log = LogStore(Path(".thicket/tickets.jsonl"))
        >>> snapshot = log.read_all()
        >>> log.append_one(Ticket.new("TH", "First ticket"))
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def mtime_ns(self) -> int:
        """Modification time in nanoseconds, or 0 if the log does not exist."""
        try:
            return self.path.stat().st_mtime_ns
        except FileNotFoundError:
            return 0

    def read_all(self) -> LogSnapshot:
        """
        Read and decode every record in the log.

        A missing file is the first-run case and returns an empty snapshot.
        Blank lines are skipped.

        Raises:
            LogCorruptedError: On the first line that cannot be decoded
            OSError: If the file exists but cannot be read
        """
        snapshot = LogSnapshot()
        try:
            f = open(self.path, "rb")
        except FileNotFoundError:
            logger.debug(f"Log {self.path} does not exist yet")
            return snapshot

        with f:
            for line_num, line in _decoded_lines(f):
                snapshot.add(decode_line(line, line_num=line_num))

        logger.debug(
            f"Read {len(snapshot.tickets)} tickets, {len(snapshot.comments)} comments, "
            f"{len(snapshot.dependencies)} dependencies from {self.path}"
        )
        return snapshot

    def write_all(
        self,
        tickets: Iterable[Ticket],
        comments: Iterable[Comment] = (),
        dependencies: Iterable[Dependency] = (),
    ) -> None:
        """
        Atomically rewrite the whole log.

        Writes to a temporary file in the same directory and renames it over
        the log, so readers never see a partially written file.
        """
        snapshot = LogSnapshot(list(tickets), list(comments), list(dependencies))
        records = snapshot.records()

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=".tickets_", suffix=".jsonl.tmp"
        )

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for record in records:
                    f.write(encode_record(record))
                    f.write("\n")

            self._validate_written_file(Path(temp_path), len(records))

            # Atomic rename (replaces existing file)
            os.replace(temp_path, self.path)
        except BaseException:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

        logger.debug(f"Wrote {len(records)} records to {self.path}")

    def write_snapshot(self, snapshot: LogSnapshot) -> None:
        self.write_all(snapshot.tickets, snapshot.comments, snapshot.dependencies)

    def append_one(self, record: Record) -> None:
        """
        Add a single record.

        Implemented as read-modify-sort-rewrite so the result is identical to
        a full sorted rewrite, keeping mtime-based change detection honest.
        """
        snapshot = self.read_all()
        snapshot.add(record)
        self.write_snapshot(snapshot)

    def replace_ticket(self, ticket: Ticket) -> None:
        """
        Rewrite the log with one ticket replaced by *ticket*.

        Raises:
            TicketNotFoundError: If no ticket with that ID is in the log
        """
        snapshot = self.read_all()
        for i, existing in enumerate(snapshot.tickets):
            if existing.id == ticket.id:
                snapshot.tickets[i] = ticket
                break
        else:
            raise TicketNotFoundError(ticket.id)
        self.write_snapshot(snapshot)

    def _validate_written_file(self, file_path: Path, expected_count: int) -> None:
        """
        Re-read a freshly written file before it replaces the log.

        Raises:
            LogCorruptedError: If any line fails to decode or the count differs
        """
        actual_count = 0
        with open(file_path, "rb") as f:
            try:
                for line_num, line in _decoded_lines(f):
                    decode_line(line, line_num=line_num)
                    actual_count += 1
            except LogCorruptedError as e:
                raise LogCorruptedError(f"Write validation failed: {e}") from e

        if actual_count != expected_count:
            raise LogCorruptedError(
                f"Write validation failed: expected {expected_count} records, got {actual_count}"
            )
