"""
Record codec for tickets.jsonl.

Each line of the log is one JSON object. There is no explicit kind tag on
disk; the kind is recognised from which back-reference fields are present:

    {"id": ..., "from_ticket_id": ..., ...}   -> Dependency
    {"id": ..., "ticket_id": ..., ...}        -> Comment
    {"id": ..., "title": ..., ...}            -> Ticket

Decoding maps that closed set onto the matching Pydantic model. Encoding is
the exact inverse: decode_line(encode_record(r)) == r.
"""

import json
from enum import Enum
from typing import Any, TypeAlias

from pydantic import BaseModel, ValidationError

from thicket.core.exceptions import LogCorruptedError
from thicket.core.tickets.models import Comment, Dependency, Ticket

Record: TypeAlias = Ticket | Comment | Dependency


class RecordKind(str, Enum):
    """The three record shapes stored in the log."""

    TICKET = "ticket"
    COMMENT = "comment"
    DEPENDENCY = "dependency"


RECORD_MODELS: dict[RecordKind, type[BaseModel]] = {
    RecordKind.TICKET: Ticket,
    RecordKind.COMMENT: Comment,
    RecordKind.DEPENDENCY: Dependency,
}


def classify(data: dict[str, Any]) -> RecordKind:
    """
    Determine the record kind from field presence.

    A non-empty from_ticket_id wins over ticket_id, so a dependency that
    happens to carry a ticket_id field is still a dependency.

    Example:
        >>> classify({"id": "TH-d123abc", "from_ticket_id": "TH-aaaaaa"})
        <RecordKind.DEPENDENCY: 'dependency'>
        >>> classify({"id": "TH-c123abc", "ticket_id": "TH-aaaaaa"})
        <RecordKind.COMMENT: 'comment'>
        >>> classify({"id": "TH-aaaaaa", "title": "x"})
        <RecordKind.TICKET: 'ticket'>
    """
    if data.get("from_ticket_id"):
        return RecordKind.DEPENDENCY
    if data.get("ticket_id"):
        return RecordKind.COMMENT
    return RecordKind.TICKET


def kind_of(record: Record) -> RecordKind:
    """Return the kind of an already-decoded record."""
    if isinstance(record, Dependency):
        return RecordKind.DEPENDENCY
    if isinstance(record, Comment):
        return RecordKind.COMMENT
    if isinstance(record, Ticket):
        return RecordKind.TICKET
    raise TypeError(f"Not a log record: {type(record).__name__}")


def decode_record(data: dict[str, Any], line_num: int | None = None) -> Record:
    """
    Decode a parsed JSON object into a typed record.

    Raises:
        LogCorruptedError: If the object does not validate as its kind
    """
    kind = classify(data)
    model = RECORD_MODELS[kind]
    try:
        record = model.model_validate(data)
    except ValidationError as e:
        raise LogCorruptedError(f"invalid {kind.value} record - {e}", line_num=line_num) from e
    return record  # type: ignore[return-value]


def decode_line(line: str, line_num: int | None = None) -> Record:
    """
    Decode one line of the log.

    Args:
        line: A single JSON object (surrounding whitespace ignored)
        line_num: 1-based line number, included in error messages

    Returns:
        The decoded Ticket, Comment or Dependency

    Raises:
        LogCorruptedError: If the line is not a JSON object or fails validation
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise LogCorruptedError(f"invalid JSON - {e}", line_num=line_num) from e

    if not isinstance(data, dict):
        type_name = type(data).__name__
        raise LogCorruptedError(f"expected JSON object, got {type_name}", line_num=line_num)

    return decode_record(data, line_num=line_num)


def encode_record(record: Record) -> str:
    """
    Encode a record as a single compact JSON line (no trailing newline).

    Field order follows the model definition so rewrites diff cleanly.
    """
    kind_of(record)
    data = record.model_dump(mode="json")
    # Compact separators guarantee single-line output
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))
