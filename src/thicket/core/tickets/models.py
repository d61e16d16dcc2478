"""
Ticket data models for thicket.

Defines the three record kinds stored in tickets.jsonl (Ticket, Comment,
Dependency) as Pydantic models, plus ID generation and field validation.

Timestamps are always timezone-aware UTC. They serialize to a fixed-width
RFC 3339 form so the cache can order them as plain strings.
"""

import re
import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from thicket.core.exceptions import (
    EmptyCommentError,
    EmptyTitleError,
    InvalidDependencyTypeError,
    InvalidLabelError,
    InvalidProjectCodeError,
    InvalidRecordIDError,
    InvalidStatusError,
    InvalidTicketIDError,
    InvalidTicketTypeError,
    SelfDependencyError,
)

TICKET_ID_PATTERN = re.compile(r"^[A-Z]{2}-[a-z0-9]{6}$")
COMMENT_ID_PATTERN = re.compile(r"^[A-Z]{2}-c[a-f0-9]{6}$")
DEPENDENCY_ID_PATTERN = re.compile(r"^[A-Z]{2}-d[a-f0-9]{6}$")
PROJECT_CODE_PATTERN = re.compile(r"^[A-Z]{2}$")
LABEL_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,30}$")

_ID_CHARSET = "abcdefghijklmnopqrstuvwxyz0123456789"

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class TicketStatus(str, Enum):
    """Ticket status values."""

    OPEN = "open"
    CLOSED = "closed"
    ICEBOX = "icebox"


class TicketType(str, Enum):
    """Ticket type values."""

    BUG = "bug"
    FEATURE = "feature"
    TASK = "task"
    EPIC = "epic"
    CLEANUP = "cleanup"


class DependencyType(str, Enum):
    """Dependency edge kinds.

    BLOCKED_BY edges participate in cycle checks and readiness;
    CREATED_FROM is provenance only.
    """

    BLOCKED_BY = "blocked_by"
    CREATED_FROM = "created_from"


# ------------------------------------------------------------------
# Timestamps
# ------------------------------------------------------------------


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as fixed-width RFC 3339 UTC with microseconds."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Any) -> Any:
    """
    Parse an RFC 3339 string into an aware UTC datetime.

    Fractional seconds beyond microseconds (written by nanosecond-precision
    tools) are truncated. Non-string values pass through for Pydantic to
    validate.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if not isinstance(value, str):
        return value

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # Trim fractional seconds to 6 digits
    match = re.match(r"^(.*T\d{2}:\d{2}:\d{2})\.(\d+)(.*)$", text)
    if match:
        head, frac, tail = match.groups()
        text = f"{head}.{frac[:6].ljust(6, '0')}{tail}"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# ------------------------------------------------------------------
# ID generation and validation
# ------------------------------------------------------------------


def validate_project_code(code: str) -> str:
    """Return code unchanged if it is two uppercase letters."""
    if not PROJECT_CODE_PATTERN.match(code):
        raise InvalidProjectCodeError(code)
    return code


def validate_ticket_id(ticket_id: str) -> str:
    """Return ticket_id unchanged if it matches XX-xxxxxx."""
    if not TICKET_ID_PATTERN.match(ticket_id):
        raise InvalidTicketIDError(ticket_id)
    return ticket_id


def validate_comment_id(comment_id: str) -> str:
    if not COMMENT_ID_PATTERN.match(comment_id):
        raise InvalidRecordIDError(comment_id, "comment", "XX-cxxxxxx")
    return comment_id


def validate_dependency_id(dependency_id: str) -> str:
    if not DEPENDENCY_ID_PATTERN.match(dependency_id):
        raise InvalidRecordIDError(dependency_id, "dependency", "XX-dxxxxxx")
    return dependency_id


def validate_label(label: str) -> str:
    """Return label unchanged if it is a valid label."""
    if not LABEL_PATTERN.match(label):
        raise InvalidLabelError(label)
    return label


def parse_project_code(ticket_id: str) -> str:
    """Extract the two-letter project code from a ticket ID."""
    return validate_ticket_id(ticket_id)[:2]


def generate_ticket_id(project_code: str) -> str:
    """
    Generate a new ticket ID for a project.

    Example:
        >>> generate_ticket_id("TH")  # doctest: +SKIP
        'TH-a1b2c3'
    """
    validate_project_code(project_code)
    suffix = "".join(secrets.choice(_ID_CHARSET) for _ in range(6))
    return f"{project_code}-{suffix}"


def generate_comment_id(project_code: str) -> str:
    """Generate a comment ID: XX-c + 6 hex chars."""
    validate_project_code(project_code)
    return f"{project_code}-c{secrets.token_hex(3)}"


def generate_dependency_id(project_code: str) -> str:
    """Generate a dependency ID: XX-d + 6 hex chars."""
    validate_project_code(project_code)
    return f"{project_code}-d{secrets.token_hex(3)}"


def coerce_status(value: TicketStatus | str) -> TicketStatus:
    """Convert a status string to TicketStatus, raising InvalidStatusError."""
    if isinstance(value, TicketStatus):
        return value
    try:
        return TicketStatus(value)
    except ValueError as e:
        valid = ", ".join(s.value for s in TicketStatus)
        raise InvalidStatusError(f"Invalid status: {value!r} (valid: {valid})") from e


def coerce_ticket_type(value: TicketType | str | None) -> TicketType | None:
    """Convert a type string to TicketType; empty means unset."""
    if value is None or value == "":
        return None
    if isinstance(value, TicketType):
        return value
    try:
        return TicketType(value)
    except ValueError as e:
        valid = ", ".join(t.value for t in TicketType)
        raise InvalidTicketTypeError(f"Invalid ticket type: {value!r} (valid: {valid})") from e


def coerce_dependency_type(value: DependencyType | str) -> DependencyType:
    """Convert 'blocked_by' / 'blocked-by' style strings to DependencyType."""
    if isinstance(value, DependencyType):
        return value
    if isinstance(value, str):
        value = value.replace("-", "_")
    try:
        return DependencyType(value)
    except ValueError as e:
        raise InvalidDependencyTypeError(f"Invalid dependency type: {value!r}") from e


def _dedupe_labels(labels: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for label in labels:
        if label not in seen:
            seen.add(label)
            result.append(label)
    return result


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------


class _Record(BaseModel):
    """Shared configuration and timestamp handling for log records."""

    model_config = ConfigDict(validate_assignment=True, extra="ignore")

    @field_validator("created", "updated", mode="before", check_fields=False)
    @classmethod
    def coerce_timestamps(cls, v: Any) -> Any:
        return parse_timestamp(v)

    @field_serializer("created", "updated", check_fields=False)
    def serialize_timestamps(self, value: datetime) -> str:
        return format_timestamp(value)


class Ticket(_Record):
    """
    A ticket: the only mutable record kind.

    Example:
        >>> ticket = Ticket.new("TH", "Fix login redirect", priority=1)
        >>> ticket.status
        <TicketStatus.OPEN: 'open'>
    """

    id: str = Field(..., description="Project-scoped ticket ID (e.g. 'TH-abc123')")
    title: str = Field(..., description="Ticket title")
    description: str = Field(default="", description="Free-form description")
    type: TicketType | None = Field(default=None, description="Ticket type (optional)")
    status: TicketStatus = Field(default=TicketStatus.OPEN, description="Current status")
    priority: int = Field(default=0, description="Priority, lower is more urgent")
    labels: list[str] = Field(default_factory=list, description="Case-sensitive labels")
    assignee: str | None = Field(default=None, description="Assigned person, if any")
    created: datetime = Field(default_factory=utc_now)
    updated: datetime = Field(default_factory=utc_now)

    @field_validator("id")
    @classmethod
    def check_id(cls, v: str) -> str:
        return validate_ticket_id(v)

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        if not v.strip():
            raise EmptyTitleError()
        return v

    @field_validator("type", mode="before")
    @classmethod
    def check_type(cls, v: Any) -> Any:
        return coerce_ticket_type(v)

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, v: Any) -> Any:
        return coerce_status(v)

    @field_validator("labels", mode="before")
    @classmethod
    def check_labels(cls, v: Any) -> Any:
        if v is None:
            return []
        # Non-string items are left for pydantic's list[str] check to reject
        if isinstance(v, list) and all(isinstance(label, str) for label in v):
            for label in v:
                validate_label(label)
            return _dedupe_labels(v)
        return v

    @field_validator("assignee", mode="before")
    @classmethod
    def normalize_assignee(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_serializer("type")
    def serialize_type(self, value: TicketType | None) -> str:
        return value.value if value is not None else ""

    @field_serializer("assignee")
    def serialize_assignee(self, value: str | None) -> str:
        return value or ""

    @classmethod
    def new(
        cls,
        project_code: str,
        title: str,
        description: str = "",
        type: TicketType | str | None = None,
        priority: int = 0,
        labels: list[str] | None = None,
        assignee: str | None = None,
    ) -> "Ticket":
        """
        Create a new open ticket with a generated ID.

        Raises:
            InvalidProjectCodeError: If project_code is not two uppercase letters
            EmptyTitleError: If title is blank
            InvalidLabelError: If any label has an invalid shape
            InvalidTicketTypeError: If type is unknown
        """
        ticket_id = generate_ticket_id(project_code)
        title = title.strip()
        if not title:
            raise EmptyTitleError()
        for label in labels or []:
            validate_label(label)
        now = utc_now()
        return cls(
            id=ticket_id,
            title=title,
            description=description.strip(),
            type=coerce_ticket_type(type),
            priority=priority,
            labels=list(labels or []),
            assignee=assignee,
            created=now,
            updated=now,
        )

    @property
    def project_code(self) -> str:
        return self.id[:2]

    @property
    def is_open(self) -> bool:
        return self.status == TicketStatus.OPEN

    def close(self) -> None:
        """Mark ticket as closed."""
        self.status = TicketStatus.CLOSED
        self.updated = utc_now()

    def apply_update(
        self,
        *,
        title: str | None = None,
        description: str | None = None,
        type: TicketType | str | None = None,
        priority: int | None = None,
        status: TicketStatus | str | None = None,
        add_labels: list[str] | None = None,
        remove_labels: list[str] | None = None,
        assignee: str | None = None,
    ) -> None:
        """
        Apply a partial update in place and refresh the updated timestamp.

        Only arguments that are not None are applied. Validation happens
        before any field changes, so a rejected update leaves the ticket
        untouched.
        """
        if title is not None and not title.strip():
            raise EmptyTitleError()
        for label in add_labels or []:
            validate_label(label)

        changes: dict[str, Any] = {}
        if title is not None:
            changes["title"] = title.strip()
        if description is not None:
            changes["description"] = description.strip()
        if type is not None:
            changes["type"] = coerce_ticket_type(type)
        if priority is not None:
            changes["priority"] = priority
        if status is not None:
            changes["status"] = coerce_status(status)
        if assignee is not None:
            changes["assignee"] = assignee

        labels = list(self.labels)
        if add_labels:
            labels = _dedupe_labels(labels + list(add_labels))
        if remove_labels:
            drop = set(remove_labels)
            labels = [label for label in labels if label not in drop]
        changes["labels"] = labels

        for name, value in changes.items():
            setattr(self, name, value)
        self.updated = utc_now()


class Comment(_Record):
    """An immutable comment attached to a ticket."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., description="Comment ID (e.g. 'TH-c1a2b3')")
    ticket_id: str = Field(..., description="Owning ticket ID (soft reference)")
    content: str = Field(..., description="Comment text")
    created: datetime = Field(default_factory=utc_now)

    @field_validator("id")
    @classmethod
    def check_id(cls, v: str) -> str:
        return validate_comment_id(v)

    @field_validator("ticket_id")
    @classmethod
    def check_ticket_id(cls, v: str) -> str:
        return validate_ticket_id(v)

    @field_validator("content")
    @classmethod
    def check_content(cls, v: str) -> str:
        if not v.strip():
            raise EmptyCommentError()
        return v

    @classmethod
    def new(cls, ticket_id: str, content: str) -> "Comment":
        """Create a comment on ticket_id with a generated ID."""
        content = content.strip()
        if not content:
            raise EmptyCommentError()
        project_code = parse_project_code(ticket_id)
        return cls(
            id=generate_comment_id(project_code),
            ticket_id=ticket_id,
            content=content,
            created=utc_now(),
        )


class Dependency(_Record):
    """An immutable directed edge between two tickets."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., description="Dependency ID (e.g. 'TH-d1a2b3')")
    from_ticket_id: str = Field(..., description="Ticket that has the dependency")
    to_ticket_id: str = Field(..., description="Ticket being referenced")
    type: DependencyType = Field(..., description="Edge kind")
    created: datetime = Field(default_factory=utc_now)

    @field_validator("id")
    @classmethod
    def check_id(cls, v: str) -> str:
        return validate_dependency_id(v)

    @field_validator("from_ticket_id", "to_ticket_id")
    @classmethod
    def check_endpoint(cls, v: str) -> str:
        return validate_ticket_id(v)

    @field_validator("type", mode="before")
    @classmethod
    def check_type(cls, v: Any) -> Any:
        return coerce_dependency_type(v)

    @classmethod
    def new(
        cls,
        from_ticket_id: str,
        to_ticket_id: str,
        dep_type: DependencyType | str,
    ) -> "Dependency":
        """
        Create a dependency edge with a generated ID.

        Raises:
            InvalidTicketIDError: If either endpoint is not a ticket ID
            SelfDependencyError: If both endpoints name the same ticket
            InvalidDependencyTypeError: If dep_type is unknown
        """
        validate_ticket_id(from_ticket_id)
        validate_ticket_id(to_ticket_id)
        if from_ticket_id == to_ticket_id:
            raise SelfDependencyError(from_ticket_id)
        project_code = parse_project_code(from_ticket_id)
        return cls(
            id=generate_dependency_id(project_code),
            from_ticket_id=from_ticket_id,
            to_ticket_id=to_ticket_id,
            type=coerce_dependency_type(dep_type),
            created=utc_now(),
        )

    @property
    def is_self_edge(self) -> bool:
        return self.from_ticket_id == self.to_ticket_id

    @property
    def edge_key(self) -> tuple[str, str, str]:
        """The (from, to, type) triple that must be unique."""
        return (self.from_ticket_id, self.to_ticket_id, self.type.value)
