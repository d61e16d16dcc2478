"""
Exception hierarchy for thicket storage.

Validation errors subclass ValueError so callers that only care about
"bad input" can catch that. Dependency invariant violations each get their
own class so the CLI can print a precise message. Not-found lookups are
returned as None and never raised, except for update of a missing ticket,
which is a programming error.
"""


class ThicketError(Exception):
    """Base exception for thicket errors."""


class LogCorruptedError(ThicketError):
    """Raised when a line of tickets.jsonl cannot be parsed."""

    def __init__(self, message: str, line_num: int | None = None):
        self.line_num = line_num
        if line_num is not None:
            message = f"Line {line_num}: {message}"
        super().__init__(message)


# ------------------------------------------------------------------
# Record validation
# ------------------------------------------------------------------


class InvalidRecordError(ThicketError, ValueError):
    """A record field has an invalid shape."""


class InvalidTicketIDError(InvalidRecordError):
    """Ticket ID does not match XX-xxxxxx."""

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Invalid ticket ID: {ticket_id!r} (expected format XX-xxxxxx)")


class InvalidRecordIDError(InvalidRecordError):
    """Comment or dependency ID does not match XX-cxxxxxx / XX-dxxxxxx."""

    def __init__(self, record_id: str, kind: str, expected: str):
        self.record_id = record_id
        self.kind = kind
        super().__init__(f"Invalid {kind} ID: {record_id!r} (expected format {expected})")


class InvalidProjectCodeError(InvalidRecordError):
    """Project code is not exactly two uppercase letters."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(
            f"Invalid project code: {code!r} (must be exactly two uppercase letters)"
        )


class InvalidLabelError(InvalidRecordError):
    """Label is not 1-30 alphanumeric, hyphen or underscore characters."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(
            f"Invalid label: {label!r} "
            "(must be 1-30 alphanumeric characters, hyphens, or underscores)"
        )


class InvalidStatusError(InvalidRecordError):
    """Status is not one of the known ticket statuses."""


class InvalidTicketTypeError(InvalidRecordError):
    """Ticket type is not one of the known types."""


class InvalidDependencyTypeError(InvalidRecordError):
    """Dependency type is not blocked_by or created_from."""


class EmptyTitleError(InvalidRecordError):
    """Ticket title is empty after trimming."""

    def __init__(self) -> None:
        super().__init__("Ticket title cannot be empty")


class EmptyCommentError(InvalidRecordError):
    """Comment content is empty after trimming."""

    def __init__(self) -> None:
        super().__init__("Comment content cannot be empty")


# ------------------------------------------------------------------
# Dependency invariants
# ------------------------------------------------------------------


class DependencyError(ThicketError):
    """Base class for rejected dependency edges."""


class SelfDependencyError(DependencyError):
    """A ticket cannot depend on itself."""

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} cannot depend on itself")


class DuplicateDependencyError(DependencyError):
    """The (from, to, type) edge already exists."""

    def __init__(self, from_id: str, to_id: str, dep_type: str):
        self.from_id = from_id
        self.to_id = to_id
        self.dep_type = dep_type
        super().__init__(f"Dependency {from_id} {dep_type} {to_id} already exists")


class CircularDependencyError(DependencyError):
    """Adding the blocked_by edge would close a cycle."""

    def __init__(self, from_id: str, to_id: str):
        self.from_id = from_id
        self.to_id = to_id
        super().__init__(
            f"{from_id} blocked_by {to_id} would create a circular dependency "
            f"({to_id} is already blocked by {from_id}, directly or transitively)"
        )


# ------------------------------------------------------------------
# Lookup / project state
# ------------------------------------------------------------------


class TicketNotFoundError(ThicketError):
    """Raised when updating a ticket that does not exist."""

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} not found")


class NotInitializedError(ThicketError):
    """No .thicket directory was found."""


class AlreadyInitializedError(ThicketError):
    """A .thicket directory already exists at the target root."""


class DuplicateTicketError(ThicketError):
    """A ticket with this ID is already stored."""

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} already exists")


class ConfigError(ThicketError):
    """config.json exists but cannot be read or validated."""
