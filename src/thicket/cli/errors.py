"""
Standardized error handling and exit codes for the thicket CLI.

Core code raises ThicketError subclasses; commands run inside user_errors()
which turns them into a one-line problem, an optional reason, and a
suggested next command.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from enum import IntEnum

import typer
from rich.console import Console
from rich.markup import escape

from thicket.core.exceptions import (
    AlreadyInitializedError,
    CircularDependencyError,
    ConfigError,
    DuplicateDependencyError,
    InvalidLabelError,
    InvalidProjectCodeError,
    InvalidStatusError,
    InvalidTicketIDError,
    LogCorruptedError,
    NotInitializedError,
    SelfDependencyError,
    ThicketError,
    TicketNotFoundError,
)

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for thicket CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Unexpected failure (I/O, database)."""

    USER_ERROR = 2
    """Invalid input or project state (actionable by user)."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Ticket TH-abc123 not found",
        ...     solution="thicket list",
        ... )
    """
    console.print(f"[red]Error:[/red] {escape(problem)}")

    if reason:
        console.print(f"[dim]{escape(reason)}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {escape(solution)}")


def print_not_initialized_error() -> None:
    """Print error when no .thicket directory can be found."""
    print_error(
        "Thicket is not initialized in this directory",
        reason="No .thicket/ directory was found here or in any parent",
        solution="thicket init --project <CODE>",
    )


def print_ticket_not_found_error(ticket_id: str) -> None:
    """Print error when a ticket ID does not resolve."""
    print_error(
        f"Ticket {ticket_id} not found",
        solution="thicket list  # to see available tickets",
    )


_SOLUTIONS: list[tuple[type[ThicketError], str]] = [
    (InvalidTicketIDError, "Ticket IDs have the format XX-xxxxxx (e.g., TH-abc123)"),
    (InvalidProjectCodeError, "Project codes are exactly two letters (e.g., TH)"),
    (InvalidLabelError, "Labels use letters, digits, '-' and '_' (max 30 characters)"),
    (InvalidStatusError, "Valid statuses are: open, closed, icebox"),
    (AlreadyInitializedError, "thicket list  # the project is ready to use"),
    (CircularDependencyError, "thicket show <ID>  # to inspect existing blockers"),
    (DuplicateDependencyError, "thicket show <ID>  # the link is already recorded"),
    (SelfDependencyError, "Link the ticket to a different ticket"),
    (LogCorruptedError, "Fix the reported line in .thicket/tickets.jsonl"),
    (ConfigError, "Check .thicket/config.json"),
]


def _solution_for(error: ThicketError) -> str | None:
    for error_type, solution in _SOLUTIONS:
        if isinstance(error, error_type):
            return solution
    return None


@contextmanager
def user_errors() -> Iterator[None]:
    """
    Report ThicketError as a user error and exit with USER_ERROR.

    Other exceptions propagate unchanged.

    Example:
        >>> with user_errors():
        ...     store.add_dependency(dep)
    """
    try:
        yield
    except NotInitializedError:
        print_not_initialized_error()
        raise typer.Exit(ExitCode.USER_ERROR) from None
    except TicketNotFoundError as e:
        print_ticket_not_found_error(e.ticket_id)
        raise typer.Exit(ExitCode.USER_ERROR) from None
    except ThicketError as e:
        print_error(str(e), solution=_solution_for(e))
        raise typer.Exit(ExitCode.USER_ERROR) from None
