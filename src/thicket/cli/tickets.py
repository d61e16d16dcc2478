"""
Thicket CLI - ticket commands.

Every command resolves the project (honouring --data-dir / THICKET_DIR),
opens a Store for the duration of the command and closes it on exit.
"""

import logging
from pathlib import Path

import typer

from thicket.cli.errors import ExitCode, print_error, print_ticket_not_found_error, user_errors
from thicket.cli.output import (
    console,
    print_json,
    print_success,
    print_ticket_detail,
    ticket_json,
    ticket_table,
)
from thicket.core.config import ThicketConfig, ThicketPaths, find_root, get_paths, load_config
from thicket.core.storage import Store
from thicket.core.tickets.models import (
    Comment,
    Dependency,
    DependencyType,
    Ticket,
    TicketStatus,
    coerce_status,
    validate_ticket_id,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_ticket_id(ticket_id: str) -> str:
    """
    Canonicalize a human-typed ticket ID: upper-case project code,
    lower-case suffix.

    Example:
        >>> normalize_ticket_id("th-AB12CD")
        'TH-ab12cd'
    """
    ticket_id = ticket_id.strip()
    if len(ticket_id) < 3 or ticket_id[2] != "-":
        return ticket_id
    return f"{ticket_id[:2].upper()}-{ticket_id[3:].lower()}"


def _data_dir(ctx: typer.Context) -> Path | None:
    if ctx.obj:
        return ctx.obj.get("data_dir")
    return None


def load_project(ctx: typer.Context) -> tuple[ThicketPaths, ThicketConfig]:
    """Find the project and read its config."""
    data_dir = _data_dir(ctx)
    root = find_root(data_dir=data_dir)
    paths = get_paths(root, data_dir)
    return paths, load_config(paths)


def _parse_id(raw: str) -> str:
    return validate_ticket_id(normalize_ticket_id(raw))


def _require_ticket(store: Store, ticket_id: str) -> Ticket:
    ticket = store.get_ticket(ticket_id)
    if ticket is None:
        print_ticket_not_found_error(ticket_id)
        raise typer.Exit(ExitCode.USER_ERROR)
    return ticket


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def add(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Ticket title"),
    description: str = typer.Option("", "--description", "-d", help="Ticket description"),
    ticket_type: str | None = typer.Option(
        None,
        "--type",
        "-t",
        help="Ticket type: bug, feature, task, epic, cleanup",
    ),
    priority: int = typer.Option(
        0,
        "--priority",
        "-p",
        help="Priority (lower = more urgent)",
    ),
    labels: list[str] | None = typer.Option(
        None,
        "--label",
        "-l",
        help="Ticket label (can be repeated)",
    ),
    assignee: str | None = typer.Option(None, "--assignee", "-a", help="Assign to a person"),
    blocked_by: list[str] | None = typer.Option(
        None,
        "--blocked-by",
        help="Ticket that blocks this one (can be repeated)",
    ),
    created_from: str | None = typer.Option(
        None,
        "--created-from",
        help="Ticket this one was created from",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Create a new ticket.

    Examples:
        thicket add "Fix login redirect" --type bug --priority 1
        thicket add "Write migration" --blocked-by TH-abc123
    """
    with user_errors():
        paths, config = load_project(ctx)
        # Repeated --blocked-by values collapse to one edge
        blocker_ids = list(dict.fromkeys(_parse_id(b) for b in blocked_by or []))
        origin_id = _parse_id(created_from) if created_from else None

        ticket = Ticket.new(
            config.project_code,
            title,
            description=description,
            type=ticket_type,
            priority=priority,
            labels=labels or [],
            assignee=assignee,
        )

        with Store.open(paths) as store:
            # Links are checked before the ticket is written
            for linked in [*blocker_ids, *([origin_id] if origin_id else [])]:
                _require_ticket(store, linked)

            store.add_ticket(ticket)
            for blocker_id in blocker_ids:
                store.add_dependency(
                    Dependency.new(ticket.id, blocker_id, DependencyType.BLOCKED_BY)
                )
            if origin_id:
                store.add_dependency(
                    Dependency.new(ticket.id, origin_id, DependencyType.CREATED_FROM)
                )

    print_success(f"Created ticket {ticket.id}", ticket_id=ticket.id, json_output=json_output)


def list_tickets(
    ctx: typer.Context,
    status: str | None = typer.Option(
        None,
        "--status",
        "-s",
        help="Filter by status: open, closed, icebox",
    ),
    label: str | None = typer.Option(None, "--label", "-l", help="Filter by label"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    List tickets by priority.

    Examples:
        thicket list
        thicket list --status open --label backend
    """
    with user_errors():
        ticket_status = coerce_status(status.lower()) if status else None
        paths, _ = load_project(ctx)
        with Store.open(paths) as store:
            tickets = store.list_tickets(status=ticket_status, label=label)

    if json_output:
        print_json([ticket_json(t) for t in tickets])
        return

    if not tickets:
        console.print("[dim]No tickets found[/dim]")
        return

    console.print(ticket_table(tickets))
    console.print(f"\n[dim]Total: {len(tickets)} tickets[/dim]")


def show(
    ctx: typer.Context,
    ticket_id: str = typer.Argument(..., help="Ticket ID to display"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Show a ticket with its comments and links.

    Examples:
        thicket show TH-abc123
        thicket show th-abc123 --json
    """
    with user_errors():
        ticket_id = _parse_id(ticket_id)
        paths, _ = load_project(ctx)
        with Store.open(paths) as store:
            ticket = _require_ticket(store, ticket_id)
            comments = store.get_comments(ticket_id)
            blocked_by = store.get_blockers(ticket_id)
            blocking = store.get_blocking(ticket_id)
            created_from = store.get_created_from(ticket_id)

    if json_output:
        print_json(
            {
                "ticket": ticket_json(ticket),
                "comments": [c.model_dump(mode="json") for c in comments],
                "blocked_by": [ticket_json(t) for t in blocked_by],
                "blocking": [ticket_json(t) for t in blocking],
                "created_from": ticket_json(created_from) if created_from else None,
            }
        )
        return

    print_ticket_detail(
        ticket,
        comments=comments,
        blocked_by=blocked_by,
        blocking=blocking,
        created_from=created_from,
    )


def ready(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    List open tickets that no open ticket is blocking.

    Examples:
        thicket ready
        thicket ready --json
    """
    with user_errors():
        paths, _ = load_project(ctx)
        with Store.open(paths) as store:
            tickets = store.list_ready()

    if json_output:
        print_json([ticket_json(t) for t in tickets])
        return

    if not tickets:
        console.print("[dim]No ready tickets[/dim]")
        return

    console.print(ticket_table(tickets))


def next_ticket(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the most urgent ready ticket."""
    with user_errors():
        paths, _ = load_project(ctx)
        with Store.open(paths) as store:
            ticket = store.next_ready()

    if json_output:
        print_json(ticket_json(ticket) if ticket else None)
        return

    if ticket is None:
        console.print("[dim]No ready tickets[/dim]")
        return
    console.print(ticket_table([ticket]))


def update(
    ctx: typer.Context,
    ticket_id: str = typer.Argument(..., help="Ticket ID to update"),
    title: str | None = typer.Option(None, "--title", help="New title"),
    description: str | None = typer.Option(None, "--description", "-d", help="New description"),
    ticket_type: str | None = typer.Option(None, "--type", "-t", help="New type"),
    priority: int | None = typer.Option(None, "--priority", "-p", help="New priority"),
    status: str | None = typer.Option(None, "--status", "-s", help="New status"),
    assignee: str | None = typer.Option(
        None,
        "--assignee",
        "-a",
        help="Assign to a person (empty string clears)",
    ),
    add_labels: list[str] | None = typer.Option(
        None,
        "--add-label",
        help="Add a label (can be repeated)",
    ),
    remove_labels: list[str] | None = typer.Option(
        None,
        "--remove-label",
        help="Remove a label (can be repeated)",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Update fields of a ticket. Only the given options change.

    Examples:
        thicket update TH-abc123 --priority 1 --add-label urgent
        thicket update TH-abc123 --status icebox --assignee ""
    """
    with user_errors():
        ticket_id = _parse_id(ticket_id)
        paths, _ = load_project(ctx)
        with Store.open(paths) as store:
            ticket = _require_ticket(store, ticket_id)
            ticket.apply_update(
                title=title,
                description=description,
                type=ticket_type,
                priority=priority,
                status=status.lower() if status else None,
                add_labels=add_labels,
                remove_labels=remove_labels,
                assignee=assignee,
            )
            store.update_ticket(ticket)

    print_success(f"Updated ticket {ticket_id}", ticket_id=ticket_id, json_output=json_output)


def close(
    ctx: typer.Context,
    ticket_id: str = typer.Argument(..., help="Ticket ID to close"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Close a ticket."""
    with user_errors():
        ticket_id = _parse_id(ticket_id)
        paths, _ = load_project(ctx)
        with Store.open(paths) as store:
            ticket = _require_ticket(store, ticket_id)
            already_closed = ticket.status == TicketStatus.CLOSED
            if not already_closed:
                ticket.close()
                store.update_ticket(ticket)

    if already_closed:
        message = f"Ticket {ticket_id} is already closed"
        if json_output:
            print_success(message, ticket_id=ticket_id, json_output=True)
        else:
            console.print(message)
        return

    print_success(f"Closed ticket {ticket_id}", ticket_id=ticket_id, json_output=json_output)


def comment(
    ctx: typer.Context,
    ticket_id: str = typer.Argument(..., help="Ticket ID to comment on"),
    content: str = typer.Argument(..., help="Comment text"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Add a comment to a ticket."""
    with user_errors():
        ticket_id = _parse_id(ticket_id)
        paths, _ = load_project(ctx)
        with Store.open(paths) as store:
            _require_ticket(store, ticket_id)
            new_comment = Comment.new(ticket_id, content)
            store.add_comment(new_comment)

    print_success(
        f"Added comment {new_comment.id} to {ticket_id}",
        ticket_id=ticket_id,
        json_output=json_output,
    )


def link(
    ctx: typer.Context,
    ticket_id: str = typer.Argument(..., help="Ticket that gets the link"),
    blocked_by: str | None = typer.Option(
        None,
        "--blocked-by",
        help="Ticket that blocks this one",
    ),
    created_from: str | None = typer.Option(
        None,
        "--created-from",
        help="Ticket this one was created from",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Link two tickets.

    Examples:
        thicket link TH-abc123 --blocked-by TH-def456
        thicket link TH-abc123 --created-from TH-def456
    """
    if bool(blocked_by) == bool(created_from):
        print_error(
            "Exactly one of --blocked-by or --created-from is required",
            solution="thicket link <ID> --blocked-by <OTHER-ID>",
        )
        raise typer.Exit(ExitCode.USER_ERROR)

    if blocked_by:
        dep_type, target = DependencyType.BLOCKED_BY, blocked_by
    else:
        dep_type, target = DependencyType.CREATED_FROM, created_from or ""

    with user_errors():
        ticket_id = _parse_id(ticket_id)
        target_id = _parse_id(target)
        paths, _ = load_project(ctx)
        with Store.open(paths) as store:
            _require_ticket(store, ticket_id)
            _require_ticket(store, target_id)
            store.add_dependency(Dependency.new(ticket_id, target_id, dep_type))

    if dep_type == DependencyType.BLOCKED_BY:
        message = f"Ticket {ticket_id} is now blocked by {target_id}"
    else:
        message = f"Ticket {ticket_id} was created from {target_id}"
    print_success(message, ticket_id=ticket_id, json_output=json_output)


def rebuild(ctx: typer.Context) -> None:
    """Rebuild the query cache from tickets.jsonl."""
    with user_errors():
        paths, _ = load_project(ctx)
        with Store.open(paths) as store:
            store.rebuild()
            count = len(store.list_tickets())

    console.print(f"[green]✓[/green] Rebuilt cache ({count} tickets)")
