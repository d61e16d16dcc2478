"""
Rendering helpers shared by thicket commands.

Human output goes through rich; --json output is printed without wrapping
or markup so it can be piped into other tools.
"""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from thicket.core.tickets.models import Comment, Ticket, TicketStatus

console = Console()

STATUS_STYLES = {
    TicketStatus.OPEN: "green",
    TicketStatus.CLOSED: "dim",
    TicketStatus.ICEBOX: "blue",
}


def print_json(data: Any) -> None:
    console.print(
        json.dumps(data, indent=2, ensure_ascii=False),
        soft_wrap=True,
        markup=False,
        highlight=False,
    )


def ticket_json(ticket: Ticket) -> dict[str, Any]:
    return ticket.model_dump(mode="json")


def print_success(message: str, *, ticket_id: str | None = None, json_output: bool = False) -> None:
    """Print the result of a mutating command."""
    if json_output:
        payload: dict[str, Any] = {"success": True, "message": message}
        if ticket_id:
            payload["id"] = ticket_id
        print_json(payload)
        return
    console.print(f"[green]✓[/green] {escape(message)}")


def ticket_table(tickets: list[Ticket]) -> Table:
    """Build a table of tickets in the order given."""
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Pri", justify="right")
    table.add_column("Status")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Labels", style="dim")

    for ticket in tickets:
        style = STATUS_STYLES.get(ticket.status, "")
        table.add_row(
            ticket.id,
            str(ticket.priority),
            f"[{style}]{ticket.status.value}[/{style}]" if style else ticket.status.value,
            ticket.type.value if ticket.type else "",
            escape(ticket.title),
            escape(", ".join(ticket.labels)),
        )
    return table


def print_ticket_detail(
    ticket: Ticket,
    *,
    comments: list[Comment],
    blocked_by: list[Ticket],
    blocking: list[Ticket],
    created_from: Ticket | None,
) -> None:
    """Print one ticket with its comments and links."""
    console.print(f"[bold cyan]{ticket.id}[/bold cyan] - {escape(ticket.title)}")
    console.print(f"[dim]Status:[/dim] {ticket.status.value}")
    if ticket.type:
        console.print(f"[dim]Type:[/dim] {ticket.type.value}")
    console.print(f"[dim]Priority:[/dim] {ticket.priority}")
    if ticket.assignee:
        console.print(f"[dim]Assignee:[/dim] {escape(ticket.assignee)}")
    if ticket.labels:
        console.print(f"[dim]Labels:[/dim] {escape(', '.join(ticket.labels))}")
    console.print(f"[dim]Created:[/dim] {ticket.created:%Y-%m-%d %H:%M}")
    console.print(f"[dim]Updated:[/dim] {ticket.updated:%Y-%m-%d %H:%M}")

    if ticket.description:
        console.print(f"\n{escape(ticket.description)}")

    if created_from:
        console.print(
            f"\n[bold]Created from:[/bold] {created_from.id} - {escape(created_from.title)}"
        )
    if blocked_by:
        console.print("\n[bold]Blocked by:[/bold]")
        for t in blocked_by:
            console.print(f"  {t.id} [{t.status.value}] {t.title}", markup=False)
    if blocking:
        console.print("\n[bold]Blocking:[/bold]")
        for t in blocking:
            console.print(f"  {t.id} [{t.status.value}] {t.title}", markup=False)

    if comments:
        console.print(f"\n[bold]Comments ({len(comments)}):[/bold]")
        for c in comments:
            console.print(f"  [dim]{c.created:%Y-%m-%d %H:%M}[/dim] {escape(c.content)}")
