"""
Thicket CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
from pathlib import Path

import typer
from rich.console import Console

from thicket import __version__
from thicket.cli import init_cmd, tickets
from thicket.core.config import load_layered_env, resolve_data_dir

# Help panel names for command grouping
PANEL_TICKETS = "Work with Tickets"
PANEL_LINKS = "Links and Readiness"
PANEL_PROJECT = "Project"

app = typer.Typer(
    name="thicket",
    help="Lightweight ticket tracker backed by a version-controlled JSONL log",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    data_dir: Path | None = typer.Option(
        None,
        "--data-dir",
        help="Use this directory for thicket data instead of searching for .thicket/",
    ),
) -> None:
    """
    Thicket - a lightweight ticket tracker.

    Tickets are stored in .thicket/tickets.jsonl (commit it) with a local
    SQLite cache (.thicket/cache.db, ignored) for fast queries.

    Quick Start:
        1. thicket init --project TH
        2. thicket add "First ticket" --priority 1
        3. thicket ready
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env()

    if debug:
        logging.basicConfig(level=logging.DEBUG)

    ctx.obj = {"debug": debug, "data_dir": resolve_data_dir(data_dir)}


# =============================================================================
# Work with Tickets
# =============================================================================

app.command(name="add", rich_help_panel=PANEL_TICKETS)(tickets.add)
app.command(name="list", rich_help_panel=PANEL_TICKETS)(tickets.list_tickets)
app.command(name="show", rich_help_panel=PANEL_TICKETS)(tickets.show)
app.command(name="update", rich_help_panel=PANEL_TICKETS)(tickets.update)
app.command(name="close", rich_help_panel=PANEL_TICKETS)(tickets.close)
app.command(name="comment", rich_help_panel=PANEL_TICKETS)(tickets.comment)

# =============================================================================
# Links and Readiness
# =============================================================================

app.command(name="link", rich_help_panel=PANEL_LINKS)(tickets.link)
app.command(name="ready", rich_help_panel=PANEL_LINKS)(tickets.ready)
app.command(name="next", rich_help_panel=PANEL_LINKS)(tickets.next_ticket)

# =============================================================================
# Project
# =============================================================================

app.command(name="init", rich_help_panel=PANEL_PROJECT)(init_cmd.main)
app.command(name="rebuild", rich_help_panel=PANEL_PROJECT)(tickets.rebuild)


@app.command(rich_help_panel=PANEL_PROJECT)
def version() -> None:
    """Show thicket version and exit."""
    console.print(f"thicket version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()
