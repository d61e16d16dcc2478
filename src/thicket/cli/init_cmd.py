"""
Init command: create .thicket/ in the current directory.

Creates config.json with the project code, an empty tickets.jsonl, and a
.gitignore that keeps cache.db out of version control.
"""

import logging
from pathlib import Path

import typer

from thicket.cli.errors import user_errors
from thicket.cli.output import print_success
from thicket.core.config import init_project

logger = logging.getLogger(__name__)


def main(
    ctx: typer.Context,
    project: str = typer.Option(
        ...,
        "--project",
        "-p",
        help="Two-letter project code prefixed to ticket IDs (e.g., TH)",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Initialize a thicket project.

    Examples:
        thicket init --project TH
        thicket --data-dir ~/notes/.thicket init --project NO
    """
    code = project.strip().upper()
    data_dir = ctx.obj.get("data_dir") if ctx.obj else None

    with user_errors():
        root = data_dir.resolve().parent if data_dir else Path.cwd()
        paths = init_project(root, code, data_dir=data_dir)

    logger.debug(f"Created {paths.config}, {paths.tickets}")
    print_success(f"Initialized thicket project with code {code}", json_output=json_output)
