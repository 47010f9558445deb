"""
content-sync CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys
from pathlib import Path

import typer
from rich.console import Console

from content_sync import __version__
from content_sync.cli import diff, export, import_cmd, import_single, snapshot
from content_sync.core.config import load_layered_env

# Help panel names for command grouping
PANEL_SYNC = "Move Content"
PANEL_INSPECT = "Inspect"

app = typer.Typer(
    name="content-sync",
    help="Export, import and reconcile site content as YAML",
    no_args_is_help=True,
    add_completion=True,
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
    project_dir: Path | None = typer.Option(
        None,
        "--project-dir",
        "-C",
        help="Project directory holding .content-sync.json (defaults to cwd)",
    ),
) -> None:
    """
    content-sync - move site content between environments as YAML files.

    Quick Start:
        content-sync export          # Site -> content/sync
        content-sync diff            # What an import would change
        content-sync import          # content/sync -> site
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    # Precedence: OS env > project .env > user .env
    load_layered_env(project_dir=project_dir)

    # Store shared options in context for subcommands
    ctx.obj = {"debug": debug, "project_dir": project_dir}


app.command(name="import", rich_help_panel=PANEL_SYNC)(import_cmd.import_content)
app.command(name="import-single", rich_help_panel=PANEL_SYNC)(import_single.import_single)
app.command(name="export", rich_help_panel=PANEL_SYNC)(export.export_content)
app.command(name="diff", rich_help_panel=PANEL_INSPECT)(diff.diff)
app.command(name="snapshot", rich_help_panel=PANEL_INSPECT)(snapshot.snapshot)


@app.command(rich_help_panel=PANEL_INSPECT)
def version() -> None:
    """Show content-sync version and exit."""
    console.print(f"content-sync version {__version__}")
    raise typer.Exit(0)


__all__ = ["app"]
