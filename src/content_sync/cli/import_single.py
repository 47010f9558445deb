"""
content-sync import-single: import one pasted YAML document.
"""

import sys
from pathlib import Path

import typer
from rich.console import Console

from content_sync.cli.common import get_service
from content_sync.cli.errors import ExitCode, print_error
from content_sync.core.exceptions import ContentSyncError

console = Console()


def import_single(
    ctx: typer.Context,
    source: str = typer.Argument(
        ...,
        help="YAML document to import, or '-' to read it from standard input",
    ),
) -> None:
    """
    Import a single entity document, bypassing the change list.

    Examples:
        content-sync import-single content/sync/entities/node/page/node.page.p1.yml
        pbpaste | content-sync import-single -
    """
    try:
        text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    except OSError as e:
        print_error("Cannot read the document", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR)

    service = get_service(ctx)
    try:
        entity = service.import_single(text)
    except ContentSyncError as e:
        print_error(
            "The import failed",
            reason=str(e),
            solution="Paste a document written by content-sync export",
        )
        raise typer.Exit(ExitCode.USER_ERROR)

    console.print(
        f"[green]Entity {entity.label} ({entity.entity_type}: {entity.id}) "
        "imported successfully.[/green]"
    )
