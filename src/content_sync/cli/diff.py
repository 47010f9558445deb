"""
content-sync diff: show what an import or export would change.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.syntax import Syntax

from content_sync.cli.common import get_service, print_plan_counts, render_plan
from content_sync.cli.errors import ExitCode, print_error
from content_sync.core.changelist import ChangeFilter, SyncDirection
from content_sync.core.serialization import codec

console = Console()


def diff(
    ctx: typer.Context,
    directory: Path | None = typer.Argument(
        None,
        help="Sync directory (defaults to the configured directory)",
    ),
    direction: SyncDirection = typer.Option(
        SyncDirection.IMPORT,
        "--direction",
        "-d",
        case_sensitive=False,
        help="import (directory -> site) or export (site -> directory)",
    ),
    entity_types: str | None = typer.Option(
        None, "--entity-types", "-e", help="Comma-separated entity types or collections"
    ),
    uuids: str | None = typer.Option(None, "--uuids", "-u", help="Comma-separated UUIDs"),
    actions: str | None = typer.Option(
        None, "--actions", "-a", help="Comma-separated actions: create, update, delete"
    ),
    show: str | None = typer.Option(
        None,
        "--show",
        help="Print the snapshot document for one name, e.g. node.article.<uuid>",
    ),
) -> None:
    """
    Show planned content changes without applying them.

    Examples:
        content-sync diff                       # What an import would do
        content-sync diff -d export -e node     # What a node export would do
        content-sync diff --show node.page.<uuid>
    """
    service = get_service(ctx)

    if show:
        service.rebuild_snapshot()
        document = service.read_active(show)
        if document is None:
            print_error(f"{show} is not in the snapshot", solution="content-sync snapshot")
            raise typer.Exit(ExitCode.USER_ERROR)
        console.print(Syntax(codec.encode(document), "yaml"))
        return

    change_filter = ChangeFilter.from_options(entity_types, uuids, actions)
    if direction == SyncDirection.IMPORT:
        plan = service.plan_import(change_filter, directory)
    else:
        plan = service.plan_export(change_filter, directory)

    if not plan.changes:
        console.print(f"[blue]There are no changes to {direction.value}.[/blue]")
        return
    console.print(render_plan(plan, f"Content changes to {direction.value}"))
    print_plan_counts(plan)
