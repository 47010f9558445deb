"""
content-sync import: apply the sync directory to the site.
"""

from pathlib import Path

import typer
from rich.console import Console

from content_sync.cli.common import (
    get_service,
    print_plan_counts,
    render_plan,
    report_result,
    run_with_progress,
)
from content_sync.cli.errors import ExitCode, print_error, print_site_mismatch_error
from content_sync.core.changelist import ChangeFilter
from content_sync.core.exceptions import ContentSyncError
from content_sync.core.service import SiteMismatchError

console = Console()


def import_content(
    ctx: typer.Context,
    directory: Path | None = typer.Argument(
        None,
        help="Sync directory (defaults to import.directory from config)",
    ),
    entity_types: str | None = typer.Option(
        None,
        "--entity-types",
        "-e",
        help="Comma-separated entity types or collections, e.g. 'node,taxonomy_term.tags'",
    ),
    uuids: str | None = typer.Option(
        None,
        "--uuids",
        "-u",
        help="Comma-separated UUIDs to import",
    ),
    actions: str | None = typer.Option(
        None,
        "--actions",
        "-a",
        help="Comma-separated actions to apply: create, update, delete",
    ),
    skiplist: bool = typer.Option(
        False,
        "--skiplist",
        "-y",
        help="Skip the change list and confirmation",
    ),
    resume: bool = typer.Option(
        False,
        "--resume",
        help="Finish the last interrupted import instead of planning a new one",
    ),
    site_uuid_override: bool = typer.Option(
        False,
        "--site-uuid-override",
        help="Import content exported from a different site",
    ),
) -> None:
    """
    Import content from a sync directory.

    Examples:
        content-sync import                        # Plan, confirm, import
        content-sync import -e node -a create -y   # Only new nodes, no prompt
        content-sync import --resume               # Finish an interrupted run
    """
    service = get_service(ctx)
    if site_uuid_override:
        service.config.import_.site_uuid_override = True

    if resume:
        result = run_with_progress(
            lambda runner: service.resume_import(directory, runner=runner), "Importing"
        )
        if result is None:
            console.print("[blue]No interrupted import to resume[/blue]")
            raise typer.Exit(ExitCode.SUCCESS)
        report_result(result, "imported")
        return

    try:
        service.validate_site_uuid(directory)
    except SiteMismatchError as e:
        print_site_mismatch_error(e.expected, e.found)
        raise typer.Exit(ExitCode.USER_ERROR)

    change_filter = ChangeFilter.from_options(entity_types, uuids, actions)
    plan = service.plan_import(change_filter, directory)
    if plan.is_empty():
        console.print("[blue]There are no changes to import.[/blue]")
        raise typer.Exit(ExitCode.SUCCESS)

    if not skiplist:
        console.print(render_plan(plan, "Content changes to import"))
        print_plan_counts(plan)
        typer.confirm("Import the listed content changes?", abort=True)

    try:
        result = run_with_progress(
            lambda runner: service.run_import(plan, directory, runner), "Importing"
        )
    except ContentSyncError as e:
        print_error("Import failed", reason=str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    report_result(result, "imported")
