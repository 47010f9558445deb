"""
content-sync export: write site content to a sync directory or archive.
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
from content_sync.cli.errors import ExitCode, print_destination_error, print_error
from content_sync.core.changelist import ChangeFilter
from content_sync.core.exceptions import ContentSyncError
from content_sync.core.pipeline.models import ExportMode
from content_sync.core.pipeline.sinks import DestinationError
from content_sync.core.serialization.context import FilesMode

console = Console()


def export_content(
    ctx: typer.Context,
    directory: Path | None = typer.Argument(
        None,
        help="Sync directory (defaults to export.directory from config)",
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
        help="Comma-separated UUIDs to export",
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
        help="Finish the last interrupted export instead of planning a new one",
    ),
    files: str | None = typer.Option(
        None,
        "--files",
        help="Include files: none, base64 or folder (empty means folder)",
    ),
    include_dependencies: bool | None = typer.Option(
        None,
        "--include-dependencies/--no-include-dependencies",
        help="Also export referenced entities",
    ),
    mode: ExportMode | None = typer.Option(
        None,
        "--mode",
        "-m",
        case_sensitive=False,
        help="Destination: snapshot, folder or tar",
    ),
) -> None:
    """
    Export content to a sync directory.

    Examples:
        content-sync export                           # Plan, confirm, export
        content-sync export --mode tar -y             # Archive without prompting
        content-sync export --files base64 -e file    # Embed file contents
        content-sync export --include-dependencies    # Follow references
    """
    service = get_service(ctx)
    files_mode = FilesMode.from_option(files) if files is not None else None

    if resume:
        try:
            result = run_with_progress(
                lambda runner: service.resume_export(
                    directory, mode, files_mode, include_dependencies, runner=runner
                ),
                "Exporting",
            )
        except DestinationError as e:
            print_destination_error(str(e))
            raise typer.Exit(ExitCode.GENERAL_ERROR)
        if result is None:
            console.print("[blue]No interrupted export to resume[/blue]")
            raise typer.Exit(ExitCode.SUCCESS)
        report_result(result, "exported")
        return

    change_filter = ChangeFilter.from_options(entity_types, uuids, actions)
    plan = service.plan_export(change_filter, directory)
    if plan.is_empty():
        console.print("[blue]There are no changes to export.[/blue]")
        raise typer.Exit(ExitCode.SUCCESS)

    if not skiplist:
        console.print(render_plan(plan, "Content changes to export"))
        print_plan_counts(plan)
        typer.confirm("Export the listed content changes?", abort=True)

    try:
        result = run_with_progress(
            lambda runner: service.run_export(
                plan,
                directory,
                mode=mode,
                files=files_mode,
                include_dependencies=include_dependencies,
                runner=runner,
            ),
            "Exporting",
        )
    except DestinationError as e:
        print_destination_error(str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except ContentSyncError as e:
        print_error("Export failed", reason=str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    report_result(result, "exported")
