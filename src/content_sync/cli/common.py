"""
Helpers shared by the import, export and diff commands.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from content_sync.cli.errors import ExitCode, print_error
from content_sync.core.changelist import ChangePlan
from content_sync.core.comparer import ChangeOperation
from content_sync.core.config import load_config
from content_sync.core.pipeline.base import BatchRunner
from content_sync.core.pipeline.models import BatchContext, BatchResult
from content_sync.core.service import ContentSyncService
from content_sync.core.site.repository import EntityStorageError

console = Console()

T = TypeVar("T")

OPERATION_STYLES = {
    ChangeOperation.CREATE: "green",
    ChangeOperation.UPDATE: "yellow",
    ChangeOperation.DELETE: "red",
    ChangeOperation.RENAME: "cyan",
}


def get_service(ctx: typer.Context) -> ContentSyncService:
    """Load config for the invocation's project directory and build the service."""
    obj = ctx.obj or {}
    project_dir: Path = obj.get("project_dir") or Path.cwd()
    try:
        config = load_config(project_dir)
        return ContentSyncService.from_config(config, project_dir=project_dir)
    except EntityStorageError as e:
        print_error(
            "Could not open the entity repository",
            reason=str(e),
            solution="Check repository.path in .content-sync.json",
        )
        raise typer.Exit(ExitCode.USER_ERROR)
    except ValueError as e:
        print_error("Invalid configuration", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR)


def render_plan(plan: ChangePlan, title: str) -> Table:
    """One row per planned change, grouped by collection."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Collection", style="cyan")
    table.add_column("Operation")
    table.add_column("Name")

    for collection, changelist in plan.changes.items():
        for op in ChangeOperation:
            style = OPERATION_STYLES[op]
            for entry in changelist.get(op):
                table.add_row(
                    collection or "(default)", f"[{style}]{op.value}[/{style}]", str(entry)
                )
    return table


def print_plan_counts(plan: ChangePlan) -> None:
    counts = plan.counts()
    parts = [f"{count} {op}" for op, count in counts.items() if count]
    console.print(f"[dim]{', '.join(parts) or 'no changes'}[/dim]")


def run_with_progress(
    run: Callable[[BatchRunner], T],
    label: str,
) -> T:
    """Run a batch while showing one progress bar per stage."""
    with Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
        transient=True,
    ) as progress:
        tasks: dict[str, int] = {}

        def on_step(context: BatchContext) -> None:
            if context.stage not in tasks:
                tasks[context.stage] = progress.add_task(
                    f"{label}: {context.stage}", total=None
                )
            progress.update(
                tasks[context.stage],
                completed=context.progress,
                total=max(context.max, 1),
            )

        return run(BatchRunner(progress_callback=on_step))


def report_result(result: BatchResult, verb: str) -> None:
    """Print the run summary and exit non-zero if items failed."""
    for message in result.messages:
        console.print(f"[dim]{message}[/dim]")

    if result.has_errors:
        for error in result.errors:
            console.print(f"[red]✗[/red] {error}")
        console.print(
            f"[yellow]⚠[/yellow]  The content was {verb} with errors ({result.summary()})"
        )
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    console.print(f"[green]✓[/green] The content was {verb} successfully ({result.summary()})")
    if result.artifact is not None:
        console.print(f"[dim]Archive: {result.artifact}[/dim]")
