"""
content-sync snapshot: rebuild the snapshot table from the live site.
"""

import typer
from rich.console import Console

from content_sync.cli.common import get_service, report_result, run_with_progress

console = Console()


def snapshot(ctx: typer.Context) -> None:
    """
    Re-export every content entity into the snapshot table.

    The snapshot is what diffs compare against; rebuild it after changing
    content outside content-sync.
    """
    service = get_service(ctx)
    result = run_with_progress(service.rebuild_snapshot, "Snapshot")
    report_result(result, "snapshotted")
