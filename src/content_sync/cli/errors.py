"""
Standardized error handling and exit codes for the content-sync CLI.

Consistent error messaging with actionable guidance and standardized exit
codes across all commands.
"""

from enum import IntEnum

from rich.console import Console

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for content-sync operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Generic error, or a run that completed with errors."""

    USER_ERROR = 2
    """User configuration or input error (actionable by user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Site UUID mismatch",
        ...     reason="The content was exported from another site",
        ...     solution="content-sync import --site-uuid-override",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_site_mismatch_error(expected: str, found: str) -> None:
    print_error(
        "Site UUID mismatch",
        reason=f"This site is {expected}; the content was exported from {found}",
        solution="content-sync import --site-uuid-override",
    )


def print_destination_error(message: str) -> None:
    print_error(
        "Export destination is not writable",
        reason=message,
        solution="Check the directory permissions or pass another directory",
    )
