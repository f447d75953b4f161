"""
Standardized error handling and exit codes for the trunkline CLI.

This module provides consistent error messaging with actionable guidance
and standardized exit codes across all CLI commands.
"""

from enum import IntEnum

from rich.console import Console

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for trunkline CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """A git call or another operation failed."""

    USER_ERROR = 2
    """Invalid input or a repository state the command cannot start from."""

    CONFLICT = 3
    """A sync stopped on conflicts and is waiting for the user."""

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
        ...     "Sync failed at step update-trunk",
        ...     reason="Not possible to fast-forward, aborting.",
        ...     solution="git checkout main && git pull --rebase",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_not_git_repo_error() -> None:
    """Print error when not in a git repository."""
    print_error(
        "Not a git repository",
        reason="trunkline works on the git repository containing the current directory",
        solution="cd to your repository  # or git init",
    )


def print_incompatible_flags_error(flag1: str, flag2: str) -> None:
    """Print error when incompatible CLI flags are used together."""
    print_error(
        f"Cannot use {flag1} with {flag2}",
        solution=f"Remove one of the flags: {flag1} or {flag2}",
    )


def print_history_error(detail: str) -> None:
    """Print error when the undo history cannot be read or written."""
    print_error(
        "Undo history is unavailable",
        reason=detail,
        solution="Move the history file named above aside to start a fresh history",
    )
