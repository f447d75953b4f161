"""
trunkline CLI - undo command.

Reverses the most recent recorded operations, or shows the undo history.
"""

import re
from datetime import datetime, timedelta, timezone
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from trunkline.cli.context import open_repository
from trunkline.cli.errors import ExitCode, print_error, print_history_error
from trunkline.core.git import GitError
from trunkline.core.undo import (
    HistoryError,
    Operation,
    OperationNotFoundError,
    UndoError,
    UndoSequenceError,
    UndoService,
)

console = Console()

_DURATION_PART = re.compile(r"(\d+)([smhdw])")
_DURATION_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


def parse_duration(value: str) -> timedelta:
    """
    Parse a compact duration such as "30m", "24h", "7d" or "1h30m".

    Raises:
        ValueError: If the value is not a duration.
    """
    text = value.strip().lower()
    parts = _DURATION_PART.findall(text)
    if not parts or "".join(n + u for n, u in parts) != text:
        raise ValueError(f"invalid duration: {value!r} (use e.g. 30m, 24h, 7d)")
    total = timedelta()
    for amount, unit in parts:
        total += timedelta(**{_DURATION_UNITS[unit]: int(amount)})
    return total


def _format_age(timestamp: datetime, now: datetime) -> str:
    seconds = int((now - timestamp).total_seconds())
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def render_history(operations: list[Operation]) -> Table:
    """Build the table shown by `trunkline undo --history`."""
    now = datetime.now(timezone.utc)
    table = Table(title="Undo History", show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("When")
    table.add_column("Category")
    table.add_column("Branch")
    table.add_column("Description")

    for op in operations:
        table.add_row(
            op.short_id,
            _format_age(op.timestamp, now),
            op.category,
            op.metadata.branch or "-",
            op.description,
        )
    return table


def main(
    count: int = typer.Argument(
        1,
        help="Number of operations to undo",
    ),
    op_id: str | None = typer.Option(
        None,
        "--id",
        help="Undo one specific operation by id (or unique id prefix)",
    ),
    history: bool = typer.Option(
        False,
        "--history",
        help="Show recorded operations instead of undoing",
    ),
    category: str | None = typer.Option(
        None,
        "--category",
        "-c",
        help="With --history, only show this category (commit, merge, rebase)",
    ),
    since: str | None = typer.Option(
        None,
        "--since",
        help="With --history, only show operations newer than this (e.g. 24h, 7d)",
    ),
) -> None:
    """
    Undo recent operations.

    Operations are undone most recent first. A failure stops the sequence;
    the operations already undone stay undone.

    Examples:
        trunkline undo                  # Undo the last operation
        trunkline undo 3                # Undo the last 3 operations
        trunkline undo --id 4c1d2e3f    # Undo one specific operation
        trunkline undo --history        # Show recorded operations
        trunkline undo --history --category rebase --since 24h
    """
    cutoff = None
    if since:
        try:
            cutoff = datetime.now(timezone.utc) - parse_duration(since)
        except ValueError as e:
            print_error(str(e))
            raise typer.Exit(ExitCode.USER_ERROR)

    repo = open_repository()
    undo = UndoService(repo.git, max_size=repo.config.undo.max_size)
    try:
        undo.load_history(repo.root)
    except HistoryError as e:
        print_history_error(str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    if history:
        operations = undo.history.filter(category=category, since=cutoff)
        if not operations:
            console.print("[blue]No operations recorded[/blue]")
            return
        console.print(render_history(operations))
        return

    try:
        if op_id:
            undone = [undo.undo_operation(op_id)]
        else:
            undone = undo.undo_last(count)
    except OperationNotFoundError as e:
        print_error(str(e), solution="trunkline undo --history  # to see recorded operations")
        raise typer.Exit(ExitCode.USER_ERROR)
    except UndoSequenceError as e:
        # Operations before the failing one were undone; keep that in the history
        _save(undo, repo.root)
        print_error(
            str(e),
            reason=f"{e.position - 1} operation(s) were undone before the failure",
        )
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except GitError as e:
        print_error("Undo failed", reason=e.detail)
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except UndoError as e:
        exit_code = ExitCode.GENERAL_ERROR if op_id else ExitCode.USER_ERROR
        print_error(str(e))
        raise typer.Exit(exit_code)

    _save(undo, repo.root)
    for op in undone:
        console.print(f"[green]✓[/green] Undid {op.type} {op.short_id}: {op.description}")


def _save(undo: UndoService, root: Path) -> None:
    try:
        undo.save_history(root)
    except HistoryError as e:
        print_history_error(str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR)
