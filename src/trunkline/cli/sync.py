"""
trunkline CLI - sync command.

Rebases the current branch onto an updated trunk, stashing local edits
around the operation and pushing the result.
"""

import typer
from rich.console import Console

from trunkline.cli.context import open_repository
from trunkline.cli.errors import ExitCode, print_error, print_incompatible_flags_error
from trunkline.core.sync import (
    SyncEngine,
    SyncError,
    SyncOutcome,
    SyncPreconditionError,
)
from trunkline.core.undo import UndoService

console = Console()


def main(
    abort: bool = typer.Option(
        False,
        "--abort",
        help="Abort the merge or rebase a previous sync stopped in",
    ),
    continue_: bool = typer.Option(
        False,
        "--continue",
        help="Finish a sync that stopped on conflicts, after resolving them",
    ),
    no_push: bool = typer.Option(
        False,
        "--no-push",
        help="Do not push the branch after rebasing it",
    ),
    trunk: str | None = typer.Option(
        None,
        "--trunk",
        "-t",
        help="Trunk branch to sync with (default: origin's default branch)",
    ),
) -> None:
    """
    Synchronize the current branch with trunk.

    Fetches, fast-forwards trunk, rebases the current branch onto it and
    pushes with --force-with-lease. Uncommitted changes are stashed and
    restored. When the rebase conflicts, the sync pauses: resolve the
    conflicts and run --continue, or give up with --abort.

    Examples:
        trunkline sync                 # Sync with origin's default branch
        trunkline sync --trunk develop # Sync with a specific trunk
        trunkline sync --no-push       # Rebase locally only
        trunkline sync --continue      # Finish after resolving conflicts
        trunkline sync --abort         # Give up on a paused sync
    """
    if abort and continue_:
        print_incompatible_flags_error("--abort", "--continue")
        raise typer.Exit(ExitCode.USER_ERROR)

    repo = open_repository()

    updates: dict[str, object] = {}
    if no_push:
        updates["push"] = False
    if trunk:
        updates["trunk_branch"] = trunk
    sync_config = repo.config.sync.model_copy(update=updates)

    undo = UndoService(repo.git, max_size=repo.config.undo.max_size)
    engine = SyncEngine(repo.git, undo, sync_config, repo.root)

    try:
        result = engine.sync(abort=abort, continue_=continue_)
    except SyncPreconditionError as e:
        print_error(str(e))
        raise typer.Exit(ExitCode.USER_ERROR)
    except SyncError as e:
        print_error(f"Sync failed at step {e.step}", reason=str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    if result.outcome == SyncOutcome.CONFLICTED:
        console.print(f"[yellow]⚠[/yellow]  {result.summary()}")
        console.print(result.message)
        if result.stashed:
            console.print(
                f"[dim]Your uncommitted changes are stashed as {result.stash_ref} "
                "and will be restored by --continue[/dim]"
            )
        raise typer.Exit(ExitCode.CONFLICT)

    if result.outcome == SyncOutcome.NO_OP:
        console.print(f"[blue]{result.summary()}[/blue]")
        return

    console.print(f"[green]✓[/green] {result.summary()}")
