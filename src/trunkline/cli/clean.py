"""
trunkline CLI - clean command.

Deletes branches that are merged into trunk or whose pull request was
closed or merged.
"""

import logging

import typer
from rich.console import Console

from trunkline.cli.context import open_repository
from trunkline.cli.errors import ExitCode, print_error
from trunkline.core.clean import (
    DeletionResult,
    delete_local_branches,
    delete_remote_branches,
    find_cleanable_branches,
)
from trunkline.core.git import GitError
from trunkline.core.github import ForgeClientError, GitHubClient
from trunkline.core.sync import resolve_trunk

logger = logging.getLogger(__name__)
console = Console()


def _report(results: list[DeletionResult]) -> int:
    failures = 0
    for result in results:
        if result.success:
            console.print(f"  [green]✓[/green] {result.branch}")
        else:
            failures += 1
            console.print(f"  [red]✗[/red] {result.branch}: {result.error}")
    return failures


def main(
    remote: bool = typer.Option(
        False,
        "--remote",
        "-r",
        help="Also delete the branches on the remote",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Delete without asking for confirmation",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Only list the branches that would be deleted",
    ),
) -> None:
    """
    Delete merged and closed branches.

    A branch is cleaned when it is fully merged into trunk or its GitHub
    pull request is closed or merged. The current branch and trunk are
    never deleted.

    Examples:
        trunkline clean --dry-run   # Show what would be deleted
        trunkline clean             # Delete local branches after confirming
        trunkline clean --remote -y # Also delete them on origin, no prompt
    """
    repo = open_repository()
    sync_config = repo.config.sync
    trunk = resolve_trunk(repo.git, sync_config)

    forge = None
    if repo.config.clean.use_forge:
        try:
            forge = GitHubClient.from_project_dir(repo.root, remote=sync_config.remote)
        except ForgeClientError as e:
            logger.info("Not consulting GitHub: %s", e)

    try:
        cleanable = find_cleanable_branches(repo.git, forge, trunk, remote=sync_config.remote)
    except GitError as e:
        print_error("Could not determine cleanable branches", reason=e.detail)
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    remote_branches = cleanable.remote_branches if remote else []
    if not cleanable.local_branches:
        console.print("[blue]No branches to clean[/blue]")
        return

    console.print(f"[bold]Branches merged into {trunk} or with closed pull requests:[/bold]")
    for branch in cleanable.local_branches:
        suffix = f" [dim](and {sync_config.remote}/{branch})[/dim]" if branch in remote_branches else ""
        console.print(f"  {branch}{suffix}")

    if dry_run:
        return

    total = len(cleanable.local_branches) + len(remote_branches)
    if not yes and not typer.confirm(f"Delete {total} branch(es)?"):
        console.print("[dim]Nothing deleted[/dim]")
        return

    console.print("Deleting local branches...")
    failures = _report(
        delete_local_branches(
            repo.git,
            cleanable.local_branches,
            max_workers=repo.config.clean.max_workers,
        )
    )

    if remote_branches:
        console.print(f"Deleting branches on {sync_config.remote}...")
        failures += _report(delete_remote_branches(repo.git, remote_branches, sync_config.remote))

    if failures:
        print_error(f"{failures} branch(es) could not be deleted")
        raise typer.Exit(ExitCode.GENERAL_ERROR)
