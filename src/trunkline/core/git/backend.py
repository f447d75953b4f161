"""
VCS backend protocol.

This module defines the GitBackend protocol that the synchronization engine,
the undo service and the clean workflow depend on. `ShellGit` is the
production implementation; tests substitute an in-memory fake.

Every method raises GitError when the underlying operation fails.
"""

from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class GitBackend(Protocol):
    """
    Protocol for git backend implementations.

    Methods are blocking and are never invoked concurrently against the
    same working tree, except branch deletion in the clean workflow.
    """

    # Repository state

    def is_repo(self) -> bool:
        """Return True if the working directory is inside a git repository."""
        ...

    def is_clean(self) -> bool:
        """Return True if there are no uncommitted or untracked changes."""
        ...

    def current_branch(self) -> str:
        """Return the checked-out branch name ("HEAD" when detached)."""
        ...

    def default_branch(self) -> str:
        """Return the remote's default branch name (from origin/HEAD)."""
        ...

    def is_merging(self) -> bool:
        """Return True if a merge is in progress."""
        ...

    def is_rebasing(self) -> bool:
        """Return True if a rebase is in progress."""
        ...

    def list_conflicted_files(self) -> list[str]:
        """Return paths with unresolved conflicts."""
        ...

    def git_common_dir(self) -> Path:
        """Return the git control directory shared by all worktrees (absolute or repo-relative)."""
        ...

    # Refs

    def resolve_ref(self, ref: str) -> str:
        """Resolve a ref (branch, tag, HEAD~1, ...) to a full commit hash."""
        ...

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """Return True if `ancestor` is reachable from `descendant`."""
        ...

    # Branches

    def checkout(self, name: str) -> None:
        """Switch to an existing branch."""
        ...

    def create_branch(self, name: str) -> None:
        """Create a branch at HEAD without switching to it."""
        ...

    def list_branches(self) -> list[str]:
        """Return local branch names."""
        ...

    def list_remote_branches(self, remote: str = "origin") -> list[str]:
        """Return branch names on `remote`, without the remote prefix."""
        ...

    def merged_branches(self, base: str) -> list[str]:
        """Return local branches fully merged into `base`."""
        ...

    def delete_branch(self, name: str) -> None:
        """Delete a local branch, forcing when it is not fully merged."""
        ...

    def delete_remote_branch(self, name: str, remote: str = "origin") -> None:
        """Delete a branch on `remote`."""
        ...

    # Remote traffic

    def fetch_all(self) -> None:
        """Fetch every remote and prune deleted remote branches."""
        ...

    def pull_ff_only(self) -> None:
        """Fast-forward the current branch from its upstream; never merge."""
        ...

    def push(
        self,
        branch: str,
        remote: str = "origin",
        *,
        force_with_lease: bool = False,
        set_upstream: bool = False,
    ) -> None:
        """Push `branch` to `remote`."""
        ...

    # Merge and rebase

    def merge(self, ref: str) -> None:
        """Merge `ref` into the current branch."""
        ...

    def merge_abort(self) -> None:
        """Abort an in-progress merge."""
        ...

    def merge_continue(self) -> str:
        """Conclude an in-progress merge whose conflicts are resolved."""
        ...

    def rebase_onto(self, new_base: str, upstream: str, branch: str) -> None:
        """Replay `upstream..branch` on top of `new_base`."""
        ...

    def rebase_abort(self) -> None:
        """Abort an in-progress rebase."""
        ...

    def rebase_continue(self) -> str:
        """Resume an in-progress rebase whose conflicts are resolved."""
        ...

    # Stash

    def stash_push(self, label: str) -> None:
        """Stash tracked and untracked changes under `label`."""
        ...

    def stash_pop(self, ref: str | None = None) -> None:
        """Apply and drop a stash entry (the newest when `ref` is None)."""
        ...

    def stash_list(self) -> list[str]:
        """Return stash entries, newest first, as "stash@{n}: message" lines."""
        ...

    # History rewriting

    def reset_soft(self, ref: str) -> None:
        """Move the current branch to `ref`, keeping changes staged."""
        ...

    # Escape hatches

    def run(self, *args: str) -> str:
        """Run an arbitrary git subcommand and return its stdout."""
        ...

    def run_interactive(self, *args: str) -> None:
        """Run a git subcommand attached to the terminal."""
        ...
