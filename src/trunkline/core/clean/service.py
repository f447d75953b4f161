"""
Branch clean workflow.

Finds branches that are merged into trunk (or whose pull request was
closed or merged) and deletes them locally and on the remote.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from trunkline.core.clean.models import CleanableBranches, DeletionResult
from trunkline.core.git import GitBackend, GitError
from trunkline.core.github import ForgeClientError, GitHubClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


def find_cleanable_branches(
    backend: GitBackend,
    forge: GitHubClient | None,
    trunk: str,
    remote: str = "origin",
) -> CleanableBranches:
    """
    Determine which branches can be deleted.

    A branch qualifies when it is fully merged into `trunk` or its pull
    request is closed or merged. The current branch and trunk never qualify.
    Forge failures are logged and the result falls back to git data alone.

    Raises:
        GitError: If fetching or listing branches fails.
    """
    backend.fetch_all()
    current = backend.current_branch()
    branches = backend.list_branches()
    merged = set(backend.merged_branches(trunk))

    closed_pr_heads: set[str] = set()
    if forge is not None:
        try:
            closed_pr_heads = {
                pr.head_ref for pr in forge.list_pull_requests(state="all") if pr.is_closed_or_merged
            }
        except ForgeClientError as e:
            logger.warning("Could not list pull requests, using git data only: %s", e)

    try:
        on_remote = set(backend.list_remote_branches(remote))
    except GitError as e:
        logger.warning("Could not list remote branches: %s", e.detail)
        on_remote = set()

    result = CleanableBranches()
    for branch in branches:
        if not branch or branch in (trunk, current):
            continue
        if branch in merged or branch in closed_pr_heads:
            result.local_branches.append(branch)
            if branch in on_remote:
                result.remote_branches.append(branch)
    return result


def _delete_local(backend: GitBackend, branch: str) -> DeletionResult:
    try:
        backend.delete_branch(branch)
    except GitError as e:
        return DeletionResult(branch=branch, error=e.detail)
    logger.debug("Deleted local branch %s", branch)
    return DeletionResult(branch=branch)


def delete_local_branches(
    backend: GitBackend,
    branches: list[str],
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> list[DeletionResult]:
    """
    Delete local branches in parallel.

    Returns:
        One DeletionResult per branch, in input order.
    """
    if not branches:
        return []
    workers = max(1, min(max_workers, len(branches)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(lambda branch: _delete_local(backend, branch), branches))


def delete_remote_branches(
    backend: GitBackend,
    branches: list[str],
    remote: str = "origin",
) -> list[DeletionResult]:
    """
    Delete branches on the remote, one at a time.

    A branch that is already gone from the remote counts as deleted.
    """
    results = []
    for branch in branches:
        error = None
        try:
            backend.delete_remote_branch(branch, remote)
        except GitError as e:
            if e.mentions("remote ref does not exist"):
                logger.debug("%s/%s was already deleted", remote, branch)
            else:
                error = e.detail
        results.append(DeletionResult(branch=f"{remote}/{branch}", error=error))
    return results
