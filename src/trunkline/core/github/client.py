"""
GitHub CLI wrapper for trunkline.

Provides pull request lookups via the `gh` CLI tool.
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path

from pydantic import ValidationError

from trunkline.core.github.models import PullRequestInfo, RepoInfo

logger = logging.getLogger(__name__)

PR_FIELDS = "number,state,headRefName,mergedAt"


class ForgeClientError(Exception):
    """Error from GitHub client operations."""

    pass


class GitHubClient:
    """
    Client for GitHub operations via `gh` CLI.

    Requires `gh` to be installed and authenticated.

    Example:
        >>> client = GitHubClient.from_project_dir(Path.cwd())
        >>> [pr.head_ref for pr in client.list_pull_requests() if pr.is_closed_or_merged]
        ['feature/login', 'fix/typo']
    """

    def __init__(self, repo: RepoInfo, project_dir: Path | None = None) -> None:
        """
        Args:
            repo: Repository information
            project_dir: Directory `gh` runs in (defaults to cwd)
        """
        self.repo = repo
        self.project_dir = project_dir or Path.cwd()

    @classmethod
    def from_project_dir(cls, project_dir: Path | None = None, remote: str = "origin") -> GitHubClient:
        """
        Create a client from the project's git remote.

        Raises:
            ForgeClientError: If gh is unavailable or the remote is not on GitHub
        """
        if project_dir is None:
            project_dir = Path.cwd()

        if not cls.is_gh_available():
            raise ForgeClientError(
                "GitHub CLI (gh) is not installed or not authenticated.\n"
                "Install: https://cli.github.com/\n"
                "Authenticate: gh auth login"
            )

        remote_url = cls._get_remote_url(project_dir, remote)
        if not remote_url:
            raise ForgeClientError(f"No git remote '{remote}' found")

        repo = RepoInfo.from_remote_url(remote_url)
        if not repo:
            raise ForgeClientError(f"Remote URL is not a GitHub repository: {remote_url}")

        return cls(repo, project_dir)

    @staticmethod
    def is_gh_available() -> bool:
        """Check if GitHub CLI is installed and authenticated."""
        try:
            result = subprocess.run(
                ["gh", "auth", "status"],
                capture_output=True,
                text=True,
                check=False,
            )
            return result.returncode == 0
        except OSError:
            return False

    @staticmethod
    def _get_remote_url(project_dir: Path, remote: str) -> str | None:
        try:
            result = subprocess.run(
                ["git", "remote", "get-url", remote],
                cwd=project_dir,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError:
            return None
        if result.returncode == 0:
            return result.stdout.strip()
        return None

    def list_pull_requests(self, state: str = "all", limit: int = 200) -> list[PullRequestInfo]:
        """
        List pull requests of the repository.

        Args:
            state: open, closed, merged or all
            limit: Maximum number of pull requests to return

        Returns:
            List of PullRequestInfo

        Raises:
            ForgeClientError: If gh fails or returns unparseable output
        """
        cmd = [
            "gh", "pr", "list",
            "--repo", self.repo.full_name,
            "--state", state,
            "--limit", str(limit),
            "--json", PR_FIELDS,
        ]
        logger.debug("Running gh command: %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                cwd=self.project_dir,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise ForgeClientError(f"Failed to run gh command: {e}") from e

        if result.returncode != 0:
            error_msg = result.stderr.strip() or "Unknown error"
            raise ForgeClientError(f"Failed to list pull requests: {error_msg}")

        try:
            data = json.loads(result.stdout or "[]")
            return [PullRequestInfo.model_validate(item) for item in data]
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            raise ForgeClientError(f"Failed to parse gh output: {e}") from e
