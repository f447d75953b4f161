"""
GitHub data models for trunkline.

Defines Pydantic models for repository info and pull requests.
"""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field


class RepoInfo(BaseModel):
    """
    GitHub repository information, parsed from a git remote URL.

    Example:
        >>> RepoInfo.from_remote_url("git@github.com:acme/widgets.git")
        RepoInfo(owner='acme', repo='widgets')
    """

    owner: str = Field(..., description="Repository owner (user or organization)")
    repo: str = Field(..., description="Repository name")

    @computed_field
    @property
    def full_name(self) -> str:
        """Full repository name (owner/repo)."""
        return f"{self.owner}/{self.repo}"

    @classmethod
    def from_remote_url(cls, remote_url: str) -> RepoInfo | None:
        """
        Parse repository info from an SSH or HTTPS GitHub remote URL.

        Returns:
            RepoInfo or None if the URL does not point at github.com
        """
        if not remote_url:
            return None

        match = re.match(r"git@github\.com:([^/]+)/([^/]+?)(?:\.git)?$", remote_url) or re.match(
            r"(?:https?|ssh)://(?:git@)?github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$", remote_url
        )
        if match:
            return cls(owner=match.group(1), repo=match.group(2))
        return None


class PullRequestInfo(BaseModel):
    """
    A pull request as reported by `gh pr list --json`.

    `gh` reports state in upper case (OPEN, CLOSED, MERGED) and a null
    `mergedAt` for unmerged pull requests.
    """

    model_config = ConfigDict(populate_by_name=True)

    number: int = Field(..., description="Pull request number")
    state: str = Field(default="OPEN", description="OPEN, CLOSED or MERGED")
    head_ref: str = Field(default="", alias="headRefName", description="Source branch name")
    merged_at: datetime | None = Field(default=None, alias="mergedAt")

    @property
    def merged(self) -> bool:
        return self.merged_at is not None or self.state.upper() == "MERGED"

    @property
    def is_closed_or_merged(self) -> bool:
        """Whether the pull request no longer keeps its branch alive."""
        return self.merged or self.state.upper() == "CLOSED"
