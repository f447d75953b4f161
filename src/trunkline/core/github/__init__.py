"""
GitHub integration via the `gh` CLI.
"""

from trunkline.core.github.client import ForgeClientError, GitHubClient
from trunkline.core.github.models import PullRequestInfo, RepoInfo

__all__ = ["ForgeClientError", "GitHubClient", "PullRequestInfo", "RepoInfo"]
