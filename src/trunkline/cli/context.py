"""
Shared setup for commands that operate on a repository.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer
from pydantic import ValidationError

from trunkline.cli.errors import ExitCode, print_error, print_not_git_repo_error
from trunkline.core.config import TrunklineConfig, load_config
from trunkline.core.git import ShellGit
from trunkline.utils.project import find_project_root


@dataclass
class RepoContext:
    """Repository root, its configuration and a git backend bound to it."""

    root: Path
    config: TrunklineConfig
    git: ShellGit


def open_repository() -> RepoContext:
    """
    Locate the repository containing the cwd and load its configuration.

    Exits with USER_ERROR when there is no repository or the config is invalid.
    """
    root = find_project_root()
    if root is None:
        print_not_git_repo_error()
        raise typer.Exit(ExitCode.USER_ERROR)

    try:
        config = load_config(root)
    except ValidationError as e:
        print_error("Invalid trunkline configuration", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR)

    git = ShellGit(root, remote=config.sync.remote)
    if not git.is_repo():
        print_not_git_repo_error()
        raise typer.Exit(ExitCode.USER_ERROR)
    return RepoContext(root=root, config=config, git=git)
