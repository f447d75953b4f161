"""
Repository root discovery utilities for trunkline.

This module provides functions for discovering the repository a command
operates on by searching for marker files like .git or .trunkline.json.
"""

from pathlib import Path

# Markers that indicate a repository root, in order of priority
PROJECT_ROOT_MARKERS = [
    ".trunkline.json",  # Project configuration file
    ".git",  # Git repository (directory, or file for worktrees)
]


def find_project_root(start: Path | None = None) -> Path | None:
    """
    Find the repository root directory by searching upward for marker files.

    Args:
        start: Directory to start searching from. Defaults to current working directory.

    Returns:
        Path to the repository root directory, or None if not found.

    Example:
        >>> find_project_root()  # From /project/src/module/
        PosixPath('/project')
    """
    if start is None:
        start = Path.cwd()

    current = start.resolve()
    while True:
        for marker in PROJECT_ROOT_MARKERS:
            if (current / marker).exists():
                return current
        if current == current.parent:
            return None
        current = current.parent


def get_project_root(start: Path | None = None) -> Path:
    """
    Get the repository root directory, raising an error if not found.

    Args:
        start: Directory to start searching from. Defaults to current working directory.

    Returns:
        Path to the repository root directory.

    Raises:
        FileNotFoundError: If no repository root can be found.
    """
    root = find_project_root(start)
    if root is None:
        searched = (start or Path.cwd()).resolve()
        raise FileNotFoundError(
            f"Could not find a git repository in {searched} or any parent directory"
        )
    return root
