"""
Git backend layer.

Exposes the GitBackend protocol the core depends on, the ShellGit
implementation, and helpers for scoped stash handling.

Example:
    >>> from trunkline.core.git import ShellGit
    >>> git = ShellGit(Path("."))
    >>> git.is_clean()
    True
"""

from trunkline.core.git.backend import GitBackend
from trunkline.core.git.errors import GitError
from trunkline.core.git.shell import ShellGit
from trunkline.core.git.stash import StashScope, find_stash, make_stash_label

__all__ = [
    "GitBackend",
    "GitError",
    "ShellGit",
    "StashScope",
    "find_stash",
    "make_stash_label",
]
