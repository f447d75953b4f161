"""
Pytest configuration and shared fixtures.

Provides an in-memory git backend that records every call, real temporary
git repositories (a working clone with a bare `origin`), and isolation of
trunkline configuration from the developer's environment.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from trunkline.core.config import clear_cache
from trunkline.core.git import GitError

SHA_TRUNK = "a" * 40
SHA_FEATURE = "b" * 40
SHA_REBASED = "c" * 40
SHA_PULLED = "d" * 40

# Calls that change repository state; everything else is a query
MUTATING_CALLS = {
    "checkout",
    "create_branch",
    "delete_branch",
    "delete_remote_branch",
    "fetch_all",
    "pull_ff_only",
    "push",
    "merge",
    "merge_abort",
    "merge_continue",
    "rebase_onto",
    "rebase_abort",
    "rebase_continue",
    "stash_push",
    "stash_pop",
    "reset_soft",
    "run",
    "run_interactive",
}


# ==============================================================================
# In-memory git backend
# ==============================================================================


class FakeGitBackend:
    """
    GitBackend double holding repository state in memory.

    Every call is appended to `calls` as `(name, args)`. Setting
    `failures[name]` to a GitError makes that method raise it.
    """

    def __init__(
        self,
        *,
        branch: str = "feature",
        trunk: str = "main",
        refs: dict[str, str] | None = None,
        clean: bool = True,
    ) -> None:
        self.calls: list[tuple[str, tuple]] = []
        self.failures: dict[str, GitError] = {}

        self.repo = True
        # Relative to the repository root the history is stored under
        self.common_dir = Path(".git")
        self.detached = False
        self.clean = clean
        self.branch = branch
        self.default = trunk
        self.refs: dict[str, str] = (
            dict(refs) if refs is not None else {trunk: SHA_TRUNK, branch: SHA_FEATURE}
        )
        # Every commit the fake repository contains
        self.objects: set[str] = set(self.refs.values())
        self.merging = False
        self.rebasing = False
        self.conflicted: list[str] = []

        # Sync behaviour
        self.ancestors: set[tuple[str, str]] = set()
        self.pull_to: dict[str, str] = {}
        self.rebase_result = SHA_REBASED
        self.rebase_conflict = False

        self.stashes: list[str] = []

        # Clean workflow data
        self.branches: list[str] = list(self.refs)
        self.remote_branches: list[str] = []
        self.merged: list[str] = []

    # -- bookkeeping -----------------------------------------------------

    def _call(self, name: str, *args: object) -> None:
        self.calls.append((name, args))
        if name in self.failures:
            raise self.failures[name]

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def mutations(self) -> list[str]:
        return [name for name in self.names() if name in MUTATING_CALLS]

    def count(self, name: str) -> int:
        return self.names().count(name)

    def args_of(self, name: str) -> list[tuple]:
        return [args for call, args in self.calls if call == name]

    # -- repository state ------------------------------------------------

    def is_repo(self) -> bool:
        self._call("is_repo")
        return self.repo

    def is_clean(self) -> bool:
        self._call("is_clean")
        return self.clean

    def current_branch(self) -> str:
        self._call("current_branch")
        return "HEAD" if self.detached else self.branch

    def default_branch(self) -> str:
        self._call("default_branch")
        return self.default

    def is_merging(self) -> bool:
        self._call("is_merging")
        return self.merging

    def is_rebasing(self) -> bool:
        self._call("is_rebasing")
        return self.rebasing

    def list_conflicted_files(self) -> list[str]:
        self._call("list_conflicted_files")
        return list(self.conflicted)

    def git_common_dir(self) -> Path:
        self._call("git_common_dir")
        return self.common_dir

    def resolve_ref(self, ref: str) -> str:
        self._call("resolve_ref", ref)
        if ref == "HEAD":
            return self.refs[self.branch]
        if ref in self.refs:
            return self.refs[ref]
        if ref in self.objects:
            return ref
        raise GitError(f"Cannot resolve ref '{ref}'", command=["git", "rev-parse", ref])

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        self._call("is_ancestor", ancestor, descendant)
        return (ancestor, descendant) in self.ancestors

    # -- branches --------------------------------------------------------

    def checkout(self, name: str) -> None:
        self._call("checkout", name)
        if name not in self.refs:
            raise GitError(f"pathspec '{name}' did not match", stderr="error: pathspec")
        self.branch = name

    def create_branch(self, name: str) -> None:
        self._call("create_branch", name)
        self.refs[name] = self.refs[self.branch]

    def list_branches(self) -> list[str]:
        self._call("list_branches")
        return list(self.branches)

    def list_remote_branches(self, remote: str = "origin") -> list[str]:
        self._call("list_remote_branches", remote)
        return list(self.remote_branches)

    def merged_branches(self, base: str) -> list[str]:
        self._call("merged_branches", base)
        return list(self.merged)

    def delete_branch(self, name: str) -> None:
        self._call("delete_branch", name)

    def delete_remote_branch(self, name: str, remote: str = "origin") -> None:
        self._call("delete_remote_branch", name, remote)

    # -- remote traffic --------------------------------------------------

    def fetch_all(self) -> None:
        self._call("fetch_all")

    def pull_ff_only(self) -> None:
        self._call("pull_ff_only")
        if self.branch in self.pull_to:
            self.refs[self.branch] = self.pull_to[self.branch]
            self.objects.add(self.refs[self.branch])

    def push(
        self,
        branch: str,
        remote: str = "origin",
        *,
        force_with_lease: bool = False,
        set_upstream: bool = False,
    ) -> None:
        self._call("push", branch, remote, force_with_lease, set_upstream)

    # -- merge and rebase ------------------------------------------------

    def merge(self, ref: str) -> None:
        self._call("merge", ref)

    def merge_abort(self) -> None:
        self._call("merge_abort")
        self.merging = False
        self.conflicted = []

    def merge_continue(self) -> str:
        self._call("merge_continue")
        self.merging = False
        self.conflicted = []
        return ""

    def rebase_onto(self, new_base: str, upstream: str, branch: str) -> None:
        self._call("rebase_onto", new_base, upstream, branch)
        if self.rebase_conflict:
            self.rebasing = True
            self.conflicted = ["app.py"]
            raise GitError(f"Git command failed: git rebase --onto {new_base} {upstream} {branch}")
        self.refs[branch] = self.rebase_result
        self.objects.add(self.rebase_result)

    def rebase_abort(self) -> None:
        self._call("rebase_abort")
        self.rebasing = False
        self.conflicted = []

    def rebase_continue(self) -> str:
        self._call("rebase_continue")
        self.rebasing = False
        self.conflicted = []
        self.refs[self.branch] = self.rebase_result
        self.objects.add(self.rebase_result)
        return ""

    # -- stash -----------------------------------------------------------

    def stash_push(self, label: str) -> None:
        self._call("stash_push", label)
        self.stashes.insert(0, label)
        self.clean = True

    def stash_pop(self, ref: str | None = None) -> None:
        self._call("stash_pop", ref)
        if not self.stashes:
            raise GitError("Git command failed: git stash pop", stderr="No stash entries found.")
        index = int(ref[len("stash@{"):-1]) if ref else 0
        self.stashes.pop(index)
        self.clean = False

    def stash_list(self) -> list[str]:
        self._call("stash_list")
        return [
            f"stash@{{{i}}}: On {self.branch}: {label}" for i, label in enumerate(self.stashes)
        ]

    # -- history rewriting -----------------------------------------------

    def reset_soft(self, ref: str) -> None:
        self._call("reset_soft", ref)

    # -- escape hatches --------------------------------------------------

    def run(self, *args: str) -> str:
        self._call("run", *args)
        return ""

    def run_interactive(self, *args: str) -> None:
        self._call("run_interactive", *args)


@pytest.fixture
def fake_git() -> FakeGitBackend:
    """Provide a fake backend on branch `feature` with trunk `main`."""
    return FakeGitBackend()


# ==============================================================================
# Environment isolation
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Keep user config and TRUNKLINE_* variables out of every test."""
    for name in (
        "TRUNKLINE_TRUNK",
        "TRUNKLINE_FALLBACK_TRUNK",
        "TRUNKLINE_REMOTE",
        "TRUNKLINE_NO_PUSH",
        "TRUNKLINE_UNDO_MAX_SIZE",
        "TRUNKLINE_CLEAN_WORKERS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path_factory.mktemp("xdg")))
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Real git repositories
# ==============================================================================


def git(repo: Path, *args: str) -> str:
    """Run git in `repo`, failing the test on error."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def commit_file(repo: Path, name: str, content: str, message: str | None = None) -> str:
    """Write, stage and commit a file; return the new HEAD."""
    (repo / name).write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-m", message or f"Update {name}")
    return git(repo, "rev-parse", "HEAD")


def clone(origin: Path, dest: Path) -> Path:
    """Clone `origin` into `dest` with a committer identity configured."""
    subprocess.run(
        ["git", "clone", str(origin), str(dest)],
        capture_output=True,
        check=True,
    )
    git(dest, "config", "user.email", "test@example.com")
    git(dest, "config", "user.name", "Test User")
    git(dest, "config", "commit.gpgsign", "false")
    return dest


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a standalone git repository with one commit on `main`."""
    repo = tmp_path / "repo"
    repo.mkdir()
    subprocess.run(["git", "init", "-b", "main"], cwd=repo, capture_output=True, check=True)
    git(repo, "config", "user.email", "test@example.com")
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "commit.gpgsign", "false")
    commit_file(repo, "README.md", "# Test Repo\n", "Initial commit")
    return repo


@pytest.fixture
def origin_and_clone(tmp_path: Path) -> tuple[Path, Path]:
    """
    Create a bare `origin` with one commit on `main` and a working clone.

    Returns:
        (origin, work) paths
    """
    origin = tmp_path / "origin.git"
    subprocess.run(
        ["git", "init", "--bare", "-b", "main", str(origin)],
        capture_output=True,
        check=True,
    )

    seed = clone(origin, tmp_path / "seed")
    commit_file(seed, "README.md", "line one\nline two\n", "Initial commit")
    git(seed, "push", "-u", "origin", "main")

    work = clone(origin, tmp_path / "work")
    return origin, work
