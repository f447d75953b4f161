"""
GitBackend implementation that shells out to the `git` executable.

Commands run with the repository as working directory. Output is captured
so failures carry git's stderr, except for `run_interactive`, which attaches
the command to the terminal so long-running operations (the onto-rebase)
show their own progress.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from trunkline.core.git.errors import GitError

logger = logging.getLogger(__name__)

# Continuation commands must never stop to open an editor.
_NO_EDITOR_ENV = {"GIT_EDITOR": "true"}


class ShellGit:
    """
    Git backend using shell commands.

    Example:
        >>> git = ShellGit(Path("."))
        >>> git.current_branch()
        'feature/login'
        >>> git.resolve_ref("HEAD")
        '3f2c...'
    """

    DEFAULT_TIMEOUT = 60
    NETWORK_TIMEOUT = 300

    def __init__(self, project_dir: Path | None = None, remote: str = "origin") -> None:
        """
        Initialize the backend.

        Args:
            project_dir: Root directory of the git repository.
                        Defaults to current working directory.
            remote: Remote used to determine the default branch.
        """
        self.project_dir = (project_dir or Path.cwd()).resolve()
        self.remote = remote

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    def _run(
        self,
        args: list[str],
        *,
        timeout: int | None = DEFAULT_TIMEOUT,
        env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        cmd = ["git"] + args
        logger.debug("Running git command: %s", " ".join(cmd))

        try:
            return subprocess.run(
                cmd,
                cwd=self.project_dir,
                capture_output=True,
                text=True,
                timeout=timeout,
                env={**os.environ, **env} if env else None,
            )
        except subprocess.TimeoutExpired as e:
            raise GitError(f"Git command timed out: {' '.join(cmd)}", command=cmd) from e
        except FileNotFoundError as e:
            raise GitError("git not found in PATH", command=cmd) from e

    def _run_git(
        self,
        args: list[str],
        *,
        timeout: int | None = DEFAULT_TIMEOUT,
        env: dict[str, str] | None = None,
    ) -> str:
        """
        Run a git command and return its stdout (stripped).

        Raises:
            GitError: If the command exits non-zero.
        """
        result = self._run(args, timeout=timeout, env=env)
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            # Some commands (merge, rebase) report conflicts on stdout
            if not stderr:
                stderr = (result.stdout or "").strip()
            raise GitError(
                f"Git command failed: git {' '.join(args)}",
                command=["git"] + args,
                stderr=stderr,
            )
        return result.stdout.strip() if result.stdout else ""

    def _succeeds(self, args: list[str]) -> bool:
        return self._run(args).returncode == 0

    @staticmethod
    def _lines(output: str) -> list[str]:
        return [line.strip() for line in output.splitlines() if line.strip()]

    # ------------------------------------------------------------------
    # Repository state
    # ------------------------------------------------------------------

    def is_repo(self) -> bool:
        try:
            self._run_git(["rev-parse", "--git-dir"])
            return True
        except GitError:
            return False

    def is_clean(self) -> bool:
        return self._run_git(["status", "--porcelain"]) == ""

    def current_branch(self) -> str:
        return self._run_git(["rev-parse", "--abbrev-ref", "HEAD"])

    def default_branch(self) -> str:
        out = self._run_git(["symbolic-ref", "--short", f"refs/remotes/{self.remote}/HEAD"])
        # "origin/main" -> "main"
        prefix = f"{self.remote}/"
        branch = out[len(prefix):] if out.startswith(prefix) else out.rsplit("/", 1)[-1]
        if not branch:
            raise GitError(f"Could not determine default branch of {self.remote}")
        return branch

    def is_merging(self) -> bool:
        return self._succeeds(["rev-parse", "-q", "--verify", "MERGE_HEAD"])

    def is_rebasing(self) -> bool:
        for marker in ("rebase-merge", "rebase-apply"):
            path = self._run_git(["rev-parse", "--git-path", marker])
            if (self.project_dir / path).exists():
                return True
        return False

    def list_conflicted_files(self) -> list[str]:
        return self._lines(self._run_git(["diff", "--name-only", "--diff-filter=U"]))

    def git_common_dir(self) -> Path:
        # In a linked worktree `.git` is a file; the common dir is the main repository's
        out = self._run_git(["rev-parse", "--git-common-dir"])
        return (self.project_dir / out).resolve()

    # ------------------------------------------------------------------
    # Refs
    # ------------------------------------------------------------------

    def resolve_ref(self, ref: str) -> str:
        result = self._run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
        sha = (result.stdout or "").strip()
        if result.returncode != 0 or not sha:
            raise GitError(
                f"Cannot resolve ref '{ref}'",
                command=["git", "rev-parse", "--verify", ref],
                stderr=(result.stderr or "").strip(),
            )
        return sha

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        args = ["merge-base", "--is-ancestor", ancestor, descendant]
        result = self._run(args)
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise GitError(
            f"Git command failed: git {' '.join(args)}",
            command=["git"] + args,
            stderr=(result.stderr or "").strip(),
        )

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def checkout(self, name: str) -> None:
        self._run_git(["checkout", name])

    def create_branch(self, name: str) -> None:
        self._run_git(["branch", name])

    def list_branches(self) -> list[str]:
        return self._lines(self._run_git(["branch", "--list", "--format=%(refname:short)"]))

    def list_remote_branches(self, remote: str = "origin") -> list[str]:
        out = self._run_git(["branch", "-r", "--format=%(refname:short)"])
        prefix = f"{remote}/"
        branches = []
        for name in self._lines(out):
            if not name.startswith(prefix) or name == f"{remote}/HEAD":
                continue
            branches.append(name[len(prefix):])
        return branches

    def merged_branches(self, base: str) -> list[str]:
        return self._lines(
            self._run_git(["branch", "--merged", base, "--format=%(refname:short)"])
        )

    def delete_branch(self, name: str) -> None:
        try:
            self._run_git(["branch", "-d", name])
        except GitError as e:
            # Branches whose PR was closed without merging need a force delete
            if not e.mentions("not fully merged"):
                raise
            logger.debug("Branch %s is not fully merged, forcing delete", name)
            self._run_git(["branch", "-D", name])

    def delete_remote_branch(self, name: str, remote: str = "origin") -> None:
        self._run_git(["push", remote, "--delete", name], timeout=self.NETWORK_TIMEOUT)

    # ------------------------------------------------------------------
    # Remote traffic
    # ------------------------------------------------------------------

    def fetch_all(self) -> None:
        self._run_git(["fetch", "--all", "--prune"], timeout=self.NETWORK_TIMEOUT)

    def pull_ff_only(self) -> None:
        self._run_git(["pull", "--ff-only"], timeout=self.NETWORK_TIMEOUT)

    def push(
        self,
        branch: str,
        remote: str = "origin",
        *,
        force_with_lease: bool = False,
        set_upstream: bool = False,
    ) -> None:
        args = ["push"]
        if force_with_lease:
            args.append("--force-with-lease")
        if set_upstream:
            args.append("--set-upstream")
        args += [remote, branch]
        self._run_git(args, timeout=self.NETWORK_TIMEOUT)

    # ------------------------------------------------------------------
    # Merge and rebase
    # ------------------------------------------------------------------

    def merge(self, ref: str) -> None:
        self._run_git(["merge", "--no-edit", ref])

    def merge_abort(self) -> None:
        self._run_git(["merge", "--abort"])

    def merge_continue(self) -> str:
        return self._run_git(["merge", "--continue"], env=_NO_EDITOR_ENV)

    def rebase_onto(self, new_base: str, upstream: str, branch: str) -> None:
        self.run_interactive("rebase", "--onto", new_base, upstream, branch)

    def rebase_abort(self) -> None:
        self._run_git(["rebase", "--abort"])

    def rebase_continue(self) -> str:
        return self._run_git(["rebase", "--continue"], env=_NO_EDITOR_ENV)

    # ------------------------------------------------------------------
    # Stash
    # ------------------------------------------------------------------

    def stash_push(self, label: str) -> None:
        self._run_git(["stash", "push", "--include-untracked", "-m", label])

    def stash_pop(self, ref: str | None = None) -> None:
        args = ["stash", "pop"]
        if ref:
            args.append(ref)
        self._run_git(args)

    def stash_list(self) -> list[str]:
        return self._lines(self._run_git(["stash", "list"]))

    # ------------------------------------------------------------------
    # History rewriting
    # ------------------------------------------------------------------

    def reset_soft(self, ref: str) -> None:
        self._run_git(["reset", "--soft", ref])

    # ------------------------------------------------------------------
    # Escape hatches
    # ------------------------------------------------------------------

    def run(self, *args: str) -> str:
        return self._run_git(list(args))

    def run_interactive(self, *args: str) -> None:
        cmd = ["git", *args]
        logger.debug("Running interactive git command: %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, cwd=self.project_dir, check=False)
        except FileNotFoundError as e:
            raise GitError("git not found in PATH", command=cmd) from e
        if result.returncode != 0:
            raise GitError(
                f"Git command failed: {' '.join(cmd)} (exit {result.returncode})",
                command=cmd,
            )
