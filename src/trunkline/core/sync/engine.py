"""
Synchronization engine.

Keeps a feature branch current with trunk:

    check -> snapshot -> stash -> update trunk -> rebase -> unstash -> push -> record

Local edits are held in a StashScope for the whole protocol so they are
restored on every exit path except a rebase conflict, where they stay
stashed until the user finishes with `trunkline sync --continue`.
Conflicts are not errors: they end the sync with a `conflicted` result.
Every other backend failure is raised as a SyncError naming the step.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from datetime import datetime, timezone
from pathlib import Path

from trunkline.core.config.models import SyncConfig
from trunkline.core.git import GitBackend, GitError, StashScope, find_stash, make_stash_label
from trunkline.core.sync.models import SyncOutcome, SyncResult
from trunkline.core.undo import (
    HistoryError,
    Operation,
    OperationCategory,
    OperationMetadata,
    UndoError,
    UndoService,
)

logger = logging.getLogger(__name__)

SYNC_COMMAND = "trunkline sync"


class SyncError(Exception):
    """A sync step failed."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(message)
        self.step = step


class SyncPreconditionError(SyncError):
    """The repository is not in a state a sync can start from."""

    def __init__(self, message: str) -> None:
        super().__init__("check", message)


def resolve_trunk(backend: GitBackend, config: SyncConfig) -> str:
    """
    Determine the trunk branch.

    Uses the configured trunk, then the remote's default branch, then the
    configured fallback.
    """
    if config.trunk_branch:
        return config.trunk_branch
    try:
        branch = backend.default_branch()
    except GitError as e:
        logger.debug("Default branch unavailable (%s), using %s", e.detail, config.fallback_trunk)
        return config.fallback_trunk
    return branch or config.fallback_trunk


def conflict_message(files: list[str]) -> str:
    """Build the actionable message shown when a sync pauses on conflicts."""
    lines = ["Conflicts must be resolved before the sync can finish."]
    if files:
        lines.append("Conflicted files:")
        lines.extend(f"  {path}" for path in files)
    lines.append(
        "Resolve them and stage the result, then run 'trunkline sync --continue', "
        "or run 'trunkline sync --abort' to give up."
    )
    return "\n".join(lines)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SyncEngine:
    """
    Rebase the current branch onto an updated trunk.

    Example:
        >>> git = ShellGit(repo)
        >>> engine = SyncEngine(git, UndoService(git), SyncConfig(), repo)
        >>> result = engine.sync()
        >>> result.summary()
        'feature/login synchronized with main, pushed'
    """

    def __init__(
        self,
        backend: GitBackend,
        undo_service: UndoService,
        config: SyncConfig | None = None,
        project_dir: Path | None = None,
    ) -> None:
        """
        Args:
            backend: Git backend to drive
            undo_service: Service that records the sync in the undo history
            config: Sync settings (trunk, remote, push)
            project_dir: Repository root the undo history is stored under
        """
        self.git = backend
        self.undo = undo_service
        self.config = config or SyncConfig()
        self.project_dir = project_dir or Path.cwd()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def sync(self, abort: bool = False, continue_: bool = False) -> SyncResult:
        """
        Run one sync, or abort/continue a paused one.

        Args:
            abort: Abort the in-progress merge or rebase instead of syncing
            continue_: Conclude the in-progress merge or rebase, then finish the sync

        Returns:
            SyncResult describing the terminal state.

        Raises:
            SyncPreconditionError: Not a repository, detached HEAD, nothing to
                abort or continue, or an operation already in progress.
            SyncError: A backend call failed; `step` names where.
        """
        if abort and continue_:
            raise SyncPreconditionError("--abort and --continue cannot be combined")

        started = _now()
        if not self.git.is_repo():
            raise SyncPreconditionError(f"Not a git repository: {self.project_dir}")

        with self._step("check"):
            merging = self.git.is_merging()
            rebasing = self.git.is_rebasing()

        if abort:
            return self._abort(merging, rebasing, started)

        self._load_history()

        if continue_:
            return self._continue(merging, rebasing, started)

        if merging or rebasing:
            kind = "merge" if merging else "rebase"
            raise SyncPreconditionError(
                f"A {kind} is in progress. Run 'trunkline sync --continue' "
                "to finish it or 'trunkline sync --abort' to cancel it"
            )

        with self._step("check"):
            branch = self.git.current_branch()
        if branch == "HEAD":
            raise SyncPreconditionError("HEAD is detached; check out a branch before syncing")

        trunk = resolve_trunk(self.git, self.config)
        return self._run(branch, trunk, started)

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    def _run(self, branch: str, trunk: str, started: datetime) -> SyncResult:
        with self._step("snapshot"):
            original_ref = self.git.resolve_ref("HEAD")
            dirty = not self.git.is_clean()

        label = make_stash_label(self.config.stash_prefix) if dirty else ""
        metadata = OperationMetadata(
            branch=branch,
            stashed=dirty,
            stash_ref=label,
            extra={"trunk": trunk},
        )
        result = SyncResult(
            outcome=SyncOutcome.SYNCHRONIZED,
            branch=branch,
            trunk=trunk,
            stashed=dirty,
            stash_ref=label,
            original_ref=original_ref,
            started_at=started,
        )
        logger.info("Syncing %s with %s (dirty=%s)", branch, trunk, dirty)

        with ExitStack() as stack:
            stash: StashScope | None = None
            if dirty:
                with self._step("stash"):
                    stash = stack.enter_context(StashScope(self.git, label))

            if branch == trunk:
                return self._fast_forward_trunk(result, stash, metadata)

            trunk_before = self._update_trunk(branch, trunk, stash)

            try:
                self.git.checkout(branch)
            except GitError as e:
                self._leave_trunk(branch, stash)
                raise SyncError("rebase", f"Switching back to {branch} failed: {e.detail}") from e

            with self._step("rebase"):
                trunk_tip = self.git.resolve_ref(trunk)
                feature_tip = self.git.resolve_ref("HEAD")

            if feature_tip == trunk_tip:
                self._unstash(stash)
                result.outcome = SyncOutcome.NO_OP
                result.completed_at = _now()
                return result

            with self._step("rebase"):
                up_to_date = self.git.is_ancestor(trunk_tip, feature_tip)

            if up_to_date:
                logger.debug("%s already contains %s, skipping rebase", branch, trunk)
            else:
                try:
                    self.git.rebase_onto(trunk, trunk_before, branch)
                except GitError as e:
                    if not self._in_conflict(e):
                        raise SyncError("rebase", f"Rebase onto {trunk} failed: {e.detail}") from e
                    if stash is not None:
                        stash.retain()
                    return self._pause(result, metadata)

            self._unstash(stash)

        self._push_and_record(result, metadata)
        return result

    def _fast_forward_trunk(
        self,
        result: SyncResult,
        stash: StashScope | None,
        metadata: OperationMetadata,
    ) -> SyncResult:
        """Sync run on trunk itself: fast-forward only, never push."""
        with self._step("update-trunk"):
            self.git.fetch_all()
            self.git.pull_ff_only()
            tip = self.git.resolve_ref("HEAD")
        self._unstash(stash)

        if tip == result.original_ref:
            result.outcome = SyncOutcome.NO_OP
        else:
            op = self._record(
                "sync",
                f"Fast-forwarded {result.branch}",
                metadata,
                ref=result.original_ref,
            )
            result.operation_id = op.id
        result.completed_at = _now()
        return result

    def _update_trunk(self, branch: str, trunk: str, stash: StashScope | None) -> str:
        """
        Fetch, then fast-forward trunk.

        Returns:
            The trunk tip before the pull, the upstream for the onto-rebase.
        """
        switched = False
        try:
            self.git.fetch_all()
            self.git.checkout(trunk)
            switched = True
            trunk_before = self.git.resolve_ref("HEAD")
            self.git.pull_ff_only()
        except GitError as e:
            if switched:
                self._leave_trunk(branch, stash)
            raise SyncError("update-trunk", f"Updating {trunk} failed: {e.detail}") from e
        return trunk_before

    def _leave_trunk(self, branch: str, stash: StashScope | None) -> None:
        """
        Switch back to `branch` after a failure while trunk is checked out.

        When that fails too, the stash is kept so the feature branch's edits
        are never popped onto trunk.
        """
        try:
            self.git.checkout(branch)
        except GitError as e:
            logger.error("Could not switch back to %s: %s", branch, e.detail)
            if stash is not None:
                logger.warning("Local changes stay stashed as %s", stash.label)
                stash.retain()

    def _unstash(self, stash: StashScope | None) -> None:
        if stash is None:
            return
        try:
            stash.release()
        except GitError as e:
            raise SyncError(
                "unstash",
                f"Restoring your stashed changes conflicted: {e.detail}. "
                "Resolve the conflicts, then drop the stash with 'git stash drop'",
            ) from e

    def _pause(self, result: SyncResult, metadata: OperationMetadata) -> SyncResult:
        """Record the paused sync and report the conflict."""
        with self._step("rebase"):
            conflicts = self.git.list_conflicted_files()
        metadata.files = conflicts

        op = self._record(
            "sync_paused",
            f"Sync of {result.branch} onto {result.trunk} paused on conflicts",
            metadata,
            ref=result.original_ref,
        )
        logger.info("Sync paused with %d conflicted files", len(conflicts))

        result.outcome = SyncOutcome.CONFLICTED
        result.conflicts = conflicts
        result.message = conflict_message(conflicts)
        result.operation_id = op.id
        result.completed_at = _now()
        return result

    def _push_and_record(self, result: SyncResult, metadata: OperationMetadata) -> None:
        push_error: GitError | None = None
        if self.config.push and result.branch != result.trunk:
            try:
                self.git.push(
                    result.branch,
                    self.config.remote,
                    force_with_lease=True,
                    set_upstream=True,
                )
                result.pushed = True
            except GitError as e:
                push_error = e

        # The rebase already happened, so it is recorded even when the push failed
        op = self._record(
            "sync",
            f"Synchronized {result.branch} with {result.trunk}",
            metadata,
            ref=result.original_ref,
        )
        result.operation_id = op.id
        result.completed_at = _now()

        if push_error is not None:
            raise SyncError(
                "push",
                f"Pushing {result.branch} to {self.config.remote} failed: {push_error.detail}",
            ) from push_error

    # ------------------------------------------------------------------
    # Abort and continue
    # ------------------------------------------------------------------

    def _abort(self, merging: bool, rebasing: bool, started: datetime) -> SyncResult:
        if merging:
            with self._step("abort"):
                self.git.merge_abort()
            message = "Aborted the in-progress merge"
        elif rebasing:
            with self._step("abort"):
                self.git.rebase_abort()
            message = "Aborted the in-progress rebase"
        else:
            raise SyncPreconditionError("Nothing to abort: no merge or rebase is in progress")

        result = SyncResult(outcome=SyncOutcome.ABORTED, started_at=started)
        paused = self._paused_operation()
        if paused is not None and paused.metadata.stashed:
            message += (
                f". Your local changes are still stashed as {paused.metadata.stash_ref};"
                " restore them with 'git stash pop'"
            )
            result.stashed = True
            result.stash_ref = paused.metadata.stash_ref

        result.message = message
        result.completed_at = _now()
        return result

    def _continue(self, merging: bool, rebasing: bool, started: datetime) -> SyncResult:
        if not (merging or rebasing):
            raise SyncPreconditionError("Nothing to continue: no merge or rebase is in progress")

        try:
            if merging:
                self.git.merge_continue()
            else:
                self.git.rebase_continue()
        except GitError as e:
            if not self._in_conflict(e):
                raise SyncError("continue", f"Continuing failed: {e.detail}") from e
            with self._step("continue"):
                conflicts = self.git.list_conflicted_files()
            return SyncResult(
                outcome=SyncOutcome.CONFLICTED,
                conflicts=conflicts,
                message=conflict_message(conflicts),
                started_at=started,
                completed_at=_now(),
            )

        with self._step("continue"):
            branch = self.git.current_branch()

        paused = self._paused_operation()
        if paused is not None and paused.metadata.branch != branch:
            logger.debug("Latest paused sync was for %s, not %s", paused.metadata.branch, branch)
            paused = None

        if paused is not None:
            metadata = paused.metadata.model_copy(deep=True)
            trunk = metadata.extra.get("trunk") or resolve_trunk(self.git, self.config)
            original_ref = paused.ref
        else:
            trunk = resolve_trunk(self.git, self.config)
            metadata = OperationMetadata(branch=branch, extra={"trunk": trunk})
            original_ref = None

        result = SyncResult(
            outcome=SyncOutcome.SYNCHRONIZED,
            branch=branch,
            trunk=trunk,
            stashed=metadata.stashed,
            stash_ref=metadata.stash_ref,
            original_ref=original_ref,
            started_at=started,
        )

        if metadata.stashed and metadata.stash_ref:
            self._pop_paused_stash(metadata.stash_ref)

        if paused is not None:
            self.undo.history.remove(paused.id)
        metadata.files = []
        self._push_and_record(result, metadata)
        return result

    def _pop_paused_stash(self, label: str) -> None:
        with self._step("unstash"):
            ref = find_stash(self.git, label)
        if ref is None:
            logger.warning("Stash %s is no longer present, nothing to restore", label)
            return
        try:
            self.git.stash_pop(ref)
        except GitError as e:
            raise SyncError(
                "unstash",
                f"Restoring your stashed changes conflicted: {e.detail}. "
                "Resolve the conflicts, then drop the stash with 'git stash drop'",
            ) from e

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _step(self, step: str) -> Iterator[None]:
        """Translate GitError raised inside the block into SyncError(step)."""
        try:
            yield
        except GitError as e:
            raise SyncError(step, f"{step} failed: {e.detail}") from e

    def _in_conflict(self, error: GitError) -> bool:
        """Decide whether a failed rebase/merge stopped on conflicts."""
        try:
            if self.git.is_rebasing() or self.git.is_merging():
                return True
            if self.git.list_conflicted_files():
                return True
        except GitError as e:
            logger.debug("Could not inspect repository state: %s", e.detail)
        return error.mentions("CONFLICT")

    def _load_history(self) -> None:
        try:
            self.undo.ensure_loaded(self.project_dir)
        except HistoryError as e:
            raise SyncError("history", str(e)) from e

    def _paused_operation(self) -> Operation | None:
        """Most recent paused sync in the undo history, if any."""
        try:
            history = self.undo.ensure_loaded(self.project_dir)
        except HistoryError as e:
            logger.warning("Could not read undo history: %s", e)
            return None
        for op in history:
            if op.type == "sync_paused":
                return op
            if op.type == "sync":
                return None
        return None

    def _record(
        self,
        op_type: str,
        description: str,
        metadata: OperationMetadata,
        *,
        ref: str | None,
    ) -> Operation:
        try:
            op = self.undo.record_operation(
                op_type,
                description,
                SYNC_COMMAND,
                OperationCategory.REBASE.value,
                metadata,
                ref=ref,
            )
            self.undo.save_history(self.project_dir)
        except (UndoError, HistoryError) as e:
            raise SyncError("record", f"Recording the sync in the undo history failed: {e}") from e
        return op
