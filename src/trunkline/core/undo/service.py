"""
Undo service.

Records reversible workflow operations and rolls back the most recent
ones. Recording only touches the in-memory log; callers persist it
explicitly with `save_history`, so a crash between the two loses at most
the newest entry.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from trunkline.core.git import GitBackend, GitError
from trunkline.core.undo.history import HistoryError, HistoryStore
from trunkline.core.undo.models import (
    DEFAULT_MAX_SIZE,
    Operation,
    OperationLog,
    OperationMetadata,
)
from trunkline.core.undo.strategies import UndoError, strategy_for

logger = logging.getLogger(__name__)


class OperationNotFoundError(UndoError):
    """No operation with the requested id exists in the history."""

    def __init__(self, op_id: str) -> None:
        super().__init__(f"operation {op_id} not found")
        self.op_id = op_id


class UndoSequenceError(UndoError):
    """An operation in an undo-last sequence failed; later ones were not attempted."""

    def __init__(self, position: int, operation: Operation, cause: Exception) -> None:
        super().__init__(f"failed to undo operation {position}: {cause}")
        self.position = position
        self.operation = operation
        self.cause = cause


class UndoService:
    """
    Service recording operations and reversing them.

    Example:
        >>> undo = UndoService(ShellGit(repo))
        >>> undo.load_history(repo)
        >>> undo.record_operation("commit", "Add login form", "trunkline commit", "commit")
        >>> undo.save_history(repo)
        >>> undo.undo_last(1)
    """

    def __init__(
        self,
        backend: GitBackend,
        history: OperationLog | None = None,
        max_size: int = DEFAULT_MAX_SIZE,
    ) -> None:
        """
        Args:
            backend: Git backend reversal strategies run against
            history: Pre-built log (tests); defaults to an empty log
            max_size: Bound for a fresh history
        """
        self.git = backend
        self.max_size = max_size
        self._history = history if history is not None else OperationLog(max_size=max_size)
        self._loaded_from: Path | None = None

    @property
    def history(self) -> OperationLog:
        return self._history

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _store(self, repo_path: Path | str) -> HistoryStore:
        """History store inside the repository's git control directory."""
        try:
            control_dir = self.git.git_common_dir()
        except GitError as e:
            raise HistoryError(f"Cannot locate the git directory of {repo_path}: {e.detail}") from e
        return HistoryStore(repo_path, control_dir=control_dir)

    def load_history(self, repo_path: Path | str = ".") -> OperationLog:
        """
        Replace the in-memory log with the repository's persisted history.

        Raises:
            HistoryError: If the history file is corrupt or unreadable, or
                the git directory cannot be located.
        """
        self._history = self._store(repo_path).load(max_size=self.max_size)
        self._loaded_from = Path(repo_path)
        return self._history

    def ensure_loaded(self, repo_path: Path | str = ".") -> OperationLog:
        """Load the history for `repo_path` unless it is already loaded."""
        if self._loaded_from is None or self._loaded_from != Path(repo_path):
            return self.load_history(repo_path)
        return self._history

    def save_history(self, repo_path: Path | str = ".") -> None:
        """
        Persist the in-memory log.

        Raises:
            HistoryError: If the history file cannot be written.
        """
        self._store(repo_path).save(self._history)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_operation(
        self,
        type: str,
        description: str,
        command: str,
        category: str,
        metadata: OperationMetadata | None = None,
        *,
        ref: str | None = None,
    ) -> Operation:
        """
        Record an operation in the in-memory history.

        Args:
            type: Operation type (commit, sync, ...)
            description: Human-readable summary
            command: Command that performed it
            category: Reversal category (commit, merge, rebase)
            metadata: Side information (files, branch, stash, ...)
            ref: Anchor to record instead of the current HEAD

        Returns:
            The recorded Operation.

        Raises:
            UndoError: If the anchor cannot be resolved to a commit.
        """
        anchor = ref or "HEAD"
        try:
            resolved = self.git.resolve_ref(anchor)
        except GitError as e:
            raise UndoError(f"failed to get current commit: {e.detail}") from e

        op = Operation(
            id=str(uuid.uuid4()),
            type=type,
            description=description,
            command=command,
            timestamp=datetime.now(timezone.utc),
            ref=resolved,
            category=category,
            metadata=metadata or OperationMetadata(),
        )
        self._history.add(op)
        logger.debug("Recorded %s operation %s at %s", type, op.short_id, resolved[:12])
        return op

    # ------------------------------------------------------------------
    # Reversal
    # ------------------------------------------------------------------

    def undo_operation(self, op_id: str) -> Operation:
        """
        Undo one operation by id (or unique id prefix).

        The operation is removed from the in-memory log once reversed.

        Returns:
            The reversed Operation.

        Raises:
            OperationNotFoundError: If no such operation exists.
            UnsupportedOperationError: If its category cannot be reversed.
            UnreversibleRefError: If its anchor commit no longer exists.
            GitError: If a backend call of the reversal fails.
        """
        op = self._history.get(op_id)
        if op is None:
            raise OperationNotFoundError(op_id)

        strategy = strategy_for(op.category)
        logger.info("Undoing %s operation %s: %s", op.category, op.short_id, op.description)
        strategy.reverse(self.git, op)
        self._history.remove(op.id)
        return op

    def undo_last(self, n: int = 1) -> list[Operation]:
        """
        Undo the last `n` operations, most recent first.

        `n` larger than the history is clamped. The first failure stops the
        sequence.

        Returns:
            The reversed operations, in the order they were undone.

        Raises:
            UndoError: If `n` is not positive or the history is empty.
            UndoSequenceError: If an operation fails; carries its 1-based position.
        """
        if n <= 0:
            raise UndoError(f"invalid number of operations to undo: {n}")

        if not self._history:
            raise UndoError("no operations to undo")

        pending = self._history.operations[:n]
        undone: list[Operation] = []
        for position, op in enumerate(pending, start=1):
            try:
                undone.append(self.undo_operation(op.id))
            except (UndoError, GitError) as e:
                raise UndoSequenceError(position, op, e) from e
        return undone
