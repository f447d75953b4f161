"""
Reversal strategies for recorded operations.

Each operation category maps to one strategy implementing
`reverse(backend, operation)`. Strategies raise UndoError subclasses for
named failures and let GitError from the backend propagate.
"""

from __future__ import annotations

import logging
from typing import Protocol

from trunkline.core.git import GitBackend, GitError, StashScope
from trunkline.core.undo.models import Operation, OperationCategory

logger = logging.getLogger(__name__)


class UndoError(Exception):
    """Error from undo operations."""

    pass


class UnsupportedOperationError(UndoError):
    """The operation's category has no reversal strategy."""

    def __init__(self, category: str) -> None:
        super().__init__(f"unsupported operation type: {category}")
        self.category = category


class UnreversibleRefError(UndoError):
    """The commit an operation was anchored to no longer exists."""

    def __init__(self, ref: str, operation_id: str) -> None:
        super().__init__(
            f"cannot undo operation {operation_id[:8]}: "
            f"commit {ref[:12]} no longer exists in this repository"
        )
        self.ref = ref
        self.operation_id = operation_id


def require_ref(backend: GitBackend, op: Operation) -> str:
    """Resolve the operation's anchor, failing with UnreversibleRefError."""
    try:
        return backend.resolve_ref(op.ref)
    except GitError as e:
        raise UnreversibleRefError(op.ref, op.id) from e


class ReversalStrategy(Protocol):
    """Uniform contract for reversing one category of operation."""

    def reverse(self, backend: GitBackend, op: Operation) -> None:
        ...


class CommitReversal:
    """
    Undo a commit by moving the branch to the commit's parent.

    The reset is soft, so the commit's changes stay staged. When the commit
    was made with local edits stashed around it, the stash is popped after
    the reset on every exit path.
    """

    def reverse(self, backend: GitBackend, op: Operation) -> None:
        scope = StashScope.existing(backend) if op.metadata.stashed else None
        if scope is None:
            self._reset(backend, op)
            return
        with scope:
            self._reset(backend, op)

    @staticmethod
    def _reset(backend: GitBackend, op: Operation) -> None:
        require_ref(backend, op)
        logger.debug("Soft reset to %s~1 to undo commit %s", op.ref[:12], op.short_id)
        backend.reset_soft(f"{op.ref}~1")


class MergeReversal:
    """Abort an in-progress merge, or reset to the pre-merge anchor."""

    def reverse(self, backend: GitBackend, op: Operation) -> None:
        if backend.is_merging():
            logger.debug("Merge in progress, aborting it to undo %s", op.short_id)
            backend.merge_abort()
            return
        require_ref(backend, op)
        backend.reset_soft(op.ref)


class RebaseReversal:
    """Abort an in-progress rebase, or reset to the pre-rebase anchor."""

    def reverse(self, backend: GitBackend, op: Operation) -> None:
        if backend.is_rebasing():
            logger.debug("Rebase in progress, aborting it to undo %s", op.short_id)
            backend.rebase_abort()
            return
        require_ref(backend, op)
        backend.reset_soft(op.ref)


REVERSAL_STRATEGIES: dict[OperationCategory, ReversalStrategy] = {
    OperationCategory.COMMIT: CommitReversal(),
    OperationCategory.MERGE: MergeReversal(),
    OperationCategory.REBASE: RebaseReversal(),
}


def strategy_for(category: str) -> ReversalStrategy:
    """
    Select the reversal strategy for a category.

    Raises:
        UnsupportedOperationError: For categories without a strategy.
    """
    try:
        return REVERSAL_STRATEGIES[OperationCategory(category)]
    except (ValueError, KeyError):
        raise UnsupportedOperationError(category) from None
