"""
Undo history and reversal.

Operations are recorded most-recent-first in a bounded log persisted under
`.git/trunkline/`, and reversed through one strategy per category.

Example:
    >>> from trunkline.core.undo import UndoService
    >>> undo = UndoService(ShellGit(repo))
    >>> undo.load_history(repo)
    >>> undo.undo_last(2)
"""

from trunkline.core.undo.history import HistoryError, HistoryStore
from trunkline.core.undo.models import (
    HistoryFile,
    Operation,
    OperationCategory,
    OperationLog,
    OperationMetadata,
)
from trunkline.core.undo.service import (
    OperationNotFoundError,
    UndoSequenceError,
    UndoService,
)
from trunkline.core.undo.strategies import (
    UndoError,
    UnreversibleRefError,
    UnsupportedOperationError,
)

__all__ = [
    "HistoryError",
    "HistoryFile",
    "HistoryStore",
    "Operation",
    "OperationCategory",
    "OperationLog",
    "OperationMetadata",
    "OperationNotFoundError",
    "UndoError",
    "UndoSequenceError",
    "UndoService",
    "UnreversibleRefError",
    "UnsupportedOperationError",
]
