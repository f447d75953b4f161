"""
Branch synchronization.

Rebases the current branch onto an updated trunk while preserving
uncommitted work, pausing cleanly on conflicts.

Example:
    >>> from trunkline.core.sync import SyncEngine
    >>> result = SyncEngine(git, undo, config.sync, repo).sync()
    >>> result.outcome
    <SyncOutcome.SYNCHRONIZED: 'synchronized'>
"""

from trunkline.core.sync.engine import (
    SyncEngine,
    SyncError,
    SyncPreconditionError,
    conflict_message,
    resolve_trunk,
)
from trunkline.core.sync.models import SyncOutcome, SyncResult

__all__ = [
    "SyncEngine",
    "SyncError",
    "SyncOutcome",
    "SyncPreconditionError",
    "SyncResult",
    "conflict_message",
    "resolve_trunk",
]
