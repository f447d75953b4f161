"""
Data models for the synchronization engine.

Defines the terminal outcomes of a sync and the result returned to callers.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SyncOutcome(str, Enum):
    """Terminal state of one sync invocation."""

    SYNCHRONIZED = "synchronized"
    NO_OP = "no_op"
    CONFLICTED = "conflicted"
    ABORTED = "aborted"


class SyncResult(BaseModel):
    """
    Result of a sync, abort or continue.

    Example:
        >>> result = engine.sync()
        >>> result.outcome
        <SyncOutcome.SYNCHRONIZED: 'synchronized'>
        >>> result.summary()
        'feature/login synchronized with main, pushed'
    """

    outcome: SyncOutcome = Field(description="Terminal state reached")

    branch: str = Field(default="", description="Branch that was synchronized")
    trunk: str = Field(default="", description="Trunk branch it was synchronized with")

    message: str = Field(default="", description="Human-readable detail")

    conflicts: list[str] = Field(
        default_factory=list,
        description="Files with unresolved conflicts when the sync paused",
    )

    # Stash bookkeeping
    stashed: bool = Field(default=False, description="Whether local changes were stashed")
    stash_ref: str = Field(default="", description="Label of the stash, if any")

    original_ref: str | None = Field(
        default=None,
        description="Commit HEAD pointed at before the sync",
    )
    pushed: bool = Field(default=False, description="Whether the branch was pushed")
    operation_id: str | None = Field(
        default=None,
        description="Id of the undo history entry recorded for this sync",
    )

    # Timing
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)

    @property
    def duration_seconds(self) -> float | None:
        """Calculate sync duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def is_conflicted(self) -> bool:
        return self.outcome == SyncOutcome.CONFLICTED

    def summary(self) -> str:
        """Generate a one-line human-readable summary."""
        if self.outcome == SyncOutcome.ABORTED:
            return self.message or "Aborted the in-progress operation"

        if self.outcome == SyncOutcome.NO_OP:
            return f"{self.branch} is already up to date with {self.trunk}"

        if self.outcome == SyncOutcome.CONFLICTED:
            return f"Sync of {self.branch} onto {self.trunk} paused on conflicts"

        parts = [f"{self.branch} synchronized with {self.trunk}"]
        if self.pushed:
            parts.append("pushed")
        if self.stashed:
            parts.append("local changes restored")
        return ", ".join(parts)
