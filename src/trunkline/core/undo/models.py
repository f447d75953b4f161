"""
Data models for the undo history.

Defines the Operation record, its metadata, the on-disk document shape,
and OperationLog, the bounded most-recent-first container the undo
service works with.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MAX_SIZE = 100


class OperationCategory(str, Enum):
    """Reversal strategy selector for an operation."""

    COMMIT = "commit"
    MERGE = "merge"
    REBASE = "rebase"


class OperationMetadata(BaseModel):
    """
    Side information captured when an operation is recorded.

    Unknown keys are kept so histories written by newer versions survive
    a load/save cycle.
    """

    model_config = ConfigDict(extra="allow")

    files: list[str] = Field(default_factory=list, description="Affected file paths")
    branch: str = Field(default="", description="Branch checked out at record time")
    message: str = Field(default="", description="Commit message, if applicable")
    extra: dict[str, str] = Field(default_factory=dict, description="Additional metadata")
    stashed: bool = Field(
        default=False,
        description="Whether local edits were stashed around the operation",
    )
    stash_ref: str = Field(default="", description="Label of the stash, if any")


class Operation(BaseModel):
    """
    A workflow operation that can be undone.

    `ref` is the commit HEAD pointed at before the operation mutated the
    repository; reversal strategies reset relative to it.

    Example:
        >>> op = Operation(
        ...     id="4c1d...",
        ...     type="commit",
        ...     category="commit",
        ...     ref="9a8b7c...",
        ...     description="Commit staged changes",
        ... )
        >>> op.model_dump_json(indent=2)
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(description="Unique operation identifier")
    type: str = Field(description="Operation type (commit, sync, sync_paused, ...)")
    description: str = Field(default="", description="Human-readable summary")
    command: str = Field(default="", description="Command that performed the operation")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the operation was recorded",
    )
    ref: str = Field(description="Commit hash captured before the operation")
    category: str = Field(description="Reversal category (commit, merge, rebase)")
    metadata: OperationMetadata = Field(default_factory=OperationMetadata)

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Histories written without an offset are UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def short_id(self) -> str:
        return self.id[:8]


class HistoryFile(BaseModel):
    """Root model of the persisted undo_history.json document."""

    model_config = ConfigDict(extra="allow")

    operations: list[Operation] = Field(default_factory=list)
    max_size: int = Field(default=DEFAULT_MAX_SIZE, ge=1)


class OperationLog:
    """
    Bounded, most-recent-first log of operations.

    Backed by a deque with `maxlen`, so adding to the front evicts from the
    back and the bound can never be exceeded.

    Example:
        >>> log = OperationLog(max_size=2)
        >>> for op in (a, b, c):
        ...     log.add(op)
        >>> [o.id for o in log]
        ['c', 'b']
    """

    def __init__(
        self,
        operations: list[Operation] | None = None,
        max_size: int = DEFAULT_MAX_SIZE,
    ) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._max_size = max_size
        # operations are given most-recent-first; keep the newest max_size
        self._ops: deque[Operation] = deque((operations or [])[:max_size], maxlen=max_size)

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def operations(self) -> list[Operation]:
        """Snapshot of the operations, most recent first."""
        return list(self._ops)

    def __len__(self) -> int:
        return len(self._ops)

    def __iter__(self) -> Iterator[Operation]:
        return iter(list(self._ops))

    def __bool__(self) -> bool:
        return bool(self._ops)

    def add(self, op: Operation) -> None:
        """Insert at the front, evicting the oldest entry when full."""
        self._ops.appendleft(op)

    def get(self, op_id: str) -> Operation | None:
        """
        Find an operation by exact id, falling back to a unique id prefix.

        Returns:
            The operation, or None when absent or the prefix is ambiguous.
        """
        for op in self._ops:
            if op.id == op_id:
                return op
        if not op_id:
            return None
        matches = [op for op in self._ops if op.id.startswith(op_id)]
        return matches[0] if len(matches) == 1 else None

    def remove(self, op_id: str) -> bool:
        """Remove the operation with exactly this id. Returns True if it was present."""
        for op in self._ops:
            if op.id == op_id:
                self._ops.remove(op)
                return True
        return False

    def filter(
        self,
        category: str | None = None,
        since: datetime | None = None,
    ) -> list[Operation]:
        """
        Operations matching a category and/or recorded after `since`.

        Naive `since` values are taken to be UTC.
        """
        if since is not None and since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        result = []
        for op in self._ops:
            if category and op.category != category:
                continue
            if since is not None and op.timestamp <= since:
                continue
            result.append(op)
        return result

    def clear(self) -> None:
        self._ops.clear()

    def to_file(self) -> HistoryFile:
        return HistoryFile(operations=list(self._ops), max_size=self._max_size)

    @classmethod
    def from_file(cls, content: HistoryFile) -> OperationLog:
        return cls(content.operations, max_size=content.max_size)
