"""
Result types for the branch clean workflow.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CleanableBranches:
    """
    Branches that can be removed.

    Attributes:
        local_branches: Local branches merged into trunk or with a closed PR
        remote_branches: The subset of those that also exist on the remote
    """

    local_branches: list[str] = field(default_factory=list)
    remote_branches: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.local_branches or self.remote_branches)


@dataclass
class DeletionResult:
    """
    Outcome of deleting one branch.

    Attributes:
        branch: Branch name ("origin/<name>" for remote deletions)
        error: Failure description, None on success
    """

    branch: str
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None
