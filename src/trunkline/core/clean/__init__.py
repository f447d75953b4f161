"""
Branch clean workflow.
"""

from trunkline.core.clean.models import CleanableBranches, DeletionResult
from trunkline.core.clean.service import (
    delete_local_branches,
    delete_remote_branches,
    find_cleanable_branches,
)

__all__ = [
    "CleanableBranches",
    "DeletionResult",
    "delete_local_branches",
    "delete_remote_branches",
    "find_cleanable_branches",
]
