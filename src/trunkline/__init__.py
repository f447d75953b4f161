"""
Trunkline - branch synchronization and undo for git workflows.

Keeps a feature branch rebased on trunk without losing uncommitted work,
and records every mutating step so it can be reversed later.
"""

__version__ = "0.4.0"

# Re-export core models for convenience
from trunkline.core.config.models import TrunklineConfig
from trunkline.core.undo.models import Operation, OperationCategory

__all__ = ["TrunklineConfig", "Operation", "OperationCategory", "__version__"]
