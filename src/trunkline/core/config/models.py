"""
Configuration data models for trunkline.

These models define the structure of .trunkline.json and
~/.config/trunkline/config.json files, with validation via Pydantic.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SyncConfig(BaseModel):
    """
    Settings for the branch synchronization engine.

    Controls which branch counts as trunk and how the feature branch
    is published after it has been rebased.
    """
    trunk_branch: Optional[str] = Field(
        default=None,
        description="Explicit trunk branch; resolved from origin/HEAD when unset"
    )
    fallback_trunk: str = Field(
        default="main",
        min_length=1,
        description="Trunk used when the default branch cannot be determined"
    )
    remote: str = Field(
        default="origin",
        min_length=1,
        description="Remote that feature branches are pushed to"
    )
    push: bool = Field(
        default=True,
        description="Push the feature branch after a successful sync"
    )
    stash_prefix: str = Field(
        default="trunkline-sync",
        min_length=1,
        description="Label prefix for stashes taken around a sync"
    )

    @field_validator("trunk_branch")
    @classmethod
    def blank_trunk_is_unset(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty trunk name as 'not configured'."""
        if v is not None and not v.strip():
            return None
        return v


class UndoConfig(BaseModel):
    """
    Settings for the undo history.
    """
    max_size: int = Field(
        default=100,
        ge=1,
        description="Maximum number of operations kept in a fresh undo history"
    )


class CleanConfig(BaseModel):
    """
    Settings for the branch clean workflow.
    """
    max_workers: int = Field(
        default=8,
        ge=1,
        description="Parallel workers used to delete local branches"
    )
    use_forge: bool = Field(
        default=True,
        description="Consult GitHub pull requests when finding cleanable branches"
    )


class TrunklineConfig(BaseModel):
    """
    Top-level trunkline configuration.

    Loaded from defaults, user config, project config, and env vars.

    Example:
        >>> config = TrunklineConfig(sync=SyncConfig(trunk_branch="develop"))
        >>> config.sync.trunk_branch
        'develop'
        >>> config.undo.max_size
        100
    """
    sync: SyncConfig = Field(
        default_factory=SyncConfig,
        description="Synchronization engine settings"
    )
    undo: UndoConfig = Field(
        default_factory=UndoConfig,
        description="Undo history settings"
    )
    clean: CleanConfig = Field(
        default_factory=CleanConfig,
        description="Branch clean settings"
    )

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,
    )
