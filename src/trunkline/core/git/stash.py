"""
Scoped handling of stashed working-tree changes.

`StashScope` owns one stash entry for the duration of a `with` block and
guarantees it is popped on every exit path unless the owner explicitly
hands it over to the user with `retain()`.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from types import TracebackType

from trunkline.core.git.backend import GitBackend
from trunkline.core.git.errors import GitError

logger = logging.getLogger(__name__)


def make_stash_label(prefix: str = "trunkline-sync") -> str:
    """
    Generate a collision-resistant stash label.

    Example:
        >>> make_stash_label()
        'trunkline-sync-20260118T153000Z-9f2c41ab'
    """
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{prefix}-{stamp}-{secrets.token_hex(4)}"


def find_stash(backend: GitBackend, label: str) -> str | None:
    """
    Find the stash entry created with `label`.

    Returns:
        The entry's ref (e.g. "stash@{1}"), or None if it is gone.
    """
    for line in backend.stash_list():
        ref, _, message = line.partition(":")
        if message.rstrip().endswith(label):
            return ref.strip()
    return None


class StashScope:
    """
    Context manager owning a stash entry.

    On a clean exit the stash is popped and pop failures propagate. When the
    block raises, the pop is attempted anyway and its own failure is logged
    so the original error is the one reported.

    Example:
        >>> with StashScope(git, label="trunkline-sync-...") as stash:
        ...     do_work()
        ...     stash.release()      # pop now, errors surface here
    """

    def __init__(self, backend: GitBackend, label: str | None = None) -> None:
        """
        Args:
            backend: Git backend to stash through
            label: When given, local changes are stashed under this label on enter
                   and the entry carrying it is the one popped.
                   When None, the scope adopts the newest existing stash entry.
        """
        self._backend = backend
        self.label = label
        self.active = False

    @classmethod
    def existing(cls, backend: GitBackend) -> StashScope:
        """Create a scope for a stash entry that already exists."""
        return cls(backend, label=None)

    def __enter__(self) -> StashScope:
        if self.label is not None:
            self._backend.stash_push(self.label)
            logger.debug("Stashed local changes as %s", self.label)
        self.active = True
        return self

    def _pop(self) -> None:
        """Pop the scope's own entry: the labelled one, else the newest."""
        if self.label is None:
            self._backend.stash_pop()
            return
        ref = find_stash(self._backend, self.label)
        if ref is None:
            raise GitError(f"Stash {self.label} is no longer present")
        self._backend.stash_pop(ref)

    def release(self) -> None:
        """Pop the stash now. Failures propagate to the caller."""
        if not self.active:
            return
        self.active = False
        self._pop()
        logger.debug("Restored stashed changes")

    def retain(self) -> None:
        """Leave the stash in place for the user to restore manually."""
        if self.active:
            logger.debug("Keeping stash %s for manual restore", self.label or "stash@{0}")
        self.active = False

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self.active:
            return
        if exc_type is None:
            self.release()
            return
        self.active = False
        try:
            self._pop()
        except GitError as pop_error:
            logger.error(
                "Could not restore stashed changes (%s); run 'git stash pop' manually",
                pop_error.detail,
            )
