"""
Persistence for the undo history.

The history lives inside the repository's git control directory at
`<git-common-dir>/trunkline/undo_history.json`, so it is per-repository,
shared by all worktrees and never committed. Older versions kept it in
`.trunkline/undo_history.json` at the repository root; that file is moved
on first load.
"""

from __future__ import annotations

import errno
import json
import logging
from pathlib import Path

from pydantic import ValidationError

from trunkline.core.undo.models import DEFAULT_MAX_SIZE, HistoryFile, OperationLog

logger = logging.getLogger(__name__)


class HistoryError(Exception):
    """Error reading, writing or migrating the undo history."""

    pass


class HistoryStore:
    """
    Reads and writes the undo history for one repository.

    Example:
        >>> store = HistoryStore(Path.cwd(), control_dir=git.git_common_dir())
        >>> log = store.load()
        >>> log.add(op)
        >>> store.save(log)
    """

    HISTORY_FILE = Path("trunkline") / "undo_history.json"
    LEGACY_HISTORY_FILE = Path(".trunkline") / "undo_history.json"

    def __init__(
        self,
        repo_path: Path | str = ".",
        control_dir: Path | str = ".git",
    ) -> None:
        """
        Args:
            repo_path: Repository root (holds the legacy history file)
            control_dir: Git control directory; relative paths are taken
                         from `repo_path`
        """
        self.repo_path = Path(repo_path)
        self.control_dir = self.repo_path / control_dir

    @property
    def file_path(self) -> Path:
        """Path to the current history file."""
        return self.control_dir / self.HISTORY_FILE

    @property
    def legacy_file_path(self) -> Path:
        """Path the history was stored at by older versions."""
        return self.repo_path / self.LEGACY_HISTORY_FILE

    def load(self, max_size: int = DEFAULT_MAX_SIZE) -> OperationLog:
        """
        Load the history, migrating the legacy file first if needed.

        Args:
            max_size: Bound for a fresh log when no history file exists yet.
                      An existing file keeps the bound it was saved with.

        Returns:
            The loaded OperationLog (empty when no file exists).

        Raises:
            HistoryError: If the file is unreadable or corrupt, or migration fails.
        """
        self._migrate_legacy()

        if not self.file_path.exists():
            logger.debug("No undo history at %s, starting fresh", self.file_path)
            return OperationLog(max_size=max_size)

        try:
            content = self.file_path.read_bytes()
        except OSError as e:
            raise HistoryError(f"Failed to read history file {self.file_path}: {e}") from e

        try:
            history = HistoryFile.model_validate_json(content)
        except (ValidationError, UnicodeDecodeError) as e:
            raise HistoryError(f"Failed to parse history file {self.file_path}: {e}") from e

        logger.debug("Loaded %d operations from %s", len(history.operations), self.file_path)
        return OperationLog.from_file(history)

    def save(self, log: OperationLog) -> None:
        """
        Save the history atomically via a temp file.

        Raises:
            HistoryError: If the directory or file cannot be written.
        """
        data = log.to_file().model_dump(mode="json")
        temp_path = self.file_path.with_suffix(".tmp")
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json.dumps(data, indent=2))
            temp_path.replace(self.file_path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise HistoryError(f"Failed to write history file {self.file_path}: {e}") from e
        logger.debug("Saved %d operations to %s", len(log), self.file_path)

    def _migrate_legacy(self) -> None:
        """Move the legacy history file to the current location."""
        old_path = self.legacy_file_path
        new_path = self.file_path

        if not old_path.exists():
            return

        if new_path.exists():
            # Never overwrite the current history
            logger.debug("Both legacy and current history exist; keeping %s", new_path)
            return

        logger.info("Migrating undo history from %s to %s", old_path, new_path)
        try:
            data = old_path.read_bytes()
            new_path.parent.mkdir(parents=True, exist_ok=True)
            new_path.write_bytes(data)
            old_path.unlink()
        except OSError as e:
            raise HistoryError(f"Failed to migrate history file: {e}") from e

        try:
            old_path.parent.rmdir()
        except OSError as e:
            if e.errno not in (errno.ENOTEMPTY, errno.EEXIST, errno.ENOENT, errno.EBUSY):
                raise HistoryError(f"Failed to remove old history directory: {e}") from e
