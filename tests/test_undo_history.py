"""
Tests for undo history persistence.

Tests cover:
- Loading a missing, valid and corrupt history file
- Atomic saves
- Migration from the legacy location
- Location inside the git control directory, shared by worktrees
"""

import json
from pathlib import Path

import pytest
from conftest import git

from trunkline.core.git import ShellGit
from trunkline.core.undo import HistoryError, HistoryStore, Operation, OperationLog, UndoService


def make_op(op_id: str) -> Operation:
    return Operation(id=op_id, type="commit", ref="e" * 40, category="commit")


class TestHistoryStoreLoad:
    """Tests for HistoryStore.load."""

    def test_missing_file_gives_empty_log(self, tmp_path: Path):
        """No history file means an empty log with the requested bound."""
        log = HistoryStore(tmp_path).load(max_size=5)

        assert len(log) == 0
        assert log.max_size == 5

    def test_corrupt_file_raises(self, tmp_path: Path):
        """Unparseable JSON is reported, not silently discarded."""
        path = tmp_path / ".git" / "trunkline" / "undo_history.json"
        path.parent.mkdir(parents=True)
        path.write_text("{not json")

        with pytest.raises(HistoryError, match="Failed to parse"):
            HistoryStore(tmp_path).load()

    def test_undecodable_file_raises(self, tmp_path: Path):
        """Bytes that are not UTF-8 are corrupt, not a crash."""
        path = tmp_path / ".git" / "trunkline" / "undo_history.json"
        path.parent.mkdir(parents=True)
        path.write_bytes(b"\xff\xfe\x00garbage")

        with pytest.raises(HistoryError, match="Failed to parse"):
            HistoryStore(tmp_path).load()

    def test_invalid_document_raises(self, tmp_path: Path):
        """Valid JSON with the wrong shape is corrupt too."""
        path = tmp_path / ".git" / "trunkline" / "undo_history.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"operations": [{"id": "x"}]}))

        with pytest.raises(HistoryError):
            HistoryStore(tmp_path).load()

    def test_file_bound_is_authoritative(self, tmp_path: Path):
        """An existing file keeps the max_size it was saved with."""
        store = HistoryStore(tmp_path)
        store.save(OperationLog([make_op("1")], max_size=3))

        assert store.load(max_size=50).max_size == 3


class TestHistoryStoreSave:
    """Tests for HistoryStore.save."""

    def test_round_trip(self, tmp_path: Path):
        """Save then load returns the same operations in the same order."""
        store = HistoryStore(tmp_path)
        log = OperationLog(max_size=10)
        for op_id in ("1", "2", "3"):
            log.add(make_op(op_id))

        store.save(log)
        loaded = store.load()

        assert [op.id for op in loaded] == ["3", "2", "1"]
        assert loaded.operations == log.operations

    def test_document_shape(self, tmp_path: Path):
        """The persisted document has operations and max_size keys."""
        store = HistoryStore(tmp_path)
        store.save(OperationLog([make_op("1")]))

        data = json.loads(store.file_path.read_text())
        assert set(data) == {"operations", "max_size"}
        assert data["operations"][0]["id"] == "1"
        assert not store.file_path.with_suffix(".tmp").exists()

    def test_unknown_fields_survive(self, tmp_path: Path):
        """Fields this version does not know are written back."""
        store = HistoryStore(tmp_path)
        store.file_path.parent.mkdir(parents=True)
        store.file_path.write_text(
            json.dumps(
                {
                    "operations": [
                        {
                            "id": "1",
                            "type": "commit",
                            "ref": "abc",
                            "category": "commit",
                            "timestamp": "2026-01-18T12:00:00Z",
                            "origin": "newer-version",
                        }
                    ],
                    "max_size": 100,
                }
            )
        )

        store.save(store.load())

        data = json.loads(store.file_path.read_text())
        assert data["operations"][0]["origin"] == "newer-version"

    def test_unwritable_location_raises(self, tmp_path: Path):
        """Failure to create the directory is a HistoryError."""
        (tmp_path / ".git").write_text("gitdir: elsewhere\n")

        with pytest.raises(HistoryError, match="Failed to write"):
            HistoryStore(tmp_path).save(OperationLog([make_op("1")]))


class TestLegacyMigration:
    """Tests for moving the history out of the working tree."""

    def _write_legacy(self, root: Path, op_id: str) -> Path:
        legacy = root / ".trunkline" / "undo_history.json"
        legacy.parent.mkdir(parents=True)
        legacy.write_text(
            OperationLog([make_op(op_id)]).to_file().model_dump_json()
        )
        return legacy

    def test_legacy_file_is_moved(self, tmp_path: Path):
        """The legacy file moves to .git/trunkline and its directory is removed."""
        legacy = self._write_legacy(tmp_path, "old")

        log = HistoryStore(tmp_path).load()

        assert [op.id for op in log] == ["old"]
        assert not legacy.exists()
        assert not legacy.parent.exists()
        assert (tmp_path / ".git" / "trunkline" / "undo_history.json").exists()

    def test_non_empty_legacy_directory_is_kept(self, tmp_path: Path):
        """Other files in the legacy directory keep it alive."""
        legacy = self._write_legacy(tmp_path, "old")
        (legacy.parent / "notes.txt").write_text("keep me")

        HistoryStore(tmp_path).load()

        assert not legacy.exists()
        assert (legacy.parent / "notes.txt").exists()

    def test_current_file_wins(self, tmp_path: Path):
        """An existing current history is never overwritten by the legacy one."""
        store = HistoryStore(tmp_path)
        store.save(OperationLog([make_op("current")]))
        legacy = self._write_legacy(tmp_path, "old")

        log = store.load()

        assert [op.id for op in log] == ["current"]
        assert legacy.exists()


class TestControlDirectory:
    """Tests for where the history file lives."""

    def test_explicit_control_dir(self, tmp_path: Path):
        control = tmp_path / "elsewhere.git"

        store = HistoryStore(tmp_path / "repo", control_dir=control)
        store.save(OperationLog([make_op("a")]))

        assert (control / "trunkline" / "undo_history.json").exists()
        assert [op.id for op in HistoryStore(tmp_path, control_dir=control).load()] == ["a"]

    def test_worktrees_share_the_main_history(self, git_repo: Path):
        """A linked worktree, whose .git is a file, uses the main repository's history."""
        worktree = git_repo.parent / "wt"
        git(git_repo, "worktree", "add", "-b", "feature", str(worktree))
        assert (worktree / ".git").is_file()

        undo = UndoService(ShellGit(worktree))
        undo.load_history(worktree)
        op = undo.record_operation("commit", "Work in a worktree", "trunkline commit", "commit")
        undo.save_history(worktree)

        main_file = git_repo / ".git" / "trunkline" / "undo_history.json"
        assert main_file.exists()
        assert [o.id for o in HistoryStore(git_repo).load()] == [op.id]
        assert [o.id for o in UndoService(ShellGit(worktree)).load_history(worktree)] == [op.id]
