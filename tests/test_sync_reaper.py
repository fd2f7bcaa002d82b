"""Tests for orphan reclamation and the untracked-file scan."""

from __future__ import annotations

from pathlib import Path

from copyrc.naming import LOCK_FILE_NAME
from copyrc.sync.models import FileStatus, StateDocument, TrackedFile
from copyrc.sync.reaper import reap, referenced_paths, scan_untracked


def _touch(root: Path, rel: str, data: bytes = b"x") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def _doc(*paths: str, **extra) -> StateDocument:
    return StateDocument(
        copied_files={p: TrackedFile(file=p, **extra) for p in paths}
    )


class TestReferencedPaths:
    """Tests for referenced_paths()."""

    def test_includes_lock_and_overlays(self):
        doc = StateDocument(
            copied_files={
                "a.copy.go": TrackedFile(
                    file="a.copy.go", patch_file="a.patch.go"
                ),
                "b.copy.go": TrackedFile(file="b.copy.go", ignored=True),
            }
        )
        assert referenced_paths(doc) == {
            LOCK_FILE_NAME,
            "a.copy.go",
            "a.patch.go",
        }


class TestReap:
    """Tests for reap()."""

    def test_missing_destination(self, tmp_path: Path):
        assert reap(tmp_path / "nope", StateDocument()) == []

    def test_deletes_unreferenced_managed_files(self, tmp_path: Path):
        _touch(tmp_path, "keep.copy.go")
        _touch(tmp_path, "gone.copy.go")
        _touch(tmp_path, "sub/gone.patch.go")
        _touch(tmp_path, LOCK_FILE_NAME)

        results = reap(tmp_path, _doc("keep.copy.go"))

        assert sorted(r.path for r in results) == [
            "gone.copy.go",
            "sub/gone.patch.go",
        ]
        assert all(r.status == FileStatus.DELETED for r in results)
        assert all(r.written for r in results)
        assert (tmp_path / "keep.copy.go").exists()
        assert (tmp_path / LOCK_FILE_NAME).exists()

    def test_user_files_are_never_touched(self, tmp_path: Path):
        _touch(tmp_path, "notes.md")
        _touch(tmp_path, "copyright.txt")
        assert reap(tmp_path, StateDocument()) == []
        assert (tmp_path / "notes.md").exists()
        assert (tmp_path / "copyright.txt").exists()

    def test_trailing_marker_files_survive(self, tmp_path: Path):
        _touch(tmp_path, "0001-fix.patch")
        _touch(tmp_path, "notes.copy")
        _touch(tmp_path, "sub/fix.patch")

        assert reap(tmp_path, StateDocument()) == []

        assert (tmp_path / "0001-fix.patch").exists()
        assert (tmp_path / "notes.copy").exists()
        assert (tmp_path / "sub" / "fix.patch").exists()

    def test_retired_records_are_deleted(self, tmp_path: Path):
        _touch(tmp_path, "Makefile.copy")
        _touch(tmp_path, "Makefile.patch")
        _touch(tmp_path, "notes.copy")

        results = reap(
            tmp_path,
            StateDocument(),
            retired=["Makefile.copy", "Makefile.patch"],
        )

        assert sorted(r.path for r in results) == [
            "Makefile.copy",
            "Makefile.patch",
        ]
        assert (tmp_path / "notes.copy").exists()

    def test_retired_path_still_referenced_is_kept(self, tmp_path: Path):
        _touch(tmp_path, "Makefile.copy")
        assert reap(
            tmp_path, _doc("Makefile.copy"), retired=["Makefile.copy"]
        ) == []
        assert (tmp_path / "Makefile.copy").exists()

    def test_leftover_temp_and_backup_files(self, tmp_path: Path):
        _touch(tmp_path, ".a.copy.go.x1y2.copyrc-tmp")
        _touch(tmp_path, ".copyrc.lock.copyrc-bak")
        results = reap(tmp_path, StateDocument())
        assert len(results) == 2
        assert list(tmp_path.iterdir()) == []

    def test_ignored_live_file_is_removed(self, tmp_path: Path):
        _touch(tmp_path, "cfg.copy.yaml")
        results = reap(tmp_path, _doc("cfg.copy.yaml", ignored=True))
        assert [r.path for r in results] == ["cfg.copy.yaml"]
        assert not (tmp_path / "cfg.copy.yaml").exists()

    def test_nested_destination_is_skipped(self, tmp_path: Path):
        _touch(tmp_path, "inner/" + LOCK_FILE_NAME)
        _touch(tmp_path, "inner/x.copy.go")
        _touch(tmp_path, ".git/objects/a.copy.b")
        assert reap(tmp_path, StateDocument()) == []
        assert (tmp_path / "inner" / "x.copy.go").exists()


class TestScanUntracked:
    """Tests for scan_untracked()."""

    def test_reports_only_user_files(self, tmp_path: Path):
        _touch(tmp_path, "a.copy.go")
        _touch(tmp_path, "orphan.copy.go")
        _touch(tmp_path, "mine.go")
        _touch(tmp_path, "docs/readme.md")
        _touch(tmp_path, LOCK_FILE_NAME)

        results = scan_untracked(tmp_path, _doc("a.copy.go"))

        assert sorted(r.path for r in results) == [
            "docs/readme.md",
            "mine.go",
        ]
        assert all(r.status == FileStatus.LOCAL for r in results)

    def test_trailing_marker_files_are_reported(self, tmp_path: Path):
        _touch(tmp_path, "0001-fix.patch")
        _touch(tmp_path, "Makefile.copy")

        results = scan_untracked(tmp_path, _doc("Makefile.copy"))

        assert [r.path for r in results] == ["0001-fix.patch"]
