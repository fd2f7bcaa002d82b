"""Tests for file_handler.py: atomic writes, backup/restore, decoding.

Covers:
- write_atomic creates parents and replaces content
- an interrupted write leaves the original file intact and no temp file
- write_if_changed skips identical content
- backup/restore/discard_backup
- decode_text for UTF-8 and non-UTF-8 input
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from copyrc.file_handler import (
    backup,
    backup_path,
    decode_text,
    discard_backup,
    read_bytes_or_none,
    restore,
    write_atomic,
    write_if_changed,
)
from copyrc.naming import TEMP_SUFFIX

# ---------------------------------------------------------------------------
# Atomic write
# ---------------------------------------------------------------------------


class TestWriteAtomic:
    """Tests for write_atomic()."""

    def test_creates_parent_directories(self, tmp_path: Path):
        target = tmp_path / "a" / "b" / "file.copy.txt"
        assert write_atomic(target, b"data") == 4
        assert target.read_bytes() == b"data"

    def test_replaces_existing_content(self, tmp_path: Path):
        target = tmp_path / "file.txt"
        target.write_bytes(b"old")
        write_atomic(target, b"new")
        assert target.read_bytes() == b"new"

    def test_no_temp_file_left_after_success(self, tmp_path: Path):
        write_atomic(tmp_path / "f.txt", b"x")
        assert [p.name for p in tmp_path.iterdir()] == ["f.txt"]

    def test_interrupted_write_keeps_original(self, tmp_path: Path):
        """A failure before rename leaves the destination untouched."""
        target = tmp_path / "f.txt"
        target.write_bytes(b"original")

        with patch(
            "copyrc.file_handler.os.replace",
            side_effect=KeyboardInterrupt,
        ):
            with pytest.raises(KeyboardInterrupt):
                write_atomic(target, b"replacement")

        assert target.read_bytes() == b"original"
        assert not any(
            p.name.endswith(TEMP_SUFFIX) for p in tmp_path.iterdir()
        )

    def test_failed_fsync_cleans_up(self, tmp_path: Path):
        with patch(
            "copyrc.file_handler.os.fsync", side_effect=OSError("disk full")
        ):
            with pytest.raises(OSError, match="disk full"):
                write_atomic(tmp_path / "g.txt", b"x")
        assert list(tmp_path.iterdir()) == []


class TestWriteIfChanged:
    """Tests for write_if_changed()."""

    def test_writes_when_missing(self, tmp_path: Path):
        assert write_if_changed(tmp_path / "f", b"x") is True

    def test_skips_identical(self, tmp_path: Path):
        target = tmp_path / "f"
        target.write_bytes(b"x")
        mtime = os.stat(target).st_mtime_ns
        assert write_if_changed(target, b"x") is False
        assert os.stat(target).st_mtime_ns == mtime

    def test_writes_different(self, tmp_path: Path):
        target = tmp_path / "f"
        target.write_bytes(b"x")
        assert write_if_changed(target, b"y") is True
        assert target.read_bytes() == b"y"


def test_read_bytes_or_none(tmp_path: Path):
    assert read_bytes_or_none(tmp_path / "missing") is None
    (tmp_path / "present").write_bytes(b"")
    assert read_bytes_or_none(tmp_path / "present") == b""


# ---------------------------------------------------------------------------
# Backup / restore
# ---------------------------------------------------------------------------


class TestBackupRestore:
    """Tests for backup(), restore() and discard_backup()."""

    def test_backup_missing_file_is_noop(self, tmp_path: Path):
        assert backup(tmp_path / "missing") is None
        assert list(tmp_path.iterdir()) == []

    def test_restore_reverts_content_and_removes_backup(
        self, tmp_path: Path
    ):
        target = tmp_path / "f"
        target.write_bytes(b"v1")
        saved = backup(target)
        assert saved == backup_path(target)

        target.write_bytes(b"v2")
        assert restore(target) is True
        assert target.read_bytes() == b"v1"
        assert not backup_path(target).exists()

    def test_restore_without_backup(self, tmp_path: Path):
        assert restore(tmp_path / "f") is False

    def test_discard_backup(self, tmp_path: Path):
        target = tmp_path / "f"
        target.write_bytes(b"v1")
        backup(target)
        discard_backup(target)
        assert not backup_path(target).exists()
        discard_backup(target)  # idempotent


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class TestDecodeText:
    """Tests for decode_text()."""

    def test_empty(self):
        assert decode_text(b"") == ""

    def test_utf8(self):
        assert decode_text("héllo".encode("utf-8")) == "héllo"

    def test_non_utf8_does_not_raise(self):
        raw = "Grüße aus Köln, schöne Straße".encode("latin-1")
        text = decode_text(raw)
        assert isinstance(text, str)
        assert text
