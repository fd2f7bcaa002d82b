"""Tests for the file status classifier.

Each test exercises one branch of the decision order:
Local -> New -> report-only -> Customized -> Unchanged -> Modified.
"""

from __future__ import annotations

import pytest

from copyrc.errors import MissingContentError
from copyrc.sync.classifier import classify, is_customized
from copyrc.sync.differ import apply_delta, compute_delta, count_changes
from copyrc.sync.hashing import content_hash
from copyrc.sync.models import FileStatus, TrackedFile

NOW = "2026-01-01T00:00:00+00:00"


def _record(content: bytes, **extra) -> TrackedFile:
    return TrackedFile(
        file="hello.copy.txt",
        remote_hash=content_hash(content),
        last_updated="2025-01-01T00:00:00+00:00",
        **extra,
    )


# ---------------------------------------------------------------------------
# No record
# ---------------------------------------------------------------------------


class TestUntracked:
    """Files without a record."""

    def test_unmanaged_file_is_local(self):
        decision = classify("notes.txt", b"mine", None, b"remote")
        assert decision.status == FileStatus.LOCAL
        assert decision.write is None
        assert decision.record is None

    def test_new_file_is_written(self):
        decision = classify(
            "a.copy.txt",
            None,
            None,
            b"content",
            source="fake/repo@c",
            permalink="fake://a",
            now=NOW,
        )
        assert decision.status == FileStatus.NEW
        assert decision.write == b"content"
        assert decision.record.remote_hash == content_hash(b"content")
        assert decision.record.diff_delta == ""
        assert decision.record.source == "fake/repo@c"
        assert decision.record.last_updated == NOW

    def test_missing_content_without_record_raises(self):
        with pytest.raises(MissingContentError):
            classify("a.copy.txt", None, None, None)

    def test_managed_file_without_record_or_content_is_local(self):
        decision = classify("a.copy.txt", b"x", None, None)
        assert decision.status == FileStatus.LOCAL

    def test_unrecorded_extensionless_copy_is_local(self):
        """Only the dotted infix proves ownership without a record."""
        decision = classify("Makefile.copy", b"mine", None, b"remote")
        assert decision.status == FileStatus.LOCAL
        assert decision.write is None

    def test_managed_file_without_record_is_adopted_when_equal(self):
        decision = classify("a.copy.txt", b"same", None, b"same", now=NOW)
        assert decision.status == FileStatus.UNCHANGED
        assert decision.write is None
        assert decision.record.remote_hash == content_hash(b"same")

    def test_managed_file_without_record_is_overwritten(self):
        decision = classify("a.copy.txt", b"stale", None, b"fresh")
        assert decision.status == FileStatus.MODIFIED
        assert decision.write == b"fresh"


# ---------------------------------------------------------------------------
# Report-only (no incoming content)
# ---------------------------------------------------------------------------


class TestReportOnly:
    """Record present, no incoming content: never writes or mutates."""

    def test_unchanged(self):
        decision = classify("hello.copy.txt", b"hello", _record(b"hello"), None)
        assert decision.status == FileStatus.UNCHANGED
        assert decision.write is None
        assert decision.record is None

    def test_customized(self):
        decision = classify(
            "hello.copy.txt", b"hello world", _record(b"hello"), None
        )
        assert decision.status == FileStatus.CUSTOMIZED
        assert decision.record is None

    def test_deleted_live_file_counts_as_diverged(self):
        decision = classify("hello.copy.txt", None, _record(b"hello"), None)
        assert decision.status == FileStatus.CUSTOMIZED


# ---------------------------------------------------------------------------
# Customization
# ---------------------------------------------------------------------------


class TestCustomized:
    """Customization detection always wins over Modified."""

    def test_local_edit_is_preserved(self):
        """Editing "hello" to "hello world" survives remote "hello!"."""
        record = _record(b"hello")
        decision = classify(
            "hello.copy.txt", b"hello world", record, b"hello!", now=NOW
        )
        assert decision.status == FileStatus.CUSTOMIZED
        assert decision.write is None
        new = decision.record
        assert new.remote_hash == content_hash(b"hello!")
        assert new.diff_delta == compute_delta("hello world", "hello!")
        assert apply_delta("hello world", new.diff_delta) == "hello!"
        assert new.change_count == 1
        assert new.last_updated == NOW

    def test_change_count_follows_delta_regions(self):
        old = b"1\n2\n3\n4\n5\n"
        record = _record(old)
        decision = classify(
            "hello.copy.txt",
            b"one\n2\n3\n4\nfive\n",
            record,
            old,
        )
        new = decision.record
        assert new.change_count == 2
        assert new.change_count == count_changes(new.diff_delta)
        assert len(new.changes) == 2

    def test_recorded_delta_keeps_file_customized(self):
        """A recorded delta means customized even if digests match."""
        record = _record(b"same", diff_delta="=4")
        decision = classify("hello.copy.txt", b"same", record, b"other")
        assert decision.status == FileStatus.CUSTOMIZED
        assert decision.write is None

    def test_customized_even_when_remote_unchanged(self):
        record = _record(b"hello")
        decision = classify("hello.copy.txt", b"hello!!", record, b"hello")
        assert decision.status == FileStatus.CUSTOMIZED
        assert decision.record.remote_hash == record.remote_hash

    def test_reverting_edit_clears_delta(self):
        """A user who reverts to the remote content gets an empty delta."""
        record = _record(b"v1", diff_delta="-2\t+v0")
        decision = classify("hello.copy.txt", b"v2", record, b"v2")
        assert decision.status == FileStatus.CUSTOMIZED
        assert decision.record.diff_delta == ""
        assert decision.record.changes == []
        assert not is_customized(decision.record, b"v2")


# ---------------------------------------------------------------------------
# Unchanged / Modified
# ---------------------------------------------------------------------------


class TestUnchangedAndModified:
    """Records whose on-disk file matches the recorded digest."""

    def test_identical_content_is_unchanged(self):
        record = _record(b"hello")
        decision = classify(
            "hello.copy.txt", b"hello", record, b"hello", now=NOW
        )
        assert decision.status == FileStatus.UNCHANGED
        assert decision.write is None
        assert decision.record.last_updated == NOW
        assert decision.record.remote_hash == record.remote_hash

    def test_remote_change_is_written(self):
        record = _record(b"hello", patch_file="hello.patch.txt")
        decision = classify("hello.copy.txt", b"hello", record, b"hello!")
        assert decision.status == FileStatus.MODIFIED
        assert decision.write == b"hello!"
        assert decision.record.remote_hash == content_hash(b"hello!")
        assert decision.record.diff_delta == ""
        assert decision.record.patch_file is None

    def test_record_without_digest_is_not_customized(self):
        record = TrackedFile(file="hello.copy.txt")
        decision = classify("hello.copy.txt", b"old", record, b"new")
        assert decision.status == FileStatus.MODIFIED

    def test_source_metadata_is_refreshed(self):
        record = _record(b"hello", source="old@1", permalink="old")
        decision = classify(
            "hello.copy.txt",
            b"hello",
            record,
            b"hello!",
            source="new@2",
            permalink="new",
        )
        assert decision.record.source == "new@2"
        assert decision.record.permalink == "new"
