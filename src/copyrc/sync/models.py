"""Pydantic models for the copyrc sync engine.

Defines the persisted lock document and the result contracts used across
all sync modules:

- ``FileStatus``: Enum of per-file classification outcomes.
- ``TrackedFile``: One mirrored ("copied") file in the lock.
- ``GeneratedFile``: A file derived from another tracked artifact.
- ``ArchiveFile``: A downloaded source archive and its digest.
- ``SourceArgs``: The arguments that produced a lock document.
- ``StateDocument``: The whole ``.copyrc.lock`` document.
- ``FileResult`` / ``SyncReport``: Outcome of one file / one pass.
- ``ValidationIssue`` / ``ValidationReport``: Consistency check output.

Per-file records and results are frozen; ``StateDocument`` is mutable
and must only be mutated through ``LockedState`` while a pass runs.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import hashlib
import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator

from copyrc.errors import ConsistencyError
from copyrc.sync.differ import count_changes


class FileStatus(str, Enum):
    """Classification of a single file in a pass."""

    NEW = "new"
    UNCHANGED = "unchanged"
    MODIFIED = "modified"
    CUSTOMIZED = "customized"
    LOCAL = "local"
    DELETED = "deleted"


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------


class TrackedFile(BaseModel):
    """State of one mirrored file.

    Attributes:
        file: Local path relative to the destination root (map key).
        remote_path: Path relative to the source path on the remote.
        source: Provenance string, e.g. ``github.com/org/repo@<sha>``.
        permalink: Link to the file at the fetched commit.
        last_updated: ISO 8601 timestamp of the last record mutation.
        remote_hash: SHA-256 of the most recently fetched remote content.
        diff_delta: Edit script from on-disk content to remote content;
            empty when no divergence is known.
        changes: One hunk header per change region of ``diff_delta``.
        patch_file: Local path of the customization overlay, if any.
        ignored: Content lives only in the blob store; the live file is
            intentionally absent.
        replacements: Text replacements applied to the fetched content.
    """

    file: str
    remote_path: str = ""
    source: str = ""
    permalink: str = ""
    last_updated: str | None = None
    remote_hash: str = ""
    diff_delta: str = ""
    changes: list[str] = []
    patch_file: str | None = None
    ignored: bool = False
    replacements: int = 0

    model_config = {"frozen": True}

    @property
    def change_count(self) -> int:
        return count_changes(self.diff_delta)


class GeneratedFile(BaseModel):
    """A file copyrc generated from another artifact (no digest tracking)."""

    file: str
    last_updated: str | None = None
    reference_file: str = ""

    model_config = {"frozen": True}


class ArchiveFile(BaseModel):
    """A downloaded archive and the digest recorded when it was written."""

    file: str
    hash: str

    model_config = {"frozen": True}


class SourceArgs(BaseModel):
    """The source arguments a lock document was produced with."""

    src_repo: str = ""
    src_ref: str = ""
    src_path: str = ""
    copy_args: dict[str, Any] | None = None
    archive_args: dict[str, Any] | None = None

    model_config = {"frozen": True}

    def fingerprint(self) -> str:
        """Stable SHA-256 over the canonical JSON form of the arguments."""
        canonical = json.dumps(
            self.model_dump(mode="json"),
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Blob encoding (serialization boundary only)
# ---------------------------------------------------------------------------


def encode_blob(data: bytes) -> str:
    """gzip (with a fixed mtime) then base64 *data*."""
    return base64.b64encode(gzip.compress(data, mtime=0)).decode("ascii")


def decode_blob(text: str) -> bytes:
    """Reverse ``encode_blob``.

    Raises:
        ValueError: If *text* is not valid base64-encoded gzip data.
    """
    try:
        return gzip.decompress(base64.b64decode(text, validate=True))
    except (binascii.Error, OSError, EOFError) as exc:
        raise ValueError(f"invalid blob encoding: {exc}") from exc


class StateDocument(BaseModel):
    """The persisted ``.copyrc.lock`` document.

    ``copied_files`` is serialized under the historical key
    ``coppied_files``.  ``blobs`` holds raw bytes in memory and is
    compressed only when dumped.
    """

    last_updated: str | None = None
    commit_hash: str = ""
    args: SourceArgs = Field(default_factory=SourceArgs)
    args_hash: str = ""
    copied_files: dict[str, TrackedFile] = Field(
        default_factory=dict, alias="coppied_files"
    )
    generated_files: dict[str, GeneratedFile] = Field(default_factory=dict)
    archive_files: dict[str, ArchiveFile] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    blobs: dict[str, bytes] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}

    @field_validator("blobs", mode="before")
    @classmethod
    def _decompress_blobs(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {
            key: decode_blob(blob) if isinstance(blob, str) else blob
            for key, blob in value.items()
        }

    @field_serializer("blobs")
    def _compress_blobs(self, blobs: dict[str, bytes]) -> dict[str, str]:
        return {key: encode_blob(blobs[key]) for key in sorted(blobs)}

    def to_json(self) -> str:
        """Serialize to the on-disk JSON form (sorted keys, stable)."""
        return (
            json.dumps(
                self.model_dump(mode="json", by_alias=True),
                indent=2,
                sort_keys=True,
            )
            + "\n"
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class FileResult(BaseModel):
    """Outcome of one file in a pass; the status event for that file.

    Attributes:
        path: Local path relative to the destination root.
        status: Classification outcome; ``None`` when the file failed
            before it could be classified.
        success: ``False`` if an error prevented processing.
        written: Whether the live file was written this pass.
        error: Error message if the file failed.
        change_count: Change regions in the customization delta.
        replacements: Text replacements applied to fetched content.
        ignored: The file matched an ignore glob.
        merge_clean: For customized files with a known previous baseline,
            whether the customizations would merge cleanly onto the new
            remote content; ``None`` when unknown.
    """

    path: str
    status: FileStatus | None = None
    success: bool = True
    written: bool = False
    error: str | None = None
    change_count: int = 0
    replacements: int = 0
    ignored: bool = False
    merge_clean: bool | None = None

    model_config = {"frozen": True}


class ValidationIssue(BaseModel):
    """One mismatch between the lock file and the filesystem."""

    path: str
    kind: str
    message: str

    model_config = {"frozen": True}


class ValidationReport(BaseModel):
    """All issues found by a consistency check."""

    checked: int = 0
    issues: list[ValidationIssue] = []

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return not self.issues

    def raise_for_issues(self) -> None:
        """Raise ``ConsistencyError`` listing every issue, if any."""
        if self.issues:
            detail = "; ".join(i.message for i in self.issues)
            raise ConsistencyError(
                f"{len(self.issues)} consistency issue(s): {detail}"
            )


class SyncReport(BaseModel):
    """Aggregate report for one pass over one destination.

    Attributes:
        destination: Destination root the pass ran against.
        mode: Request mode value (``sync``, ``clean``, ...).
        results: Per-file results in path order.
        started_at: ISO 8601 timestamp when the pass started.
        completed_at: ISO 8601 timestamp when the pass completed.
        commit_hash: Remote fingerprint used by the pass, if resolved.
        up_to_date: The fingerprint short-circuit skipped all work.
        cancelled: The pass stopped early on a cancellation request.
        validation: Consistency check output for clean passes.
    """

    destination: str
    mode: str
    results: list[FileResult] = []
    started_at: str
    completed_at: str | None = None
    commit_hash: str = ""
    up_to_date: bool = False
    cancelled: bool = False
    validation: ValidationReport | None = None

    model_config = {"frozen": True}

    def _by_status(self, status: FileStatus) -> list[FileResult]:
        return [
            r for r in self.results if r.success and r.status == status
        ]

    @property
    def new(self) -> list[FileResult]:
        return self._by_status(FileStatus.NEW)

    @property
    def modified(self) -> list[FileResult]:
        return self._by_status(FileStatus.MODIFIED)

    @property
    def unchanged(self) -> list[FileResult]:
        return self._by_status(FileStatus.UNCHANGED)

    @property
    def customized(self) -> list[FileResult]:
        return self._by_status(FileStatus.CUSTOMIZED)

    @property
    def local(self) -> list[FileResult]:
        return self._by_status(FileStatus.LOCAL)

    @property
    def deleted(self) -> list[FileResult]:
        return self._by_status(FileStatus.DELETED)

    @property
    def written(self) -> list[FileResult]:
        return [r for r in self.results if r.written]

    @property
    def errors(self) -> list[FileResult]:
        return [r for r in self.results if not r.success]

    @property
    def ok(self) -> bool:
        """No file errors and no consistency issues."""
        if self.errors:
            return False
        return self.validation is None or self.validation.ok

    def summary(self) -> str:
        """Format a short multi-line summary with counts by status."""
        lines = [
            f"copyrc {self.mode} for '{self.destination}'"
            + (" (up to date)" if self.up_to_date else ""),
            f"  New:        {len(self.new)}",
            f"  Modified:   {len(self.modified)}",
            f"  Unchanged:  {len(self.unchanged)}",
            f"  Customized: {len(self.customized)}",
            f"  Untracked:  {len(self.local)}",
            f"  Deleted:    {len(self.deleted)}",
            f"  Errors:     {len(self.errors)}",
            f"  Total:      {len(self.results)}",
        ]
        return "\n".join(lines)
