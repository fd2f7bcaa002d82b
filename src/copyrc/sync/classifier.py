"""File status classifier.

The single decision function that turns (on-disk content, tracked
record, incoming remote content) into a status plus the side effects a
caller should apply.  It performs no I/O: the engine reads the file,
calls ``classify()``, and then applies the returned ``Decision``.

Evaluation order:

1. no record, file on disk, not a managed name -> ``LOCAL``
2. no record, nothing on disk -> ``NEW`` (write, create record)
3. record, no incoming content -> report the known status, no effects
4. on-disk digest differs from the recorded remote digest, or a delta
   is already recorded -> ``CUSTOMIZED`` (never write; refresh record)
5. on-disk digest equals incoming digest -> ``UNCHANGED``
6. otherwise -> ``MODIFIED`` (write, record new digest, clear delta)

A managed file found on disk without a record (for example after the
lock file was deleted) falls through to steps 5/6 and is adopted.
"""

from __future__ import annotations

from dataclasses import dataclass

from copyrc.errors import MissingContentError
from copyrc.file_handler import decode_text
from copyrc.naming import is_managed_name
from copyrc.sync.differ import compute_delta, describe_changes
from copyrc.sync.hashing import content_hash
from copyrc.sync.models import FileStatus, TrackedFile


@dataclass(frozen=True)
class Decision:
    """What the caller must do for one file.

    Attributes:
        status: The classification outcome.
        write: Bytes to write to the live path, or ``None`` for no write.
        record: Replacement record, or ``None`` to leave the map as is.
    """

    status: FileStatus
    write: bytes | None = None
    record: TrackedFile | None = None

    @property
    def change_count(self) -> int:
        return self.record.change_count if self.record else 0


def is_customized(record: TrackedFile, on_disk: bytes | None) -> bool:
    """Return ``True`` if the live file diverged from the known remote.

    An absent file is treated as zero-length content.
    """
    if record.diff_delta:
        return True
    if not record.remote_hash:
        return False
    return content_hash(on_disk or b"") != record.remote_hash


def classify(
    path: str,
    on_disk: bytes | None,
    record: TrackedFile | None,
    incoming: bytes | None,
    *,
    source: str = "",
    permalink: str = "",
    now: str | None = None,
) -> Decision:
    """Classify one file and compute its side effects.

    Args:
        path: Local path relative to the destination root.
        on_disk: Current live content, or ``None`` if absent.
        record: The tracked record for *path*, if any.
        incoming: Newly fetched (and transformed) remote content, or
            ``None`` for a classification-only pass.
        source: Provenance string to store on new/updated records.
        permalink: Permalink to store on new/updated records.
        now: Timestamp for ``last_updated`` on mutated records.

    Raises:
        MissingContentError: If there is neither a record nor incoming
            content for a path that is absent on disk.
    """
    if record is None:
        if on_disk is not None and not is_managed_name(path):
            return Decision(FileStatus.LOCAL)
        if incoming is None:
            if on_disk is not None:
                return Decision(FileStatus.LOCAL)
            raise MissingContentError(
                f"No content available for untracked path: {path}"
            )
        if on_disk is None:
            return Decision(
                FileStatus.NEW,
                write=incoming,
                record=TrackedFile(
                    file=path,
                    source=source,
                    permalink=permalink,
                    last_updated=now,
                    remote_hash=content_hash(incoming),
                ),
            )
        record = TrackedFile(file=path)

    if incoming is None:
        if is_customized(record, on_disk):
            return Decision(FileStatus.CUSTOMIZED)
        return Decision(FileStatus.UNCHANGED)

    incoming_hash = content_hash(incoming)
    refreshed = {
        "last_updated": now,
        "source": source or record.source,
        "permalink": permalink or record.permalink,
    }

    if is_customized(record, on_disk):
        local_text = decode_text(on_disk or b"")
        remote_text = decode_text(incoming)
        return Decision(
            FileStatus.CUSTOMIZED,
            record=record.model_copy(
                update={
                    **refreshed,
                    "remote_hash": incoming_hash,
                    "diff_delta": compute_delta(local_text, remote_text),
                    "changes": describe_changes(local_text, remote_text),
                }
            ),
        )

    if on_disk is not None and content_hash(on_disk) == incoming_hash:
        return Decision(
            FileStatus.UNCHANGED,
            record=record.model_copy(
                update={**refreshed, "remote_hash": incoming_hash}
            ),
        )

    return Decision(
        FileStatus.MODIFIED,
        write=incoming,
        record=record.model_copy(
            update={
                **refreshed,
                "remote_hash": incoming_hash,
                "diff_delta": "",
                "changes": [],
                "patch_file": None,
            }
        ),
    )
