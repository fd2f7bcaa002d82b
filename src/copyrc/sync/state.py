"""Lock file persistence layer.

Manages the ``.copyrc.lock`` JSON document that records every mirrored
file in one destination.

Key design choices:

* **Absent is empty** -- ``load()`` returns a fresh ``StateDocument``
  when the lock file does not exist; a file that exists but cannot be
  parsed raises ``StateCorruptionError`` and is never discarded.
* **Save marker** -- ``acquire_marker()`` creates ``<lock>.lock``
  exclusively before a pass writes anything and removes it once the
  lock is written, even on failure.  An existing marker means another
  run is mid-pass: fail, never steal it.
* **Atomic writes** -- the document goes through ``write_atomic`` and
  the previous lock is backed up and restored if the write fails.
* **One coarse lock** -- ``LockedState`` wraps the in-memory document
  for the duration of a pass; every map mutation takes the same
  ``threading.Lock``, which is never held across file or network I/O.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from copyrc.errors import LockContentionError, StateCorruptionError
from copyrc.file_handler import (
    backup,
    discard_backup,
    restore,
    write_atomic,
)
from copyrc.naming import LOCK_FILE_NAME
from copyrc.sync.models import (
    ArchiveFile,
    GeneratedFile,
    StateDocument,
    TrackedFile,
)

logger = logging.getLogger(__name__)

MARKER_SUFFIX = ".lock"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StateStore:
    """Load and save the lock document for one destination.

    Args:
        destination: Destination root directory.
        lock_name: File name of the lock document inside *destination*.
    """

    def __init__(
        self, destination: Path, lock_name: str = LOCK_FILE_NAME
    ) -> None:
        self.destination = destination
        self.path = destination / lock_name

    @property
    def marker_path(self) -> Path:
        return self.path.with_name(self.path.name + MARKER_SUFFIX)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> StateDocument:
        """Load the lock document.

        Returns:
            The parsed document, or an empty one if no lock file exists.

        Raises:
            StateCorruptionError: If the file is unreadable JSON or does
                not match the document schema.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return StateDocument()
        except UnicodeDecodeError as exc:
            raise StateCorruptionError(self.path, str(exc)) from exc

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StateCorruptionError(self.path, str(exc)) from exc
        if not isinstance(data, dict):
            raise StateCorruptionError(
                self.path, "top-level value must be an object"
            )
        try:
            return StateDocument.model_validate(data)
        except ValidationError as exc:
            raise StateCorruptionError(self.path, str(exc)) from exc

    def save(self, document: StateDocument) -> None:
        """Persist *document* atomically under the save marker.

        Raises:
            LockContentionError: If the save marker is already held.
        """
        with self.acquire_marker():
            self.write(document)

    def write(self, document: StateDocument) -> None:
        """Persist *document* atomically; the caller holds the marker.

        The previous lock is backed up first and restored if the write
        fails.
        """
        payload = document.to_json().encode("utf-8")
        backup(self.path)
        try:
            write_atomic(self.path, payload)
        except BaseException:
            if restore(self.path):
                logger.error("Lock write failed; restored %s", self.path)
            raise
        discard_backup(self.path)
        logger.debug(
            "Saved %s (%d files)", self.path, len(document.copied_files)
        )

    @contextmanager
    def acquire_marker(self) -> Iterator[Path]:
        """Hold the exclusive save marker for the duration of the block.

        A sync pass takes the marker before its first write and keeps it
        until the lock document is written.

        Raises:
            LockContentionError: If another run holds the marker.
        """
        marker = self.marker_path
        marker.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(marker, "x", encoding="utf-8") as fh:
                fh.write(str(os.getpid()))
        except FileExistsError:
            logger.warning("Save marker already present: %s", marker)
            raise LockContentionError(marker) from None
        try:
            yield marker
        finally:
            marker.unlink(missing_ok=True)


class LockedState:
    """A ``StateDocument`` shared between workers of one pass.

    All mutations go through methods that take ``self.lock`` for the
    duration of a single map update.
    """

    def __init__(self, document: StateDocument) -> None:
        self._doc = document
        self._retired: list[str] = []
        self.lock = threading.Lock()

    @property
    def document(self) -> StateDocument:
        return self._doc

    def get(self, path: str) -> TrackedFile | None:
        with self.lock:
            return self._doc.copied_files.get(path)

    def get_blob(self, path: str) -> bytes | None:
        with self.lock:
            return self._doc.blobs.get(path)

    def put(self, record: TrackedFile) -> None:
        with self.lock:
            self._doc.copied_files[record.file] = record

    def put_blob(self, path: str, content: bytes) -> None:
        with self.lock:
            self._doc.blobs[path] = content

    def drop_blob(self, path: str) -> None:
        with self.lock:
            self._doc.blobs.pop(path, None)

    def remove(self, path: str) -> TrackedFile | None:
        with self.lock:
            self._doc.blobs.pop(path, None)
            return self._doc.copied_files.pop(path, None)

    def put_generated(self, record: GeneratedFile) -> None:
        with self.lock:
            self._doc.generated_files[record.file] = record

    def put_archive(self, record: ArchiveFile) -> None:
        with self.lock:
            self._doc.archive_files[record.file] = record

    def add_warning(self, message: str) -> None:
        with self.lock:
            if message not in self._doc.warnings:
                self._doc.warnings.append(message)

    def retire(self, path: str) -> None:
        """Note a path whose record or overlay this pass dropped."""
        with self.lock:
            self._retired.append(path)

    @property
    def retired(self) -> list[str]:
        with self.lock:
            return sorted(self._retired)
