"""Orphan reaper and untracked-file scan.

Walks a destination tree and removes tool-owned files the lock document
no longer references.  Ownership is decided by the managed naming
convention and by the records a pass just retired, so files a user
created by hand are never touched.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator

from copyrc.naming import (
    BACKUP_SUFFIX,
    LOCK_FILE_NAME,
    is_leftover_name,
    is_managed_name,
)
from copyrc.sync.models import FileResult, FileStatus, StateDocument

logger = logging.getLogger(__name__)


def referenced_paths(document: StateDocument) -> set[str]:
    """Every destination-relative path the document keeps alive.

    Ignored entries are excluded: their content lives in the blob store.
    """
    known: set[str] = {LOCK_FILE_NAME}
    for key, entry in document.copied_files.items():
        if not entry.ignored:
            known.add(key)
        if entry.patch_file:
            known.add(entry.patch_file)
    known.update(document.generated_files)
    known.update(a.file for a in document.archive_files.values())
    return known


def walk_files(destination: Path) -> Iterator[str]:
    """Yield POSIX-style relative paths of all files under *destination*.

    Subdirectories holding their own lock file belong to another
    destination and are skipped.
    """
    for dirpath, dirnames, filenames in os.walk(destination):
        base = Path(dirpath)
        dirnames[:] = sorted(
            d
            for d in dirnames
            if d != ".git" and not (base / d / LOCK_FILE_NAME).exists()
        )
        for name in sorted(filenames):
            yield (base / name).relative_to(destination).as_posix()


def _delete(destination: Path, rel: str) -> FileResult:
    try:
        (destination / rel).unlink()
    except FileNotFoundError:
        return FileResult(path=rel, status=FileStatus.DELETED)
    except OSError as exc:
        logger.error("Failed to delete %s: %s", rel, exc)
        return FileResult(
            path=rel, status=FileStatus.DELETED, success=False, error=str(exc)
        )
    logger.info("Deleted %s", rel)
    return FileResult(path=rel, status=FileStatus.DELETED, written=True)


def reap(
    destination: Path,
    document: StateDocument,
    retired: Iterable[str] = (),
) -> list[FileResult]:
    """Delete unreferenced managed files, ignored live files, and leftovers.

    Args:
        destination: Destination root directory.
        document: The lock document after the pass.
        retired: Paths whose records the pass just dropped.  They are
            deleted even when their names lack the ``.copy.`` infix,
            since the lock recorded them as tool-owned.

    Returns:
        One ``DELETED`` result per removed (or failed-to-remove) file.
    """
    if not destination.is_dir():
        return []

    known = referenced_paths(document)
    owned = set(retired) - known
    results: list[FileResult] = []

    for rel in walk_files(destination):
        if rel in known:
            continue
        if is_leftover_name(rel) or rel.endswith(BACKUP_SUFFIX):
            results.append(_delete(destination, rel))
        elif rel in owned or is_managed_name(rel):
            results.append(_delete(destination, rel))

    for key, entry in sorted(document.copied_files.items()):
        if entry.ignored and (destination / key).exists():
            results.append(_delete(destination, key))

    return results


def scan_untracked(
    destination: Path, document: StateDocument
) -> list[FileResult]:
    """Report files that are neither tracked nor managed as ``LOCAL``."""
    if not destination.is_dir():
        return []
    known = referenced_paths(document)
    known.add(LOCK_FILE_NAME + ".lock")
    results = []
    for rel in walk_files(destination):
        if rel in known or is_managed_name(rel) or is_leftover_name(rel):
            continue
        if rel.endswith(BACKUP_SUFFIX):
            continue
        results.append(FileResult(path=rel, status=FileStatus.LOCAL))
    return results
