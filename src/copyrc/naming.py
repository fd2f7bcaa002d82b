"""Managed-file naming convention.

Every file copyrc writes into a destination tree carries a marker in its
name so the validator and reaper can tell tool-owned files apart from
files the user created:

* pristine mirror: ``name.copy.ext`` (``name.copy`` without extension)
* customization overlay: ``name.patch.ext`` (``name.patch``)

Only the dotted infix (``.copy.`` / ``.patch.``) marks a file as
tool-owned by its name alone.  The extension-less forms are ambiguous
with names users pick themselves (``0001-fix.patch``), so such a file
is owned only while the lock document records it.

Temporary files left behind by an interrupted atomic write end in
``TEMP_SUFFIX`` and backups in ``BACKUP_SUFFIX``.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

COPY_MARKER = "copy"
PATCH_MARKER = "patch"

LOCK_FILE_NAME = ".copyrc.lock"
TEMP_SUFFIX = ".copyrc-tmp"
BACKUP_SUFFIX = ".copyrc-bak"

# Convention form, as produced by to_copy_name: "a.copy.go", "Makefile.copy"
_COPY_RE = re.compile(r"\.copy(?=\.|$)")
_PATCH_RE = re.compile(r"\.patch(?=\.|$)")

# Ownership by name alone: the marker must sit between two dots
_COPY_INFIX = f".{COPY_MARKER}."
_PATCH_INFIX = f".{PATCH_MARKER}."


def to_copy_name(remote_path: str) -> str:
    """Map a remote relative path to its pristine-mirror local path.

    ``"src/main.go"`` -> ``"src/main.copy.go"``;
    ``"Makefile"`` -> ``"Makefile.copy"``;
    ``".gitignore"`` -> ``".gitignore.copy"``.
    """
    p = PurePosixPath(remote_path)
    name = p.name
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        new_name = f"{name}.{COPY_MARKER}"
    else:
        new_name = f"{stem}.{COPY_MARKER}.{ext}"
    return str(p.with_name(new_name))


def to_patch_name(copy_path: str) -> str:
    """Derive the overlay path by replacing the first ``.copy`` marker.

    Raises:
        ValueError: If *copy_path* does not carry the copy marker.
    """
    p = PurePosixPath(copy_path)
    new_name, count = _COPY_RE.subn(f".{PATCH_MARKER}", p.name, count=1)
    if count == 0:
        raise ValueError(
            f"Path must contain the .{COPY_MARKER} marker: {copy_path}"
        )
    return str(p.with_name(new_name))


def is_copy_name(path: str) -> bool:
    """Return ``True`` if *path* has the shape ``to_copy_name`` produces."""
    return bool(_COPY_RE.search(PurePosixPath(path).name))


def is_patch_name(path: str) -> bool:
    return bool(_PATCH_RE.search(PurePosixPath(path).name))


def follows_convention(path: str) -> bool:
    """Return ``True`` if a recorded path is a valid mirror or overlay name."""
    return is_copy_name(path) or is_patch_name(path)


def is_managed_name(path: str) -> bool:
    """Return ``True`` if the name alone marks *path* as tool-owned.

    Requires the ``.copy.`` or ``.patch.`` infix; ``notes.copy`` and
    ``0001-fix.patch`` are not managed unless a lock document records
    them.
    """
    name = PurePosixPath(path).name
    return _COPY_INFIX in name or _PATCH_INFIX in name


def is_leftover_name(path: str) -> bool:
    """Return ``True`` for temp files from interrupted atomic writes."""
    return PurePosixPath(path).name.endswith(TEMP_SUFFIX)
