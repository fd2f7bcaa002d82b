"""Content addressing for mirrored files."""

from __future__ import annotations

import hashlib
from pathlib import Path


def content_hash(content: bytes) -> str:
    """Return the SHA-256 hex digest of *content*.

    Unlike text-normalising hashes, this is computed over the raw bytes:
    a whitespace-only edit counts as a customization.
    """
    return hashlib.sha256(content).hexdigest()


def file_hash(path: Path) -> str:
    """Return the SHA-256 hex digest of the file at *path*, streamed."""
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(1 << 16), b""):
            h.update(chunk)
    return h.hexdigest()


EMPTY_HASH = content_hash(b"")
