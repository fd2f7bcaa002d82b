"""File handler module: atomic writes, single-file backup/restore, decoding.

Provides the low-level file I/O used by the sync engine and state store.
Every function here is file-scoped; there is no cross-file atomicity.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

from copyrc.naming import BACKUP_SUFFIX, TEMP_SUFFIX

logger = logging.getLogger(__name__)

# =============================================================================
# Atomic Write
# =============================================================================


def write_atomic(path: Path, content: bytes) -> int:
    """Write *content* to *path* so readers never see a partial file.

    Parent directories are created as needed.  Content goes to a
    temporary sibling first and is then moved into place with
    ``os.replace()``.  If anything fails before the rename the temporary
    file is removed and *path* is left untouched.

    Args:
        path: Destination file path.
        content: Bytes to write.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=TEMP_SUFFIX
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(content)


def write_if_changed(path: Path, content: bytes) -> bool:
    """Atomically write *content* unless *path* already holds it.

    Returns:
        ``True`` if the file was written.
    """
    if read_bytes_or_none(path) == content:
        return False
    write_atomic(path, content)
    return True


def read_bytes_or_none(path: Path) -> bytes | None:
    """Return the file's bytes, or ``None`` if it does not exist."""
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


# =============================================================================
# Backup / Restore
# =============================================================================


def backup_path(path: Path) -> Path:
    return path.with_name(path.name + BACKUP_SUFFIX)


def backup(path: Path) -> Path | None:
    """Copy *path* to its sibling backup location.

    Returns:
        The backup path, or ``None`` if *path* does not exist.
    """
    if not path.exists():
        return None
    target = backup_path(path)
    shutil.copy2(path, target)
    logger.debug("Backed up %s -> %s", path, target)
    return target


def restore(path: Path) -> bool:
    """Move the backup of *path* back into place.

    Returns:
        ``True`` if a backup existed and was restored.
    """
    source = backup_path(path)
    if not source.exists():
        return False
    os.replace(source, path)
    logger.debug("Restored %s from backup", path)
    return True


def discard_backup(path: Path) -> None:
    """Remove the backup of *path* if present."""
    backup_path(path).unlink(missing_ok=True)


# =============================================================================
# Decoding
# =============================================================================


def decode_text(raw: bytes) -> str:
    """Decode *raw* bytes to text with automatic encoding detection.

    UTF-8 is tried first; otherwise charset-normalizer picks the best
    candidate.  Undecodable input falls back to UTF-8 with replacement
    characters.
    """
    if not raw:
        return ""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        pass
    result = from_bytes(raw).best()
    if result is None:
        return raw.decode("utf-8", errors="replace")
    return str(result)
