"""Provider that mirrors from a directory on the local filesystem.

Useful for vendoring from a sibling checkout and for exercising the
engine without network access.  The "commit hash" is a digest over
every file path and content under the source path, so it changes
exactly when the mirrored content changes.
"""

from __future__ import annotations

import gzip
import hashlib
import io
import logging
import os
import tarfile
from pathlib import Path

from copyrc.cancel import CancelToken, check
from copyrc.config_schema import SourceConfig
from copyrc.errors import ProviderError

logger = logging.getLogger(__name__)

LOCAL_PREFIXES = ("file://", "/", "./", "../", "~")


class LocalProvider:
    """Serve files from ``source.repo`` interpreted as a directory."""

    name = "local"

    def matches(self, repo: str) -> bool:
        return repo.startswith(LOCAL_PREFIXES)

    def _root(self, source: SourceConfig) -> Path:
        repo = source.repo
        if repo.startswith("file://"):
            repo = repo[len("file://") :]
        root = Path(repo).expanduser() / source.path.strip("/")
        if not root.is_dir():
            raise ProviderError(f"Source directory not found: {root}")
        return root

    def _iter_files(self, root: Path, recursive: bool):
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d != ".git")
            if not recursive:
                dirnames[:] = []
            base = Path(dirpath)
            for name in sorted(filenames):
                yield (base / name).relative_to(root).as_posix()

    def get_commit_hash(
        self, source: SourceConfig, cancel: CancelToken | None = None
    ) -> str:
        root = self._root(source)
        h = hashlib.sha256()
        for rel in self._iter_files(root, recursive=True):
            check(cancel)
            h.update(rel.encode("utf-8") + b"\0")
            h.update(hashlib.sha256((root / rel).read_bytes()).digest())
        digest = h.hexdigest()
        logger.debug("Fingerprinted %s as %s", root, digest[:12])
        return digest

    def list_files(
        self,
        source: SourceConfig,
        commit_hash: str,
        recursive: bool = False,
        cancel: CancelToken | None = None,
    ) -> list[str]:
        check(cancel)
        return list(self._iter_files(self._root(source), recursive))

    def get_file(
        self,
        source: SourceConfig,
        commit_hash: str,
        path: str,
        cancel: CancelToken | None = None,
    ) -> bytes:
        check(cancel)
        try:
            return (self._root(source) / path).read_bytes()
        except OSError as exc:
            raise ProviderError(f"Cannot read {path}: {exc}") from exc

    def get_permalink(
        self, source: SourceConfig, commit_hash: str, path: str
    ) -> str:
        return (self._root(source) / path).resolve().as_uri()

    def get_source_info(self, source: SourceConfig, commit_hash: str) -> str:
        return f"{source.repo}@{commit_hash[:12]}"

    def get_archive_url(self, source: SourceConfig) -> str:
        return self._root(source).resolve().as_uri()

    def get_archive(
        self,
        source: SourceConfig,
        commit_hash: str,
        cancel: CancelToken | None = None,
    ) -> bytes:
        """Build a deterministic gzipped tarball of the source directory."""
        root = self._root(source)
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w") as tar:
            for rel in self._iter_files(root, recursive=True):
                check(cancel)
                data = (root / rel).read_bytes()
                info = tarfile.TarInfo(name=rel)
                info.size = len(data)
                info.mtime = 0
                tar.addfile(info, io.BytesIO(data))
        return gzip.compress(buf.getvalue(), mtime=0)
