"""Shared pytest fixtures for copyrc tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from copyrc.config_schema import CopyEntry, SourceConfig
from copyrc.errors import ProviderError
from copyrc.providers.base import ProviderRegistry
from copyrc.sync.engine import SyncEngine


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that talk to the real GitHub API",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring network access to GitHub"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


class FakeProvider:
    """In-memory provider serving ``files`` at ``commit``.

    Tests mutate ``files`` and ``commit`` between passes to simulate
    upstream changes.  ``fail_on`` names paths whose fetch raises.
    """

    name = "fake"

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files: dict[str, bytes] = dict(files or {})
        self.commit = "c" * 40
        self.fail_on: set[str] = set()
        self.fetched: list[str] = []
        self.archive = b"fake-archive-bytes"

    def matches(self, repo: str) -> bool:
        return repo.startswith("fake/")

    def get_commit_hash(self, source, cancel=None) -> str:
        return self.commit

    def list_files(self, source, commit_hash, recursive=False, cancel=None):
        files = sorted(self.files)
        if not recursive:
            files = [f for f in files if "/" not in f]
        return files

    def get_file(self, source, commit_hash, path, cancel=None) -> bytes:
        if cancel is not None:
            cancel.raise_if_cancelled()
        self.fetched.append(path)
        if path in self.fail_on:
            raise ProviderError(f"simulated failure for {path}")
        return self.files[path]

    def get_permalink(self, source, commit_hash, path) -> str:
        return f"fake://{commit_hash}/{path}"

    def get_source_info(self, source, commit_hash) -> str:
        return f"{source.repo}@{commit_hash}"

    def get_archive_url(self, source) -> str:
        return f"fake://{source.repo}/archive.tar.gz"

    def get_archive(self, source, commit_hash, cancel=None) -> bytes:
        return self.archive


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider({"hello.txt": b"hello\n", "main.go": b"package x\n"})


@pytest.fixture
def engine(provider: FakeProvider, tmp_path: Path) -> SyncEngine:
    return SyncEngine(ProviderRegistry([provider]), base_dir=tmp_path)


@pytest.fixture
def dest(tmp_path: Path) -> Path:
    return tmp_path / "vendor"


@pytest.fixture
def make_entry():
    """Factory for copy entries that target the fake provider."""

    def _make(**options) -> CopyEntry:
        options.setdefault("skip_header_comments", True)
        return CopyEntry(
            source=SourceConfig(repo="fake/repo", ref="main", path="src"),
            destination={"path": "vendor"},
            options=options,
        )

    return _make
