"""Reconciliation engine that drives one pass over one destination.

The ``SyncEngine`` ties together providers, the classifier, the atomic
writer, the lock file, the validator, and the reaper.  A sync pass:

1. Loads the lock file (corruption aborts the pass).
2. Resolves the remote commit; if it and the source arguments match
   the lock file, and the pass is not forced, stops with no writes.
3. Lists candidate files.
4. Takes the save marker, then classifies each file, optionally on a
   bounded thread pool.
5. Drops records whose remote path left the candidate set.
6. Writes the lock file and releases the marker.
7. On request, runs the validator and then the reaper.

Error handling is per-file: a failure is recorded on that file's
``FileResult`` and the remaining files continue.  Pass-scoped failures
(corrupt lock, provider resolution, lock contention) propagate before
any writes for the pass.
"""

from __future__ import annotations

import fnmatch
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Callable

from copyrc.cancel import CancelToken
from copyrc.config_schema import (
    ArchiveEntry,
    CopyEntry,
    CopyOptions,
    SourceConfig,
)
from copyrc.errors import (
    ConfigurationChangedError,
    SyncCancelledError,
    StaleStateError,
)
from copyrc.file_handler import (
    decode_text,
    read_bytes_or_none,
    write_atomic,
    write_if_changed,
)
from copyrc.naming import to_copy_name, to_patch_name
from copyrc.providers.base import Provider, ProviderRegistry
from copyrc.sync.classifier import classify
from copyrc.sync.differ import generate_diff, preview_merge
from copyrc.sync.hashing import content_hash, file_hash
from copyrc.sync.models import (
    ArchiveFile,
    FileResult,
    FileStatus,
    GeneratedFile,
    SourceArgs,
    StateDocument,
    SyncReport,
    TrackedFile,
)
from copyrc.sync.reaper import reap, scan_untracked
from copyrc.sync.state import LockedState, StateStore, utc_now
from copyrc.sync.validator import validate
from copyrc.transform import add_file_header, apply_replacements

logger = logging.getLogger(__name__)

EMBED_FILE_NAME = "embed.copy.go"


class SyncMode(str, Enum):
    """Kind of pass to run."""

    SYNC = "sync"
    CLEAN = "clean"
    LOCAL_STATUS = "local_status"
    REMOTE_STATUS = "remote_status"


@dataclass(frozen=True)
class SyncRequest:
    """Options for one pass.

    Attributes:
        mode: Which pass to run.
        force: Ignore the fingerprint short-circuit, and let status
            passes run even when the source arguments changed.
        clean: After a sync pass, also run the validator and reaper.
        concurrency: Worker threads for per-file work; ``1`` runs
            files sequentially.
        cancel: Optional token; once cancelled no new file is started.
    """

    mode: SyncMode = SyncMode.SYNC
    force: bool = False
    clean: bool = False
    concurrency: int = 1
    cancel: CancelToken = field(default_factory=CancelToken)


def matches_any(path: str, patterns: list[str]) -> bool:
    """Match *path* or its basename against fnmatch-style globs."""
    name = PurePosixPath(path).name
    return any(
        fnmatch.fnmatchcase(candidate, pattern)
        for pattern in patterns
        for candidate in (path, name)
    )


def copy_args(entry: CopyEntry) -> SourceArgs:
    """The source arguments fingerprinted for a copy entry."""
    return SourceArgs(
        src_repo=entry.source.repo,
        src_ref=entry.source.ref,
        src_path=entry.source.path,
        copy_args=entry.options.model_dump(mode="json"),
    )


def archive_args(entry: ArchiveEntry) -> SourceArgs:
    """The source arguments fingerprinted for an archive entry."""
    return SourceArgs(
        src_repo=entry.source.repo,
        src_ref=entry.source.ref,
        src_path=entry.source.path,
        archive_args=entry.options.model_dump(mode="json"),
    )


def repo_name(repo: str) -> str:
    """Last path component of a repository locator, without ``.git``."""
    name = PurePosixPath(repo.rstrip("/")).name
    return name.removesuffix(".git") or "archive"


def go_embed_source(archive_file: str, package: str) -> bytes:
    """Render a Go file that embeds *archive_file*."""
    package = re.sub(r"[^0-9a-zA-Z_]", "_", package).lower()
    if not package or package[0].isdigit():
        package = f"_{package}"
    return (
        "// Code generated by copyrc. DO NOT EDIT.\n"
        "// See .copyrc.lock for more details.\n"
        "\n"
        f"package {package}\n"
        "\n"
        'import _ "embed"\n'
        "\n"
        f"//go:embed {archive_file}\n"
        "var Data []byte\n"
    ).encode("utf-8")


@dataclass
class _PassContext:
    """Everything a per-file worker needs for one copy pass."""

    destination: Path
    provider: Provider
    source: SourceConfig
    options: CopyOptions
    commit_hash: str
    source_info: str
    state: LockedState
    cancel: CancelToken


class SyncEngine:
    """Run sync, clean, and status passes.

    Args:
        registry: Providers available to this engine.
        base_dir: Directory relative destination paths resolve against
            (typically the directory holding the config file).
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        base_dir: Path | None = None,
    ) -> None:
        self.registry = registry
        self.base_dir = base_dir or Path.cwd()

    def destination_for(self, path: str) -> Path:
        dest = Path(path).expanduser()
        return dest if dest.is_absolute() else self.base_dir / dest

    # ------------------------------------------------------------------
    # Main entry points
    # ------------------------------------------------------------------

    def run(
        self, entry: CopyEntry, request: SyncRequest | None = None
    ) -> SyncReport:
        """Run one pass for a copy entry.

        Raises:
            StateCorruptionError: The lock file cannot be parsed.
            ConfigurationChangedError: A status pass found changed
                source arguments (and the pass is not forced).
            StaleStateError: A remote status pass found a new commit.
            ProviderError: The remote commit or listing is unavailable.
            LockContentionError: Another run holds the save marker.
            NamingConventionError: A tracked path lacks its marker
                during validation.
        """
        request = request or SyncRequest()
        started_at = utc_now()
        destination = self.destination_for(entry.destination.path)
        store = StateStore(destination)
        document = store.load()
        args = copy_args(entry)

        if request.mode == SyncMode.CLEAN:
            return self._clean(destination, document, request, started_at)
        if request.mode in (SyncMode.LOCAL_STATUS, SyncMode.REMOTE_STATUS):
            return self._status(
                entry.source, destination, store, document, args, request,
                started_at,
            )

        provider = self.registry.for_repo(entry.source.repo)
        commit_hash = provider.get_commit_hash(entry.source, request.cancel)

        if self._up_to_date(store, document, commit_hash, args, request):
            logger.info(
                "%s is up to date with %s", destination, commit_hash[:12]
            )
            return self._finish(
                destination, document, request, started_at, [],
                commit_hash=commit_hash, up_to_date=True,
            )

        candidates = self._candidates(provider, entry, commit_hash, request)
        logger.info(
            "Syncing %d file(s) from %s@%s into %s",
            len(candidates),
            entry.source.repo,
            commit_hash[:12],
            destination,
        )

        document.warnings = []
        state = LockedState(document)
        ctx = _PassContext(
            destination=destination,
            provider=provider,
            source=entry.source,
            options=entry.options,
            commit_hash=commit_hash,
            source_info=provider.get_source_info(entry.source, commit_hash),
            state=state,
            cancel=request.cancel,
        )
        with store.acquire_marker():
            results = self._process_all(
                candidates, lambda path: self._sync_file(ctx, path), request
            )

            keep = {to_copy_name(path) for path in candidates}
            for key in sorted(set(document.copied_files) - keep):
                logger.info("No longer in source: %s", key)
                record = state.remove(key)
                state.retire(key)
                if record is not None and record.patch_file:
                    state.retire(record.patch_file)

            for result in results:
                if not result.success:
                    state.add_warning(f"{result.path}: {result.error}")
            if request.cancel.cancelled:
                state.add_warning(
                    f"pass cancelled after {len(results)} of "
                    f"{len(candidates)} file(s)"
                )
            self._stamp(document, commit_hash, args, bool(document.warnings))
            store.write(document)

        return self._finish(
            destination, document, request, started_at, results,
            commit_hash=commit_hash, retired=state.retired,
        )

    def run_archive(
        self, entry: ArchiveEntry, request: SyncRequest | None = None
    ) -> SyncReport:
        """Run one pass for an archive entry.

        The archive lands in ``<dest>/<repo>/<repo>.copy.tar.gz`` with
        its own lock file in ``<dest>/<repo>``.
        """
        request = request or SyncRequest()
        started_at = utc_now()
        name = repo_name(entry.source.repo)
        destination = self.destination_for(entry.destination.path) / name
        store = StateStore(destination)
        document = store.load()
        args = archive_args(entry)

        if request.mode == SyncMode.CLEAN:
            return self._clean(destination, document, request, started_at)
        if request.mode in (SyncMode.LOCAL_STATUS, SyncMode.REMOTE_STATUS):
            return self._status(
                entry.source, destination, store, document, args, request,
                started_at,
            )

        provider = self.registry.for_repo(entry.source.repo)
        commit_hash = provider.get_commit_hash(entry.source, request.cancel)
        if self._up_to_date(store, document, commit_hash, args, request):
            logger.info(
                "%s is up to date with %s", destination, commit_hash[:12]
            )
            return self._finish(
                destination, document, request, started_at, [],
                commit_hash=commit_hash, up_to_date=True,
            )

        state = LockedState(document)
        data = provider.get_archive(entry.source, commit_hash, request.cancel)
        archive_rel = f"{name}.copy.tar.gz"

        with store.acquire_marker():
            results = [
                self._write_archive(destination, archive_rel, data, state)
            ]

            if entry.options.go_embed:
                embed = go_embed_source(archive_rel, name)
                written = write_if_changed(
                    destination / EMBED_FILE_NAME, embed
                )
                existed = EMBED_FILE_NAME in document.generated_files
                state.put_generated(
                    GeneratedFile(
                        file=EMBED_FILE_NAME,
                        last_updated=utc_now(),
                        reference_file=archive_rel,
                    )
                )
                results.append(
                    FileResult(
                        path=EMBED_FILE_NAME,
                        status=self._write_status(existed, written),
                        written=written,
                    )
                )

            self._stamp(
                document, commit_hash, args, request.cancel.cancelled
            )
            store.write(document)

        return self._finish(
            destination, document, request, started_at, results,
            commit_hash=commit_hash,
        )

    # ------------------------------------------------------------------
    # Pass helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _up_to_date(
        store: StateStore,
        document: StateDocument,
        commit_hash: str,
        args: SourceArgs,
        request: SyncRequest,
    ) -> bool:
        if request.force or not store.exists():
            return False
        return (
            document.commit_hash == commit_hash
            and document.args_hash == args.fingerprint()
        )

    @staticmethod
    def _stamp(
        document: StateDocument,
        commit_hash: str,
        args: SourceArgs,
        incomplete: bool,
    ) -> None:
        # An incomplete pass must not satisfy the short-circuit next time
        document.commit_hash = "" if incomplete else commit_hash
        document.args = args
        document.args_hash = args.fingerprint()
        document.last_updated = utc_now()

    def _candidates(
        self,
        provider: Provider,
        entry: CopyEntry,
        commit_hash: str,
        request: SyncRequest,
    ) -> list[str]:
        files = provider.list_files(
            entry.source,
            commit_hash,
            recursive=entry.options.recursive,
            cancel=request.cancel,
        )
        if entry.options.file_patterns:
            files = [
                f for f in files
                if matches_any(f, entry.options.file_patterns)
            ]
        return sorted(set(files))

    def _process_all(
        self,
        paths: list[str],
        worker: Callable[[str], FileResult],
        request: SyncRequest,
    ) -> list[FileResult]:
        """Run *worker* for every path, collecting per-file results.

        Once ``request.cancel`` is set no further path is started; work
        already running finishes.
        """

        def guarded(path: str) -> FileResult | None:
            if request.cancel.cancelled:
                return None
            try:
                return worker(path)
            except SyncCancelledError:
                return None
            except Exception as exc:
                logger.error("Error syncing %s: %s", path, exc)
                return FileResult(
                    path=to_copy_name(path), success=False, error=str(exc)
                )

        if request.concurrency <= 1 or len(paths) <= 1:
            outcomes = [guarded(path) for path in paths]
        else:
            with ThreadPoolExecutor(
                max_workers=request.concurrency,
                thread_name_prefix="copyrc",
            ) as pool:
                outcomes = list(pool.map(guarded, paths))

        results = [r for r in outcomes if r is not None]
        if request.cancel.cancelled:
            logger.warning(
                "Pass cancelled after %d of %d file(s)",
                len(results),
                len(paths),
            )
        return sorted(results, key=lambda r: r.path)

    def _finish(
        self,
        destination: Path,
        document: StateDocument,
        request: SyncRequest,
        started_at: str,
        results: list[FileResult],
        *,
        commit_hash: str = "",
        up_to_date: bool = False,
        retired: list[str] | None = None,
    ) -> SyncReport:
        validation = None
        if request.clean and not request.cancel.cancelled:
            validation = validate(destination, document)
            results = results + reap(destination, document, retired or ())
        return SyncReport(
            destination=str(destination),
            mode=request.mode.value,
            results=results,
            started_at=started_at,
            completed_at=utc_now(),
            commit_hash=commit_hash,
            up_to_date=up_to_date,
            cancelled=request.cancel.cancelled,
            validation=validation,
        )

    # ------------------------------------------------------------------
    # Per-file work
    # ------------------------------------------------------------------

    def _fetch(self, ctx: _PassContext, remote_path: str) -> tuple[bytes, int]:
        """Fetch and transform one remote file."""
        content = ctx.provider.get_file(
            ctx.source, ctx.commit_hash, remote_path, ctx.cancel
        )
        content, count = apply_replacements(
            content, remote_path, ctx.options.replacements
        )
        if not ctx.options.skip_header_comments:
            content = add_file_header(content, remote_path, ctx.source_info)
        return content, count

    def _sync_file(self, ctx: _PassContext, remote_path: str) -> FileResult:
        local = to_copy_name(remote_path)
        content, replacements = self._fetch(ctx, remote_path)
        source_info = ctx.source_info
        permalink = ctx.provider.get_permalink(
            ctx.source, ctx.commit_hash, remote_path
        )
        now = utc_now()

        if matches_any(remote_path, ctx.options.ignore_files):
            return self._sync_ignored(
                ctx, local, remote_path, content, replacements,
                source_info, permalink, now,
            )

        live = ctx.destination / local
        on_disk = read_bytes_or_none(live)
        record = ctx.state.get(local)
        baseline = ctx.state.get_blob(local)
        if baseline is None and record and record.remote_hash == content_hash(
            content
        ):
            baseline = content

        decision = classify(
            local,
            on_disk,
            record,
            content,
            source=source_info,
            permalink=permalink,
            now=now,
        )
        logger.debug("%s: %s", local, decision.status.value)

        written = False
        if decision.write is not None:
            write_atomic(live, decision.write)
            written = True
            logger.info("Wrote %s (%s)", local, decision.status.value)

        merge_clean = None
        new_record = decision.record
        if decision.status == FileStatus.CUSTOMIZED and new_record:
            on_disk_text = decode_text(on_disk or b"")
            remote_text = decode_text(content)
            patch_file = self._write_overlay(
                ctx.destination, local, remote_path, remote_text, on_disk_text
            )
            if baseline is not None:
                _, conflicts = preview_merge(
                    decode_text(baseline), on_disk_text, remote_text
                )
                merge_clean = not conflicts
            ctx.state.put_blob(local, content)
            new_record = new_record.model_copy(
                update={"patch_file": patch_file}
            )
            logger.info(
                "Preserved customized %s (%d change(s))",
                local,
                new_record.change_count,
            )
        else:
            ctx.state.drop_blob(local)

        if record and record.patch_file and new_record is not None:
            if new_record.patch_file != record.patch_file:
                ctx.state.retire(record.patch_file)

        if new_record is not None:
            ctx.state.put(
                new_record.model_copy(
                    update={
                        "remote_path": remote_path,
                        "replacements": replacements,
                        "ignored": False,
                    }
                )
            )

        return FileResult(
            path=local,
            status=decision.status,
            written=written,
            change_count=decision.change_count,
            replacements=replacements,
            merge_clean=merge_clean,
        )

    @staticmethod
    def _write_overlay(
        destination: Path,
        local: str,
        remote_path: str,
        remote_text: str,
        on_disk_text: str,
    ) -> str | None:
        """Write the ``.patch.`` overlay for a customized file.

        Returns:
            The overlay's relative path, or ``None`` when the on-disk
            content equals the remote content and no overlay is needed.
        """
        diff = generate_diff(
            remote_text, on_disk_text, f"a/{remote_path}", f"b/{local}"
        )
        if not diff:
            return None
        patch_rel = to_patch_name(local)
        if write_if_changed(destination / patch_rel, diff.encode("utf-8")):
            logger.debug("Updated overlay %s", patch_rel)
        return patch_rel

    def _sync_ignored(
        self,
        ctx: _PassContext,
        local: str,
        remote_path: str,
        content: bytes,
        replacements: int,
        source_info: str,
        permalink: str,
        now: str,
    ) -> FileResult:
        """Keep an ignored file's content only in the blob store."""
        record = ctx.state.get(local)
        if record and record.patch_file:
            ctx.state.retire(record.patch_file)
        incoming_hash = content_hash(content)
        if record is None:
            status = FileStatus.NEW
        elif record.remote_hash == incoming_hash:
            status = FileStatus.UNCHANGED
        else:
            status = FileStatus.MODIFIED

        ctx.state.put_blob(local, content)
        ctx.state.put(
            TrackedFile(
                file=local,
                remote_path=remote_path,
                source=source_info,
                permalink=permalink,
                last_updated=now,
                remote_hash=incoming_hash,
                ignored=True,
                replacements=replacements,
            )
        )
        logger.debug("%s: ignored (%s)", local, status.value)
        return FileResult(
            path=local,
            status=status,
            replacements=replacements,
            ignored=True,
        )

    @staticmethod
    def _write_status(existed: bool, written: bool) -> FileStatus:
        if not existed:
            return FileStatus.NEW
        return FileStatus.MODIFIED if written else FileStatus.UNCHANGED

    def _write_archive(
        self,
        destination: Path,
        archive_rel: str,
        data: bytes,
        state: LockedState,
    ) -> FileResult:
        existed = archive_rel in state.document.archive_files
        written = write_if_changed(destination / archive_rel, data)
        state.put_archive(
            ArchiveFile(file=archive_rel, hash=content_hash(data))
        )
        if written:
            logger.info("Wrote archive %s (%d bytes)", archive_rel, len(data))
        return FileResult(
            path=archive_rel,
            status=self._write_status(existed, written),
            written=written,
        )

    # ------------------------------------------------------------------
    # Clean and status passes
    # ------------------------------------------------------------------

    def _clean(
        self,
        destination: Path,
        document: StateDocument,
        request: SyncRequest,
        started_at: str,
    ) -> SyncReport:
        """Validate then reap, without contacting the provider."""
        validation = validate(destination, document)
        results = reap(destination, document)
        results += scan_untracked(destination, document)
        return SyncReport(
            destination=str(destination),
            mode=request.mode.value,
            results=results,
            started_at=started_at,
            completed_at=utc_now(),
            commit_hash=document.commit_hash,
            validation=validation,
        )

    def _status(
        self,
        source: SourceConfig,
        destination: Path,
        store: StateStore,
        document: StateDocument,
        args: SourceArgs,
        request: SyncRequest,
        started_at: str,
    ) -> SyncReport:
        """Classify tracked files against the lock without fetching.

        Raises:
            ConfigurationChangedError: The source arguments changed
                since the lock was written (unless forced).
            StaleStateError: For remote status, the lock is missing or
                the remote commit moved.
        """
        if (
            store.exists()
            and not request.force
            and document.args_hash != args.fingerprint()
        ):
            raise ConfigurationChangedError(
                f"Configuration for {destination} changed since the last "
                "sync; run a sync (or pass --force) first"
            )

        commit_hash = document.commit_hash
        if request.mode == SyncMode.REMOTE_STATUS:
            provider = self.registry.for_repo(source.repo)
            remote_commit = provider.get_commit_hash(source, request.cancel)
            if not store.exists() or remote_commit != commit_hash:
                logger.error(
                    "%s is stale: lock has %s, remote has %s",
                    destination,
                    commit_hash[:12] or "nothing",
                    remote_commit[:12],
                )
                raise StaleStateError(
                    f"{destination} is out of date with {source.repo}@"
                    f"{source.ref} ({remote_commit[:12]})"
                )

        results: list[FileResult] = []
        for key, record in sorted(document.copied_files.items()):
            if record.ignored:
                results.append(
                    FileResult(
                        path=key, status=FileStatus.UNCHANGED, ignored=True
                    )
                )
                continue
            on_disk = read_bytes_or_none(destination / key)
            decision = classify(key, on_disk, record, None)
            results.append(
                FileResult(
                    path=key,
                    status=decision.status,
                    change_count=record.change_count,
                    replacements=record.replacements,
                )
            )

        for key, archive in sorted(document.archive_files.items()):
            target = destination / archive.file
            matches = target.is_file() and file_hash(target) == archive.hash
            results.append(
                FileResult(
                    path=key,
                    status=(
                        FileStatus.UNCHANGED
                        if matches
                        else FileStatus.CUSTOMIZED
                    ),
                )
            )

        results += scan_untracked(destination, document)
        return SyncReport(
            destination=str(destination),
            mode=request.mode.value,
            results=results,
            started_at=started_at,
            completed_at=utc_now(),
            commit_hash=commit_hash,
        )
