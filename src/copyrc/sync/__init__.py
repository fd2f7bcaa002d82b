"""Customization-preserving sync engine.

Public API for mirroring a remote source subtree into a local
destination while never overwriting files a user has edited.

Architecture
------------
Each tracked file is reconciled from three views of its content: the
last-known remote content (its digest in the lock file), the content
on disk, and the newly fetched remote content.  One decision function,
``classify``, turns those views into a status and its side effects.

Modules:

- ``engine``     -- ``SyncEngine``: drives sync, clean and status passes.
- ``classifier`` -- ``classify``: the per-file decision function.
- ``state``      -- ``StateStore``: load/save the ``.copyrc.lock`` file.
- ``models``     -- ``FileStatus``, ``TrackedFile``, ``StateDocument``,
  ``FileResult``, ``SyncReport``: core data contracts.
- ``differ``     -- Edit-script deltas, unified diffs, ``merge3`` preview.
- ``hashing``    -- SHA-256 content digests.
- ``validator``  -- Lock-versus-filesystem consistency check.
- ``reaper``     -- Orphaned managed-file cleanup and untracked scan.
- ``reporter``   -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from copyrc.config_schema import CopyEntry
    from copyrc.providers import default_registry
    from copyrc.sync import SyncEngine, SyncRequest, format_sync_report

    entry = CopyEntry.model_validate({
        "source": {"repo": "github.com/org/repo", "ref": "main",
                   "path": "pkg/util"},
        "destination": {"path": "internal/util"},
    })
    engine = SyncEngine(default_registry())
    report = engine.run(entry, SyncRequest(clean=True))
    print(format_sync_report(report))
"""

from .classifier import Decision, classify
from .engine import SyncEngine, SyncMode, SyncRequest
from .models import (
    FileResult,
    FileStatus,
    StateDocument,
    SyncReport,
    TrackedFile,
    ValidationReport,
)
from .reporter import (
    format_status_report,
    format_sync_report,
    report_to_json,
)
from .state import StateStore

__all__ = [
    "Decision",
    "FileResult",
    "FileStatus",
    "StateDocument",
    "StateStore",
    "SyncEngine",
    "SyncMode",
    "SyncReport",
    "SyncRequest",
    "TrackedFile",
    "ValidationReport",
    "classify",
    "format_status_report",
    "format_sync_report",
    "report_to_json",
]
