"""Consistency validator.

Checks that the destination tree matches the lock document.  Drift is
reported as ``ValidationIssue`` entries and never repaired here; a forced
resync is how a user heals it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from copyrc.errors import NamingConventionError
from copyrc.naming import follows_convention, is_copy_name
from copyrc.sync.hashing import file_hash
from copyrc.sync.models import (
    StateDocument,
    ValidationIssue,
    ValidationReport,
)

logger = logging.getLogger(__name__)


def validate(destination: Path, document: StateDocument) -> ValidationReport:
    """Compare every tracked entry in *document* with the filesystem.

    Customized entries (non-empty delta) may legitimately differ from
    their recorded digest, and ignored entries have no live file, so
    neither is digest-checked.

    Raises:
        NamingConventionError: If a tracked path lacks the copy marker.
            The reaper relies on the convention, so this is fatal.
    """
    issues: list[ValidationIssue] = []
    checked = 0

    for key, entry in sorted(document.copied_files.items()):
        if not is_copy_name(key):
            raise NamingConventionError(
                f"Tracked path does not follow the naming convention: {key}"
            )
        checked += 1
        if entry.ignored:
            continue

        if entry.patch_file:
            if not follows_convention(entry.patch_file):
                raise NamingConventionError(
                    "Overlay path does not follow the naming convention: "
                    f"{entry.patch_file}"
                )
            if not (destination / entry.patch_file).is_file():
                issues.append(
                    ValidationIssue(
                        path=entry.patch_file,
                        kind="patch_missing",
                        message=f"overlay file missing: {entry.patch_file}",
                    )
                )

        if entry.diff_delta:
            continue

        live = destination / key
        if not live.is_file():
            issues.append(
                ValidationIssue(
                    path=key,
                    kind="missing",
                    message=f"tracked file missing: {key}",
                )
            )
            continue
        if entry.remote_hash and file_hash(live) != entry.remote_hash:
            issues.append(
                ValidationIssue(
                    path=key,
                    kind="hash_mismatch",
                    message=f"content does not match lock file: {key}",
                )
            )

    for key in sorted(document.generated_files):
        checked += 1
        if not (destination / key).is_file():
            issues.append(
                ValidationIssue(
                    path=key,
                    kind="generated_missing",
                    message=f"generated file missing: {key}",
                )
            )

    for key, archive in sorted(document.archive_files.items()):
        checked += 1
        target = destination / archive.file
        if not target.is_file():
            issues.append(
                ValidationIssue(
                    path=key,
                    kind="archive_missing",
                    message=f"archive missing: {archive.file}",
                )
            )
        elif file_hash(target) != archive.hash:
            issues.append(
                ValidationIssue(
                    path=key,
                    kind="archive_mismatch",
                    message=(
                        f"archive does not match lock file: {archive.file}"
                    ),
                )
            )

    for issue in issues:
        logger.warning("Validation: %s", issue.message)
    return ValidationReport(checked=checked, issues=issues)
