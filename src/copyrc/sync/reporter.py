"""Sync report formatting functions.

Provides human-readable and machine-readable output for passes:

- ``format_sync_report`` -- full post-pass summary grouped by status.
- ``format_status_report`` -- compact per-file listing for status passes.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import FileStatus

if TYPE_CHECKING:
    from .models import FileResult, SyncReport

_SECTIONS = [
    (FileStatus.NEW, "New"),
    (FileStatus.MODIFIED, "Updated"),
    (FileStatus.CUSTOMIZED, "Customized (kept local edits)"),
    (FileStatus.DELETED, "Deleted"),
    (FileStatus.LOCAL, "Untracked"),
]

_STATUS_TAGS = {
    FileStatus.NEW: "new",
    FileStatus.UNCHANGED: "ok",
    FileStatus.MODIFIED: "updated",
    FileStatus.CUSTOMIZED: "custom",
    FileStatus.LOCAL: "untracked",
    FileStatus.DELETED: "deleted",
}


def _detail(result: FileResult) -> str:
    parts = []
    if result.change_count:
        parts.append(f"{result.change_count} change(s)")
    if result.replacements:
        parts.append(f"{result.replacements} replacement(s)")
    if result.ignored:
        parts.append("ignored")
    if result.merge_clean is True:
        parts.append("merges cleanly")
    elif result.merge_clean is False:
        parts.append("would conflict")
    return f" ({', '.join(parts)})" if parts else ""


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete report as human-readable text.

    Sections are only included when they contain at least one result.
    Unchanged files are summarised by count only.

    Args:
        report: The completed report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"copyrc {report.mode} for '{report.destination}'"
    if report.cancelled:
        header += " (CANCELLED)"
    lines.append(header)
    if report.commit_hash:
        lines.append(f"Commit: {report.commit_hash}")
    lines.append("")

    if report.up_to_date:
        lines.append("Already up to date.")
        lines.append("")

    by_status: dict[FileStatus, list[FileResult]] = {}
    for r in report.results:
        if r.success and r.status is not None:
            by_status.setdefault(r.status, []).append(r)

    for status, label in _SECTIONS:
        group = by_status.get(status)
        if not group:
            continue
        lines.append(f"{label}:")
        for r in group:
            lines.append(f"  {r.path}{_detail(r)}")
        lines.append("")

    unchanged = len(by_status.get(FileStatus.UNCHANGED, []))
    if unchanged:
        lines.append(f"Unchanged: {unchanged} files")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.path}: {r.error}")
        lines.append("")

    if report.validation is not None and report.validation.issues:
        lines.append("Consistency issues:")
        for issue in report.validation.issues:
            lines.append(f"  [{issue.kind}] {issue.message}")
        lines.append("")

    return "\n".join(lines).rstrip()


def format_status_report(report: SyncReport) -> str:
    """Format one ``[tag] path`` line per file, as ``git status`` does."""
    lines = [f"copyrc {report.mode} for '{report.destination}'"]
    if not report.results:
        lines.append("  (no tracked files)")
    for r in report.results:
        tag = _STATUS_TAGS.get(r.status, "error") if r.success else "error"
        lines.append(f"  [{tag:>9}] {r.path}{_detail(r)}")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a report to a structured dict for JSON serialisation.

    Args:
        report: The pass report.

    Returns:
        Dict with pass info, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "path": r.path,
            "status": r.status.value if r.status else None,
            "success": r.success,
            "written": r.written,
        }
        if r.change_count:
            entry["changes"] = r.change_count
        if r.replacements:
            entry["replacements"] = r.replacements
        if r.ignored:
            entry["ignored"] = True
        if r.merge_clean is not None:
            entry["merge_clean"] = r.merge_clean
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    data: dict = {
        "destination": report.destination,
        "mode": report.mode,
        "commit_hash": report.commit_hash,
        "up_to_date": report.up_to_date,
        "cancelled": report.cancelled,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.results),
            "new": len(report.new),
            "modified": len(report.modified),
            "unchanged": len(report.unchanged),
            "customized": len(report.customized),
            "untracked": len(report.local),
            "deleted": len(report.deleted),
            "errors": len(report.errors),
        },
        "results": results_list,
    }
    if report.validation is not None:
        data["validation"] = {
            "checked": report.validation.checked,
            "issues": [i.model_dump() for i in report.validation.issues],
        }
    return data
