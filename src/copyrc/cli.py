"""Command-line entry point for copyrc.

Loads ``.env`` and the YAML config, resolves settings, then runs one
pass per configured copy and archive entry and prints a report.  Log
records go to stderr; reports go to stdout.

Exit codes: 0 on success, 1 if any file or pass failed, 2 for
configuration errors.
"""

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from . import __version__
from .cancel import CancelToken
from .config import load_settings
from .config_loader import load_config_file, load_hierarchical_config
from .config_schema import CopyEntry, CopyrcConfig, build_config
from .errors import CopyrcError
from .logger import setup_logging
from .providers import default_registry
from .sync import (
    SyncEngine,
    SyncMode,
    SyncReport,
    SyncRequest,
    format_status_report,
    format_sync_report,
    report_to_json,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="copyrc",
        description="Mirror files from a remote source without "
        "overwriting local customizations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync every entry in ./.copyrc.yaml
  copyrc

  # Use an explicit config file and remove orphaned files afterwards
  copyrc --config tools/.copyrc.yaml --prune

  # Mirror one directory without a config file
  copyrc --repo github.com/org/repo --ref v1.2.0 --path pkg/util \\
         --destination internal/util

  # Show which files are customized, without fetching anything
  copyrc --status

  # Fail if the remote has moved past the lock file (useful in CI)
  copyrc --remote-status

Environment:
  GITHUB_TOKEN, COPYRC_API_URL, COPYRC_CONCURRENCY, COPYRC_TIMEOUT,
  COPYRC_DEBUG, COPYRC_CONFIG, LOG_LEVEL (a .env file is also read).
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Config file (default: discovered .copyrc.yaml / .copyrc.yml)",
    )

    single = parser.add_argument_group("single entry (instead of a config)")
    single.add_argument("--repo", help="Source repository locator")
    single.add_argument("--ref", default="main", help="Source ref")
    single.add_argument("--path", default="", help="Source subpath")
    single.add_argument("--destination", help="Destination directory")
    single.add_argument(
        "--recursive", action="store_true", help="Mirror subdirectories"
    )
    single.add_argument(
        "--ignore",
        action="append",
        default=[],
        metavar="GLOB",
        help="Keep matching files only in the lock file (repeatable)",
    )
    single.add_argument(
        "--pattern",
        action="append",
        default=[],
        metavar="GLOB",
        help="Only mirror matching files (repeatable)",
    )
    single.add_argument(
        "--skip-header-comments",
        action="store_true",
        help="Do not prepend generated-by header comments",
    )

    modes = parser.add_argument_group("modes")
    exclusive = modes.add_mutually_exclusive_group()
    exclusive.add_argument(
        "--clean",
        action="store_true",
        help="Validate and remove orphaned managed files; no fetch",
    )
    exclusive.add_argument(
        "--status",
        action="store_true",
        help="Report local status against the lock file; no fetch",
    )
    exclusive.add_argument(
        "--remote-status",
        action="store_true",
        help="Fail if the remote commit differs from the lock file",
    )
    modes.add_argument(
        "--prune",
        action="store_true",
        help="After syncing, validate and remove orphaned files",
    )
    modes.add_argument(
        "--force",
        action="store_true",
        help="Run a full pass even if nothing appears to have changed",
    )
    modes.add_argument(
        "--async",
        dest="async_",
        action="store_true",
        help="Process files concurrently",
    )
    modes.add_argument(
        "--concurrency", type=int, help="Worker threads for --async"
    )

    parser.add_argument("--token", help="GitHub token (prefer GITHUB_TOKEN)")
    parser.add_argument("--api-url", help="GitHub API base URL")
    parser.add_argument(
        "--timeout", type=float, help="HTTP read timeout in seconds"
    )
    parser.add_argument(
        "--json", action="store_true", help="Print reports as JSON"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--debug-format",
        choices=["text", "json"],
        default="text",
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"copyrc version {__version__}",
    )
    return parser


def load_run_config(args: argparse.Namespace) -> tuple[CopyrcConfig, Path]:
    """Build the config and the directory destinations resolve against.

    Raises:
        ValueError: For invalid values (including schema violations).
        OSError: If an explicit config file cannot be read.
        yaml.YAMLError: If a config file is not valid YAML.
    """
    if args.repo:
        if not args.destination:
            raise ValueError("--destination is required with --repo")
        entry = CopyEntry.model_validate(
            {
                "source": {
                    "repo": args.repo,
                    "ref": args.ref,
                    "path": args.path,
                },
                "destination": {"path": args.destination},
                "options": {
                    "recursive": args.recursive,
                    "ignore_files": args.ignore,
                    "file_patterns": args.pattern,
                    "skip_header_comments": args.skip_header_comments,
                },
            }
        )
        return CopyrcConfig(copies=[entry]), Path.cwd()

    if args.config:
        raw = load_config_file(args.config)
        return build_config(raw), args.config.resolve().parent

    return build_config(load_hierarchical_config()), Path.cwd()


def _request_for(
    args: argparse.Namespace, config: CopyrcConfig, concurrency: int
) -> SyncRequest:
    flags = config.flags
    if args.clean or flags.clean:
        mode = SyncMode.CLEAN
    elif args.remote_status or flags.remote_status:
        mode = SyncMode.REMOTE_STATUS
    elif args.status or flags.status:
        mode = SyncMode.LOCAL_STATUS
    else:
        mode = SyncMode.SYNC
    use_async = args.async_ or flags.async_
    return SyncRequest(
        mode=mode,
        force=args.force or flags.force,
        clean=args.prune,
        concurrency=concurrency if use_async else 1,
        cancel=CancelToken(),
    )


def _print_reports(
    reports: list[SyncReport], mode: SyncMode, as_json: bool
) -> None:
    if as_json:
        print(json.dumps([report_to_json(r) for r in reports], indent=2))
        return
    status_mode = mode in (SyncMode.LOCAL_STATUS, SyncMode.REMOTE_STATUS)
    for report in reports:
        if status_mode:
            print(format_status_report(report))
        else:
            print(format_sync_report(report))
        print()


def main(argv: list[str] | None = None) -> int:
    """Run copyrc with *argv* and return the process exit code."""
    args = build_parser().parse_args(argv)

    # .env first, so ${VAR} interpolation in YAML can see its values
    load_dotenv()

    try:
        config, base_dir = load_run_config(args)
        settings = load_settings(
            token=args.token,
            api_url=args.api_url,
            concurrency=args.concurrency,
            timeout=args.timeout,
            debug=args.debug,
            yaml_fallbacks=config.flags.model_dump(),
        )
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    setup_logging(
        debug=settings.debug,
        log_file=args.log_file or config.logging.file,
        debug_format=args.debug_format,
        level=config.logging.level,
    )

    if not config.copies and not config.archives:
        print(
            "Nothing to do: no copy or archive entries configured "
            "(create .copyrc.yaml or pass --repo/--destination)",
            file=sys.stderr,
        )
        return 2

    request = _request_for(args, config, settings.concurrency)
    registry = default_registry(
        token=settings.github_token,
        api_url=settings.api_url,
        timeout=settings.timeout,
    )
    engine = SyncEngine(registry, base_dir=base_dir)

    def _on_interrupt(signum: int, frame: Any) -> None:
        # First Ctrl-C finishes in-flight files; a second one aborts
        print("\nCancelling...", file=sys.stderr)
        request.cancel.cancel()
        signal.signal(signal.SIGINT, previous_handler)

    previous_handler = signal.signal(signal.SIGINT, _on_interrupt)

    reports: list[SyncReport] = []
    failed = False
    try:
        jobs = [(engine.run, entry) for entry in config.copies]
        jobs += [(engine.run_archive, entry) for entry in config.archives]
        for run_entry, entry in jobs:
            if request.cancel.cancelled:
                break
            try:
                report = run_entry(entry, request)
            except CopyrcError as exc:
                logger.error("%s: %s", entry.destination.path, exc)
                failed = True
                continue
            reports.append(report)
            failed = failed or not report.ok
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    _print_reports(reports, request.mode, args.json)
    if request.cancel.cancelled:
        return 1
    return 1 if failed else 0


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
