"""Content transforms applied to fetched remote bytes.

Transforms run before classification, so the recorded remote digest is
the digest of the transformed content: what copyrc would write.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Sequence

from copyrc.config_schema import Replacement

logger = logging.getLogger(__name__)

# Comment syntax by extension: (prefix, suffix)
_COMMENT_STYLES: dict[str, tuple[str, str]] = {
    ".go": ("// ", ""),
    ".js": ("// ", ""),
    ".ts": ("// ", ""),
    ".jsx": ("// ", ""),
    ".tsx": ("// ", ""),
    ".css": ("// ", ""),
    ".py": ("# ", ""),
    ".rb": ("# ", ""),
    ".pl": ("# ", ""),
    ".sh": ("# ", ""),
    ".yaml": ("# ", ""),
    ".yml": ("# ", ""),
    ".md": ("<!-- ", " -->"),
    ".xml": ("<!-- ", " -->"),
    ".html": ("<!-- ", " -->"),
}


def apply_replacements(
    content: bytes,
    remote_path: str,
    replacements: Sequence[Replacement],
) -> tuple[bytes, int]:
    """Apply text replacements that target *remote_path*.

    A replacement with ``file`` set only applies to the remote path
    equal to it (or whose basename equals it).

    Returns:
        ``(new_content, substitution_count)``.
    """
    count = 0
    name = PurePosixPath(remote_path).name
    for repl in replacements:
        if repl.file and repl.file not in (remote_path, name):
            continue
        old = repl.old.encode("utf-8")
        if not old:
            continue
        hits = content.count(old)
        if hits:
            content = content.replace(old, repl.new.encode("utf-8"))
            count += hits
    if count:
        logger.debug("Applied %d replacement(s) to %s", count, remote_path)
    return content, count


def header_lines(source_info: str) -> list[str]:
    return [
        "Generated by copyrc. DO NOT EDIT.",
        f"Source: {source_info}",
        "See .copyrc.lock for more details.",
    ]


def add_file_header(
    content: bytes, remote_path: str, source_info: str
) -> bytes:
    """Prepend the generated-by header using the file's comment syntax.

    Files with an extension that has no known comment syntax are
    returned unchanged.  A leading ``#!`` line is kept first.
    """
    ext = PurePosixPath(remote_path).suffix.lower()
    style = _COMMENT_STYLES.get(ext)
    if style is None:
        return content
    prefix, suffix = style
    header = "".join(
        f"{prefix}{line}{suffix}\n" for line in header_lines(source_info)
    ).encode("utf-8")

    if content.startswith(b"#!"):
        first, nl, rest = content.partition(b"\n")
        return first + nl + header + b"\n" + rest
    return header + b"\n" + content
