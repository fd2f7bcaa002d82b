"""Customization diffing, delta encoding, and merge preview.

Uses ``difflib`` for line-based edit scripts and unified diffs, and the
``merge3`` library for an informational three-way merge preview.

Key design choices:

* **Delta format** -- an edit script is a tab-separated list of tokens in
  the style of diff-match-patch deltas: ``=N`` keeps *N* characters of
  the old text, ``-N`` deletes *N* characters, ``+text`` inserts
  percent-encoded *text*.  Identical inputs produce the empty delta.
* **Change regions** -- ``count_changes`` counts maximal runs of
  non-``=`` tokens, so a replaced block of lines is one change.
* **No auto-merge** -- the merge preview only reports whether a user's
  customizations would apply cleanly; nothing here writes files.
"""

from __future__ import annotations

import difflib
from urllib.parse import quote, unquote

from merge3 import Merge3

_SAFE_CHARS = " !~*'();/?:@&=+$,#"
_SEP = "\t"


def _opcodes(old_text: str, new_text: str):
    old_lines = old_text.splitlines(True)
    new_lines = new_text.splitlines(True)
    matcher = difflib.SequenceMatcher(
        None, old_lines, new_lines, autojunk=False
    )
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        yield tag, "".join(old_lines[i1:i2]), "".join(new_lines[j1:j2])


def compute_delta(old_text: str, new_text: str) -> str:
    """Compute the edit script that turns *old_text* into *new_text*.

    Deterministic for identical inputs.  Returns ``""`` when the texts
    are equal.
    """
    if old_text == new_text:
        return ""

    tokens: list[str] = []
    for tag, old_chunk, new_chunk in _opcodes(old_text, new_text):
        if tag == "equal":
            tokens.append(f"={len(old_chunk)}")
            continue
        if old_chunk:
            tokens.append(f"-{len(old_chunk)}")
        if new_chunk:
            tokens.append("+" + quote(new_chunk, safe=_SAFE_CHARS))
    return _SEP.join(tokens)


def count_changes(delta: str) -> int:
    """Return the number of discrete change regions in *delta*."""
    if not delta:
        return 0
    regions = 0
    in_change = False
    for token in delta.split(_SEP):
        if token.startswith("="):
            in_change = False
        elif not in_change:
            regions += 1
            in_change = True
    return regions


def apply_delta(old_text: str, delta: str) -> str:
    """Replay *delta* against *old_text* and return the new text.

    Raises:
        ValueError: If the delta does not fit *old_text*.
    """
    if not delta:
        return old_text

    pos = 0
    out: list[str] = []
    for token in delta.split(_SEP):
        op, arg = token[:1], token[1:]
        if op == "+":
            out.append(unquote(arg))
            continue
        if op not in ("=", "-"):
            raise ValueError(f"Invalid delta token: {token!r}")
        try:
            n = int(arg)
        except ValueError:
            raise ValueError(f"Invalid delta length: {token!r}") from None
        if n < 0 or pos + n > len(old_text):
            raise ValueError(
                f"Delta overruns source text at offset {pos}: {token!r}"
            )
        if op == "=":
            out.append(old_text[pos : pos + n])
        pos += n

    if pos != len(old_text):
        raise ValueError(
            f"Delta consumed {pos} of {len(old_text)} characters"
        )
    return "".join(out)


def describe_changes(old_text: str, new_text: str) -> list[str]:
    """Return one unified-diff style hunk header per change region.

    Example: ``["@@ -3,2 +3,1 @@"]``.  Line numbers are 1-based; a
    zero-length side is reported at the line before the change, the
    same way ``diff -u`` does.
    """
    changes: list[str] = []
    old_line = 0
    new_line = 0
    for tag, old_chunk, new_chunk in _opcodes(old_text, new_text):
        old_n = len(old_chunk.splitlines(True))
        new_n = len(new_chunk.splitlines(True))
        if tag != "equal":
            old_start = old_line + 1 if old_n else old_line
            new_start = new_line + 1 if new_n else new_line
            changes.append(
                f"@@ -{old_start},{old_n} +{new_start},{new_n} @@"
            )
        old_line += old_n
        new_line += new_n
    return changes


def generate_diff(
    old_content: str,
    new_content: str,
    label_old: str = "old",
    label_new: str = "new",
) -> str:
    """Generate a unified diff between two strings.

    Returns:
        A unified diff string.  Empty string if the contents are identical.
    """
    diff_lines = difflib.unified_diff(
        old_content.splitlines(True),
        new_content.splitlines(True),
        fromfile=label_old,
        tofile=label_new,
    )
    return "".join(diff_lines)


def preview_merge(
    base_content: str,
    local_content: str,
    remote_content: str,
) -> tuple[str, bool]:
    """Three-way merge local customizations onto new remote content.

    Args:
        base_content: The previous pristine remote content.
        local_content: The user's current on-disk content.
        remote_content: The newly fetched remote content.

    Returns:
        ``(merged_text, has_conflicts)``.  The text is for display only.
    """
    m3 = Merge3(
        base_content.splitlines(True),
        local_content.splitlines(True),
        remote_content.splitlines(True),
    )
    merged_text = "".join(
        m3.merge_lines(name_a="LOCAL", name_b="REMOTE")
    )
    return merged_text, "<<<<<<< LOCAL" in merged_text
