"""Unified diff parsing for inline review comment placement.

Forges only accept an inline review comment on a line the pull request added,
addressed by its line number in the new version of the file. This module
turns a file's patch text into that set of line numbers.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

_HUNK_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(?P<new_start>\d+)(?:,\d+)? @@")


def parse_diff_to_changed_lines(patch: str) -> set[int]:
    """Return the 1-based new-file line numbers of every added (``+``) line.

    Each ``@@ -a,b +c,d @@`` header restarts numbering at ``c``. Removed lines
    take no new-file line. Context lines take one without being recorded.

    Lines before the first parseable header are ignored, so a patch without
    hunks yields an empty set. A header that does not match is logged and
    otherwise ignored: numbering carries on from the previous hunk.
    """
    changed: set[int] = set()
    # Number of the last new-file line seen; None until a hunk header is read.
    current: int | None = None

    # "\n" only, the same split as file content; splitlines() also breaks on \f and U+2028.
    for line in (patch or "").split("\n"):
        if line.endswith("\r"):
            line = line[:-1]
        if line.startswith("@@"):
            match = _HUNK_RE.match(line)
            if match:
                current = int(match.group("new_start")) - 1
            else:
                logger.debug("Ignoring malformed hunk header: %r", line)
            continue

        if current is None:
            continue
        if line.startswith("-"):
            continue
        if line.startswith("\\"):
            continue  # "\ No newline at end of file"

        current += 1
        if line.startswith("+"):
            changed.add(current)

    return changed
