"""Check proposed comments against the pull request diff before posting.

A forge rejects the whole batch review if one comment points at a line the
pull request did not add. Comments that miss by a few lines are moved onto
the nearest added line, with a note in the body; the rest are dropped.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from reviewbot_core.diff import parse_diff_to_changed_lines
from reviewbot_core.models import CandidateComment, ChangedFile, ReviewComment

logger = logging.getLogger(__name__)

SNAP_DISTANCE = 5

FILE_NOT_CHANGED = "file_not_changed"
LINE_NOT_CHANGED = "line_not_changed"
RELOCATED = "relocated"
UNCHECKED = "unchecked"


@dataclass
class ValidationResult:
    valid: list[ReviewComment] = field(default_factory=list)
    dropped: list[ReviewComment] = field(default_factory=list)
    reasons: Counter = field(default_factory=Counter)


def relocation_note(original_line: int) -> str:
    return f"[Note: This comment was originally meant for line {original_line}]"


def closest_changed_line(changed_lines: set[int], line: int) -> int | None:
    """Nearest changed line to ``line``; on a tie the lower line wins."""
    if not changed_lines:
        return None
    return min(sorted(changed_lines), key=lambda candidate: abs(candidate - line))


def validate_comments(
    comments: list[CandidateComment | ReviewComment],
    files: list[ChangedFile],
    snap_distance: int = SNAP_DISTANCE,
) -> ValidationResult:
    """Return the comments that are safe to post, relocating near misses.

    - file without a patch: passed through unchecked
    - file not among ``files``: dropped
    - line on an added line: kept
    - within ``snap_distance`` of an added line: moved there, body annotated
    - otherwise: dropped

    Changed-line sets are computed fresh from each file's patch on every call.
    """
    changed_by_path: dict[str, set[int]] = {}
    without_patch: set[str] = set()
    for f in files:
        if f.patch:
            changed_by_path[f.path] = parse_diff_to_changed_lines(f.patch)
            logger.debug("%s: %d changed line(s)", f.path, len(changed_by_path[f.path]))
        else:
            without_patch.add(f.path)
            logger.debug("%s: no patch available, cannot validate lines", f.path)

    result = ValidationResult()
    for candidate in comments:
        comment = ReviewComment(path=candidate.path, line=candidate.line, body=candidate.body)

        if comment.path in without_patch:
            logger.info("%s has no patch; adding comment at line %d unchecked", comment.path, comment.line)
            result.reasons[UNCHECKED] += 1
            result.valid.append(comment)
            continue

        changed_lines = changed_by_path.get(comment.path)
        if changed_lines is None:
            logger.warning("File %s is not among the changed files; dropping comment", comment.path)
            result.reasons[FILE_NOT_CHANGED] += 1
            result.dropped.append(comment)
            continue

        if comment.line in changed_lines:
            result.valid.append(comment)
            continue

        result.reasons[LINE_NOT_CHANGED] += 1
        closest = closest_changed_line(changed_lines, comment.line)
        if closest is not None and abs(closest - comment.line) <= snap_distance:
            logger.info("Moving comment on %s from line %d to changed line %d", comment.path, comment.line, closest)
            result.reasons[RELOCATED] += 1
            result.valid.append(
                ReviewComment(
                    path=comment.path,
                    line=closest,
                    body=f"{relocation_note(comment.line)}\n\n{comment.body}",
                )
            )
        else:
            logger.info(
                "Dropping comment on %s:%d (nearest changed line: %s)",
                comment.path,
                comment.line,
                closest,
            )
            result.dropped.append(comment)

    logger.info("Comment validation: %d valid, %d dropped", len(result.valid), len(result.dropped))
    for reason, count in sorted(result.reasons.items()):
        logger.debug("- %s: %d", reason, count)
    return result
