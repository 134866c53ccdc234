"""Fuzzy line matching used to re-anchor LLM findings in real file content.

Models often report a line number that is a few lines off, because they saw a
truncated or re-serialised copy of the file. Each finding also quotes the
offending line, so we search a window around the reported number for the line
that reads most like the quote and trust that instead.

The score returned here is a normalised edit distance: 0.0 means identical,
values near or above 1.0 mean unrelated. Lower is better.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

_WHITESPACE_RE = re.compile(r"\s+")

# Extra lines searched on both sides of the caller's approximate range.
SEARCH_MARGIN = 30


@dataclass(frozen=True)
class LineMatch:
    line_number: int  # 1-based
    similarity: float  # normalised distance, math.inf when nothing was compared


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance with unit cost for insert, delete and substitute."""
    # (len(b) + 1) x (len(a) + 1) table, row j holds distances for b[:j].
    matrix = [[0] * (len(a) + 1) for _ in range(len(b) + 1)]
    for i in range(len(a) + 1):
        matrix[0][i] = i
    for j in range(len(b) + 1):
        matrix[j][0] = j

    for j in range(1, len(b) + 1):
        for i in range(1, len(a) + 1):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            matrix[j][i] = min(
                matrix[j][i - 1] + 1,
                matrix[j - 1][i] + 1,
                matrix[j - 1][i - 1] + cost,
            )

    return matrix[len(b)][len(a)]


def normalize_code(code: str) -> str:
    """Trim the line and collapse every whitespace run to a single space."""
    return _WHITESPACE_RE.sub(" ", code.strip())


def find_most_similar_line(target: str, file_lines: list[str], approx_start: int, approx_end: int) -> LineMatch:
    """Return the line in ``file_lines`` that best matches ``target``.

    Scans indices ``[approx_start - 30, approx_end + 30)`` clamped to the file.
    Ties go to the first (lowest) line. When the window is empty, or every
    comparison is between two empty strings, the result is
    ``LineMatch(approx_start, math.inf)`` so callers treat it as no match.
    """
    best = LineMatch(line_number=approx_start, similarity=math.inf)
    normalized_target = normalize_code(target)

    search_start = max(0, approx_start - SEARCH_MARGIN)
    search_end = min(len(file_lines), approx_end + SEARCH_MARGIN)

    for i in range(search_start, search_end):
        normalized_line = normalize_code(file_lines[i])
        longest = max(len(normalized_target), len(normalized_line))
        if longest == 0:
            continue
        similarity = levenshtein_distance(normalized_target, normalized_line) / longest
        if similarity < best.similarity:
            best = LineMatch(line_number=i + 1, similarity=similarity)

    return best
