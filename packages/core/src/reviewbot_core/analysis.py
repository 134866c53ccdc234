"""Turn a model's findings for one file into placed review comments."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from reviewbot_core.models import CandidateComment, ChangedFile, RawIssue
from reviewbot_core.providers.base import LLMResponseError
from reviewbot_core.utils.similarity import find_most_similar_line

if TYPE_CHECKING:
    from reviewbot_core.providers.base import BaseReviewer

logger = logging.getLogger(__name__)

MAX_CHARS_PER_FILE = 30_000
SIMILARITY_THRESHOLD = 0.3
SEARCH_RADIUS = 30

CATEGORY_ICONS = {"quality": "📝", "security": "🔒", "performance": "⚡"}
FOLLOW_UP_HINT = "To ask a question about this finding, reply starting with @ai or /ai"

SYSTEM_PROMPT = """You are an experienced reviewer of React and TypeScript code.
Find only serious problems that can lead to bugs, security holes or poor performance.

Do NOT comment on:
- style or formatting
- missing types that are obvious from context
- console.log usage
- minor linter warnings
- missing documentation

Focus on:
- memory leaks
- incorrect use of React hooks
- race conditions
- security problems
- significant performance problems
- logic errors in business logic

For every problem report:
1. the exact line number (line)
2. the offending line of code, copied verbatim (code)
3. the problem type (type)
4. a description of the problem (description)

Respond with a JSON object of this shape and nothing else:
{"issues": [{"line": number, "code": "string", "type": "quality" | "security" | "performance", "description": "string"}]}
If there are no problems, respond with {"issues": []}."""


def format_comment_body(category: str, description: str) -> str:
    """Render the comment body. The header line is what the reply flow matches on."""
    icon = CATEGORY_ICONS.get(category, CATEGORY_ICONS["quality"])
    return f"### {icon} {category.title()}\n{description}\n\n*{FOLLOW_UP_HINT}*"


def parse_issues(payload: Any) -> list[RawIssue]:
    """Extract well-formed issues from the decoded response; malformed entries are dropped."""
    if not isinstance(payload, dict):
        return []
    raw_issues = payload.get("issues")
    if not isinstance(raw_issues, list):
        logger.warning("Response has no 'issues' array: %r", payload)
        return []

    issues = []
    for entry in raw_issues:
        issue = RawIssue.from_dict(entry)
        if issue is None:
            logger.debug("Discarding malformed issue: %r", entry)
            continue
        issues.append(issue)
    return issues


def map_issues_to_comments(
    path: str,
    content: str,
    issues: list[RawIssue],
    threshold: float = SIMILARITY_THRESHOLD,
    radius: int = SEARCH_RADIUS,
) -> list[CandidateComment]:
    """Place each issue on the line that best matches its quoted code.

    Issues whose best match scores above ``threshold`` are dropped: the
    quoted code cannot be found near the reported line, so any placement
    would be a guess.
    """
    file_lines = content.split("\n")
    comments = []
    for issue in issues:
        match = find_most_similar_line(issue.code, file_lines, issue.line - radius, issue.line + radius)
        if match.similarity > threshold:
            logger.info(
                "Skipping %s issue reported at %s:%d (best similarity %.2f > %.2f)",
                issue.category,
                path,
                issue.line,
                match.similarity,
                threshold,
            )
            continue
        if match.line_number != issue.line:
            logger.debug("Re-anchored %s:%d to line %d", path, issue.line, match.line_number)
        comments.append(
            CandidateComment(
                path=path,
                line=match.line_number,
                body=format_comment_body(issue.category, issue.description),
                similarity=match.similarity,
            )
        )
    return comments


async def analyze_file(
    reviewer: BaseReviewer,
    file: ChangedFile,
    max_chars: int = MAX_CHARS_PER_FILE,
    threshold: float = SIMILARITY_THRESHOLD,
    radius: int = SEARCH_RADIUS,
) -> list[CandidateComment]:
    """Review one file and return its placed comments.

    Never raises: a failed request (after retries) or an unusable response
    means no comments for this file, and the run moves on to the next one.
    """
    content = file.content
    if len(content) > max_chars:
        logger.info("File %s is too large (%d chars), analyzing first %d chars", file.path, len(content), max_chars)
        content = content[:max_chars]

    try:
        payload = await reviewer.analyze(SYSTEM_PROMPT, content)
    except LLMResponseError as e:
        logger.warning("Unusable model response for %s: %s", file.path, e)
        return []
    except Exception as e:
        logger.error("Error analyzing file %s: %s", file.path, e)
        return []

    issues = parse_issues(payload)
    comments = map_issues_to_comments(file.path, content, issues, threshold=threshold, radius=radius)
    logger.info("%s: %d issue(s) reported, %d placed", file.path, len(issues), len(comments))
    return comments
