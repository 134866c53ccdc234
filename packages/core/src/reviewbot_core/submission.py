"""Post validated comments, isolating bad ones if the forge rejects the batch."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from reviewbot_core.forges.base import ForgeError
from reviewbot_core.models import ReviewComment, SubmissionResult

if TYPE_CHECKING:
    from reviewbot_core.forges.base import CommentPlatform
    from reviewbot_core.models import PullRequestId

logger = logging.getLogger(__name__)

UNPROCESSABLE = 422


async def submit_review(
    platform: CommentPlatform,
    pr_id: PullRequestId,
    comments: list[ReviewComment],
) -> SubmissionResult:
    """Post ``comments`` as one review, falling back to one-by-one on a 422.

    Forges without a batch endpoint go straight to one-by-one posting.

    A 422 means at least one comment sits outside the diff. Posting each
    comment on its own keeps the valid ones and records which failed. Any
    other forge error propagates.
    """
    result = SubmissionResult()
    if not comments:
        return result

    if getattr(platform, "supports_batch_review", True):
        try:
            await platform.create_review(pr_id, comments)
        except ForgeError as e:
            if e.status != UNPROCESSABLE:
                raise
            logger.error("Batch review rejected (%s). Some comments might be outside of the diff.", e)
        else:
            result.batched = True
            result.submitted = len(comments)
            logger.info("Created review with %d comment(s)", len(comments))
            return result

    logger.info("Creating %d comment(s) individually...", len(comments))
    for i, comment in enumerate(comments, 1):
        try:
            await platform.create_single_comment(pr_id, comment)
        except Exception as e:
            result.failed += 1
            result.errors.append(f"{comment.path}:{comment.line}: {e}")
            logger.error("Failed to create comment %d for %s:%d - %s", i, comment.path, comment.line, e)
        else:
            result.submitted += 1

    logger.info("Individual comment results: %d succeeded, %d failed", result.submitted, result.failed)
    return result
