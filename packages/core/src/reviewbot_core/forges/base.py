"""Capability contracts every forge adapter satisfies.

The review pipeline and the reply flow only talk to these interfaces, so a
GitHub pull request and a GitLab merge request are handled by the same code.
Adapters translate their SDK or HTTP errors into ForgeError, keeping the
HTTP status so callers can tell an "outside the diff" rejection (422) apart
from other failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from reviewbot_core.utils.code import DEFAULT_EXTENSIONS, is_reviewable_file
from reviewbot_core.utils.retry import DEFAULT_DELAY, DEFAULT_RETRIES, with_retry

if TYPE_CHECKING:
    from reviewbot_core.models import ChangedFile, CommentId, CommentInfo, PullRequestId, ReviewComment


class ForgeError(Exception):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class SourceCodeProvider(ABC):
    @abstractmethod
    async def get_file_content(self, path: str, ref: str) -> str:
        """Return the decoded text of ``path`` at ``ref``."""

    @abstractmethod
    async def get_changed_files(self, pr_id: PullRequestId) -> list[ChangedFile]:
        """Return reviewable files changed by the pull request, with content and patch.

        Removed files and files rejected by the extension/exclude filters are
        left out. A file whose content cannot be fetched is logged and skipped.
        """

    @abstractmethod
    def head_ref(self, pr_id: PullRequestId) -> str:
        """Ref that resolves to the pull request's head commit."""


class CommentPlatform(ABC):
    @abstractmethod
    async def create_review(self, pr_id: PullRequestId, comments: list[ReviewComment]) -> None:
        """Post all comments as one review."""

    @abstractmethod
    async def create_single_comment(self, pr_id: PullRequestId, comment: ReviewComment) -> None:
        """Post one inline comment on its own."""

    @abstractmethod
    async def reply_to_comment(self, pr_id: PullRequestId, comment_id: CommentId, body: str) -> None:
        """Post ``body`` in the thread of ``comment_id``."""


class CodeReviewPlatform(SourceCodeProvider, CommentPlatform):
    """A forge that can both serve code and hold review conversations."""

    name: str = ""
    # False when the forge has no endpoint that posts many inline comments at once.
    supports_batch_review: bool = True

    def __init__(
        self,
        extensions: tuple[str, ...] | list[str] = DEFAULT_EXTENSIONS,
        exclude: list[str] | None = None,
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_DELAY,
        retry_backoff: float = 1.0,
    ):
        self.extensions = tuple(extensions)
        self.exclude = list(exclude or [])
        self.retries = retries
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff

    @abstractmethod
    async def get_comment(self, comment_id: CommentId) -> CommentInfo:
        """Return a single inline comment."""

    @abstractmethod
    async def list_comments(self, pr_id: PullRequestId) -> list[CommentInfo]:
        """Return every inline comment on the pull request."""

    def is_reviewable(self, path: str) -> bool:
        return is_reviewable_file(path, self.extensions, self.exclude)

    async def _retry(self, operation, retry_on=None):
        return await with_retry(
            operation,
            retries=self.retries,
            delay=self.retry_delay,
            backoff=self.retry_backoff,
            retry_on=retry_on,
        )


def is_transient_status(status: int | None) -> bool:
    """False for client errors that will fail the same way again (4xx other than 429)."""
    if status is None:
        return True
    return not (400 <= status < 500 and status != 429)
