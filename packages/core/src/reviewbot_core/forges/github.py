"""GitHub pull request adapter built on PyGithub.

PyGithub is synchronous; every call runs in a worker thread so file fetches
and LLM requests can overlap on the event loop.
"""

from __future__ import annotations

import asyncio
import logging

from github import Auth, Github, GithubException

from reviewbot_core.forges.base import CodeReviewPlatform, ForgeError, is_transient_status
from reviewbot_core.models import ChangedFile, CommentInfo, ReviewComment

logger = logging.getLogger(__name__)


def _error_message(e: GithubException) -> str:
    data = e.data if isinstance(e.data, dict) else {}
    return str(data.get("message") or e.data or e)


def _is_transient(e: Exception) -> bool:
    if isinstance(e, GithubException):
        return is_transient_status(e.status)
    return True


def pr_number_from_url(url: str | None) -> int | None:
    """Extract the pull request number from a ``.../pulls/<n>`` API URL."""
    if not url:
        return None
    tail = url.rstrip("/").rsplit("/", 1)[-1]
    return int(tail) if tail.isdigit() else None


def to_comment_info(comment, pr_id: int) -> CommentInfo:
    # line is None for comments whose line left the current diff (e.g. after a
    # force-push); original_line still says where it was written.
    line = comment.line if comment.line is not None else getattr(comment, "original_line", None)
    return CommentInfo(
        id=comment.id,
        body=comment.body or "",
        path=comment.path or "",
        line=line or 0,
        pr_id=pr_id,
        created_at=comment.created_at,
        in_reply_to=getattr(comment, "in_reply_to_id", None),
    )


class GitHubPlatform(CodeReviewPlatform):
    name = "github"

    def __init__(self, token: str, repository: str, **kwargs):
        super().__init__(**kwargs)
        owner, _, repo = repository.partition("/")
        if not owner or not repo:
            raise ValueError('Invalid repository format. Expected "owner/repo"')
        self.repository = repository
        self.client = Github(auth=Auth.Token(token))
        self._repo = None

    async def _call(self, fn, *args, **kwargs):
        """Run a blocking PyGithub call off the loop, with retries, raising ForgeError."""

        async def attempt():
            return await asyncio.to_thread(fn, *args, **kwargs)

        try:
            return await self._retry(attempt, retry_on=_is_transient)
        except GithubException as e:
            raise ForgeError(f"GitHub API error: {e.status} {_error_message(e)}", status=e.status) from e

    async def _get_repo(self):
        if self._repo is None:
            self._repo = await self._call(self.client.get_repo, self.repository)
        return self._repo

    async def _get_pull(self, pr_id):
        repo = await self._get_repo()
        return await self._call(repo.get_pull, int(pr_id))

    def head_ref(self, pr_id) -> str:
        return f"pull/{pr_id}/head"

    async def get_file_content(self, path: str, ref: str) -> str:
        repo = await self._get_repo()
        contents = await self._call(repo.get_contents, path, ref=ref)
        if isinstance(contents, list):
            raise ForgeError(f"{path} is a directory, not a file")
        return contents.decoded_content.decode("utf-8", errors="replace")

    async def get_changed_files(self, pr_id) -> list[ChangedFile]:
        pr = await self._get_pull(pr_id)
        files = await self._call(lambda: list(pr.get_files()))

        wanted = [f for f in files if f.status != "removed" and self.is_reviewable(f.filename)]
        logger.info("PR #%s: %d changed file(s), %d reviewable", pr_id, len(files), len(wanted))

        ref = self.head_ref(pr_id)
        contents = await asyncio.gather(
            *(self.get_file_content(f.filename, ref) for f in wanted),
            return_exceptions=True,
        )

        result = []
        for f, content in zip(wanted, contents):
            if isinstance(content, Exception):
                logger.error("Error getting content for %s: %s", f.filename, content)
                continue
            result.append(ChangedFile(path=f.filename, content=content, patch=f.patch))
        return result

    async def create_review(self, pr_id, comments: list[ReviewComment]) -> None:
        pr = await self._get_pull(pr_id)
        payload = [{**c.to_dict(), "side": "RIGHT"} for c in comments]
        review = await self._call(pr.create_review, event="COMMENT", comments=payload)
        logger.info("Created review: %s", getattr(review, "html_url", review))

    async def create_single_comment(self, pr_id, comment: ReviewComment) -> None:
        pr = await self._get_pull(pr_id)
        repo = await self._get_repo()
        commit = await self._call(repo.get_commit, pr.head.sha)
        await self._call(
            pr.create_review_comment,
            body=comment.body,
            commit=commit,
            path=comment.path,
            line=comment.line,
            side="RIGHT",
        )

    async def reply_to_comment(self, pr_id, comment_id, body: str) -> None:
        pr = await self._get_pull(pr_id)
        await self._call(pr.create_review_comment_reply, int(comment_id), body)

    async def get_comment(self, comment_id) -> CommentInfo:
        repo = await self._get_repo()
        comment = await self._call(repo.get_pulls_comment, int(comment_id))
        pr_id = pr_number_from_url(comment.pull_request_url)
        if pr_id is None:
            raise ForgeError(f"Could not extract PR number from {comment.pull_request_url!r}")
        return to_comment_info(comment, pr_id)

    async def list_comments(self, pr_id) -> list[CommentInfo]:
        pr = await self._get_pull(pr_id)
        comments = await self._call(lambda: list(pr.get_review_comments()))
        return [to_comment_info(c, int(pr_id)) for c in comments]
