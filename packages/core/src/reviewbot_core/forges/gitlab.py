"""GitLab merge request adapter over the REST API v4.

GitLab has no batch review endpoint: every inline comment is its own
discussion, so ``supports_batch_review`` is False and submission posts
comments one by one. Notes are addressed by the composite id
``"<mr_iid>:<discussion_id>:<note_id>"`` because a bare note id is not enough
to find its discussion.
"""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import quote

import requests

from reviewbot_core.forges.base import CodeReviewPlatform, ForgeError, is_transient_status
from reviewbot_core.models import ChangedFile, CommentInfo, ReviewComment

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://gitlab.com/api/v4"
_REQUEST_TIMEOUT = 30


def _is_transient(e: Exception) -> bool:
    if isinstance(e, requests.HTTPError) and e.response is not None:
        return is_transient_status(e.response.status_code)
    return True


def make_note_id(mr_iid, discussion_id: str, note_id) -> str:
    return f"{mr_iid}:{discussion_id}:{note_id}"


def split_note_id(comment_id) -> tuple[str, str, str]:
    parts = str(comment_id).split(":")
    if len(parts) != 3:
        raise ValueError(f'Invalid note id {comment_id!r}. Expected "merge_request_iid:discussion_id:note_id"')
    return parts[0], parts[1], parts[2]


class GitLabPlatform(CodeReviewPlatform):
    name = "gitlab"
    supports_batch_review = False

    def __init__(self, token: str, project_id: str, api_url: str = DEFAULT_API_URL, **kwargs):
        super().__init__(**kwargs)
        self.project_id = project_id
        self.api_url = api_url.rstrip("/")
        self.session = requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {token}"})
        self._diff_refs: dict[str, dict] = {}

    def _url(self, endpoint: str) -> str:
        return f"{self.api_url}/projects/{quote(str(self.project_id), safe='')}{endpoint}"

    async def _send(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        def send():
            response = self.session.request(method, self._url(endpoint), timeout=_REQUEST_TIMEOUT, **kwargs)
            response.raise_for_status()
            return response

        try:
            return await self._retry(lambda: asyncio.to_thread(send), retry_on=_is_transient)
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            body = e.response.text if e.response is not None else ""
            raise ForgeError(f"GitLab API error: {status} {body[:200]}", status=status) from e
        except requests.RequestException as e:
            raise ForgeError(f"GitLab API request failed: {e}") from e

    async def _request(self, method: str, endpoint: str, *, raw: bool = False, **kwargs):
        response = await self._send(method, endpoint, **kwargs)
        return response.text if raw else response.json()

    async def _paginate(self, endpoint: str, params: dict | None = None) -> list:
        """GET every page of a list endpoint, following ``X-Next-Page`` until it is empty."""
        items = []
        page = 1
        while True:
            response = await self._send("GET", endpoint, params={**(params or {}), "page": page, "per_page": 100})
            items.extend(response.json() or [])
            next_page = response.headers.get("X-Next-Page")
            if not next_page:
                return items
            page = int(next_page)

    def head_ref(self, pr_id) -> str:
        return f"refs/merge-requests/{pr_id}/head"

    async def get_file_content(self, path: str, ref: str) -> str:
        endpoint = f"/repository/files/{quote(path, safe='')}/raw"
        return await self._request("GET", endpoint, raw=True, params={"ref": ref})

    async def get_changed_files(self, pr_id) -> list[ChangedFile]:
        data = await self._request("GET", f"/merge_requests/{pr_id}/changes")
        self._diff_refs[str(pr_id)] = data.get("diff_refs") or {}
        changes = data.get("changes") or []

        wanted = [c for c in changes if not c.get("deleted_file") and self.is_reviewable(c["new_path"])]
        logger.info("MR !%s: %d changed file(s), %d reviewable", pr_id, len(changes), len(wanted))

        ref = self.head_ref(pr_id)
        contents = await asyncio.gather(
            *(self.get_file_content(c["new_path"], ref) for c in wanted),
            return_exceptions=True,
        )

        result = []
        for change, content in zip(wanted, contents):
            if isinstance(content, Exception):
                logger.error("Error getting content for %s: %s", change["new_path"], content)
                continue
            result.append(ChangedFile(path=change["new_path"], content=content, patch=change.get("diff") or None))
        return result

    async def _get_diff_refs(self, pr_id) -> dict:
        key = str(pr_id)
        if key not in self._diff_refs:
            data = await self._request("GET", f"/merge_requests/{pr_id}")
            self._diff_refs[key] = data.get("diff_refs") or {}
        return self._diff_refs[key]

    async def create_review(self, pr_id, comments: list[ReviewComment]) -> None:
        for comment in comments:
            await self.create_single_comment(pr_id, comment)
        logger.info("Created %d comment(s) for MR !%s", len(comments), pr_id)

    async def create_single_comment(self, pr_id, comment: ReviewComment) -> None:
        refs = await self._get_diff_refs(pr_id)
        position = {
            "position_type": "text",
            "new_path": comment.path,
            "new_line": comment.line,
            "base_sha": refs.get("base_sha"),
            "start_sha": refs.get("start_sha"),
            "head_sha": refs.get("head_sha"),
        }
        await self._request(
            "POST",
            f"/merge_requests/{pr_id}/discussions",
            json={"body": comment.body, "position": position},
        )

    async def reply_to_comment(self, pr_id, comment_id, body: str) -> None:
        _, discussion_id, _ = split_note_id(comment_id)
        await self._request("POST", f"/merge_requests/{pr_id}/discussions/{discussion_id}/notes", json={"body": body})

    async def get_comment(self, comment_id) -> CommentInfo:
        mr_iid, discussion_id, note_id = split_note_id(comment_id)
        discussion = await self._request("GET", f"/merge_requests/{mr_iid}/discussions/{discussion_id}")
        for note in discussion.get("notes") or []:
            if str(note.get("id")) == note_id:
                return self._to_comment_info(note, mr_iid, discussion_id)
        raise ForgeError(f"Note {note_id} not found in discussion {discussion_id}", status=404)

    async def list_comments(self, pr_id) -> list[CommentInfo]:
        discussions = await self._paginate(f"/merge_requests/{pr_id}/discussions")
        comments = []
        for discussion in discussions:
            for note in discussion.get("notes") or []:
                if note.get("position"):
                    comments.append(self._to_comment_info(note, pr_id, discussion["id"]))
        return comments

    @staticmethod
    def _to_comment_info(note: dict, mr_iid, discussion_id: str) -> CommentInfo:
        position = note.get("position") or {}
        return CommentInfo(
            id=make_note_id(mr_iid, discussion_id, note.get("id")),
            body=note.get("body") or "",
            path=position.get("new_path") or "",
            line=position.get("new_line") or 0,
            pr_id=mr_iid,
            created_at=None,
        )
