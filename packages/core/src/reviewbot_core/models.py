"""Data passed between the forge adapters, the LLM layer and the review pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union

CATEGORIES = ("quality", "security", "performance")

# GitHub uses integer ids; GitLab notes use "<mr_iid>:<discussion_id>:<note_id>".
CommentId = Union[int, str]
PullRequestId = Union[int, str]


@dataclass(frozen=True)
class ChangedFile:
    """A file touched by the pull request, as returned by a forge adapter.

    ``patch`` is None when the forge did not return a diff for the file
    (binary or very large changes); such files cannot be line-validated.
    """

    path: str
    content: str
    patch: str | None = None


@dataclass(frozen=True)
class RawIssue:
    """One finding from the model's ``{"issues": [...]}`` response."""

    line: int
    code: str
    category: str
    description: str

    @classmethod
    def from_dict(cls, data: Any) -> RawIssue | None:
        """Build an issue from decoded JSON, or return None if it is malformed.

        All four fields must be present with the right types and ``type`` must
        be a known category. A whole float such as ``2.0`` is accepted as a
        line number; ``bool`` is rejected even though it is an ``int`` subclass.
        """
        if not isinstance(data, dict):
            return None
        line = data.get("line")
        code = data.get("code")
        category = data.get("type")
        description = data.get("description")
        if isinstance(line, float) and line.is_integer():
            line = int(line)
        if isinstance(line, bool) or not isinstance(line, int):
            return None
        if not isinstance(code, str) or not isinstance(description, str):
            return None
        if not isinstance(category, str) or category.lower() not in CATEGORIES:
            return None
        return cls(line=line, code=code, category=category.lower(), description=description)


@dataclass(frozen=True)
class ReviewComment:
    """An inline comment in the shape the forge review endpoint accepts."""

    path: str
    line: int
    body: str

    def to_dict(self) -> dict:
        return {"path": self.path, "line": self.line, "body": self.body}


@dataclass(frozen=True)
class CandidateComment:
    """A finding placed on a concrete line, before diff validation."""

    path: str
    line: int
    body: str
    similarity: float = 0.0


@dataclass(frozen=True)
class CommentInfo:
    """A review comment read back from the forge."""

    id: CommentId
    body: str
    path: str
    line: int
    pr_id: PullRequestId
    created_at: datetime | None = None
    in_reply_to: CommentId | None = None


@dataclass
class SubmissionResult:
    """Outcome of posting a review.

    ``batched`` is True when the single batch review was accepted. Otherwise
    ``submitted`` and ``failed`` count the individual fallback posts.
    """

    submitted: int = 0
    failed: int = 0
    batched: bool = False
    errors: list[str] = field(default_factory=list)


@dataclass
class Message:
    role: str  # "user" | "assistant"
    content: str


@dataclass
class ConversationContext:
    """Everything the model needs to continue a thread under one bot finding.

    Conversation stores keep and return these objects as they are; how they
    are persisted is up to the store.
    """

    file_path: str
    line: int
    finding: str  # body of the bot comment that opened the thread
    code: str = ""  # file lines around ``line`` when the context was created
    messages: list[Message] = field(default_factory=list)

    def add(self, role: str, content: str) -> None:
        self.messages.append(Message(role=role, content=content))
