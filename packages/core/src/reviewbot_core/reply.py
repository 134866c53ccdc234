"""Answer follow-up questions asked under the bot's own review comments.

A question is a reply whose body starts with a mention prefix (``@ai`` or
``/ai``). The nearest earlier bot comment on the same file and line anchors
the conversation: its finding, the code around it and the thread so far are
sent to the model, and the answer is posted back into the thread.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from reviewbot_core.analysis import CATEGORY_ICONS, FOLLOW_UP_HINT
from reviewbot_core.models import ConversationContext

if TYPE_CHECKING:
    from reviewbot_core.forges.base import CodeReviewPlatform
    from reviewbot_core.models import CommentId, CommentInfo
    from reviewbot_core.providers.base import BaseReviewer
    from reviewbot_store.base import ConversationStore

logger = logging.getLogger(__name__)

ANCHOR_RE = re.compile(
    r"### (" + "|".join(CATEGORY_ICONS.values()) + r") (Quality|Security|Performance)",
    re.IGNORECASE,
)
CONTEXT_LINES = 25
DEFAULT_MENTIONS = ("@ai", "/ai")
REPLY_HINT = "To ask another question, reply starting with @ai or /ai"
APOLOGY = "Sorry, something went wrong while generating an answer. Please try again later."


def mention_pattern(prefixes=DEFAULT_MENTIONS) -> re.Pattern:
    alternatives = "|".join(re.escape(p) for p in prefixes)
    return re.compile(rf"^(?:{alternatives})(?:\s+|$)", re.IGNORECASE)


def is_bot_finding(body: str) -> bool:
    return bool(ANCHOR_RE.search(body or ""))


def is_bot_reply(body: str) -> bool:
    return (body or "").rstrip().endswith(f"*{REPLY_HINT}*")


def comment_order(comment_id: CommentId) -> int:
    """Sort key: GitHub ids are integers, GitLab composite ids end with the note id."""
    tail = str(comment_id).rsplit(":", 1)[-1]
    return int(tail) if tail.isdigit() else -1


def find_anchor(comments: list[CommentInfo], question: CommentInfo) -> CommentInfo | None:
    """Return the newest bot finding on the question's file and line posted before it."""
    limit = comment_order(question.id)
    for c in sorted(comments, key=lambda c: comment_order(c.id), reverse=True):
        if c.id == question.id or comment_order(c.id) > limit:
            continue
        if c.path == question.path and c.line == question.line and is_bot_finding(c.body):
            return c
    return None


def collect_thread(comments: list[CommentInfo], anchor: CommentInfo, question: CommentInfo) -> list[CommentInfo]:
    """Comments on the same line between the anchor and the question, oldest first."""
    low, high = comment_order(anchor.id), comment_order(question.id)
    thread = [
        c
        for c in comments
        if c.path == anchor.path and c.line == anchor.line and low < comment_order(c.id) < high
    ]
    return sorted(thread, key=lambda c: comment_order(c.id))


def code_context(content: str, line: int, radius: int = CONTEXT_LINES) -> str:
    lines = content.split("\n")
    return "\n".join(lines[max(0, line - radius) : min(len(lines), line + radius)])


def extract_category(body: str) -> str:
    match = ANCHOR_RE.search(body or "")
    return match.group(2).lower() if match else "quality"


def build_system_prompt(context: ConversationContext) -> str:
    category = extract_category(context.finding)
    # The footer is instructions for humans, not part of the finding.
    finding = context.finding.removesuffix(f"\n\n*{FOLLOW_UP_HINT}*")
    return f"""You are an expert reviewer of React and TypeScript code.
You left a comment about a "{category}" problem in {context.file_path} at line {context.line}:

```
{context.code}
```

Your comment was:
{finding}

Answer the user's latest question about this problem in the context of that line of code.
If they ask how to fix it, propose a concrete solution with a code example.
Use technical but clear language."""


def to_chat_messages(context: ConversationContext) -> list[dict]:
    """Convert stored messages into an alternating list that starts with a user turn."""
    chat: list[dict] = []
    for m in context.messages:
        if not chat and m.role != "user":
            continue
        if chat and chat[-1]["role"] == m.role:
            chat[-1]["content"] += "\n\n" + m.content
        else:
            chat.append({"role": m.role, "content": m.content})
    return chat


def format_reply(question: str, answer: str) -> str:
    return f"> {question}\n\n{answer}\n\n*{REPLY_HINT}*"


async def handle_comment_event(
    platform: CodeReviewPlatform,
    reviewer: BaseReviewer,
    store: ConversationStore,
    comment_id: CommentId,
    mention_prefixes=DEFAULT_MENTIONS,
) -> str | None:
    """Answer the question in ``comment_id`` and return the posted reply body.

    Returns None, without posting, when the comment is not addressed to the
    bot or no bot finding anchors it. Forge errors propagate; a failed model
    call is answered with an apology instead.
    """
    comment = await platform.get_comment(comment_id)
    mention = mention_pattern(mention_prefixes)
    if not mention.match(comment.body):
        logger.info("Comment %s is not addressed to the bot, ignoring", comment_id)
        return None

    comments = await platform.list_comments(comment.pr_id)
    anchor = find_anchor(comments, comment)
    if anchor is None:
        logger.warning("Could not find a bot comment at %s:%d to anchor %s", comment.path, comment.line, comment_id)
        return None

    question = mention.sub("", comment.body, count=1).strip()

    context = store.get(comment.pr_id, anchor.id)
    if context is None:
        content = await platform.get_file_content(comment.path, platform.head_ref(comment.pr_id))
        context = ConversationContext(
            file_path=comment.path,
            line=comment.line,
            finding=anchor.body,
            code=code_context(content, comment.line),
        )
        for earlier in collect_thread(comments, anchor, comment):
            if is_bot_reply(earlier.body):
                context.add("assistant", earlier.body)
            else:
                context.add("user", mention.sub("", earlier.body, count=1).strip())
    context.add("user", question)

    logger.info("Generating reply for comment %s...", comment_id)
    try:
        answer = await reviewer.reply(build_system_prompt(context), to_chat_messages(context))
    except Exception as e:
        logger.error("Error generating reply: %s", e)
        answer = APOLOGY
    else:
        context.add("assistant", answer)
    store.save(comment.pr_id, anchor.id, context)

    body = format_reply(question, answer)
    await platform.reply_to_comment(comment.pr_id, comment.id, body)
    logger.info("Reply sent to comment %s", comment_id)
    return body
