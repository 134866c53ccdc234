"""In-memory conversation store, the default.

Contexts live as long as the process. There is no eviction: a CI job handles
one event and exits, and a restart clears everything. All access happens on
the single event loop thread, so no locking is needed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Hashable

from reviewbot_store.base import ConversationStore

if TYPE_CHECKING:
    from reviewbot_core.models import ConversationContext


class InMemoryStore(ConversationStore):
    def __init__(self):
        self._contexts: dict[tuple[str, str], ConversationContext] = {}

    @staticmethod
    def _key(pr_id: Hashable, comment_id: Hashable) -> tuple[str, str]:
        # Normalise so 42 and "42" address the same conversation.
        return str(pr_id), str(comment_id)

    def get(self, pr_id: Hashable, comment_id: Hashable) -> ConversationContext | None:
        return self._contexts.get(self._key(pr_id, comment_id))

    def save(self, pr_id: Hashable, comment_id: Hashable, context: ConversationContext) -> None:
        self._contexts[self._key(pr_id, comment_id)] = context

    def __len__(self) -> int:
        return len(self._contexts)
