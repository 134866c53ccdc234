"""Abstract conversation store interface.

The reply flow receives a store instead of reaching for module state, so
tests and long-running hosts can choose the backend and its lifetime.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Hashable

if TYPE_CHECKING:
    from reviewbot_core.models import ConversationContext


class ConversationStore(ABC):
    """Key-value store of conversation contexts keyed by ``(pull request, comment)``."""

    @abstractmethod
    def get(self, pr_id: Hashable, comment_id: Hashable) -> ConversationContext | None:
        """Return the stored context, or None when there is none. Never raises."""

    @abstractmethod
    def save(self, pr_id: Hashable, comment_id: Hashable, context: ConversationContext) -> None:
        """Store ``context``, replacing any previous one for the same key."""

    def close(self) -> None:
        """Release any resources held by the store.

        Default is a no-op so callers can always call close() safely.
        """
