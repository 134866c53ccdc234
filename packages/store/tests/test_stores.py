"""Tests for reviewbot-store implementations."""

from __future__ import annotations

import pytest

from reviewbot_store.base import ConversationStore
from reviewbot_store.memory import InMemoryStore
from reviewbot_core.models import ConversationContext, Message


def _make_context(line=12):
    context = ConversationContext(
        file_path="src/api.ts",
        line=line,
        finding="### 🔒 Security\nUser input reaches eval()",
        code="const y = eval(z);",
    )
    context.add("user", "Why is this unsafe?")
    return context


class TestConversationContext:
    def test_add_appends_messages_in_order(self):
        context = _make_context()
        context.add("assistant", "eval runs arbitrary code.")
        assert context.messages == [
            Message(role="user", content="Why is this unsafe?"),
            Message(role="assistant", content="eval runs arbitrary code."),
        ]

    def test_messages_not_shared_between_instances(self):
        a = ConversationContext(file_path="a.ts", line=1, finding="f")
        b = ConversationContext(file_path="b.ts", line=2, finding="f")
        a.add("user", "hi")
        assert b.messages == []


class TestInMemoryStore:
    def test_get_missing_returns_none(self):
        assert InMemoryStore().get(1, 2) is None

    def test_save_then_get(self):
        store = InMemoryStore()
        context = _make_context()
        store.save(7, 101, context)
        assert store.get(7, 101) is context

    def test_save_overwrites(self):
        store = InMemoryStore()
        store.save(7, 101, _make_context(line=1))
        store.save(7, 101, _make_context(line=2))
        assert store.get(7, 101).line == 2
        assert len(store) == 1

    def test_int_and_str_keys_are_equivalent(self):
        store = InMemoryStore()
        store.save(7, 101, _make_context())
        assert store.get("7", "101") is not None

    def test_keys_are_scoped_per_pull_request(self):
        store = InMemoryStore()
        store.save(7, 101, _make_context())
        assert store.get(8, 101) is None

    def test_composite_gitlab_ids(self):
        store = InMemoryStore()
        store.save("3", "3:abc:55", _make_context())
        assert store.get(3, "3:abc:55") is not None

    def test_close_is_safe(self):
        InMemoryStore().close()


def test_store_interface_is_abstract():
    with pytest.raises(TypeError):
        ConversationStore()
