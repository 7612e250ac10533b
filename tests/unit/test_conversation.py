"""
tests/unit/test_conversation.py — ConversationLoader

Run with:
    pytest tests/unit/test_conversation.py -v
"""

from __future__ import annotations

import pytest

from codeforge.agent.conversation import ConversationLoader, ConversationTurn, to_messages
from codeforge.brain.types import Role
from codeforge.memory.store import MessageRole, MessageType


async def _add(store, role: MessageRole, content: str, type=MessageType.RESULT):
    await store.create_message("p1", content, role, type)


class TestConversationLoader:
    @pytest.mark.asyncio
    async def test_turns_are_oldest_first(self, store):
        await _add(store, MessageRole.USER, "make a page")
        await _add(store, MessageRole.ASSISTANT, "Here you go")
        await _add(store, MessageRole.USER, "add a footer")

        turns = await ConversationLoader(store).load("p1")

        assert [(t.role, t.content) for t in turns] == [
            (Role.USER, "make a page"),
            (Role.ASSISTANT, "Here you go"),
            (Role.USER, "add a footer"),
        ]

    @pytest.mark.asyncio
    async def test_only_most_recent_limit_loaded(self, store):
        for i in range(7):
            await _add(store, MessageRole.USER, f"m{i}")

        turns = await ConversationLoader(store, limit=5).load("p1")

        assert [t.content for t in turns] == ["m2", "m3", "m4", "m5", "m6"]

    @pytest.mark.asyncio
    async def test_error_messages_included(self, store):
        await _add(store, MessageRole.ASSISTANT, "Something went wrong.", MessageType.ERROR)
        turns = await ConversationLoader(store).load("p1")
        assert turns[0].role == Role.ASSISTANT

    @pytest.mark.asyncio
    async def test_zero_limit_returns_nothing(self, store):
        await _add(store, MessageRole.USER, "hello")
        assert await ConversationLoader(store, limit=0).load("p1") == []

    @pytest.mark.asyncio
    async def test_unknown_project_is_empty(self, store):
        assert await ConversationLoader(store).load("nobody") == []


class TestToMessages:
    def test_roles_mapped(self):
        msgs = to_messages([
            ConversationTurn(role=Role.USER, content="hi"),
            ConversationTurn(role=Role.ASSISTANT, content="hello"),
        ])
        assert [(m.role, m.content) for m in msgs] == [
            (Role.USER, "hi"),
            (Role.ASSISTANT, "hello"),
        ]
