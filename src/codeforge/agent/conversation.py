"""
agent/conversation.py — Conversation history loader

Fetches a project's most recent messages and turns them into the
oldest-first user/assistant turns the agent sees before the new request.
"""

from __future__ import annotations

from typing import Iterable, Literal

from pydantic import BaseModel

from codeforge.brain.types import Message, Role
from codeforge.memory.store import MessageRole, MessageStore
from codeforge.observability.logger import get_logger

log = get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 5


class ConversationTurn(BaseModel):
    role: Literal[Role.USER, Role.ASSISTANT]
    content: str


class ConversationLoader:

    def __init__(self, store: MessageStore, limit: int = DEFAULT_HISTORY_LIMIT):
        self._store = store
        self._limit = limit

    async def load(self, project_id: str) -> list[ConversationTurn]:
        if self._limit == 0:
            return []
        stored = await self._store.get_messages(project_id, limit=self._limit, newest_first=True)
        turns = [
            ConversationTurn(
                role=Role.ASSISTANT if m.role == MessageRole.ASSISTANT else Role.USER,
                content=m.content,
            )
            for m in reversed(stored)
        ]
        log.debug("conversation.loaded", project_id=project_id, turns=len(turns))
        return turns


def to_messages(turns: Iterable[ConversationTurn]) -> list[Message]:
    return [
        Message.assistant(t.content) if t.role == Role.ASSISTANT else Message.user(t.content)
        for t in turns
    ]
