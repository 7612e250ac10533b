"""
agent/outcome.py — Outcome classification and persistence

A run is an error iff it ended without a summary or without any files.
Errors persist one generic assistant message and no fragment; successes
persist the generated reply together with a fragment pointing at the
sandbox preview.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from codeforge.agent.state import RunStateView
from codeforge.memory.store import (
    FragmentRecord,
    MessageRole,
    MessageStore,
    MessageType,
    StoredMessage,
)
from codeforge.observability.logger import get_logger

log = get_logger(__name__)

ERROR_MESSAGE = "Something went wrong. Please try again."


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


def classify_outcome(state: RunStateView) -> OutcomeKind:
    if not state.summary or not state.files:
        return OutcomeKind.ERROR
    return OutcomeKind.SUCCESS


@dataclass
class Outcome:
    """What a run returns to its caller, mirroring what was persisted."""
    url: str
    title: str
    summary: str
    files: dict[str, str] = field(default_factory=dict)
    kind: OutcomeKind = OutcomeKind.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.kind == OutcomeKind.ERROR

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "files": dict(self.files),
            "summary": self.summary,
        }


class OutcomePersister:

    def __init__(self, store: MessageStore):
        self._store = store

    async def persist(
        self,
        project_id: str,
        kind: OutcomeKind,
        sandbox_url: str,
        title: str,
        response: str,
        files: Mapping[str, str],
    ) -> StoredMessage:
        if kind == OutcomeKind.ERROR:
            message = await self._store.create_message(
                project_id=project_id,
                content=ERROR_MESSAGE,
                role=MessageRole.ASSISTANT,
                type=MessageType.ERROR,
            )
        else:
            message = await self._store.create_message(
                project_id=project_id,
                content=response,
                role=MessageRole.ASSISTANT,
                type=MessageType.RESULT,
                fragment=FragmentRecord(
                    sandbox_url=sandbox_url,
                    title=title,
                    files=dict(files),
                ),
            )
        log.info(
            "outcome.persisted",
            project_id=project_id,
            kind=kind.value,
            message_id=message.id,
        )
        return message
