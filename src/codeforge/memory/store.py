"""
memory/store.py — Message Store

SQLite-backed persistence for a project's conversation: user requests,
assistant replies, and the code fragments produced by successful runs.

Tables:
  - messages  : one row per message (project, role, type, content)
  - fragments : at most one per message (sandbox URL, title, files)

Usage:
    store = MessageStore("./data/sqlite/codeforge.db")
    await store.init()
    await store.create_message("p1", "add a readme", MessageRole.USER, MessageType.RESULT)
    recent = await store.get_messages("p1", limit=5)
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import aiosqlite

from codeforge.exceptions import StoreNotInitializedError
from codeforge.observability.logger import get_logger

log = get_logger(__name__)

# ── Schema DDL ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id          TEXT PRIMARY KEY,
    project_id  TEXT NOT NULL,
    content     TEXT NOT NULL,
    role        TEXT NOT NULL,      -- 'user' | 'assistant'
    type        TEXT NOT NULL,      -- 'result' | 'error'
    created_at  REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS fragments (
    id          TEXT PRIMARY KEY,
    message_id  TEXT NOT NULL UNIQUE,
    sandbox_url TEXT NOT NULL,
    title       TEXT NOT NULL,
    files_json  TEXT NOT NULL DEFAULT '{}',
    created_at  REAL NOT NULL,
    FOREIGN KEY (message_id) REFERENCES messages(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_messages_project ON messages(project_id, created_at);
"""


# ── Data classes ──────────────────────────────────────────────────────────────

class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class MessageType(str, Enum):
    RESULT = "result"
    ERROR = "error"


@dataclass
class FragmentRecord:
    sandbox_url: str
    title: str
    files: dict[str, str] = field(default_factory=dict)
    id: Optional[str] = None
    message_id: Optional[str] = None
    created_at: Optional[float] = None


@dataclass
class StoredMessage:
    id: str
    project_id: str
    content: str
    role: MessageRole
    type: MessageType
    created_at: float
    fragment: Optional[FragmentRecord] = None


# ── Main class ────────────────────────────────────────────────────────────────

class MessageStore:
    """Async SQLite-backed store for project messages and fragments."""

    def __init__(self, db_path: str = "./data/sqlite/codeforge.db"):
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None

    async def init(self) -> None:
        """Create the database file and tables if they don't exist."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.executescript(_SCHEMA)
        await self._db.commit()
        log.info("message_store.initialized", db_path=self.db_path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    def _require_db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreNotInitializedError(
                "MessageStore is not initialised (or has been closed). "
                "Call `await store.init()` before use."
            )
        return self._db

    # ── Messages ──────────────────────────────────────────────────────────────

    async def create_message(
        self,
        project_id: str,
        content: str,
        role: MessageRole,
        type: MessageType,
        fragment: Optional[FragmentRecord] = None,
    ) -> StoredMessage:
        """Insert a message, and its fragment if given, in one transaction."""
        db = self._require_db()
        message = StoredMessage(
            id=str(uuid.uuid4()),
            project_id=project_id,
            content=content,
            role=MessageRole(role),
            type=MessageType(type),
            created_at=time.time(),
        )
        await db.execute(
            """INSERT INTO messages (id, project_id, content, role, type, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                message.id,
                project_id,
                content,
                message.role.value,
                message.type.value,
                message.created_at,
            ),
        )
        if fragment is not None:
            stored = FragmentRecord(
                id=str(uuid.uuid4()),
                message_id=message.id,
                sandbox_url=fragment.sandbox_url,
                title=fragment.title,
                files=dict(fragment.files),
                created_at=message.created_at,
            )
            await db.execute(
                """INSERT INTO fragments
                   (id, message_id, sandbox_url, title, files_json, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    stored.id,
                    message.id,
                    stored.sandbox_url,
                    stored.title,
                    json.dumps(stored.files),
                    stored.created_at,
                ),
            )
            message.fragment = stored
        await db.commit()

        log.debug(
            "message_store.message_created",
            message_id=message.id,
            project_id=project_id,
            role=message.role.value,
            type=message.type.value,
            has_fragment=fragment is not None,
        )
        return message

    async def get_messages(
        self,
        project_id: str,
        limit: Optional[int] = None,
        newest_first: bool = True,
    ) -> list[StoredMessage]:
        """
        Return a project's messages with their fragments attached.

        With a limit, the newest `limit` messages are selected; newest_first
        only controls the order they come back in.
        """
        db = self._require_db()
        sql = """SELECT m.*, f.id AS f_id, f.sandbox_url, f.title, f.files_json,
                        f.created_at AS f_created_at
                 FROM messages m LEFT JOIN fragments f ON f.message_id = m.id
                 WHERE m.project_id = ?
                 ORDER BY m.created_at DESC, m.rowid DESC"""
        params: tuple = (project_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (project_id, limit)

        cursor = await db.execute(sql, params)
        rows = await cursor.fetchall()
        messages = [self._row_to_message(r) for r in rows]
        if not newest_first:
            messages.reverse()
        return messages

    async def get_fragment(self, message_id: str) -> Optional[FragmentRecord]:
        db = self._require_db()
        cursor = await db.execute(
            "SELECT * FROM fragments WHERE message_id = ?", (message_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return FragmentRecord(
            id=row["id"],
            message_id=row["message_id"],
            sandbox_url=row["sandbox_url"],
            title=row["title"],
            files=json.loads(row["files_json"] or "{}"),
            created_at=row["created_at"],
        )

    # ── Row mapping ───────────────────────────────────────────────────────────

    @staticmethod
    def _row_to_message(row: aiosqlite.Row) -> StoredMessage:
        fragment = None
        if row["f_id"] is not None:
            fragment = FragmentRecord(
                id=row["f_id"],
                message_id=row["id"],
                sandbox_url=row["sandbox_url"],
                title=row["title"],
                files=json.loads(row["files_json"] or "{}"),
                created_at=row["f_created_at"],
            )
        return StoredMessage(
            id=row["id"],
            project_id=row["project_id"],
            content=row["content"],
            role=MessageRole(row["role"]),
            type=MessageType(row["type"]),
            created_at=row["created_at"],
            fragment=fragment,
        )
