"""
Conversation Storage
====================

``ConversationStore`` is the read-only contract the routing core consumes.
``SQLiteConversationStore`` is a reference implementation used by the CLI and
the test-suite; it also carries the write operations the calling layer needs
(the core itself never writes).
"""

from __future__ import annotations

import asyncio
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from .config import CONFIG_DIR
from .models import Conversation, Message, Role


class ConversationStore(Protocol):
    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        ...

    async def get_recent_messages(
        self, conversation_id: str, limit: int
    ) -> list[Message]:
        """Most recent ``limit`` messages, in ascending creation order"""
        ...


def _conversation_from_row(row: sqlite3.Row) -> Conversation:
    return Conversation(
        id=row["id"],
        title=row["title"],
        model_profile=row["model_profile"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _message_from_row(row: sqlite3.Row) -> Message:
    stored_role = row["role"]
    try:
        role: Role | str = Role(stored_role)
    except ValueError:
        role = stored_role
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        role=role,
        content=row["content"],
        created_at=datetime.fromisoformat(row["created_at"]),
        model_used=row["model_used"],
    )


class SQLiteConversationStore:
    """SQLite-backed conversations and messages"""

    def __init__(self, db_path: Path | str | None = None):
        if db_path is None:
            CONFIG_DIR.mkdir(parents=True, exist_ok=True)
            db_path = CONFIG_DIR / "conversations.db"
        self.db_path = Path(db_path)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    model_profile TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    conversation_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    model_used TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (conversation_id) REFERENCES conversations(id)
                        ON DELETE CASCADE
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_messages_conversation
                ON messages(conversation_id, created_at)
            """)

    # -- read contract -----------------------------------------------------

    def _fetch_conversation(self, conversation_id: str) -> Conversation | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
            ).fetchone()
        return _conversation_from_row(row) if row else None

    def _fetch_recent(self, conversation_id: str, limit: int) -> list[Message]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM messages WHERE conversation_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (conversation_id, limit),
            ).fetchall()
        return [_message_from_row(r) for r in reversed(rows)]

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        return await asyncio.to_thread(self._fetch_conversation, conversation_id)

    async def get_recent_messages(
        self, conversation_id: str, limit: int
    ) -> list[Message]:
        return await asyncio.to_thread(self._fetch_recent, conversation_id, limit)

    # -- writes used by the calling layer ----------------------------------

    def _insert_conversation(self, title: str, model_profile: str | None) -> Conversation:
        now = datetime.now()
        conversation = Conversation(
            id=str(uuid.uuid4()),
            title=title,
            model_profile=model_profile,
            created_at=now,
            updated_at=now,
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO conversations (id, title, model_profile, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    conversation.id,
                    conversation.title,
                    conversation.model_profile,
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
        return conversation

    async def create_conversation(
        self, title: str = "New conversation", model_profile: str | None = None
    ) -> Conversation:
        return await asyncio.to_thread(self._insert_conversation, title, model_profile)

    def _update_conversation(
        self, conversation_id: str, title: str | None, model_profile: str | None
    ) -> bool:
        updates: list[str] = []
        params: list[Any] = []
        if title is not None:
            updates.append("title = ?")
            params.append(title)
        if model_profile is not None:
            updates.append("model_profile = ?")
            params.append(model_profile)
        if not updates:
            return False

        updates.append("updated_at = ?")
        params.extend([datetime.now().isoformat(), conversation_id])
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE conversations SET {', '.join(updates)} WHERE id = ?",  # noqa: S608
                params,
            )
            return cursor.rowcount > 0

    async def update_conversation(
        self,
        conversation_id: str,
        title: str | None = None,
        model_profile: str | None = None,
    ) -> bool:
        return await asyncio.to_thread(
            self._update_conversation, conversation_id, title, model_profile
        )

    def _insert_message(
        self,
        conversation_id: str,
        role: Role | str,
        content: str,
        model_used: str | None,
    ) -> Message:
        now = datetime.now()
        message = Message(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            role=role,
            content=content,
            created_at=now,
            model_used=model_used,
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO messages (id, conversation_id, role, content, model_used, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    conversation_id,
                    role.value if isinstance(role, Role) else role,
                    content,
                    model_used,
                    now.isoformat(),
                ),
            )
            conn.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (now.isoformat(), conversation_id),
            )
        return message

    async def add_message(
        self,
        conversation_id: str,
        role: Role | str,
        content: str,
        model_used: str | None = None,
    ) -> Message:
        """Persist a message and bump the conversation's ``updated_at``"""
        return await asyncio.to_thread(
            self._insert_message, conversation_id, role, content, model_used
        )

    def _fetch_all_messages(self, conversation_id: str) -> list[Message]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM messages WHERE conversation_id = ?
                ORDER BY created_at, rowid
                """,
                (conversation_id,),
            ).fetchall()
        return [_message_from_row(r) for r in rows]

    async def list_messages(self, conversation_id: str) -> list[Message]:
        return await asyncio.to_thread(self._fetch_all_messages, conversation_id)

    def _fetch_conversations(self, limit: int) -> list[Conversation]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM conversations ORDER BY updated_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_conversation_from_row(r) for r in rows]

    async def list_conversations(self, limit: int = 100) -> list[Conversation]:
        return await asyncio.to_thread(self._fetch_conversations, limit)

    def _delete_conversation(self, conversation_id: str) -> bool:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM messages WHERE conversation_id = ?", (conversation_id,)
            )
            cursor = conn.execute(
                "DELETE FROM conversations WHERE id = ?", (conversation_id,)
            )
            return cursor.rowcount > 0

    async def delete_conversation(self, conversation_id: str) -> bool:
        return await asyncio.to_thread(self._delete_conversation, conversation_id)
