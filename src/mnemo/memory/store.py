"""SQLite conversation store: durable backend that survives restarts."""

import sqlite3
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path
from typing import Any
from uuid import uuid4

import aiosqlite

from mnemo.core.encryption import EncryptionCodec
from mnemo.core.errors import StoreConnectionError
from mnemo.core.logging import get_logger
from mnemo.core.types import DataRecord, Message, utc
from mnemo.memory.base import (
    ConversationStore,
    codec_for,
    encode_value,
    require_agent_id,
    reveal_content,
    reveal_value,
    validate_key,
    validate_limit,
    validate_message,
)
from mnemo.memory.sqlite import missing_tables, open_connection, resolve_path

logger = get_logger("memory.store")

TABLES = ("agent_messages", "agent_data")

SCHEMA = """
-- Dialogue turns, append-only; removed only by clearing a user's history
CREATE TABLE IF NOT EXISTS agent_messages (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    agent_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    role TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'system')),
    content TEXT NOT NULL,
    encrypted INTEGER NOT NULL DEFAULT 0,
    timestamp DATETIME NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_agent_user
    ON agent_messages(agent_id, user_id, timestamp);

-- Structured data, upserted by (agent_id, key)
CREATE TABLE IF NOT EXISTS agent_data (
    agent_id TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    encrypted INTEGER NOT NULL DEFAULT 0,
    timestamp DATETIME NOT NULL,
    PRIMARY KEY (agent_id, key)
);
"""


class SQLiteConversationStore(ConversationStore):
    """SQLite-backed conversation and data store."""

    def __init__(
        self,
        db_path: Path | str,
        agent_id: str,
        codec: EncryptionCodec | None = None,
        create_schema: bool = True,
    ):
        self.db_path = resolve_path(db_path)
        self.agent_id = require_agent_id(agent_id)
        self.codec = codec
        self.create_schema = create_schema
        self.degraded = False
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> bool:
        """Open the database. Missing schema puts the store in degraded mode."""
        if self._conn is not None:
            return True

        self._conn = await open_connection(self.db_path)

        if self.create_schema:
            await self._conn.executescript(SCHEMA)
            await self._conn.commit()
            missing: list[str] = []
        else:
            missing = await missing_tables(self._conn, TABLES)

        self.degraded = bool(missing)
        if self.degraded:
            logger.warning(
                f"Memory store running in degraded mode, missing tables: {', '.join(missing)}. "
                "Run the schema setup before storing data."
            )
        logger.info(f"Connected to memory store: {self.db_path} (agent={self.agent_id})")
        return True

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Memory store not connected. Call connect() first.")
        return self._conn

    async def _execute(self, sql: str, params: Iterable[Any] = ()) -> aiosqlite.Cursor:
        """Execute, surfacing a missing schema as a connection error."""
        try:
            return await self.conn.execute(sql, tuple(params))
        except sqlite3.OperationalError as e:
            if "no such table" in str(e):
                raise StoreConnectionError(f"Memory store schema absent: {e}") from e
            raise

    # Conversation operations

    async def store_message(self, message: Message, sensitive: bool = False) -> str:
        """Store message, return ID."""
        validate_message(message)
        codec = codec_for(self.codec, sensitive)

        message_id = str(uuid4())
        content = codec.encrypt(message.content) if codec else message.content

        await self._execute(
            """INSERT INTO agent_messages
               (id, agent_id, user_id, role, content, encrypted, timestamp)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                message_id,
                self.agent_id,
                message.user_id,
                message.role,
                content,
                int(codec is not None),
                utc(message.timestamp),
            ),
        )
        await self.conn.commit()
        logger.debug(f"Stored message {message_id} for user {message.user_id}")
        return message_id

    async def get_conversation_history(self, user_id: str, limit: int = 20) -> list[Message]:
        """Retrieve the most recent messages, oldest first."""
        validate_limit(limit)
        cursor = await self._execute(
            """SELECT id, user_id, role, content, encrypted, timestamp
               FROM agent_messages
               WHERE agent_id = ? AND user_id = ?
               ORDER BY timestamp DESC, seq DESC
               LIMIT ?""",
            (self.agent_id, user_id, limit),
        )
        rows = await cursor.fetchall()
        await cursor.close()

        messages = [
            Message(
                id=row[0],
                agent_id=self.agent_id,
                user_id=row[1],
                role=row[2],
                content=row[3],
                encrypted=bool(row[4]),
                timestamp=row[5],
            )
            for row in reversed(rows)
        ]
        return [reveal_content(m, self.codec) for m in messages]

    async def clear_user_history(self, user_id: str) -> int:
        """Delete a user's messages for this agent."""
        cursor = await self._execute(
            "DELETE FROM agent_messages WHERE agent_id = ? AND user_id = ?",
            (self.agent_id, user_id),
        )
        deleted = cursor.rowcount
        await cursor.close()
        await self.conn.commit()
        logger.info(f"Cleared {deleted} messages for user {user_id}")
        return max(deleted, 0)

    # Structured data operations

    async def store_data(self, key: str, value: Any, sensitive: bool = False) -> None:
        """Upsert a value by key (last write wins)."""
        validate_key(key)
        codec = codec_for(self.codec, sensitive)
        stored = encode_value(value)
        if codec:
            stored = codec.encrypt(stored)

        now = utc()
        await self._execute(
            """INSERT INTO agent_data (agent_id, key, value, encrypted, timestamp)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(agent_id, key) DO UPDATE SET
                   value = excluded.value,
                   encrypted = excluded.encrypted,
                   timestamp = excluded.timestamp""",
            (self.agent_id, key, stored, int(codec is not None), now),
        )
        await self.conn.commit()

    async def get_record(self, key: str) -> DataRecord | None:
        """Get decoded data record by key."""
        validate_key(key)
        cursor = await self._execute(
            "SELECT value, encrypted, timestamp FROM agent_data WHERE agent_id = ? AND key = ?",
            (self.agent_id, key),
        )
        row = await cursor.fetchone()
        await cursor.close()
        if row is None:
            return None

        record = DataRecord(
            agent_id=self.agent_id,
            key=key,
            value=row[0],
            encrypted=bool(row[1]),
            timestamp=row[2],
        )
        return replace(record, value=reveal_value(row[0], record.encrypted, self.codec, key))

    async def get_data(self, key: str) -> Any | None:
        record = await self.get_record(key)
        return record.value if record else None
