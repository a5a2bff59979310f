"""In-process conversation store. All data is lost on restart."""

from dataclasses import replace
from typing import Any
from uuid import uuid4

from mnemo.core.encryption import EncryptionCodec
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

logger = get_logger("memory.volatile")


class InMemoryConversationStore(ConversationStore):
    """Volatile store for development and tests. Same contract as SQLite."""

    def __init__(self, agent_id: str, codec: EncryptionCodec | None = None):
        self.agent_id = require_agent_id(agent_id)
        self.codec = codec
        self._messages: dict[str, list[Message]] | None = None
        self._data: dict[str, DataRecord] = {}

    async def connect(self) -> bool:
        if self._messages is None:
            self._messages = {}
            logger.info(f"Using volatile memory store (agent={self.agent_id})")
        return True

    async def close(self) -> None:
        return None

    def _ensure_connected(self) -> None:
        if self._messages is None:
            raise RuntimeError("Memory store not connected. Call connect() first.")

    @property
    def messages(self) -> dict[str, list[Message]]:
        self._ensure_connected()
        return self._messages

    async def store_message(self, message: Message, sensitive: bool = False) -> str:
        validate_message(message)
        codec = codec_for(self.codec, sensitive)

        stored = Message(
            id=str(uuid4()),
            agent_id=self.agent_id,
            user_id=message.user_id,
            role=message.role,
            content=codec.encrypt(message.content) if codec else message.content,
            encrypted=codec is not None,
            timestamp=utc(message.timestamp),
        )
        self.messages.setdefault(message.user_id, []).append(stored)
        return stored.id

    async def get_conversation_history(self, user_id: str, limit: int = 20) -> list[Message]:
        validate_limit(limit)
        # Stable sort keeps insertion order for equal timestamps
        ordered = sorted(self.messages.get(user_id, []), key=lambda m: m.timestamp)
        return [reveal_content(m, self.codec) for m in ordered[-limit:]]

    async def clear_user_history(self, user_id: str) -> int:
        removed = self.messages.pop(user_id, [])
        logger.info(f"Cleared {len(removed)} messages for user {user_id}")
        return len(removed)

    async def store_data(self, key: str, value: Any, sensitive: bool = False) -> None:
        validate_key(key)
        self._ensure_connected()
        codec = codec_for(self.codec, sensitive)
        stored = encode_value(value)
        if codec:
            stored = codec.encrypt(stored)

        self._data[key] = DataRecord(
            agent_id=self.agent_id,
            key=key,
            value=stored,
            encrypted=codec is not None,
            timestamp=utc(),
        )

    async def get_record(self, key: str) -> DataRecord | None:
        validate_key(key)
        self._ensure_connected()
        record = self._data.get(key)
        if record is None:
            return None
        return replace(record, value=reveal_value(record.value, record.encrypted, self.codec, key))

    async def get_data(self, key: str) -> Any | None:
        record = await self.get_record(key)
        return record.value if record else None
