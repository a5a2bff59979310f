"""
Conversation store interface and shared helpers.

Backends implement ``ConversationStore``; common validation and
value/encryption handling live in module functions so every backend
applies exactly the same rules.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any

from mnemo.core.encryption import EncryptionCodec
from mnemo.core.errors import ConfigError, DecryptionError, ValidationError
from mnemo.core.types import DataRecord, Message, Role

VALID_ROLES = frozenset(r.value for r in Role)


class ConversationStore(ABC):
    """Abstract conversation + structured data storage for one agent."""

    agent_id: str

    @abstractmethod
    async def connect(self) -> bool:
        """Idempotent setup. Returns True, degraded mode included."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        ...

    @abstractmethod
    async def store_message(self, message: Message, sensitive: bool = False) -> str:
        """Validate, optionally encrypt and persist a message. Returns its ID."""
        ...

    @abstractmethod
    async def get_conversation_history(self, user_id: str, limit: int = 20) -> list[Message]:
        """Most recent ``limit`` messages for the user, oldest first."""
        ...

    @abstractmethod
    async def clear_user_history(self, user_id: str) -> int:
        """Delete all messages for the user. Returns count deleted."""
        ...

    @abstractmethod
    async def store_data(self, key: str, value: Any, sensitive: bool = False) -> None:
        """Upsert a data record (full overwrite)."""
        ...

    @abstractmethod
    async def get_data(self, key: str) -> Any | None:
        """Decoded value, or None if absent."""
        ...

    @abstractmethod
    async def get_record(self, key: str) -> DataRecord | None:
        """Full decoded data record, or None if absent."""
        ...


def require_agent_id(agent_id: str) -> str:
    if not agent_id or not isinstance(agent_id, str):
        raise ConfigError("Agent ID is required")
    return agent_id


def validate_message(message: Message) -> None:
    """Reject malformed messages before any side effect."""
    if not isinstance(message.content, str) or not message.content:
        raise ValidationError("Message content is required", code="INVALID_MESSAGE")
    if not message.role:
        raise ValidationError("Message role is required", code="INVALID_MESSAGE")
    if message.role not in VALID_ROLES:
        raise ValidationError(f"Invalid message role: {message.role}", code="INVALID_MESSAGE")


def validate_limit(limit: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError(f"limit must be a positive integer, got {limit!r}")


def validate_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise ValidationError("Data key is required", code="INVALID_KEY")


def codec_for(codec: EncryptionCodec | None, sensitive: bool) -> EncryptionCodec | None:
    """Codec to encrypt with, or None for plaintext storage.

    Sensitive content without a configured key is a config error, never
    silently stored as plaintext.
    """
    if not sensitive:
        return None
    if codec is None:
        raise ConfigError(
            "Sensitive storage requested but no encryption key is configured",
            code="MISSING_ENCRYPTION_KEY",
        )
    return codec


def encode_value(value: Any) -> str:
    """Strings are stored raw, everything else as JSON."""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Value is not serializable: {e}", code="INVALID_VALUE") from e


def decode_value(raw: str) -> Any:
    """Tolerant decode: structured parse, falling back to the raw string."""
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return raw


def reveal_content(message: Message, codec: EncryptionCodec | None) -> Message:
    """Decrypt an encrypted message. Fails the whole read on any bad record."""
    if not message.encrypted:
        return message
    if codec is None:
        raise DecryptionError(
            f"Message {message.id} is encrypted but no encryption key is configured"
        )
    try:
        return replace(message, content=codec.decrypt(message.content))
    except DecryptionError as e:
        raise DecryptionError(f"Message {message.id}: {e.message}") from e


def reveal_value(raw: str, encrypted: bool, codec: EncryptionCodec | None, key: str) -> Any:
    if encrypted:
        if codec is None:
            raise DecryptionError(f"Data '{key}' is encrypted but no encryption key is configured")
        raw = codec.decrypt(raw)
    return decode_value(raw)
