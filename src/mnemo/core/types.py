"""
Shared type definitions.

Conversation and structured-memory records used by every backend.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Role(Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


def utc(dt: datetime | None = None) -> datetime:
    """Normalize to an aware UTC datetime. Naive values are taken as UTC."""
    if dt is None:
        return datetime.now(timezone.utc)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class Message:
    """Single dialogue turn between an agent and a user."""

    role: str  # Role members are normalized to their value
    content: str
    user_id: str = "unknown"
    agent_id: str = ""
    id: str = ""
    encrypted: bool = False
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if isinstance(self.role, Role):
            object.__setattr__(self, "role", self.role.value)

    def to_dict(self) -> dict[str, Any]:
        """Persisted/API field shape."""
        return {
            "id": self.id,
            "agentId": self.agent_id,
            "userId": self.user_id,
            "role": self.role,
            "content": self.content,
            "encrypted": self.encrypted,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def to_llm_format(self) -> dict[str, Any]:
        """Convert to LLM API message format."""
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class DataRecord:
    """Structured value keyed by (agent_id, key). Overwritten, never merged."""

    agent_id: str
    key: str
    value: Any
    encrypted: bool = False
    timestamp: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "agentId": self.agent_id,
            "key": self.key,
            "value": self.value,
            "encrypted": self.encrypted,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
