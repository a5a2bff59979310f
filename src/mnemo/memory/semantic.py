"""
Semantic memory index with cross-agent access grants.

Memories are immutable content fragments paired with an embedding. An
agent sees a memory only while it holds a grant on it; creators receive
``admin`` automatically. Similarity is cosine, computed with numpy over
the candidate set the requesting agent can see.

Grant/revoke are only permission-checked when the caller identifies
itself (``granted_by`` / ``revoked_by``); anonymous calls are trusted.
"""

import asyncio
import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import uuid4

import aiosqlite
import numpy as np

from mnemo.core.errors import AccessDeniedError, NotFoundError, ProviderError, ValidationError
from mnemo.core.logging import get_logger
from mnemo.core.types import utc
from mnemo.embeddings.base import EmbeddingProvider
from mnemo.memory.sqlite import open_connection, resolve_path

logger = get_logger("memory.semantic")


class MemoryType(Enum):
    CONVERSATION = "conversation"
    KNOWLEDGE = "knowledge"
    TASK = "task"
    GOAL = "goal"


class PermissionLevel(Enum):
    READ = "read"
    WRITE = "write"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _PERMISSION_RANK[self]


_PERMISSION_RANK = {
    PermissionLevel.READ: 1,
    PermissionLevel.WRITE: 2,
    PermissionLevel.ADMIN: 3,
}


@dataclass(frozen=True)
class Memory:
    """Immutable content fragment with its embedding."""

    id: str
    agent_id: str  # creator
    type: MemoryType
    content: str
    embedding: tuple[float, ...]
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agentId": self.agent_id,
            "type": self.type.value,
            "content": self.content,
            "embedding": list(self.embedding),
            "metadata": self.metadata,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class AccessGrant:
    id: str
    memory_id: str
    agent_id: str
    permission_level: PermissionLevel
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "memoryId": self.memory_id,
            "agentId": self.agent_id,
            "permissionLevel": self.permission_level.value,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class MemorySearchResult:
    """Search hit. The embedding is not echoed back."""

    id: str
    agent_id: str
    type: MemoryType
    content: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


SCHEMA = """
CREATE TABLE IF NOT EXISTS memories (
    id TEXT PRIMARY KEY,
    agent_id TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('conversation', 'knowledge', 'task', 'goal')),
    content TEXT NOT NULL,
    embedding BLOB NOT NULL,  -- float32
    metadata TEXT,  -- JSON object
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL
);

-- One grant per (memory, agent); re-granting replaces the level
CREATE TABLE IF NOT EXISTS memory_access (
    id TEXT PRIMARY KEY,
    memory_id TEXT NOT NULL REFERENCES memories(id) ON DELETE CASCADE,
    agent_id TEXT NOT NULL,
    permission_level TEXT NOT NULL CHECK (permission_level IN ('read', 'write', 'admin')),
    created_at DATETIME NOT NULL,
    UNIQUE (memory_id, agent_id)
);

CREATE INDEX IF NOT EXISTS idx_access_agent ON memory_access(agent_id);
"""

_MEMORY_COLUMNS = "m.id, m.agent_id, m.type, m.content, m.embedding, m.metadata, m.created_at, m.updated_at"

_VISIBLE_TO = "EXISTS (SELECT 1 FROM memory_access a WHERE a.memory_id = m.id AND a.agent_id = ?)"


def _parse_enum(enum_cls: type[Enum], value: Any, label: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {label} {value!r}, expected one of: {allowed}") from e


def _row_to_grant(row: Sequence[Any]) -> AccessGrant:
    return AccessGrant(
        id=row[0],
        memory_id=row[1],
        agent_id=row[2],
        permission_level=PermissionLevel(row[3]),
        created_at=row[4],
    )


def _pack(vector: np.ndarray) -> bytes:
    return vector.astype(np.float32).tobytes()


def _unpack(blob: bytes) -> np.ndarray:
    return np.frombuffer(blob, dtype=np.float32)


def cosine_similarities(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """Cosine similarity of each row against the query. Zero vectors score 0."""
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0, dots / norms, 0.0)
    return sims


class SemanticMemoryIndex:
    """SQLite-backed semantic memory with access grants."""

    def __init__(
        self,
        db_path: Path | str,
        embedder: EmbeddingProvider,
        dimension: int = 1536,
    ):
        self.db_path = resolve_path(db_path)
        self.embedder = embedder
        self.dimension = dimension
        self._conn: aiosqlite.Connection | None = None
        # Coroutines share one connection, hence one transaction
        self._write_lock = asyncio.Lock()

    async def connect(self) -> bool:
        """Open the database and ensure the schema exists."""
        if self._conn is not None:
            return True
        self._conn = await open_connection(self.db_path)
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        logger.info(f"Connected to semantic memory index: {self.db_path}")
        return True

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Semantic memory index not connected. Call connect() first.")
        return self._conn

    def _as_vector(self, values: Sequence[float], error: type[Exception]) -> np.ndarray:
        vector = np.asarray(values, dtype=np.float32)
        if vector.ndim != 1 or vector.shape[0] != self.dimension:
            raise error(
                f"Embedding must have {self.dimension} dimensions, got shape {vector.shape}"
            )
        return vector

    def _row_to_memory(self, row: Sequence[Any]) -> Memory:
        return Memory(
            id=row[0],
            agent_id=row[1],
            type=MemoryType(row[2]),
            content=row[3],
            embedding=tuple(float(x) for x in _unpack(row[4])),
            metadata=json.loads(row[5]) if row[5] else {},
            created_at=row[6],
            updated_at=row[7],
        )

    # Memory operations

    async def create_memory(
        self,
        agent_id: str,
        type: MemoryType | str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Memory:
        """Embed and persist a memory, granting its creator admin access.

        Memory row and self-grant are written in one transaction so a
        failure never leaves an inaccessible memory behind.
        """
        memory_type = _parse_enum(MemoryType, type, "memory type")
        if not agent_id:
            raise ValidationError("Agent ID is required")
        if not isinstance(content, str) or not content:
            raise ValidationError("Memory content is required")
        metadata = dict(metadata or {})
        try:
            metadata_json = json.dumps(metadata)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Metadata is not serializable: {e}") from e

        # ProviderError propagates untouched; nothing has been written yet
        vector = self._as_vector(await self.embedder.embed(content), ProviderError)

        now = utc()
        memory = Memory(
            id=str(uuid4()),
            agent_id=agent_id,
            type=memory_type,
            content=content,
            embedding=tuple(float(x) for x in vector),
            metadata=metadata,
            created_at=now,
            updated_at=now,
        )

        async with self._write_lock:
            try:
                await self.conn.execute(
                    """INSERT INTO memories
                       (id, agent_id, type, content, embedding, metadata, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        memory.id,
                        agent_id,
                        memory_type.value,
                        content,
                        _pack(vector),
                        metadata_json,
                        now,
                        now,
                    ),
                )
                await self._upsert_grant(memory.id, agent_id, PermissionLevel.ADMIN)
                await self.conn.commit()
            except Exception:
                await self.conn.rollback()
                logger.error(f"Failed to create memory for agent {agent_id}, rolled back")
                raise

        logger.info(f"Created {memory_type.value} memory {memory.id} for agent {agent_id}")
        return memory

    async def get_memory(self, memory_id: str, requesting_agent_id: str) -> Memory | None:
        """Get a memory by ID if the requesting agent holds any grant on it."""
        async with self.conn.execute(
            f"SELECT {_MEMORY_COLUMNS} FROM memories m WHERE m.id = ? AND {_VISIBLE_TO}",
            (memory_id, requesting_agent_id),
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_memory(row) if row else None

    async def get_memories_by_agent(
        self,
        agent_id: str,
        type: MemoryType | str | None = None,
    ) -> list[Memory]:
        """All memories the agent holds any grant on, newest first."""
        sql = f"SELECT {_MEMORY_COLUMNS} FROM memories m WHERE {_VISIBLE_TO}"
        params: list[Any] = [agent_id]
        if type is not None:
            sql += " AND m.type = ?"
            params.append(_parse_enum(MemoryType, type, "memory type").value)
        sql += " ORDER BY m.created_at DESC"

        async with self.conn.execute(sql, params) as cursor:
            return [self._row_to_memory(row) async for row in cursor]

    # Search

    async def search_memories(
        self,
        query_embedding: Sequence[float],
        requesting_agent_id: str,
        similarity_threshold: float = 0.7,
        max_results: int = 10,
    ) -> list[MemorySearchResult]:
        """Rank visible memories by cosine similarity to the query.

        Only memories the requesting agent holds a grant on (any level)
        are candidates. Returns an empty list when nothing qualifies.
        """
        if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results < 1:
            raise ValidationError(f"max_results must be a positive integer, got {max_results!r}")
        query = self._as_vector(query_embedding, ValidationError)

        async with self.conn.execute(
            f"SELECT {_MEMORY_COLUMNS} FROM memories m WHERE {_VISIBLE_TO}",
            (requesting_agent_id,),
        ) as cursor:
            rows = await cursor.fetchall()

        if not rows:
            logger.debug(f"No memories visible to agent {requesting_agent_id}")
            return []

        matrix = np.vstack([_unpack(row[4]) for row in rows])
        sims = cosine_similarities(matrix, query)

        order = np.argsort(-sims, kind="stable")
        results = []
        for idx in order:
            score = float(sims[idx])
            if score < similarity_threshold:
                break
            row = rows[idx]
            results.append(
                MemorySearchResult(
                    id=row[0],
                    agent_id=row[1],
                    type=MemoryType(row[2]),
                    content=row[3],
                    similarity=score,
                    metadata=json.loads(row[5]) if row[5] else {},
                    created_at=row[6],
                )
            )
            if len(results) >= max_results:
                break

        logger.debug(
            f"Semantic search for agent {requesting_agent_id}: "
            f"{len(results)}/{len(rows)} candidates above {similarity_threshold}"
        )
        return results

    async def search_similar_content(
        self,
        text: str,
        requesting_agent_id: str,
        similarity_threshold: float = 0.7,
        max_results: int = 10,
    ) -> list[MemorySearchResult]:
        """Embed text, then search."""
        query = self._as_vector(await self.embedder.embed(text), ProviderError)
        return await self.search_memories(
            query,
            requesting_agent_id,
            similarity_threshold=similarity_threshold,
            max_results=max_results,
        )

    # Access control

    async def _upsert_grant(
        self, memory_id: str, agent_id: str, level: PermissionLevel
    ) -> None:
        """Insert or replace the level of a grant. Caller commits."""
        await self.conn.execute(
            """INSERT INTO memory_access (id, memory_id, agent_id, permission_level, created_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(memory_id, agent_id) DO UPDATE SET
                   permission_level = excluded.permission_level""",
            (str(uuid4()), memory_id, agent_id, level.value, utc()),
        )

    async def _get_grant(self, memory_id: str, agent_id: str) -> AccessGrant | None:
        async with self.conn.execute(
            """SELECT id, memory_id, agent_id, permission_level, created_at
               FROM memory_access WHERE memory_id = ? AND agent_id = ?""",
            (memory_id, agent_id),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_grant(row) if row else None

    async def _memory_exists(self, memory_id: str) -> bool:
        async with self.conn.execute(
            "SELECT 1 FROM memories WHERE id = ?", (memory_id,)
        ) as cursor:
            return await cursor.fetchone() is not None

    async def _require_memory(self, memory_id: str) -> None:
        if not await self._memory_exists(memory_id):
            raise NotFoundError(f"Memory {memory_id} not found")

    async def _require_admin(self, memory_id: str, caller_id: str | None, action: str) -> None:
        if caller_id is None:
            logger.debug(f"Unchecked {action} on memory {memory_id} (trusted caller)")
            return
        if not await self.has_access(memory_id, caller_id, PermissionLevel.ADMIN):
            raise AccessDeniedError(
                f"Agent {caller_id} needs admin on memory {memory_id} to {action}"
            )

    async def has_access(
        self,
        memory_id: str,
        agent_id: str,
        minimum: PermissionLevel | str = PermissionLevel.READ,
    ) -> bool:
        """Whether the agent's grant on the memory is at least ``minimum``."""
        required = _parse_enum(PermissionLevel, minimum, "permission level")
        grant = await self._get_grant(memory_id, agent_id)
        return grant is not None and grant.permission_level.rank >= required.rank

    async def grant_access(
        self,
        memory_id: str,
        agent_id: str,
        level: PermissionLevel | str,
        granted_by: str | None = None,
    ) -> AccessGrant:
        """Grant an agent access to a memory (replaces any existing level).

        When ``granted_by`` is given, that agent must hold admin.
        """
        permission = _parse_enum(PermissionLevel, level, "permission level")
        async with self._write_lock:
            await self._require_memory(memory_id)
            await self._require_admin(memory_id, granted_by, "grant access")

            await self._upsert_grant(memory_id, agent_id, permission)
            await self.conn.commit()
            grant = await self._get_grant(memory_id, agent_id)

        logger.info(f"Granted {permission.value} on memory {memory_id} to agent {agent_id}")
        return grant

    async def revoke_access(
        self,
        memory_id: str,
        agent_id: str,
        revoked_by: str | None = None,
    ) -> bool:
        """Delete an agent's grant. Returns True if one existed.

        An unknown memory has no grants to revoke, whoever asks.
        """
        async with self._write_lock:
            if not await self._memory_exists(memory_id):
                logger.debug(f"Revoke on unknown memory {memory_id}")
                return False
            await self._require_admin(memory_id, revoked_by, "revoke access")
            cursor = await self.conn.execute(
                "DELETE FROM memory_access WHERE memory_id = ? AND agent_id = ?",
                (memory_id, agent_id),
            )
            deleted = cursor.rowcount > 0
            await cursor.close()
            await self.conn.commit()

        if deleted:
            logger.info(f"Revoked access on memory {memory_id} from agent {agent_id}")
        return deleted

    async def get_grants(self, memory_id: str) -> list[AccessGrant]:
        """List grants on a memory, oldest first."""
        async with self.conn.execute(
            """SELECT id, memory_id, agent_id, permission_level, created_at
               FROM memory_access WHERE memory_id = ?
               ORDER BY created_at""",
            (memory_id,),
        ) as cursor:
            return [_row_to_grant(row) async for row in cursor]
