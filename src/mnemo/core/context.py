"""Memory context initialization.

Resolves the configured backend once at startup and hands callers an
explicit context holding already-connected stores.
"""

from dataclasses import dataclass

from mnemo.core.config import Settings
from mnemo.core.encryption import EncryptionCodec
from mnemo.core.errors import ConfigError
from mnemo.core.logging import get_logger
from mnemo.embeddings.base import EmbeddingProvider
from mnemo.memory.base import ConversationStore
from mnemo.memory.semantic import SemanticMemoryIndex
from mnemo.memory.store import SQLiteConversationStore
from mnemo.memory.volatile import InMemoryConversationStore

logger = get_logger("core.context")


def create_conversation_store(
    settings: Settings,
    agent_id: str,
    codec: EncryptionCodec | None = None,
) -> ConversationStore:
    """Build the configured conversation store (not yet connected)."""
    backend = settings.memory_backend
    if backend == "sqlite":
        return SQLiteConversationStore(
            settings.db_path,
            agent_id,
            codec=codec,
            create_schema=settings.create_schema,
        )
    if backend == "volatile":
        return InMemoryConversationStore(agent_id, codec=codec)
    raise ConfigError(f"Unknown memory backend: {backend}")


@dataclass
class MemoryContext:
    """Connected memory components for one agent."""

    settings: Settings
    store: ConversationStore
    index: SemanticMemoryIndex | None = None

    async def close(self) -> None:
        await self.store.close()
        if self.index is not None:
            await self.index.close()


async def open_context(
    settings: Settings,
    agent_id: str,
    embedder: EmbeddingProvider | None = None,
) -> MemoryContext:
    """Create and connect the memory components.

    Args:
        settings: Deployment settings
        agent_id: Owning agent for the conversation store
        embedder: Embedding provider; the semantic index is only built when given

    Returns:
        MemoryContext with connected store (and index)
    """
    codec = EncryptionCodec.from_settings(settings)
    store = create_conversation_store(settings, agent_id, codec=codec)
    await store.connect()

    index = None
    if embedder is not None:
        if embedder.dimension != settings.embedding_dimension:
            await store.close()
            raise ConfigError(
                f"Embedder dimension {embedder.dimension} does not match "
                f"configured embedding_dimension {settings.embedding_dimension}"
            )
        db_path = ":memory:" if settings.memory_backend == "volatile" else settings.db_path
        index = SemanticMemoryIndex(db_path, embedder, dimension=settings.embedding_dimension)
        try:
            await index.connect()
        except Exception:
            await store.close()
            raise

    logger.info(
        f"Memory context ready: backend={settings.memory_backend}, agent={agent_id}, "
        f"encryption={'on' if codec else 'off'}, semantic={'on' if index else 'off'}"
    )
    return MemoryContext(settings=settings, store=store, index=index)
