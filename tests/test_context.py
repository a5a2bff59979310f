"""Tests for backend selection and the memory context."""

from pathlib import Path

import pytest

from conftest import DIM, FakeEmbeddingProvider
from mnemo.core.config import Settings
from mnemo.core.context import create_conversation_store, open_context
from mnemo.core.errors import ConfigError
from mnemo.core.types import Message
from mnemo.memory.store import SQLiteConversationStore
from mnemo.memory.volatile import InMemoryConversationStore

HEX_KEY = bytes(range(32)).hex()


def make_settings(tmp_path: Path, **overrides) -> Settings:
    return Settings(data_dir=tmp_path, embedding_dimension=DIM, _env_file=None, **overrides)


def test_factory_selects_sqlite(tmp_path: Path):
    store = create_conversation_store(make_settings(tmp_path), "agent-1")
    assert isinstance(store, SQLiteConversationStore)
    assert store.db_path == tmp_path / "mnemo.db"


def test_factory_selects_volatile(tmp_path: Path):
    store = create_conversation_store(make_settings(tmp_path, memory_backend="volatile"), "agent-1")
    assert isinstance(store, InMemoryConversationStore)


def test_factory_rejects_unknown_backend(tmp_path: Path):
    settings = Settings.model_construct(memory_backend="redis", data_dir=tmp_path)
    with pytest.raises(ConfigError):
        create_conversation_store(settings, "agent-1")


@pytest.mark.asyncio
async def test_open_context_without_embedder(tmp_path: Path):
    """Store is connected and usable; no index without an embedder."""
    ctx = await open_context(make_settings(tmp_path, memory_backend="volatile"), "agent-1")
    assert ctx.index is None

    await ctx.store.store_message(Message(role="user", content="hi", user_id="u"))
    assert len(await ctx.store.get_conversation_history("u")) == 1
    await ctx.close()


@pytest.mark.asyncio
async def test_open_context_with_encryption_and_index(tmp_path: Path):
    settings = make_settings(tmp_path, encryption_key=HEX_KEY)
    ctx = await open_context(settings, "agent-1", embedder=FakeEmbeddingProvider())

    await ctx.store.store_data("secret", {"pin": 1234}, sensitive=True)
    assert await ctx.store.get_data("secret") == {"pin": 1234}

    assert ctx.index is not None
    memory = await ctx.index.create_memory("agent-1", "knowledge", "the sky is blue")
    assert [m.id for m in await ctx.index.get_memories_by_agent("agent-1")] == [memory.id]
    await ctx.close()


@pytest.mark.asyncio
async def test_open_context_without_key_rejects_sensitive(tmp_path: Path):
    ctx = await open_context(make_settings(tmp_path), "agent-1")
    with pytest.raises(ConfigError):
        await ctx.store.store_message(Message(role="user", content="x", user_id="u"), sensitive=True)
    await ctx.close()


@pytest.mark.asyncio
async def test_open_context_dimension_mismatch(tmp_path: Path):
    with pytest.raises(ConfigError):
        await open_context(
            make_settings(tmp_path), "agent-1", embedder=FakeEmbeddingProvider(dimension=4)
        )
