"""Shared fixtures: stores for both backends, codec, fake embeddings."""

import hashlib
from pathlib import Path

import pytest

from mnemo.core.encryption import EncryptionCodec
from mnemo.embeddings.base import EmbeddingProvider
from mnemo.memory.base import ConversationStore
from mnemo.memory.semantic import SemanticMemoryIndex
from mnemo.memory.store import SQLiteConversationStore
from mnemo.memory.volatile import InMemoryConversationStore

DIM = 8
BACKENDS = ["sqlite", "volatile"]
TEST_KEY = bytes(range(32))


def unit(*weights: float) -> list[float]:
    """Vector of DIM with the given leading components."""
    return list(weights) + [0.0] * (DIM - len(weights))


KNOWN_VECTORS = {
    "the sky is blue": unit(1.0),
    "what colour is the sky": unit(0.95, 0.31),
    "grass is green": unit(0.0, 0.0, 1.0),
    "finish the quarterly report": unit(0.0, 0.0, 0.0, 1.0),
}


class FakeEmbeddingProvider(EmbeddingProvider):
    """Deterministic embeddings: known phrases map to fixed vectors."""

    def __init__(self, dimension: int = DIM):
        self.dimension = dimension
        self.calls: list[str] = []
        self.error: Exception | None = None
        self.override: list[float] | None = None

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error:
            raise self.error
        if self.override is not None:
            return list(self.override)
        if text in KNOWN_VECTORS:
            return list(KNOWN_VECTORS[text])
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [b / 255 - 0.5 for b in digest[: self.dimension]]


def make_store(
    kind: str,
    tmp_path: Path,
    agent_id: str = "agent-1",
    codec: EncryptionCodec | None = None,
) -> ConversationStore:
    if kind == "sqlite":
        return SQLiteConversationStore(tmp_path / "test.db", agent_id, codec=codec)
    return InMemoryConversationStore(agent_id, codec=codec)


@pytest.fixture
def codec() -> EncryptionCodec:
    return EncryptionCodec(TEST_KEY)


@pytest.fixture(params=BACKENDS)
async def store(request, tmp_path: Path, codec: EncryptionCodec):
    """Connected store with encryption configured, for each backend."""
    s = make_store(request.param, tmp_path, codec=codec)
    await s.connect()
    yield s
    await s.close()


@pytest.fixture(params=BACKENDS)
async def plain_store(request, tmp_path: Path):
    """Connected store without an encryption key, for each backend."""
    s = make_store(request.param, tmp_path)
    await s.connect()
    yield s
    await s.close()


@pytest.fixture
def embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
async def index(tmp_path: Path, embedder: FakeEmbeddingProvider):
    """Connected semantic index with small test vectors."""
    idx = SemanticMemoryIndex(tmp_path / "semantic.db", embedder, dimension=DIM)
    await idx.connect()
    yield idx
    await idx.close()
