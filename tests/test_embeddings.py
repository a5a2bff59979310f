"""Tests for the LiteLLM embedding provider."""

from types import SimpleNamespace

import pytest

from mnemo.core.config import Settings
from mnemo.core.errors import ProviderError
from mnemo.embeddings import litellm_adapter
from mnemo.embeddings.litellm_adapter import LiteLLMEmbeddingProvider


def fake_response(vector: list[float]) -> SimpleNamespace:
    return SimpleNamespace(data=[{"object": "embedding", "index": 0, "embedding": vector}])


@pytest.mark.asyncio
async def test_embed_returns_vector(monkeypatch):
    """Provider passes model and input through to LiteLLM."""
    captured = {}

    async def fake_aembedding(**params):
        captured.update(params)
        return fake_response([0.1, 0.2, 0.3])

    monkeypatch.setattr(litellm_adapter, "aembedding", fake_aembedding)

    provider = LiteLLMEmbeddingProvider(model="test-embed", dimension=3, api_key="sk-test")
    assert await provider.embed("hello") == pytest.approx([0.1, 0.2, 0.3])
    assert captured == {"model": "test-embed", "input": ["hello"], "api_key": "sk-test"}


@pytest.mark.asyncio
async def test_embed_accepts_object_items(monkeypatch):
    async def fake_aembedding(**params):
        return SimpleNamespace(data=[SimpleNamespace(embedding=[1, 0])])

    monkeypatch.setattr(litellm_adapter, "aembedding", fake_aembedding)

    provider = LiteLLMEmbeddingProvider(model="test-embed", dimension=2)
    assert await provider.embed("hello") == [1.0, 0.0]


@pytest.mark.asyncio
async def test_embed_failure_raises_provider_error(monkeypatch):
    """Upstream failures become ProviderError, never a zero vector."""
    upstream = RuntimeError("rate limited")

    async def fake_aembedding(**params):
        raise upstream

    monkeypatch.setattr(litellm_adapter, "aembedding", fake_aembedding)

    provider = LiteLLMEmbeddingProvider(model="test-embed", dimension=3)
    with pytest.raises(ProviderError) as exc_info:
        await provider.embed("hello")
    assert exc_info.value.__cause__ is upstream


@pytest.mark.asyncio
async def test_embed_wrong_dimension(monkeypatch):
    async def fake_aembedding(**params):
        return fake_response([0.1, 0.2])

    monkeypatch.setattr(litellm_adapter, "aembedding", fake_aembedding)

    provider = LiteLLMEmbeddingProvider(model="test-embed", dimension=3)
    with pytest.raises(ProviderError):
        await provider.embed("hello")


def test_from_settings():
    settings = Settings(embedding_model="custom-model", embedding_dimension=768, _env_file=None)
    provider = LiteLLMEmbeddingProvider.from_settings(settings)
    assert provider.model == "custom-model"
    assert provider.dimension == 768
