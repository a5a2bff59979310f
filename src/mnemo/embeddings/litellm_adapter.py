"""LiteLLM adapter - embeddings through any LiteLLM-supported provider."""

import litellm
from litellm import aembedding

from mnemo.core.config import Settings
from mnemo.core.errors import ProviderError
from mnemo.core.logging import get_logger
from mnemo.embeddings.base import EmbeddingProvider

logger = get_logger("embeddings.litellm_adapter")

# Disable LiteLLM's verbose logging
litellm.suppress_debug_info = True


class LiteLLMEmbeddingProvider(EmbeddingProvider):
    """Embedding provider backed by ``litellm.aembedding``."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        dimension: int = 1536,
        api_key: str | None = None,
        api_base: str | None = None,
    ):
        self.model = model
        self.dimension = dimension
        self.api_key = api_key
        self.api_base = api_base

    @classmethod
    def from_settings(cls, settings: Settings) -> "LiteLLMEmbeddingProvider":
        return cls(model=settings.embedding_model, dimension=settings.embedding_dimension)

    async def embed(self, text: str) -> list[float]:
        """Call LiteLLM embedding for a single text.

        Args:
            text: Content to embed

        Returns:
            Embedding vector
        """
        params = {"model": self.model, "input": [text]}
        if self.api_key:
            params["api_key"] = self.api_key
        if self.api_base:
            params["api_base"] = self.api_base

        logger.debug(f"LiteLLM embedding request: model={self.model}, chars={len(text)}")

        try:
            response = await aembedding(**params)
            item = response.data[0]
            vector = item["embedding"] if isinstance(item, dict) else item.embedding
        except Exception as e:
            logger.error(f"LiteLLM embedding error for {self.model}: {e}")
            raise ProviderError(f"Embedding failed ({self.model}): {e}") from e

        if len(vector) != self.dimension:
            raise ProviderError(
                f"Embedding model {self.model} returned {len(vector)} dimensions, "
                f"expected {self.dimension}"
            )
        return [float(x) for x in vector]
