"""
Embedding provider interface.
"""

from abc import ABC, abstractmethod


class EmbeddingProvider(ABC):
    """Abstract embedding provider."""

    dimension: int

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """
        Embed text as a vector of length ``dimension``.

        Raises:
            ProviderError: Quota, network or malformed response. Callers
                must let it propagate; a failed embed never becomes a
                zero vector.
        """
        ...
