"""
Embeddings module - embedding provider abstraction.

Providers:
- litellm: Any LiteLLM-supported embedding model (OpenAI by default)

The semantic memory index depends only on EmbeddingProvider.
"""
