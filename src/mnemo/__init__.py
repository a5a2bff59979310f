"""
Mnemo - agent memory persistence.

Package structure:
- core: Config, logging, errors, shared types, encryption, context
- memory: Conversation stores (durable/volatile) and the semantic index
- embeddings: Embedding provider abstraction
"""

__version__ = "0.1.0"
