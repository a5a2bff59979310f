"""
Memory module - conversation stores and semantic memory.

Layers:
- conversation: Dialogue turns per (agent, user)
- data: Structured key/value records per agent
- semantic: Embedded memories shared across agents via access grants

Storage: SQLite (durable) or process memory (volatile)
"""
