"""
Core module - configuration, shared types, errors, encryption.

Components:
- config: Settings management via pydantic-settings
- types: Shared data structures (Message, DataRecord)
- errors: Error taxonomy
- encryption: AES-256-CBC field encryption
- context: Backend factory and explicit memory context
- logging: Structured logging setup
"""

from mnemo.core.config import Settings
from mnemo.core.types import DataRecord, Message, Role

__all__ = ["Settings", "Message", "DataRecord", "Role"]
