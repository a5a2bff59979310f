"""
Configuration management.

Loads settings from environment variables and .env file.
Prefix: MNEMO_
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MNEMO_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Data storage directory")
    db_name: str = Field(default="mnemo.db", description="SQLite database name")
    memory_backend: Literal["sqlite", "volatile"] = Field(
        default="sqlite",
        description="Conversation store backend (durable sqlite or in-process volatile)",
    )
    create_schema: bool = Field(
        default=True,
        description="Create missing tables on connect (disable for externally managed schemas)",
    )

    # Encryption
    encryption_key: str = Field(
        default="",
        description="64 hex chars, or a passphrase of 32+ chars (requires encryption_salt)",
    )
    encryption_salt: str = Field(default="", description="Per-deployment random salt (hex)")

    # Semantic memory
    embedding_model: str = Field(
        default="text-embedding-3-small", description="LiteLLM embedding model"
    )
    embedding_dimension: int = Field(default=1536, description="Embedding vector size")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()
