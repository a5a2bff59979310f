"""Tests for configuration module."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from mnemo.core.config import Settings


def test_default_settings():
    """Settings load with defaults."""
    settings = Settings(
        _env_file=None,  # Don't load .env in tests
    )
    assert settings.data_dir == Path("data")
    assert settings.memory_backend == "sqlite"
    assert settings.encryption_key == ""
    assert settings.embedding_dimension == 1536
    assert settings.create_schema is True


def test_db_path():
    """Database path combines data_dir and db_name."""
    settings = Settings(
        data_dir=Path("/tmp/test"),
        db_name="test.db",
        _env_file=None,
    )
    assert settings.db_path == Path("/tmp/test/test.db")


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("MNEMO_MEMORY_BACKEND", "volatile")
    monkeypatch.setenv("MNEMO_EMBEDDING_DIMENSION", "768")
    settings = Settings(_env_file=None)
    assert settings.memory_backend == "volatile"
    assert settings.embedding_dimension == 768


def test_unknown_backend_rejected():
    with pytest.raises(ValidationError):
        Settings(memory_backend="redis", _env_file=None)
