"""Shared SQLite plumbing for the durable stores."""

import sqlite3
from datetime import datetime
from pathlib import Path

import aiosqlite

from mnemo.core.errors import StoreConnectionError
from mnemo.core.types import utc

MEMORY_DB = ":memory:"


# Fixed-width ISO strings so lexicographic ORDER BY matches chronological order
def _adapt_datetime(dt: datetime) -> str:
    """Convert datetime to UTC ISO format string for SQLite storage."""
    return utc(dt).isoformat(timespec="microseconds")


def _convert_datetime(val: bytes) -> datetime:
    """Convert ISO format string from SQLite to datetime."""
    return utc(datetime.fromisoformat(val.decode()))


# Register adapters/converters explicitly (Python 3.12+ deprecates the defaults)
sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("DATETIME", _convert_datetime)


def resolve_path(db_path: Path | str) -> Path | str:
    return MEMORY_DB if db_path == MEMORY_DB else Path(db_path)


async def open_connection(db_path: Path | str) -> aiosqlite.Connection:
    """Open a connection with datetime conversion enabled.

    Raises:
        StoreConnectionError: The database file cannot be created or opened
    """
    try:
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
        # Use detect_types to enable our custom datetime converters
        conn = await aiosqlite.connect(
            db_path,
            detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        )
        await conn.execute("PRAGMA foreign_keys = ON")
    except (OSError, sqlite3.Error) as e:
        raise StoreConnectionError(f"Cannot open memory store {db_path}: {e}") from e
    return conn


async def missing_tables(conn: aiosqlite.Connection, tables: tuple[str, ...]) -> list[str]:
    async with conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'") as cursor:
        present = {row[0] async for row in cursor}
    return [t for t in tables if t not in present]
