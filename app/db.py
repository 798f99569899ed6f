"""Async SQLite key-value store.

Uses aiosqlite for non-blocking access.  The single ``kv`` table is created
on first startup via ``init_db()``.  Values are JSON text; entries may carry
an expiry (epoch seconds) after which they read as missing.
"""

from __future__ import annotations

import time
from typing import Optional

import aiosqlite

from app.config import get_settings

# Module-level connection (set during lifespan startup).
_db: aiosqlite.Connection | None = None

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key         TEXT    PRIMARY KEY,
    value       TEXT    NOT NULL,
    expires_at  INTEGER,                           -- epoch seconds, NULL = never
    updated_at  TEXT    NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_kv_expires ON kv(expires_at);
"""


# ---------------------------------------------------------------------------
# Lifecycle helpers
# ---------------------------------------------------------------------------

async def init_db() -> aiosqlite.Connection:
    """Open (or create) the SQLite database and ensure schema exists."""
    global _db  # noqa: PLW0603
    settings = get_settings()
    db_path = settings.db_abs_path

    _db = await aiosqlite.connect(str(db_path))
    _db.row_factory = aiosqlite.Row  # type: ignore[assignment]
    await _db.executescript(_SCHEMA_SQL)
    await _db.commit()
    return _db


async def close_db() -> None:
    """Close the database connection."""
    global _db  # noqa: PLW0603
    if _db is not None:
        await _db.close()
        _db = None


def get_db() -> aiosqlite.Connection:
    """Return the current database connection (call after init)."""
    if _db is None:
        raise RuntimeError("Database not initialised; call init_db() first.")
    return _db


# ---------------------------------------------------------------------------
# Key-value access
# ---------------------------------------------------------------------------

async def kv_get(key: str) -> Optional[str]:
    """Return the stored value, or None if absent or expired."""
    db = get_db()
    cursor = await db.execute("SELECT value, expires_at FROM kv WHERE key = ?", (key,))
    row = await cursor.fetchone()
    if not row:
        return None
    if row[1] is not None and row[1] <= time.time():
        await kv_delete(key)
        return None
    return row[0]


async def kv_put(key: str, value: str, *, ttl_seconds: int | None = None) -> None:
    """Upsert *value* under *key*, optionally expiring after *ttl_seconds*."""
    db = get_db()
    expires_at = int(time.time()) + ttl_seconds if ttl_seconds is not None else None
    await db.execute(
        """
        INSERT INTO kv (key, value, expires_at)
        VALUES (?, ?, ?)
        ON CONFLICT(key)
        DO UPDATE SET value      = excluded.value,
                      expires_at = excluded.expires_at,
                      updated_at = datetime('now')
        """,
        (key, value, expires_at),
    )
    await db.commit()


async def kv_delete(key: str) -> None:
    db = get_db()
    await db.execute("DELETE FROM kv WHERE key = ?", (key,))
    await db.commit()
