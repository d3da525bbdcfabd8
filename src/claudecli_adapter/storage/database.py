"""SQLite database management for command history."""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

from claudecli_adapter.storage.models import CommandRecord

logger = logging.getLogger(__name__)

_db: aiosqlite.Connection | None = None


async def init_db(db_path: str) -> None:
    """Initialize database and create tables."""
    global _db
    resolved = Path(db_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)

    _db = await aiosqlite.connect(str(resolved))
    _db.row_factory = aiosqlite.Row
    await _db.execute("PRAGMA journal_mode = WAL")

    await _db.execute("""
        CREATE TABLE IF NOT EXISTS commands (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id TEXT NOT NULL,
            command TEXT NOT NULL,
            stdout TEXT DEFAULT '',
            stderr TEXT DEFAULT '',
            exit_code INTEGER,
            execution_time_ms INTEGER,
            status TEXT DEFAULT '',
            source TEXT DEFAULT 'claude'
                CHECK(source IN ('claude', 'tmux')),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    await _db.execute("CREATE INDEX IF NOT EXISTS idx_commands_created_at ON commands(created_at)")
    await _db.execute("CREATE INDEX IF NOT EXISTS idx_commands_session_id ON commands(session_id)")
    await _db.commit()
    logger.info("Database initialized: %s", resolved)


def is_open() -> bool:
    return _db is not None


async def get_db() -> aiosqlite.Connection:
    """Get the database connection."""
    if _db is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _db


async def close_db() -> None:
    """Close the database connection."""
    global _db
    if _db is not None:
        await _db.close()
        _db = None
        logger.info("Database closed")


async def save_command(
    session_id: str,
    command: str,
    stdout: str,
    stderr: str,
    exit_code: int,
    execution_time_ms: int,
    status: str = "",
    source: str = "claude",
) -> None:
    """Save a command execution to history. No-op while the database is closed."""
    if _db is None:
        return
    try:
        await _db.execute(
            """INSERT INTO commands
                   (session_id, command, stdout, stderr, exit_code, execution_time_ms, status, source)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (session_id, command, stdout, stderr, exit_code, execution_time_ms, status, source),
        )
        await _db.commit()
    except Exception:
        logger.exception("Failed to save command history")


async def get_recent_commands(limit: int = 10, session_id: str | None = None) -> list[CommandRecord]:
    """Get recent command history, newest first."""
    db = await get_db()
    query = "SELECT * FROM commands"
    params: tuple = ()
    if session_id is not None:
        query += " WHERE session_id = ?"
        params = (session_id,)
    cursor = await db.execute(query + " ORDER BY id DESC LIMIT ?", (*params, limit))
    rows = await cursor.fetchall()
    return [CommandRecord(**dict(row)) for row in rows]
