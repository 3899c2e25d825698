"""
Database module for the listing worker.
Implements SQLite persistence with async support.
"""

import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple, Union

import aiosqlite

# Seconds a writer waits on a locked database before giving up
BUSY_TIMEOUT_SECONDS = 30.0


def dump_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str)


class Database:
    """Thin async wrapper around one SQLite file. One connection per operation."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @asynccontextmanager
    async def connect(self):
        """Get a database connection."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(self.path, timeout=BUSY_TIMEOUT_SECONDS)
        db.row_factory = aiosqlite.Row
        try:
            yield db
        finally:
            await db.close()

    async def init_schema(self):
        """Initialize the database schema."""
        async with self.connect() as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS jobs (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    marketplace TEXT,
                    status TEXT NOT NULL DEFAULT 'queued',
                    payload TEXT,
                    progress TEXT,
                    result TEXT,
                    error TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS job_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    job_id TEXT NOT NULL,
                    level TEXT,
                    event_type TEXT,
                    message TEXT,
                    metadata TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS platform_accounts (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    marketplace TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'connected',
                    session_payload_encrypted TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            await db.execute(
                "CREATE INDEX IF NOT EXISTS idx_jobs_status_created ON jobs(status, created_at)"
            )
            await db.execute(
                "CREATE INDEX IF NOT EXISTS idx_job_events_job ON job_events(job_id)"
            )
            await db.execute(
                "CREATE INDEX IF NOT EXISTS idx_accounts_user_marketplace "
                "ON platform_accounts(user_id, marketplace)"
            )

            await self._migrate_jobs(db)
            await db.commit()

    async def _migrate_jobs(self, db: aiosqlite.Connection):
        """Add optional columns to jobs if an older file lacks them."""
        await ensure_columns(db, "jobs", [
            ("user_id", "TEXT"),
            ("marketplace", "TEXT"),
        ])

    async def fetchone(self, sql: str, params: Iterable[Any] = ()) -> Optional[aiosqlite.Row]:
        async with self.connect() as db:
            cursor = await db.execute(sql, tuple(params))
            return await cursor.fetchone()

    async def execute(self, sql: str, params: Iterable[Any] = ()) -> int:
        """Run one write statement and return the number of affected rows."""
        async with self.connect() as db:
            cursor = await db.execute(sql, tuple(params))
            await db.commit()
            return cursor.rowcount


async def table_columns(db: aiosqlite.Connection, table: str) -> set:
    cursor = await db.execute(f"PRAGMA table_info({table})")
    rows = await cursor.fetchall()
    return {row[1] for row in rows}  # (cid, name, type, notnull, dflt, pk)


async def ensure_columns(db: aiosqlite.Connection, table: str, migrations: Iterable[Tuple[str, str]]):
    existing = await table_columns(db, table)
    for col, col_type in migrations:
        if col in existing:
            continue
        await db.execute(f"ALTER TABLE {table} ADD COLUMN {col} {col_type}")
