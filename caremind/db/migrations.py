"""Versioned schema migrations.

The schema version lives in SQLite's ``PRAGMA user_version``. Version 1 is
``schema.sql``; every later step is listed in MIGRATIONS and applied once,
in order, inside its own transaction.
"""

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

MIGRATIONS: list[tuple[int, str]] = [
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS appointments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            kind TEXT NOT NULL DEFAULT 'consulta'
                CHECK (kind IN ('consulta', 'exame', 'procedimento', 'outros')),
            scheduled_at TEXT NOT NULL,
            location TEXT,
            description TEXT,
            created_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_appointments_owner_time
            ON appointments(owner_id, scheduled_at);
        """,
    ),
]

LATEST_VERSION = max(version for version, _ in MIGRATIONS)


async def get_schema_version(db: aiosqlite.Connection) -> int:
    async with db.execute("PRAGMA user_version") as cursor:
        row = await cursor.fetchone()
    return row[0] if row else 0


async def _apply(db: aiosqlite.Connection, version: int, sql: str) -> None:
    # PRAGMA cannot take bound parameters; version is always an int from MIGRATIONS
    await db.executescript(f"BEGIN;\n{sql}\nPRAGMA user_version = {int(version)};\nCOMMIT;")
    logger.info(f"Applied schema version {version}")


async def run_migrations(db_path: Path) -> int:
    """Bring the database at db_path up to LATEST_VERSION.

    A new file gets the base schema first. Steps at or below the stored
    version are skipped, so calling this on every startup is safe.

    Returns:
        The schema version after migrating
    """
    async with aiosqlite.connect(db_path) as db:
        version = await get_schema_version(db)

        if version == 0:
            await _apply(db, 1, SCHEMA_PATH.read_text())
            version = 1
            logger.info(f"Database initialized at {db_path}")

        for step, sql in MIGRATIONS:
            if step > version:
                await _apply(db, step, sql)
                version = step

        if version > LATEST_VERSION:
            logger.warning(
                f"Database at {db_path} is at schema version {version}, "
                f"newer than this release ({LATEST_VERSION})"
            )

    return version
