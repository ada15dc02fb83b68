"""SQLite database management for the UHF RFID capture service.

Provides async database operations using aiosqlite.

Data Flow:
- Decoder looks up readers and tags by their unique ids
- Recorder saves a scan together with any reader/tag staged for creation
- unique_id columns are UNIQUE, so saving the same staged reader or tag
  twice (retry, or two frames racing) resolves to the one stored row
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional
from uuid import UUID

import aiosqlite

from models import Existing, Reader, ReaderRef, Scan, Tag, TagRef, TagType

logger = logging.getLogger(__name__)

# Database connection
_db: Optional[aiosqlite.Connection] = None


# --- Schema Definitions ---

SCHEMA_READER = """
CREATE TABLE IF NOT EXISTS reader (
    id            TEXT PRIMARY KEY,
    unique_id     TEXT NOT NULL UNIQUE,
    mode          TEXT,
    protocol      TEXT,
    last_updated  TEXT NOT NULL
);
"""

SCHEMA_TAG = """
CREATE TABLE IF NOT EXISTS tag (
    id            TEXT PRIMARY KEY,
    unique_id     TEXT NOT NULL UNIQUE,
    type          TEXT,
    last_mode     TEXT NOT NULL
);
"""

# NOTE: tag_id is NULL for frames that carried no tag identity
SCHEMA_SCAN = """
CREATE TABLE IF NOT EXISTS scan (
    id            TEXT PRIMARY KEY,
    capture_time  TEXT NOT NULL,
    reader_id     TEXT NOT NULL REFERENCES reader(id),
    tag_id        TEXT REFERENCES tag(id)
);

CREATE INDEX IF NOT EXISTS idx_scan_capture_time ON scan(capture_time);
CREATE INDEX IF NOT EXISTS idx_scan_tag_id ON scan(tag_id);
"""


async def init_db(sqlite_path: str) -> aiosqlite.Connection:
    """Initialize database connection and create tables.

    Args:
        sqlite_path: Database file path, or ":memory:".

    Returns:
        Database connection instance.
    """
    global _db

    if sqlite_path != ":memory:":
        Path(sqlite_path).parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Initializing database at: {sqlite_path}")

    _db = await aiosqlite.connect(sqlite_path)
    _db.row_factory = aiosqlite.Row

    await _db.execute("PRAGMA foreign_keys = ON")
    await _db.executescript(SCHEMA_READER)
    await _db.executescript(SCHEMA_TAG)
    await _db.executescript(SCHEMA_SCAN)
    await _db.commit()

    logger.info("Database initialized successfully")
    return _db


async def get_db() -> aiosqlite.Connection:
    """Get database connection.

    Raises:
        RuntimeError: If database not initialized.
    """
    if _db is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _db


async def close_db() -> None:
    """Close database connection."""
    global _db
    if _db is not None:
        await _db.close()
        _db = None
        logger.info("Database connection closed")


def _row_to_reader(row: aiosqlite.Row) -> Reader:
    return Reader(
        id=UUID(row["id"]),
        unique_id=row["unique_id"],
        mode=row["mode"],
        protocol=row["protocol"],
        last_updated=datetime.fromisoformat(row["last_updated"]),
    )


def _row_to_tag(row: aiosqlite.Row) -> Tag:
    return Tag(
        id=UUID(row["id"]),
        unique_id=row["unique_id"],
        type=TagType(row["type"]) if row["type"] else None,
        last_mode=row["last_mode"],
    )


# --- Lookups ---


async def find_reader_by_unique_id(unique_id: str) -> Optional[Reader]:
    """Retrieve a reader by its device identifier."""
    db = await get_db()
    async with db.execute("SELECT * FROM reader WHERE unique_id = ?", (unique_id,)) as cursor:
        row = await cursor.fetchone()
        return _row_to_reader(row) if row else None


async def find_tag_by_unique_id(unique_id: str) -> Optional[Tag]:
    """Retrieve a tag by its air-interface identifier."""
    db = await get_db()
    async with db.execute("SELECT * FROM tag WHERE unique_id = ?", (unique_id,)) as cursor:
        row = await cursor.fetchone()
        return _row_to_tag(row) if row else None


# --- Scan Operations ---


async def _id_for_unique_id(db: aiosqlite.Connection, table: str, unique_id: str) -> str:
    async with db.execute(f"SELECT id FROM {table} WHERE unique_id = ?", (unique_id,)) as cursor:
        row = await cursor.fetchone()
    if row is None:
        raise aiosqlite.IntegrityError(f"{table} {unique_id!r} missing after insert")
    return row["id"]


async def _store_reader(db: aiosqlite.Connection, ref: ReaderRef, now: datetime) -> str:
    if isinstance(ref, Existing):
        await db.execute(
            "UPDATE reader SET last_updated = ? WHERE id = ?",
            (now.isoformat(), str(ref.id)),
        )
        return str(ref.id)

    reader = ref.value
    await db.execute(
        """
        INSERT INTO reader (id, unique_id, mode, protocol, last_updated)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT DO NOTHING
        """,
        (str(reader.id), reader.unique_id, reader.mode, reader.protocol, reader.last_updated.isoformat()),
    )
    return await _id_for_unique_id(db, "reader", reader.unique_id)


async def _store_tag(db: aiosqlite.Connection, ref: TagRef, reader_id: str) -> str:
    if isinstance(ref, Existing):
        # Remember the read mode this tag was last seen in
        await db.execute(
            """
            UPDATE tag SET last_mode = COALESCE((SELECT mode FROM reader WHERE id = ?), last_mode)
            WHERE id = ?
            """,
            (reader_id, str(ref.id)),
        )
        return str(ref.id)

    tag = ref.value
    await db.execute(
        """
        INSERT INTO tag (id, unique_id, type, last_mode)
        VALUES (?, ?, ?, ?)
        ON CONFLICT DO NOTHING
        """,
        (str(tag.id), tag.unique_id, tag.type.value if tag.type else None, tag.last_mode),
    )
    return await _id_for_unique_id(db, "tag", tag.unique_id)


async def save_scan(scan: Scan) -> None:
    """Save a scan, creating any staged reader or tag in the same transaction.

    Saving the same scan twice is a no-op the second time. If the save is
    cancelled (e.g. by a timeout) the open transaction is rolled back too.

    Raises:
        aiosqlite.Error: If the transaction fails; nothing is committed.
    """
    db = await get_db()
    committed = False
    try:
        reader_id = await _store_reader(db, scan.reader, scan.capture_time)
        tag_id = await _store_tag(db, scan.tag, reader_id) if scan.tag is not None else None
        await db.execute(
            """
            INSERT INTO scan (id, capture_time, reader_id, tag_id)
            VALUES (?, ?, ?, ?)
            ON CONFLICT DO NOTHING
            """,
            (str(scan.id), scan.capture_time.isoformat(), reader_id, tag_id),
        )
        await db.commit()
        committed = True
    finally:
        if not committed:
            await db.rollback()


async def get_scan_counts() -> dict[str, int]:
    """Get row counts for readers, tags and scans."""
    db = await get_db()
    counts = {}
    for table in ("reader", "tag", "scan"):
        async with db.execute(f"SELECT COUNT(*) as count FROM {table}") as cursor:
            row = await cursor.fetchone()
            counts[f"{table}_count"] = row["count"] if row else 0
    return counts


async def get_recent_scans(limit: int = 20) -> list[dict[str, Any]]:
    """Get the most recent scans with reader and tag identifiers.

    Args:
        limit: Maximum number of scans to return.

    Returns:
        List of scan dicts, newest first.
    """
    db = await get_db()
    async with db.execute(
        """
        SELECT scan.id, scan.capture_time,
               reader.unique_id AS reader_unique_id, reader.mode,
               tag.unique_id AS tag_unique_id, tag.type AS tag_type
        FROM scan
        JOIN reader ON reader.id = scan.reader_id
        LEFT JOIN tag ON tag.id = scan.tag_id
        ORDER BY scan.capture_time DESC
        LIMIT ?
        """,
        (limit,),
    ) as cursor:
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]
