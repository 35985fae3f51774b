"""
SQLite Implementation of Record Store.

Each record type gets its own table holding the JSON-encoded natural key,
the JSON-encoded record and its timestamps. Encoding and decoding happen
only here: records never carry JSON strings.

Connection configuration:
    PRAGMA journal_mode=WAL
    PRAGMA busy_timeout=5000
    PRAGMA foreign_keys=ON
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Optional, TypeVar

import aiosqlite

from ..core.logging import get_logger
from ..models.records import RECORD_TYPES, NaturalKey, Record
from .memory import utc_now
from .protocol import RecordExistsError, Relation

logger = get_logger(__name__)

R = TypeVar("R", bound=Record)

RECORD_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    natural_key TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

RELATION_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS relation_edges (
    relation TEXT NOT NULL,
    owner_key TEXT NOT NULL,
    member_key TEXT NOT NULL,
    PRIMARY KEY (relation, owner_key, member_key)
)
"""


# =============================================================================
# Serialization Boundary
# =============================================================================


def encode_key(key: NaturalKey) -> str:
    return json.dumps(list(key) if isinstance(key, tuple) else key)


def decode_key(text: str) -> NaturalKey:
    value = json.loads(text)
    return tuple(value) if isinstance(value, list) else value


def dump_record(record: Record) -> str:
    """Encode a record (declared fields and extras) for storage."""
    return record.model_dump_json()


def load_record(record_type: type[R], text: str) -> R:
    return record_type.model_validate_json(text)


# =============================================================================
# Store
# =============================================================================


class SQLiteRecordStore:
    """
    aiosqlite-backed RecordStore.

    Usage:
        store = SQLiteRecordStore("cache/evesync.db")
        await store.initialize()
        ...
        await store.close()
    """

    def __init__(
        self,
        db_path: Path | str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize the store.

        Args:
            db_path: Database file. Defaults to settings.db_path; ":memory:" is allowed.
            clock: Timestamp source for created_at / updated_at
        """
        if db_path is None:
            from ..core.config import get_settings

            db_path = get_settings().db_path

        self.db_path = db_path
        self.clock = clock
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the connection and create tables. Must be called first."""
        if str(self.db_path) != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(str(self.db_path))
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA busy_timeout=5000")
        await self._db.execute("PRAGMA foreign_keys=ON")

        for record_type in RECORD_TYPES:
            await self._db.execute(RECORD_TABLE_SQL.format(table=record_type.TABLE))
        await self._db.execute(RELATION_TABLE_SQL)
        await self._db.commit()

        self._db.row_factory = aiosqlite.Row
        logger.info("Record store initialized: %s", self.db_path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> SQLiteRecordStore:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection, raising if not initialized."""
        if self._db is None:
            raise RuntimeError("Store not initialized. Call initialize() first.")
        return self._db

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    async def fetch_by_natural_key(self, record_type: type[R], key: NaturalKey) -> Optional[R]:
        async with self.db.execute(
            f"SELECT data FROM {record_type.TABLE} WHERE natural_key = ?",
            (encode_key(key),),
        ) as cursor:
            row = await cursor.fetchone()
        return load_record(record_type, row["data"]) if row else None

    async def save(self, record: R) -> R:
        now = self.clock()
        existing = await self.fetch_by_natural_key(type(record), record.natural_key)
        created_at = record.created_at or (existing.created_at if existing else None) or now
        stored = record.model_copy(update={"created_at": created_at, "updated_at": now})

        await self.db.execute(
            f"""
            INSERT INTO {record.TABLE} (natural_key, data, created_at, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(natural_key) DO UPDATE SET
                data = excluded.data,
                updated_at = excluded.updated_at
            """,
            (
                encode_key(record.natural_key),
                dump_record(stored),
                created_at.isoformat(),
                now.isoformat(),
            ),
        )
        await self.db.commit()
        return stored

    async def create(self, record: R) -> R:
        if await self.fetch_by_natural_key(type(record), record.natural_key) is not None:
            raise RecordExistsError(f"{record.TABLE} {record.natural_key!r} already exists")
        return await self.save(record)

    async def count(self, record_type: type[Record]) -> int:
        async with self.db.execute(f"SELECT COUNT(*) AS n FROM {record_type.TABLE}") as cursor:
            row = await cursor.fetchone()
        return row["n"] if row else 0

    # -------------------------------------------------------------------------
    # Relations
    # -------------------------------------------------------------------------

    async def fetch_related(self, relation: Relation, owner_key: NaturalKey) -> set[NaturalKey]:
        async with self.db.execute(
            "SELECT member_key FROM relation_edges WHERE relation = ? AND owner_key = ?",
            (relation.name, encode_key(owner_key)),
        ) as cursor:
            rows = await cursor.fetchall()
        return {decode_key(row["member_key"]) for row in rows}

    async def attach(
        self, relation: Relation, owner_key: NaturalKey, member_keys: Iterable[NaturalKey]
    ) -> None:
        owner = encode_key(owner_key)
        await self.db.executemany(
            "INSERT OR IGNORE INTO relation_edges (relation, owner_key, member_key) VALUES (?, ?, ?)",
            [(relation.name, owner, encode_key(key)) for key in member_keys],
        )
        await self.db.commit()

    async def detach(
        self, relation: Relation, owner_key: NaturalKey, member_keys: Iterable[NaturalKey]
    ) -> None:
        owner = encode_key(owner_key)
        await self.db.executemany(
            "DELETE FROM relation_edges WHERE relation = ? AND owner_key = ? AND member_key = ?",
            [(relation.name, owner, encode_key(key)) for key in member_keys],
        )
        await self.db.commit()
