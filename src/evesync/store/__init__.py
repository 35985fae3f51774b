"""
Record Store - persistence for synced records and relations.

Usage:
    from evesync.store import SQLiteRecordStore, create_or_update

    async with SQLiteRecordStore() as store:
        character = await create_or_update(store, Character, {"characterID": 90000001})
"""

from .memory import InMemoryRecordStore
from .protocol import (
    KEY_CHARACTERS,
    RecordExistsError,
    RecordStore,
    Relation,
    create_or_update,
)
from .sqlite import SQLiteRecordStore

__all__ = [
    "InMemoryRecordStore",
    "SQLiteRecordStore",
    "RecordStore",
    "Relation",
    "KEY_CHARACTERS",
    "RecordExistsError",
    "create_or_update",
]
