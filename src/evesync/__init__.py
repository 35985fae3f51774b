"""
evesync - account, character and market sync for the EVE Online API

Pulls account keys, characters, wallet rows and market snapshots from the
remote API, normalizes them into flat records and keeps them fresh in a
record store.

Usage as library:
    from evesync import AccountKey, AsyncRemoteClient, SQLiteRecordStore, SyncOrchestrator

    async with AsyncRemoteClient() as remote, SQLiteRecordStore() as store:
        sync = SyncOrchestrator(remote, store)
        result = await sync.sync_key(AccountKey(key_id=123456, v_code="..."))

Package structure:
    evesync/
    ├── core/     # Config, logging, errors, remote client, credentials
    ├── models/   # Persisted record types
    ├── store/    # Record stores (in-memory, SQLite)
    ├── market/   # Market group lookups
    └── sync/     # Normalizer, freshness, metrics, reconciler, orchestrator
"""

__version__ = "1.0.0"

from .core import (
    AsyncRemoteClient,
    AuthError,
    PartialReconciliationError,
    SyncError,
    TransportError,
)
from .models import AccountKey, Character, MarketType
from .store import InMemoryRecordStore, SQLiteRecordStore
from .sync import SyncOrchestrator

__all__ = [
    "__version__",
    "AsyncRemoteClient",
    "SyncError",
    "TransportError",
    "AuthError",
    "PartialReconciliationError",
    "AccountKey",
    "Character",
    "MarketType",
    "InMemoryRecordStore",
    "SQLiteRecordStore",
    "SyncOrchestrator",
]
