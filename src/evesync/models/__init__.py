"""
evesync Models

Persisted record types.
"""

from evesync.models.records import (
    RECORD_TYPES,
    AccountKey,
    Character,
    MarketType,
    NaturalKey,
    Record,
    WalletJournalEntry,
    WalletTransaction,
    to_snake,
)

__all__ = [
    "RECORD_TYPES",
    "AccountKey",
    "Character",
    "MarketType",
    "NaturalKey",
    "Record",
    "WalletJournalEntry",
    "WalletTransaction",
    "to_snake",
]
