"""
Persisted record models.

Records are frozen pydantic models. They never mutate in place; every
change goes through ``patch()``, which returns a new validated record:

    character = Character.build({"characterID": "90000001", "name": "Pilot"})
    character = character.patch({"balance": "1500.25", "cachedUntil": "..."})

``patch()`` and ``build()`` apply the remote-to-record attribute rules:

- attributes in IGNORED_ATTRIBUTES are dropped
- empty strings become None
- FIELD_ALIASES renames remote names, anything else is snake_cased
- unknown attributes are kept as pydantic extras

Encoding to storage is the store's job; see evesync.store.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any, ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict

NaturalKey = Union[int, str, tuple[Any, ...]]

_CAMEL_BOUNDARY_ACRONYM = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")


def to_snake(name: str) -> str:
    """Convert a camelCase / PascalCase remote attribute name to snake_case."""
    name = _CAMEL_BOUNDARY_ACRONYM.sub(r"\1_\2", name)
    name = _CAMEL_BOUNDARY.sub(r"\1_\2", name)
    return name.lower()


# =============================================================================
# Base Record
# =============================================================================


class Record(BaseModel):
    """
    Base class for persisted records.

    Configuration:
    - frozen: records change only through patch()
    - extra="allow": remote attributes without a declared field are kept
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    TABLE: ClassVar[str] = ""
    NATURAL_KEY: ClassVar[tuple[str, ...]] = ()
    FIELD_ALIASES: ClassVar[dict[str, str]] = {}
    IGNORED_ATTRIBUTES: ClassVar[frozenset[str]] = frozenset({"currentTime", "cachedUntil"})

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def clean_attrs(cls, attrs: Mapping[str, Any]) -> dict[str, Any]:
        """Map remote attribute names and values onto record attribute names."""
        out: dict[str, Any] = {}
        for key, value in attrs.items():
            if key in cls.IGNORED_ATTRIBUTES:
                continue
            if value == "":
                value = None
            out[cls.FIELD_ALIASES.get(key) or to_snake(key)] = value
        return out

    @classmethod
    def build(cls, attrs: Mapping[str, Any]):
        """Create a new (unsaved) record from remote attributes."""
        return cls.model_validate(cls.clean_attrs(attrs))

    def patch(self, attrs: Optional[Mapping[str, Any]] = None, **changes: Any):
        """
        Return a copy with ``attrs`` (remote names) and ``changes`` applied.

        ``changes`` use record attribute names and skip alias mapping.
        """
        data = self.model_dump()
        if attrs:
            data.update(self.clean_attrs(attrs))
        data.update(changes)
        return type(self).model_validate(data)

    @property
    def natural_key(self) -> NaturalKey:
        values = tuple(getattr(self, name) for name in self.NATURAL_KEY)
        return values[0] if len(values) == 1 else values

    @classmethod
    def key_from(cls, attrs: Mapping[str, Any]) -> NaturalKey:
        """Natural key of a mapping that uses record attribute names."""
        values = tuple(attrs[name] for name in cls.NATURAL_KEY)
        return values[0] if len(values) == 1 else values


# =============================================================================
# Account & Character
# =============================================================================


class AccountKey(Record):
    """A keyID/vCode credential pair granting access to a remote account."""

    TABLE: ClassVar[str] = "account_keys"
    NATURAL_KEY: ClassVar[tuple[str, ...]] = ("key_id",)
    FIELD_ALIASES: ClassVar[dict[str, str]] = {
        "keyID": "key_id",
        "vCode": "v_code",
        "accessMask": "access_mask",
    }

    key_id: int
    v_code: Optional[str] = None
    access_mask: Optional[int] = None
    type: Optional[str] = None
    expires: Optional[datetime] = None

    @property
    def api_params(self) -> dict[str, Any]:
        return {"keyID": self.key_id, "vCode": self.v_code}


class Character(Record):
    """
    A game character, reachable through one or more account keys.

    ``orders`` is the character's open market orders, kept as an embedded
    list rather than relational rows.
    """

    TABLE: ClassVar[str] = "characters"
    NATURAL_KEY: ClassVar[tuple[str, ...]] = ("character_id",)
    FIELD_ALIASES: ClassVar[dict[str, str]] = {
        "CharacterID": "character_id",
        "CharacterName": "character_name",
        "name": "character_name",
        "corporation": "corporation_name",
        "balance": "account_balance",
        "alliance": "alliance_name",
        "bloodline": "bloodline",
        "bloodLine": "bloodline",
        "bloodlineID": "bloodline_id",
        "bloodLineID": "bloodline_id",
    }

    character_id: int
    character_name: Optional[str] = None
    corporation_id: Optional[int] = None
    corporation_name: Optional[str] = None
    alliance_id: Optional[int] = None
    alliance_name: Optional[str] = None
    faction_id: Optional[int] = None
    faction_name: Optional[str] = None
    bloodline: Optional[str] = None
    bloodline_id: Optional[int] = None
    account_balance: Optional[float] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    orders: Optional[list[dict[str, Any]]] = None


# =============================================================================
# Wallet
# =============================================================================


class WalletTransaction(Record):
    """A market transaction, upserted by its remote transactionID."""

    TABLE: ClassVar[str] = "wallet_transactions"
    NATURAL_KEY: ClassVar[tuple[str, ...]] = ("transaction_id",)
    FIELD_ALIASES: ClassVar[dict[str, str]] = {"transactionID": "transaction_id"}

    transaction_id: int
    character_id: int
    type_id: Optional[int] = None
    quantity: Optional[int] = None
    price: Optional[float] = None


class WalletJournalEntry(Record):
    """A wallet journal entry, upserted by its remote refID."""

    TABLE: ClassVar[str] = "wallet_journal"
    NATURAL_KEY: ClassVar[tuple[str, ...]] = ("ref_id",)
    FIELD_ALIASES: ClassVar[dict[str, str]] = {"refID": "ref_id"}

    ref_id: int
    character_id: int
    ref_type_id: Optional[int] = None
    amount: Optional[float] = None
    balance: Optional[float] = None


# =============================================================================
# Market
# =============================================================================


class MarketType(Record):
    """
    Cached per-region snapshot of one item type's market.

    ``updated_at`` gates refetching; see evesync.sync.freshness.
    """

    TABLE: ClassVar[str] = "market_types"
    NATURAL_KEY: ClassVar[tuple[str, ...]] = ("region_id", "type_id")

    region_id: int
    type_id: int
    market_group_id: Optional[int] = None

    history: Optional[list[dict[str, Any]]] = None
    buy_orders: Optional[list[dict[str, Any]]] = None
    sell_orders: Optional[list[dict[str, Any]]] = None

    buy: Optional[float] = None
    sell: Optional[float] = None
    spread: Optional[float] = None
    margin: Optional[float] = None
    market_group_id_path: Optional[list[int]] = None

    @property
    def has_complete_data(self) -> bool:
        return (
            self.history is not None
            and self.sell_orders is not None
            and self.buy_orders is not None
        )


RECORD_TYPES: tuple[type[Record], ...] = (
    AccountKey,
    Character,
    WalletTransaction,
    WalletJournalEntry,
    MarketType,
)
