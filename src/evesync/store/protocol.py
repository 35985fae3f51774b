"""
Record Store Protocol Interface.

Abstract persistence used by the sync engine. Records are addressed by
their natural (remote-assigned) key; relations are sets of member keys
hanging off an owner key.

Implementations:
- InMemoryRecordStore: dict-backed, for tests and short-lived runs
- SQLiteRecordStore: aiosqlite-backed, JSON-encoded rows
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Optional, Protocol, TypeVar, runtime_checkable

from ..models.records import AccountKey, Character, NaturalKey, Record

R = TypeVar("R", bound=Record)


class RecordExistsError(ValueError):
    """create() was called for a natural key that is already stored."""


@dataclass(frozen=True)
class Relation:
    """A named many-to-many relation between two record types."""

    name: str
    owner_type: type[Record]
    member_type: type[Record]


KEY_CHARACTERS = Relation("account_key_characters", AccountKey, Character)


@runtime_checkable
class RecordStore(Protocol):
    """
    Abstract interface for record persistence.

    Design notes:
    - save() inserts when the natural key is absent, otherwise replaces
    - create() refuses to overwrite an existing record
    - both return the stored record with created_at / updated_at set
    - attach() is additive and idempotent per edge; detach() ignores
      members that are not attached
    """

    @abstractmethod
    async def fetch_by_natural_key(self, record_type: type[R], key: NaturalKey) -> Optional[R]:
        ...

    @abstractmethod
    async def save(self, record: R) -> R:
        ...

    @abstractmethod
    async def create(self, record: R) -> R:
        ...

    @abstractmethod
    async def fetch_related(self, relation: Relation, owner_key: NaturalKey) -> set[NaturalKey]:
        ...

    @abstractmethod
    async def attach(
        self, relation: Relation, owner_key: NaturalKey, member_keys: Iterable[NaturalKey]
    ) -> None:
        ...

    @abstractmethod
    async def detach(
        self, relation: Relation, owner_key: NaturalKey, member_keys: Iterable[NaturalKey]
    ) -> None:
        ...


async def create_or_update(
    store: RecordStore,
    record_type: type[R],
    attrs: Mapping[str, Any],
    **changes: Any,
) -> R:
    """
    Upsert a record by natural key.

    Fetches the stored record for the key described by ``attrs``/``changes``;
    if found, patches and saves it, otherwise creates a new record.

    Args:
        store: Record store
        record_type: Record class to upsert
        attrs: Remote attributes (alias-mapped by the record type)
        **changes: Extra attributes using record names (e.g. owning character_id)
    """
    candidate = record_type.model_validate({**record_type.clean_attrs(attrs), **changes})

    existing = await store.fetch_by_natural_key(record_type, candidate.natural_key)
    if existing is None:
        return await store.create(candidate)
    return await store.save(existing.patch(attrs, **changes))
