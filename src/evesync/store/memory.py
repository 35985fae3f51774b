"""
In-memory Record Store.

Dict-backed RecordStore used by tests and one-shot sync runs. Records are
immutable, so stored values can be handed out without copying.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Optional, TypeVar

from ..models.records import NaturalKey, Record
from .protocol import RecordExistsError, Relation

R = TypeVar("R", bound=Record)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRecordStore:
    """RecordStore keeping everything in process memory."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self.clock = clock
        self._records: dict[str, dict[NaturalKey, Record]] = defaultdict(dict)
        self._relations: dict[tuple[str, NaturalKey], set[NaturalKey]] = defaultdict(set)

    async def fetch_by_natural_key(self, record_type: type[R], key: NaturalKey) -> Optional[R]:
        return self._records[record_type.TABLE].get(key)  # type: ignore[return-value]

    async def save(self, record: R) -> R:
        table = self._records[record.TABLE]
        now = self.clock()
        existing = table.get(record.natural_key)
        created_at = record.created_at or (existing.created_at if existing else None) or now
        stored = record.model_copy(update={"created_at": created_at, "updated_at": now})
        table[record.natural_key] = stored
        return stored

    async def create(self, record: R) -> R:
        if record.natural_key in self._records[record.TABLE]:
            raise RecordExistsError(f"{record.TABLE} {record.natural_key!r} already exists")
        return await self.save(record)

    async def fetch_related(self, relation: Relation, owner_key: NaturalKey) -> set[NaturalKey]:
        return set(self._relations[(relation.name, owner_key)])

    async def attach(
        self, relation: Relation, owner_key: NaturalKey, member_keys: Iterable[NaturalKey]
    ) -> None:
        self._relations[(relation.name, owner_key)].update(member_keys)

    async def detach(
        self, relation: Relation, owner_key: NaturalKey, member_keys: Iterable[NaturalKey]
    ) -> None:
        self._relations[(relation.name, owner_key)].difference_update(member_keys)

    def all(self, record_type: type[R]) -> list[R]:
        """Every stored record of a type (test helper)."""
        return list(self._records[record_type.TABLE].values())  # type: ignore[arg-type]
