"""
Relation Reconciler.

Makes a persisted many-to-many relation match an authoritative member set
fetched from the remote API.

The default REPLACE strategy detaches every current member, upserts the
authoritative members one at a time, then attaches them all. Detach always
completes before attach starts. Anything failing after the detach has
committed raises PartialReconciliationError, since the relation is then left
detached in the store.

INCREMENTAL upserts first and then touches only the edges that change.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from ..core.errors import PartialReconciliationError
from ..core.logging import get_logger
from ..models.records import NaturalKey, Record
from ..store.protocol import KEY_CHARACTERS, RecordStore, Relation, create_or_update

logger = get_logger(__name__)


class ReconcileStrategy(Enum):
    REPLACE = "replace"
    INCREMENTAL = "incremental"


class RelationReconciler:
    """Reconciles one relation type; owner and member types come from the Relation."""

    def __init__(
        self,
        store: RecordStore,
        relation: Relation = KEY_CHARACTERS,
        strategy: ReconcileStrategy = ReconcileStrategy.REPLACE,
    ) -> None:
        self.store = store
        self.relation = relation
        self.strategy = strategy

    async def reconcile(
        self,
        owner: Record,
        authoritative: Mapping[Any, Mapping[str, Any]],
    ) -> list[Record]:
        """
        Replace ``owner``'s members with the authoritative set.

        Args:
            owner: Relation owner (e.g. an AccountKey)
            authoritative: Remote member attributes, keyed by remote id

        Returns:
            The upserted member records, in authoritative order

        Raises:
            PartialReconciliationError: Failure after members were detached
        """
        if self.strategy is ReconcileStrategy.INCREMENTAL:
            return await self._reconcile_incremental(owner, authoritative)
        return await self._reconcile_replace(owner, authoritative)

    async def _upsert_members(self, authoritative: Mapping[Any, Mapping[str, Any]]) -> list[Record]:
        members = []
        for attrs in authoritative.values():
            members.append(await create_or_update(self.store, self.relation.member_type, attrs))
        return members

    async def _reconcile_replace(
        self, owner: Record, authoritative: Mapping[Any, Mapping[str, Any]]
    ) -> list[Record]:
        owner_key = owner.natural_key
        current = await self.store.fetch_related(self.relation, owner_key)
        await self.store.detach(self.relation, owner_key, current)

        try:
            members = await self._upsert_members(authoritative)
            await self.store.attach(self.relation, owner_key, [m.natural_key for m in members])
        except Exception as e:
            logger.error(
                "Reconciling %s for %r failed after detaching %d member(s)",
                self.relation.name,
                owner_key,
                len(current),
            )
            raise PartialReconciliationError(owner_key, current, e) from e

        self._log_result(owner_key, current, {m.natural_key for m in members})
        return members

    async def _reconcile_incremental(
        self, owner: Record, authoritative: Mapping[Any, Mapping[str, Any]]
    ) -> list[Record]:
        owner_key = owner.natural_key
        current = await self.store.fetch_related(self.relation, owner_key)
        members = await self._upsert_members(authoritative)
        wanted = {m.natural_key for m in members}

        removed = current - wanted
        await self.store.detach(self.relation, owner_key, removed)
        try:
            await self.store.attach(self.relation, owner_key, wanted - current)
        except Exception as e:
            raise PartialReconciliationError(owner_key, removed, e) from e

        self._log_result(owner_key, current, wanted)
        return members

    def _log_result(
        self, owner_key: NaturalKey, before: set[NaturalKey], after: set[NaturalKey]
    ) -> None:
        logger.info(
            "Reconciled %s for %r: %d kept, %d added, %d removed",
            self.relation.name,
            owner_key,
            len(before & after),
            len(after - before),
            len(before - after),
        )
