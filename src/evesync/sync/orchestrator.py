"""
Sync Orchestrator.

Drives the per-entity update sequence: fetch -> normalize -> persist ->
recurse into dependent entities.

- AccountKey: fetch key info, save the key, reconcile its characters.
- Character: five independent fetches run concurrently (transactions,
  journal, orders, sheet, info). Row upserts within each batch run one at a
  time; the character itself is saved once after all five succeed.
- MarketType: refetch order books and history when stale, then recompute
  metrics.

Any sub-fetch failure cancels the remaining siblings and propagates; the
entity being updated is not saved.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, TypeVar

from ..core.config import get_settings
from ..core.constants import KEY_CHARACTER_FIELDS, WALLET_ROW_COUNT
from ..core.errors import AuthError
from ..core.logging import get_logger
from ..models.records import (
    AccountKey,
    Character,
    MarketType,
    Record,
    WalletJournalEntry,
    WalletTransaction,
)
from ..store.protocol import create_or_update
from .freshness import FreshnessPolicy
from .metrics import MarketMetricsCalculator
from .normalizer import flatten_content
from .reconciler import ReconcileStrategy, RelationReconciler

if TYPE_CHECKING:
    from ..core.auth import CredentialProvider
    from ..core.client import RemoteFetch
    from ..core.config import SyncSettings
    from ..market.groups import MarketGroupPathLookup
    from ..store.protocol import RecordStore

logger = get_logger(__name__)

R = TypeVar("R", bound=Record)


# =============================================================================
# Results
# =============================================================================


@dataclass
class CharacterUpdateResult:
    """Everything a character update fetched and stored."""

    character: Character
    transactions: list[WalletTransaction] = field(default_factory=list)
    journal: list[WalletJournalEntry] = field(default_factory=list)
    orders: list[dict[str, Any]] = field(default_factory=list)
    sheet: dict[str, Any] = field(default_factory=dict)
    info: dict[str, Any] = field(default_factory=dict)


@dataclass
class KeySyncResult:
    """A key update followed by an update of each of its characters."""

    key: AccountKey
    characters: dict[int, CharacterUpdateResult] = field(default_factory=dict)


# =============================================================================
# Helpers
# =============================================================================


async def gather_all(**awaitables: Awaitable[Any]) -> dict[str, Any]:
    """
    Await named awaitables concurrently and return their results by name.

    On the first failure the remaining tasks are cancelled and awaited
    before the error is re-raised.
    """
    tasks = {name: asyncio.ensure_future(aw) for name, aw in awaitables.items()}
    try:
        await asyncio.gather(*tasks.values())
    except BaseException:
        for task in tasks.values():
            task.cancel()
        await asyncio.gather(*tasks.values(), return_exceptions=True)
        raise
    return {name: task.result() for name, task in tasks.items()}


def _rows(payload: Mapping[str, Any], rowset: str, id_field: str) -> list[dict[str, Any]]:
    """
    Flattened rows of a rowset.

    A mapping rowset is keyed by remote id, which is written into each row as
    ``id_field``. Rows of a list rowset already carry their id.
    """
    rows = payload.get(rowset) or {}
    if isinstance(rows, Mapping):
        return [{**flatten_content(row), id_field: row_id} for row_id, row in rows.items()]
    return [flatten_content(row) for row in rows]


def _items(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, Mapping):
        return list(payload.get("items") or [])
    return list(payload or [])


# =============================================================================
# Orchestrator
# =============================================================================


class SyncOrchestrator:
    """
    Runs update sequences against injected collaborators.

    Usage:
        async with AsyncRemoteClient() as remote, SQLiteRecordStore() as store:
            sync = SyncOrchestrator(remote, store)
            key = await sync.update(AccountKey(key_id=123, v_code="..."))
    """

    def __init__(
        self,
        remote: RemoteFetch,
        store: RecordStore,
        credentials: Optional[CredentialProvider] = None,
        group_lookup: Optional[MarketGroupPathLookup] = None,
        policy: Optional[FreshnessPolicy] = None,
        settings: Optional[SyncSettings] = None,
        reconcile_strategy: ReconcileStrategy = ReconcileStrategy.REPLACE,
    ) -> None:
        settings = settings or get_settings()
        self.remote = remote
        self.store = store
        self.credentials = credentials
        self.policy = policy or FreshnessPolicy.from_settings(settings)
        self.reconciler = RelationReconciler(store, strategy=reconcile_strategy)
        self.metrics = MarketMetricsCalculator(store, group_lookup)

    async def update(self, entity: Record, key: Optional[AccountKey] = None) -> Any:
        """Run the update sequence appropriate for ``entity``'s type."""
        if isinstance(entity, AccountKey):
            return await self.update_key(entity)
        if isinstance(entity, Character):
            if key is None:
                raise ValueError("Updating a character requires the account key to fetch with")
            return await self.update_character(entity, key)
        if isinstance(entity, MarketType):
            return await self.update_market_type(entity)
        raise TypeError(f"Cannot update {type(entity).__name__}")

    # -------------------------------------------------------------------------
    # Account keys
    # -------------------------------------------------------------------------

    async def update_key(self, key: AccountKey) -> AccountKey:
        """
        Refresh a key and make its character relation match the remote.

        Returns:
            The saved key
        """
        saved, _ = await self._update_key(key)
        return saved

    async def _update_key(self, key: AccountKey) -> tuple[AccountKey, list[Character]]:
        result = await self.remote.fetch("account:APIKeyInfo", key.api_params)
        key_info = result["key"]

        saved = await self.store.save(
            key.patch(
                flatten_content(
                    {name: key_info.get(name) for name in ("accessMask", "type", "expires")}
                )
            )
        )

        authoritative = {
            character_id: flatten_content(
                {
                    "characterID": character_id,
                    **{name: attrs[name] for name in KEY_CHARACTER_FIELDS if name in attrs},
                }
            )
            for character_id, attrs in (key_info.get("characters") or {}).items()
        }
        members = await self.reconciler.reconcile(saved, authoritative)

        logger.info("Updated key %s with %d character(s)", saved.key_id, len(members))
        return saved, members  # type: ignore[return-value]

    async def sync_key(self, key: AccountKey) -> KeySyncResult:
        """Update a key, then each of its characters in turn."""
        saved, characters = await self._update_key(key)
        result = KeySyncResult(key=saved)
        for character in characters:
            result.characters[character.character_id] = await self.update_character(
                character, saved
            )
        return result

    # -------------------------------------------------------------------------
    # Characters
    # -------------------------------------------------------------------------

    async def update_character(self, character: Character, key: AccountKey) -> CharacterUpdateResult:
        """
        Fetch and store everything for one character.

        Raises:
            TransportError, AuthError: A sub-fetch failed; the character is not saved
        """
        results = await gather_all(
            transactions=self._update_transactions(character, key),
            journal=self._update_journal(character, key),
            orders=self._fetch_orders(character, key),
            sheet=self._fetch_flat("char:CharacterSheet", character, key),
            info=self._fetch_flat("eve:CharacterInfo", character, key),
        )

        updated = (
            character.patch(orders=results["orders"])
            .patch(results["sheet"])
            .patch(results["info"])
        )
        saved = await self.store.save(updated)

        logger.info(
            "Updated character %s: %d transaction(s), %d journal entr(ies), %d order(s)",
            saved.character_id,
            len(results["transactions"]),
            len(results["journal"]),
            len(results["orders"]),
        )
        return CharacterUpdateResult(character=saved, **results)

    def _character_params(self, character: Character, key: AccountKey, **extra: Any) -> dict:
        return {**key.api_params, "characterID": character.character_id, **extra}

    async def _upsert_rows(
        self,
        record_type: type[R],
        rows: list[dict[str, Any]],
        character: Character,
    ) -> list[R]:
        # One upsert at a time: each fetch-then-save finishes before the next starts
        stored = []
        for attrs in rows:
            stored.append(
                await create_or_update(
                    self.store, record_type, attrs, character_id=character.character_id
                )
            )
        return stored

    async def _update_transactions(
        self, character: Character, key: AccountKey
    ) -> list[WalletTransaction]:
        result = await self.remote.fetch(
            "char:WalletTransactions",
            self._character_params(character, key, rowCount=WALLET_ROW_COUNT),
        )
        return await self._upsert_rows(
            WalletTransaction, _rows(result, "transactions", "transactionID"), character
        )

    async def _update_journal(
        self, character: Character, key: AccountKey
    ) -> list[WalletJournalEntry]:
        result = await self.remote.fetch(
            "char:WalletJournal",
            self._character_params(character, key, rowCount=WALLET_ROW_COUNT),
        )
        # The journal rowset is also named "transactions"
        return await self._upsert_rows(
            WalletJournalEntry, _rows(result, "transactions", "refID"), character
        )

    async def _fetch_orders(self, character: Character, key: AccountKey) -> list[dict[str, Any]]:
        result = await self.remote.fetch(
            "char:MarketOrders", self._character_params(character, key)
        )
        return _rows(result, "orders", "orderID")

    async def _fetch_flat(
        self, endpoint_key: str, character: Character, key: AccountKey
    ) -> dict[str, Any]:
        result = await self.remote.fetch(endpoint_key, self._character_params(character, key))
        return flatten_content(result)

    # -------------------------------------------------------------------------
    # Market types
    # -------------------------------------------------------------------------

    async def update_market_type(
        self,
        market_type: MarketType,
        character: Optional[Character] = None,
        *,
        max_age_seconds: Optional[int] = None,
        timeout_ms: Optional[int] = None,
        refresh_credentials: bool = False,
    ) -> MarketType:
        """
        Refetch a market snapshot if stale, then recompute its metrics.

        Args:
            market_type: Snapshot to update
            character: Character whose access token is used when no
                credential provider was injected
            max_age_seconds: Override the policy's max age
            timeout_ms: Override the policy's remote timeout
            refresh_credentials: Force a token refresh before fetching; the new
                tokens are saved onto ``character``
        """
        options = self.policy.resolve(max_age_seconds=max_age_seconds, timeout_ms=timeout_ms)

        if self.policy.market_type_needs_refetch(
            market_type, max_age_seconds=options.max_age_seconds
        ):
            token = await self._access_token(character, refresh_credentials)
            params = {"regionID": market_type.region_id, "typeID": market_type.type_id}

            results = await gather_all(
                sell=self.remote.fetch(
                    "market:SellOrders", params, timeout_ms=options.timeout_ms, token=token
                ),
                buy=self.remote.fetch(
                    "market:BuyOrders", params, timeout_ms=options.timeout_ms, token=token
                ),
                history=self.remote.fetch(
                    "market:History", params, timeout_ms=options.timeout_ms, token=token
                ),
            )
            market_type = await self.store.save(
                market_type.patch(
                    history=_items(results["history"]),
                    sell_orders=_items(results["sell"]),
                    buy_orders=_items(results["buy"]),
                )
            )
        else:
            logger.debug(
                "Market %s/%s is fresh, skipping fetch",
                market_type.region_id,
                market_type.type_id,
            )

        return await self.metrics.summarize(market_type)

    async def _access_token(self, character: Optional[Character], refresh: bool) -> str:
        if self.credentials is not None:
            if refresh:
                return await self._refresh_token(self.credentials, character)
            return await self.credentials.get_access_token()
        if character is not None and character.access_token:
            return character.access_token
        raise AuthError("No credential provider or character access token available")

    async def _refresh_token(
        self, credentials: CredentialProvider, character: Optional[Character]
    ) -> str:
        token = await credentials.refresh()
        if character is not None:
            # Keep the stored character usable on the next run
            changes: dict[str, Any] = {"access_token": token}
            rotated = getattr(credentials, "refresh_token", None)
            if rotated:
                changes["refresh_token"] = rotated
            await self.store.save(character.patch(**changes))
        return token

