"""
evesync Test Suite - Shared Fixtures and Configuration

Provides fake collaborators (remote fetch, clock) and sample remote
payloads shaped like the live API's responses.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from evesync.store import InMemoryRecordStore

# =============================================================================
# Fake Collaborators
# =============================================================================


class FakeRemote:
    """
    RemoteFetch stand-in.

    ``responses`` maps an endpoint key to a payload, an exception instance
    (raised), or a callable taking the params and returning either.
    Every call is recorded in ``calls`` as (endpoint_key, params, kwargs).
    """

    def __init__(self, responses: Optional[dict[str, Any]] = None, delay: float = 0.0) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.delay = delay
        self.calls: list[tuple[str, dict[str, Any], dict[str, Any]]] = []

    async def fetch(self, endpoint_key, params=None, *, timeout_ms=None, token=None):
        params = dict(params or {})
        self.calls.append((endpoint_key, params, {"timeout_ms": timeout_ms, "token": token}))
        if self.delay:
            await asyncio.sleep(self.delay)

        response = self.responses[endpoint_key]
        if callable(response) and not isinstance(response, BaseException):
            response = response(params)
        if isinstance(response, BaseException):
            raise response
        return response

    def called(self, endpoint_key: str) -> list[dict[str, Any]]:
        return [params for key, params, _ in self.calls if key == endpoint_key]


class FakeClock:
    """Settable clock for stores; starts at 2026-01-15 12:00 UTC."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


# =============================================================================
# Singleton Reset
# =============================================================================


@pytest.fixture(autouse=True)
def reset_all_singletons(monkeypatch):
    """
    Reset settings and logging state around every test.

    EVESYNC_* variables from the developer's shell are removed so tests see
    defaults.
    """
    import os

    from evesync.core.config import reset_settings
    from evesync.core.logging import reset_logging

    for name in list(os.environ):
        if name.startswith("EVESYNC_"):
            monkeypatch.delenv(name)

    reset_settings()
    reset_logging()
    yield
    reset_settings()
    reset_logging()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryRecordStore:
    return InMemoryRecordStore(clock=clock)


@pytest.fixture
def make_remote() -> Callable[..., FakeRemote]:
    return FakeRemote


@pytest.fixture
def key_info_payload() -> Callable[..., dict]:
    """Build an account:APIKeyInfo payload for the given character IDs."""

    def build(*character_ids: int, access_mask: int = 268435455) -> dict:
        return {
            "currentTime": "2026-01-15 12:00:00",
            "key": {
                "accessMask": str(access_mask),
                "type": "Account",
                "expires": "",
                "characters": {
                    str(character_id): {
                        "characterID": str(character_id),
                        "characterName": f"Pilot {character_id}",
                        "corporationID": "98000001",
                        "corporationName": "Test Corp",
                        "allianceID": "0",
                        "allianceName": "",
                        "factionID": "0",
                        "factionName": "",
                        "shipTypeID": "670",
                    }
                    for character_id in character_ids
                },
            },
            "cachedUntil": "2026-01-15 12:05:00",
        }

    return build


@pytest.fixture
def character_payloads() -> dict[str, Any]:
    """Responses for the five character endpoints, for character 101."""
    return {
        "char:WalletTransactions": {
            "transactions": {
                "5001": {
                    "transactionDateTime": "2026-01-14 10:00:00",
                    "quantity": "10",
                    "typeID": "34",
                    "typeName": "Tritanium",
                    "price": "5.50",
                    "transactionType": "buy",
                },
                "5002": {
                    "transactionDateTime": "2026-01-14 11:00:00",
                    "quantity": "2",
                    "typeID": "35",
                    "typeName": "Pyerite",
                    "price": "11.00",
                    "transactionType": "sell",
                },
            }
        },
        "char:WalletJournal": {
            "transactions": {
                "9001": {
                    "date": "2026-01-14 10:00:00",
                    "refTypeID": "2",
                    "amount": "-55.00",
                    "balance": "1500.25",
                },
            }
        },
        "char:MarketOrders": {
            "orders": {
                "7001": {"orderID": "7001", "typeID": "34", "price": "5.60", "bid": "1"},
                "7002": {"orderID": "7002", "typeID": "35", "price": "12.00", "bid": "0"},
            }
        },
        "char:CharacterSheet": {
            "characterID": "101",
            "name": "Pilot 101",
            "balance": "1500.25",
            "bloodline": "Deteis",
            "bloodlineID": "1",
            "corporation": "Test Corp",
            "cloneName": {"content": "Alpha", "type": "string"},
            "attributes": {"memory": {"content": "20"}, "charisma": {}},
            "cachedUntil": "2026-01-15 13:00:00",
        },
        "eve:CharacterInfo": {
            "characterID": "101",
            "characterName": "Pilot 101",
            "alliance": {},
            "securityStatus": {"content": "1.5", "type": "float"},
        },
    }
