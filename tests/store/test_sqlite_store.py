"""
Tests for the SQLite record store.
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from evesync.models.records import AccountKey, Character, MarketType
from evesync.store import KEY_CHARACTERS, RecordExistsError, SQLiteRecordStore
from evesync.store.sqlite import decode_key, encode_key


@pytest_asyncio.fixture
async def sqlite_store(tmp_path, clock):
    store = SQLiteRecordStore(tmp_path / "records.db", clock=clock)
    await store.initialize()
    yield store
    await store.close()


class TestKeyEncoding:
    @pytest.mark.parametrize("key", [101, "abc", (10000002, 34)])
    def test_round_trip(self, key):
        assert decode_key(encode_key(key)) == key


class TestSQLiteRecords:
    @pytest.mark.asyncio
    async def test_save_and_fetch(self, sqlite_store, clock):
        saved = await sqlite_store.save(Character(character_id=101, character_name="Pilot"))

        fetched = await sqlite_store.fetch_by_natural_key(Character, 101)

        assert fetched == saved
        assert fetched.created_at == clock.now

    @pytest.mark.asyncio
    async def test_missing_record(self, sqlite_store):
        assert await sqlite_store.fetch_by_natural_key(Character, 404) is None

    @pytest.mark.asyncio
    async def test_json_fields_and_extras_round_trip(self, sqlite_store):
        market_type = MarketType(
            region_id=10000002,
            type_id=34,
            sell_orders=[{"price": 15.0, "volume": 100}],
            buy_orders=[],
            history=[{"date": "2026-01-14", "average": 13.5}],
            market_group_id_path=[4, 18],
        )
        character = Character.build(
            {"characterID": "101", "attributes": {"memory": "20"}, "cloneName": "Alpha"}
        )
        await sqlite_store.save(market_type)
        await sqlite_store.save(character)

        loaded_type = await sqlite_store.fetch_by_natural_key(MarketType, (10000002, 34))
        loaded_character = await sqlite_store.fetch_by_natural_key(Character, 101)

        assert loaded_type.sell_orders == [{"price": 15.0, "volume": 100}]
        assert loaded_type.buy_orders == []
        assert loaded_type.market_group_id_path == [4, 18]
        assert loaded_character.attributes == {"memory": "20"}
        assert loaded_character.clone_name == "Alpha"

    @pytest.mark.asyncio
    async def test_upsert_keeps_created_at(self, sqlite_store, clock):
        first = await sqlite_store.save(AccountKey(key_id=1, v_code="abc"))
        clock.advance(60)

        second = await sqlite_store.save(AccountKey(key_id=1, v_code="abc", access_mask=1))

        assert second.created_at == first.created_at
        assert second.updated_at == clock.now
        assert await sqlite_store.count(AccountKey) == 1

    @pytest.mark.asyncio
    async def test_create_refuses_existing(self, sqlite_store):
        await sqlite_store.create(Character(character_id=101))

        with pytest.raises(RecordExistsError):
            await sqlite_store.create(Character(character_id=101))

    @pytest.mark.asyncio
    async def test_persists_across_connections(self, tmp_path, clock):
        path = tmp_path / "persist.db"
        async with SQLiteRecordStore(path, clock=clock) as store:
            await store.save(Character(character_id=101))
            await store.attach(KEY_CHARACTERS, 1, [101])

        async with SQLiteRecordStore(path, clock=clock) as store:
            assert await store.fetch_by_natural_key(Character, 101) is not None
            assert await store.fetch_related(KEY_CHARACTERS, 1) == {101}

    @pytest.mark.asyncio
    async def test_uninitialized_store_raises(self, tmp_path):
        store = SQLiteRecordStore(tmp_path / "never.db")
        with pytest.raises(RuntimeError, match="not initialized"):
            await store.fetch_by_natural_key(Character, 1)

    @pytest.mark.asyncio
    async def test_in_memory_database(self, clock):
        async with SQLiteRecordStore(":memory:", clock=clock) as store:
            await store.save(Character(character_id=101))
            assert await store.count(Character) == 1


class TestSQLiteRelations:
    @pytest.mark.asyncio
    async def test_attach_detach(self, sqlite_store):
        await sqlite_store.attach(KEY_CHARACTERS, 1, [101, 102])
        await sqlite_store.attach(KEY_CHARACTERS, 1, [101])
        await sqlite_store.detach(KEY_CHARACTERS, 1, [102, 999])

        assert await sqlite_store.fetch_related(KEY_CHARACTERS, 1) == {101}

    @pytest.mark.asyncio
    async def test_empty_member_lists(self, sqlite_store):
        await sqlite_store.attach(KEY_CHARACTERS, 1, [])
        await sqlite_store.detach(KEY_CHARACTERS, 1, set())

        assert await sqlite_store.fetch_related(KEY_CHARACTERS, 1) == set()
