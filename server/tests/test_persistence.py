"""
Tests for the Redis snapshot store.

These tests cover:
- Loading the ledger and chat snapshot on startup
- Dirty-only periodic saves and forced shutdown saves
- Best-effort behavior when Redis misbehaves

Redis is replaced by an in-memory mock that records pipeline writes.
"""

import asyncio
import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from services.chat import ChatHistory
from services.ledger import Ledger
from stores.snapshot_store import SnapshotStore


# =============================================================================
# Fixtures
# =============================================================================

class FakePipeline:
    """Buffers commands until execute(), like a redis-py pipeline."""

    def __init__(self, store):
        self.store = store
        self.commands = []

    def delete(self, key):
        self.commands.append(("delete", key))

    def hset(self, key, mapping):
        self.commands.append(("hset", key, mapping))

    def set(self, key, value):
        self.commands.append(("set", key, value))

    async def execute(self):
        self.store.executed += 1
        for command in self.commands:
            if command[0] == "delete":
                self.store.hashes.pop(command[1], None)
                self.store.data.pop(command[1], None)
            elif command[0] == "hset":
                self.store.hashes.setdefault(command[1], {}).update(command[2])
            else:
                self.store.data[command[1]] = command[2]
        self.commands = []


@pytest.fixture
def mock_redis():
    """Create a mock Redis client backed by plain dicts."""
    mock = MagicMock()
    mock.data = {}
    mock.hashes = {}
    mock.executed = 0

    async def mock_hgetall(key):
        return dict(mock.hashes.get(key, {}))

    async def mock_get(key):
        return mock.data.get(key)

    mock.hgetall = AsyncMock(side_effect=mock_hgetall)
    mock.get = AsyncMock(side_effect=mock_get)
    mock.pipeline = MagicMock(side_effect=lambda: FakePipeline(mock))
    mock.ping = AsyncMock(return_value=True)
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def store(mock_redis):
    return SnapshotStore(mock_redis, prefix="test")


def make_ledger():
    return Ledger(starting_wealth=10000, relief_threshold=100, relief_amount=1000)


# =============================================================================
# Save / load
# =============================================================================

class TestSnapshotRoundTrip:

    @pytest.mark.asyncio
    async def test_save_then_load_restores_state(self, store):
        ledger, chat = make_ledger(), ChatHistory(size=5)
        ledger.buy_in("alice", 1000)
        ledger.settle("alice", 1000, 1400)
        chat.post("den", "alice", "gg")

        assert await store.save(ledger, chat)

        restored_ledger, restored_chat = make_ledger(), ChatHistory(size=5)
        assert await store.load(restored_ledger, restored_chat)
        assert restored_ledger.records["alice"].total_wealth == 10400
        assert restored_ledger.records["alice"].cumulative_score == 400
        assert restored_chat.room_history("den")[0]["text"] == "gg"

    @pytest.mark.asyncio
    async def test_keys_use_prefix(self, store, mock_redis):
        ledger, chat = make_ledger(), ChatHistory()
        ledger.get_record("bob")
        await store.save(ledger, chat)
        assert "test:ledger" in mock_redis.hashes
        assert "test:chat" in mock_redis.data
        assert json.loads(mock_redis.hashes["test:ledger"]["bob"])["total_wealth"] == 10000

    @pytest.mark.asyncio
    async def test_save_replaces_previous_snapshot(self, store, mock_redis):
        ledger, chat = make_ledger(), ChatHistory()
        ledger.get_record("old")
        await store.save(ledger, chat)

        ledger.records = {}
        ledger.get_record("new")
        await store.save(ledger, chat)

        assert set(mock_redis.hashes["test:ledger"]) == {"new"}

    @pytest.mark.asyncio
    async def test_load_empty_redis(self, store):
        ledger, chat = make_ledger(), ChatHistory()
        assert await store.load(ledger, chat)
        assert ledger.records == {}
        assert list(chat.recent) == []

    @pytest.mark.asyncio
    async def test_unreadable_entries_skipped(self, store, mock_redis):
        mock_redis.hashes["test:ledger"] = {
            "good": json.dumps({"total_wealth": 500}),
            "bad": "{not json",
        }
        mock_redis.data["test:chat"] = "also not json"

        ledger, chat = make_ledger(), ChatHistory()
        assert await store.load(ledger, chat)
        assert set(ledger.records) == {"good"}
        assert list(chat.recent) == []


# =============================================================================
# Dirty tracking
# =============================================================================

class TestDirtyTracking:

    @pytest.mark.asyncio
    async def test_clean_state_not_written(self, store, mock_redis):
        ledger, chat = make_ledger(), ChatHistory()
        assert await store.save(ledger, chat)
        assert mock_redis.executed == 0

    @pytest.mark.asyncio
    async def test_save_clears_dirty_flags(self, store):
        ledger, chat = make_ledger(), ChatHistory()
        ledger.get_record("alice")
        chat.post("den", "alice", "hi")

        await store.save(ledger, chat)

        assert not ledger.dirty
        assert not chat.dirty

    @pytest.mark.asyncio
    async def test_forced_save_writes_clean_state(self, store, mock_redis):
        await store.save(make_ledger(), ChatHistory(), force=True)
        assert mock_redis.executed == 1
        assert mock_redis.data["test:chat"] == "[]"

    @pytest.mark.asyncio
    async def test_change_during_write_stays_dirty(self, store, mock_redis):
        ledger, chat = make_ledger(), ChatHistory()
        ledger.get_record("alice")

        class SettlingPipeline(FakePipeline):
            async def execute(self):
                ledger.get_record("bob")
                await super().execute()

        mock_redis.pipeline = MagicMock(side_effect=lambda: SettlingPipeline(mock_redis))

        assert await store.save(ledger, chat)
        assert "bob" not in mock_redis.hashes["test:ledger"]
        assert ledger.dirty


# =============================================================================
# Failure handling
# =============================================================================

class TestFailures:

    @pytest.mark.asyncio
    async def test_load_failure_reported(self, store, mock_redis):
        mock_redis.hgetall.side_effect = ConnectionError("down")
        ledger = make_ledger()
        assert not await store.load(ledger, ChatHistory())
        assert ledger.records == {}

    @pytest.mark.asyncio
    async def test_save_failure_keeps_dirty(self, store, mock_redis):
        failing = MagicMock()
        failing.execute = AsyncMock(side_effect=ConnectionError("down"))
        mock_redis.pipeline = MagicMock(return_value=failing)

        ledger = make_ledger()
        ledger.get_record("alice")

        assert not await store.save(ledger, ChatHistory())
        assert ledger.dirty


# =============================================================================
# Background loop
# =============================================================================

class TestSaveLoop:

    @pytest.mark.asyncio
    async def test_periodic_save(self, store, mock_redis):
        ledger, chat = make_ledger(), ChatHistory()
        ledger.get_record("alice")

        store.start(ledger, chat, interval=0.01)
        for _ in range(50):
            await asyncio.sleep(0.01)
            if mock_redis.executed:
                break
        await store.stop()

        assert mock_redis.executed >= 1
        assert not ledger.dirty

    @pytest.mark.asyncio
    async def test_close_stops_loop_and_client(self, store, mock_redis):
        store.start(make_ledger(), ChatHistory(), interval=10)
        await store.close()
        assert store._task is None
        mock_redis.close.assert_awaited_once()
