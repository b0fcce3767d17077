"""Unit tests for the Redis-backed stores with a mocked client."""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from ragbot.memory.chat_history import ChatHistoryStore
from ragbot.memory.redis_store import RedisKeyValueStore
from ragbot.reason.interfaces import ChatTurn


def connected_store(redis_client, key_prefix="ragbot:"):
    store = RedisKeyValueStore("redis://localhost:6379/0", key_prefix=key_prefix)
    store.redis_client = redis_client
    store._connected = True
    return store


@pytest.fixture
def redis_client():
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock()
    client.lrange = AsyncMock(return_value=[])
    client.delete = AsyncMock()
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[])
    client.pipeline.return_value = pipe
    return client


@pytest.mark.unit
@pytest.mark.asyncio
class TestRedisKeyValueStore:
    async def test_set_stores_json_under_prefixed_key(self, redis_client):
        store = connected_store(redis_client)

        await store.set("restart:chan-1", True)

        redis_client.set.assert_awaited_once_with("ragbot:restart:chan-1", "true")

    async def test_get_decodes_json(self, redis_client):
        redis_client.get.return_value = "true"
        store = connected_store(redis_client)

        assert await store.get("restart:chan-1") is True
        redis_client.get.assert_awaited_once_with("ragbot:restart:chan-1")

    async def test_get_absent_key_is_none(self, redis_client):
        store = connected_store(redis_client)

        assert await store.get("missing") is None

    async def test_operations_require_connection(self):
        store = RedisKeyValueStore("redis://localhost:6379/0")

        assert not store.is_connected
        with pytest.raises(ConnectionError):
            await store.get("key")
        with pytest.raises(ConnectionError):
            await store.set("key", 1)


@pytest.mark.unit
@pytest.mark.asyncio
class TestChatHistoryStore:
    async def test_get_turns_reads_newest_entries(self, redis_client):
        redis_client.lrange.return_value = [
            json.dumps({"role": "user", "content": "q"}),
            json.dumps({"role": "assistant", "content": "a"}),
        ]
        history = ChatHistoryStore(connected_store(redis_client))

        turns = await history.get_turns("chan-1", 8)

        assert turns == [ChatTurn("user", "q"), ChatTurn("assistant", "a")]
        redis_client.lrange.assert_awaited_once_with("ragbot:chat_history:chan-1", -8, -1)

    async def test_malformed_entries_are_skipped(self, redis_client):
        redis_client.lrange.return_value = [
            "not json",
            json.dumps({"role": "user"}),
            json.dumps({"role": "user", "content": "kept"}),
        ]
        history = ChatHistoryStore(connected_store(redis_client))

        assert await history.get_turns("chan-1", 8) == [ChatTurn("user", "kept")]

    async def test_zero_limit_reads_nothing(self, redis_client):
        history = ChatHistoryStore(connected_store(redis_client))

        assert await history.get_turns("chan-1", 0) == []
        redis_client.lrange.assert_not_awaited()

    async def test_read_failure_returns_empty(self, redis_client):
        redis_client.lrange.side_effect = ConnectionError("redis down")
        history = ChatHistoryStore(connected_store(redis_client))

        assert await history.get_turns("chan-1", 8) == []

    async def test_append_runs_in_one_transaction(self, redis_client):
        history = ChatHistoryStore(connected_store(redis_client), max_turns=40)
        pipe = redis_client.pipeline.return_value

        await history.append_turns(
            "chan-1", [ChatTurn("user", "q"), ChatTurn("assistant", "a")]
        )

        redis_client.pipeline.assert_called_once_with(transaction=True)
        pipe.delete.assert_not_called()
        pipe.rpush.assert_called_once_with(
            "ragbot:chat_history:chan-1",
            json.dumps({"role": "user", "content": "q"}),
            json.dumps({"role": "assistant", "content": "a"}),
        )
        pipe.ltrim.assert_called_once_with("ragbot:chat_history:chan-1", -40, -1)
        pipe.execute.assert_awaited_once()

    async def test_append_with_reset_discards_old_turns(self, redis_client):
        history = ChatHistoryStore(connected_store(redis_client))
        pipe = redis_client.pipeline.return_value

        await history.append_turns("chan-1", [ChatTurn("user", "q")], reset=True)

        pipe.delete.assert_called_once_with("ragbot:chat_history:chan-1")

    async def test_append_requires_connection(self):
        history = ChatHistoryStore(RedisKeyValueStore("redis://localhost:6379/0"))

        with pytest.raises(ConnectionError):
            await history.append_turns("chan-1", [ChatTurn("user", "q")])
