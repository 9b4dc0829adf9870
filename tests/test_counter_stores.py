"""
Tests for click counter backends.
"""
import asyncio
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import TimeoutError as RedisTimeoutError

from shortlink_app.counters.strategies import (
    InMemoryCounterStore,
    RedisHashCounterStore,
    SqlCounterStore,
)
from shortlink_app.errors import StoreUnavailable


def test_in_memory_counts():
    counters = InMemoryCounterStore()

    assert asyncio.run(counters.get("abc1234")) == 0
    assert asyncio.run(counters.increment("abc1234")) == 1
    assert asyncio.run(counters.increment("abc1234")) == 2
    assert asyncio.run(counters.get("abc1234")) == 2
    assert asyncio.run(counters.get("other00")) == 0


class TestSqlCounterStore:

    def test_first_increment_creates_counter(self, session_factory):
        counters = SqlCounterStore(session_factory)

        assert asyncio.run(counters.get("abc1234")) == 0
        assert asyncio.run(counters.increment("abc1234")) == 1
        assert asyncio.run(counters.get("abc1234")) == 1

    def test_increments_accumulate_per_alias(self, session_factory):
        counters = SqlCounterStore(session_factory)

        for expected in range(1, 6):
            assert asyncio.run(counters.increment("abc1234")) == expected
        asyncio.run(counters.increment("xyz7890"))

        assert asyncio.run(counters.get("abc1234")) == 5
        assert asyncio.run(counters.get("xyz7890")) == 1


class TestRedisHashCounterStore:

    def test_increment_uses_hincrby(self):
        client = AsyncMock()
        client.hincrby.return_value = 3
        counters = RedisHashCounterStore(client, hash_key="clicks")

        assert asyncio.run(counters.increment("abc1234")) == 3
        client.hincrby.assert_awaited_once_with("clicks", "abc1234", 1)

    def test_get_absent_is_zero(self):
        client = AsyncMock()
        client.hget.return_value = None
        counters = RedisHashCounterStore(client)

        assert asyncio.run(counters.get("abc1234")) == 0

    def test_get_parses_stored_string(self):
        client = AsyncMock()
        client.hget.return_value = "42"
        counters = RedisHashCounterStore(client)

        assert asyncio.run(counters.get("abc1234")) == 42

    def test_unparsable_value_reads_as_zero(self):
        client = AsyncMock()
        client.hget.return_value = "not-a-number"
        counters = RedisHashCounterStore(client)

        assert asyncio.run(counters.get("abc1234")) == 0

    def test_increment_failure(self):
        client = AsyncMock()
        client.hincrby.side_effect = RedisTimeoutError("timed out")
        counters = RedisHashCounterStore(client)

        with pytest.raises(StoreUnavailable):
            asyncio.run(counters.increment("abc1234"))
