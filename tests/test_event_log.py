"""
Tests for the click event log: consumer-group delivery, acknowledgment and recovery.
"""
import asyncio
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, ResponseError

from shortlink_app.errors import MalformedEvent, StoreUnavailable
from shortlink_app.queue.models import ClickEvent, LogEntry
from shortlink_app.queue.strategies import InMemoryEventLog, RedisStreamEventLog, _id_key

GROUP = "analytics-group"


def append_all(log, aliases):
    async def run():
        return [await log.append(ClickEvent(alias=alias)) for alias in aliases]
    return asyncio.run(run())


class TestLogEntry:

    def test_alias_field(self):
        entry = LogEntry(entry_id="1-0", fields={"alias": "abc1234", "timestamp": "2025-01-01T00:00:00+00:00"})
        assert entry.alias == "abc1234"
        assert entry.to_event().alias == "abc1234"

    @pytest.mark.parametrize("fields", [{}, {"alias": ""}, {"timestamp": "2025-01-01T00:00:00+00:00"}])
    def test_missing_alias_is_malformed(self, fields):
        entry = LogEntry(entry_id="1-0", fields=fields)
        with pytest.raises(MalformedEvent):
            entry.alias

    def test_event_fields_round_trip(self):
        event = ClickEvent(alias="abc1234")
        entry = LogEntry(entry_id="1-0", fields=event.to_fields())
        assert entry.to_event() == event


class TestInMemoryEventLog:

    def test_entry_ids_unique_and_ordered(self):
        log = InMemoryEventLog(wall_clock=lambda: 1700000000.0)
        ids = append_all(log, ["a"] * 5)

        assert ids == [f"1700000000000-{seq}" for seq in range(5)]
        assert sorted(ids, key=_id_key) == ids
        assert asyncio.run(log.length()) == 5

    def test_entry_ids_do_not_go_backwards(self):
        ticks = iter([2.0, 1.0, 3.0])
        log = InMemoryEventLog(wall_clock=lambda: next(ticks))
        ids = append_all(log, ["a", "b", "c"])

        assert ids == ["2000-0", "2000-1", "3000-0"]

    def test_concurrent_appends_get_distinct_ids(self):
        log = InMemoryEventLog(wall_clock=lambda: 1.0)

        async def run():
            return await asyncio.gather(*(log.append(ClickEvent(alias="a")) for _ in range(200)))

        ids = asyncio.run(run())
        assert len(set(ids)) == 200

    def test_read_new_in_log_order_with_max_count(self):
        log = InMemoryEventLog()
        asyncio.run(log.ensure_consumer_group(GROUP))
        append_all(log, ["a", "b", "c"])

        first = asyncio.run(log.read_new(GROUP, "c1", 2))
        second = asyncio.run(log.read_new(GROUP, "c1", 2))
        third = asyncio.run(log.read_new(GROUP, "c1", 2))

        assert [e.alias for e in first] == ["a", "b"]
        assert [e.alias for e in second] == ["c"]
        assert third == []

    def test_group_starts_at_beginning_of_log(self):
        log = InMemoryEventLog()
        append_all(log, ["early"])
        asyncio.run(log.ensure_consumer_group(GROUP))

        entries = asyncio.run(log.read_new(GROUP, "c1", 10))
        assert [e.alias for e in entries] == ["early"]

    def test_ensure_consumer_group_is_idempotent(self):
        log = InMemoryEventLog()
        asyncio.run(log.ensure_consumer_group(GROUP))
        append_all(log, ["a"])
        asyncio.run(log.read_new(GROUP, "c1", 10))

        asyncio.run(log.ensure_consumer_group(GROUP))

        # Position and pending list survive the second call
        assert asyncio.run(log.read_new(GROUP, "c1", 10)) == []
        assert asyncio.run(log.pending_count(GROUP)) == 1

    def test_read_without_group_creates_it(self):
        log = InMemoryEventLog()
        append_all(log, ["a"])

        assert asyncio.run(log.read_new(GROUP, "c1", 10)) == []
        assert [e.alias for e in asyncio.run(log.read_new(GROUP, "c1", 10))] == ["a"]

    def test_each_entry_delivered_to_one_consumer(self):
        log = InMemoryEventLog()
        asyncio.run(log.ensure_consumer_group(GROUP))
        append_all(log, ["a", "b"])

        c1 = asyncio.run(log.read_new(GROUP, "c1", 1))
        c2 = asyncio.run(log.read_new(GROUP, "c2", 10))

        assert [e.alias for e in c1] == ["a"]
        assert [e.alias for e in c2] == ["b"]

    def test_groups_are_independent(self):
        log = InMemoryEventLog()
        asyncio.run(log.ensure_consumer_group("g1"))
        asyncio.run(log.ensure_consumer_group("g2"))
        append_all(log, ["a"])

        assert len(asyncio.run(log.read_new("g1", "c1", 10))) == 1
        assert len(asyncio.run(log.read_new("g2", "c1", 10))) == 1

    def test_acknowledged_entry_is_never_returned_again(self):
        log = InMemoryEventLog()
        asyncio.run(log.ensure_consumer_group(GROUP))
        (entry_id,) = append_all(log, ["a"])

        (entry,) = asyncio.run(log.read_new(GROUP, "c1", 10))
        assert entry.entry_id == entry_id
        assert asyncio.run(log.acknowledge(GROUP, entry_id)) is True

        assert asyncio.run(log.read_new(GROUP, "c1", 10)) == []
        assert asyncio.run(log.read_pending(GROUP, "c1", 10)) == []
        assert asyncio.run(log.claim_stale(GROUP, "c2", 0, 10)) == []
        assert asyncio.run(log.pending_count(GROUP)) == 0

    def test_acknowledge_twice_is_a_noop(self):
        log = InMemoryEventLog()
        asyncio.run(log.ensure_consumer_group(GROUP))
        (entry_id,) = append_all(log, ["a"])
        asyncio.run(log.read_new(GROUP, "c1", 10))

        assert asyncio.run(log.acknowledge(GROUP, entry_id)) is True
        assert asyncio.run(log.acknowledge(GROUP, entry_id)) is False

    def test_unacknowledged_entry_stays_pending_for_its_consumer(self):
        log = InMemoryEventLog()
        asyncio.run(log.ensure_consumer_group(GROUP))
        append_all(log, ["a", "b"])
        asyncio.run(log.read_new(GROUP, "c1", 10))

        pending = asyncio.run(log.read_pending(GROUP, "c1", 10))

        assert [e.alias for e in pending] == ["a", "b"]
        assert asyncio.run(log.read_pending(GROUP, "c2", 10)) == []
        assert asyncio.run(log.pending_count(GROUP)) == 2

    def test_claim_stale_respects_idle_time(self):
        now = [100.0]
        log = InMemoryEventLog(idle_clock=lambda: now[0])
        asyncio.run(log.ensure_consumer_group(GROUP))
        append_all(log, ["a"])
        asyncio.run(log.read_new(GROUP, "c1", 10))

        now[0] = 100.5
        assert asyncio.run(log.claim_stale(GROUP, "c2", 1000, 10)) == []

        now[0] = 101.0
        claimed = asyncio.run(log.claim_stale(GROUP, "c2", 1000, 10))
        assert [e.alias for e in claimed] == ["a"]

        # Ownership moved to c2
        assert asyncio.run(log.read_pending(GROUP, "c1", 10)) == []
        assert [e.alias for e in asyncio.run(log.read_pending(GROUP, "c2", 10))] == ["a"]


class TestRedisStreamEventLog:

    @pytest.fixture
    def redis_client(self):
        return AsyncMock()

    def test_append_uses_xadd(self, redis_client):
        redis_client.xadd.return_value = "1700000000000-0"
        log = RedisStreamEventLog(redis_client, stream_key="streams:url-clicks")
        event = ClickEvent(alias="abc1234")

        assert asyncio.run(log.append(event)) == "1700000000000-0"
        redis_client.xadd.assert_awaited_once_with("streams:url-clicks", event.to_fields())

    def test_append_failure(self, redis_client):
        redis_client.xadd.side_effect = RedisConnectionError("refused")
        log = RedisStreamEventLog(redis_client)

        with pytest.raises(StoreUnavailable):
            asyncio.run(log.append(ClickEvent(alias="abc1234")))

    def test_ensure_group_creates_stream_from_start(self, redis_client):
        log = RedisStreamEventLog(redis_client, stream_key="streams:url-clicks")
        asyncio.run(log.ensure_consumer_group(GROUP))

        redis_client.xgroup_create.assert_awaited_once_with(
            name="streams:url-clicks", groupname=GROUP, id="0", mkstream=True
        )

    def test_ensure_group_tolerates_busygroup(self, redis_client):
        redis_client.xgroup_create.side_effect = ResponseError("BUSYGROUP Consumer Group name already exists")
        log = RedisStreamEventLog(redis_client)

        asyncio.run(log.ensure_consumer_group(GROUP))

    def test_ensure_group_other_errors(self, redis_client):
        redis_client.xgroup_create.side_effect = ResponseError("WRONGTYPE Operation against a key")
        log = RedisStreamEventLog(redis_client)

        with pytest.raises(StoreUnavailable):
            asyncio.run(log.ensure_consumer_group(GROUP))

    def test_read_new_parses_entries(self, redis_client):
        redis_client.xreadgroup.return_value = [
            ["streams:url-clicks", [
                ("1-0", {"alias": "abc1234", "timestamp": "2025-01-01T00:00:00+00:00"}),
                ("1-1", {"timestamp": "2025-01-01T00:00:00+00:00"}),
            ]]
        ]
        log = RedisStreamEventLog(redis_client, stream_key="streams:url-clicks")

        entries = asyncio.run(log.read_new(GROUP, "c1", 10))

        assert [e.entry_id for e in entries] == ["1-0", "1-1"]
        assert entries[0].alias == "abc1234"
        redis_client.xreadgroup.assert_awaited_once_with(
            groupname=GROUP, consumername="c1", streams={"streams:url-clicks": ">"}, count=10
        )

    def test_read_new_empty(self, redis_client):
        redis_client.xreadgroup.return_value = []
        log = RedisStreamEventLog(redis_client)

        assert asyncio.run(log.read_new(GROUP, "c1", 10)) == []

    def test_read_pending_reads_from_zero(self, redis_client):
        redis_client.xreadgroup.return_value = [["s", [("1-0", None)]]]
        log = RedisStreamEventLog(redis_client, stream_key="s")

        entries = asyncio.run(log.read_pending(GROUP, "c1", 5))

        # Trimmed entries come back without fields
        assert entries == [LogEntry(entry_id="1-0", fields={})]
        redis_client.xreadgroup.assert_awaited_once_with(
            groupname=GROUP, consumername="c1", streams={"s": "0"}, count=5
        )

    def test_read_falls_back_to_creating_group(self, redis_client):
        redis_client.xreadgroup.side_effect = ResponseError(
            "NOGROUP No such key 'streams:url-clicks' or consumer group 'analytics-group'"
        )
        log = RedisStreamEventLog(redis_client)

        assert asyncio.run(log.read_new(GROUP, "c1", 10)) == []
        redis_client.xgroup_create.assert_awaited_once()

    def test_acknowledge(self, redis_client):
        redis_client.xack.side_effect = [1, 0]
        log = RedisStreamEventLog(redis_client, stream_key="s")

        assert asyncio.run(log.acknowledge(GROUP, "1-0")) is True
        assert asyncio.run(log.acknowledge(GROUP, "1-0")) is False
        redis_client.xack.assert_awaited_with("s", GROUP, "1-0")

    def test_claim_stale_parses_xautoclaim(self, redis_client):
        redis_client.xautoclaim.return_value = ["0-0", [("1-0", {"alias": "abc1234"})], []]
        log = RedisStreamEventLog(redis_client, stream_key="s")

        entries = asyncio.run(log.claim_stale(GROUP, "c2", 60000, 10))

        assert [e.alias for e in entries] == ["abc1234"]
        redis_client.xautoclaim.assert_awaited_once_with(
            "s", GROUP, "c2", min_idle_time=60000, start_id="0-0", count=10
        )

    def test_pending_count(self, redis_client):
        redis_client.xpending.return_value = {"pending": 3, "min": "1-0", "max": "1-2", "consumers": []}
        log = RedisStreamEventLog(redis_client)

        assert asyncio.run(log.pending_count(GROUP)) == 3
