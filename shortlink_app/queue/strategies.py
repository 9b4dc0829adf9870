"""
Click event log strategies using Strategy Pattern.
Allows switching between different log backends (Redis Streams, In-Memory).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Tuple
import logging
import threading
import time

from redis.exceptions import RedisError, ResponseError

from shortlink_app.errors import StoreUnavailable
from .models import ClickEvent, LogEntry

logger = logging.getLogger(__name__)


class EventLog(ABC):
    """
    Abstract base class for the click event log.

    An append-only, ordered log with consumer groups: each group keeps a
    last-delivered position and a pending-entries list (delivered, not yet
    acknowledged). Delivery is at-least-once.

    Similar to Celery's broker abstraction, but with explicit acknowledgment.
    """

    @abstractmethod
    async def append(self, event: ClickEvent) -> str:
        """
        Durably append an event.

        Returns:
            The entry id assigned by the log (unique, totally ordered)

        Raises:
            StoreUnavailable: if the append cannot complete
        """
        pass

    @abstractmethod
    async def ensure_consumer_group(self, group: str) -> None:
        """
        Create the consumer group positioned at the start of the log.

        Idempotent: creates the log if it does not exist yet, and treats an
        existing group as success.
        """
        pass

    @abstractmethod
    async def read_new(self, group: str, consumer: str, max_count: int) -> List[LogEntry]:
        """
        Read entries never delivered to any consumer of the group.

        Returned entries join the group's pending list under `consumer`.
        If the log or the group does not exist yet, the group is created
        and an empty list is returned.

        Returns:
            Up to max_count entries in log order (empty when none are new)
        """
        pass

    @abstractmethod
    async def acknowledge(self, group: str, entry_id: str) -> bool:
        """
        Mark an entry as processed for the group.

        Returns:
            True if the entry was pending, False if it was already acknowledged
        """
        pass

    @abstractmethod
    async def read_pending(self, group: str, consumer: str, max_count: int) -> List[LogEntry]:
        """
        Re-read entries already delivered to `consumer` but not acknowledged.
        """
        pass

    @abstractmethod
    async def claim_stale(
        self,
        group: str,
        consumer: str,
        min_idle_ms: int,
        max_count: int
    ) -> List[LogEntry]:
        """
        Take over pending entries idle for at least min_idle_ms from any consumer.

        Used to recover entries left behind by a crashed consumer.
        """
        pass

    @abstractmethod
    async def pending_count(self, group: str) -> int:
        """Number of delivered but unacknowledged entries in the group"""
        pass

    @abstractmethod
    async def length(self) -> int:
        """Number of entries in the log"""
        pass


class RedisStreamEventLog(EventLog):
    """
    Redis Streams implementation of the click log.

    How it works:
    1. Producer appends events using XADD
    2. Consumers read new events using XREADGROUP with '>'
    3. Consumers acknowledge events using XACK
    4. Unacknowledged events stay in the pending list (PEL) and are
       re-read with XREADGROUP '0' or taken over with XAUTOCLAIM
    """

    def __init__(self, redis_client, stream_key: str = "streams:url-clicks"):
        """
        Initialize Redis Streams event log.

        Args:
            redis_client: redis.asyncio client created with decode_responses=True
            stream_key: Key of the stream holding click events
        """
        self.redis = redis_client
        self.stream_key = stream_key

    @staticmethod
    def _parse_entries(messages) -> List[LogEntry]:
        # Entries trimmed from the stream come back with no fields
        return [
            LogEntry(entry_id=entry_id, fields=fields or {})
            for entry_id, fields in messages
        ]

    def _parse_read(self, response) -> List[LogEntry]:
        if not response:
            return []
        entries = []
        for _stream_name, messages in response:
            entries.extend(self._parse_entries(messages))
        return entries

    async def append(self, event: ClickEvent) -> str:
        try:
            entry_id = await self.redis.xadd(self.stream_key, event.to_fields())
        except RedisError as e:
            raise StoreUnavailable(f"XADD to {self.stream_key} failed: {e}") from e
        logger.debug("Appended click event %s to %s: %s", entry_id, self.stream_key, event.alias)
        return entry_id

    async def ensure_consumer_group(self, group: str) -> None:
        try:
            # MKSTREAM creates the stream if it doesn't exist yet
            await self.redis.xgroup_create(
                name=self.stream_key,
                groupname=group,
                id="0",
                mkstream=True
            )
            logger.info("Created consumer group %s for stream %s", group, self.stream_key)
        except ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise StoreUnavailable(f"XGROUP CREATE {group} failed: {e}") from e
            logger.debug("Consumer group %s already exists for stream %s", group, self.stream_key)
        except RedisError as e:
            raise StoreUnavailable(f"XGROUP CREATE {group} failed: {e}") from e

    async def _read_group(self, group: str, consumer: str, start_id: str, max_count: int) -> List[LogEntry]:
        try:
            response = await self.redis.xreadgroup(
                groupname=group,
                consumername=consumer,
                streams={self.stream_key: start_id},
                count=max_count
            )
        except ResponseError as e:
            if "NOGROUP" not in str(e):
                raise StoreUnavailable(f"XREADGROUP {group} failed: {e}") from e
            logger.warning(
                "Stream %s or group %s missing at read time, creating it",
                self.stream_key, group
            )
            await self.ensure_consumer_group(group)
            return []
        except RedisError as e:
            raise StoreUnavailable(f"XREADGROUP {group} failed: {e}") from e
        return self._parse_read(response)

    async def read_new(self, group: str, consumer: str, max_count: int) -> List[LogEntry]:
        # '>' means "entries never delivered to other consumers"
        return await self._read_group(group, consumer, ">", max_count)

    async def read_pending(self, group: str, consumer: str, max_count: int) -> List[LogEntry]:
        # '0' means "this consumer's own pending entries, from the start"
        return await self._read_group(group, consumer, "0", max_count)

    async def acknowledge(self, group: str, entry_id: str) -> bool:
        try:
            return bool(await self.redis.xack(self.stream_key, group, entry_id))
        except RedisError as e:
            raise StoreUnavailable(f"XACK {entry_id} failed: {e}") from e

    async def claim_stale(
        self,
        group: str,
        consumer: str,
        min_idle_ms: int,
        max_count: int
    ) -> List[LogEntry]:
        try:
            response = await self.redis.xautoclaim(
                self.stream_key,
                group,
                consumer,
                min_idle_time=min_idle_ms,
                start_id="0-0",
                count=max_count
            )
        except ResponseError as e:
            if "NOGROUP" not in str(e):
                raise StoreUnavailable(f"XAUTOCLAIM {group} failed: {e}") from e
            return []
        except RedisError as e:
            raise StoreUnavailable(f"XAUTOCLAIM {group} failed: {e}") from e
        # [next_start_id, claimed_entries, deleted_ids]
        if not response or len(response) < 2:
            return []
        return self._parse_entries(response[1])

    async def pending_count(self, group: str) -> int:
        try:
            summary = await self.redis.xpending(self.stream_key, group)
        except ResponseError as e:
            if "NOGROUP" in str(e):
                return 0
            raise StoreUnavailable(f"XPENDING {group} failed: {e}") from e
        except RedisError as e:
            raise StoreUnavailable(f"XPENDING {group} failed: {e}") from e
        return int(summary["pending"])

    async def length(self) -> int:
        try:
            return int(await self.redis.xlen(self.stream_key))
        except RedisError as e:
            raise StoreUnavailable(f"XLEN {self.stream_key} failed: {e}") from e


@dataclass
class _PendingEntry:
    consumer: str
    delivered_at: float
    delivery_count: int = 1


@dataclass
class _ConsumerGroup:
    next_index: int = 0  # position of the first entry not yet delivered
    pending: Dict[str, _PendingEntry] = field(default_factory=dict)


def _id_key(entry_id: str) -> Tuple[int, int]:
    millis, seq = entry_id.split("-")
    return int(millis), int(seq)


class InMemoryEventLog(EventLog):
    """
    In-memory event log with the same consumer-group semantics as Redis Streams.

    Pros:
    - Simple (no external dependencies)
    - Deterministic (injectable clocks)
    - Good for development and testing

    Cons:
    - Not persistent (lost on restart)
    - Not distributed (each process has its own log)

    Entry ids use the Redis format "<milliseconds>-<sequence>"; assignment is
    serialized by a lock so ids stay unique and increasing.
    """

    def __init__(
        self,
        wall_clock: Callable[[], float] = time.time,
        idle_clock: Callable[[], float] = time.monotonic
    ):
        self._entries: List[Tuple[str, Dict[str, str]]] = []
        self._index: Dict[str, int] = {}
        self._groups: Dict[str, _ConsumerGroup] = {}
        self._last_id: Tuple[int, int] = (0, 0)
        self._lock = threading.Lock()
        self.wall_clock = wall_clock
        self.idle_clock = idle_clock

    def _next_id(self) -> str:
        millis = int(self.wall_clock() * 1000)
        last_millis, last_seq = self._last_id
        if millis <= last_millis:
            self._last_id = (last_millis, last_seq + 1)
        else:
            self._last_id = (millis, 0)
        return f"{self._last_id[0]}-{self._last_id[1]}"

    def _entry(self, entry_id: str) -> LogEntry:
        position = self._index[entry_id]
        return LogEntry(entry_id=entry_id, fields=dict(self._entries[position][1]))

    async def append(self, event: ClickEvent) -> str:
        with self._lock:
            entry_id = self._next_id()
            self._index[entry_id] = len(self._entries)
            self._entries.append((entry_id, event.to_fields()))
        logger.debug("Appended click event %s: %s", entry_id, event.alias)
        return entry_id

    def append_raw(self, fields: Dict[str, str]) -> str:
        """Append arbitrary fields (bypasses ClickEvent validation)"""
        with self._lock:
            entry_id = self._next_id()
            self._index[entry_id] = len(self._entries)
            self._entries.append((entry_id, dict(fields)))
        return entry_id

    async def ensure_consumer_group(self, group: str) -> None:
        with self._lock:
            if group not in self._groups:
                self._groups[group] = _ConsumerGroup()
                logger.info("Created consumer group %s", group)

    async def read_new(self, group: str, consumer: str, max_count: int) -> List[LogEntry]:
        with self._lock:
            state = self._groups.get(group)
            if state is None:
                logger.warning("Consumer group %s missing at read time, creating it", group)
                self._groups[group] = _ConsumerGroup()
                return []

            batch = self._entries[state.next_index:state.next_index + max_count]
            state.next_index += len(batch)
            now = self.idle_clock()
            for entry_id, _fields in batch:
                state.pending[entry_id] = _PendingEntry(consumer=consumer, delivered_at=now)
            return [self._entry(entry_id) for entry_id, _fields in batch]

    async def read_pending(self, group: str, consumer: str, max_count: int) -> List[LogEntry]:
        with self._lock:
            state = self._groups.get(group)
            if state is None:
                return []
            owned = sorted(
                (entry_id for entry_id, p in state.pending.items() if p.consumer == consumer),
                key=_id_key
            )[:max_count]
            now = self.idle_clock()
            for entry_id in owned:
                state.pending[entry_id].delivered_at = now
                state.pending[entry_id].delivery_count += 1
            return [self._entry(entry_id) for entry_id in owned]

    async def acknowledge(self, group: str, entry_id: str) -> bool:
        with self._lock:
            state = self._groups.get(group)
            if state is None:
                return False
            return state.pending.pop(entry_id, None) is not None

    async def claim_stale(
        self,
        group: str,
        consumer: str,
        min_idle_ms: int,
        max_count: int
    ) -> List[LogEntry]:
        with self._lock:
            state = self._groups.get(group)
            if state is None:
                return []
            now = self.idle_clock()
            stale = sorted(
                (
                    entry_id for entry_id, p in state.pending.items()
                    if (now - p.delivered_at) * 1000 >= min_idle_ms
                ),
                key=_id_key
            )[:max_count]
            for entry_id in stale:
                pending = state.pending[entry_id]
                pending.consumer = consumer
                pending.delivered_at = now
                pending.delivery_count += 1
            return [self._entry(entry_id) for entry_id in stale]

    async def pending_count(self, group: str) -> int:
        with self._lock:
            state = self._groups.get(group)
            return len(state.pending) if state else 0

    async def length(self) -> int:
        with self._lock:
            return len(self._entries)
