"""
Click Aggregator Worker

Consumes click events from the event log through a named consumer group
and turns them into per-alias counters.

Architecture:
- One poll cycle per tick (default every 5 seconds), never overlapping
- Own pending entries (only after bootstrap or a failed cycle), then entries
  claimed from dead consumers, then new ones
- Increment, THEN acknowledge: a failed increment leaves the entry pending
- Malformed entries are acknowledged and dropped

Delivery is at-least-once. An entry processed but not acknowledged before a
crash is counted again when it is redelivered.
"""

import asyncio
import enum
import logging
import signal
import sys
from typing import List, Optional

from shortlink_app.config import default_consumer_name, settings
from shortlink_app.counters.strategies import CounterStore
from shortlink_app.errors import MalformedEvent
from shortlink_app.queue.models import LogEntry
from shortlink_app.queue.strategies import EventLog

logger = logging.getLogger(__name__)


class AggregatorState(enum.Enum):
    IDLE = "idle"
    POLLING = "polling"


class ClickAggregator:
    """
    Periodic consumer that aggregates click events into counters.

    Store handles are passed in; the aggregator owns no global state.
    """

    def __init__(
        self,
        event_log: EventLog,
        counters: CounterStore,
        group: str = "analytics-group",
        consumer: Optional[str] = None,
        batch_size: int = 10,
        interval_seconds: float = 5.0,
        claim_min_idle_ms: int = 60_000
    ):
        """
        Initialize aggregator with dependencies.

        Args:
            event_log: Click event log to consume from
            counters: Counter store to increment
            group: Consumer group name
            consumer: Consumer name within the group, unique per live aggregator
                (generated when not given)
            batch_size: Maximum entries handled per poll cycle
            interval_seconds: Delay between poll cycles
            claim_min_idle_ms: Idle time after which another consumer's pending
                entries are taken over (0 disables claiming)
        """
        self.event_log = event_log
        self.counters = counters
        self.group = group
        self.consumer = consumer or default_consumer_name()
        self.batch_size = batch_size
        self.interval_seconds = interval_seconds
        self.claim_min_idle_ms = claim_min_idle_ms

        self.state = AggregatorState.IDLE
        self.bootstrapped = False
        self.processed_count = 0
        self.dropped_count = 0
        # Own pending entries are only left behind by a restart or a failed cycle
        self._recheck_pending = True
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def bootstrap(self) -> bool:
        """
        Make sure the consumer group exists.

        Failure is not fatal: the next tick tries again.

        Returns:
            True once the group is known to exist
        """
        try:
            await self.event_log.ensure_consumer_group(self.group)
        except Exception:
            logger.warning("Consumer group bootstrap failed, retrying next tick", exc_info=True)
            return False
        self.bootstrapped = True
        return True

    async def poll_once(self) -> int:
        """
        Run one poll cycle.

        Returns:
            Number of entries acknowledged in this cycle (0 if the cycle was
            skipped because another one is in flight)
        """
        if self.state is AggregatorState.POLLING:
            logger.debug("Poll cycle already in flight, skipping tick")
            return 0
        self.state = AggregatorState.POLLING

        handled = 0
        try:
            if not self.bootstrapped and not await self.bootstrap():
                return 0

            entries = await self._collect_batch()
            if not entries:
                logger.debug("No click events pending for group %s", self.group)
                return 0

            logger.debug("Received %d click events", len(entries))
            for entry in entries:
                await self._process_entry(entry)
                handled += 1

        except Exception:
            # Remaining entries stay pending and are retried next cycle
            self._recheck_pending = True
            logger.error("Poll cycle failed after %d entries", handled, exc_info=True)
        finally:
            self.state = AggregatorState.IDLE

        return handled

    async def _collect_batch(self) -> List[LogEntry]:
        entries: List[LogEntry] = []
        if self._recheck_pending:
            entries.extend(await self.event_log.read_pending(self.group, self.consumer, self.batch_size))
            if entries:
                logger.info("Re-reading %d unacknowledged click events", len(entries))
            # A full batch may leave more behind
            self._recheck_pending = len(entries) >= self.batch_size

        if self.claim_min_idle_ms > 0 and len(entries) < self.batch_size:
            claimed = await self.event_log.claim_stale(
                self.group,
                self.consumer,
                self.claim_min_idle_ms,
                self.batch_size - len(entries)
            )
            if claimed:
                logger.info("Claimed %d stale click events", len(claimed))
            seen = {entry.entry_id for entry in entries}
            entries.extend(entry for entry in claimed if entry.entry_id not in seen)

        if len(entries) < self.batch_size:
            entries.extend(
                await self.event_log.read_new(self.group, self.consumer, self.batch_size - len(entries))
            )
        return entries

    async def _process_entry(self, entry: LogEntry) -> None:
        try:
            alias = entry.to_event().alias
        except MalformedEvent as e:
            # Retrying cannot repair the payload
            logger.warning("Dropping malformed click event: %s (fields=%s)", e, entry.fields)
            await self.event_log.acknowledge(self.group, entry.entry_id)
            self.dropped_count += 1
            return

        count = await self.counters.increment(alias)
        await self.event_log.acknowledge(self.group, entry.entry_id)
        self.processed_count += 1
        logger.info("Processed click for %s. New count: %d. (Entry ID: %s)", alias, count, entry.entry_id)

    async def run(self) -> None:
        """Tick until stop() is called. An in-flight cycle always completes."""
        logger.info(
            "Click aggregator started (group=%s, consumer=%s, batch=%d, interval=%ss)",
            self.group, self.consumer, self.batch_size, self.interval_seconds
        )
        await self.bootstrap()

        while not self._stop_event.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info("Click aggregator stopped. Processed: %d, dropped: %d",
                    self.processed_count, self.dropped_count)

    def start(self) -> asyncio.Task:
        """Start run() as a background task on the running loop"""
        if self._task is None or self._task.done():
            self._stop_event.clear()
            self._task = asyncio.create_task(self.run(), name="click-aggregator")
        return self._task

    def stop(self) -> None:
        """Ask run() to exit after the current cycle"""
        self._stop_event.set()

    async def shutdown(self) -> None:
        """Stop and wait for the background task to finish its batch"""
        self.stop()
        if self._task is not None:
            await self._task
            self._task = None


async def main():
    """
    Main entry point for a standalone aggregator process.

    Usage:
        python -m shortlink_app.hit_processor.click_aggregator
    """
    from shortlink_app.counters.factory import CounterStoreFactory, CounterBackend
    from shortlink_app.logging_config import setup_logging
    from shortlink_app.queue.factory import EventLogFactory, EventLogBackend
    from shortlink_app.redis_client import close_redis

    setup_logging(settings.log_level)
    logger.info("Environment: %s", settings.environment)
    logger.info("Event log backend: %s", settings.event_log_backend)
    logger.info("Counter backend: %s", settings.counter_backend)

    event_log = EventLogFactory.create(EventLogBackend(settings.event_log_backend))
    counters = CounterStoreFactory.create(CounterBackend(settings.counter_backend))

    aggregator = ClickAggregator(
        event_log=event_log,
        counters=counters,
        group=settings.consumer_group,
        consumer=settings.consumer_name,
        batch_size=settings.aggregator_batch_size,
        interval_seconds=settings.aggregator_interval_seconds,
        claim_min_idle_ms=settings.aggregator_claim_min_idle_ms,
    )

    # Graceful shutdown on SIGINT/SIGTERM
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, aggregator.stop)

    try:
        await aggregator.run()
    except Exception:
        logger.critical("Click aggregator crashed", exc_info=True)
        sys.exit(1)
    finally:
        await close_redis()


if __name__ == "__main__":
    asyncio.run(main())
