"""
Click counter strategies using Strategy Pattern.

Counters are written only by the click aggregator and read by the stats
endpoint. They are never decremented and have no TTL.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional
import logging

from redis.exceptions import RedisError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shortlink_app.errors import StoreUnavailable
from shortlink_app.models.counter import ClickCounter

logger = logging.getLogger(__name__)


class CounterStore(ABC):
    """
    Abstract base class for per-alias click counters.
    """

    @abstractmethod
    async def increment(self, alias: str) -> int:
        """
        Atomically add one to the alias counter.

        Creates the counter on first increment.

        Returns:
            The counter value after the increment

        Raises:
            StoreUnavailable: if the write cannot complete
        """
        pass

    @abstractmethod
    async def get(self, alias: str) -> int:
        """
        Get the current count for an alias.

        Returns:
            Count, or 0 if the alias was never counted (never an error)
        """
        pass


class RedisHashCounterStore(CounterStore):
    """
    Redis implementation: a single hash, field per alias.

    Layout: clicks -> {<alias>: <count>}
    HINCRBY is atomic and returns the new value in one round trip.
    """

    def __init__(self, redis_client, hash_key: str = "clicks"):
        self.redis = redis_client
        self.hash_key = hash_key

    async def increment(self, alias: str) -> int:
        try:
            return int(await self.redis.hincrby(self.hash_key, alias, 1))
        except RedisError as e:
            raise StoreUnavailable(f"Redis hincrby failed for {alias}: {e}") from e

    async def get(self, alias: str) -> int:
        try:
            value = await self.redis.hget(self.hash_key, alias)
        except RedisError as e:
            raise StoreUnavailable(f"Redis hget failed for {alias}: {e}") from e
        if value is None:
            return 0
        try:
            return int(value)
        except ValueError:
            logger.error("Unparsable click count for %s: %r", alias, value)
            return 0


class SqlCounterStore(CounterStore):
    """
    SQLAlchemy implementation backed by the `click_counters` table.

    Uses a database-level UPDATE (count = count + 1) instead of
    read-modify-write; the first increment inserts the row and falls
    back to the UPDATE if a concurrent writer inserted it first.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    @staticmethod
    def _bump(db, alias: str) -> Optional[int]:
        result = db.execute(
            update(ClickCounter)
            .where(ClickCounter.alias == alias)
            .values(count=ClickCounter.count + 1)
        )
        if result.rowcount == 0:
            return None
        return db.execute(
            select(ClickCounter.count).where(ClickCounter.alias == alias)
        ).scalar_one()

    async def increment(self, alias: str) -> int:
        try:
            with self.session_factory() as db:
                count = self._bump(db, alias)
                if count is None:
                    db.add(ClickCounter(alias=alias, count=1))
                    try:
                        db.commit()
                        return 1
                    except IntegrityError:
                        db.rollback()
                        count = self._bump(db, alias)
                db.commit()
                return count
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Database increment failed for {alias}: {e}") from e

    async def get(self, alias: str) -> int:
        try:
            with self.session_factory() as db:
                count = db.execute(
                    select(ClickCounter.count).where(ClickCounter.alias == alias)
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Database lookup failed for {alias}: {e}") from e
        return count if count is not None else 0


class InMemoryCounterStore(CounterStore):
    """
    In-memory counters using a Python dict.

    Used in development/testing environments.
    Note: Async for interface consistency, but operations are instant.
    """

    def __init__(self):
        self._counts: Dict[str, int] = {}

    async def increment(self, alias: str) -> int:
        self._counts[alias] = self._counts.get(alias, 0) + 1
        return self._counts[alias]

    async def get(self, alias: str) -> int:
        return self._counts.get(alias, 0)
