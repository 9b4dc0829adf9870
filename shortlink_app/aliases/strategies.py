"""
Alias store strategies using Strategy Pattern.
Allows switching between different alias backends (Redis, SQL, In-Memory).
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Tuple
import time

from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shortlink_app.errors import DuplicateCollision, NotFound, StoreUnavailable
from shortlink_app.models.alias import AliasRecord


class AliasStore(ABC):
    """
    Abstract base class for alias stores.

    Durable mapping alias -> target URL with a uniform expiration policy.
    Every operation touches a single key and is atomic at the key level.

    All methods are async because store operations involve I/O.
    """

    @abstractmethod
    async def exists(self, alias: str) -> bool:
        """
        Check whether a live (non-expired) record exists for the alias.

        Raises:
            StoreUnavailable: if the backend cannot answer
        """
        pass

    @abstractmethod
    async def put(self, alias: str, target_url: str, ttl: int) -> None:
        """
        Create a record that expires after `ttl` seconds.

        Only creates: a live record is never overwritten.

        Raises:
            DuplicateCollision: if the alias is already live
            StoreUnavailable: if the write cannot complete
        """
        pass

    @abstractmethod
    async def get(self, alias: str) -> str:
        """
        Get the target URL for the alias.

        Raises:
            NotFound: if the alias is absent or expired (not distinguished)
            StoreUnavailable: if the backend cannot answer
        """
        pass


class RedisAliasStore(AliasStore):
    """
    Redis implementation: one string key per alias with a native TTL.

    Layout: url:<alias> -> target URL, EX <ttl>
    The write uses SET NX so two allocators racing on the same alias
    can never both succeed.
    """

    def __init__(self, redis_client, key_prefix: str = "url:"):
        """
        Initialize Redis alias store.

        Args:
            redis_client: redis.asyncio client created with decode_responses=True
            key_prefix: Prefix for alias keys
        """
        self.redis = redis_client
        self.key_prefix = key_prefix

    def _key(self, alias: str) -> str:
        return f"{self.key_prefix}{alias}"

    async def exists(self, alias: str) -> bool:
        try:
            return bool(await self.redis.exists(self._key(alias)))
        except RedisError as e:
            raise StoreUnavailable(f"Redis exists failed for {alias}: {e}") from e

    async def put(self, alias: str, target_url: str, ttl: int) -> None:
        try:
            created = await self.redis.set(self._key(alias), target_url, ex=ttl, nx=True)
        except RedisError as e:
            raise StoreUnavailable(f"Redis set failed for {alias}: {e}") from e
        if not created:
            raise DuplicateCollision(alias)

    async def get(self, alias: str) -> str:
        try:
            value = await self.redis.get(self._key(alias))
        except RedisError as e:
            raise StoreUnavailable(f"Redis get failed for {alias}: {e}") from e
        if value is None:
            raise NotFound(alias)
        return value


class SqlAliasStore(AliasStore):
    """
    SQLAlchemy implementation backed by the `aliases` table.

    Expiry is enforced at read time by comparing expires_at with now (naive UTC).
    An expired row is replaced in the same transaction that creates the new one.

    Note: Async for interface consistency, DB queries are sync (fast).
    """

    def __init__(self, session_factory, clock: Callable[[], datetime] = None):
        """
        Args:
            session_factory: sessionmaker bound to the application engine
            clock: Returns the current naive UTC datetime (injectable for tests)
        """
        self.session_factory = session_factory
        self.clock = clock or (lambda: datetime.now(timezone.utc).replace(tzinfo=None))

    async def exists(self, alias: str) -> bool:
        try:
            with self.session_factory() as db:
                record = db.get(AliasRecord, alias)
                return record is not None and record.expires_at > self.clock()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Database lookup failed for {alias}: {e}") from e

    async def put(self, alias: str, target_url: str, ttl: int) -> None:
        now = self.clock()
        try:
            with self.session_factory() as db:
                existing = db.get(AliasRecord, alias)
                if existing is not None:
                    if existing.expires_at > now:
                        raise DuplicateCollision(alias)
                    db.delete(existing)
                    db.flush()

                db.add(AliasRecord(
                    alias=alias,
                    target_url=target_url,
                    expires_at=now + timedelta(seconds=ttl),
                ))
                try:
                    db.commit()
                except IntegrityError as e:
                    # Another writer inserted the same alias first
                    db.rollback()
                    raise DuplicateCollision(alias) from e
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Database write failed for {alias}: {e}") from e

    async def get(self, alias: str) -> str:
        try:
            with self.session_factory() as db:
                record = db.get(AliasRecord, alias)
                if record is None or record.expires_at <= self.clock():
                    raise NotFound(alias)
                return record.target_url
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Database lookup failed for {alias}: {e}") from e


class InMemoryAliasStore(AliasStore):
    """
    In-memory alias store using a Python dict.

    Pros:
    - Very fast (no network overhead)
    - Simple (no external dependencies)
    - Good for development and testing

    Cons:
    - Not distributed (each process has its own aliases)
    - Lost on restart

    Expired records are dropped lazily when touched.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._records: Dict[str, Tuple[str, float]] = {}
        self.clock = clock

    def _live(self, alias: str):
        record = self._records.get(alias)
        if record is None:
            return None
        if record[1] <= self.clock():
            del self._records[alias]
            return None
        return record

    async def exists(self, alias: str) -> bool:
        return self._live(alias) is not None

    async def put(self, alias: str, target_url: str, ttl: int) -> None:
        if self._live(alias) is not None:
            raise DuplicateCollision(alias)
        self._records[alias] = (target_url, self.clock() + ttl)

    async def get(self, alias: str) -> str:
        record = self._live(alias)
        if record is None:
            raise NotFound(alias)
        return record[0]
