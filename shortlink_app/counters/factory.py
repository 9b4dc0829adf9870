"""
Factory for creating click counter stores.
"""

from enum import Enum
import logging

from .strategies import CounterStore, RedisHashCounterStore, SqlCounterStore, InMemoryCounterStore
from shortlink_app.config import settings

logger = logging.getLogger(__name__)


class CounterBackend(Enum):
    """Available counter backends"""
    REDIS = "redis"
    SQL = "sql"
    MEMORY = "memory"


class CounterStoreFactory:
    """
    Simple factory for creating counter store instances.

    Uses Singleton Pattern - creates instance once, reuses it.
    """

    _instance: CounterStore = None

    @classmethod
    def create(cls, backend: CounterBackend) -> CounterStore:
        """
        Create or return cached counter store instance.

        Args:
            backend: Type of counter backend (from enum)

        Returns:
            Singleton counter store instance
        """
        if cls._instance is not None:
            return cls._instance

        if backend == CounterBackend.REDIS:
            from shortlink_app.redis_client import get_redis
            cls._instance = RedisHashCounterStore(get_redis(), hash_key=settings.clicks_hash_key)

        elif backend == CounterBackend.SQL:
            from shortlink_app.database.connection import SessionLocal
            cls._instance = SqlCounterStore(SessionLocal)

        elif backend == CounterBackend.MEMORY:
            cls._instance = InMemoryCounterStore()

        else:
            raise ValueError(f"Unknown counter backend: {backend}")

        logger.info("Counter store initialized (%s)", backend.value)
        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
