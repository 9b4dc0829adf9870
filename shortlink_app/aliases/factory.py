"""
Factory for creating alias store instances.
Simple, clean factory with singleton caching.
"""

from enum import Enum
import logging

from .strategies import AliasStore, RedisAliasStore, SqlAliasStore, InMemoryAliasStore
from shortlink_app.config import settings

logger = logging.getLogger(__name__)


class AliasBackend(Enum):
    """Available alias store backends"""
    REDIS = "redis"
    SQL = "sql"
    MEMORY = "memory"


class AliasStoreFactory:
    """
    Simple factory for creating alias store instances.

    Uses Singleton Pattern - creates instance once, reuses it.
    Gets configuration from settings (not passed as parameters).
    """

    _instance: AliasStore = None  # Single cached instance

    @classmethod
    def create(cls, backend: AliasBackend) -> AliasStore:
        """
        Create or return cached alias store instance.

        Args:
            backend: Type of alias backend (from enum)

        Returns:
            Singleton alias store instance
        """
        if cls._instance is not None:
            return cls._instance

        if backend == AliasBackend.REDIS:
            from shortlink_app.redis_client import get_redis
            cls._instance = RedisAliasStore(get_redis(), key_prefix=settings.alias_key_prefix)

        elif backend == AliasBackend.SQL:
            from shortlink_app.database.connection import SessionLocal
            cls._instance = SqlAliasStore(SessionLocal)

        elif backend == AliasBackend.MEMORY:
            cls._instance = InMemoryAliasStore()

        else:
            raise ValueError(f"Unknown alias backend: {backend}")

        logger.info("Alias store initialized (%s)", backend.value)
        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
