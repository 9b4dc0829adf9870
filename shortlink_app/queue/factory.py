"""
Factory for creating click event log instances.
Simple, clean factory with singleton caching.
"""

from enum import Enum
import logging

from .strategies import EventLog, RedisStreamEventLog, InMemoryEventLog
from shortlink_app.config import settings

logger = logging.getLogger(__name__)


class EventLogBackend(Enum):
    """Available event log backends"""
    REDIS_STREAMS = "redis_streams"
    MEMORY = "memory"


class EventLogFactory:
    """
    Simple factory for creating event log instances.

    Gets configuration from settings (not passed as parameters).
    """

    _instance: EventLog = None  # Single cached instance

    @classmethod
    def create(cls, backend: EventLogBackend) -> EventLog:
        """
        Create or return cached event log instance.

        Args:
            backend: Type of event log backend (from enum)

        Returns:
            Singleton event log instance
        """
        if cls._instance is not None:
            return cls._instance

        if backend == EventLogBackend.REDIS_STREAMS:
            from shortlink_app.redis_client import get_redis
            cls._instance = RedisStreamEventLog(get_redis(), stream_key=settings.click_stream_key)

        elif backend == EventLogBackend.MEMORY:
            cls._instance = InMemoryEventLog()

        else:
            raise ValueError(f"Unknown event log backend: {backend}")

        logger.info("Event log initialized (%s)", backend.value)
        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
