"""
Click counter module.
Implements Strategy Pattern for flexible counter backends.
"""

from .strategies import CounterStore, RedisHashCounterStore, SqlCounterStore, InMemoryCounterStore
from .factory import CounterStoreFactory, CounterBackend

__all__ = [
    "CounterStore",
    "RedisHashCounterStore",
    "SqlCounterStore",
    "InMemoryCounterStore",
    "CounterStoreFactory",
    "CounterBackend",
]
