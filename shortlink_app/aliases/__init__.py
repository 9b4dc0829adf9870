"""
Alias store module for URL shortener.
Implements Strategy Pattern for flexible alias backends.
"""

from .strategies import AliasStore, RedisAliasStore, SqlAliasStore, InMemoryAliasStore
from .factory import AliasStoreFactory, AliasBackend

__all__ = [
    "AliasStore",
    "RedisAliasStore",
    "SqlAliasStore",
    "InMemoryAliasStore",
    "AliasStoreFactory",
    "AliasBackend",
]
