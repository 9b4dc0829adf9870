"""
Database models for the SQL-backed alias and counter stores.

Click events themselves live in the event log (Redis Streams),
not in SQLAlchemy models.
"""

from .alias import AliasRecord
from .counter import ClickCounter

__all__ = ["AliasRecord", "ClickCounter"]
