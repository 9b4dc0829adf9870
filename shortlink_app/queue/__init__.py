"""
Click event log module for URL shortener.
Implements Strategy Pattern for flexible log backends.
"""

from .strategies import EventLog, RedisStreamEventLog, InMemoryEventLog
from .factory import EventLogFactory, EventLogBackend
from .models import ClickEvent, LogEntry

__all__ = [
    "EventLog",
    "RedisStreamEventLog",
    "InMemoryEventLog",
    "EventLogFactory",
    "EventLogBackend",
    "ClickEvent",
    "LogEntry",
]
