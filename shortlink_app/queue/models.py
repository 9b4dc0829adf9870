"""
Data models for click log entries.
"""

from datetime import datetime, timezone
from typing import Dict

from pydantic import BaseModel, Field

from shortlink_app.errors import MalformedEvent


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClickEvent(BaseModel):
    """
    Event appended to the click log once per successful redirect.

    Immutable once appended; the log assigns the entry id.
    """

    alias: str = Field(..., description="The alias that was accessed")
    timestamp: datetime = Field(default_factory=utcnow, description="When the click occurred")

    def to_fields(self) -> Dict[str, str]:
        """Flat string fields as stored in the log"""
        return {
            "alias": self.alias,
            "timestamp": self.timestamp.isoformat(),
        }

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "alias": "abc1234",
                "timestamp": "2025-10-29T10:30:00+00:00",
            }
        },
    }


class LogEntry(BaseModel):
    """
    A raw entry read back from the click log.

    Fields are kept as stored so the aggregator can detect malformed
    payloads instead of failing to parse them.
    """

    entry_id: str
    fields: Dict[str, str] = Field(default_factory=dict)

    @property
    def alias(self) -> str:
        """
        The alias field of the entry.

        Raises:
            MalformedEvent: if the field is missing or empty
        """
        alias = self.fields.get("alias")
        if not alias:
            raise MalformedEvent(self.entry_id, "missing alias field")
        return alias

    def to_event(self) -> ClickEvent:
        timestamp = self.fields.get("timestamp")
        if timestamp is None:
            return ClickEvent(alias=self.alias)
        try:
            return ClickEvent(alias=self.alias, timestamp=datetime.fromisoformat(timestamp))
        except ValueError as e:
            raise MalformedEvent(self.entry_id, f"bad timestamp {timestamp!r}") from e
