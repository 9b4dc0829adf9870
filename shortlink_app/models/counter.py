from sqlalchemy import Column, String, BigInteger
from shortlink_app.database.connection import Base


class ClickCounter(Base):
    """Per-alias click total for the "sql" counter backend. No TTL, never decremented."""
    __tablename__ = "click_counters"

    alias = Column(String(16), primary_key=True)
    count = Column(BigInteger, nullable=False, default=0)
