from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from shortlink_app.database.connection import Base


class AliasRecord(Base):
    """
    Alias -> target URL mapping for the "sql" alias backend.

    Rows are never updated. A row whose expires_at has passed is treated
    as absent and may be replaced by a new record for the same alias.
    """
    __tablename__ = "aliases"

    alias = Column(String(16), primary_key=True)
    target_url = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    expires_at = Column(DateTime, nullable=False, index=True)  # naive UTC
