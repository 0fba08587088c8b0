"""
Declarative base and shared column mixins.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, func
from sqlalchemy.orm import declarative_base

from seatbook.db.types import UTCDateTime

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    # Python-side defaults so the ORM never has to re-fetch these after a flush
    created_at = Column(UTCDateTime, default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        UTCDateTime, default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )
