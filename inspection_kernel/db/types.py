"""
Module: inspection_kernel.db.types
Responsibility: Custom SQLAlchemy column types shared by every model.
Architecture position: Kernel > DB.  No imports from the rest of the kernel.
"""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import DateTime, String
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Transparently converts between Python UUID objects and their 36-character
    string representation on the way in and out.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return UUID(value)
        return None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime normalised to UTC.

    PostgreSQL round-trips ``TIMESTAMP WITH TIME ZONE`` as aware values;
    SQLite stores text and hands back naive values.  Both are normalised
    here so that arithmetic like ``now - started_at`` never mixes naive
    and aware datetimes.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
