"""
Module: inspection_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map for consistent
    column types, and the TimestampedBase mixin for row timestamps.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Timezone-aware timestamps: datetime maps to UTCDateTime, so values read
      back are always aware, on every supported backend.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from inspection_kernel.db.types import UTCDateTime, UUIDString


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - datetime maps to UTCDateTime -- always timezone-aware.
        - int maps to BigInteger -- safe for monotonic version counters.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TimestampedBase(Base):
    """
    Abstract base with row creation and modification timestamps.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at is set to server NOW() on INSERT; writers that mutate a
          row are expected to set it explicitly from their injected clock.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# Re-export UUID for convenience
UUID = PyUUID
