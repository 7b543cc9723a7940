"""Database layer - engine, base classes, types, and immutability."""

from inspection_kernel.db.base import UUID, Base, TimestampedBase
from inspection_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    transaction_scope,
)
from inspection_kernel.db.types import UTCDateTime, UUIDString

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "transaction_scope",
    "create_tables",
    "drop_tables",
    "Base",
    "TimestampedBase",
    "UUIDString",
    "UTCDateTime",
    "UUID",
]
