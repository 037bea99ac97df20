"""Database layer - engine, base classes, unit of work, immutability."""

from asset_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from asset_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    session_scope,
    unit_of_work,
)

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "session_scope",
    "unit_of_work",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UTCDateTime",
]
