"""Database layer - engine, base classes, types, and immutability listeners."""

from portal_kernel.db.base import Base, UTCDateTime, UUIDString
from portal_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "UTCDateTime",
    "UUIDString",
]
