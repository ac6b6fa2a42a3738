"""Database layer - engine, base classes, column types."""

from revenue_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from revenue_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from revenue_kernel.db.types import ExternalId, Money, MonthKey, NoteText, UTCDateTime

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "drop_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "UTCDateTime",
    "Money",
    "ExternalId",
    "MonthKey",
    "NoteText",
]
