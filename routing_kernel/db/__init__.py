"""Database layer - engine setup and declarative base."""

from routing_kernel.db.base import Base, TimestampedBase, UUIDString
from routing_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
)

__all__ = [
    "Base",
    "TimestampedBase",
    "UUIDString",
    "build_engine",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
]
