"""Database layer - engine, base classes and session scope."""

from siteops_kernel.db.base import Base, UUIDString
from siteops_kernel.db.engine import (
    DatabaseSettings,
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "DatabaseSettings",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session_factory",
    "init_engine",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
