"""
Module: siteops_kernel.db.engine
Responsibility: One process-wide SQLAlchemy engine and session factory for
    the org-unit and approval-request tables, plus a transactional scope
    helper.  Stores receive the session factory; they never build engines.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from services/ or outer layers (create_tables/drop_tables import
    models to register their tables).

Invariants enforced:
    - PostgreSQL (via psycopg2) is the production backend: READ COMMITTED
      isolation and a pre-pinged QueuePool.
    - SQLite is accepted for tests and embedded use; an in-memory database
      is shared through StaticPool so every session sees the same rows.
    - Approval writes rely on the version compare-and-swap in the store,
      not on row locks, so both backends give the same guarantees.

Failure modes:
    - RuntimeError from any accessor used before init_engine_from_url().
"""

import atexit
import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from siteops_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

DEFAULT_DATABASE_URL = "sqlite:///:memory:"


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings; pool options apply to server databases only."""

    url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800

    @classmethod
    def from_env(cls, prefix: str = "SITEOPS_") -> "DatabaseSettings":
        """Read ``<prefix>DATABASE_URL``, ``<prefix>DB_ECHO`` and ``<prefix>DB_POOL_SIZE``."""
        env = os.environ
        return cls(
            url=env.get(f"{prefix}DATABASE_URL", DEFAULT_DATABASE_URL),
            echo=env.get(f"{prefix}DB_ECHO", "").lower() in ("1", "true", "yes"),
            pool_size=int(env.get(f"{prefix}DB_POOL_SIZE", cls.pool_size)),
        )


_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _build_engine(url: URL, settings: DatabaseSettings) -> Engine:
    if url.get_backend_name() == "sqlite":
        in_memory = url.database in (None, "", ":memory:")
        return create_engine(
            url,
            echo=settings.echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if in_memory else None,
        )
    return create_engine(
        url,
        echo=settings.echo,
        poolclass=QueuePool,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_pre_ping=True,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
        isolation_level="READ COMMITTED",
    )


def init_engine(settings: DatabaseSettings) -> Engine:
    """Create the engine and session factory, replacing any previous ones."""
    global _engine, _SessionFactory

    reset_engine()
    url = make_url(settings.url)
    _engine = _build_engine(url, settings)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": url.get_backend_name(),
            "database_url": url.render_as_string(hide_password=True),
            "echo": settings.echo,
        },
    )
    return _engine


def init_engine_from_url(database_url: str, echo: bool = False, **pool_options) -> Engine:
    """Shorthand for ``init_engine(DatabaseSettings(url=..., ...))``."""
    return init_engine(DatabaseSettings(url=database_url, echo=echo, **pool_options))


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The shared session factory; stores open one short transaction per call."""
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """
    Transactional scope: commit on normal exit, roll back and re-raise on error.

    Usage:
        with session_scope(factory) as session:
            session.add(row)
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create the org_units and approval_requests tables if missing."""
    from siteops_kernel.db.base import Base
    import siteops_kernel.models  # noqa: F401  registers the tables

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop every table registered on ``Base`` (tests only)."""
    from siteops_kernel.db.base import Base
    import siteops_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


atexit.register(reset_engine)
