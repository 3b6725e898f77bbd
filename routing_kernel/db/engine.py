"""
Module: routing_kernel.db.engine
Responsibility: Build SQLAlchemy engines for the routing kernel and hold the
    process-wide engine and session factory used by scripts.
Architecture position: Kernel > DB.  May import from db/base.py.  Only
    create_tables/drop_tables import models, to register their tables.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED; quota counters are serialized by
      SELECT ... FOR UPDATE on their row.
    - SQLite ignores FOR UPDATE.  It is accepted for tests and demos, where
      the in-process key locks serialize quota updates instead.

Failure modes:
    - RuntimeError from get_engine/get_session_factory before
      init_engine_from_url().
    - sqlalchemy.exc.TimeoutError when the pool (pool_size + max_overflow)
      is exhausted for longer than pool_timeout.
"""

import atexit
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from routing_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create an Engine for ``database_url`` without installing it globally.

    SQLite connections are shared across router threads, and
    ``pool_timeout`` doubles as the SQLite busy timeout.
    """
    options: dict[str, Any] = {"echo": echo}
    if make_url(database_url).get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False, "timeout": pool_timeout}
    else:
        options.update(
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )
    return create_engine(database_url, **options)


def init_engine_from_url(database_url: str, **engine_options: Any) -> Engine:
    """
    Install the process-wide engine and session factory.

    Calling it again replaces (and disposes) the previous engine.

    Args:
        database_url: postgresql://... or sqlite:///...
        **engine_options: Passed to build_engine().
    """
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = build_engine(database_url, **engine_options)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, **engine_options},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """
    Session factory bound to the process-wide engine.

    Ledgers and item stores open one short-lived session per operation
    from it, so it is safe to share across router threads.
    """
    if _session_factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _session_factory


def create_tables(engine: Engine | None = None) -> None:
    """Create the quota_counters and inventory_items tables if absent."""
    from routing_kernel.db.base import Base

    import routing_kernel.models  # noqa: F401  (registers the tables)

    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """Drop every routing table. Tests only."""
    from routing_kernel.db.base import Base

    import routing_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


@atexit.register
def _dispose_at_exit() -> None:
    if _engine is None:
        return
    try:
        _engine.dispose()
    except SQLAlchemyError:
        logger.warning("engine_dispose_failed", exc_info=True)
