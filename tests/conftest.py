"""
Pytest fixtures for the inventory routing test suite.

SQL-backed fixtures run against a file-based SQLite database under
``tmp_path``.  Tests marked ``postgres`` need ``DATABASE_URL`` pointing at
a PostgreSQL database and are skipped otherwise.
"""

import json
import logging
import os
from collections.abc import Generator
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from routing_config import ConfigProvider, RoutingConfig
from routing_kernel.db.engine import build_engine, create_tables, drop_tables
from routing_kernel.domain.clock import DeterministicClock
from routing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from routing_kernel.services import (
    InMemoryItemStore,
    InMemoryQuotaLedger,
    RoutingService,
    SqlItemStore,
    SqlQuotaLedger,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """JSON logging to stderr at INFO; captured_logs lowers it to DEBUG per test."""
    reset_logging()
    configure_logging(level=logging.INFO)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """No correlation or item id leaks from one test into the next."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Collect every routing_kernel record emitted during the test.

    Calling the fixture value returns the records so far as dicts, in the
    same JSON shape production handlers write::

        def test_completed(captured_logs, routing_service, add_item):
            routing_service.route(add_item(brand_tier="B", ...))
            assert any(r["message"] == "routing_completed" for r in captured_logs())
    """
    buffer = StringIO()
    capture = logging.StreamHandler(buffer)
    capture.setFormatter(StructuredFormatter())
    namespace_logger = logging.getLogger("routing_kernel")
    saved_level = namespace_logger.level
    namespace_logger.setLevel(logging.DEBUG)
    namespace_logger.addHandler(capture)

    yield lambda: [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    namespace_logger.removeHandler(capture)
    namespace_logger.setLevel(saved_level)


def pytest_configure(config):
    """Markers: postgres needs DATABASE_URL; slow_locks tests contend on locks."""
    config.addinivalue_line("markers", "postgres: requires a PostgreSQL DATABASE_URL")
    config.addinivalue_line("markers", "slow_locks: many threads contending on quota keys")


# =============================================================================
# Clock and configuration fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def routing_config() -> RoutingConfig:
    return RoutingConfig()


@pytest.fixture
def config_provider(routing_config) -> ConfigProvider:
    return ConfigProvider(routing_config)


# =============================================================================
# In-memory service fixtures
# =============================================================================


@pytest.fixture
def memory_ledger() -> InMemoryQuotaLedger:
    return InMemoryQuotaLedger()


@pytest.fixture
def memory_items() -> InMemoryItemStore:
    return InMemoryItemStore()


@pytest.fixture
def routing_service(memory_ledger, memory_items, config_provider, deterministic_clock):
    return RoutingService(
        ledger=memory_ledger,
        config_source=config_provider.current,
        item_store=memory_items,
        clock=deterministic_clock,
    )


@pytest.fixture
def add_item(memory_items):
    """Factory fixture: store an item in ``memory_items`` and return its id."""

    def _add(**attributes) -> str:
        item_id = str(uuid4())
        memory_items.add(item_id, attributes)
        return item_id

    return _add


# =============================================================================
# SQL fixtures
# =============================================================================


@pytest.fixture
def sqlite_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'routing.db'}")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine) -> sessionmaker[Session]:
    return sessionmaker(bind=sqlite_engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    with session_factory() as s:
        yield s


@pytest.fixture
def sql_ledger(session_factory) -> SqlQuotaLedger:
    return SqlQuotaLedger(session_factory)


@pytest.fixture
def sql_items(session_factory) -> SqlItemStore:
    return SqlItemStore(session_factory)


@pytest.fixture
def sql_routing_service(sql_ledger, sql_items, config_provider, deterministic_clock):
    return RoutingService(
        ledger=sql_ledger,
        config_source=config_provider.current,
        item_store=sql_items,
        clock=deterministic_clock,
    )


@pytest.fixture
def unreachable_session_factory(tmp_path) -> sessionmaker[Session]:
    """Sessions whose connections fail: the database directory does not exist."""
    engine = build_engine(f"sqlite:///{tmp_path / 'missing' / 'routing.db'}")
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def pg_session_factory():
    """PostgreSQL session factory; skips unless DATABASE_URL is set."""
    url = os.environ.get("DATABASE_URL")
    if not url or not url.startswith("postgresql"):
        pytest.skip("DATABASE_URL not set to a PostgreSQL database")
    engine = build_engine(url, pool_size=60, max_overflow=10)
    drop_tables(engine)
    create_tables(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    drop_tables(engine)
    engine.dispose()
