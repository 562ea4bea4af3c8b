"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory repository and session store
- A controllable clock
- A fully wired lifecycle service with a mocked email dispatcher
- A PostgreSQL connection pool (skips when the database is unreachable)
"""

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository.memory import InMemoryAccountRepository, InMemorySessionStore
from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings
from src.domain.lifecycle import AccountLifecycleService
from src.domain.messages import MessageComposer
from src.domain.sessions import SessionManager


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repository() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def session_store(clock: FakeClock) -> InMemorySessionStore:
    return InMemorySessionStore(clock=clock)


@pytest.fixture
def dispatcher() -> Mock:
    return Mock()


@pytest.fixture
def composer() -> MessageComposer:
    return MessageComposer(app_name="accountgate", app_url="http://localhost:5173")


@pytest.fixture
def sessions(session_store: InMemorySessionStore, clock: FakeClock) -> SessionManager:
    return SessionManager(store=session_store, clock=clock)


@pytest.fixture
def service(
    repository: InMemoryAccountRepository,
    sessions: SessionManager,
    dispatcher: Mock,
    composer: MessageComposer,
    clock: FakeClock,
) -> AccountLifecycleService:
    return AccountLifecycleService(
        repository=repository,
        sessions=sessions,
        dispatcher=dispatcher,
        composer=composer,
        clock=clock,
    )


@pytest.fixture(scope="session")
def pool() -> Generator[ConnectionPool, None, None]:
    """
    Connection pool for tests that need PostgreSQL.

    Skips the requesting test when the database in DATABASE_URL is unreachable.
    """
    settings = get_settings()
    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=False)
    try:
        pool.open(wait=True, timeout=5)
    except PoolTimeout:
        pool.close()
        pytest.skip(f"PostgreSQL not reachable at {settings.database_url}")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Empty the accounts and sessions tables before a test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM sessions")
        conn.execute("DELETE FROM accounts")
        conn.commit()
    yield
