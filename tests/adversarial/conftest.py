"""
Shared fixtures for adversarial tests.

Provides the lifecycle service wired to PostgreSQL for race condition
tests. The in-memory service from the root conftest is used for
timing and enumeration tests.
"""

from unittest.mock import Mock

import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import PostgresAccountRepository, PostgresSessionStore
from src.domain.lifecycle import AccountLifecycleService
from src.domain.messages import MessageComposer
from src.domain.sessions import SessionManager


@pytest.fixture
def postgres_repository(pool: ConnectionPool, clean_database: None) -> PostgresAccountRepository:
    return PostgresAccountRepository(pool)


@pytest.fixture
def postgres_service(
    pool: ConnectionPool, postgres_repository: PostgresAccountRepository
) -> AccountLifecycleService:
    """Lifecycle service over PostgreSQL with a mocked dispatcher."""
    return AccountLifecycleService(
        repository=postgres_repository,
        sessions=SessionManager(store=PostgresSessionStore(pool)),
        dispatcher=Mock(),
        composer=MessageComposer(app_name="accountgate", app_url="http://localhost:5173"),
    )
