"""Repository adapters - Database and in-memory implementations."""

from .memory import InMemoryAccountRepository, InMemorySessionStore
from .postgres import PostgresAccountRepository, PostgresSessionStore, run_migrations

__all__ = [
    "InMemoryAccountRepository",
    "InMemorySessionStore",
    "PostgresAccountRepository",
    "PostgresSessionStore",
    "run_migrations",
]
