"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures routes and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.repository.memory import InMemoryAccountRepository, InMemorySessionStore
from src.adapters.repository.postgres import (
    PostgresAccountRepository,
    PostgresSessionStore,
    run_migrations,
)
from src.adapters.smtp.console import ConsoleEmailSender
from src.adapters.smtp.dispatch import BackgroundEmailDispatcher
from src.adapters.smtp.relay import SmtpEmailSender
from src.api.v1 import router as v1_router
from src.config.settings import Settings, get_settings
from src.domain.ports import EmailSender
from src.domain.tokens import utc_now

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Account Lifecycle API v1 - Registration, verification, login and password reset",
    },
]


def create_email_sender(settings: Settings) -> EmailSender:
    """Select the email transport from settings."""
    if settings.email_backend == "smtp":
        sender = SmtpEmailSender(settings)
        # Startup check only; a failing relay must not stop the service
        sender.verify_connection()
        return sender
    return ConsoleEmailSender()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the storage backend (database pool + migrations, or in-memory)
    - Starts the background email dispatcher
    - Stops the dispatcher and closes the pool on shutdown
    """
    settings = get_settings()
    pool: ConnectionPool | None = None

    logger.info("Starting application...")

    if settings.repository_backend == "postgres":
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )

        logger.info("Running database migrations...")
        run_migrations(pool)

        session_store = PostgresSessionStore(pool)
        purged = session_store.purge_expired(utc_now())
        logger.info("Purged %d expired session(s)", purged)

        app.state.account_repository = PostgresAccountRepository(pool)
        app.state.session_store = session_store
    else:
        logger.warning("Using in-memory storage; data is lost on restart")
        app.state.account_repository = InMemoryAccountRepository()
        app.state.session_store = InMemorySessionStore()

    app.state.pool = pool
    dispatcher = BackgroundEmailDispatcher(
        create_email_sender(settings), max_workers=settings.email_workers
    )
    app.state.email_dispatcher = dispatcher

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    dispatcher.shutdown(wait=True)
    logger.info("Email dispatcher stopped")
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="accountgate",
    description="Account Lifecycle API - Registration, email verification, sessions and password reset",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if the application (and database, when configured) is healthy.
    Raises exception if database connection fails.
    """
    pool = request.app.state.pool
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")

    return {"status": "healthy"}
