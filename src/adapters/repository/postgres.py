"""
PostgreSQL repository adapters - Implement AccountRepository and SessionStore.

This module provides the PostgreSQL implementations of the domain's
persistence ports using psycopg3 with raw SQL.

Concurrency Design - Single-Use Tokens:
--------------------------------------
Token consumption is one UPDATE ... WHERE token = %s ... RETURNING
statement. Under READ COMMITTED, a second transaction updating the same
row blocks on the row lock, then re-evaluates its WHERE clause against
the committed row. The first writer has already cleared the token, so
the second matches nothing and gets no row back. No SELECT FOR UPDATE
or application lock is needed.

The accounts table also enforces, via CHECK constraints, that each
token is stored together with its expiry, and that emails are stored
lowercase.
"""

import logging
import uuid
from datetime import datetime
from pathlib import Path

from psycopg import sql
from psycopg_pool import ConnectionPool

from src.domain.models import Account, AccountDraft

logger = logging.getLogger(__name__)

_ACCOUNT_COLUMNS = """
    id, email, password_hash, display_name, email_verified,
    email_verification_token, verification_token_expiry,
    reset_token, reset_token_expiry, last_login_notification_at, created_at
"""

# Fields AccountRepository.update may write
_UPDATABLE_FIELDS = frozenset(
    {
        "password_hash",
        "display_name",
        "email_verified",
        "email_verification_token",
        "verification_token_expiry",
        "reset_token",
        "reset_token_expiry",
        "last_login_notification_at",
    }
)


def _to_account(row: tuple) -> Account:
    return Account(
        id=str(row[0]),
        email=row[1],
        password_hash=row[2],
        display_name=row[3],
        email_verified=row[4],
        email_verification_token=row[5],
        verification_token_expiry=row[6],
        reset_token=row[7],
        reset_token_expiry=row[8],
        last_login_notification_at=row[9],
        created_at=row[10],
    )


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (TypeError, ValueError):
        return False
    return True


class PostgresAccountRepository:
    """
    Implements AccountRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def _fetch_one(self, query: str, params: tuple) -> Account | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(query, params)
            row = cursor.fetchone()
            conn.commit()
        return _to_account(row) if row is not None else None

    def find_by_id(self, account_id: str) -> Account | None:
        if not _is_uuid(account_id):
            return None
        return self._fetch_one(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = %s", (account_id,)
        )

    def find_by_email(self, email: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE email = %s", (email,)
        )

    def find_by_verification_token(self, token: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE email_verification_token = %s",
            (token,),
        )

    def find_by_reset_token(self, token: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE reset_token = %s", (token,)
        )

    def create(self, draft: AccountDraft) -> Account | None:
        """
        Atomically insert an account.

        The UNIQUE constraint on email decides concurrent registrations:
        ON CONFLICT DO NOTHING returns no row for every loser.

        Returns:
            The stored account, or None if the email is already registered
        """
        query = f"""
            INSERT INTO accounts (
                email, password_hash, display_name,
                email_verification_token, verification_token_expiry
            )
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (email) DO NOTHING
            RETURNING {_ACCOUNT_COLUMNS}
        """
        return self._fetch_one(
            query,
            (
                draft.email,
                draft.password_hash,
                draft.display_name,
                draft.email_verification_token,
                draft.verification_token_expiry,
            ),
        )

    def update(self, account_id: str, **fields: object) -> None:
        """
        Write only the given fields.

        Raises:
            ValueError: If a field is not updatable (id, email, created_at)
        """
        if not fields:
            return
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update account fields: {sorted(unknown)}")

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(name)) for name in fields
        )
        query = sql.SQL("UPDATE accounts SET {} WHERE id = %s").format(assignments)

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(query, (*fields.values(), account_id))
            conn.commit()

    def consume_verification_token(self, token: str, now: datetime) -> Account | None:
        """Mark verified and clear the token pair in one statement (compare-and-clear)."""
        query = f"""
            UPDATE accounts
            SET email_verified = TRUE,
                email_verification_token = NULL,
                verification_token_expiry = NULL
            WHERE email_verification_token = %s
              AND email_verified = FALSE
              AND verification_token_expiry >= %s
            RETURNING {_ACCOUNT_COLUMNS}
        """
        return self._fetch_one(query, (token, now))

    def consume_reset_token(
        self, token: str, password_hash: str, now: datetime
    ) -> Account | None:
        """Write the new hash and clear the reset pair in one statement (compare-and-clear)."""
        query = f"""
            UPDATE accounts
            SET password_hash = %s,
                reset_token = NULL,
                reset_token_expiry = NULL
            WHERE reset_token = %s
              AND reset_token_expiry >= %s
            RETURNING {_ACCOUNT_COLUMNS}
        """
        return self._fetch_one(query, (password_hash, token, now))


class PostgresSessionStore:
    """
    Implements SessionStore protocol via psycopg3.

    Rows are keyed by the SHA-256 digest of the session handle.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def save(self, digest: str, account_id: str, expires_at: datetime) -> None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "INSERT INTO sessions (token_digest, account_id, expires_at) VALUES (%s, %s, %s)",
                (digest, account_id, expires_at),
            )
            conn.commit()

    def find(self, digest: str) -> tuple[str, datetime] | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "SELECT account_id, expires_at FROM sessions WHERE token_digest = %s",
                (digest,),
            )
            row = cursor.fetchone()
            conn.commit()
        if row is None:
            return None
        return str(row[0]), row[1]

    def delete(self, digest: str) -> None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM sessions WHERE token_digest = %s", (digest,))
            conn.commit()

    def purge_expired(self, now: datetime) -> int:
        """
        Delete all sessions that expired before now.

        Returns:
            Number of sessions removed
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM sessions WHERE expires_at < %s", (now,))
            conn.commit()
            return cursor.rowcount


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
