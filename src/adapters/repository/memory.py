"""
In-memory repository adapters - Process-local AccountRepository and SessionStore.

Used for development (REPOSITORY_BACKEND=memory) and tests. A single
lock per store serializes every read-modify-write, which gives the same
compare-and-clear guarantee the PostgreSQL adapter gets from row locks.
"""

import threading
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime

from src.domain.models import Account, AccountDraft
from src.domain.tokens import utc_now

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


class InMemoryAccountRepository:
    """
    Implements AccountRepository protocol with a dict guarded by a lock.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = threading.Lock()

    def _find(self, predicate) -> Account | None:
        with self._lock:
            return next((a for a in self._accounts.values() if predicate(a)), None)

    def find_by_id(self, account_id: str) -> Account | None:
        with self._lock:
            return self._accounts.get(account_id)

    def find_by_email(self, email: str) -> Account | None:
        return self._find(lambda a: a.email == email)

    def find_by_verification_token(self, token: str) -> Account | None:
        return self._find(lambda a: a.email_verification_token == token)

    def find_by_reset_token(self, token: str) -> Account | None:
        return self._find(lambda a: a.reset_token == token)

    def create(self, draft: AccountDraft) -> Account | None:
        with self._lock:
            if any(a.email == draft.email for a in self._accounts.values()):
                return None
            account = Account(
                id=str(uuid.uuid4()),
                email=draft.email,
                password_hash=draft.password_hash,
                display_name=draft.display_name,
                email_verification_token=draft.email_verification_token,
                verification_token_expiry=draft.verification_token_expiry,
                created_at=datetime.now(UTC),
            )
            self._accounts[account.id] = account
            return account

    def update(self, account_id: str, **fields: object) -> None:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update account fields: {sorted(unknown)}")
        with self._lock:
            account = self._accounts.get(account_id)
            if account is not None:
                self._accounts[account_id] = replace(account, **fields)

    def consume_verification_token(self, token: str, now: datetime) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if (
                    account.email_verification_token == token
                    and not account.email_verified
                    and account.verification_token_expiry is not None
                    and now <= account.verification_token_expiry
                ):
                    verified = replace(
                        account,
                        email_verified=True,
                        email_verification_token=None,
                        verification_token_expiry=None,
                    )
                    self._accounts[account.id] = verified
                    return verified
            return None

    def consume_reset_token(
        self, token: str, password_hash: str, now: datetime
    ) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if (
                    account.reset_token == token
                    and account.reset_token_expiry is not None
                    and now <= account.reset_token_expiry
                ):
                    updated = replace(
                        account,
                        password_hash=password_hash,
                        reset_token=None,
                        reset_token_expiry=None,
                    )
                    self._accounts[account.id] = updated
                    return updated
            return None


class InMemorySessionStore:
    """
    Implements SessionStore protocol with a dict guarded by a lock.

    Expired sessions are purged on every save, so abandoned handles that
    are never resolved again do not accumulate.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._sessions: dict[str, tuple[str, datetime]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def save(self, digest: str, account_id: str, expires_at: datetime) -> None:
        self.purge_expired(self._clock())
        with self._lock:
            self._sessions[digest] = (account_id, expires_at)

    def find(self, digest: str) -> tuple[str, datetime] | None:
        with self._lock:
            return self._sessions.get(digest)

    def delete(self, digest: str) -> None:
        with self._lock:
            self._sessions.pop(digest, None)

    def purge_expired(self, now: datetime) -> int:
        """
        Delete all sessions that expired before now.

        Returns:
            Number of sessions removed
        """
        with self._lock:
            expired = [d for d, (_, expires_at) in self._sessions.items() if expires_at < now]
            for digest in expired:
                del self._sessions[digest]
        return len(expired)
