"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure, plus the result types lifecycle operations return.
Adapters implement these protocols.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

from .models import Account, AccountDraft, EmailMessage


class ErrorKind(str, Enum):
    """
    Failure categories surfaced by lifecycle operations.

    INVALID_TOKEN is shared by verification and reset tokens, and AUTH never
    says which credential was wrong.
    """

    VALIDATION = "validation_error"
    CONFLICT = "conflict_error"
    AUTH = "auth_error"
    UNVERIFIED = "unverified_error"
    INVALID_TOKEN = "invalid_token_error"
    UNAUTHENTICATED = "unauthenticated_error"


@dataclass(frozen=True)
class Success:
    """
    Successful lifecycle outcome.

    session is set only by operations that establish one (login, verification).
    already_verified marks the idempotent verification outcome.
    """

    message: str
    email: str | None = None
    session: str | None = None
    redirect_to: str | None = None
    already_verified: bool = False


@dataclass(frozen=True)
class Failure:
    """Failed lifecycle outcome - one variant per ErrorKind."""

    kind: ErrorKind
    message: str


Result = Success | Failure


class AccountRepository(Protocol):
    """Port interface for account persistence."""

    def find_by_id(self, account_id: str) -> Account | None: ...

    def find_by_email(self, email: str) -> Account | None:
        """Look up by normalized (lowercase) email."""
        ...

    def find_by_verification_token(self, token: str) -> Account | None: ...

    def find_by_reset_token(self, token: str) -> Account | None: ...

    def create(self, draft: AccountDraft) -> Account | None:
        """
        Atomically create an account.

        Returns:
            The stored account, or None if the email is already taken
        """
        ...

    def update(self, account_id: str, **fields: object) -> None:
        """
        Update a subset of account fields.

        Only the named fields are written; passing None clears a field.
        """
        ...

    def consume_verification_token(self, token: str, now: datetime) -> Account | None:
        """
        Compare-and-clear the verification token.

        In one atomic step: if an unverified account holds this token and
        its expiry is not before now, mark it verified and clear the token
        pair. Of several concurrent callers with the same token, exactly
        one gets the account back; the others get None.
        """
        ...

    def consume_reset_token(
        self, token: str, password_hash: str, now: datetime
    ) -> Account | None:
        """
        Compare-and-clear the reset token while setting the new password.

        Same atomicity guarantee as consume_verification_token: exactly one
        concurrent caller wins, the rest get None.
        """
        ...


class SessionStore(Protocol):
    """Port interface for server-side session records, keyed by handle digest."""

    def save(self, digest: str, account_id: str, expires_at: datetime) -> None: ...

    def find(self, digest: str) -> tuple[str, datetime] | None:
        """Return (account_id, expires_at) or None."""
        ...

    def delete(self, digest: str) -> None:
        """Remove the session; a missing session is not an error."""
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send(
        self, to: str, subject: str, html_body: str, text_body: str | None = None
    ) -> bool:
        """
        Deliver one message.

        Returns:
            True if the transport accepted the message
        """
        ...


class EmailDispatcher(Protocol):
    """Port interface for fire-and-forget delivery of composed messages."""

    def dispatch(self, message: EmailMessage) -> None:
        """Queue a message. Must not raise and must not wait for delivery."""
        ...
