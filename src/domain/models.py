"""
Domain models - Account records and the values that travel with them.

Accounts are immutable snapshots; state changes go through the
repository, which returns a fresh snapshot.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AccountState(str, Enum):
    """
    Account lifecycle states, derived from stored fields (never stored).

    Transitions:
    - UNREGISTERED -> PENDING_VERIFICATION (register)
    - PENDING_VERIFICATION -> VERIFIED (verify_email)
    - VERIFIED -> PASSWORD_RESET_PENDING (request_password_reset)
    - PASSWORD_RESET_PENDING -> VERIFIED (reset_password)

    email_verified is monotonic, so nothing ever returns to
    PENDING_VERIFICATION once verified.
    """

    UNREGISTERED = "UNREGISTERED"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    VERIFIED = "VERIFIED"
    PASSWORD_RESET_PENDING = "PASSWORD_RESET_PENDING"


@dataclass(frozen=True)
class Account:
    """Persisted account record."""

    id: str
    email: str
    password_hash: str
    display_name: str | None = None
    email_verified: bool = False
    email_verification_token: str | None = None
    verification_token_expiry: datetime | None = None
    reset_token: str | None = None
    reset_token_expiry: datetime | None = None
    last_login_notification_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def state(self) -> AccountState:
        if not self.email_verified:
            return AccountState.PENDING_VERIFICATION
        if self.reset_token is not None:
            return AccountState.PASSWORD_RESET_PENDING
        return AccountState.VERIFIED

    @property
    def greeting_name(self) -> str:
        return self.display_name or "User"


@dataclass(frozen=True)
class AccountDraft:
    """Fields supplied when creating an account; the store assigns the id."""

    email: str
    password_hash: str
    display_name: str | None
    email_verification_token: str
    verification_token_expiry: datetime


@dataclass(frozen=True)
class ClientInfo:
    """Request metadata attached to a login, used for security notifications."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class EmailMessage:
    """A fully composed outbound email."""

    to: str
    subject: str
    html_body: str
    text_body: str | None = None
