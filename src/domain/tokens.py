"""
Token issuer - Unguessable single-use tokens and their expiry arithmetic.

Stateless: generated values are persisted by the lifecycle service
through the account repository.
"""

import secrets
from datetime import UTC, datetime, timedelta

# 32 bytes = 256 bits of entropy, rendered as 64 hex characters (URL-safe)
TOKEN_BYTES = 32


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(UTC)


def generate_token() -> str:
    """
    Generate a cryptographically secure token.

    Uses the secrets module (OS CSPRNG), never random.
    """
    return secrets.token_hex(TOKEN_BYTES)


def expiry_from(now: datetime, duration_hours: float) -> datetime:
    """Return now + duration_hours."""
    return now + timedelta(hours=duration_hours)


def is_expired(expiry: datetime | None, now: datetime | None = None) -> bool:
    """
    Check whether a token expiry has passed.

    A missing expiry counts as expired so unpaired tokens fail closed.
    The expiry instant itself is still valid (now == expiry -> False).
    """
    if expiry is None:
        return True
    if now is None:
        now = utc_now()
    return now > expiry
