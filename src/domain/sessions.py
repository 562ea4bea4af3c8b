"""
Session manager - Opaque session handles bound to an account id.

The handle given to the client is a random URL-safe string; the store
only ever sees its SHA-256 digest, so a leaked session table cannot be
replayed as cookies.
"""

import hashlib
import logging
import re
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .exceptions import Unauthenticated
from .ports import SessionStore
from .tokens import is_expired, utc_now

logger = logging.getLogger(__name__)

# token_urlsafe(32) yields 43 characters from the base64url alphabet
_HANDLE_PATTERN = re.compile(r"^[A-Za-z0-9_-]{43}$")


def hash_handle(handle: str) -> str:
    return hashlib.sha256(handle.encode()).hexdigest()


@dataclass
class SessionManager:
    """Issues, resolves and destroys session handles."""

    store: SessionStore
    ttl: timedelta = timedelta(days=7)
    clock: Callable[[], datetime] = field(default=utc_now)

    def create(self, account_id: str) -> str:
        """
        Bind a fresh handle to account_id.

        Returns:
            The opaque handle; transporting it (cookie, header) is the caller's job
        """
        handle = secrets.token_urlsafe(32)
        self.store.save(hash_handle(handle), account_id, self.clock() + self.ttl)
        logger.info("Session created for account %s", account_id)
        return handle

    def resolve(self, handle: str | None) -> str | None:
        """
        Return the account id bound to handle.

        Missing, malformed, unknown and expired handles all resolve to None.
        Expired sessions are removed on the way out.
        """
        if not isinstance(handle, str) or not _HANDLE_PATTERN.match(handle):
            return None

        digest = hash_handle(handle)
        record = self.store.find(digest)
        if record is None:
            return None

        account_id, expires_at = record
        if is_expired(expires_at, self.clock()):
            self.store.delete(digest)
            return None
        return account_id

    def require_account(self, handle: str | None) -> str:
        """
        Resolve handle or fail.

        Raises:
            Unauthenticated: If the handle does not resolve
        """
        account_id = self.resolve(handle)
        if account_id is None:
            raise Unauthenticated("No valid session")
        return account_id

    def destroy(self, handle: str | None) -> None:
        """Invalidate handle. Destroying an absent session is a no-op."""
        if not isinstance(handle, str) or not _HANDLE_PATTERN.match(handle):
            return
        self.store.delete(hash_handle(handle))
