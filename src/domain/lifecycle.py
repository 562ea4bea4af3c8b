"""
Account lifecycle service - Registration, verification, login and password reset.

Account Lifecycle (states derived from stored fields)
=====================================================

    UNREGISTERED --register--> PENDING_VERIFICATION
    PENDING_VERIFICATION --verify_email--> VERIFIED (+ session)
    VERIFIED --login--> VERIFIED (+ session, throttled login notification)
    VERIFIED --request_password_reset--> PASSWORD_RESET_PENDING
    PASSWORD_RESET_PENDING --reset_password--> VERIFIED (no session)
    PASSWORD_RESET_PENDING --request_password_reset--> PASSWORD_RESET_PENDING (token overwritten)

Tokens are single use. Consumption goes through the repository's
compare-and-clear operations, so two requests racing on one token
cannot both succeed.

Every operation returns Success or Failure. Email dispatch is
best-effort: a failed send is logged and never changes the outcome.

Anti-enumeration:
- login returns the same AUTH failure for unknown email and wrong password,
  and runs bcrypt against a dummy hash of the configured cost when the
  email is unknown or the password is too long to have been stored
- request_password_reset and resend_verification return one shared
  Success object whether or not the email exists, after the same number
  of repository round trips
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import lru_cache

import bcrypt

from .exceptions import Unauthenticated
from .messages import MessageComposer
from .models import Account, AccountDraft, ClientInfo, EmailMessage
from .notifications import DEFAULT_INTERVAL, LoginNotifier
from .ports import AccountRepository, EmailDispatcher, ErrorKind, Failure, Result, Success
from .sessions import SessionManager
from .tokens import expiry_from, generate_token, is_expired, utc_now

logger = logging.getLogger(__name__)

MIN_REGISTRATION_PASSWORD_LENGTH = 6
MIN_RESET_PASSWORD_LENGTH = 8
# bcrypt only reads the first 72 bytes and newer releases reject longer input
MAX_PASSWORD_BYTES = 72

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")

# Issued tokens are 64 hex characters; anything far longer is rejected unseen
_MAX_TOKEN_LENGTH = 128


@lru_cache
def dummy_hash(cost: int) -> bytes:
    """
    Hash compared against when no real one applies.

    Built at the same cost as stored hashes, so every login failure costs
    one bcrypt check of equal work.
    """
    return bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(rounds=cost))


INVALID_CREDENTIALS = "Invalid email or password"
INVALID_EMAIL = "Invalid email address"
INVALID_VERIFICATION_TOKEN = (
    "Invalid verification token. This link may have expired or already been used."
)
INVALID_RESET_TOKEN = (
    "This password reset link has expired or is invalid. Please request a new one."
)
RESET_REQUESTED = (
    "If an account exists with this email, you will receive a password reset link."
)
VERIFICATION_RESENT = (
    "If an unverified account exists with this email, a new verification link has been sent."
)

# Shared instances: callers get the identical payload whether or not the account exists
_RESET_REQUESTED_RESULT = Success(message=RESET_REQUESTED)
_VERIFICATION_RESENT_RESULT = Success(message=VERIFICATION_RESENT)


def normalize_email(email: str) -> str:
    """Strip whitespace and lowercase; applied to every lookup and write."""
    return email.strip().lower()


def is_valid_email(email: object) -> bool:
    return isinstance(email, str) and _EMAIL_PATTERN.match(email) is not None


def password_problem(password: object, min_length: int) -> str | None:
    """Return a user-facing validation message, or None if the password is acceptable."""
    if not isinstance(password, str) or len(password) < min_length:
        return f"Password must be at least {min_length} characters long"
    if len(password.encode()) > MAX_PASSWORD_BYTES:
        return f"Password must be at most {MAX_PASSWORD_BYTES} bytes long"
    return None


@dataclass
class AccountLifecycleService:
    """
    Domain service orchestrating the account lifecycle.

    Wires the account repository, session manager, email dispatcher and
    login notification policy together.
    """

    repository: AccountRepository
    sessions: SessionManager
    dispatcher: EmailDispatcher
    composer: MessageComposer
    bcrypt_cost: int = 10
    verification_ttl_hours: int = 24
    reset_ttl_hours: int = 1
    notification_interval: timedelta = DEFAULT_INTERVAL
    clock: Callable[[], datetime] = field(default=utc_now)

    def __post_init__(self) -> None:
        self._notifier = LoginNotifier(
            repository=self.repository,
            dispatcher=self.dispatcher,
            composer=self.composer,
            interval=self.notification_interval,
        )

    def register(self, email: str, password: str, name: str | None = None) -> Result:
        """
        Create an unverified account and send its verification link.

        Does not establish a session.
        """
        if not isinstance(email, str) or not is_valid_email(normalize_email(email)):
            return Failure(ErrorKind.VALIDATION, INVALID_EMAIL)
        problem = password_problem(password, MIN_REGISTRATION_PASSWORD_LENGTH)
        if problem is not None:
            return Failure(ErrorKind.VALIDATION, problem)

        normalized_email = normalize_email(email)
        display_name = name.strip() if isinstance(name, str) and name.strip() else None
        token = generate_token()
        draft = AccountDraft(
            email=normalized_email,
            password_hash=self._hash_password(password),
            display_name=display_name,
            email_verification_token=token,
            verification_token_expiry=expiry_from(self.clock(), self.verification_ttl_hours),
        )

        account = self.repository.create(draft)
        if account is None:
            return Failure(ErrorKind.CONFLICT, "An account with this email already exists")

        logger.info("Account %s registered, verification pending", account.id)
        self._dispatch(self.composer.verification(account, token), "verification")
        return Success(
            message="Registration successful. Please check your email to verify your account.",
            email=normalized_email,
        )

    def login(self, email: str, password: str, client: ClientInfo | None = None) -> Result:
        """
        Check credentials and open a session.

        Unknown email and wrong password produce the same AUTH failure.
        UNVERIFIED is only reported once the password has been proven.
        """
        if not isinstance(email, str) or not is_valid_email(normalize_email(email)):
            return Failure(ErrorKind.VALIDATION, INVALID_EMAIL)
        if not isinstance(password, str) or not password:
            return Failure(ErrorKind.VALIDATION, "Password is required")

        account = self.repository.find_by_email(normalize_email(email))
        candidate = password.encode()

        # Always run bcrypt so unknown emails take as long as wrong passwords
        if account is None or len(candidate) > MAX_PASSWORD_BYTES:
            # No stored password exceeds the limit; bcrypt would raise on it
            self._check_password(candidate[:MAX_PASSWORD_BYTES], dummy_hash(self.bcrypt_cost))
            password_valid = False
        else:
            password_valid = self._check_password(candidate, account.password_hash.encode())

        if account is None or not password_valid:
            return Failure(ErrorKind.AUTH, INVALID_CREDENTIALS)

        if not account.email_verified:
            return Failure(
                ErrorKind.UNVERIFIED, "Please verify your email address before logging in."
            )

        self._notifier.on_login(account, client, self.clock())
        session = self.sessions.create(account.id)
        logger.info("Account %s logged in", account.id)
        return Success(
            message="Login successful", email=account.email, session=session, redirect_to="/"
        )

    def verify_email(self, token: str) -> Result:
        """
        Consume a verification token, activate the account and open a session.

        An already verified account yields an idempotent Success with
        already_verified=True and no state change.
        """
        if not isinstance(token, str) or not token:
            return Failure(ErrorKind.INVALID_TOKEN, "Invalid or missing verification token")
        if len(token) > _MAX_TOKEN_LENGTH:
            return Failure(ErrorKind.INVALID_TOKEN, INVALID_VERIFICATION_TOKEN)

        account = self.repository.find_by_verification_token(token)
        if account is None:
            return Failure(ErrorKind.INVALID_TOKEN, INVALID_VERIFICATION_TOKEN)

        if account.email_verified:
            return Success(
                message="Your email is already verified. You can log in now.",
                email=account.email,
                already_verified=True,
            )

        now = self.clock()
        if is_expired(account.verification_token_expiry, now):
            return Failure(ErrorKind.INVALID_TOKEN, INVALID_VERIFICATION_TOKEN)

        verified = self.repository.consume_verification_token(token, now)
        if verified is None:
            # Another request consumed the token between lookup and update
            return Failure(ErrorKind.INVALID_TOKEN, INVALID_VERIFICATION_TOKEN)

        logger.info("Email verified for account %s", verified.id)
        self._dispatch(self.composer.welcome(verified), "welcome")
        session = self.sessions.create(verified.id)
        return Success(
            message="Email verified",
            email=verified.email,
            session=session,
            redirect_to="/dashboard?verified=true",
        )

    def resend_verification(self, email: str) -> Result:
        """
        Replace the verification token of an unverified account and resend it.

        Responds identically whether or not such an account exists.
        """
        if not isinstance(email, str) or not is_valid_email(normalize_email(email)):
            return Failure(ErrorKind.VALIDATION, INVALID_EMAIL)

        try:
            account = self.repository.find_by_email(normalize_email(email))
            token = generate_token()
            if account is None or account.email_verified:
                # Same round trips as the write below
                self.repository.find_by_verification_token(token)
            else:
                self.repository.update(
                    account.id,
                    email_verification_token=token,
                    verification_token_expiry=expiry_from(
                        self.clock(), self.verification_ttl_hours
                    ),
                )
                self._dispatch(self.composer.verification(account, token), "verification")
                logger.info("Verification token reissued for account %s", account.id)
        except Exception:
            logger.exception("Verification resend failed")

        return _VERIFICATION_RESENT_RESULT

    def request_password_reset(self, email: str) -> Result:
        """
        Issue a one-hour reset token and email it.

        Always returns the same generic Success for a well-formed email,
        including when no account matches or a downstream step fails.
        A new request overwrites any outstanding token.
        """
        if not isinstance(email, str) or not is_valid_email(normalize_email(email)):
            return Failure(ErrorKind.VALIDATION, INVALID_EMAIL)

        try:
            account = self.repository.find_by_email(normalize_email(email))
            token = generate_token()
            if account is None:
                logger.debug("Password reset requested for unknown email")
                # Same round trips as the write below
                self.repository.find_by_reset_token(token)
            else:
                self.repository.update(
                    account.id,
                    reset_token=token,
                    reset_token_expiry=expiry_from(self.clock(), self.reset_ttl_hours),
                )
                self._dispatch(self.composer.password_reset(account, token), "password reset")
                logger.info("Password reset token issued for account %s", account.id)
        except Exception:
            logger.exception("Password reset request failed")

        return _RESET_REQUESTED_RESULT

    def validate_reset_token(self, token: str) -> Result:
        """Check a reset token before the new-password form is shown."""
        if not isinstance(token, str) or not token:
            return Failure(ErrorKind.INVALID_TOKEN, "Invalid or missing reset token")
        if len(token) > _MAX_TOKEN_LENGTH:
            return Failure(ErrorKind.INVALID_TOKEN, INVALID_RESET_TOKEN)

        account = self.repository.find_by_reset_token(token)
        if account is None or is_expired(account.reset_token_expiry, self.clock()):
            return Failure(ErrorKind.INVALID_TOKEN, INVALID_RESET_TOKEN)
        return Success(message="Reset token is valid")

    def reset_password(self, token: str, new_password: str, confirm_password: str) -> Result:
        """
        Set a new password using a reset token.

        The token is re-validated here and consumed atomically with the
        password write. No session is created; the caller sends the user
        to the login page.
        """
        if not isinstance(token, str) or not token:
            return Failure(ErrorKind.INVALID_TOKEN, "Invalid reset token")
        if len(token) > _MAX_TOKEN_LENGTH:
            return Failure(ErrorKind.INVALID_TOKEN, INVALID_RESET_TOKEN)
        problem = password_problem(new_password, MIN_RESET_PASSWORD_LENGTH)
        if problem is not None:
            return Failure(ErrorKind.VALIDATION, problem)
        if new_password != confirm_password:
            return Failure(ErrorKind.VALIDATION, "Passwords do not match")

        now = self.clock()
        account = self.repository.find_by_reset_token(token)
        if account is None or is_expired(account.reset_token_expiry, now):
            return Failure(ErrorKind.INVALID_TOKEN, INVALID_RESET_TOKEN)

        updated = self.repository.consume_reset_token(token, self._hash_password(new_password), now)
        if updated is None:
            return Failure(ErrorKind.INVALID_TOKEN, INVALID_RESET_TOKEN)

        logger.info("Password reset completed for account %s", updated.id)
        return Success(message="Password reset successful", redirect_to="/login?reset=success")

    def logout(self, session: str | None) -> Result:
        """Destroy the session. Logging out twice is harmless."""
        self.sessions.destroy(session)
        return Success(message="Logged out", redirect_to="/")

    def authorize(self, session: str | None) -> Account:
        """
        Guard for protected operations.

        Raises:
            Unauthenticated: If the session does not resolve to a verified account
        """
        account_id = self.sessions.require_account(session)
        account = self.repository.find_by_id(account_id)
        if account is None:
            raise Unauthenticated("Session account no longer exists")
        if not account.email_verified:
            raise Unauthenticated("Email address not verified")
        return account

    def _dispatch(self, message: EmailMessage, kind: str) -> None:
        try:
            self.dispatcher.dispatch(message)
        except Exception:
            logger.exception("Failed to queue %s email", kind)

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt with the configured cost factor."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.bcrypt_cost)).decode()

    @staticmethod
    def _check_password(password: bytes, stored_hash: bytes) -> bool:
        try:
            return bcrypt.checkpw(password, stored_hash)
        except ValueError:
            logger.error("Stored password hash is malformed")
            return False
