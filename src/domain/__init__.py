"""
Domain layer - Pure business logic with zero framework imports.

This package contains the account lifecycle core: token issuing,
sessions, login notifications and the lifecycle service that ties them
together. It defines its own port interfaces for infrastructure
abstraction, ensuring true hexagonal architecture decoupling.
"""

from .exceptions import AccountError, Unauthenticated
from .lifecycle import AccountLifecycleService
from .messages import MessageComposer
from .models import Account, AccountDraft, AccountState, ClientInfo, EmailMessage
from .notifications import LoginNotifier, should_notify
from .ports import (
    AccountRepository,
    EmailDispatcher,
    EmailSender,
    ErrorKind,
    Failure,
    Result,
    SessionStore,
    Success,
)
from .sessions import SessionManager

__all__ = [
    "Account",
    "AccountDraft",
    "AccountError",
    "AccountLifecycleService",
    "AccountRepository",
    "AccountState",
    "ClientInfo",
    "EmailDispatcher",
    "EmailMessage",
    "EmailSender",
    "ErrorKind",
    "Failure",
    "LoginNotifier",
    "MessageComposer",
    "Result",
    "SessionManager",
    "SessionStore",
    "Success",
    "Unauthenticated",
    "should_notify",
]
