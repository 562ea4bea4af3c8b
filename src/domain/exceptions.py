"""
Domain exceptions - Semantic error types for the account lifecycle.

Lifecycle operations report expected failures as Failure results
(see ports.ErrorKind). Exceptions are reserved for the guard used by
protected operations, which short-circuits instead of returning.
"""


class AccountError(Exception):
    """Base class for account domain errors."""

    pass


class Unauthenticated(AccountError):
    """No valid session, or the session's account may not access protected resources."""

    pass
