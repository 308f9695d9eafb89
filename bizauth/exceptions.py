"""BizAuth exceptions.

Every error raised to callers of the authentication layer derives from
:class:`AuthError`, so UI code can catch a single base class and branch on
the concrete type.
"""
from typing import Optional


class AuthError(Exception):
    """Base error for the authentication/authorization layer."""

    def __init__(self, message: str = None, *args, **kwargs):
        self.message = message or self.__class__.__doc__
        super().__init__(self.message, *args)
        self.payload = kwargs

    def __str__(self) -> str:
        return self.message


class InvalidCredentials(AuthError):
    """Invalid username or password."""


class AccountInactive(AuthError):
    """This account has been deactivated."""


class AccountNotFound(AuthError):
    """Account does not exist."""


class UnauthorizedDomain(AuthError):
    """E-mail address is not allowed to sign in as administrator."""


class SessionRestoreFailed(AuthError):
    """Persisted session could not be restored."""


class AllocationExhausted(AuthError):
    """No free username could be allocated."""

    def __init__(self, base: str, attempts: int):
        super().__init__(
            f"No free username for base {base!r} after {attempts} attempts",
            base=base,
            attempts=attempts,
        )
        self.base = base
        self.attempts = attempts


class DuplicateUsername(AuthError):
    """Username is already taken."""

    def __init__(self, username: str, collection: Optional[str] = None):
        super().__init__(
            f"Username {username!r} is already taken",
            username=username,
            collection=collection,
        )
        self.username = username
        self.collection = collection


class WeakPassword(AuthError):
    """Password does not satisfy the minimum length."""


class StoreError(AuthError):
    """Credential store operation failed."""


class IdentityProviderError(AuthError):
    """Identity provider is unavailable or rejected the request."""
