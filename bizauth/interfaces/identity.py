"""Identity Provider Interface.

The external identity provider verifies e-mail/password pairs and keeps its own
session (administrators and provider-registered owners sign in through it).
BizAuth only consumes it through this interface; concrete adapters wrap the
vendor SDK and translate its errors into :class:`ProviderAuthError` (bad
credentials) or :class:`IdentityProviderError` (anything else).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from ..exceptions import IdentityProviderError


class ProviderAuthError(IdentityProviderError):
    """Identity provider rejected the e-mail/password pair."""


@dataclass(frozen=True)
class ProviderUser:
    """User as reported by the identity provider."""
    uid: str
    email: str
    display_name: Optional[str] = None


SessionListener = Callable[[Optional[ProviderUser]], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]


class IdentityProvider(ABC):
    """Pluggable adapter over an external identity provider."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> ProviderUser:
        """Verify credentials and open a provider session."""

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> ProviderUser:
        """Register a new provider account (and sign it in)."""

    @abstractmethod
    async def sign_out(self) -> None:
        """Close the provider session, if any."""

    @abstractmethod
    async def current_user(self) -> Optional[ProviderUser]:
        """Return the user of the live provider session, or None."""

    @abstractmethod
    async def update_display_name(self, name: str) -> None:
        """Set the display name of the signed-in provider user."""

    @abstractmethod
    def on_session_change(self, callback: SessionListener) -> Unsubscribe:
        """Register a listener called with the new user (or None on sign-out).

        Returns:
            A callable that removes the listener.
        """
