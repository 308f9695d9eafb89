from abc import ABC, abstractmethod
from typing import Optional

from ..auth.models import Session


class SessionStore(ABC):
    """Single-slot persistence for the current session.

    Holds at most one serialized session; ``save`` overwrites in place.
    Administrator sessions are never handed to a store.
    """

    @abstractmethod
    async def save(self, session: Session) -> None:
        """Persist ``session``, replacing whatever the slot held."""
        pass

    @abstractmethod
    async def load(self) -> Optional[Session]:
        """Return the persisted session, or None when the slot is empty."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Empty the slot. Clearing an empty slot is a no-op."""
        pass

    async def close(self) -> None:
        """Release any connection held by the store."""
        return None
