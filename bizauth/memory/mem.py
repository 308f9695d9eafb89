from typing import Any, Dict, Optional

from ..auth.models import Session
from .abstract import SessionStore


class InMemorySessionStore(SessionStore):
    """Process-local session slot (lost when the process exits)."""

    def __init__(self):
        self._record: Optional[Dict[str, Any]] = None

    async def save(self, session: Session) -> None:
        self._record = session.to_record()

    async def load(self) -> Optional[Session]:
        if self._record is None:
            return None
        return Session.from_record(self._record)

    async def clear(self) -> None:
        self._record = None
