"""Unique, human-readable usernames for new accounts."""
from __future__ import annotations

import asyncio
import re
import unicodedata
from typing import Optional

from navconfig.logging import logging

from ..conf import (
    USERNAME_BASE_LENGTH,
    USERNAME_FALLBACK_BASE,
    USERNAME_MAX_ATTEMPTS,
)
from ..exceptions import AllocationExhausted
from .credentials import CredentialStore


_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def username_base(
    name: Optional[str],
    length: int = USERNAME_BASE_LENGTH,
    fallback: str = USERNAME_FALLBACK_BASE,
) -> str:
    """Lowercase ASCII letters and digits of ``name``, truncated to ``length``.

    Accents are folded first ("José" -> "jose"). Names with no usable
    character at all ("日本語", "---") get ``fallback``.
    """
    s = unicodedata.normalize("NFKD", name or "")
    s = s.encode("ascii", "ignore").decode("ascii").lower()
    base = _NON_ALNUM.sub("", s)[:length]
    return base or fallback


class UsernameAllocator:
    """Find a handle free in both credential collections.

    Candidates are ``base``, ``base1``, ``base2``... and each candidate is probed
    against owners and managers concurrently. The returned name is only a
    candidate: nothing is reserved, so account creation must re-check it.
    """

    def __init__(
        self,
        store: CredentialStore,
        max_attempts: int = USERNAME_MAX_ATTEMPTS,
        base_length: int = USERNAME_BASE_LENGTH,
        fallback_base: str = USERNAME_FALLBACK_BASE,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.store = store
        self.max_attempts = max_attempts
        self.base_length = base_length
        self.fallback_base = fallback_base
        self.logger = logging.getLogger("bizauth.auth.UsernameAllocator")

    async def is_taken(self, username: str) -> bool:
        """True when ``username`` exists in either collection."""
        results = await asyncio.gather(*[
            self.store.exists_by_username(collection, username)
            for collection in self.store.collections
        ])
        return any(results)

    async def allocate(self, name: str) -> str:
        """Return the first free candidate for ``name``.

        Raises:
            AllocationExhausted: after ``max_attempts`` taken candidates.
            StoreError: a probe failed.
        """
        base = username_base(name, self.base_length, self.fallback_base)
        for attempt in range(self.max_attempts):
            candidate = base if attempt == 0 else f"{base}{attempt}"
            if not await self.is_taken(candidate):
                if attempt:
                    self.logger.debug(
                        f"Username {base!r} taken, allocated {candidate!r}"
                    )
                return candidate
        self.logger.error(
            f"Username allocation exhausted for base {base!r} "
            f"after {self.max_attempts} attempts"
        )
        raise AllocationExhausted(base, self.max_attempts)
