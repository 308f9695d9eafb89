"""Password hashing for stored credentials."""
from __future__ import annotations

from typing import Optional

from passlib.context import CryptContext

from ..conf import ACCEPT_LEGACY_PLAINTEXT


def build_context(accept_plaintext: bool = ACCEPT_LEGACY_PLAINTEXT) -> CryptContext:
    """CryptContext hashing with pbkdf2_sha256.

    With ``accept_plaintext`` the context also verifies records written before
    hashing was introduced; those are flagged for re-hashing.
    """
    schemes = ["pbkdf2_sha256"]
    if accept_plaintext:
        # plaintext identifies anything, so it must come last
        schemes.append("plaintext")
    return CryptContext(schemes=schemes, deprecated="auto")


_pwd = build_context()


def hash_password(password: str, context: Optional[CryptContext] = None) -> str:
    if not password:
        raise ValueError("password_blank")
    return (context or _pwd).hash(password)


def verify_password(
    password: str,
    password_hash: Optional[str],
    context: Optional[CryptContext] = None,
) -> tuple[bool, Optional[str]]:
    """Verify ``password`` against a stored hash.

    Returns:
        ``(matched, new_hash)``; ``new_hash`` is set when the stored value
        uses a deprecated scheme and should be replaced.
    """
    if not password or not password_hash:
        return False, None
    try:
        return (context or _pwd).verify_and_update(password, password_hash)
    except (ValueError, TypeError):
        # unknown or malformed stored hash
        return False, None


def derived_password(username: str) -> str:
    """Initial password handed to a freshly provisioned manager."""
    return f"{username}123"
