"""Authentication and authorization for BizAuth.

Public API:
    Data Models:
    - Role, AccountStatus, SessionState
    - Identity: stored owner/manager record
    - Session: immutable projection of the authenticated identity
    - AccessSpec / AccessDecision: guard input and output

    Services:
    - CredentialStore: owner and manager credential collections
    - UsernameAllocator: collision-free handles for new accounts
    - AuthenticationService: login, restore, logout and provisioning
    - AuthorizationGuard: role and permission gating

Example:
    >>> from bizauth.auth import AccessSpec, AuthenticationService
    >>> async with AuthenticationService(store, session_store, provider) as auth:
    ...     await auth.restore_session() or await auth.login_with_credentials("johndoe", "s3cret")
    ...     auth.check_access(AccessSpec(owner_only=True))
    AccessDecision(allowed=True, redirect=None, reason=None)
"""

from .allocator import UsernameAllocator, username_base
from .credentials import CredentialCollection, CredentialStore
from .guard import AuthorizationGuard, effective_permissions, has_permission
from .models import (
    AccessDecision,
    AccessSpec,
    AccountStatus,
    Identity,
    Role,
    Session,
    SessionState,
)
from .service import AuthenticationService

__all__ = [
    # Data models
    "Role",
    "AccountStatus",
    "SessionState",
    "Identity",
    "Session",
    "AccessSpec",
    "AccessDecision",
    # Services
    "CredentialCollection",
    "CredentialStore",
    "UsernameAllocator",
    "username_base",
    "AuthenticationService",
    "AuthorizationGuard",
    "has_permission",
    "effective_permissions",
]
