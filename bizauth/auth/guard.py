"""Authorization guard: role and permission gating for protected operations.

The guard is a pure function of the current session and an access spec. It
never raises and never touches a store; lack of access is an ordinary
:class:`AccessDecision` carrying the redirect target.
"""
from __future__ import annotations

from typing import Optional

from navconfig.logging import logging

from ..conf import (
    ADMIN_DASHBOARD_PATH,
    LOGIN_PATH,
    MANAGER_DASHBOARD_PATH,
    OWNER_HOME_PATH,
    UNAUTHORIZED_PATH,
)
from .models import AccessDecision, AccessSpec, Role, Session


PUBLIC_PATHS = frozenset({LOGIN_PATH, "/signup", UNAUTHORIZED_PATH})

# path prefixes reserved to one role
_ROLE_PREFIXES: tuple[tuple[tuple[str, ...], Role], ...] = (
    (("/admin",), Role.ADMIN),
    (("/manager",), Role.MANAGER),
    (("/home", "/business", "/owner"), Role.OWNER),
)

def _under(path: str, prefix: str) -> bool:
    """True when ``path`` is ``prefix`` or one of its sub-paths."""
    return path == prefix or path.startswith(f"{prefix}/")


# owners implicitly hold every permission
ALL_PERMISSIONS = "all"


class AuthorizationGuard:
    """Decides whether a session may reach a protected operation or route.

    Example:
        >>> guard = AuthorizationGuard()
        >>> spec = AccessSpec(manager_only=True, required_permissions={"edit_inventory"})
        >>> guard.check(manager_session, spec)
        AccessDecision(allowed=False, redirect='/manager/dashboard', reason='permissions')
    """

    def __init__(
        self,
        login_path: str = LOGIN_PATH,
        unauthorized_path: str = UNAUTHORIZED_PATH,
        landing_pages: Optional[dict[Role, str]] = None,
    ) -> None:
        self.login_path = login_path
        self.unauthorized_path = unauthorized_path
        self.landing_pages: dict[Role, str] = {
            Role.ADMIN: ADMIN_DASHBOARD_PATH,
            Role.MANAGER: MANAGER_DASHBOARD_PATH,
            Role.OWNER: OWNER_HOME_PATH,
        }
        if landing_pages:
            self.landing_pages.update(landing_pages)
        self.logger = logging.getLogger("bizauth.auth.AuthorizationGuard")

    def landing_page(self, role: Optional[Role]) -> str:
        """Default page for ``role``; the unauthorized page for anything else."""
        return self.landing_pages.get(role, self.unauthorized_path)

    def _denied_redirect(self, role: Role, spec: AccessSpec) -> str:
        return spec.redirect or self.landing_page(role)

    def check(self, session: Optional[Session], spec: AccessSpec) -> AccessDecision:
        """Evaluate ``spec`` against ``session``.

        1. no session, or no resolvable role: deny, redirect to login
        2. no role restriction: allow
        3. role outside the allow-list: deny, redirect to the override or landing page
        4. managers must hold every required permission
        """
        if session is None:
            return AccessDecision.deny(self.login_path, "unauthenticated")
        role = getattr(session, "role", None)
        if not isinstance(role, Role):
            return AccessDecision.deny(self.login_path, "unresolved_role")
        if not spec.restricts_roles:
            return AccessDecision.allow()
        if not spec.permits_role(role):
            self.logger.debug(f"Role {role.value} denied for {spec}")
            return AccessDecision.deny(self._denied_redirect(role, spec), "role")
        if role is Role.MANAGER and spec.required_permissions:
            missing = spec.required_permissions - session.permissions
            if missing:
                self.logger.debug(
                    f"Manager {session.uid} lacks permissions {sorted(missing)}"
                )
                return AccessDecision.deny(
                    self._denied_redirect(role, spec), "permissions"
                )
        return AccessDecision.allow()

    # ------------------------------------------------------------------
    # Navigation helpers
    # ------------------------------------------------------------------

    def has_path_access(self, role: Optional[Role], path: str) -> bool:
        """Prefix rules: ``/admin`` admins, ``/manager`` managers,
        ``/home``, ``/business`` and ``/owner`` owners; public and
        unlisted paths are open."""
        if path in PUBLIC_PATHS:
            return True
        for prefixes, owner_role in _ROLE_PREFIXES:
            if any(_under(path, prefix) for prefix in prefixes):
                return role is owner_role
        return True

    def login_redirect(self, role: Optional[Role], intended_path: str = "") -> str:
        """Where to send a user right after login."""
        if intended_path and self.has_path_access(role, intended_path):
            return intended_path
        return self.landing_page(role)


def has_permission(session: Optional[Session], permission: str) -> bool:
    """Owners hold every permission; managers hold their own set; nobody else any."""
    if session is None:
        return False
    if session.role is Role.OWNER:
        return True
    if session.role is Role.MANAGER:
        return permission in session.permissions
    return False


def effective_permissions(session: Optional[Session]) -> frozenset[str]:
    if session is None:
        return frozenset()
    if session.role is Role.OWNER:
        return frozenset({ALL_PERMISSIONS})
    if session.role is Role.MANAGER:
        return session.permissions
    return frozenset()
