"""Data models for authentication and authorization.

- Role: closed set of role variants (administrator, tenant owner, delegated manager)
- Identity: a stored credential record (owner or manager)
- Session: immutable projection of the currently authenticated identity
- AccessSpec / AccessDecision: input and output of the authorization guard
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional


class Role(str, Enum):
    """Role variants. Administrators are derived, never stored."""

    ADMIN = "admin"
    OWNER = "owner"
    MANAGER = "manager"

    @property
    def is_stored(self) -> bool:
        """True when identities of this role live in a credential collection."""
        return self is not Role.ADMIN


class AccountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class SessionState(str, Enum):
    """In-memory session lifecycle."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


# profile fields that must never leave the credential store
_PRIVATE_FIELDS = frozenset({"password", "_id"})


def _as_permissions(value: Optional[Iterable[str]]) -> frozenset[str]:
    if not value:
        return frozenset()
    if isinstance(value, str):
        return frozenset({value})
    return frozenset(str(p) for p in value)


@dataclass
class Identity:
    """A stored account belonging to a tenant owner or a delegated manager.

    Attributes:
        id: Unique identifier (document ``_id``).
        role: ``Role.OWNER`` or ``Role.MANAGER``, given by the collection it lives in.
        username: Login handle, unique across both credential collections.
        password_hash: Stored credential; excluded from repr and from sessions.
        status: ``active`` or ``inactive``.
        owner_id: Owning tenant, managers only.
        business_id: Business the manager is scoped to.
        permissions: Capability strings, managers only.
        extra: Any other document fields (phone, businessName, ...).
    """

    id: str
    role: Role
    username: str
    name: str = ""
    email: Optional[str] = None
    password_hash: Optional[str] = field(default=None, repr=False)
    status: AccountStatus = AccountStatus.ACTIVE
    owner_id: Optional[str] = None
    business_id: Optional[str] = None
    employee_id: Optional[str] = None
    permissions: frozenset[str] = field(default_factory=frozenset)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status is AccountStatus.ACTIVE

    @classmethod
    def from_document(cls, role: Role, document: dict[str, Any]) -> "Identity":
        """Build an Identity from a raw credential document."""
        doc = dict(document)
        uid = doc.pop("_id", None) or doc.pop("id", None)
        doc.pop("id", None)
        try:
            status = AccountStatus(str(doc.pop("status", "active")).lower())
        except ValueError:
            # unknown lifecycle values never grant access
            status = AccountStatus.INACTIVE
        return cls(
            id=str(uid),
            role=role,
            username=doc.pop("username", ""),
            name=doc.pop("name", "") or "",
            email=doc.pop("email", None),
            password_hash=doc.pop("password", None),
            status=status,
            owner_id=doc.pop("ownerId", None),
            business_id=doc.pop("businessId", None),
            employee_id=doc.pop("employeeId", None),
            permissions=_as_permissions(doc.pop("permissions", None)),
            created_at=doc.pop("createdAt", None),
            updated_at=doc.pop("updatedAt", None),
            extra=doc,
        )

    def to_document(self) -> dict[str, Any]:
        """Serialize into the document shape stored in the collection."""
        doc: dict[str, Any] = dict(self.extra)
        doc.update({
            "_id": self.id,
            "username": self.username,
            "name": self.name,
            "email": self.email,
            "password": self.password_hash,
            "status": self.status.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        })
        if self.role is Role.MANAGER:
            doc.update({
                "ownerId": self.owner_id,
                "businessId": self.business_id,
                "employeeId": self.employee_id,
                "permissions": sorted(self.permissions),
            })
        return doc

    def profile(self) -> dict[str, Any]:
        """Public snapshot of this identity, safe to cache in a session."""
        doc = self.to_document()
        profile = {k: v for k, v in doc.items() if k not in _PRIVATE_FIELDS}
        profile["id"] = self.id
        return profile


@dataclass(frozen=True)
class Session:
    """Immutable projection of exactly one authenticated identity.

    Attributes:
        uid: Identifier of the authenticated account.
        role: Resolved role.
        permissions: Capability strings; only populated for managers.
        profile: Snapshot of the identity's public fields at login/restore time.
        provider_backed: True when an identity-provider session backs this one.
    """

    uid: str
    role: Role
    permissions: frozenset[str] = field(default_factory=frozenset)
    profile: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    provider_backed: bool = False

    def __post_init__(self) -> None:
        if self.role is not None and not isinstance(self.role, Role):
            object.__setattr__(self, 'role', Role(self.role))
        if not isinstance(self.permissions, frozenset):
            object.__setattr__(self, 'permissions', _as_permissions(self.permissions))

    @property
    def display_name(self) -> str:
        return self.profile.get("name") or self.profile.get("displayName") or ""

    @property
    def email(self) -> Optional[str]:
        return self.profile.get("email")

    @property
    def username(self) -> Optional[str]:
        return self.profile.get("username")

    @property
    def owner_id(self) -> Optional[str]:
        """Tenant that owns the data this session works on."""
        if self.role is Role.OWNER:
            return self.uid
        return self.profile.get("ownerId")

    @property
    def business_id(self) -> Optional[str]:
        return self.profile.get("businessId")

    @classmethod
    def from_identity(
        cls, identity: Identity, provider_backed: bool = False
    ) -> "Session":
        return cls(
            uid=identity.id,
            role=identity.role,
            permissions=(
                identity.permissions if identity.role is Role.MANAGER else frozenset()
            ),
            profile=identity.profile(),
            provider_backed=provider_backed,
        )

    @classmethod
    def administrator(
        cls, uid: str, email: str, display_name: Optional[str] = None
    ) -> "Session":
        return cls(
            uid=uid,
            role=Role.ADMIN,
            profile={"id": uid, "email": email, "name": display_name or ""},
            provider_backed=True,
        )

    def to_record(self) -> dict[str, Any]:
        """Persisted slot shape: ``{uid, role, data}``."""
        data = dict(self.profile)
        if self.role is Role.MANAGER:
            data["permissions"] = sorted(self.permissions)
        data["providerBacked"] = self.provider_backed
        return {
            "uid": self.uid,
            "role": self.role.value,
            "data": data,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Session":
        """Rebuild a session from its persisted record.

        Raises:
            ValueError: if the record is malformed or names a non-stored role.
        """
        uid = record.get("uid")
        if not uid:
            raise ValueError("Session record without uid")
        role = Role(record.get("role"))
        if not role.is_stored:
            raise ValueError(f"Role {role.value!r} sessions are not persisted")
        data = dict(record.get("data") or {})
        provider_backed = bool(data.pop("providerBacked", False))
        return cls(
            uid=str(uid),
            role=role,
            permissions=(
                _as_permissions(data.get("permissions"))
                if role is Role.MANAGER else frozenset()
            ),
            profile=data,
            provider_backed=provider_backed,
        )


@dataclass(frozen=True)
class AccessSpec:
    """What a protected operation or route requires.

    Attributes:
        allowed_roles: Explicit role allow-list.
        admin_only / manager_only / owner_only: Convenience role flags.
        required_permissions: Capabilities a manager must ALL hold.
        redirect: Override redirect target on denial.
    """

    allowed_roles: frozenset[Role] = field(default_factory=frozenset)
    admin_only: bool = False
    manager_only: bool = False
    owner_only: bool = False
    required_permissions: frozenset[str] = field(default_factory=frozenset)
    redirect: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.allowed_roles, frozenset):
            object.__setattr__(
                self, 'allowed_roles', frozenset(Role(r) for r in self.allowed_roles)
            )
        if not isinstance(self.required_permissions, frozenset):
            object.__setattr__(
                self,
                'required_permissions',
                _as_permissions(self.required_permissions)
            )

    @property
    def restricts_roles(self) -> bool:
        return bool(
            self.allowed_roles or self.admin_only or self.manager_only or self.owner_only
        )

    def permits_role(self, role: Role) -> bool:
        if self.admin_only and role is Role.ADMIN:
            return True
        if self.manager_only and role is Role.MANAGER:
            return True
        if self.owner_only and role is Role.OWNER:
            return True
        return role in self.allowed_roles


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an access check: allowed, or denied with a redirect target."""

    allowed: bool
    redirect: Optional[str] = None
    reason: Optional[str] = field(default=None, compare=False)

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, redirect: str, reason: Optional[str] = None) -> "AccessDecision":
        return cls(allowed=False, redirect=redirect, reason=reason)
