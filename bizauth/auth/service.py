"""Authentication service.

Orchestrates both login paths, session persistence and restoration, and the
provisioning of owner and manager accounts:

- administrators sign in through the identity provider; their role is derived
  from the e-mail domain and never stored
- tenant owners and delegated managers sign in with a stored username/password
- the current session lives on the service instance (one per process) and is
  mirrored into a :class:`~bizauth.memory.SessionStore` slot for restarts
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Optional

from navconfig.logging import logging

from ..conf import (
    ADMIN_EMAIL_DOMAIN,
    DEFAULT_MANAGER_PERMISSIONS,
    MIN_PASSWORD_LENGTH,
)
from ..exceptions import (
    AccountInactive,
    AccountNotFound,
    AuthError,
    DuplicateUsername,
    IdentityProviderError,
    InvalidCredentials,
    SessionRestoreFailed,
    StoreError,
    UnauthorizedDomain,
    WeakPassword,
)
from ..interfaces.identity import IdentityProvider, ProviderAuthError, ProviderUser
from .allocator import UsernameAllocator
from .credentials import CredentialCollection, CredentialStore
from .guard import AuthorizationGuard, has_permission
from .models import (
    AccessDecision,
    AccessSpec,
    AccountStatus,
    Identity,
    Role,
    Session,
    SessionState,
)
from .security import derived_password

if TYPE_CHECKING:
    from ..memory.abstract import SessionStore


def email_domain(email: Optional[str]) -> str:
    if not email or "@" not in email:
        return ""
    return email.rsplit("@", 1)[1].strip().lower()


class AuthenticationService:
    """Owns the current session and every operation that creates or ends it.

    Construct once per process and use as an async context manager (or call
    :meth:`start`/:meth:`close`) so the identity-provider listener is attached
    and released.

    Args:
        store: Credential store for owners and managers.
        session_store: Single-slot persistence for owner/manager sessions.
        provider: Identity provider adapter; required for administrator login,
            owner provisioning and provider-session restore.
        guard: Authorization guard used by :meth:`check_access`.
        allocator: Username allocator; built over ``store`` when omitted.
        admin_domain: Organizational e-mail suffix granting the admin role.
    """

    def __init__(
        self,
        store: CredentialStore,
        session_store: SessionStore,
        provider: Optional[IdentityProvider] = None,
        guard: Optional[AuthorizationGuard] = None,
        allocator: Optional[UsernameAllocator] = None,
        admin_domain: str = ADMIN_EMAIL_DOMAIN,
        default_manager_permissions: Iterable[str] = DEFAULT_MANAGER_PERMISSIONS,
        min_password_length: int = MIN_PASSWORD_LENGTH,
    ) -> None:
        self.store = store
        self.session_store = session_store
        self.provider = provider
        self.guard = guard or AuthorizationGuard()
        self.allocator = allocator or UsernameAllocator(store)
        self.admin_domain = admin_domain.strip().lower().lstrip("@")
        self.default_manager_permissions = frozenset(default_manager_permissions)
        self.min_password_length = min_password_length
        self._session: Optional[Session] = None
        self._state = SessionState.UNAUTHENTICATED
        self._unsubscribe = None
        self.logger = logging.getLogger("bizauth.auth.AuthenticationService")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> "AuthenticationService":
        """Attach the identity-provider session listener."""
        if self.provider is not None and self._unsubscribe is None:
            self._unsubscribe = self.provider.on_session_change(
                self._on_provider_change
            )
        return self

    async def close(self) -> None:
        """Detach the provider listener and release the session store.

        The persisted session is kept, so the next process can restore it.
        """
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        try:
            await self.session_store.close()
        except Exception as exc:  # pylint: disable=W0718
            self.logger.warning(f"Error closing session store: {exc}")
        self._drop_session()

    async def __aenter__(self) -> "AuthenticationService":
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _on_provider_change(self, user: Optional[ProviderUser]) -> None:
        session = self._session
        if user is not None or session is None or not session.provider_backed:
            return
        self.logger.info(
            f"Identity provider session ended, dropping {session.role.value} session"
        )
        if session.role.is_stored:
            await self._clear_slot()
        self._drop_session()

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    def current_session(self) -> Optional[Session]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._state is SessionState.AUTHENTICATED

    def _set_session(self, session: Session) -> Session:
        self._session = session
        self._state = SessionState.AUTHENTICATED
        return session

    def _drop_session(self) -> None:
        self._session = None
        self._state = SessionState.UNAUTHENTICATED

    def _abort_login(self) -> None:
        """Return to the state held before a failed login attempt."""
        self._state = (
            SessionState.AUTHENTICATED if self._session is not None
            else SessionState.UNAUTHENTICATED
        )

    async def _persist(self, session: Session) -> None:
        try:
            await self.session_store.save(session)
        except Exception as exc:
            self.logger.error(f"Unable to persist session {session.uid}: {exc}")
            raise StoreError(f"Unable to persist session: {exc}") from exc

    async def _clear_slot(self) -> None:
        try:
            await self.session_store.clear()
        except Exception as exc:  # pylint: disable=W0718
            self.logger.warning(f"Unable to clear persisted session: {exc}")

    def is_admin_email(self, email: Optional[str]) -> bool:
        """True when the e-mail domain is the organizational suffix (or a subdomain)."""
        domain = email_domain(email)
        if not domain or not self.admin_domain:
            return False
        return domain == self.admin_domain or domain.endswith(f".{self.admin_domain}")

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def _require_provider(self) -> IdentityProvider:
        if self.provider is None:
            raise IdentityProviderError("No identity provider configured")
        return self.provider

    async def login_as_administrator(self, email: str, password: str) -> Session:
        """Sign in an administrator through the identity provider.

        Raises:
            UnauthorizedDomain: the e-mail is not organizational; checked before
                contacting the provider.
            InvalidCredentials: the provider rejected the credentials.
            IdentityProviderError: the provider failed.
        """
        email = (email or "").strip()
        if not self.is_admin_email(email):
            self.logger.warning(
                f"Administrator login refused for domain '{email_domain(email)}'"
            )
            raise UnauthorizedDomain()
        provider = self._require_provider()
        self._state = SessionState.AUTHENTICATING
        try:
            user = await provider.sign_in(email, password)
        except ProviderAuthError as exc:
            self._abort_login()
            self.logger.warning("Administrator login rejected by identity provider")
            raise InvalidCredentials() from exc
        except IdentityProviderError:
            self._abort_login()
            raise
        except Exception as exc:
            self._abort_login()
            self.logger.error(f"Identity provider sign-in failed: {exc}")
            raise IdentityProviderError(f"Identity provider sign-in failed: {exc}") from exc
        # administrator sessions are never persisted; drop any stale slot
        await self._clear_slot()
        session = Session.administrator(
            user.uid, user.email or email, user.display_name
        )
        self.logger.info(f"Administrator {session.uid} signed in")
        return self._set_session(session)

    async def login_with_credentials(self, username: str, password: str) -> Session:
        """Sign in a tenant owner or delegated manager.

        Owners are probed first, then managers.

        Raises:
            InvalidCredentials: no record matches (does not reveal which part failed).
            AccountInactive: the matching record is deactivated.
            StoreError: the credential or session store failed.
        """
        username = (username or "").strip()
        if not username or not password:
            raise InvalidCredentials()
        self._state = SessionState.AUTHENTICATING
        try:
            identity: Optional[Identity] = None
            for collection in self.store.collections:
                identity = await self.store.find_by_username_password(
                    collection, username, password
                )
                if identity is not None:
                    break
            if identity is None:
                self.logger.warning("Login failed: invalid credentials")
                raise InvalidCredentials()
            if not identity.is_active:
                self.logger.warning(
                    f"Login refused for inactive {identity.role.value} {identity.id}"
                )
                raise AccountInactive()
            session = Session.from_identity(identity)
            await self._persist(session)
        except AuthError:
            self._abort_login()
            raise
        self.logger.info(f"{session.role.value.capitalize()} {session.uid} signed in")
        return self._set_session(session)

    # ------------------------------------------------------------------
    # Restore / logout
    # ------------------------------------------------------------------

    async def _revalidate(self, stale: Session) -> Session:
        """Rebuild ``stale`` from the current record, or raise SessionRestoreFailed."""
        try:
            collection = self.store.collection_for(stale.role)
            identity = await self.store.find_by_id(collection, stale.uid)
        except (StoreError, ValueError) as exc:
            raise SessionRestoreFailed(str(exc)) from exc
        if identity is None:
            raise SessionRestoreFailed(f"{stale.role.value} {stale.uid} no longer exists")
        if not identity.is_active:
            raise SessionRestoreFailed(f"{stale.role.value} {stale.uid} is inactive")
        fresh = Session.from_identity(identity, provider_backed=stale.provider_backed)
        try:
            await self._persist(fresh)
        except StoreError as exc:
            raise SessionRestoreFailed(str(exc)) from exc
        return fresh

    async def restore_session(self) -> Optional[Session]:
        """Restore the session persisted by a previous run.

        The stored record is only a pointer: the identity is re-read and must
        still be active, and the session is rebuilt from the fresh record.
        With nothing persisted, a live identity-provider session is resolved
        instead (administrator by domain, otherwise an owner record).

        Returns:
            The restored session, or None when a fresh login is required.
        """
        try:
            stale = await self.session_store.load()
        except Exception as exc:  # pylint: disable=W0718
            self.logger.warning(f"Discarding unreadable persisted session: {exc}")
            await self._clear_slot()
            self._drop_session()
            return None

        if stale is not None:
            try:
                fresh = await self._revalidate(stale)
            except SessionRestoreFailed as exc:
                self.logger.warning(f"Session restore failed: {exc}")
                await self._clear_slot()
                self._drop_session()
                return None
            self.logger.debug(f"Restored {fresh.role.value} session {fresh.uid}")
            return self._set_session(fresh)

        session = await self._restore_from_provider()
        if session is None:
            self._drop_session()
            return None
        return self._set_session(session)

    async def _restore_from_provider(self) -> Optional[Session]:
        if self.provider is None:
            return None
        try:
            user = await self.provider.current_user()
        except Exception as exc:  # pylint: disable=W0718
            self.logger.warning(f"Identity provider session check failed: {exc}")
            return None
        if user is None:
            return None
        if self.is_admin_email(user.email):
            return Session.administrator(user.uid, user.email, user.display_name)
        try:
            owner = await self.store.find_by_id(self.store.owners, user.uid)
        except StoreError as exc:
            self.logger.warning(f"Owner lookup for provider session failed: {exc}")
            return None
        if owner is None or not owner.is_active:
            self.logger.warning(
                f"Provider session {user.uid} has no active owner record"
            )
            return None
        session = Session.from_identity(owner, provider_backed=True)
        try:
            await self._persist(session)
        except StoreError:
            return None
        return session

    async def logout(self) -> None:
        """End the current session. Safe to call repeatedly; never raises."""
        session = self._session
        await self._clear_slot()
        if self.provider is not None:
            try:
                if await self.provider.current_user() is not None:
                    await self.provider.sign_out()
            except Exception as exc:  # pylint: disable=W0718
                self.logger.warning(f"Identity provider sign-out failed: {exc}")
        self._drop_session()
        if session is not None:
            self.logger.info(f"{session.role.value.capitalize()} {session.uid} signed out")

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    async def _create_account(
        self,
        collection: CredentialCollection,
        fields: dict[str, Any],
        uid: Optional[str] = None,
    ) -> Identity:
        """Create a record after checking the username in every collection.

        The collection being written re-checks inside :meth:`CredentialStore.create`.
        """
        username = fields["username"]
        for other in self.store.collections:
            if other != collection and await self.store.exists_by_username(other, username):
                raise DuplicateUsername(username, other.name)
        return await self.store.create(collection, fields, uid=uid)

    async def provision_delegated_account(
        self,
        base_name: str,
        owner_id: str,
        permissions: Optional[Iterable[str]] = None,
        business_id: Optional[str] = None,
        employee_id: Optional[str] = None,
        email: Optional[str] = None,
        **profile: Any,
    ) -> tuple[Identity, str]:
        """Create a manager account for ``owner_id``.

        Returns:
            ``(identity, password)``. The plaintext password is returned only
            here and cannot be read back later.

        Raises:
            AccountNotFound: ``owner_id`` is not an existing owner.
            AllocationExhausted: no free username for ``base_name``.
            DuplicateUsername: the allocated name was taken before creation.
            StoreError: the credential store failed.
        """
        if not owner_id or await self.store.find_by_id(self.store.owners, owner_id) is None:
            raise AccountNotFound(f"Owner {owner_id!r} does not exist")
        username = await self.allocator.allocate(base_name)
        password = derived_password(username)
        perms = (
            self.default_manager_permissions if permissions is None
            else frozenset(permissions)
        )
        fields = dict(profile)
        fields.update({
            "name": base_name,
            "username": username,
            "password": password,
            "email": email,
            "ownerId": owner_id,
            "businessId": business_id,
            "employeeId": employee_id,
            "permissions": perms,
            "status": AccountStatus.ACTIVE.value,
        })
        identity = await self._create_account(self.store.managers, fields)
        return identity, password

    async def provision_tenant_owner(
        self,
        email: str,
        password: str,
        name: str,
        username: Optional[str] = None,
        **profile: Any,
    ) -> Identity:
        """Register a tenant owner with the identity provider and the owner collection.

        The owner record is keyed by the provider uid, so the owner can later sign
        in through either path.

        Raises:
            WeakPassword: shorter than the configured minimum.
            DuplicateUsername: ``username`` is already taken.
            IdentityProviderError: provider sign-up failed.
        """
        if not password or len(password) < self.min_password_length:
            raise WeakPassword(
                f"Password must be at least {self.min_password_length} characters"
            )
        username = (username or "").strip()
        if username:
            if await self.allocator.is_taken(username):
                raise DuplicateUsername(username)
        else:
            username = await self.allocator.allocate(name)
        provider = self._require_provider()
        try:
            user = await provider.sign_up(email, password)
        except IdentityProviderError:
            raise
        except Exception as exc:
            raise IdentityProviderError(f"Identity provider sign-up failed: {exc}") from exc
        if name:
            try:
                await provider.update_display_name(name)
            except Exception as exc:  # pylint: disable=W0718
                self.logger.warning(f"Could not set display name for {user.uid}: {exc}")
        fields = dict(profile)
        fields.update({
            "name": name,
            "email": email,
            "username": username,
            "password": password,
            "status": AccountStatus.ACTIVE.value,
        })
        return await self._create_account(self.store.owners, fields, uid=user.uid)

    async def _require_identity(self, role: Role, uid: str) -> CredentialCollection:
        collection = self.store.collection_for(role)
        if await self.store.find_by_id(collection, uid) is None:
            raise AccountNotFound(f"{role.value.capitalize()} {uid!r} does not exist")
        return collection

    async def set_account_status(
        self, role: Role, uid: str, status: AccountStatus
    ) -> None:
        """Activate or deactivate an owner or manager.

        Live sessions of a deactivated account end on their next restore.
        """
        status = AccountStatus(status)
        collection = await self._require_identity(Role(role), uid)
        await self.store.update(collection, uid, {"status": status.value})
        self.logger.info(f"{collection.role.value.capitalize()} {uid} set {status.value}")

    async def update_manager_permissions(
        self, manager_id: str, permissions: Iterable[str]
    ) -> None:
        collection = await self._require_identity(Role.MANAGER, manager_id)
        await self.store.update(
            collection, manager_id, {"permissions": frozenset(permissions)}
        )

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def check_access(self, spec: AccessSpec) -> AccessDecision:
        return self.guard.check(self._session, spec)

    def has_permission(self, permission: str) -> bool:
        return has_permission(self._session, permission)
