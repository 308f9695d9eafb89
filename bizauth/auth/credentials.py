"""Credential store: identity records for tenant owners and delegated managers.

A thin repository over the document database. Two logical collections hold
stored credentials; the one to use is always derived from the :class:`Role`
through :meth:`CredentialStore.collection_for`.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Optional, TypeVar

from navconfig.logging import logging
from passlib.context import CryptContext

from ..conf import MANAGERS_COLLECTION, OWNERS_COLLECTION
from ..exceptions import AuthError, DuplicateUsername, StoreError
from .models import AccountStatus, Identity, Role
from .security import hash_password, verify_password


T = TypeVar("T")


@dataclass(frozen=True)
class CredentialCollection:
    """A credential collection bound to the role its records carry."""
    role: Role
    name: str


class CredentialStore:
    """Reads and writes identity records.

    No retries happen here: every database failure is raised as
    :class:`StoreError` with the driver exception as its cause.

    Args:
        document_db: A connected :class:`~bizauth.interfaces.documentdb.DocumentDb`
            (or any object with the same ``read_one``/``exists``/``write``/``update``
            coroutines).
        owners_collection / managers_collection: Collection names.
        password_context: passlib context used for hashing and verification.
    """

    def __init__(
        self,
        document_db: Any = None,
        owners_collection: str = OWNERS_COLLECTION,
        managers_collection: str = MANAGERS_COLLECTION,
        password_context: Optional[CryptContext] = None,
    ) -> None:
        if document_db is None:
            from ..interfaces.documentdb import DocumentDb  # pylint: disable=C0415
            document_db = DocumentDb()
        self._db = document_db
        self._pwd = password_context
        self.owners = CredentialCollection(Role.OWNER, owners_collection)
        self.managers = CredentialCollection(Role.MANAGER, managers_collection)
        self.logger = logging.getLogger("bizauth.auth.CredentialStore")

    @property
    def collections(self) -> tuple[CredentialCollection, CredentialCollection]:
        """Both collections, in login probe order."""
        return (self.owners, self.managers)

    def collection_for(self, role: Role) -> CredentialCollection:
        if role is Role.OWNER:
            return self.owners
        if role is Role.MANAGER:
            return self.managers
        raise ValueError(f"Role {role.value!r} has no credential collection")

    async def _guard(
        self, action: str, collection: CredentialCollection, op: Awaitable[T]
    ) -> T:
        try:
            return await op
        except AuthError:
            raise
        except Exception as exc:
            self.logger.error(f"{action} on '{collection.name}' failed: {exc}")
            raise StoreError(
                f"{action} on '{collection.name}' failed: {exc}"
            ) from exc

    async def ensure_indexes(self) -> None:
        """Unique username index on both collections."""
        for collection in self.collections:
            await self._guard(
                "create_indexes",
                collection,
                self._db.create_indexes(
                    collection.name,
                    [{"keys": [("username", 1)], "unique": True}, "status"]
                )
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_by_username(
        self, collection: CredentialCollection, username: str
    ) -> Optional[Identity]:
        if not username:
            return None
        doc = await self._guard(
            "find_by_username",
            collection,
            self._db.read_one(collection.name, {"username": username})
        )
        return Identity.from_document(collection.role, doc) if doc else None

    async def find_by_username_password(
        self, collection: CredentialCollection, username: str, password: str
    ) -> Optional[Identity]:
        """Return the record whose username and password both match, or None.

        The status is not checked here; inactive records are returned too.
        """
        identity = await self.find_by_username(collection, username)
        if identity is None:
            return None
        matched, new_hash = verify_password(
            password, identity.password_hash, self._pwd
        )
        if not matched:
            return None
        if new_hash:
            await self._upgrade_hash(collection, identity, new_hash)
        return identity

    async def _upgrade_hash(
        self, collection: CredentialCollection, identity: Identity, new_hash: str
    ) -> None:
        try:
            await self._db.update(
                collection.name,
                {"_id": identity.id},
                {"$set": {"password": new_hash, "updatedAt": _utcnow()}}
            )
            identity.password_hash = new_hash
            self.logger.info(
                f"Upgraded stored password hash for {collection.role.value} {identity.id}"
            )
        except Exception as exc:  # pylint: disable=W0718
            # the login itself succeeded; the upgrade is retried on next login
            self.logger.warning(
                f"Could not upgrade password hash for {identity.id}: {exc}"
            )

    async def find_by_id(
        self, collection: CredentialCollection, uid: str
    ) -> Optional[Identity]:
        if not uid:
            return None
        doc = await self._guard(
            "find_by_id",
            collection,
            self._db.read_one(collection.name, {"_id": uid})
        )
        return Identity.from_document(collection.role, doc) if doc else None

    async def exists_by_username(
        self, collection: CredentialCollection, username: str
    ) -> bool:
        return await self._guard(
            "exists_by_username",
            collection,
            self._db.exists(collection.name, {"username": username})
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(
        self,
        collection: CredentialCollection,
        fields: dict[str, Any],
        uid: Optional[str] = None,
    ) -> Identity:
        """Insert a new identity record.

        ``fields["password"]`` is the plaintext password; only its hash is stored.

        Raises:
            DuplicateUsername: the username is already present in ``collection``.
            StoreError: the id already exists, or the database failed.
        """
        doc = dict(fields)
        username = (doc.get("username") or "").strip()
        if not username:
            raise ValueError("username_blank")
        password = doc.pop("password", None)
        if not password:
            raise ValueError("password_blank")

        if await self.exists_by_username(collection, username):
            raise DuplicateUsername(username, collection.name)
        uid = uid or uuid.uuid4().hex
        if await self.find_by_id(collection, uid) is not None:
            raise StoreError(
                f"Account {uid} already exists in '{collection.name}'"
            )

        now = _utcnow()
        doc.update({
            "_id": uid,
            "username": username,
            "password": hash_password(password, self._pwd),
            "status": doc.get("status") or AccountStatus.ACTIVE.value,
            "createdAt": now,
            "updatedAt": now,
        })
        if "permissions" in doc:
            doc["permissions"] = sorted(set(doc["permissions"] or ()))
        await self._guard("create", collection, self._db.write(collection.name, doc))
        self.logger.info(
            f"Created {collection.role.value} account {uid} ({username})"
        )
        return Identity.from_document(collection.role, doc)

    async def update(
        self,
        collection: CredentialCollection,
        uid: str,
        fields: dict[str, Any],
    ) -> None:
        """Set ``fields`` on an existing record (``password`` is hashed)."""
        changes = dict(fields)
        if "password" in changes:
            changes["password"] = hash_password(changes["password"], self._pwd)
        if "permissions" in changes:
            changes["permissions"] = sorted(set(changes["permissions"] or ()))
        changes["updatedAt"] = _utcnow()
        await self._guard(
            "update",
            collection,
            self._db.update(collection.name, {"_id": uid}, {"$set": changes})
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
