"""Test configuration helpers for the bizauth codebase.

Provides in-memory doubles for the two external collaborators (the credential
document database and the identity provider) and ready-wired services.
"""
from __future__ import annotations

import inspect
import os
import sys
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from passlib.context import CryptContext

# Make the repository root importable as ``bizauth`` without installing.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
# navconfig locates env/.env relative to SITE_ROOT; point it at this project.
os.environ.setdefault("SITE_ROOT", str(PROJECT_ROOT))

from bizauth.auth import AuthenticationService, CredentialStore  # noqa: E402
from bizauth.auth.security import hash_password  # noqa: E402
from bizauth.interfaces.identity import (  # noqa: E402
    IdentityProvider,
    ProviderAuthError,
    ProviderUser,
)
from bizauth.memory import InMemorySessionStore  # noqa: E402


ADMIN_DOMAIN = "lumoraventures.com"


class FakeDocumentDb:
    """In-memory stand-in for ``DocumentDb`` with equality-only queries."""

    def __init__(self) -> None:
        self.collections: Dict[str, List[dict]] = {}
        self.fail_with: Optional[Exception] = None
        self.reads = 0

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    @staticmethod
    def _matches(doc: dict, query: dict) -> bool:
        return all(doc.get(k) == v for k, v in query.items())

    async def read(self, collection_name: str, query: Optional[dict] = None,
                   limit: Optional[int] = None, **kwargs) -> List[dict]:
        self._check()
        self.reads += 1
        docs = [
            deepcopy(d) for d in self.collections.get(collection_name, [])
            if self._matches(d, query or {})
        ]
        return docs[:limit] if limit else docs

    async def read_one(self, collection_name: str, query: dict, **kwargs):
        docs = await self.read(collection_name, query, limit=1)
        return docs[0] if docs else None

    async def exists(self, collection_name: str, query: dict) -> bool:
        return await self.read_one(collection_name, query) is not None

    async def write(self, collection_name: str, data, **kwargs):
        self._check()
        docs = [data] if isinstance(data, dict) else data
        bucket = self.collections.setdefault(collection_name, [])
        for doc in docs:
            if any(d["_id"] == doc["_id"] for d in bucket):
                raise RuntimeError(f"E11000 duplicate key {doc['_id']}")
            bucket.append(deepcopy(doc))
        return len(docs)

    async def update(self, collection_name: str, query: dict, update_data: dict,
                     upsert: bool = False, **kwargs):
        self._check()
        changed = 0
        for doc in self.collections.get(collection_name, []):
            if self._matches(doc, query):
                doc.update(deepcopy(update_data.get("$set", {})))
                changed += 1
        return changed

    async def create_indexes(self, collection_name: str, keys) -> None:
        self._check()

    # helpers for tests
    def insert(self, collection_name: str, doc: dict) -> dict:
        self.collections.setdefault(collection_name, []).append(doc)
        return doc

    def get(self, collection_name: str, uid: str) -> Optional[dict]:
        for doc in self.collections.get(collection_name, []):
            if doc["_id"] == uid:
                return doc
        return None


class FakeIdentityProvider(IdentityProvider):
    """Identity provider keeping accounts and the live session in memory."""

    def __init__(self) -> None:
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.user: Optional[ProviderUser] = None
        self.listeners: List[Any] = []
        self.calls: List[str] = []
        self.fail_with: Optional[Exception] = None

    def add_account(self, uid: str, email: str, password: str,
                    display_name: Optional[str] = None) -> ProviderUser:
        user = ProviderUser(uid=uid, email=email, display_name=display_name)
        self.accounts[email.lower()] = {"user": user, "password": password}
        return user

    async def _notify(self) -> None:
        for listener in list(self.listeners):
            result = listener(self.user)
            if inspect.isawaitable(result):
                await result

    async def sign_in(self, email: str, password: str) -> ProviderUser:
        self.calls.append("sign_in")
        if self.fail_with is not None:
            raise self.fail_with
        account = self.accounts.get(email.lower())
        if account is None or account["password"] != password:
            raise ProviderAuthError("auth/invalid-credential")
        self.user = account["user"]
        await self._notify()
        return self.user

    async def sign_up(self, email: str, password: str) -> ProviderUser:
        self.calls.append("sign_up")
        if self.fail_with is not None:
            raise self.fail_with
        if email.lower() in self.accounts:
            raise ProviderAuthError("auth/email-already-in-use")
        user = self.add_account(f"uid-{len(self.accounts) + 1}", email, password)
        self.user = user
        return user

    async def sign_out(self) -> None:
        self.calls.append("sign_out")
        self.user = None
        await self._notify()

    async def current_user(self) -> Optional[ProviderUser]:
        self.calls.append("current_user")
        return self.user

    async def update_display_name(self, name: str) -> None:
        self.calls.append("update_display_name")
        if self.user is not None:
            self.user = ProviderUser(self.user.uid, self.user.email, name)
            self.accounts[self.user.email.lower()]["user"] = self.user

    def on_session_change(self, callback):
        self.listeners.append(callback)
        return lambda: self.listeners.remove(callback)


@pytest.fixture
def pwd_context() -> CryptContext:
    """Cheap hashing so tests stay fast."""
    return CryptContext(
        schemes=["pbkdf2_sha256"], deprecated="auto", pbkdf2_sha256__rounds=1000
    )


@pytest.fixture
def docdb() -> FakeDocumentDb:
    return FakeDocumentDb()


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def store(docdb: FakeDocumentDb, pwd_context: CryptContext) -> CredentialStore:
    return CredentialStore(docdb, password_context=pwd_context)


@pytest.fixture
def make_account(docdb: FakeDocumentDb, pwd_context: CryptContext):
    """Insert an owner or manager document with a hashed password."""

    def _make(collection: str, uid: str, username: str, password: str = "secret1",
              status: str = "active", **fields: Any) -> dict:
        doc = {
            "_id": uid,
            "username": username,
            "password": hash_password(password, pwd_context),
            "name": fields.pop("name", username.title()),
            "email": fields.pop("email", f"{username}@example.com"),
            "status": status,
        }
        doc.update(fields)
        return docdb.insert(collection, doc)

    return _make


@pytest_asyncio.fixture
async def auth_service(store, session_store, provider):
    """AuthenticationService wired with in-memory collaborators."""
    service = AuthenticationService(
        store, session_store, provider, admin_domain=ADMIN_DOMAIN
    )
    async with service:
        yield service
