"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite database per test (tables created from the models)
- In-memory identity provider standing in for Supabase
- Actor fixtures and practice builders
- HTTPX AsyncClient with db/provider overrides
"""
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Generator

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["SITE_ADMIN_EMAILS"] = "admin@archibill.test"
os.environ["APP_URL"] = "http://app.test"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from archibill.core.deps import get_db, get_identity_provider
from archibill.db.enums import MemberRole
from archibill.db.models import Practice, PracticeMember, Profile
from archibill.db.session import SessionLocal, enable_sqlite_foreign_keys, init_db
from archibill.main import app
from archibill.schemas.auth import Actor
from archibill.schemas.identity import ProviderSession, ProviderUser
from archibill.services.identity_provider import (
    IdentityProvider,
    IdentityProviderError,
    IdentityUserAlreadyRegistered,
    IdentityUserNotFound,
)


# =============================================================================
# Identity provider fake
# =============================================================================

class FakeIdentityProvider(IdentityProvider):
    """
    In-memory identity provider.

    Records every call in `calls` as (method, args) so tests can assert a
    provider mutation did or did not happen. `fail_with` maps a method name
    to an exception raised on the next call.
    """

    def __init__(self):
        self.users: dict[uuid.UUID, ProviderUser] = {}
        self.tokens: dict[str, uuid.UUID] = {}
        self.calls: list[tuple[str, tuple]] = []
        self.fail_with: dict[str, Exception] = {}

    def add_user(
        self,
        email: str,
        *,
        confirmed: bool = True,
        banned: bool = False,
        app_metadata: dict[str, Any] | None = None,
        user_id: uuid.UUID | None = None,
    ) -> ProviderUser:
        now = datetime.now(timezone.utc)
        user = ProviderUser(
            id=user_id or uuid.uuid4(),
            email=email,
            email_confirmed_at=now if confirmed else None,
            banned_until=now + timedelta(days=3650) if banned else None,
            created_at=now,
            app_metadata=app_metadata or {"providers": ["email"]},
        )
        self.users[user.id] = user
        return user

    def issue_token(self, user: ProviderUser) -> str:
        token = f"token-{uuid.uuid4().hex}"
        self.tokens[token] = user.id
        return token

    def called(self, method: str) -> bool:
        return any(name == method for name, _ in self.calls)

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, args))
        if method in self.fail_with:
            raise self.fail_with.pop(method)

    def _require(self, user_id: uuid.UUID) -> ProviderUser:
        if user_id not in self.users:
            raise IdentityUserNotFound("User not found", 404, "user_not_found")
        return self.users[user_id]

    async def get_user_by_id(self, user_id):
        self._record("get_user_by_id", user_id)
        return self._require(user_id)

    async def list_users(self, page=1, per_page=50):
        self._record("list_users", page, per_page)
        users = list(self.users.values())
        start = (page - 1) * per_page
        return users[start:start + per_page]

    async def update_ban_state(self, user_id, ban_duration):
        self._record("update_ban_state", user_id, ban_duration)
        user = self._require(user_id)
        banned_until = None
        if ban_duration != "none":
            banned_until = datetime.now(timezone.utc) + timedelta(hours=87600)
        updated = user.model_copy(update={"banned_until": banned_until})
        self.users[user_id] = updated
        return updated

    async def delete_user(self, user_id):
        self._record("delete_user", user_id)
        self._require(user_id)
        del self.users[user_id]

    async def invite_user_by_email(self, email, redirect_to=None, data=None):
        self._record("invite_user_by_email", email, redirect_to, data)
        if any(user.normalized_email == email.lower() for user in self.users.values()):
            raise IdentityUserAlreadyRegistered(
                "A user with this email address has already been registered", 422, "email_exists"
            )
        return self.add_user(email, confirmed=False)

    async def reset_password_for_email(self, email, redirect_to=None):
        self._record("reset_password_for_email", email, redirect_to)

    async def exchange_code_for_session(self, auth_code, code_verifier):
        self._record("exchange_code_for_session", auth_code, code_verifier)
        user_id = self.tokens.get(auth_code)
        if user_id is None:
            raise IdentityProviderError("invalid flow state", 400, "flow_state_not_found")
        return ProviderSession(access_token=auth_code, expires_in=3600, user=self.users[user_id])

    async def get_user(self, access_token):
        self._record("get_user", access_token)
        user_id = self.tokens.get(access_token)
        if user_id is None or user_id not in self.users:
            raise IdentityProviderError("invalid JWT", 401, "bad_jwt")
        return self.users[user_id]

    async def sign_out(self, access_token):
        self._record("sign_out", access_token)
        self.tokens.pop(access_token, None)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Isolated in-memory database with the full schema."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(test_engine)
    init_db(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine) -> Generator[Session, None, None]:
    session = SessionLocal(bind=db_engine)
    yield session
    session.close()


@pytest.fixture(scope="function")
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


# =============================================================================
# Actor Fixtures
# =============================================================================

def make_actor(user: ProviderUser, is_site_admin: bool = False) -> Actor:
    return Actor(id=user.id, email=user.email, is_site_admin=is_site_admin)


@pytest.fixture(scope="function")
def admin_user(provider: FakeIdentityProvider) -> ProviderUser:
    return provider.add_user("admin@archibill.test")


@pytest.fixture(scope="function")
def admin_actor(admin_user: ProviderUser) -> Actor:
    return make_actor(admin_user, is_site_admin=True)


@dataclass
class PracticeFixture:
    """A practice plus its members keyed by label."""
    practice: Practice
    users: dict[str, ProviderUser] = field(default_factory=dict)

    def actor(self, label: str) -> Actor:
        return make_actor(self.users[label])

    def user_id(self, label: str) -> uuid.UUID:
        return self.users[label].id


@pytest.fixture(scope="function")
def build_practice(db: Session, provider: FakeIdentityProvider):
    """
    Factory: build_practice("Acme", alice="owner", bob="admin").

    Each member gets a provider identity <label>@<slug>.example.com and a profile.
    """

    def _build(name: str, **members: str) -> PracticeFixture:
        slug = f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:6]}"
        practice = Practice(name=name, slug=slug)
        db.add(practice)
        db.flush()

        fixture = PracticeFixture(practice=practice)
        for label, role in members.items():
            user = provider.add_user(f"{label}@{slug}.example.com")
            db.add(Profile(user_id=user.id, full_name=label.title()))
            db.add(
                PracticeMember(
                    practice_id=practice.id,
                    user_id=user.id,
                    role=MemberRole(role).value,
                )
            )
            fixture.users[label] = user
        db.commit()
        return fixture

    return _build


@pytest.fixture(scope="function")
def add_membership(db: Session):
    """Factory: add_membership(practice, user, "member")."""

    def _add(practice: Practice, user: ProviderUser, role: str) -> None:
        db.add(PracticeMember(practice_id=practice.id, user_id=user.id, role=role))
        db.commit()

    return _add


@pytest.fixture(scope="function")
def member_role(db: Session):
    """Live role lookup: member_role(practice_id, user_id) -> role or None."""

    def _lookup(practice_id: uuid.UUID, user_id: uuid.UUID) -> str | None:
        db.expire_all()
        membership = (
            db.query(PracticeMember)
            .filter(PracticeMember.practice_id == practice_id, PracticeMember.user_id == user_id)
            .first()
        )
        return membership.role if membership else None

    return _lookup


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session, provider: FakeIdentityProvider) -> AsyncGenerator[AsyncClient, None]:
    """
    AsyncClient wired to the test database and fake provider.

    Authenticate per request with headers=auth_headers(user).
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_provider] = lambda: provider

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def auth_headers(provider: FakeIdentityProvider):
    """Bearer header for a provider user: auth_headers(user)."""

    def _headers(user: ProviderUser) -> dict[str, str]:
        return {"Authorization": f"Bearer {provider.issue_token(user)}"}

    return _headers
