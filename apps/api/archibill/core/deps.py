"""FastAPI dependencies for actor resolution, identity provider, and database access."""

import logging
from typing import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from archibill.core.config import settings
from archibill.db.session import SessionLocal
from archibill.schemas.auth import Actor
from archibill.schemas.identity import ProviderUser
from archibill.services.identity_provider import (
    IdentityProvider,
    IdentityProviderError,
    SupabaseIdentityProvider,
)

logger = logging.getLogger(__name__)

# Cookie holding the provider access token
COOKIE_NAME = "archibill_session"
SESSION_MAX_AGE = 60 * 60 * 24 * 7  # 1 week


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_identity_provider() -> IdentityProvider:
    """Identity provider dependency (overridden with a fake in tests)."""
    return SupabaseIdentityProvider.from_settings()


def get_access_token(request: Request) -> str | None:
    """Session token from the cookie, else from an Authorization: Bearer header."""
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def is_site_admin(user: ProviderUser) -> bool:
    """Listed in SITE_ADMIN_EMAILS, or flagged admin in the provider's app metadata."""
    if user.normalized_email and user.normalized_email in settings.site_admin_emails_list:
        return True
    return user.app_metadata.get("role") == "admin"


def actor_from_user(user: ProviderUser) -> Actor:
    return Actor(id=user.id, email=user.email, is_site_admin=is_site_admin(user))


async def get_optional_actor(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Actor | None:
    """
    Resolve the acting user, or None when there is no valid session.

    Workflows answer "Not authenticated" themselves, so mutating routes
    take the optional actor.
    """
    token = get_access_token(request)
    if not token:
        return None
    try:
        user = await provider.get_user(token)
    except IdentityProviderError as exc:
        logger.info("Session token rejected by identity provider (status=%s)", exc.status_code)
        return None
    if user.is_banned:
        return None
    return actor_from_user(user)


async def get_current_actor(actor: Actor | None = Depends(get_optional_actor)) -> Actor:
    """
    Require an authenticated actor.

    Raises:
        HTTPException 401: Not authenticated
    """
    if actor is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return actor


async def require_site_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """
    Require a site-wide administrator.

    Raises:
        HTTPException 403: Not a site admin
    """
    if not actor.is_site_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return actor
