"""Authentication router - provider session exchange and session management."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from archibill.core.config import settings
from archibill.core.deps import (
    COOKIE_NAME,
    SESSION_MAX_AGE,
    actor_from_user,
    get_access_token,
    get_current_actor,
    get_db,
    get_identity_provider,
)
from archibill.schemas.auth import Actor, AuthCallbackRequest, MeResponse
from archibill.services import practice_actions
from archibill.services.identity_provider import IdentityProvider, IdentityProviderError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/callback", response_model=MeResponse)
async def auth_callback(
    body: AuthCallbackRequest,
    response: Response,
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """
    Exchange the PKCE code for a session.

    1. Exchanges the code with the identity provider
    2. Accepts pending invites for the now-confirmed identity
    3. Stores the access token in an httponly cookie
    """
    try:
        session = await provider.exchange_code_for_session(body.auth_code, body.code_verifier)
    except IdentityProviderError as exc:
        logger.info("Code exchange failed (status=%s)", exc.status_code)
        raise HTTPException(status_code=400, detail="Session error")

    practice_actions.accept_pending_invites(db, session.user)

    response.set_cookie(
        key=COOKIE_NAME,
        value=session.access_token,
        max_age=session.expires_in or SESSION_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
    actor = actor_from_user(session.user)
    return MeResponse(user_id=actor.id, email=actor.email, is_site_admin=actor.is_site_admin)


@router.get("/me", response_model=MeResponse)
async def get_me(actor: Actor = Depends(get_current_actor)):
    return MeResponse(user_id=actor.id, email=actor.email, is_site_admin=actor.is_site_admin)


@router.post("/signout")
async def signout(
    request: Request,
    response: Response,
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Revoke the provider session if there is one and clear the cookie."""
    token = get_access_token(request)
    if token:
        try:
            await provider.sign_out(token)
        except IdentityProviderError as exc:
            logger.warning("Provider sign-out failed (status=%s): %s", exc.status_code, exc.message)

    response.delete_cookie(COOKIE_NAME, path="/")
    return {"status": "logged_out"}
