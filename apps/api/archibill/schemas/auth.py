"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel


class Actor(BaseModel):
    """
    The identity performing a workflow call.

    Resolved once per request by get_current_actor and passed explicitly
    into every workflow; nothing reads the session from ambient state.
    """
    id: UUID
    email: str | None = None
    is_site_admin: bool = False


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    user_id: UUID
    email: str | None
    is_site_admin: bool


class AuthCallbackRequest(BaseModel):
    """PKCE code exchange payload from the auth callback page."""
    auth_code: str
    code_verifier: str
