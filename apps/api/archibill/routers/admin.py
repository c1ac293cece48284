"""Site admin endpoints - user lifecycle, role overrides, and dashboard.

Every route requires a site admin (403 otherwise).
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from archibill.core.deps import get_db, get_identity_provider, require_site_admin
from archibill.db.enums import BanMode
from archibill.schemas.actions import ActionResult
from archibill.schemas.admin import AdminDashboard, AdminRoleUpdate, BanRequest, PasswordResetRequest
from archibill.schemas.auth import Actor
from archibill.services import admin_actions
from archibill.services.identity_provider import IdentityProvider

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/dashboard", response_model=AdminDashboard)
async def get_dashboard(
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    actor: Actor = Depends(require_site_admin),
):
    return await admin_actions.get_admin_dashboard(db, provider, actor)


# =============================================================================
# User lifecycle
# =============================================================================

@router.post("/users/{user_id}/ban", response_model=ActionResult)
async def ban_user(
    user_id: UUID,
    body: BanRequest | None = None,
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    actor: Actor = Depends(require_site_admin),
):
    email = body.email if body else None
    return await admin_actions.ban_user(db, provider, actor, user_id, BanMode.BAN, email)


@router.post("/users/{user_id}/unban", response_model=ActionResult)
async def unban_user(
    user_id: UUID,
    body: BanRequest | None = None,
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    actor: Actor = Depends(require_site_admin),
):
    email = body.email if body else None
    return await admin_actions.ban_user(db, provider, actor, user_id, BanMode.UNBAN, email)


@router.post("/password-reset", response_model=ActionResult)
async def send_password_reset(
    body: PasswordResetRequest,
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    actor: Actor = Depends(require_site_admin),
):
    return await admin_actions.send_password_reset(
        db, provider, actor, body.email, user_id=body.user_id
    )


@router.delete("/users/{user_id}", response_model=ActionResult)
async def delete_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    actor: Actor = Depends(require_site_admin),
):
    """Refused while the user is the sole owner of any practice."""
    return await admin_actions.delete_user(db, provider, actor, user_id)


# =============================================================================
# Practice overrides
# =============================================================================

@router.post("/practices/{practice_id}/members/{user_id}/role", response_model=ActionResult)
async def update_practice_member_role(
    practice_id: UUID,
    user_id: UUID,
    body: AdminRoleUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_site_admin),
):
    return await admin_actions.update_practice_member_role(
        db, actor, practice_id, user_id, body.role
    )
