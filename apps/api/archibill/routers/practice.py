"""Practice endpoints - profile, members, invitations, and overview."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from archibill.core.deps import get_current_actor, get_db, get_identity_provider, get_optional_actor
from archibill.schemas.actions import ActionResult
from archibill.schemas.auth import Actor
from archibill.schemas.practice import (
    MemberInviteCreate,
    MemberRoleUpdate,
    PracticeCreate,
    PracticeOverview,
    PracticeUpdate,
)
from archibill.services import practice_actions
from archibill.services.identity_provider import IdentityProvider

router = APIRouter(prefix="/practice", tags=["practice"])


@router.get("", response_model=PracticeOverview)
async def get_practice(
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    actor: Actor = Depends(get_current_actor),
):
    """The actor's practice with members; empty when they have none yet."""
    return await practice_actions.get_practice_overview(db, provider, actor)


@router.post("", response_model=ActionResult)
async def create_practice(
    body: PracticeCreate,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_optional_actor),
):
    return await practice_actions.create_practice(
        db,
        actor,
        name=body.name,
        billing_email=body.billing_email,
        currency=body.currency,
        timezone_name=body.timezone,
    )


@router.patch("/{practice_id}", response_model=ActionResult)
async def update_practice(
    practice_id: UUID,
    body: PracticeUpdate,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_optional_actor),
):
    return await practice_actions.update_practice(
        db,
        actor,
        practice_id,
        name=body.name,
        billing_email=body.billing_email,
        currency=body.currency,
        timezone_name=body.timezone,
    )


@router.post("/{practice_id}/members/{user_id}/role", response_model=ActionResult)
async def change_member_role(
    practice_id: UUID,
    user_id: UUID,
    body: MemberRoleUpdate,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_optional_actor),
):
    """Owner-only. Setting the current role again succeeds without changes."""
    return await practice_actions.change_member_role(db, actor, practice_id, user_id, body.role)


@router.post("/{practice_id}/invites", response_model=ActionResult)
async def invite_member(
    practice_id: UUID,
    body: MemberInviteCreate,
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    actor: Actor | None = Depends(get_optional_actor),
):
    """Owner-only. Existing accounts are added directly."""
    return await practice_actions.invite_member(
        db, provider, actor, practice_id, body.email, body.role
    )
