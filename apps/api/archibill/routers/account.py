"""Account settings endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from archibill.core.deps import get_db, get_optional_actor
from archibill.schemas.account import ProfileUpdate
from archibill.schemas.actions import ActionResult
from archibill.schemas.auth import Actor
from archibill.services import account_actions

router = APIRouter(prefix="/account", tags=["account"])


@router.patch("/profile", response_model=ActionResult)
async def update_profile(
    body: ProfileUpdate,
    db: Session = Depends(get_db),
    actor: Actor | None = Depends(get_optional_actor),
):
    return await account_actions.update_profile(db, actor, body.full_name, body.phone)
