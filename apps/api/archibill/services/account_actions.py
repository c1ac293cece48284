"""Account workflows - the signed-in user's own profile."""

from sqlalchemy.orm import Session

from archibill.schemas.actions import ActionResult
from archibill.schemas.auth import Actor
from archibill.services import profile_service
from archibill.services.action_boundary import action_boundary
from archibill.services.guards import require_actor
from archibill.utils.normalization import sanitize_input

FULL_NAME_MAX_LENGTH = 200
PHONE_MAX_LENGTH = 50


@action_boundary("Unable to update profile")
async def update_profile(
    db: Session,
    actor: Actor | None,
    full_name: str | None,
    phone: str | None,
) -> ActionResult:
    """Upsert name and phone; blank values clear the field."""
    actor = require_actor(actor)
    cleaned_name = sanitize_input(full_name, FULL_NAME_MAX_LENGTH) or None
    cleaned_phone = sanitize_input(phone, PHONE_MAX_LENGTH) or None

    profile_service.update_contact_details(db, actor.id, cleaned_name, cleaned_phone)
    db.commit()
    return ActionResult.success("Profile updated successfully")
