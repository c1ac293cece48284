"""Profile service - idempotent profile upserts keyed by identity user id."""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from archibill.db.models import Profile
from archibill.db.upsert import dialect_insert


def get_profiles(db: Session, user_ids: list[UUID]) -> dict[UUID, Profile]:
    """Map user id -> profile for the ids that have one."""
    if not user_ids:
        return {}
    profiles = db.query(Profile).filter(Profile.user_id.in_(user_ids)).all()
    return {profile.user_id: profile for profile in profiles}


def set_default_practice(
    db: Session,
    user_id: UUID,
    practice_id: UUID,
    overwrite: bool = True,
) -> None:
    """
    Upsert the profile's default practice.

    overwrite=False keeps an existing profile untouched (invitees keep
    whatever default they already had).
    """
    db.flush()
    now = datetime.now(timezone.utc)
    stmt = dialect_insert(db, Profile).values(
        user_id=user_id,
        default_practice_id=practice_id,
        created_at=now,
        updated_at=now,
    )
    if overwrite:
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={"default_practice_id": practice_id, "updated_at": now},
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=["user_id"])
    db.execute(stmt)
    _reload_profile(db, user_id)


def ensure_profile(db: Session, user_id: UUID) -> None:
    """Create an empty profile if the user has none."""
    db.flush()
    now = datetime.now(timezone.utc)
    stmt = (
        dialect_insert(db, Profile)
        .values(user_id=user_id, created_at=now, updated_at=now)
        .on_conflict_do_nothing(index_elements=["user_id"])
    )
    db.execute(stmt)


def update_contact_details(
    db: Session,
    user_id: UUID,
    full_name: str | None,
    phone: str | None,
) -> None:
    """Upsert name + phone, overwriting existing values."""
    db.flush()
    now = datetime.now(timezone.utc)
    stmt = (
        dialect_insert(db, Profile)
        .values(user_id=user_id, full_name=full_name, phone=phone, created_at=now, updated_at=now)
        .on_conflict_do_update(
            index_elements=["user_id"],
            set_={"full_name": full_name, "phone": phone, "updated_at": now},
        )
    )
    db.execute(stmt)
    _reload_profile(db, user_id)


def delete_profile(db: Session, user_id: UUID) -> int:
    return (
        db.query(Profile)
        .filter(Profile.user_id == user_id)
        .delete(synchronize_session="fetch")
    )


def _reload_profile(db: Session, user_id: UUID) -> None:
    # Core upserts bypass the identity map
    db.get(Profile, user_id, populate_existing=True)
