"""Membership service - practice membership lookups, counts, and writes."""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from archibill.db.enums import MemberRole
from archibill.db.models import Practice, PracticeMember, Profile
from archibill.db.upsert import dialect_insert


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MembershipSnapshot:
    """A user's membership as captured before destructive changes."""
    practice_id: UUID
    practice_name: str | None
    role: str

    def as_audit_dict(self) -> dict:
        return {
            "practiceId": str(self.practice_id),
            "practiceName": self.practice_name,
            "role": self.role,
        }


def get_membership(db: Session, practice_id: UUID, user_id: UUID) -> PracticeMember | None:
    """Get membership scoped to a practice."""
    return (
        db.query(PracticeMember)
        .filter(
            PracticeMember.practice_id == practice_id,
            PracticeMember.user_id == user_id,
        )
        .first()
    )


def get_member_role(db: Session, practice_id: UUID, user_id: UUID) -> str | None:
    """Role the user holds in the practice, or None when not a member."""
    membership = get_membership(db, practice_id, user_id)
    return membership.role if membership else None


def get_primary_membership(db: Session, user_id: UUID) -> tuple[PracticeMember, Practice] | None:
    """
    The practice a user works in by default.

    Prefers the profile's default practice, otherwise the oldest membership.
    """
    profile = db.get(Profile, user_id)
    query = (
        db.query(PracticeMember, Practice)
        .join(Practice, Practice.id == PracticeMember.practice_id)
        .filter(PracticeMember.user_id == user_id)
    )
    if profile and profile.default_practice_id:
        preferred = query.filter(PracticeMember.practice_id == profile.default_practice_id).first()
        if preferred:
            return preferred
    return query.order_by(PracticeMember.created_at.asc()).first()


def has_any_membership(db: Session, user_id: UUID) -> bool:
    return db.query(PracticeMember.id).filter(PracticeMember.user_id == user_id).first() is not None


def list_memberships_for_user(db: Session, user_id: UUID) -> list[MembershipSnapshot]:
    """All memberships of a user with practice names (outer join)."""
    rows = (
        db.query(PracticeMember.practice_id, PracticeMember.role, Practice.name)
        .outerjoin(Practice, Practice.id == PracticeMember.practice_id)
        .filter(PracticeMember.user_id == user_id)
        .order_by(PracticeMember.created_at.asc())
        .all()
    )
    return [
        MembershipSnapshot(practice_id=row.practice_id, practice_name=row.name, role=row.role)
        for row in rows
    ]


def count_owners(
    db: Session,
    practice_id: UUID,
    exclude_user_id: UUID | None = None,
    lock: bool = False,
) -> int:
    """
    Count owners of a practice.

    With lock=True the owner rows are selected FOR UPDATE so concurrent
    demotions in the same practice serialize (no-op on SQLite).
    """
    query = db.query(PracticeMember.id).filter(
        PracticeMember.practice_id == practice_id,
        PracticeMember.role == MemberRole.OWNER.value,
    )
    if exclude_user_id is not None:
        query = query.filter(PracticeMember.user_id != exclude_user_id)
    if lock:
        return len(query.with_for_update().all())
    return query.count()


def count_owners_by_practice(db: Session, practice_ids: list[UUID]) -> dict[UUID, int]:
    """Owner count per practice (missing practices count as zero)."""
    if not practice_ids:
        return {}
    rows = (
        db.query(PracticeMember.practice_id, func.count(PracticeMember.id))
        .filter(
            PracticeMember.practice_id.in_(practice_ids),
            PracticeMember.role == MemberRole.OWNER.value,
        )
        .group_by(PracticeMember.practice_id)
        .all()
    )
    counts = {practice_id: 0 for practice_id in practice_ids}
    counts.update({practice_id: int(count) for practice_id, count in rows})
    return counts


def add_member(
    db: Session,
    practice_id: UUID,
    user_id: UUID,
    role: MemberRole,
    invited_by: UUID | None = None,
) -> None:
    """Insert a membership, ignoring the row if the user is already a member."""
    db.flush()
    stmt = (
        dialect_insert(db, PracticeMember)
        .values(
            practice_id=practice_id,
            user_id=user_id,
            role=role.value,
            invited_by=invited_by,
        )
        .on_conflict_do_nothing(index_elements=["practice_id", "user_id"])
    )
    db.execute(stmt)


def set_role(db: Session, membership: PracticeMember, role: MemberRole) -> None:
    membership.role = role.value
    db.flush()


def list_members_with_profiles(db: Session, practice_id: UUID) -> list[tuple[PracticeMember, Profile | None]]:
    """Members of a practice joined to their profiles (oldest first)."""
    return (
        db.query(PracticeMember, Profile)
        .outerjoin(Profile, Profile.user_id == PracticeMember.user_id)
        .filter(PracticeMember.practice_id == practice_id)
        .order_by(PracticeMember.created_at.asc())
        .all()
    )


def delete_memberships_for_user(db: Session, user_id: UUID) -> int:
    """Remove every membership of the user. Returns rows deleted."""
    deleted = (
        db.query(PracticeMember)
        .filter(PracticeMember.user_id == user_id)
        .delete(synchronize_session="fetch")
    )
    if deleted:
        logger.info("Removed %s memberships for user %s", deleted, user_id)
    return deleted
