"""Ownership service - keeps every practice with at least one owner.

All role changes, from practice settings or the admin dashboard, go through
apply_role_change so both paths reach the same decision for the same input.
Owner counts are always live reads; on PostgreSQL the owner rows are locked
for the rest of the transaction so two concurrent demotions serialize.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from archibill.db.enums import MemberRole
from archibill.services import membership_service, practice_service
from archibill.services.errors import NotFoundError, OwnerInvariantViolation

logger = logging.getLogger(__name__)

SELF_DEMOTION_MESSAGE = "You must have at least one owner"
LAST_OWNER_MESSAGE = "A practice must have at least one owner"


@dataclass(frozen=True)
class SoleOwnedPractice:
    practice_id: UUID
    name: str | None


def assert_owner_retained(
    db: Session,
    practice_id: UUID,
    member_user_id: UUID,
    *,
    actor_user_id: UUID | None,
) -> None:
    """
    Reject removing the member's owner role when no other owner remains.

    Raises:
        OwnerInvariantViolation: self-demotion and third-party demotion carry
            different messages
    """
    remaining = membership_service.count_owners(
        db,
        practice_id,
        exclude_user_id=member_user_id,
        lock=True,
    )
    if remaining > 0:
        return

    message = SELF_DEMOTION_MESSAGE if actor_user_id == member_user_id else LAST_OWNER_MESSAGE
    raise OwnerInvariantViolation(message, practice_ids=[practice_id])


def find_sole_owner_practices(db: Session, user_id: UUID) -> list[SoleOwnedPractice]:
    """Practices where the user is the only owner."""
    owned = [
        snapshot.practice_id
        for snapshot in membership_service.list_memberships_for_user(db, user_id)
        if snapshot.role == MemberRole.OWNER.value
    ]
    if not owned:
        return []

    owner_counts = membership_service.count_owners_by_practice(db, owned)
    sole = [practice_id for practice_id in owned if owner_counts.get(practice_id, 0) <= 1]
    names = practice_service.get_practice_names(db, sole)
    return [SoleOwnedPractice(practice_id=pid, name=names.get(pid)) for pid in sole]


def apply_role_change(
    db: Session,
    practice_id: UUID,
    member_user_id: UUID,
    new_role: MemberRole,
    *,
    actor_user_id: UUID | None,
) -> tuple[str, bool]:
    """
    Move a member to new_role.

    Setting the current role again is a successful no-op with no write and
    no invariant check.

    Returns:
        (previous_role, changed)

    Raises:
        NotFoundError: member not in the practice
        OwnerInvariantViolation: would leave the practice without an owner
    """
    membership = membership_service.get_membership(db, practice_id, member_user_id)
    if not membership:
        raise NotFoundError("Member not found")

    previous_role = membership.role
    if previous_role == new_role.value:
        return previous_role, False

    if previous_role == MemberRole.OWNER.value:
        assert_owner_retained(db, practice_id, member_user_id, actor_user_id=actor_user_id)

    membership_service.set_role(db, membership, new_role)
    logger.info(
        "Role changed for member %s in practice %s: %s -> %s",
        member_user_id,
        practice_id,
        previous_role,
        new_role.value,
    )
    return previous_role, True
