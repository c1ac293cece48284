"""Invitation service - invite records and their pending/accepted/revoked lifecycle."""

import logging
import secrets
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from archibill.db.enums import InviteStatus, MemberRole
from archibill.db.models import PracticeInvite
from archibill.services.errors import ConflictError

logger = logging.getLogger(__name__)

INVITE_TOKEN_BYTES = 32


def get_invite_status(invite: PracticeInvite) -> InviteStatus:
    """Derive invite status from fields."""
    if invite.revoked_at:
        return InviteStatus.REVOKED
    if invite.accepted_at:
        return InviteStatus.ACCEPTED
    return InviteStatus.PENDING


def generate_invite_token() -> str:
    """Opaque, URL-safe invite token."""
    return secrets.token_urlsafe(INVITE_TOKEN_BYTES)


def _pending_filter():
    return (
        PracticeInvite.accepted_at.is_(None),
        PracticeInvite.revoked_at.is_(None),
    )


def get_active_invite(db: Session, practice_id: uuid.UUID, email: str) -> PracticeInvite | None:
    """The pending invite for this practice + email, if any."""
    return (
        db.query(PracticeInvite)
        .filter(
            PracticeInvite.practice_id == practice_id,
            func.lower(PracticeInvite.email) == email.strip().lower(),
            *_pending_filter(),
        )
        .first()
    )


def list_invites(db: Session, practice_id: uuid.UUID) -> list[PracticeInvite]:
    """List all invites for a practice (including accepted/revoked for history)."""
    return (
        db.query(PracticeInvite)
        .filter(PracticeInvite.practice_id == practice_id)
        .order_by(PracticeInvite.created_at.desc())
        .limit(100)
        .all()
    )


def create_invite(
    db: Session,
    practice_id: uuid.UUID,
    email: str,
    role: MemberRole,
    invited_by_user_id: uuid.UUID,
    supabase_user_id: uuid.UUID | None,
    accepted: bool = False,
) -> PracticeInvite:
    """Create a new invitation row with a fresh token."""
    now = datetime.now(timezone.utc)
    invite = PracticeInvite(
        practice_id=practice_id,
        email=email.strip().lower(),
        role=role.value,
        invited_by_user_id=invited_by_user_id,
        supabase_user_id=supabase_user_id,
        token=generate_invite_token(),
        created_at=now,
        last_sent_at=now,
        accepted_at=now if accepted else None,
    )
    db.add(invite)
    db.flush()
    return invite


def accept_invite(invite: PracticeInvite) -> None:
    """Move a pending invite to accepted."""
    status = get_invite_status(invite)
    if status is not InviteStatus.PENDING:
        raise ConflictError(f"Invite is already {status.value}")
    invite.accepted_at = datetime.now(timezone.utc)


def revoke_invite(invite: PracticeInvite) -> None:
    """Move a pending invite to revoked."""
    status = get_invite_status(invite)
    if status is not InviteStatus.PENDING:
        raise ConflictError(f"Invite is already {status.value}")
    invite.revoked_at = datetime.now(timezone.utc)


def accept_pending_invites(db: Session, user_id: uuid.UUID, email: str | None) -> int:
    """
    Accept every pending invite naming this identity (by id or email).

    Called once the identity is confirmed. Returns invites accepted.
    """
    matches = [PracticeInvite.supabase_user_id == user_id]
    if email:
        matches.append(func.lower(PracticeInvite.email) == email.strip().lower())

    invites = (
        db.query(PracticeInvite)
        .filter(or_(*matches), *_pending_filter())
        .all()
    )
    for invite in invites:
        accept_invite(invite)
        if invite.supabase_user_id is None:
            invite.supabase_user_id = user_id
    if invites:
        db.flush()
        logger.info("Accepted %s pending invites for user %s", len(invites), user_id)
    return len(invites)


def revoke_pending_invites_for_user(db: Session, user_id: uuid.UUID) -> int:
    """Revoke pending invites that resolved to this user. Returns rows updated."""
    return (
        db.query(PracticeInvite)
        .filter(PracticeInvite.supabase_user_id == user_id, *_pending_filter())
        .update(
            {PracticeInvite.revoked_at: datetime.now(timezone.utc)},
            synchronize_session="fetch",
        )
    )


def detach_invitee(db: Session, user_id: uuid.UUID) -> int:
    """Null the invitee reference on every invite naming the user, keeping history."""
    return (
        db.query(PracticeInvite)
        .filter(PracticeInvite.supabase_user_id == user_id)
        .update({PracticeInvite.supabase_user_id: None}, synchronize_session="fetch")
    )
