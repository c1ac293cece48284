"""Admin audit log service - append-only record of privileged actions.

Entries are added to the caller's session so they commit (or roll back)
with the action they describe. Metadata carries human-readable identifiers
(emails, practice names) because the dashboard shows it to site admins;
never put tokens or secrets in it.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from archibill.db.enums import AuditAction
from archibill.db.models import AdminAuditLog
from archibill.schemas.auth import Actor

logger = logging.getLogger(__name__)

RECENT_AUDIT_LIMIT = 50


def log_admin_action(
    db: Session,
    action: AuditAction,
    actor: Actor | None,
    target_user_id: UUID | None = None,
    metadata: dict | None = None,
) -> AdminAuditLog:
    """
    Record a privileged action.

    Actor can be None for system-triggered actions. The actor's email is
    folded into metadata as actorEmail.
    """
    payload = {"actorEmail": actor.email if actor else None}
    payload.update(metadata or {})

    entry = AdminAuditLog(
        action=action.value,
        actor_user_id=actor.id if actor else None,
        target_user_id=target_user_id,
        metadata_=payload,
    )
    db.add(entry)
    return entry


def record_best_effort(
    db: Session,
    action: AuditAction,
    actor: Actor | None,
    target_user_id: UUID | None = None,
    metadata: dict | None = None,
) -> bool:
    """
    Write and commit an audit entry on its own.

    Used after provider-only mutations that already happened; a failed
    write is logged and reported as False instead of raised.
    """
    try:
        log_admin_action(db, action, actor, target_user_id=target_user_id, metadata=metadata)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "Failed to write %s audit entry for user %s", action.value, target_user_id
        )
        return False
    return True


def list_recent_audit_logs(db: Session, limit: int = RECENT_AUDIT_LIMIT) -> list[AdminAuditLog]:
    """Most recent entries first."""
    return (
        db.query(AdminAuditLog)
        .order_by(AdminAuditLog.created_at.desc())
        .limit(limit)
        .all()
    )


def serialize_audit_log(entry: AdminAuditLog) -> dict:
    return {
        "id": str(entry.id),
        "action": entry.action,
        "actor_user_id": str(entry.actor_user_id) if entry.actor_user_id else None,
        "target_user_id": str(entry.target_user_id) if entry.target_user_id else None,
        "metadata": entry.metadata_ or {},
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }
