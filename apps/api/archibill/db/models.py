"""SQLAlchemy ORM models for practices, membership, invites, profiles, and audit."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, ForeignKey, Index, String, Text, UniqueConstraint, Uuid, event, func, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from archibill.db.base import Base
from archibill.db.enums import DEFAULT_CURRENCY, DEFAULT_MEMBER_ROLE, DEFAULT_TIMEZONE


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Tenant Models
# =============================================================================

class Practice(Base):
    """
    A tenant organization (the billing customer's account).

    Owns its members and invites; both are removed with the practice.
    """
    __tablename__ = "practices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    billing_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    currency: Mapped[str] = mapped_column(
        String(10),
        default=DEFAULT_CURRENCY,
        server_default=text(f"'{DEFAULT_CURRENCY}'"),
        nullable=False,
    )
    timezone: Mapped[str] = mapped_column(
        String(100),
        default=DEFAULT_TIMEZONE,
        server_default=text(f"'{DEFAULT_TIMEZONE}'"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    members: Mapped[list["PracticeMember"]] = relationship(
        back_populates="practice",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    invites: Mapped[list["PracticeInvite"]] = relationship(
        back_populates="practice",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Profile(Base):
    """
    1:1 extension of an identity-provider user.

    The identity provider owns the user; the default practice reference is
    nulled (not cascaded) when the practice goes away.
    """
    __tablename__ = "profiles"
    __table_args__ = (
        Index("profiles_default_practice_idx", "default_practice_id"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    default_practice_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("practices.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    default_practice: Mapped["Practice | None"] = relationship()


class PracticeMember(Base):
    """
    Links a user to a practice with a role.

    Constraint: UNIQUE(practice_id, user_id) - one role per user per practice.
    Every practice keeps at least one owner (enforced by ownership_service).
    """
    __tablename__ = "practice_members"
    __table_args__ = (
        UniqueConstraint("practice_id", "user_id", name="practice_members_practice_id_user_id_key"),
        Index("practice_members_practice_idx", "practice_id"),
        Index("practice_members_user_idx", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    practice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("practices.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    role: Mapped[str] = mapped_column(
        String(20),
        default=DEFAULT_MEMBER_ROLE.value,
        server_default=text(f"'{DEFAULT_MEMBER_ROLE.value}'"),
        nullable=False,
    )
    invited_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    practice: Mapped["Practice"] = relationship(back_populates="members")


class PracticeInvite(Base):
    """
    Record of an invitation to join a practice.

    Constraint: one active (not accepted, not revoked) invite per practice+email.
    Status is derived from accepted_at / revoked_at, see invite_service.
    """
    __tablename__ = "practice_invites"
    __table_args__ = (
        Index("practice_invites_practice_idx", "practice_id"),
        Index("practice_invites_email_idx", "email"),
        Index(
            "practice_invites_active_email_key",
            "practice_id",
            "email",
            unique=True,
            postgresql_where=text("accepted_at IS NULL AND revoked_at IS NULL"),
            sqlite_where=text("accepted_at IS NULL AND revoked_at IS NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    practice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("practices.id", ondelete="CASCADE"),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20),
        default=DEFAULT_MEMBER_ROLE.value,
        server_default=text(f"'{DEFAULT_MEMBER_ROLE.value}'"),
        nullable=False,
    )
    invited_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("profiles.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    supabase_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    last_sent_at: Mapped[datetime] = mapped_column(
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(nullable=True)

    practice: Mapped["Practice"] = relationship(back_populates="invites")


# =============================================================================
# Audit Trail
# =============================================================================

class AdminAuditLog(Base):
    """
    Append-only record of privileged actions.

    Rows are never updated or deleted. Actor is None for system actions.
    """
    __tablename__ = "admin_audit_logs"
    __table_args__ = (
        Index("admin_audit_logs_created_idx", "created_at"),
        Index("admin_audit_logs_target_idx", "target_user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    action: Mapped[str] = mapped_column(String(50), nullable=False)  # AuditAction
    actor_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    target_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )


class AuditLogImmutableError(RuntimeError):
    """Raised when something tries to rewrite audit history."""


@event.listens_for(AdminAuditLog, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise AuditLogImmutableError("Audit log entries cannot be modified")


@event.listens_for(AdminAuditLog, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise AuditLogImmutableError("Audit log entries cannot be deleted")
