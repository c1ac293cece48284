"""Admin workflows - cross-tenant user lifecycle for site administrators.

Ban/unban, password reset, user deletion, and practice role overrides.
Provider-side mutations come before store-side cleanup; deletion refuses
up front when it would orphan a practice.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from archibill.core.config import settings
from archibill.core.policies import parse_role
from archibill.core.structured_logging import build_log_context
from archibill.db.enums import AuditAction, BanMode
from archibill.schemas.actions import ActionResult
from archibill.schemas.admin import (
    AdminDashboard,
    AdminUserRead,
    AuditLogRead,
    PracticeMemberSummary,
    PracticeSummary,
)
from archibill.schemas.auth import Actor
from archibill.schemas.identity import ProviderUser
from archibill.services import (
    audit_service,
    invite_service,
    membership_service,
    ownership_service,
    practice_service,
    profile_service,
)
from archibill.services.action_boundary import action_boundary
from archibill.services.errors import AuthorizationDenied, OwnerInvariantViolation, ValidationError
from archibill.services.guards import require_site_admin
from archibill.services.identity_provider import (
    BAN_DURATION_NONE,
    BAN_DURATION_PERMANENT,
    LIST_USERS_PER_PAGE,
    IdentityProvider,
    IdentityProviderError,
    IdentityUserNotFound,
)
from archibill.services.saga import Saga, SagaStep
from archibill.utils.normalization import sanitize_input

logger = logging.getLogger(__name__)

EMAIL_MAX_LENGTH = 255


def _ban_state(user: ProviderUser | None) -> dict:
    if user is None:
        return {"banned": None, "banDuration": None, "bannedUntil": None}
    return {
        "banned": user.is_banned,
        "banDuration": user.ban_duration,
        "bannedUntil": user.banned_until.isoformat() if user.banned_until else None,
    }


def _sole_owner_message(practices: list[ownership_service.SoleOwnedPractice]) -> str:
    names = [practice.name for practice in practices if practice.name]
    listed = ", ".join(names) if names else "their practice"
    return f"Cannot delete user while they are the sole owner of {listed}. Transfer ownership first."


# =============================================================================
# Ban / unban
# =============================================================================

@action_boundary("Unable to update user")
async def ban_user(
    db: Session,
    provider: IdentityProvider,
    actor: Actor | None,
    user_id: UUID | None,
    mode: str | BanMode | None,
    email: str | None = None,
) -> ActionResult:
    """
    Ban (effectively permanently) or unban an identity.

    Memberships are left alone. A banned sole owner orphans their practice;
    that is flagged in the audit entry and the log but not blocked.
    """
    actor = require_site_admin(actor)
    if not user_id or mode not in (BanMode.BAN.value, BanMode.UNBAN.value):
        raise ValidationError("Invalid request")
    ban_mode = BanMode(mode)
    ban_duration = BAN_DURATION_PERMANENT if ban_mode is BanMode.BAN else BAN_DURATION_NONE

    async def load_target(ctx: dict) -> ProviderUser:
        return await provider.get_user_by_id(user_id)

    async def update_provider(ctx: dict) -> ProviderUser:
        return await provider.update_ban_state(user_id, ban_duration)

    saga = Saga(
        "ban_user",
        [
            SagaStep("load_target", load_target),
            SagaStep("update_provider", update_provider, point_of_no_return=True),
        ],
    )
    result = await saga.execute()
    before: ProviderUser = result["load_target"]
    after: ProviderUser = result["update_provider"]
    target_email = sanitize_input(email, EMAIL_MAX_LENGTH) or before.email

    sole_owned = []
    if ban_mode is BanMode.BAN:
        sole_owned = ownership_service.find_sole_owner_practices(db, user_id)
        if sole_owned:
            logger.warning(
                "Banned user is the sole owner of %s practice(s)",
                len(sole_owned),
                extra=build_log_context(actor_id=actor.id, target_user_id=user_id, action="ban_user"),
            )

    audit_service.record_best_effort(
        db,
        AuditAction.BAN if ban_mode is BanMode.BAN else AuditAction.UNBAN,
        actor,
        target_user_id=user_id,
        metadata={
            "targetEmail": target_email,
            "before": _ban_state(before),
            "after": _ban_state(after),
            "banDuration": after.ban_duration or ban_duration,
            "bannedUntil": after.banned_until.isoformat() if after.banned_until else None,
            "soleOwnerPracticeIds": [str(practice.practice_id) for practice in sole_owned],
        },
    )

    subject = f" {target_email}" if target_email else ""
    if ban_mode is BanMode.UNBAN:
        return ActionResult.success(f"Unbanned{subject}")
    until = after.banned_until.isoformat() if after.banned_until else ban_duration
    return ActionResult.success(f"Banned{subject} ({until})")


# =============================================================================
# Password reset
# =============================================================================

@action_boundary("Unable to send password reset")
async def send_password_reset(
    db: Session,
    provider: IdentityProvider,
    actor: Actor | None,
    email: str | None,
    user_id: UUID | None = None,
) -> ActionResult:
    """
    Trigger the provider's reset email.

    The banned check needs the identity, so it only runs when user_id is
    given; the email-only path skips it.
    """
    actor = require_site_admin(actor)
    target_email = sanitize_input(email, EMAIL_MAX_LENGTH)
    if not target_email:
        raise ValidationError("Missing email")

    if user_id:
        target = await provider.get_user_by_id(user_id)
        if target.is_banned:
            raise AuthorizationDenied("Cannot send password reset for banned users")

    await provider.reset_password_for_email(target_email, redirect_to=settings.reset_redirect_url)

    audit_service.record_best_effort(
        db,
        AuditAction.PASSWORD_RESET_REQUESTED,
        actor,
        target_user_id=user_id,
        metadata={"targetEmail": target_email},
    )
    return ActionResult.success(f"Password reset sent to {target_email}")


# =============================================================================
# Deletion
# =============================================================================

@action_boundary("Unable to delete user")
async def delete_user(
    db: Session,
    provider: IdentityProvider,
    actor: Actor | None,
    user_id: UUID | None,
) -> ActionResult:
    """
    Delete an identity and clean up everything the store holds for it.

    Steps:
        1. load the identity ("not found" tolerated: cleanup only)
        2. snapshot memberships; refuse if the user is a sole owner
        3. provider delete (point of no return, "not found" tolerated)
        4. one transaction: memberships, pending invites revoked, invitee
           references nulled, profile, audit entry
    """
    actor = require_site_admin(actor)
    if not user_id:
        raise ValidationError("User ID is required")
    if actor.id == user_id:
        raise AuthorizationDenied("You cannot delete your own account")

    async def load_target(ctx: dict) -> ProviderUser:
        return await provider.get_user_by_id(user_id)

    def check_ownership(ctx: dict) -> list[membership_service.MembershipSnapshot]:
        snapshot = membership_service.list_memberships_for_user(db, user_id)
        sole_owned = ownership_service.find_sole_owner_practices(db, user_id)
        if sole_owned:
            raise OwnerInvariantViolation(
                _sole_owner_message(sole_owned),
                practice_ids=[practice.practice_id for practice in sole_owned],
            )
        return snapshot

    async def delete_identity(ctx: dict) -> bool:
        await provider.delete_user(user_id)
        return True

    def cleanup_store(ctx: dict) -> None:
        target: ProviderUser | None = ctx["load_target"]
        snapshot = ctx["check_ownership"]
        membership_service.delete_memberships_for_user(db, user_id)
        invite_service.revoke_pending_invites_for_user(db, user_id)
        invite_service.detach_invitee(db, user_id)
        profile_service.delete_profile(db, user_id)
        audit_service.log_admin_action(
            db,
            AuditAction.USER_DELETED,
            actor,
            target_user_id=user_id,
            metadata={
                "targetEmail": target.email if target else None,
                "userWasFound": target is not None and ctx["delete_identity"] is not None,
                "memberships": [membership.as_audit_dict() for membership in snapshot],
            },
        )
        db.commit()

    saga = Saga(
        "delete_user",
        [
            SagaStep("load_target", load_target, tolerate=(IdentityUserNotFound,)),
            SagaStep("check_ownership", check_ownership),
            SagaStep(
                "delete_identity",
                delete_identity,
                tolerate=(IdentityUserNotFound,),
                point_of_no_return=True,
            ),
            SagaStep("cleanup_store", cleanup_store),
        ],
    )
    result = await saga.execute()

    logger.info(
        "User deleted",
        extra=build_log_context(actor_id=actor.id, target_user_id=user_id, action="delete_user"),
    )
    target = result["load_target"]
    if target and target.email:
        return ActionResult.success(f"Deleted {target.email}")
    return ActionResult.success("Deleted")


# =============================================================================
# Role override
# =============================================================================

@action_boundary("Unable to update member role")
async def update_practice_member_role(
    db: Session,
    actor: Actor | None,
    practice_id: UUID,
    member_user_id: UUID,
    role: str | None,
) -> ActionResult:
    """Site-admin role change; same decision procedure as practice settings."""
    actor = require_site_admin(actor)
    new_role = parse_role(role)
    if new_role is None:
        raise ValidationError("Invalid role")

    previous_role, changed = ownership_service.apply_role_change(
        db,
        practice_id,
        member_user_id,
        new_role,
        actor_user_id=actor.id,
    )
    if not changed:
        return ActionResult.success(f"Role already set to {new_role.value}")

    audit_service.log_admin_action(
        db,
        AuditAction.PRACTICE_MEMBER_ROLE_UPDATED,
        actor,
        target_user_id=member_user_id,
        metadata={
            "practiceId": str(practice_id),
            "previousRole": previous_role,
            "newRole": new_role.value,
            "source": "admin",
        },
    )
    db.commit()
    return ActionResult.success(f"Member role updated to {new_role.value}")


# =============================================================================
# Dashboard
# =============================================================================

def _user_status(user: ProviderUser) -> str:
    if user.is_banned:
        return "banned"
    if user.is_confirmed:
        return "active"
    return "unconfirmed"


async def get_admin_dashboard(
    db: Session,
    provider: IdentityProvider,
    actor: Actor | None,
) -> AdminDashboard:
    """
    Users, practices with members, and recent audit entries.

    A provider failure still returns the store-side sections, with the
    provider's message in `error`.
    """
    require_site_admin(actor)

    error = None
    users: list[ProviderUser] = []
    try:
        users = await provider.list_users(page=1, per_page=LIST_USERS_PER_PAGE)
    except IdentityProviderError as exc:
        logger.warning("Admin dashboard could not list users: %s", exc.message)
        error = exc.message

    profiles = profile_service.get_profiles(db, [user.id for user in users])
    user_rows = [
        AdminUserRead(
            id=user.id,
            email=user.email,
            full_name=profiles[user.id].full_name if user.id in profiles else None,
            status=_user_status(user),
            is_banned=user.is_banned,
            created_at=user.created_at,
            last_sign_in_at=user.last_sign_in_at,
            providers=user.providers,
        )
        for user in users
    ]

    practices = []
    for practice, member_count in practice_service.list_practices_with_member_counts(db):
        members = [
            PracticeMemberSummary(
                user_id=member.user_id,
                full_name=profile.full_name if profile else None,
                role=member.role,
                joined_at=member.created_at,
            )
            for member, profile in membership_service.list_members_with_profiles(db, practice.id)
        ]
        practices.append(
            PracticeSummary(
                id=practice.id,
                name=practice.name,
                slug=practice.slug,
                billing_email=practice.billing_email,
                currency=practice.currency,
                timezone=practice.timezone,
                member_count=member_count,
                created_at=practice.created_at,
                updated_at=practice.updated_at,
                members=members,
            )
        )

    audit_logs = [
        AuditLogRead(**audit_service.serialize_audit_log(entry))
        for entry in audit_service.list_recent_audit_logs(db)
    ]

    return AdminDashboard(users=user_rows, practices=practices, audit_logs=audit_logs, error=error)
