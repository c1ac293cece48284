"""Practice workflows - create, update, role changes, and invitations.

Each workflow takes the acting user explicitly, checks policy before any
I/O, and returns an ActionResult through the action boundary. Store writes
of one workflow (audit entry included) commit together.
"""

import asyncio
import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from archibill.core.config import settings
from archibill.core.policies import (
    can_change_role,
    can_manage_members,
    can_manage_practice,
    denial_reason,
    parse_role,
)
from archibill.core.structured_logging import build_log_context
from archibill.db.enums import DEFAULT_CURRENCY, DEFAULT_TIMEZONE, AuditAction, MemberRole
from archibill.schemas.actions import ActionResult
from archibill.schemas.auth import Actor
from archibill.schemas.identity import ProviderUser
from archibill.schemas.practice import (
    PracticeInviteRead,
    PracticeMemberRead,
    PracticeOverview,
    PracticeRead,
)
from archibill.services import (
    audit_service,
    invite_service,
    membership_service,
    ownership_service,
    practice_service,
    profile_service,
)
from archibill.services.action_boundary import action_boundary
from archibill.services.errors import (
    AuthorizationDenied,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from archibill.services.guards import require_actor
from archibill.services.identity_provider import (
    IdentityProvider,
    IdentityProviderError,
    IdentityUserAlreadyRegistered,
)
from archibill.services.saga import Saga, SagaStep
from archibill.utils.normalization import (
    is_valid_email,
    is_valid_timezone,
    normalize_email,
    sanitize_input,
)

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 120
BILLING_EMAIL_MAX_LENGTH = 255
CURRENCY_MAX_LENGTH = 10
TIMEZONE_MAX_LENGTH = 100
INVITE_EMAIL_MAX_LENGTH = 255


@dataclass(frozen=True)
class PracticeFields:
    name: str
    billing_email: str | None
    currency: str
    timezone: str


def clean_practice_fields(
    name: str | None,
    billing_email: str | None,
    currency: str | None,
    timezone_name: str | None,
) -> PracticeFields:
    """
    Sanitize practice profile input.

    Raises:
        ValidationError: empty name or unknown timezone
    """
    cleaned_name = sanitize_input(name, NAME_MAX_LENGTH)
    cleaned_email = sanitize_input(billing_email, BILLING_EMAIL_MAX_LENGTH)
    cleaned_currency = sanitize_input(currency or DEFAULT_CURRENCY, CURRENCY_MAX_LENGTH).upper()
    cleaned_timezone = sanitize_input(timezone_name or DEFAULT_TIMEZONE, TIMEZONE_MAX_LENGTH)

    if not cleaned_name:
        raise ValidationError("Practice name is required")

    cleaned_timezone = cleaned_timezone or DEFAULT_TIMEZONE
    if not is_valid_timezone(cleaned_timezone):
        raise ValidationError("Invalid timezone")

    return PracticeFields(
        name=cleaned_name,
        billing_email=cleaned_email or None,
        currency=cleaned_currency or DEFAULT_CURRENCY,
        timezone=cleaned_timezone,
    )


# =============================================================================
# Practice profile
# =============================================================================

@action_boundary("Unable to create practice")
async def create_practice(
    db: Session,
    actor: Actor | None,
    name: str | None,
    billing_email: str | None = None,
    currency: str | None = None,
    timezone_name: str | None = None,
) -> ActionResult:
    """Create a practice with the actor as its first owner."""
    actor = require_actor(actor)
    fields = clean_practice_fields(name, billing_email, currency, timezone_name)

    if membership_service.has_any_membership(db, actor.id):
        raise ConflictError("You already belong to a practice")

    slug = practice_service.generate_unique_slug(db, fields.name)
    practice = practice_service.create_practice(
        db,
        name=fields.name,
        slug=slug,
        billing_email=fields.billing_email,
        currency=fields.currency,
        timezone_name=fields.timezone,
    )
    membership_service.add_member(db, practice.id, actor.id, MemberRole.OWNER)
    profile_service.set_default_practice(db, actor.id, practice.id, overwrite=True)
    audit_service.log_admin_action(
        db,
        AuditAction.PRACTICE_CREATED,
        actor,
        metadata={
            "practiceId": str(practice.id),
            "practiceName": practice.name,
            "slug": practice.slug,
        },
    )
    db.commit()

    logger.info(
        "Practice created",
        extra=build_log_context(actor_id=actor.id, practice_id=practice.id, action="create_practice"),
    )
    return ActionResult.success("Practice created")


@action_boundary("Unable to update practice")
async def update_practice(
    db: Session,
    actor: Actor | None,
    practice_id: UUID,
    name: str | None,
    billing_email: str | None = None,
    currency: str | None = None,
    timezone_name: str | None = None,
) -> ActionResult:
    """Owners and admins edit the practice profile. Slug never changes."""
    actor = require_actor(actor)
    role = membership_service.get_member_role(db, practice_id, actor.id)
    denial = denial_reason("manage_practice", role)
    if denial:
        raise AuthorizationDenied(denial)

    fields = clean_practice_fields(name, billing_email, currency, timezone_name)
    practice = practice_service.get_practice_by_id(db, practice_id)
    if not practice:
        raise NotFoundError("Practice not found")

    changes = practice_service.update_practice(
        db,
        practice,
        name=fields.name,
        billing_email=fields.billing_email,
        currency=fields.currency,
        timezone_name=fields.timezone,
    )
    audit_service.log_admin_action(
        db,
        AuditAction.PRACTICE_UPDATED,
        actor,
        metadata={
            "practiceId": str(practice.id),
            "practiceName": practice.name,
            "changes": changes,
        },
    )
    db.commit()
    return ActionResult.success("Practice updated")


# =============================================================================
# Members
# =============================================================================

@action_boundary("Unable to update member role")
async def change_member_role(
    db: Session,
    actor: Actor | None,
    practice_id: UUID,
    member_user_id: UUID,
    role: str | MemberRole | None,
) -> ActionResult:
    """Owner-only role change from practice settings."""
    actor = require_actor(actor)
    new_role = parse_role(role)
    if new_role is None:
        raise ValidationError("Invalid role")

    actor_role = membership_service.get_member_role(db, practice_id, actor.id)
    target_role = membership_service.get_member_role(db, practice_id, member_user_id)
    if not can_change_role(actor_role, target_role, new_role):
        if target_role is None and can_manage_members(actor_role):
            raise NotFoundError("Member not found")
        raise AuthorizationDenied(denial_reason("change_role", actor_role))

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
            "source": "practice_settings",
        },
    )
    db.commit()
    return ActionResult.success(f"Member role updated to {new_role.value}")


@action_boundary("Unable to invite member")
async def invite_member(
    db: Session,
    provider: IdentityProvider,
    actor: Actor | None,
    practice_id: UUID,
    email: str | None,
    role: str | MemberRole | None,
) -> ActionResult:
    """
    Invite someone by email, or attach an existing account.

    Steps:
        1. provider invite (point of no return); "already registered" is tolerated
        2. resolve the identity, paging the user list for existing accounts
        3. one transaction: membership, invitee profile, invite row, audit
    """
    actor = require_actor(actor)
    invite_email = normalize_email(sanitize_input(email, INVITE_EMAIL_MAX_LENGTH))
    if not is_valid_email(invite_email):
        raise ValidationError("Enter a valid email address")

    invite_role = parse_role(role)
    if invite_role is None:
        raise ValidationError("Invalid role")

    actor_role = membership_service.get_member_role(db, practice_id, actor.id)
    denial = denial_reason("invite_members", actor_role)
    if denial:
        raise AuthorizationDenied(denial)

    practice = practice_service.get_practice_by_id(db, practice_id)
    if not practice:
        raise NotFoundError("Practice not found")

    if invite_service.get_active_invite(db, practice_id, invite_email):
        raise ConflictError(f"An invite has already been sent to {invite_email}")

    async def send_invite(ctx: dict) -> ProviderUser:
        return await provider.invite_user_by_email(
            invite_email,
            redirect_to=settings.invite_redirect_url,
            data={"practice_id": str(practice_id), "role": invite_role.value},
        )

    async def resolve_identity(ctx: dict) -> ProviderUser:
        if ctx["provider_invite"] is not None:
            return ctx["provider_invite"]
        existing = await provider.find_user_by_email(invite_email)
        if existing is None:
            raise NotFoundError(f"Unable to locate existing account for {invite_email}")
        return existing

    def persist(ctx: dict) -> None:
        invitee: ProviderUser = ctx["resolve_identity"]
        if membership_service.get_membership(db, practice_id, invitee.id):
            raise ConflictError(f"{invite_email} is already a member of this practice")

        # invite rows reference the inviter's profile
        profile_service.ensure_profile(db, actor.id)
        membership_service.add_member(db, practice_id, invitee.id, invite_role, invited_by=actor.id)
        profile_service.set_default_practice(db, invitee.id, practice_id, overwrite=False)
        invite = invite_service.create_invite(
            db,
            practice_id=practice_id,
            email=invite_email,
            role=invite_role,
            invited_by_user_id=actor.id,
            supabase_user_id=invitee.id,
            accepted=invitee.is_confirmed,
        )
        audit_service.log_admin_action(
            db,
            AuditAction.PRACTICE_MEMBER_INVITED,
            actor,
            target_user_id=invitee.id,
            metadata={
                "practiceId": str(practice_id),
                "practiceName": practice.name,
                "invitedEmail": invite_email,
                "role": invite_role.value,
                "inviteId": str(invite.id),
                "existingUser": ctx["provider_invite"] is None,
            },
        )
        db.commit()

    saga = Saga(
        "invite_member",
        [
            SagaStep(
                "provider_invite",
                send_invite,
                tolerate=(IdentityUserAlreadyRegistered,),
                point_of_no_return=True,
            ),
            SagaStep("resolve_identity", resolve_identity),
            SagaStep("persist", persist),
        ],
    )
    result = await saga.execute()

    if result["provider_invite"] is None:
        return ActionResult.success(f"Added existing user {invite_email} to the practice")
    return ActionResult.success(f"Invitation sent to {invite_email}")


def accept_pending_invites(db: Session, provider_user: ProviderUser) -> int:
    """Mark invites for a freshly confirmed identity as accepted."""
    if not provider_user.is_confirmed:
        return 0
    accepted = invite_service.accept_pending_invites(
        db, provider_user.id, provider_user.normalized_email
    )
    db.commit()
    return accepted


# =============================================================================
# Read model
# =============================================================================

async def _lookup_email(provider: IdentityProvider, user_id: UUID) -> str | None:
    try:
        user = await provider.get_user_by_id(user_id)
    except IdentityProviderError as exc:
        logger.warning("Could not load identity %s for overview: %s", user_id, exc.message)
        return None
    return user.email


async def get_practice_overview(
    db: Session,
    provider: IdentityProvider,
    actor: Actor,
) -> PracticeOverview:
    """Practice, members, and (for owners) invites for the actor's default practice."""
    primary = membership_service.get_primary_membership(db, actor.id)
    if primary is None:
        return PracticeOverview()

    membership, practice = primary
    rows = membership_service.list_members_with_profiles(db, practice.id)
    emails = await asyncio.gather(
        *(_lookup_email(provider, member.user_id) for member, _ in rows)
    )

    members = [
        PracticeMemberRead(
            user_id=member.user_id,
            full_name=profile.full_name if profile else None,
            email=email,
            role=member.role,
            joined_at=member.created_at,
        )
        for (member, profile), email in zip(rows, emails)
    ]

    manages_members = can_manage_members(membership.role)
    invites = []
    if manages_members:
        invites = [
            PracticeInviteRead(
                id=invite.id,
                email=invite.email,
                role=invite.role,
                status=invite_service.get_invite_status(invite).value,
                created_at=invite.created_at,
                accepted_at=invite.accepted_at,
            )
            for invite in invite_service.list_invites(db, practice.id)
        ]

    return PracticeOverview(
        practice=PracticeRead(
            id=practice.id,
            name=practice.name,
            slug=practice.slug,
            billing_email=practice.billing_email,
            currency=practice.currency,
            timezone=practice.timezone,
        ),
        role=membership.role,
        can_edit_practice=can_manage_practice(membership.role),
        can_manage_members=manages_members,
        members=members,
        invites=invites,
    )
