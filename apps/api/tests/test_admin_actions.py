"""Tests for site-admin workflows: ban, password reset, deletion, role overrides."""

import uuid

import pytest

from archibill.db.enums import AuditAction, InviteStatus, MemberRole
from archibill.db.models import AdminAuditLog, PracticeInvite, PracticeMember, Profile
from archibill.services import admin_actions, invite_service
from archibill.services.identity_provider import IdentityProviderError


def _audit(db, action: AuditAction) -> list[AdminAuditLog]:
    db.expire_all()
    return db.query(AdminAuditLog).filter(AdminAuditLog.action == action.value).all()


# =============================================================================
# Admin gate
# =============================================================================

@pytest.mark.asyncio
async def test_non_admin_is_refused_everywhere(db, provider, build_practice):
    acme = build_practice("Acme", alice="owner", carol="member")
    alice = acme.actor("alice")
    carol_id = acme.user_id("carol")

    results = [
        await admin_actions.ban_user(db, provider, alice, carol_id, "ban"),
        await admin_actions.send_password_reset(db, provider, alice, "x@example.com"),
        await admin_actions.delete_user(db, provider, alice, carol_id),
        await admin_actions.update_practice_member_role(
            db, alice, acme.practice.id, carol_id, "admin"
        ),
    ]

    assert [r.message for r in results] == ["Admin access required"] * 4
    assert provider.calls == []


@pytest.mark.asyncio
async def test_anonymous_is_not_authenticated(db, provider):
    result = await admin_actions.delete_user(db, provider, None, uuid.uuid4())

    assert result.message == "Not authenticated"


# =============================================================================
# Ban / unban
# =============================================================================

@pytest.mark.asyncio
async def test_ban_records_before_and_after(db, provider, admin_actor, build_practice, member_role):
    acme = build_practice("Acme", alice="owner", carol="member")
    carol_id = acme.user_id("carol")

    result = await admin_actions.ban_user(db, provider, admin_actor, carol_id, "ban")

    assert result.ok
    assert result.message.startswith(f"Banned {acme.users['carol'].email} (")
    assert provider.users[carol_id].is_banned
    assert ("update_ban_state", (carol_id, "87600h")) in provider.calls
    # memberships are untouched
    assert member_role(acme.practice.id, carol_id) == "member"

    entry = _audit(db, AuditAction.BAN)[0]
    assert entry.actor_user_id == admin_actor.id
    assert entry.target_user_id == carol_id
    assert entry.metadata_["before"]["banned"] is False
    assert entry.metadata_["after"]["banned"] is True
    assert entry.metadata_["soleOwnerPracticeIds"] == []
    assert entry.metadata_["actorEmail"] == "admin@archibill.test"


@pytest.mark.asyncio
async def test_banning_sole_owner_is_flagged_not_blocked(db, provider, admin_actor, build_practice):
    acme = build_practice("Acme", alice="owner")

    result = await admin_actions.ban_user(db, provider, admin_actor, acme.user_id("alice"), "ban")

    assert result.ok
    entry = _audit(db, AuditAction.BAN)[0]
    assert entry.metadata_["soleOwnerPracticeIds"] == [str(acme.practice.id)]


@pytest.mark.asyncio
async def test_unban(db, provider, admin_actor):
    user = provider.add_user("banned@example.com", banned=True)

    result = await admin_actions.ban_user(
        db, provider, admin_actor, user.id, "unban", email="banned@example.com"
    )

    assert result.message == "Unbanned banned@example.com"
    assert not provider.users[user.id].is_banned
    entry = _audit(db, AuditAction.UNBAN)[0]
    assert entry.metadata_["before"]["banned"] is True
    assert entry.metadata_["after"]["banned"] is False


@pytest.mark.parametrize("mode", [None, "suspend"])
@pytest.mark.asyncio
async def test_ban_rejects_unknown_mode(db, provider, admin_actor, mode):
    user = provider.add_user("someone@example.com")

    result = await admin_actions.ban_user(db, provider, admin_actor, user.id, mode)

    assert result.message == "Invalid request"
    assert provider.calls == []


@pytest.mark.asyncio
async def test_ban_unknown_user_reports_provider_message(db, provider, admin_actor):
    result = await admin_actions.ban_user(db, provider, admin_actor, uuid.uuid4(), "ban")

    assert result.status == "error"
    assert result.message == "User not found"
    assert not provider.called("update_ban_state")
    assert _audit(db, AuditAction.BAN) == []


# =============================================================================
# Password reset
# =============================================================================

@pytest.mark.asyncio
async def test_reset_for_banned_user_is_refused(db, provider, admin_actor):
    user = provider.add_user("banned@example.com", banned=True)

    result = await admin_actions.send_password_reset(
        db, provider, admin_actor, "banned@example.com", user_id=user.id
    )

    assert result.message == "Cannot send password reset for banned users"
    assert not provider.called("reset_password_for_email")
    assert _audit(db, AuditAction.PASSWORD_RESET_REQUESTED) == []


@pytest.mark.asyncio
async def test_reset_with_user_id(db, provider, admin_actor):
    user = provider.add_user("active@example.com")

    result = await admin_actions.send_password_reset(
        db, provider, admin_actor, "active@example.com", user_id=user.id
    )

    assert result.message == "Password reset sent to active@example.com"
    assert (
        "reset_password_for_email",
        ("active@example.com", "http://app.test/auth/update-password"),
    ) in provider.calls
    entry = _audit(db, AuditAction.PASSWORD_RESET_REQUESTED)[0]
    assert entry.target_user_id == user.id
    assert entry.metadata_["targetEmail"] == "active@example.com"


@pytest.mark.asyncio
async def test_reset_by_email_only_skips_banned_check(db, provider, admin_actor):
    result = await admin_actions.send_password_reset(db, provider, admin_actor, "anyone@example.com")

    assert result.ok
    assert not provider.called("get_user_by_id")
    assert _audit(db, AuditAction.PASSWORD_RESET_REQUESTED)[0].target_user_id is None


@pytest.mark.asyncio
async def test_reset_requires_email(db, provider, admin_actor):
    result = await admin_actions.send_password_reset(db, provider, admin_actor, "  ")

    assert result.message == "Missing email"


# =============================================================================
# Deletion
# =============================================================================

@pytest.mark.asyncio
async def test_sole_owner_cannot_be_deleted(db, provider, admin_actor, build_practice, member_role):
    acme = build_practice("Acme Architects", bob="owner")
    bob_id = acme.user_id("bob")

    result = await admin_actions.delete_user(db, provider, admin_actor, bob_id)

    assert result.status == "error"
    assert result.message == (
        "Cannot delete user while they are the sole owner of Acme Architects. "
        "Transfer ownership first."
    )
    assert not provider.called("delete_user")
    assert bob_id in provider.users
    assert member_role(acme.practice.id, bob_id) == "owner"
    assert db.get(Profile, bob_id) is not None
    assert _audit(db, AuditAction.USER_DELETED) == []


@pytest.mark.asyncio
async def test_delete_cleans_up_store(db, provider, admin_actor, build_practice, add_membership):
    acme = build_practice("Acme", alice="owner", carol="member")
    beta = build_practice("Beta", dave="owner")
    carol = acme.users["carol"]
    add_membership(beta.practice, carol, "viewer")

    pending = invite_service.create_invite(
        db, beta.practice.id, carol.email, MemberRole.VIEWER, beta.user_id("dave"), carol.id
    )
    accepted = invite_service.create_invite(
        db, acme.practice.id, carol.email, MemberRole.MEMBER, acme.user_id("alice"), carol.id,
        accepted=True,
    )
    db.commit()

    result = await admin_actions.delete_user(db, provider, admin_actor, carol.id)

    assert result.message == f"Deleted {carol.email}"
    assert carol.id not in provider.users
    db.expire_all()
    assert db.query(PracticeMember).filter(PracticeMember.user_id == carol.id).count() == 0
    assert db.get(Profile, carol.id) is None

    pending_row = db.get(PracticeInvite, pending.id)
    accepted_row = db.get(PracticeInvite, accepted.id)
    assert invite_service.get_invite_status(pending_row) is InviteStatus.REVOKED
    assert invite_service.get_invite_status(accepted_row) is InviteStatus.ACCEPTED
    assert pending_row.supabase_user_id is None
    assert accepted_row.supabase_user_id is None

    entry = _audit(db, AuditAction.USER_DELETED)[0]
    assert entry.target_user_id == carol.id
    assert entry.metadata_["targetEmail"] == carol.email
    assert entry.metadata_["userWasFound"] is True
    assert sorted(m["role"] for m in entry.metadata_["memberships"]) == ["member", "viewer"]
    assert {m["practiceName"] for m in entry.metadata_["memberships"]} == {"Acme", "Beta"}


@pytest.mark.asyncio
async def test_co_owner_can_be_deleted(db, provider, admin_actor, build_practice, member_role):
    acme = build_practice("Acme", alice="owner", bob="owner")

    result = await admin_actions.delete_user(db, provider, admin_actor, acme.user_id("bob"))

    assert result.ok
    assert member_role(acme.practice.id, acme.user_id("bob")) is None
    assert member_role(acme.practice.id, acme.user_id("alice")) == "owner"


@pytest.mark.asyncio
async def test_delete_of_missing_identity_still_cleans_up(db, provider, admin_actor, build_practice):
    acme = build_practice("Acme", alice="owner", carol="member")
    carol_id = acme.user_id("carol")
    del provider.users[carol_id]

    result = await admin_actions.delete_user(db, provider, admin_actor, carol_id)

    assert result.message == "Deleted"
    db.expire_all()
    assert db.query(PracticeMember).filter(PracticeMember.user_id == carol_id).count() == 0
    entry = _audit(db, AuditAction.USER_DELETED)[0]
    assert entry.metadata_["userWasFound"] is False
    assert entry.metadata_["targetEmail"] is None


@pytest.mark.asyncio
async def test_provider_delete_failure_leaves_store_alone(db, provider, admin_actor, build_practice, member_role):
    acme = build_practice("Acme", alice="owner", carol="member")
    carol_id = acme.user_id("carol")
    provider.fail_with["delete_user"] = IdentityProviderError("Database error deleting user", 500)

    result = await admin_actions.delete_user(db, provider, admin_actor, carol_id)

    assert result.status == "error"
    assert result.message == "Database error deleting user"
    assert member_role(acme.practice.id, carol_id) == "member"
    assert _audit(db, AuditAction.USER_DELETED) == []


@pytest.mark.asyncio
async def test_store_cleanup_failure_rolls_back_everything(
    db, provider, admin_actor, build_practice, member_role, monkeypatch
):
    acme = build_practice("Acme", alice="owner", bob="member")
    bob_id = acme.user_id("bob")

    def fail_detach(db, user_id):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(invite_service, "detach_invitee", fail_detach)

    result = await admin_actions.delete_user(db, provider, admin_actor, bob_id)

    assert result.status == "error"
    assert result.message == "Unable to delete user"
    assert member_role(acme.practice.id, bob_id) == "member"
    assert db.get(Profile, bob_id) is not None
    assert _audit(db, AuditAction.USER_DELETED) == []


@pytest.mark.asyncio
async def test_admin_cannot_delete_self(db, provider, admin_actor):
    result = await admin_actions.delete_user(db, provider, admin_actor, admin_actor.id)

    assert result.message == "You cannot delete your own account"
    assert not provider.called("delete_user")


# =============================================================================
# Role override
# =============================================================================

@pytest.mark.asyncio
async def test_admin_role_override_is_audited(db, admin_actor, build_practice, member_role):
    acme = build_practice("Acme", alice="owner", carol="member")

    result = await admin_actions.update_practice_member_role(
        db, admin_actor, acme.practice.id, acme.user_id("carol"), "owner"
    )

    assert result.message == "Member role updated to owner"
    assert member_role(acme.practice.id, acme.user_id("carol")) == "owner"
    entry = _audit(db, AuditAction.PRACTICE_MEMBER_ROLE_UPDATED)[0]
    assert entry.metadata_["source"] == "admin"
    assert entry.metadata_["previousRole"] == "member"


@pytest.mark.asyncio
async def test_admin_cannot_remove_last_owner(db, admin_actor, build_practice, member_role):
    acme = build_practice("Acme", alice="owner")

    result = await admin_actions.update_practice_member_role(
        db, admin_actor, acme.practice.id, acme.user_id("alice"), "viewer"
    )

    assert result.message == "A practice must have at least one owner"
    assert member_role(acme.practice.id, acme.user_id("alice")) == "owner"


@pytest.mark.asyncio
async def test_admin_role_override_same_role(db, admin_actor, build_practice):
    acme = build_practice("Acme", alice="owner")

    result = await admin_actions.update_practice_member_role(
        db, admin_actor, acme.practice.id, acme.user_id("alice"), "OWNER"
    )

    assert result.ok
    assert result.message == "Role already set to owner"


# =============================================================================
# Dashboard
# =============================================================================

@pytest.mark.asyncio
async def test_dashboard_lists_users_practices_and_audit(db, provider, admin_actor, build_practice):
    acme = build_practice("Acme", alice="owner", carol="member")
    provider.add_user("pending@example.com", confirmed=False)
    provider.add_user("banned@example.com", banned=True)
    await admin_actions.ban_user(db, provider, admin_actor, acme.user_id("carol"), "ban")

    dashboard = await admin_actions.get_admin_dashboard(db, provider, admin_actor)

    assert dashboard.error is None
    statuses = {user.email: user.status for user in dashboard.users}
    assert statuses["pending@example.com"] == "unconfirmed"
    assert statuses["banned@example.com"] == "banned"
    assert statuses[acme.users["alice"].email] == "active"
    assert statuses[acme.users["carol"].email] == "banned"
    names = {user.email: user.full_name for user in dashboard.users}
    assert names[acme.users["alice"].email] == "Alice"

    practice = dashboard.practices[0]
    assert practice.member_count == 2
    assert {m.role for m in practice.members} == {"owner", "member"}
    assert [log.action for log in dashboard.audit_logs] == ["ban"]


@pytest.mark.asyncio
async def test_dashboard_keeps_store_sections_on_provider_error(db, provider, admin_actor, build_practice):
    build_practice("Acme", alice="owner")
    provider.fail_with["list_users"] = IdentityProviderError("Service unavailable", 503)

    dashboard = await admin_actions.get_admin_dashboard(db, provider, admin_actor)

    assert dashboard.error == "Service unavailable"
    assert dashboard.users == []
    assert len(dashboard.practices) == 1
