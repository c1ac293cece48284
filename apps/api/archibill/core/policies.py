"""Practice authorization policy.

Pure functions over role state: no I/O, no exceptions. Workflows ask these
before touching the store and raise AuthorizationDenied with the reason.
The owner invariant is not checked here, see ownership_service.
"""

from dataclasses import dataclass

from archibill.db.enums import (
    ROLES_CAN_MANAGE_MEMBERS,
    ROLES_CAN_MANAGE_PRACTICE,
    MemberRole,
)


@dataclass(frozen=True)
class ActionPolicy:
    """Roles allowed to perform an action + the message shown otherwise."""

    allowed: frozenset[MemberRole]
    denial: str


POLICIES: dict[str, ActionPolicy] = {
    "manage_practice": ActionPolicy(
        allowed=frozenset(ROLES_CAN_MANAGE_PRACTICE),
        denial="You do not have permission to update this practice",
    ),
    "change_role": ActionPolicy(
        allowed=frozenset(ROLES_CAN_MANAGE_MEMBERS),
        denial="Only practice owners can change member roles",
    ),
    "invite_members": ActionPolicy(
        allowed=frozenset(ROLES_CAN_MANAGE_MEMBERS),
        denial="Only practice owners can invite members",
    ),
}


def parse_role(value: str | MemberRole | None) -> MemberRole | None:
    """Return the MemberRole for a raw value, or None when unknown."""
    if isinstance(value, MemberRole):
        return value
    if value is None:
        return None
    value = value.strip().lower()
    if not MemberRole.has_value(value):
        return None
    return MemberRole(value)


def can_manage_practice(role: str | MemberRole | None) -> bool:
    """Owners and admins can edit the practice profile."""
    return parse_role(role) in ROLES_CAN_MANAGE_PRACTICE


def can_manage_members(role: str | MemberRole | None) -> bool:
    """Only owners change roles and invite members."""
    return parse_role(role) in ROLES_CAN_MANAGE_MEMBERS


def can_change_role(
    actor_role: str | MemberRole | None,
    current_target_role: str | MemberRole | None,
    requested_role: str | MemberRole | None,
) -> bool:
    """
    Whether the actor may move a member from one role to another.

    Any owner may assign any valid role; keeping an owner around is the
    ownership engine's job.
    """
    if parse_role(requested_role) is None or parse_role(current_target_role) is None:
        return False
    return can_manage_members(actor_role)


def denial_reason(action: str, role: str | MemberRole | None) -> str | None:
    """Explicit denial message for the action, or None when allowed."""
    policy = POLICIES[action]
    if parse_role(role) in policy.allowed:
        return None
    return policy.denial
