"""Enumerations shared by models, services, and schemas."""

from enum import Enum


# =============================================================================
# Practice Membership
# =============================================================================

class MemberRole(str, Enum):
    """
    Practice member roles with decreasing privilege levels.

    - OWNER: Full control, manages members and roles
    - ADMIN: Edits practice profile
    - MEMBER: Day-to-day access
    - VIEWER: Read-only access
    """
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


DEFAULT_MEMBER_ROLE = MemberRole.MEMBER

# Roles that can edit the practice profile
ROLES_CAN_MANAGE_PRACTICE = {MemberRole.OWNER, MemberRole.ADMIN}

# Roles that can change roles and invite members
ROLES_CAN_MANAGE_MEMBERS = {MemberRole.OWNER}


class InviteStatus(str, Enum):
    """
    Derived invite status.

    Flow: pending → accepted
              ↘ revoked
    """
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"


# =============================================================================
# Admin Actions
# =============================================================================

class BanMode(str, Enum):
    BAN = "ban"
    UNBAN = "unban"


class AuditAction(str, Enum):
    """
    Privileged actions recorded in the admin audit log.

    Groups:
    - User lifecycle: ban, unban, password reset, deletion
    - Practice lifecycle: creation, updates, role changes, invitations
    """
    # User lifecycle
    BAN = "ban"
    UNBAN = "unban"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    USER_DELETED = "user_deleted"

    # Practice lifecycle
    PRACTICE_CREATED = "practice_created"
    PRACTICE_UPDATED = "practice_updated"
    PRACTICE_MEMBER_ROLE_UPDATED = "practice_member_role_updated"
    PRACTICE_MEMBER_INVITED = "practice_member_invited"


# =============================================================================
# Practice Defaults
# =============================================================================

DEFAULT_CURRENCY = "GBP"
DEFAULT_TIMEZONE = "Europe/London"
