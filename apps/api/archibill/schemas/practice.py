"""Practice schemas - request bodies and the practice overview read model.

Request fields are loose strings on purpose: the workflows sanitize and
validate them and answer with an error ActionResult instead of a 422.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


# =============================================================================
# Requests
# =============================================================================

class PracticeCreate(BaseModel):
    name: str = ""
    billing_email: str | None = None
    currency: str | None = None
    timezone: str | None = None


class PracticeUpdate(PracticeCreate):
    pass


class MemberRoleUpdate(BaseModel):
    role: str


class MemberInviteCreate(BaseModel):
    email: str = ""
    role: str = "member"


# =============================================================================
# Overview read model
# =============================================================================

class PracticeRead(BaseModel):
    id: UUID
    name: str
    slug: str
    billing_email: str | None
    currency: str
    timezone: str


class PracticeMemberRead(BaseModel):
    user_id: UUID
    full_name: str | None
    email: str | None
    role: str
    joined_at: datetime | None


class PracticeInviteRead(BaseModel):
    id: UUID
    email: str
    role: str
    status: str
    created_at: datetime | None
    accepted_at: datetime | None


class PracticeOverview(BaseModel):
    """What the practice page shows; practice is None until the user creates one."""
    practice: PracticeRead | None = None
    role: str | None = None
    can_edit_practice: bool = False
    can_manage_members: bool = False
    members: list[PracticeMemberRead] = []
    invites: list[PracticeInviteRead] = []
