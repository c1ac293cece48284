"""Admin dashboard schemas - lifecycle requests and the dashboard read model."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel


# =============================================================================
# Requests
# =============================================================================

class BanRequest(BaseModel):
    email: str | None = None


class PasswordResetRequest(BaseModel):
    email: str | None = None
    user_id: UUID | None = None


class AdminRoleUpdate(BaseModel):
    role: str


# =============================================================================
# Dashboard
# =============================================================================

class AdminUserRead(BaseModel):
    id: UUID
    email: str | None
    full_name: str | None
    status: str  # active, unconfirmed, banned
    is_banned: bool
    created_at: datetime | None
    last_sign_in_at: datetime | None
    providers: list[str]


class PracticeMemberSummary(BaseModel):
    user_id: UUID
    full_name: str | None
    role: str
    joined_at: datetime | None


class PracticeSummary(BaseModel):
    id: UUID
    name: str
    slug: str
    billing_email: str | None
    currency: str
    timezone: str
    member_count: int
    created_at: datetime | None
    updated_at: datetime | None
    members: list[PracticeMemberSummary]


class AuditLogRead(BaseModel):
    id: str
    action: str
    actor_user_id: str | None
    target_user_id: str | None
    metadata: dict[str, Any]
    created_at: str | None


class AdminDashboard(BaseModel):
    users: list[AdminUserRead] = []
    practices: list[PracticeSummary] = []
    audit_logs: list[AuditLogRead] = []
    error: str | None = None
