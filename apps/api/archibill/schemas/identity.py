"""Typed views of identity provider payloads.

Provider responses are validated here once; services never read raw dicts.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProviderIdentity(BaseModel):
    """A linked login method (email, google, ...)."""

    model_config = ConfigDict(extra="ignore")

    provider: str
    identity_id: str | None = None
    created_at: datetime | None = None


class ProviderUser(BaseModel):
    """User record as reported by the identity provider admin API."""

    model_config = ConfigDict(extra="ignore")

    id: UUID
    email: str | None = None
    email_confirmed_at: datetime | None = None
    confirmed_at: datetime | None = None
    banned_until: datetime | None = None
    ban_duration: str | None = None
    created_at: datetime | None = None
    last_sign_in_at: datetime | None = None
    identities: list[ProviderIdentity] = Field(default_factory=list)
    app_metadata: dict[str, Any] = Field(default_factory=dict)
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_banned(self) -> bool:
        if self.ban_duration and self.ban_duration != "none":
            return True
        if self.banned_until is None:
            return False
        banned_until = self.banned_until
        if banned_until.tzinfo is None:
            banned_until = banned_until.replace(tzinfo=timezone.utc)
        return banned_until > datetime.now(timezone.utc)

    @property
    def is_confirmed(self) -> bool:
        return bool(self.email_confirmed_at or self.confirmed_at)

    @property
    def providers(self) -> list[str]:
        listed = self.app_metadata.get("providers")
        if isinstance(listed, list) and listed:
            return [str(p) for p in listed]
        return sorted({identity.provider for identity in self.identities})

    @property
    def normalized_email(self) -> str | None:
        return self.email.strip().lower() if self.email else None


class ProviderSession(BaseModel):
    """Session issued after a successful code exchange."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    user: ProviderUser
