"""Account schemas."""

from pydantic import BaseModel


class ProfileUpdate(BaseModel):
    full_name: str | None = None
    phone: str | None = None
