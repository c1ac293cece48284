"""Pydantic schemas for API request/response models."""

from archibill.schemas.actions import ActionResult
from archibill.schemas.auth import Actor, MeResponse
from archibill.schemas.identity import ProviderUser
