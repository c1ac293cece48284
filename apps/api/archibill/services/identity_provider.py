"""Identity provider adapter (Supabase Auth / GoTrue).

Wraps the provider's admin and session endpoints. Responses are validated
into ProviderUser at this edge and errors are normalized into
IdentityProviderError subclasses, so workflows never inspect raw payloads.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any
from uuid import UUID

import httpx

from archibill.core.config import settings
from archibill.schemas.identity import ProviderSession, ProviderUser

logger = logging.getLogger(__name__)

# Effectively permanent (~10 years)
BAN_DURATION_PERMANENT = "87600h"
BAN_DURATION_NONE = "none"

LIST_USERS_PER_PAGE = 200
LIST_USERS_MAX_PAGES = 50


class IdentityProviderError(Exception):
    """The provider call failed."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def message(self) -> str:
        return str(self)


class IdentityUserNotFound(IdentityProviderError):
    """The provider has no user with that id."""


class IdentityUserAlreadyRegistered(IdentityProviderError):
    """An invite targeted an email that already has an account."""


def _is_not_found(status_code: int, code: str | None, message: str) -> bool:
    return status_code == 404 or code == "user_not_found" or "not found" in message.lower()


def _is_already_registered(code: str | None, message: str) -> bool:
    lowered = message.lower()
    return code == "email_exists" or "already been registered" in lowered or "already registered" in lowered


def error_from_response(response: httpx.Response) -> IdentityProviderError:
    """Map a failed provider response onto the error taxonomy."""
    message = ""
    code = None
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        raw_code = body.get("error_code") or body.get("code")
        code = str(raw_code) if raw_code is not None else None
        message = str(
            body.get("msg")
            or body.get("message")
            or body.get("error_description")
            or body.get("error")
            or ""
        )
    if not message:
        message = response.text.strip() or f"Identity provider returned {response.status_code}"

    if _is_already_registered(code, message):
        return IdentityUserAlreadyRegistered(message, response.status_code, code)
    if _is_not_found(response.status_code, code, message):
        return IdentityUserNotFound(message, response.status_code, code)
    return IdentityProviderError(message, response.status_code, code)


class IdentityProvider(ABC):
    """Capabilities the core consumes from the identity provider."""

    @abstractmethod
    async def get_user_by_id(self, user_id: UUID) -> ProviderUser: ...

    @abstractmethod
    async def list_users(self, page: int = 1, per_page: int = 50) -> list[ProviderUser]: ...

    @abstractmethod
    async def update_ban_state(self, user_id: UUID, ban_duration: str) -> ProviderUser: ...

    @abstractmethod
    async def delete_user(self, user_id: UUID) -> None: ...

    @abstractmethod
    async def invite_user_by_email(
        self,
        email: str,
        redirect_to: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> ProviderUser: ...

    @abstractmethod
    async def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None: ...

    @abstractmethod
    async def exchange_code_for_session(self, auth_code: str, code_verifier: str) -> ProviderSession: ...

    @abstractmethod
    async def get_user(self, access_token: str) -> ProviderUser: ...

    @abstractmethod
    async def sign_out(self, access_token: str) -> None: ...

    async def find_user_by_email(
        self,
        email: str,
        per_page: int = LIST_USERS_PER_PAGE,
        max_pages: int = LIST_USERS_MAX_PAGES,
    ) -> ProviderUser | None:
        """Page through users looking for a case-insensitive email match."""
        target = email.strip().lower()
        for page in range(1, max_pages + 1):
            users = await self.list_users(page=page, per_page=per_page)
            for user in users:
                if user.normalized_email == target:
                    return user
            if len(users) < per_page:
                break
        return None


class SupabaseIdentityProvider(IdentityProvider):
    """GoTrue REST client authenticated with the service-role key."""

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        anon_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not base_url or not service_role_key:
            raise IdentityProviderError("Supabase service role credentials are not configured")
        self.auth_url = f"{base_url.rstrip('/')}/auth/v1"
        self.service_role_key = service_role_key
        self.anon_key = anon_key or service_role_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "SupabaseIdentityProvider":
        return cls(
            base_url=settings.SUPABASE_URL,
            service_role_key=settings.SUPABASE_SERVICE_ROLE_KEY,
            anon_key=settings.SUPABASE_ANON_KEY or None,
            timeout=settings.IDENTITY_PROVIDER_TIMEOUT_SECONDS,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        access_token: str | None = None,
    ) -> httpx.Response:
        if access_token:
            headers = {"apikey": self.anon_key, "Authorization": f"Bearer {access_token}"}
        else:
            headers = {
                "apikey": self.service_role_key,
                "Authorization": f"Bearer {self.service_role_key}",
            }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.request(
                    method,
                    f"{self.auth_url}{path}",
                    json=json,
                    params=params,
                    headers=headers,
                )
            except httpx.RequestError as exc:
                logger.warning("Identity provider request failed: %s %s", method, path)
                raise IdentityProviderError(f"Identity provider unreachable: {exc}") from exc

        if response.is_error:
            raise error_from_response(response)
        return response

    async def get_user_by_id(self, user_id: UUID) -> ProviderUser:
        response = await self._request("GET", f"/admin/users/{user_id}")
        return ProviderUser.model_validate(response.json())

    async def list_users(self, page: int = 1, per_page: int = 50) -> list[ProviderUser]:
        response = await self._request(
            "GET", "/admin/users", params={"page": page, "per_page": per_page}
        )
        body = response.json()
        users = body.get("users", []) if isinstance(body, dict) else body
        return [ProviderUser.model_validate(user) for user in users]

    async def update_ban_state(self, user_id: UUID, ban_duration: str) -> ProviderUser:
        response = await self._request(
            "PUT", f"/admin/users/{user_id}", json={"ban_duration": ban_duration}
        )
        logger.info("Updated ban state for user %s (%s)", user_id, ban_duration)
        return ProviderUser.model_validate(response.json())

    async def delete_user(self, user_id: UUID) -> None:
        await self._request("DELETE", f"/admin/users/{user_id}")
        logger.info("Deleted identity %s", user_id)

    async def invite_user_by_email(
        self,
        email: str,
        redirect_to: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> ProviderUser:
        params = {"redirect_to": redirect_to} if redirect_to else None
        response = await self._request(
            "POST", "/invite", json={"email": email, "data": data or {}}, params=params
        )
        return ProviderUser.model_validate(response.json())

    async def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        await self._request("POST", "/recover", json={"email": email}, params=params)

    async def exchange_code_for_session(self, auth_code: str, code_verifier: str) -> ProviderSession:
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "pkce"},
            json={"auth_code": auth_code, "code_verifier": code_verifier},
        )
        return ProviderSession.model_validate(response.json())

    async def get_user(self, access_token: str) -> ProviderUser:
        response = await self._request("GET", "/user", access_token=access_token)
        return ProviderUser.model_validate(response.json())

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/logout", access_token=access_token)
