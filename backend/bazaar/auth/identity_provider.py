"""Identity provider port and its Supabase (GoTrue REST) adapter.

The provider owns session issuance, password hashing and MFA factors. This
module signs users in and up, reads, refreshes and revokes sessions, and
forwards the factor and admin calls the backend needs.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

import httpx


logger = logging.getLogger("bazaar.auth")


class IdentityProviderError(Exception):
    """Base class for identity provider failures."""


class InvalidCredentialError(IdentityProviderError):
    """The provider rejected the token, refresh token or MFA code."""


class IdentityServiceError(IdentityProviderError):
    """The provider could not be reached or answered unexpectedly."""


class ProviderRejectedError(IdentityProviderError):
    """The provider refused an admin operation (e.g. duplicate email)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _mapping(value: object) -> Mapping[str, Any]:
    # Nested objects that come back as anything else are treated as empty
    return value if isinstance(value, Mapping) else {}


def _parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class ProviderUser:
    id: str
    email: str
    user_metadata: Mapping[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    last_sign_in_at: datetime | None = None

    @property
    def session_started_at(self) -> datetime | None:
        return self.last_sign_in_at or self.created_at

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ProviderUser":
        user_id = payload.get("id")
        if not isinstance(user_id, str) or not user_id:
            raise IdentityServiceError("Identity provider returned a user without id")
        metadata = payload.get("user_metadata")
        return cls(
            id=user_id,
            email=str(payload.get("email") or ""),
            user_metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
            created_at=_parse_timestamp(payload.get("created_at")),
            last_sign_in_at=_parse_timestamp(payload.get("last_sign_in_at")),
        )


@dataclass(frozen=True)
class ProviderSession:
    access_token: str
    refresh_token: str
    expires_in: int
    user: ProviderUser


@dataclass(frozen=True)
class TotpEnrollment:
    factor_id: str
    secret: str
    qr_code: str
    uri: str


class IdentityProvider(Protocol):
    async def get_user(self, access_token: str) -> ProviderUser: ...

    async def sign_out(self, access_token: str) -> None: ...

    async def refresh_session(self, refresh_token: str) -> ProviderSession: ...

    async def sign_in(self, *, email: str, password: str) -> ProviderSession: ...

    async def sign_up(
        self,
        *,
        email: str,
        password: str,
        user_metadata: Mapping[str, Any],
    ) -> ProviderUser: ...

    async def admin_create_user(
        self,
        *,
        email: str,
        password: str,
        user_metadata: Mapping[str, Any],
    ) -> ProviderUser: ...

    async def admin_update_user(
        self, user_id: str, *, user_metadata: Mapping[str, Any]
    ) -> ProviderUser: ...

    async def enroll_totp(
        self, access_token: str, *, friendly_name: str | None = None
    ) -> TotpEnrollment: ...

    async def challenge_factor(self, access_token: str, factor_id: str) -> str: ...

    async def verify_factor(
        self, access_token: str, factor_id: str, challenge_id: str, code: str
    ) -> None: ...


class SupabaseIdentityProvider:
    """GoTrue REST adapter built on httpx.AsyncClient."""

    def __init__(
        self,
        *,
        base_url: str,
        anon_key: str,
        service_role_key: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._service_role_key = service_role_key
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def get_user(self, access_token: str) -> ProviderUser:
        response = await self._request("GET", "/auth/v1/user", bearer=access_token)
        if response.status_code in {401, 403, 404}:
            raise InvalidCredentialError("Token rejected by identity provider")
        payload = self._json_or_raise(response)
        return ProviderUser.from_payload(payload)

    async def sign_out(self, access_token: str) -> None:
        response = await self._request("POST", "/auth/v1/logout", bearer=access_token)
        # An already-revoked session is as good as a signed-out one
        if response.status_code in {401, 403, 404}:
            return
        if response.status_code >= 400:
            raise IdentityServiceError(
                f"Identity provider sign-out failed with status {response.status_code}"
            )

    async def refresh_session(self, refresh_token: str) -> ProviderSession:
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        if response.status_code in {400, 401, 403}:
            raise InvalidCredentialError("Refresh token rejected by identity provider")
        return self._session_from_payload(self._json_or_raise(response))

    async def sign_in(self, *, email: str, password: str) -> ProviderSession:
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if response.status_code in {400, 401, 403}:
            raise InvalidCredentialError("Credentials rejected by identity provider")
        return self._session_from_payload(self._json_or_raise(response))

    async def sign_up(
        self,
        *,
        email: str,
        password: str,
        user_metadata: Mapping[str, Any],
    ) -> ProviderUser:
        """Public self sign-up; the metadata becomes the account's user_metadata."""
        response = await self._request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password, "data": dict(user_metadata)},
        )
        if 400 <= response.status_code < 500:
            raise ProviderRejectedError(
                self._error_message(response), status_code=response.status_code
            )
        payload = self._json_or_raise(response)
        # With auto-confirm on, the provider answers with a session wrapping the user
        return ProviderUser.from_payload(_mapping(payload.get("user", payload)))


    async def admin_create_user(
        self,
        *,
        email: str,
        password: str,
        user_metadata: Mapping[str, Any],
    ) -> ProviderUser:
        if not self._service_role_key:
            raise IdentityServiceError("SUPABASE_SERVICE_ROLE_KEY is not configured")
        response = await self._request(
            "POST",
            "/auth/v1/admin/users",
            bearer=self._service_role_key,
            api_key=self._service_role_key,
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": dict(user_metadata),
            },
        )
        if 400 <= response.status_code < 500:
            raise ProviderRejectedError(
                self._error_message(response), status_code=response.status_code
            )
        payload = self._json_or_raise(response)
        # Some GoTrue versions wrap the created user
        return ProviderUser.from_payload(_mapping(payload.get("user", payload)))

    async def admin_update_user(
        self, user_id: str, *, user_metadata: Mapping[str, Any]
    ) -> ProviderUser:
        """Merge ``user_metadata`` into the account's metadata (service role)."""
        if not self._service_role_key:
            raise IdentityServiceError("SUPABASE_SERVICE_ROLE_KEY is not configured")
        response = await self._request(
            "PUT",
            f"/auth/v1/admin/users/{user_id}",
            bearer=self._service_role_key,
            api_key=self._service_role_key,
            json={"user_metadata": dict(user_metadata)},
        )
        if 400 <= response.status_code < 500:
            raise ProviderRejectedError(
                self._error_message(response), status_code=response.status_code
            )
        payload = self._json_or_raise(response)
        return ProviderUser.from_payload(_mapping(payload.get("user", payload)))

    async def enroll_totp(
        self, access_token: str, *, friendly_name: str | None = None
    ) -> TotpEnrollment:
        body: dict[str, Any] = {"factor_type": "totp"}
        if friendly_name:
            body["friendly_name"] = friendly_name
        response = await self._request(
            "POST", "/auth/v1/factors", bearer=access_token, json=body
        )
        if response.status_code in {401, 403}:
            raise InvalidCredentialError("Token rejected by identity provider")
        if 400 <= response.status_code < 500:
            raise ProviderRejectedError(
                self._error_message(response), status_code=response.status_code
            )
        payload = self._json_or_raise(response)
        totp = _mapping(payload.get("totp"))
        factor_id = payload.get("id")
        secret = totp.get("secret")
        if not isinstance(factor_id, str) or not factor_id or not secret:
            raise IdentityServiceError("Identity provider returned an incomplete TOTP enrollment")
        return TotpEnrollment(
            factor_id=factor_id,
            secret=str(secret),
            qr_code=str(totp.get("qr_code") or ""),
            uri=str(totp.get("uri") or ""),
        )

    async def challenge_factor(self, access_token: str, factor_id: str) -> str:
        response = await self._request(
            "POST", f"/auth/v1/factors/{factor_id}/challenge", bearer=access_token
        )
        if 400 <= response.status_code < 500:
            raise InvalidCredentialError("Factor challenge rejected by identity provider")
        payload = self._json_or_raise(response)
        challenge_id = payload.get("id")
        if not isinstance(challenge_id, str) or not challenge_id:
            raise IdentityServiceError("Identity provider returned a challenge without id")
        return challenge_id

    async def verify_factor(
        self, access_token: str, factor_id: str, challenge_id: str, code: str
    ) -> None:
        response = await self._request(
            "POST",
            f"/auth/v1/factors/{factor_id}/verify",
            bearer=access_token,
            json={"challenge_id": challenge_id, "code": code},
        )
        if 400 <= response.status_code < 500:
            raise InvalidCredentialError("Verification code rejected by identity provider")
        if response.status_code >= 500:
            raise IdentityServiceError(
                f"Identity provider returned status {response.status_code}"
            )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        bearer: str | None = None,
        api_key: str | None = None,
        params: Mapping[str, str] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        headers = {"apikey": api_key or self._anon_key}
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as client:
                return await client.request(
                    method, path, headers=headers, params=params, json=json
                )
        except httpx.HTTPError as exc:
            logger.error("Identity provider request failed: %s %s (%s)", method, path, exc)
            raise IdentityServiceError("Identity provider unreachable") from exc

    @staticmethod
    def _session_from_payload(payload: Mapping[str, Any]) -> ProviderSession:
        try:
            return ProviderSession(
                access_token=str(payload["access_token"]),
                refresh_token=str(payload["refresh_token"]),
                expires_in=int(payload.get("expires_in") or 3600),
                user=ProviderUser.from_payload(_mapping(payload.get("user"))),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise IdentityServiceError("Identity provider returned a malformed session") from exc

    @staticmethod
    def _json_or_raise(response: httpx.Response) -> dict[str, Any]:
        if response.status_code >= 400:
            raise IdentityServiceError(
                f"Identity provider returned status {response.status_code}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise IdentityServiceError("Identity provider returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise IdentityServiceError("Identity provider returned unexpected payload")
        return payload

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text or "Identity provider rejected the request"
        if isinstance(payload, dict):
            for key in ("msg", "message", "error_description", "error"):
                value = payload.get(key)
                if isinstance(value, str) and value:
                    return value
        return "Identity provider rejected the request"
