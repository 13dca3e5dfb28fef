"""In-memory stand-ins for the identity provider and datastore lookups."""
from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from bazaar.auth.authenticator import StaffRecord
from bazaar.auth.identity_provider import (
    IdentityServiceError,
    InvalidCredentialError,
    ProviderRejectedError,
    ProviderSession,
    ProviderUser,
    TotpEnrollment,
)
from bazaar.auth.principal import AuthenticatedUser
from bazaar.auth.rbac_contract import Role, parse_role, permissions_for_role
from bazaar.edge.profiles import EdgeProfile


def make_provider_user(
    role: str | None = None,
    *,
    user_id: str | None = None,
    email: str = "user@example.com",
    last_sign_in_at: datetime | None = None,
) -> ProviderUser:
    metadata: dict[str, Any] = {}
    if role is not None:
        metadata["role"] = role
    return ProviderUser(
        id=user_id or str(uuid.uuid4()),
        email=email,
        user_metadata=metadata,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        last_sign_in_at=last_sign_in_at or datetime.now(timezone.utc),
    )


def make_user(
    role: Role | str,
    permissions: set[str] | frozenset[str] | None = None,
    *,
    user_id: str | None = None,
) -> AuthenticatedUser:
    parsed = parse_role(role)
    assert parsed is not None
    return AuthenticatedUser(
        id=user_id or str(uuid.uuid4()),
        email=f"{parsed.value}@example.com",
        role=parsed,
        permissions=frozenset(permissions) if permissions is not None else permissions_for_role(parsed),
    )


class FakeIdentityProvider:
    def __init__(self) -> None:
        self.users: dict[str, ProviderUser] = {}
        self.refresh_sessions: dict[str, ProviderSession] = {}
        self.password_sessions: dict[tuple[str, str], ProviderSession] = {}
        self.signups: list[dict[str, Any]] = []
        self.signed_out: list[str] = []
        self.created: list[dict[str, Any]] = []
        self.updated: list[tuple[str, dict[str, Any]]] = []
        self.valid_codes: set[str] = {"123456"}
        self.unavailable = False
        self.sign_out_error: Exception | None = None
        self.create_error: Exception | None = None

    def add_user(self, token: str, user: ProviderUser) -> ProviderUser:
        self.users[token] = user
        return user

    def _check_available(self) -> None:
        if self.unavailable:
            raise IdentityServiceError("Identity provider unreachable")

    async def get_user(self, access_token: str) -> ProviderUser:
        self._check_available()
        user = self.users.get(access_token)
        if user is None:
            raise InvalidCredentialError("Token rejected by identity provider")
        return user

    async def sign_out(self, access_token: str) -> None:
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.signed_out.append(access_token)

    async def refresh_session(self, refresh_token: str) -> ProviderSession:
        self._check_available()
        session = self.refresh_sessions.get(refresh_token)
        if session is None:
            raise InvalidCredentialError("Refresh token rejected by identity provider")
        self.users[session.access_token] = session.user
        return session

    async def sign_in(self, *, email: str, password: str) -> ProviderSession:
        self._check_available()
        session = self.password_sessions.get((email, password))
        if session is None:
            raise InvalidCredentialError("Credentials rejected by identity provider")
        self.users[session.access_token] = session.user
        return session

    async def sign_up(
        self, *, email: str, password: str, user_metadata: Mapping[str, Any]
    ) -> ProviderUser:
        self._check_available()
        if any(entry["email"] == email for entry in self.signups):
            raise ProviderRejectedError("User already registered", 422)
        self.signups.append({"email": email, "password": password, "user_metadata": dict(user_metadata)})
        return ProviderUser(id=str(uuid.uuid4()), email=email, user_metadata=dict(user_metadata))

    async def admin_create_user(

        self, *, email: str, password: str, user_metadata: Mapping[str, Any]
    ) -> ProviderUser:
        if self.create_error is not None:
            raise self.create_error
        if any(entry["email"] == email for entry in self.created):
            raise ProviderRejectedError("A user with this email address has already been registered", 422)
        self.created.append({"email": email, "password": password, "user_metadata": dict(user_metadata)})
        return ProviderUser(id=str(uuid.uuid4()), email=email, user_metadata=dict(user_metadata))

    async def admin_update_user(
        self, user_id: str, *, user_metadata: Mapping[str, Any]
    ) -> ProviderUser:
        self._check_available()
        self.updated.append((user_id, dict(user_metadata)))
        return ProviderUser(id=user_id, email="", user_metadata=dict(user_metadata))

    async def enroll_totp(
        self, access_token: str, *, friendly_name: str | None = None
    ) -> TotpEnrollment:
        await self.get_user(access_token)
        return TotpEnrollment(
            factor_id="factor-1",
            secret="JBSWY3DPEHPK3PXP",
            qr_code="data:image/svg+xml;base64,PHN2Zz48L3N2Zz4=",
            uri="otpauth://totp/Bazaar:admin?secret=JBSWY3DPEHPK3PXP",
        )

    async def challenge_factor(self, access_token: str, factor_id: str) -> str:
        await self.get_user(access_token)
        return f"challenge-{factor_id}"

    async def verify_factor(
        self, access_token: str, factor_id: str, challenge_id: str, code: str
    ) -> None:
        if code not in self.valid_codes:
            raise InvalidCredentialError("Verification code rejected by identity provider")


class FakeStaffDirectory:
    def __init__(self, records: dict[str, StaffRecord] | None = None, error: Exception | None = None):
        self.records = records or {}
        self.error = error
        self.lookups: list[str] = []

    async def get_staff_record(self, user_id: str) -> StaffRecord | None:
        self.lookups.append(user_id)
        if self.error is not None:
            raise self.error
        return self.records.get(user_id)


@dataclass
class FakeProfileLookup:
    profiles: dict[str, EdgeProfile] = field(default_factory=dict)
    vendor_statuses: dict[str, str] = field(default_factory=dict)
    error: Exception | None = None

    async def get_profile(self, user_id: str) -> EdgeProfile | None:
        if self.error is not None:
            raise self.error
        return self.profiles.get(user_id)

    async def get_vendor_status(self, vendor_id: str) -> str | None:
        return self.vendor_statuses.get(vendor_id)
