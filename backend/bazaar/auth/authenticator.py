"""Resolve a bearer credential into an AuthenticatedUser.

Role comes from the provider's ``user_metadata.role`` claim. Permissions come
from the account's active admin staff override when one is set, otherwise from
the role defaults. The two sources are never merged.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..crud.admin_staff import AdminStaffRepository
from ..errors import (
    AuthError,
    AuthInvalidCredential,
    AuthMissingCredential,
    AuthServiceUnavailable,
)
from .identity_provider import (
    IdentityProvider,
    IdentityServiceError,
    InvalidCredentialError,
    ProviderUser,
)
from .principal import AuthenticatedUser
from .rbac_contract import (
    ALL_PERMISSIONS,
    DEFAULT_ROLE,
    Role,
    is_admin_role,
    parse_role,
    permissions_for_role,
)


logger = logging.getLogger("bazaar.auth")


@dataclass(frozen=True)
class StaffRecord:
    role: str
    permissions: Sequence[str] | None
    is_active: bool


class StaffDirectory(Protocol):
    async def get_staff_record(self, user_id: str) -> StaffRecord | None: ...


class SqlStaffDirectory:
    def __init__(self, session: AsyncSession):
        self._repository = AdminStaffRepository(session)

    async def get_staff_record(self, user_id: str) -> StaffRecord | None:
        try:
            profile_id = uuid.UUID(user_id)
        except ValueError:
            return None
        staff = await self._repository.get_by_profile_id(profile_id)
        if staff is None:
            return None
        return StaffRecord(
            role=staff.role,
            permissions=staff.permissions,
            is_active=staff.is_active,
        )


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_role(provider_user: ProviderUser) -> Role:
    return parse_role(provider_user.user_metadata.get("role")) or DEFAULT_ROLE


def _override_permissions(user_id: str, override: Sequence[str]) -> frozenset[str]:
    granted = frozenset(override)
    unknown = granted - ALL_PERMISSIONS
    if unknown:
        logger.warning(
            "Ignoring unknown staff permissions user_id=%s permissions=%s",
            user_id,
            sorted(unknown),
        )
    return granted & ALL_PERMISSIONS


async def resolve_permissions(
    user_id: str,
    role: Role,
    staff_directory: StaffDirectory | None,
) -> frozenset[str]:
    if staff_directory is None or not is_admin_role(role):
        return permissions_for_role(role)

    try:
        record = await staff_directory.get_staff_record(user_id)
    except SQLAlchemyError as exc:
        logger.error("Staff lookup failed user_id=%s: %s", user_id, exc)
        raise AuthServiceUnavailable() from exc

    if record is None:
        return permissions_for_role(role)
    if not record.is_active:
        raise AuthInvalidCredential("Account is deactivated")
    if record.permissions is not None:
        return _override_permissions(user_id, record.permissions)
    return permissions_for_role(role)


async def authenticate(
    token: str | None,
    identity_provider: IdentityProvider,
    staff_directory: StaffDirectory | None = None,
) -> AuthenticatedUser:
    if not token:
        raise AuthMissingCredential()

    try:
        provider_user = await identity_provider.get_user(token)
    except InvalidCredentialError as exc:
        raise AuthInvalidCredential() from exc
    except IdentityServiceError as exc:
        logger.error("Identity provider unavailable during authentication: %s", exc)
        raise AuthServiceUnavailable() from exc

    role = resolve_role(provider_user)
    permissions = await resolve_permissions(provider_user.id, role, staff_directory)

    return AuthenticatedUser(
        id=provider_user.id,
        email=provider_user.email,
        role=role,
        permissions=permissions,
    )


async def authenticate_optional(
    token: str | None,
    identity_provider: IdentityProvider,
    staff_directory: StaffDirectory | None = None,
) -> AuthenticatedUser | None:
    """Same as authenticate, but every failure yields None."""
    if not token:
        return None
    try:
        return await authenticate(token, identity_provider, staff_directory)
    except AuthError as exc:
        logger.debug("Optional authentication failed: %s", exc.code)
        return None
