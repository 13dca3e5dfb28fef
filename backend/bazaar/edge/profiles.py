from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..crud.profile import ProfileRepository
from ..crud.vendor import VendorRepository


@dataclass(frozen=True)
class EdgeProfile:
    role: str | None
    must_change_password: bool = False
    mfa_enabled: bool = False
    mfa_verified_at: datetime | None = None
    vendor_id: str | None = None
    # False only when an admin_staff row exists and is deactivated
    is_active: bool = True


class ProfileLookup(Protocol):
    async def get_profile(self, user_id: str) -> EdgeProfile | None: ...

    async def get_vendor_status(self, vendor_id: str) -> str | None: ...


class SqlProfileLookup:
    """Reads profile and vendor state with a short-lived session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_profile(self, user_id: str) -> EdgeProfile | None:
        try:
            profile_id = uuid.UUID(user_id)
        except ValueError:
            return None
        async with self._session_factory() as session:
            found = await ProfileRepository(session).get_with_staff_status(profile_id)
        if found is None:
            return None
        profile, staff_active = found
        return EdgeProfile(
            role=profile.role,
            must_change_password=profile.must_change_password,
            mfa_enabled=profile.mfa_enabled,
            mfa_verified_at=profile.mfa_verified_at,
            vendor_id=str(profile.vendor_id) if profile.vendor_id else None,
            is_active=staff_active is not False,
        )

    async def get_vendor_status(self, vendor_id: str) -> str | None:
        try:
            vendor_pk = uuid.UUID(vendor_id)
        except ValueError:
            return None
        async with self._session_factory() as session:
            vendor = await VendorRepository(session).get_by_id(vendor_pk)
        return vendor.status if vendor is not None else None
