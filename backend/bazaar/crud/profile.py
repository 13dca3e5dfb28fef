import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.admin_staff import AdminStaff
from ..models.profile import Profile


class ProfileRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, profile_id: uuid.UUID) -> Profile | None:
        return await self.session.get(Profile, profile_id)

    async def get_with_staff_status(
        self, profile_id: uuid.UUID
    ) -> tuple[Profile, bool | None] | None:
        """Profile plus its admin_staff.is_active (None when there is no staff row)."""
        result = await self.session.execute(
            select(Profile, AdminStaff.is_active)
            .outerjoin(AdminStaff, AdminStaff.profile_id == Profile.id)
            .where(Profile.id == profile_id)
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def get_by_email(self, email: str) -> Profile | None:
        result = await self.session.execute(
            select(Profile).where(Profile.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def ensure(
        self, profile_id: uuid.UUID, email: str, full_name: str | None = None
    ) -> Profile:
        """Return the profile, creating a bare one when the signup hook has not yet."""
        profile = await self.get_by_id(profile_id)
        if profile is not None:
            return profile
        profile = Profile(id=profile_id, email=email.strip().lower(), full_name=full_name)
        self.session.add(profile)
        await self.session.flush()
        await self.session.refresh(profile)
        return profile

    async def set_role(
        self,
        profile_id: uuid.UUID,
        role: str,
        *,
        must_change_password: bool | None = None,
    ) -> None:
        values: dict[str, object] = {"role": role}
        if must_change_password is not None:
            values["must_change_password"] = must_change_password
        await self.session.execute(
            update(Profile).where(Profile.id == profile_id).values(**values)
        )
        await self.session.flush()

    async def enable_mfa(self, profile_id: uuid.UUID, method: str) -> None:
        await self.session.execute(
            update(Profile)
            .where(Profile.id == profile_id)
            .values(mfa_enabled=True, mfa_method=method)
        )
        await self.session.flush()

    async def mark_mfa_verified(self, profile_id: uuid.UUID, verified_at: datetime) -> None:
        await self.session.execute(
            update(Profile)
            .where(Profile.id == profile_id)
            .values(mfa_verified_at=verified_at)
        )
        await self.session.flush()
