import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.admin_staff import AdminStaff


class AdminStaffRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        profile_id: uuid.UUID,
        role: str,
        permissions: list[str] | None = None,
        created_by: uuid.UUID | None = None,
    ) -> AdminStaff:
        staff = AdminStaff(
            profile_id=profile_id,
            role=role,
            permissions=permissions,
            is_active=True,
            created_by=created_by,
        )
        self.session.add(staff)
        await self.session.flush()
        await self.session.refresh(staff)
        return staff

    async def get_by_id(self, staff_id: uuid.UUID) -> AdminStaff | None:
        return await self.session.get(AdminStaff, staff_id)

    async def get_by_profile_id(self, profile_id: uuid.UUID) -> AdminStaff | None:
        result = await self.session.execute(
            select(AdminStaff).where(AdminStaff.profile_id == profile_id)
        )
        return result.scalar_one_or_none()

    async def list_all(self, include_inactive: bool = True) -> list[AdminStaff]:
        query = select(AdminStaff).order_by(AdminStaff.created_at.desc())
        if not include_inactive:
            query = query.where(AdminStaff.is_active)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update(self, staff: AdminStaff) -> AdminStaff:
        await self.session.flush()
        await self.session.refresh(staff)
        return staff
