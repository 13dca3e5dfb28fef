import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.vendor import Vendor


class VendorRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, vendor_id: uuid.UUID) -> Vendor | None:
        return await self.session.get(Vendor, vendor_id)
