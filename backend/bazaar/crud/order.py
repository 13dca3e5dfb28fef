import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.order import Order


class OrderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, order_id: uuid.UUID) -> Order | None:
        return await self.session.get(Order, order_id)

    async def get_by_payment_reference(self, reference: str) -> Order | None:
        result = await self.session.execute(
            select(Order).where(Order.payment_reference == reference)
        )
        return result.scalar_one_or_none()

    async def update(self, order: Order) -> Order:
        await self.session.flush()
        await self.session.refresh(order)
        return order
