import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.principal import AuthenticatedUser
from ..dependencies import get_current_user, get_db
from ..models.order import Order
from ..schemas.order import OrderResponse
from ..services.orders import OrderService, available_transitions

router = APIRouter(prefix="/v1/orders", tags=["orders"])


def to_response(order: Order) -> OrderResponse:
    response = OrderResponse.model_validate(order)
    response.available_transitions = available_transitions(order.status)
    return response


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    # Owner-or-admin is decided on the loaded row; a foreign order reads as missing
    order = await OrderService(db).get_visible_order(order_id, user)
    return to_response(order)
