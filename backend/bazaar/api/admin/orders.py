from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.guards import require_permission
from ...auth.principal import AuthenticatedUser
from ...dependencies import get_db
from ...routers.orders import to_response
from ...schemas.order import OrderResponse, OrderStatusUpdate
from ...services.orders import OrderService


router = APIRouter(prefix="/admin/orders", tags=["admin-orders"])


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(require_permission("orders:update")),
) -> OrderResponse:
    """
    Move an order along the status workflow.

    Requires orders:update, plus orders:cancel or orders:refund for those
    targets. Transitions outside the workflow answer 409.
    """
    order = await OrderService(db).change_status(
        order_id, payload.status, current_user, reason=payload.reason, request=request
    )
    return to_response(order)
