from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Final

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.evaluator import has_permission
from ..auth.principal import AuthenticatedUser
from ..crud.order import OrderRepository
from ..errors import AuthInsufficientPermission, InvalidStatusTransition, NotFoundError
from ..models.order import Order
from .audit.audit_service import ORDER_STATUS_CHANGED, AdminAuditService


logger = logging.getLogger("bazaar.orders")


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


VALID_STATUS_TRANSITIONS: Final[dict[OrderStatus, frozenset[OrderStatus]]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

# Extra permission needed on top of orders:update for these targets
TRANSITION_PERMISSIONS: Final[dict[OrderStatus, str]] = {
    OrderStatus.CANCELLED: "orders:cancel",
    OrderStatus.REFUNDED: "orders:refund",
}


def _coerce(status: OrderStatus | str) -> OrderStatus | None:
    try:
        return OrderStatus(status)
    except ValueError:
        return None


def is_valid_transition(current: OrderStatus | str, target: OrderStatus | str) -> bool:
    current_status = _coerce(current)
    target_status = _coerce(target)
    if current_status is None or target_status is None:
        return False
    return target_status in VALID_STATUS_TRANSITIONS[current_status]


def available_transitions(current: OrderStatus | str) -> list[str]:
    current_status = _coerce(current)
    if current_status is None:
        return []
    return sorted(status.value for status in VALID_STATUS_TRANSITIONS[current_status])


class OrderService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.order_repo = OrderRepository(session)
        self.audit = AdminAuditService(session)

    async def get_order(self, order_id: uuid.UUID) -> Order:
        order = await self.order_repo.get_by_id(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def get_visible_order(self, order_id: uuid.UUID, user: AuthenticatedUser) -> Order:
        """Load an order for its buyer or an admin.

        Missing and not-owned both raise NotFoundError so order ids are not disclosed.
        """
        order = await self.order_repo.get_by_id(order_id)
        if order is not None and (user.is_admin or str(order.buyer_id) == user.id):
            return order
        if order is not None:
            logger.warning(
                "Order read denied user_id=%s order_id=%s reason=not_owner", user.id, order_id
            )
        raise NotFoundError("Order not found")

    async def change_status(
        self,
        order_id: uuid.UUID,
        target: OrderStatus,
        actor: AuthenticatedUser,
        reason: str | None = None,
        request: Request | None = None,
    ) -> Order:
        extra_permission = TRANSITION_PERMISSIONS.get(target)
        if extra_permission is not None and not has_permission(actor, extra_permission):
            logger.warning(
                "Order status change denied user_id=%s order_id=%s target=%s required=%s",
                actor.id,
                order_id,
                target.value,
                extra_permission,
            )
            raise AuthInsufficientPermission(
                f"Missing required permission: {extra_permission}"
            )

        order = await self.get_order(order_id)
        previous = order.status
        if not is_valid_transition(previous, target):
            raise InvalidStatusTransition(
                f"Cannot transition order from '{previous}' to '{target.value}'",
                currentStatus=previous,
                allowedTransitions=available_transitions(previous),
            )

        order.status = target.value
        if target is OrderStatus.REFUNDED:
            order.payment_status = "refunded"
        order = await self.order_repo.update(order)
        await self.audit.log(
            ORDER_STATUS_CHANGED,
            actor.id,
            {"orderId": str(order_id), "from": previous, "to": target.value, "reason": reason},
            request=request,
        )
        await self.session.commit()
        logger.info(
            "Order status changed order_id=%s from=%s to=%s by=%s",
            order_id,
            previous,
            target.value,
            actor.id,
        )
        return order
