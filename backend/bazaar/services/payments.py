from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..crud.order import OrderRepository


logger = logging.getLogger("bazaar.payments")

PAYMENT_STATUS_BY_EVENT: dict[str, str] = {
    "charge.success": "paid",
    "charge.failed": "failed",
}

# Payout events are acknowledged but not persisted here
LOGGED_ONLY_EVENTS = frozenset({"transfer.success", "transfer.failed"})


def compute_signature(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha512).hexdigest()


def verify_webhook_signature(
    secret: str | None, payload: bytes, signature: str | None
) -> bool:
    if not secret:
        logger.warning("PAYSTACK_WEBHOOK_SECRET is not configured; rejecting webhook")
        return False
    if not signature or not payload:
        return False
    return hmac.compare_digest(compute_signature(secret, payload), signature.strip().lower())


class PaymentWebhookService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.order_repo = OrderRepository(session)

    async def process_event(self, event: Mapping[str, Any]) -> None:
        event_type = event.get("event")
        data = event.get("data") or {}
        reference = data.get("reference") if isinstance(data, Mapping) else None

        if event_type in LOGGED_ONLY_EVENTS:
            logger.info("Paystack %s reference=%s", event_type, reference)
            return

        payment_status = PAYMENT_STATUS_BY_EVENT.get(str(event_type))
        if payment_status is None:
            logger.info("Unhandled Paystack event: %s", event_type)
            return

        if not isinstance(reference, str) or not reference:
            raise ValueError(f"Paystack {event_type} event without reference")

        order = await self.order_repo.get_by_payment_reference(reference)
        if order is None:
            logger.warning("No order for payment reference=%s event=%s", reference, event_type)
            return

        order.payment_status = payment_status
        await self.order_repo.update(order)
        await self.session.commit()
        logger.info(
            "Payment %s for order_id=%s reference=%s", payment_status, order.id, reference
        )
