import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..dependencies import get_db
from ..errors import WebhookSignatureInvalid
from ..services.payments import PaymentWebhookService, verify_webhook_signature

router = APIRouter(prefix="/v1/payments", tags=["payments"])

logger = logging.getLogger("bazaar.payments")


@router.post("/webhook")
async def paystack_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> dict[str, object]:
    raw_body = await request.body()
    signature = request.headers.get("x-paystack-signature")
    if not verify_webhook_signature(settings.paystack_webhook_secret, raw_body, signature):
        logger.warning("Invalid Paystack webhook signature")
        raise WebhookSignatureInvalid()

    try:
        event = json.loads(raw_body)
        if not isinstance(event, dict):
            raise ValueError("Webhook payload must be a JSON object")
        await PaymentWebhookService(db).process_event(event)
    except Exception:
        # A verified delivery is always acknowledged with 200
        await db.rollback()
        logger.exception("Error processing Paystack webhook")
        return {"received": True, "error": "Processing error"}

    return {"received": True}
