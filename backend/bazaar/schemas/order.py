import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from ..services.orders import OrderStatus


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    reason: str | None = Field(None, max_length=500)


class OrderResponse(BaseModel):
    id: uuid.UUID
    buyer_id: uuid.UUID = Field(..., alias="buyerId")
    vendor_id: uuid.UUID | None = Field(None, alias="vendorId")
    status: str
    payment_status: str = Field(..., alias="paymentStatus")
    payment_reference: str | None = Field(None, alias="paymentReference")
    total_amount: Decimal = Field(..., alias="totalAmount")
    currency: str
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")
    available_transitions: list[str] = Field(default_factory=list, alias="availableTransitions")

    class Config:
        from_attributes = True
        populate_by_name = True
