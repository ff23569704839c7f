import uuid
from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from milkcart.orders.constants import MAX_CUSTOMER_NOTES
from milkcart.schema.full_schema import DeliveryShift, OrderStatus, PaymentMethod


class ShippingAddressIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., pattern=r"^\d{6}$")
    phone: str = Field(..., pattern=r"^\+?\d{10,13}$")

    @field_validator("name", "address", "city", "state")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class OrderItemIn(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(..., ge=1, le=100)


class OrderCreateIn(BaseModel):
    items: Optional[List[OrderItemIn]] = Field(None, description="omit to check out the server cart")
    shipping_address: ShippingAddressIn
    delivery_date: date
    delivery_shift: DeliveryShift
    payment_method: PaymentMethod
    customer_notes: Optional[str] = Field(None, max_length=MAX_CUSTOMER_NOTES)

    model_config = {"extra": "forbid"}


class OrderCancelIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class OrderStatusUpdateIn(BaseModel):
    status: OrderStatus
    admin_notes: Optional[str] = Field(None, max_length=1000)
    reason: Optional[str] = Field(None, max_length=500)

    model_config = {"extra": "forbid"}


class AssignDeliveryIn(BaseModel):
    delivery_person_id: uuid.UUID
    delivery_notes: Optional[str] = Field(None, max_length=500)


class MarkDeliveredIn(BaseModel):
    delivery_notes: Optional[str] = Field(None, max_length=500)
