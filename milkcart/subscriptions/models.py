import uuid
from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator
from milkcart.refunds.models import RefundDetailsIn, check_refund_details
from milkcart.schema.full_schema import MilkType, PaymentMethod, PlanVolume, PreferredDeliveryTime, RefundMethod
from milkcart.subscriptions.constants import ALLOWED_DURATIONS


class PlanCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    milk_type: MilkType
    volume: PlanVolume
    duration_days: int
    price: int = Field(..., ge=0)
    daily_price: int = Field(..., ge=0)
    discount: int = Field(0, ge=0, le=100)
    original_price: Optional[int] = Field(None, ge=0)
    features: List[str] = Field(default_factory=list)
    description: Optional[str] = Field(None, max_length=1000)
    popularity: int = Field(0, ge=0)
    is_active: bool = True

    @model_validator(mode="after")
    def _duration_allowed(self):
        if self.duration_days not in ALLOWED_DURATIONS:
            raise ValueError(f"duration_days must be one of {ALLOWED_DURATIONS}")
        return self


class PlanUpdateIn(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    milk_type: Optional[MilkType] = None
    volume: Optional[PlanVolume] = None
    duration_days: Optional[int] = None
    price: Optional[int] = Field(None, ge=0)
    daily_price: Optional[int] = Field(None, ge=0)
    discount: Optional[int] = Field(None, ge=0, le=100)
    original_price: Optional[int] = Field(None, ge=0)
    features: Optional[List[str]] = None
    description: Optional[str] = Field(None, max_length=1000)
    popularity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def _duration_allowed(self):
        if self.duration_days is not None and self.duration_days not in ALLOWED_DURATIONS:
            raise ValueError(f"duration_days must be one of {ALLOWED_DURATIONS}")
        return self


class SubscriptionAddressIn(BaseModel):
    full_address: str = Field(..., min_length=5, max_length=500)
    landmark: Optional[str] = Field(None, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    pincode: str = Field(..., pattern=r"^\d{6}$")
    contact_number: str = Field(..., pattern=r"^\d{10}$")


class SubscribeIn(BaseModel):
    plan_id: uuid.UUID
    delivery_address: SubscriptionAddressIn
    preferred_delivery_time: PreferredDeliveryTime = PreferredDeliveryTime.MORNING
    start_date: Optional[date] = None
    payment_method: PaymentMethod = PaymentMethod.UPI
    special_instructions: Optional[str] = Field(None, max_length=500)

    model_config = {"extra": "forbid"}


class SubscriptionActionIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class CancelSubscriptionIn(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500)
    refund_method: Optional[RefundMethod] = None
    refund_details: Optional[RefundDetailsIn] = None

    @model_validator(mode="after")
    def _details_match_method(self):
        check_refund_details(self.refund_method, self.refund_details)
        return self


class SubscriptionPaymentDecisionIn(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)


class CancellationDecisionIn(BaseModel):
    approve: bool
    reason: Optional[str] = Field(None, max_length=500)
