import uuid
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class PaymentSessionCreateIn(BaseModel):
    order_ids: Optional[List[uuid.UUID]] = Field(None, min_length=1, max_length=20)
    subscription_id: Optional[uuid.UUID] = None

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def _exactly_one_target(self):
        if bool(self.order_ids) == bool(self.subscription_id):
            raise ValueError("provide either order_ids or subscription_id")
        return self

    @field_validator("order_ids")
    @classmethod
    def _unique_orders(cls, v):
        if v is not None and len(set(v)) != len(v):
            raise ValueError("order_ids must be unique")
        return v


class PaymentSubmitIn(BaseModel):
    upi_transaction_id: str = Field(..., min_length=6, max_length=64)
    upi_reference_number: Optional[str] = Field(None, max_length=64)

    @field_validator("upi_transaction_id")
    @classmethod
    def _clean_txn(cls, v: str) -> str:
        v = v.strip()
        if not v.replace("-", "").isalnum():
            raise ValueError("upi_transaction_id must be alphanumeric")
        return v


class PaymentVerifyIn(BaseModel):
    decision: Literal["verify", "reject"]
    notes: Optional[str] = Field(None, max_length=1000)
