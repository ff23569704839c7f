import re
import uuid
from typing import Optional
from pydantic import BaseModel, Field, model_validator
from milkcart.payments.utils import is_valid_upi_id
from milkcart.schema.full_schema import RefundMethod, RefundStatus

IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")


class RefundDetailsIn(BaseModel):
    mobile_number: str = Field(..., pattern=r"^\d{10}$")
    upi_id: Optional[str] = Field(None, max_length=128)
    account_holder_name: Optional[str] = Field(None, max_length=128)
    bank_name: Optional[str] = Field(None, max_length=128)
    account_number: Optional[str] = Field(None, pattern=r"^\d{9,18}$")
    ifsc_code: Optional[str] = Field(None, max_length=11)


def check_refund_details(method: Optional[RefundMethod], details: Optional[RefundDetailsIn]) -> None:
    """Details must carry what the chosen method needs."""
    if method is None and details is None:
        return
    if method is None or details is None:
        raise ValueError("refund_method and refund_details go together")

    if method == RefundMethod.UPI:
        if not details.upi_id or not is_valid_upi_id(details.upi_id):
            raise ValueError("a valid upi_id is required for UPI refunds")
    else:
        missing = [f for f in ("account_holder_name", "bank_name", "account_number", "ifsc_code") if not getattr(details, f)]
        if missing:
            raise ValueError(f"bank transfer refunds need: {', '.join(missing)}")
        if not IFSC_PATTERN.match(details.ifsc_code.upper()):
            raise ValueError("invalid IFSC code")


class RefundRequestCreateIn(BaseModel):
    order_id: uuid.UUID
    reason: str = Field(..., min_length=3, max_length=500)
    refund_method: RefundMethod
    refund_details: RefundDetailsIn

    @model_validator(mode="after")
    def _details_match_method(self):
        check_refund_details(self.refund_method, self.refund_details)
        return self


class RefundStatusUpdateIn(BaseModel):
    status: RefundStatus
    admin_notes: Optional[str] = Field(None, max_length=1000)
    refund_transaction_id: Optional[str] = Field(None, max_length=64)
