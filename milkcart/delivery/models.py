import uuid
from typing import List, Optional
from pydantic import BaseModel, Field
from milkcart.schema.full_schema import DeliveryPersonShift, DeliveryShift


class DeliveryPersonCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    phone: str = Field(..., pattern=r"^\+?\d{10,13}$")
    email: Optional[str] = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=320)
    vehicle_number: Optional[str] = Field(None, max_length=32)
    delivery_shift: DeliveryPersonShift = DeliveryPersonShift.BOTH


class SuspendIn(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500)


class StandingAssignmentIn(BaseModel):
    user_id: uuid.UUID
    delivery_person_id: uuid.UUID
    delivery_shifts: List[DeliveryShift] = Field(default_factory=list, description="empty covers every shift")
    notes: Optional[str] = Field(None, max_length=500)

    model_config = {"extra": "forbid"}
