import uuid
from pydantic import BaseModel, Field


class CartItemInput(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(1, ge=1, le=100)


class CartItemQuantityIn(BaseModel):
    quantity: int = Field(..., ge=0, le=100, description="0 removes the line")
