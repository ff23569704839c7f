from typing import Optional
from pydantic import BaseModel, Field, model_validator


class ProductCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: str = Field("milk", max_length=64)
    unit: str = Field("1L", max_length=32)
    price: int = Field(..., ge=0, description="Price in rupees")
    discount_price: Optional[int] = Field(None, ge=0)
    stock_qty: int = Field(0, ge=0)
    is_active: bool = True

    @model_validator(mode="after")
    def _discount_below_price(self):
        if self.discount_price is not None and self.discount_price > self.price:
            raise ValueError("discount_price cannot exceed price")
        return self


class ProductUpdateIn(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=64)
    unit: Optional[str] = Field(None, max_length=32)
    price: Optional[int] = Field(None, ge=0)
    discount_price: Optional[int] = Field(None, ge=0)
    stock_qty: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None

    model_config = {"extra": "forbid"}   # unknown input fields -> 422 at pydantic level
