from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from commission_backend.models.enums import OrderPaymentStatus, OrderStatus

# --- Product Schemas ---
class ProductBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    price: Decimal = Field(..., ge=0)
    affiliate_commission_amount: Decimal = Field(Decimal("0.00"), ge=0, description="Flat commission per order")
    is_active: bool = True

class ProductCreate(ProductBase):
    pass

class ProductUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    price: Optional[Decimal] = Field(None, ge=0)
    affiliate_commission_amount: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None

class ProductDisplay(ProductBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True

# --- Order Schemas ---
class OrderPaymentConfirmation(BaseModel):
    """A purchase whose payment the gateway has already verified."""
    product_id: int
    quantity: int = Field(1, ge=1)
    payment_reference: str = Field(..., min_length=1, max_length=255)
    amount_paid: Decimal = Field(..., ge=0)

class OrderStatusUpdate(BaseModel):
    status: OrderStatus

class OrderDisplay(BaseModel):
    id: int
    order_number: str
    customer_id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    payment_status: OrderPaymentStatus
    status: OrderStatus
    payment_reference: Optional[str] = None
    referred_by_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
