from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from commission_backend.models.enums import SubscriptionStatus

# --- SubscriptionPlan Schemas ---
class SubscriptionPlanBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=100, description="Name of the subscription plan")
    description: Optional[str] = Field(None, max_length=1000)
    features: Optional[str] = Field(None, max_length=2000)
    price: Decimal = Field(..., ge=0, description="Price of the plan, 0 for the free plan")
    duration_days: int = Field(..., gt=0, description="Duration of the plan in days")
    affiliate_commission_percentage: Optional[Decimal] = Field(
        None, ge=0, le=100, description="Percent of the price paid to the referring affiliate (overrides the flat fee)"
    )
    is_active: bool = Field(True, description="Whether the plan is available for new subscriptions")

class SubscriptionPlanCreate(SubscriptionPlanBase):
    pass

class SubscriptionPlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    features: Optional[str] = Field(None, max_length=2000)
    price: Optional[Decimal] = Field(None, ge=0)
    duration_days: Optional[int] = Field(None, gt=0)
    affiliate_commission_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None

class SubscriptionPlanDisplay(SubscriptionPlanBase):
    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

# --- Subscription Schemas ---
class VerifiedPayment(BaseModel):
    """Opaque 'payment verified' event from the payment gateway."""
    reference: str = Field(..., min_length=1, max_length=255)
    amount_paid: Decimal = Field(..., ge=0)

class SubscribeRequest(BaseModel):
    plan_id: int
    payment: Optional[VerifiedPayment] = Field(None, description="Required for paid plans")

class SubscriptionDisplay(BaseModel):
    id: int
    customer_id: int
    plan_id: int
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime
    auto_renew: bool
    payment_reference: Optional[str] = None
    plan: SubscriptionPlanDisplay
    created_at: datetime

    class Config:
        from_attributes = True

class ContentAccessDisplay(BaseModel):
    customer_id: int
    premium_access: bool = Field(..., description="False means only free content is visible")
    active_subscription_id: Optional[int] = None

class ExpirationSweepItem(BaseModel):
    subscription_id: int
    customer_id: int
    status: str # "success" | "failed"
    assigned_to_free_plan: bool = False
    error: Optional[str] = None

class ExpirationSweepReport(BaseModel):
    success: bool = True
    message: str
    expired: int = 0
    failed: int = 0
    timestamp: datetime
    details: list[ExpirationSweepItem] = Field(default_factory=list)
