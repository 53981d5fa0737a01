from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from commission_backend.schemas.user_schema import UserDisplay
from commission_backend.schemas.commission_schema import CommissionDisplay
from commission_backend.schemas.payout_schema import PayoutRequestDisplay

# --- Commission settings (system_settings table) ---
class CommissionSettingsDisplay(BaseModel):
    manager_commission_percentage: Decimal = Field(..., description="Fraction in [0, 1], e.g. 0.20")
    signup_bonus: Decimal
    affiliate_subscription_flat: Decimal
    minimum_payout_amount: Decimal

class CommissionSettingsUpdate(BaseModel):
    """Percentages are entered as percent values (20 means 20%)."""
    manager_commission_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    signup_bonus: Optional[Decimal] = Field(None, ge=0)
    affiliate_subscription_flat: Optional[Decimal] = Field(None, ge=0)
    minimum_payout_amount: Optional[Decimal] = Field(None, ge=0)

# --- Paginated admin listings ---
class PaginatedUsersAdmin(BaseModel):
    total: int
    users: List[UserDisplay]
    page: int
    size: int

class PaginatedCommissionsAdmin(BaseModel):
    total: int
    commissions: List[CommissionDisplay]
    page: int
    size: int

class PaginatedPayoutsAdmin(BaseModel):
    total: int
    payout_requests: List[PayoutRequestDisplay]
    page: int
    size: int

class ActivityLogDisplay(BaseModel):
    id: int
    user_id: int
    action_type: str
    action_details: Optional[str] = Field(None, description="JSON-encoded details")
    created_at: datetime

    class Config:
        from_attributes = True
