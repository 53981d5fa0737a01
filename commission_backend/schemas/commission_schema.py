from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from commission_backend.models.enums import CommissionSourceType, CommissionStatus

# --- Commission Schemas ---
class CommissionDisplay(BaseModel):
    id: int
    user_id: int = Field(..., description="User who earned the commission")
    source_type: CommissionSourceType
    source_id: int = Field(..., description="Order, subscription or signed-up user that triggered it")
    amount: Decimal
    status: CommissionStatus
    payout_request_id: Optional[int] = Field(None, description="Payout that reserved or paid this commission")
    notes: Optional[str] = None
    created_at: datetime
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class CommissionApproval(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)

# --- Balance Schema ---
class CommissionBalance(BaseModel):
    pending_total: Decimal = Field(Decimal("0.00"), description="Commission awaiting approval")
    approved_total: Decimal = Field(Decimal("0.00"), description="Approved balance, eligible for payout")
    paid_total: Decimal = Field(Decimal("0.00"), description="Commission already paid out")
    lifetime_total: Decimal = Field(Decimal("0.00"), description="pending + approved + paid")
    minimum_payout_amount: Decimal = Field(Decimal("0.00"), description="Smallest payout that can be requested")

# --- Batch job results ---
class BackfillReport(BaseModel):
    job: str
    created: int = 0
    skipped: int = 0
    failed: int = 0
    message: str = ""
