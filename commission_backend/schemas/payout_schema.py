from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal

from commission_backend.models.enums import PayoutStatus

class PaymentMethod(BaseModel):
    type: str = Field(..., min_length=1, max_length=50, description="e.g. momo, bank")
    details: Dict[str, Any] = Field(default_factory=dict, description="Account number, network, holder name...")

class PayoutRequestCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: PaymentMethod

class PayoutRequestDisplay(BaseModel):
    id: int
    user_id: int
    amount: Decimal
    payment_method: str = Field(..., description="JSON-encoded payment method")
    status: PayoutStatus
    requested_at: datetime
    processed_at: Optional[datetime] = None
    processed_by_id: Optional[int] = None

    class Config:
        from_attributes = True

class PayoutApprovalDisplay(BaseModel):
    payout_request: PayoutRequestDisplay
    commission_ids: List[int] = Field(default_factory=list, description="Commissions marked PAID")
    consumed_total: Decimal
