from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from commission_backend.core.database import get_db
from commission_backend.core.dependencies import get_current_earner_user
from commission_backend.crud import payout_crud
from commission_backend.models.enums import PayoutStatus
from commission_backend.models.user_model import User
from commission_backend.schemas import payout_schema as schemas
from commission_backend.schemas.common_schema import OperationResult
from commission_backend.services import payout_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payouts", tags=["Payouts"])


@router.post("", response_model=OperationResult, status_code=status.HTTP_201_CREATED)
def request_payout(
    payout_in: schemas.PayoutRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_earner_user)
):
    """
    Request a withdrawal of approved commission. The amount must be at least the
    configured minimum and must be coverable, oldest first, by whole approved commissions.
    """
    logger.info(f"User {current_user.email} requesting payout of {payout_in.amount}.")
    payout = payout_service.request_payout(db, current_user.id, payout_in.amount, payout_in.payment_method)
    return OperationResult(
        message="Payout request submitted.",
        data=schemas.PayoutRequestDisplay.model_validate(payout).model_dump(mode="json"),
    )


@router.get("/me", response_model=List[schemas.PayoutRequestDisplay])
def get_my_payout_requests(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_earner_user),
    status_filter: Optional[PayoutStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100)
):
    return payout_crud.get_payout_requests_for_user(
        db, user_id=current_user.id, status=status_filter, skip=skip, limit=limit
    )
