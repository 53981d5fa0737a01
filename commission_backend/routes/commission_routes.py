from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from commission_backend.core.database import get_db
from commission_backend.core.dependencies import get_current_earner_user
from commission_backend.crud import commission_crud
from commission_backend.models.enums import CommissionStatus
from commission_backend.models.user_model import User
from commission_backend.schemas import commission_schema as schemas
from commission_backend.services import payout_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/commissions", tags=["Commissions"])


@router.get("/me", response_model=List[schemas.CommissionDisplay])
def get_my_commissions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_earner_user),
    status_filter: Optional[CommissionStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100)
):
    """Commission history of the current affiliate or manager, newest first."""
    return commission_crud.get_commissions_for_user(
        db, user_id=current_user.id, status=status_filter, skip=skip, limit=limit
    )


@router.get("/me/balance", response_model=schemas.CommissionBalance)
def get_my_commission_balance(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_earner_user)
):
    """Totals per status. Only the approved total can be withdrawn."""
    return schemas.CommissionBalance(**payout_service.get_balance_summary(db, current_user.id))
