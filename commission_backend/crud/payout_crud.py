from sqlalchemy.orm import Session
from sqlalchemy import func, select
from typing import List, Optional, Dict, Any
from decimal import Decimal
import logging

from commission_backend.core.money import to_money
from commission_backend.models.commission_model import Commission
from commission_backend.models.payout_model import PayoutRequest
from commission_backend.models.enums import PayoutStatus
from commission_backend.schemas.payout_schema import PaymentMethod

logger = logging.getLogger(__name__)


def _apply_payout_filters(query, filters: Optional[Dict[str, Any]] = None):
    if not filters:
        return query

    if "status" in filters and filters["status"]:
        query = query.filter(PayoutRequest.status == filters["status"])
    if "user_id" in filters and filters["user_id"]:
        query = query.filter(PayoutRequest.user_id == filters["user_id"])
    return query

def create_payout_request(db: Session, user_id: int, amount: Decimal, payment_method: PaymentMethod) -> PayoutRequest:
    db_payout = PayoutRequest(
        user_id=user_id,
        amount=to_money(amount),
        payment_method=payment_method.model_dump_json(),
        status=PayoutStatus.PENDING,
    )
    db.add(db_payout)
    db.flush()
    logger.info(f"PayoutRequest (ID: {db_payout.id}) created for user {user_id}, amount {db_payout.amount}.")
    return db_payout

def get_payout_request_by_id(db: Session, payout_request_id: int, for_update: bool = False) -> Optional[PayoutRequest]:
    logger.debug(f"Fetching payout request by ID: {payout_request_id}")
    query = db.query(PayoutRequest).filter(PayoutRequest.id == payout_request_id)
    if for_update:
        query = query.with_for_update()
    return query.first()

def get_payout_requests_for_user(
    db: Session,
    user_id: int,
    status: Optional[PayoutStatus] = None,
    skip: int = 0,
    limit: int = 20
) -> List[PayoutRequest]:
    logger.debug(f"Fetching payout requests for user_id {user_id}, status {status}")
    query = db.query(PayoutRequest).filter(PayoutRequest.user_id == user_id)
    if status:
        query = query.filter(PayoutRequest.status == status)
    return query.order_by(PayoutRequest.requested_at.desc(), PayoutRequest.id.desc()).offset(skip).limit(limit).all()

def get_all_payout_requests( # For Admin
    db: Session,
    skip: int = 0,
    limit: int = 100,
    filters: Optional[Dict[str, Any]] = None
) -> List[PayoutRequest]:
    logger.debug(f"Admin fetching payout requests. Filters: {filters}")
    query = _apply_payout_filters(db.query(PayoutRequest), filters)
    return query.order_by(PayoutRequest.requested_at.desc(), PayoutRequest.id.desc()).offset(skip).limit(limit).all()

def count_all_payout_requests(db: Session, filters: Optional[Dict[str, Any]] = None) -> int:
    query = _apply_payout_filters(db.query(func.count(PayoutRequest.id)), filters)
    return query.scalar() or 0

def get_paid_payouts_without_commissions(db: Session) -> List[PayoutRequest]:
    """PAID payout requests that no commission row points at (settled before linkage existed)."""
    linked = select(Commission.payout_request_id).where(Commission.payout_request_id.isnot(None))
    return (
        db.query(PayoutRequest)
        .filter(PayoutRequest.status == PayoutStatus.PAID, PayoutRequest.id.notin_(linked))
        .order_by(PayoutRequest.processed_at.asc(), PayoutRequest.id.asc())
        .all()
    )
