from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional, Dict, Any
from decimal import Decimal
import logging

from commission_backend.core.money import to_money, ZERO
from commission_backend.models.commission_model import Commission
from commission_backend.models.enums import CommissionSourceType, CommissionStatus, source_group_for

logger = logging.getLogger(__name__)


def _apply_commission_filters(query, filters: Optional[Dict[str, Any]] = None):
    if not filters:
        return query

    if "status" in filters and filters["status"]:
        query = query.filter(Commission.status == filters["status"])
    if "user_id" in filters and filters["user_id"]:
        query = query.filter(Commission.user_id == filters["user_id"])
    if "source_type" in filters and filters["source_type"]:
        query = query.filter(Commission.source_group == source_group_for(filters["source_type"]))
    return query

# --- Commission CRUD ---

def commission_exists(db: Session, user_id: int, source_type: CommissionSourceType, source_id: int) -> bool:
    """PRODUCT and ORDER share one source group, so either label counts as a match."""
    return db.query(Commission.id).filter(
        Commission.user_id == user_id,
        Commission.source_group == source_group_for(source_type),
        Commission.source_id == source_id,
    ).first() is not None

def create_commission(
    db: Session,
    user_id: int,
    source_type: CommissionSourceType,
    source_id: int,
    amount: Decimal,
    notes: Optional[str] = None,
) -> Commission:
    """Adds and flushes a PENDING commission. A duplicate source raises IntegrityError here."""
    db_commission = Commission(
        user_id=user_id,
        source_type=source_type,
        source_id=source_id,
        amount=to_money(amount),
        status=CommissionStatus.PENDING,
        notes=notes,
    )
    db.add(db_commission)
    db.flush()
    logger.info(f"Commission (ID: {db_commission.id}) created for user {user_id}: "
                f"{source_type.value}:{source_id} amount {db_commission.amount}.")
    return db_commission

def get_commission_by_id(db: Session, commission_id: int, for_update: bool = False) -> Optional[Commission]:
    logger.debug(f"Fetching commission by ID: {commission_id}")
    query = db.query(Commission).filter(Commission.id == commission_id)
    if for_update:
        query = query.with_for_update()
    return query.first()

def get_commissions_for_user(
    db: Session,
    user_id: int,
    status: Optional[CommissionStatus] = None,
    skip: int = 0,
    limit: int = 20
) -> List[Commission]:
    logger.debug(f"Fetching commissions for user_id {user_id}, status {status}, skip {skip}, limit {limit}")
    query = db.query(Commission).filter(Commission.user_id == user_id)
    if status:
        query = query.filter(Commission.status == status)
    return query.order_by(Commission.created_at.desc(), Commission.id.desc()).offset(skip).limit(limit).all()

def get_all_commissions( # For Admin
    db: Session,
    skip: int = 0,
    limit: int = 100,
    filters: Optional[Dict[str, Any]] = None
) -> List[Commission]:
    logger.debug(f"Admin fetching commissions. Filters: {filters}")
    query = _apply_commission_filters(db.query(Commission), filters)
    return query.order_by(Commission.created_at.desc(), Commission.id.desc()).offset(skip).limit(limit).all()

def count_all_commissions(db: Session, filters: Optional[Dict[str, Any]] = None) -> int:
    query = _apply_commission_filters(db.query(func.count(Commission.id)), filters)
    return query.scalar() or 0

def get_approved_commissions_fifo(db: Session, user_id: int, for_update: bool = False) -> List[Commission]:
    """Unreserved APPROVED commissions oldest first; `id` breaks ties between equal timestamps."""
    query = db.query(Commission).filter(
        Commission.user_id == user_id,
        Commission.status == CommissionStatus.APPROVED,
        Commission.payout_request_id.is_(None),
    ).order_by(Commission.created_at.asc(), Commission.id.asc())
    if for_update:
        query = query.with_for_update()
    return query.all()

def get_commissions_reserved_for_payout(db: Session, payout_request_id: int, for_update: bool = False) -> List[Commission]:
    query = db.query(Commission).filter(
        Commission.payout_request_id == payout_request_id,
        Commission.status == CommissionStatus.APPROVED,
    ).order_by(Commission.created_at.asc(), Commission.id.asc())
    if for_update:
        query = query.with_for_update()
    return query.all()

def get_approved_balance(db: Session, user_id: int) -> Decimal:
    total = db.query(func.sum(Commission.amount)).filter(
        Commission.user_id == user_id,
        Commission.status == CommissionStatus.APPROVED,
    ).scalar()
    return to_money(total)

def get_commission_totals_for_user(db: Session, user_id: int) -> Dict[CommissionStatus, Decimal]:
    logger.debug(f"Calculating commission totals for user_id {user_id}")
    totals = {status: ZERO for status in CommissionStatus}
    rows = db.query(Commission.status, func.sum(Commission.amount)).filter(
        Commission.user_id == user_id
    ).group_by(Commission.status).all()
    for status, amount in rows:
        totals[CommissionStatus(status)] = to_money(amount)
    return totals

def count_commissions_for_payout(db: Session, payout_request_id: int) -> int:
    return db.query(func.count(Commission.id)).filter(
        Commission.payout_request_id == payout_request_id
    ).scalar() or 0
