"""
Commission approval and payout settlement.

A payout consumes whole APPROVED commissions, oldest first, skipping any row
larger than what is left to cover. Rows are never split, so a request only
succeeds when the rows picked this way add up to exactly the requested amount.

The picked rows are reserved for the request (their `payout_request_id` is set
while they stay APPROVED) and approval pays out exactly those rows. Commissions
approved in the meantime never change what a pending request consumes.
"""
import logging
from decimal import Decimal
from typing import Iterable, List, NamedTuple, Optional, Tuple

from sqlalchemy.orm import Session

from commission_backend.core.database import run_unit_of_work, utcnow
from commission_backend.core.exceptions import (
    AlreadyProcessedError, ErrorCodes, InsufficientBalanceError, NotFoundError,
    PayoutReconciliationError, ValidationError
)
from commission_backend.core.money import to_money, ZERO
from commission_backend.crud import activity_crud, commission_crud, payout_crud, user_crud
from commission_backend.models.commission_model import Commission
from commission_backend.models.enums import ActivityType, CommissionStatus, PayoutStatus
from commission_backend.models.payout_model import PayoutRequest
from commission_backend.schemas.payout_schema import PaymentMethod
from commission_backend.services import notification_service
from commission_backend.services.notification_service import Notification
from commission_backend.services.settings_provider import CommissionSettings

logger = logging.getLogger(__name__)


class PayoutApproval(NamedTuple):
    payout_request: PayoutRequest
    commissions: List[Commission]
    consumed_total: Decimal
    notifications: List[Notification]


def select_commissions_for_payout(commissions: Iterable[Commission], amount: Decimal) -> Tuple[List[Commission], Decimal]:
    """
    Greedy FIFO selection. Returns the chosen rows and their sum, which may be
    less than `amount` when no whole-row combination reaches it this way.
    """
    remaining = to_money(amount)
    selected = []
    ordered = sorted(commissions, key=lambda c: (c.created_at, c.id))
    for commission in ordered:
        if remaining <= ZERO:
            break
        commission_amount = to_money(commission.amount)
        if commission_amount <= remaining:
            selected.append(commission)
            remaining -= commission_amount
    return selected, to_money(amount) - remaining


def _reconciliation_error(amount: Decimal, consumable: Decimal, balance: Decimal) -> PayoutReconciliationError:
    return PayoutReconciliationError(
        f"Approved commissions cannot be combined into exactly {amount:.2f}; "
        f"the oldest-first whole-commission total is {consumable:.2f}.",
        details={"requested": str(amount), "consumable": str(consumable), "approved_balance": str(balance)},
    )


# --- Commission approval ---

def approve_commission(db: Session, commission_id: int, admin_id: int, notes: Optional[str] = None) -> Commission:
    """PENDING -> APPROVED. Anything else is rejected, never re-processed."""

    def work():
        commission = commission_crud.get_commission_by_id(db, commission_id, for_update=True)
        if commission is None:
            raise NotFoundError(f"Commission {commission_id} not found.")
        if commission.status != CommissionStatus.PENDING:
            raise AlreadyProcessedError(
                f"Commission {commission_id} is already {CommissionStatus(commission.status).value}.",
                details={"status": CommissionStatus(commission.status).value},
            )

        commission.status = CommissionStatus.APPROVED
        commission.approved_at = utcnow()
        if notes is not None:
            commission.notes = notes

        activity_crud.log_activity(db, commission.user_id, ActivityType.COMMISSION_APPROVED, {
            "commission_id": commission.id,
            "amount": str(commission.amount),
            "approved_by": admin_id,
        })
        db.flush()
        return commission

    commission = run_unit_of_work(db, work, retry_on_conflict=False)
    logger.info(f"Commission {commission_id} approved by admin {admin_id}.")
    return commission


# --- Payout requests ---

def request_payout(
    db: Session,
    user_id: int,
    amount: Decimal,
    payment_method: PaymentMethod,
    settings_provider: Optional[CommissionSettings] = None,
) -> PayoutRequest:
    settings_provider = settings_provider or CommissionSettings(db)

    def work():
        user = user_crud.get_user_by_id(db, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found.")

        requested = to_money(amount)
        if requested <= ZERO:
            raise ValidationError("Payout amount must be greater than zero.")

        minimum = settings_provider.get_minimum_payout_amount()
        if requested < minimum:
            raise ValidationError(
                f"Amount must be at least {minimum:.2f}.",
                code=ErrorCodes.BELOW_MINIMUM_PAYOUT,
                details={"minimum": str(minimum)},
            )

        if payout_crud.get_payout_requests_for_user(db, user_id, status=PayoutStatus.PENDING, limit=1):
            raise ValidationError("A payout request is already awaiting approval.")

        approved = commission_crud.get_approved_commissions_fifo(db, user_id, for_update=True)
        balance = to_money(sum((to_money(c.amount) for c in approved), ZERO))
        if balance < requested:
            raise InsufficientBalanceError(
                f"Insufficient approved balance. Available: {balance:.2f}",
                details={"approved_balance": str(balance)},
            )
        if balance < minimum:
            raise InsufficientBalanceError(
                f"Your approved balance is below the minimum payout amount of {minimum:.2f}.",
                details={"approved_balance": str(balance), "minimum": str(minimum)},
            )

        selected, consumable = select_commissions_for_payout(approved, requested)
        if consumable != requested:
            raise _reconciliation_error(requested, consumable, balance)

        payout = payout_crud.create_payout_request(db, user_id, requested, payment_method)
        for commission in selected:
            commission.payout_request_id = payout.id
        activity_crud.log_activity(db, user_id, ActivityType.PAYOUT_REQUESTED, {
            "payout_request_id": payout.id,
            "amount": str(requested),
            "payment_method": payment_method.type,
            "approved_balance": str(balance),
            "commission_ids": [c.id for c in selected],
        })
        db.flush()
        return payout

    payout = run_unit_of_work(db, work, retry_on_conflict=False)
    logger.info(f"Payout request {payout.id} for {payout.amount} submitted by user {user_id}.")
    return payout

def approve_payout_request(db: Session, payout_request_id: int, admin_id: int) -> PayoutApproval:
    """
    PENDING -> PAID in one transaction: the consumed commissions, the request
    itself and both audit entries commit together or not at all.
    """

    def work():
        payout = payout_crud.get_payout_request_by_id(db, payout_request_id, for_update=True)
        if payout is None:
            raise NotFoundError(f"Payout request {payout_request_id} not found.")
        if payout.status != PayoutStatus.PENDING:
            raise AlreadyProcessedError(
                f"Payout request {payout_request_id} is already {PayoutStatus(payout.status).value}.",
                details={"status": PayoutStatus(payout.status).value},
            )

        requested = to_money(payout.amount)
        selected = commission_crud.get_commissions_reserved_for_payout(db, payout.id, for_update=True)
        if selected:
            consumed = to_money(sum((to_money(c.amount) for c in selected), ZERO))
            approved = selected
        else:
            # Requests created before reservation existed
            approved = commission_crud.get_approved_commissions_fifo(db, payout.user_id, for_update=True)
            selected, consumed = select_commissions_for_payout(approved, requested)
        if consumed != requested:
            balance = to_money(sum((to_money(c.amount) for c in approved), ZERO))
            logger.warning(f"Payout request {payout_request_id} not reconcilable: requested {requested}, consumable {consumed}.")
            raise _reconciliation_error(requested, consumed, balance)

        now = utcnow()
        for commission in selected:
            commission.status = CommissionStatus.PAID
            commission.paid_at = now
            commission.payout_request_id = payout.id

        payout.status = PayoutStatus.PAID
        payout.processed_at = now
        payout.processed_by_id = admin_id

        commission_ids = [c.id for c in selected]
        activity_crud.log_activity(db, payout.user_id, ActivityType.PAYOUT_RECEIVED, {
            "payout_request_id": payout.id,
            "amount": str(requested),
            "commission_ids": commission_ids,
        })
        activity_crud.log_activity(db, admin_id, ActivityType.PAYOUT_APPROVED, {
            "payout_request_id": payout.id,
            "recipient_id": payout.user_id,
            "amount": str(requested),
            "commissions_count": len(commission_ids),
        })
        db.flush()

        notification = notification_service.payout_approved(payout.user, payout)
        return PayoutApproval(payout, selected, consumed, [notification] if notification else [])

    approval = run_unit_of_work(db, work, retry_on_conflict=False)
    logger.info(f"Payout request {payout_request_id} approved by admin {admin_id}: "
                f"{len(approval.commissions)} commissions totalling {approval.consumed_total} marked PAID.")
    return approval


# --- Read models ---

def get_balance_summary(db: Session, user_id: int, settings_provider: Optional[CommissionSettings] = None) -> dict:
    settings_provider = settings_provider or CommissionSettings(db)
    totals = commission_crud.get_commission_totals_for_user(db, user_id)
    pending = totals[CommissionStatus.PENDING]
    approved = totals[CommissionStatus.APPROVED]
    paid = totals[CommissionStatus.PAID]
    return {
        "pending_total": pending,
        "approved_total": approved,
        "paid_total": paid,
        "lifetime_total": pending + approved + paid,
        "minimum_payout_amount": settings_provider.get_minimum_payout_amount(),
    }
