"""
Maintenance jobs that fill in ledger rows missing from historical data.

Each job walks its source rows and hands every one to the same engine used on
the live path, one transaction per row. The engine's existence check means a
job can be re-run any number of times without writing a duplicate; a failing
row is counted and the job carries on.
"""
import logging
from functools import partial
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from commission_backend.core.database import run_unit_of_work, utcnow
from commission_backend.core.money import to_money
from commission_backend.crud import activity_crud, commission_crud, order_crud, payout_crud, subscription_crud, user_crud
from commission_backend.models.enums import ActivityType, CommissionStatus
from commission_backend.schemas.commission_schema import BackfillReport
from commission_backend.services.commission_engine import CommissionEngine, CommissionOutcome
from commission_backend.services.payout_service import select_commissions_for_payout
from commission_backend.services.settings_provider import CommissionSettings

logger = logging.getLogger(__name__)


def _run_commission_job(db: Session, job: str, source_ids: List[int], handler: Callable[[int], CommissionOutcome]) -> BackfillReport:
    report = BackfillReport(job=job)
    for source_id in source_ids:
        try:
            outcome = run_unit_of_work(db, partial(handler, source_id))
        except Exception as e:
            logger.error(f"Backfill '{job}' failed for source {source_id}: {e}", exc_info=True)
            report.failed += 1
            continue
        report.created += outcome.created_count
        report.skipped += outcome.skipped_count
    report.message = f"Created {report.created} commissions, skipped {report.skipped}, failed {report.failed}."
    logger.info(f"Backfill '{job}' over {len(source_ids)} sources: {report.message}")
    return report


def backfill_signup_commissions(db: Session, settings_provider: Optional[CommissionSettings] = None) -> BackfillReport:
    engine = CommissionEngine(db, settings_provider)
    customer_ids = [u.id for u in user_crud.get_referred_customers(db)]
    return _run_commission_job(db, "signup_commissions", customer_ids, engine.signup_commission_for_user)


def backfill_order_commissions(db: Session, settings_provider: Optional[CommissionSettings] = None) -> BackfillReport:
    engine = CommissionEngine(db, settings_provider)
    order_ids = [o.id for o in order_crud.get_paid_referred_orders(db)]
    return _run_commission_job(db, "order_commissions", order_ids, engine.order_commission)


def backfill_subscription_commissions(db: Session, settings_provider: Optional[CommissionSettings] = None) -> BackfillReport:
    engine = CommissionEngine(db, settings_provider)
    subscriptions = {s.id: (s.customer_id, s.plan.price) for s in subscription_crud.get_paid_subscriptions(db)}

    def handle(subscription_id: int) -> CommissionOutcome:
        customer_id, price = subscriptions[subscription_id]
        return engine.subscription_commission(subscription_id, customer_id, price)

    return _run_commission_job(db, "subscription_commissions", list(subscriptions), handle)


def backfill_all_commissions(db: Session, settings_provider: Optional[CommissionSettings] = None) -> List[BackfillReport]:
    return [
        backfill_signup_commissions(db, settings_provider),
        backfill_order_commissions(db, settings_provider),
        backfill_subscription_commissions(db, settings_provider),
    ]


def _settle_paid_payout(db: Session, payout_request_id: int) -> int:
    payout = payout_crud.get_payout_request_by_id(db, payout_request_id, for_update=True)
    if payout is None or commission_crud.count_commissions_for_payout(db, payout.id):
        return 0

    requested = to_money(payout.amount)
    approved = commission_crud.get_approved_commissions_fifo(db, payout.user_id, for_update=True)
    selected, consumed = select_commissions_for_payout(approved, requested)
    if not selected:
        logger.warning(f"Paid payout {payout.id} has no APPROVED commissions left to settle; may already be processed.")
        return 0
    if consumed != requested:
        logger.warning(f"Paid payout {payout.id} only partially covered by commissions: "
                       f"requested {requested}, settled {consumed}.")

    paid_at = payout.processed_at or utcnow()
    for commission in selected:
        commission.status = CommissionStatus.PAID
        commission.paid_at = paid_at
        commission.payout_request_id = payout.id

    activity_crud.log_activity(db, payout.user_id, ActivityType.PAYOUT_RECEIVED, {
        "payout_request_id": payout.id,
        "amount": str(requested),
        "commissions_count": len(selected),
        "backfilled": True,
    })
    db.flush()
    return len(selected)


def backfill_paid_payouts(db: Session) -> BackfillReport:
    """
    Settles PAID payout requests that predate commission linkage. Coverage may
    fall short of the paid amount for such legacy rows; the gap is logged.
    """
    report = BackfillReport(job="paid_payouts")
    payout_ids = [p.id for p in payout_crud.get_paid_payouts_without_commissions(db)]
    for payout_id in payout_ids:
        try:
            settled = run_unit_of_work(db, partial(_settle_paid_payout, db, payout_id), retry_on_conflict=False)
        except Exception as e:
            logger.error(f"Paid-payout backfill failed for payout {payout_id}: {e}", exc_info=True)
            report.failed += 1
            continue
        if settled:
            report.created += settled
        else:
            report.skipped += 1
    report.message = (f"Marked {report.created} commissions PAID across {len(payout_ids)} payouts, "
                      f"skipped {report.skipped}, failed {report.failed}.")
    logger.info(f"Backfill 'paid_payouts': {report.message}")
    return report
