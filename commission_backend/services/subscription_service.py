"""
Subscription Lifecycle Service

Keeps each customer on at most one ACTIVE subscription: every new subscription
cancels the customer's previous ACTIVE ones in the same transaction. The
expiration sweep is triggered externally (daily cron) and falls customers back
to the free plan when nothing else is active.
"""
import logging
from collections import OrderedDict
from datetime import datetime
from functools import partial
from typing import Dict, List, NamedTuple, Optional, Tuple

from sqlalchemy.orm import Session

from commission_backend.core.database import run_unit_of_work, utcnow
from commission_backend.core.exceptions import ErrorCodes, NotFoundError, ValidationError
from commission_backend.core.money import to_money, ZERO
from commission_backend.crud import activity_crud, subscription_crud, user_crud
from commission_backend.models.enums import ActivityType, SubscriptionStatus, UserRole
from commission_backend.models.subscription_model import Subscription, SubscriptionPlan
from commission_backend.models.user_model import User
from commission_backend.schemas.subscription_schema import (
    ExpirationSweepItem, ExpirationSweepReport, VerifiedPayment
)
from commission_backend.services import notification_service
from commission_backend.services.commission_engine import CommissionEngine, CommissionOutcome
from commission_backend.services.notification_service import Notification
from commission_backend.services.settings_provider import CommissionSettings

logger = logging.getLogger(__name__)

FREE_PLAN_NAME = "Free"
FREE_PLAN_DURATION_DAYS = 36500 # effectively never expires


class SubscriptionPurchase(NamedTuple):
    subscription: Subscription
    commissions: CommissionOutcome
    created: bool # False when the payment reference was already used for this subscription


class SubscriptionLifecycleService:
    """Service for managing subscription lifecycle events."""

    def __init__(self, db: Session, settings_provider: Optional[CommissionSettings] = None):
        self.db = db
        self.settings = settings_provider or CommissionSettings(db)

    # --- Building blocks (no commit) ---

    def get_or_create_free_plan(self) -> SubscriptionPlan:
        plan = subscription_crud.get_free_plan(self.db)
        if plan:
            return plan
        logger.info("No active free plan found; creating one.")
        return subscription_crud.add_subscription_plan(
            self.db,
            name=FREE_PLAN_NAME,
            description="Free access to free content",
            price=ZERO,
            duration_days=FREE_PLAN_DURATION_DAYS,
            is_active=True,
        )

    def cancel_active_subscriptions(self, customer_id: int) -> int:
        cancelled = 0
        for subscription in subscription_crud.get_active_subscriptions_for_customer(self.db, customer_id):
            subscription.status = SubscriptionStatus.CANCELLED
            cancelled += 1
            logger.info(f"Subscription {subscription.id} of customer {customer_id} cancelled (replaced).")
        if cancelled:
            self.db.flush()
        return cancelled

    def activate(
        self,
        customer: User,
        plan: SubscriptionPlan,
        payment_reference: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """Cancel-then-create, so the customer never holds two ACTIVE subscriptions."""
        self.cancel_active_subscriptions(customer.id)
        return subscription_crud.create_subscription(
            self.db,
            customer_id=customer.id,
            plan=plan,
            start_date=now or utcnow(),
            payment_reference=payment_reference,
        )

    def enroll_in_free_plan(self, customer: User, now: Optional[datetime] = None) -> Subscription:
        return self.activate(customer, self.get_or_create_free_plan(), now=now)

    # --- Purchase ---

    def subscribe_to_plan(self, customer_id: int, plan_id: int, payment: Optional[VerifiedPayment] = None) -> SubscriptionPurchase:
        def work():
            customer = user_crud.get_user_by_id(self.db, customer_id)
            if customer is None:
                raise NotFoundError(f"User {customer_id} not found.")
            if customer.role != UserRole.CUSTOMER:
                raise ValidationError("Only customers can subscribe to plans.")

            plan = subscription_crud.get_subscription_plan(self.db, plan_id)
            if plan is None:
                raise NotFoundError(f"Subscription plan {plan_id} not found.")
            if not plan.is_active:
                raise ValidationError(f"Subscription plan '{plan.name}' is not available.")

            price = to_money(plan.price)
            reference = None
            if price > ZERO:
                if payment is None:
                    raise ValidationError("A verified payment is required for a paid plan.", code=ErrorCodes.PAYMENT_MISMATCH)
                existing = subscription_crud.get_subscription_by_payment_reference(self.db, payment.reference)
                if existing is not None:
                    if existing.customer_id != customer_id or existing.plan_id != plan_id:
                        raise ValidationError("Payment reference already used for another purchase.",
                                              code=ErrorCodes.PAYMENT_MISMATCH)
                    logger.info(f"Payment reference {payment.reference} already applied to subscription {existing.id}.")
                    return SubscriptionPurchase(existing, CommissionOutcome(), False)
                if to_money(payment.amount_paid) < price:
                    raise ValidationError(
                        f"Amount paid {to_money(payment.amount_paid):.2f} is below the plan price {price:.2f}.",
                        code=ErrorCodes.PAYMENT_MISMATCH,
                    )
                reference = payment.reference

            subscription = self.activate(customer, plan, payment_reference=reference)
            activity_crud.log_activity(self.db, customer.id, ActivityType.SUBSCRIPTION, {
                "subscription_id": subscription.id,
                "plan_id": plan.id,
                "plan_name": plan.name,
                "amount": str(price),
            })
            commissions = CommissionEngine(self.db, self.settings).subscription_commission(
                subscription.id, customer.id, price
            )
            return SubscriptionPurchase(subscription, commissions, True)

        purchase = run_unit_of_work(self.db, work)
        if purchase.created:
            logger.info(f"Customer {customer_id} subscribed to plan {plan_id} (subscription {purchase.subscription.id}), "
                        f"{purchase.commissions.created_count} commissions created.")
        return purchase

    # --- Expiration sweep ---

    def _expire_for_customer(self, customer_id: int, subscription_ids: List[int], now: datetime) -> Tuple[List[ExpirationSweepItem], List[Notification]]:
        customer = user_crud.get_user_by_id(self.db, customer_id)
        expired: List[Subscription] = []
        for subscription_id in subscription_ids:
            subscription = subscription_crud.get_subscription(self.db, subscription_id)
            # Another sweep or a new purchase may have handled it already
            if subscription is None or subscription.status != SubscriptionStatus.ACTIVE or subscription.end_date >= now:
                continue
            subscription.status = SubscriptionStatus.EXPIRED
            expired.append(subscription)
        self.db.flush()

        if not expired:
            return [], []

        free_plan = None
        if subscription_crud.get_current_subscription(self.db, customer_id, now) is None:
            free_plan = self.get_or_create_free_plan()
            self.activate(customer, free_plan, now=now)
        moved_to_free_plan = free_plan is not None

        items, notifications = [], []
        for subscription in expired:
            activity_crud.log_activity(self.db, customer_id, ActivityType.SUBSCRIPTION_EXPIRED, {
                "subscription_id": subscription.id,
                "plan_name": subscription.plan.name,
                "end_date": subscription.end_date.isoformat(),
                "assigned_to_free_plan": moved_to_free_plan,
            })
            items.append(ExpirationSweepItem(
                subscription_id=subscription.id,
                customer_id=customer_id,
                status="success",
                assigned_to_free_plan=moved_to_free_plan,
            ))
            notification = notification_service.subscription_expired(
                customer, subscription.plan.name, moved_to_free_plan, free_plan.name if free_plan else None
            )
            if notification:
                notifications.append(notification)
        return items, notifications

    def expire_subscriptions(self, now: Optional[datetime] = None) -> Tuple[ExpirationSweepReport, List[Notification]]:
        """
        Expires every ACTIVE subscription whose end date has passed.

        Each customer's expirations commit in their own transaction; a failure is
        recorded in the report and the sweep moves on to the next customer.
        """
        now = now or utcnow()
        due = subscription_crud.get_due_for_expiration(self.db, now)
        by_customer: Dict[int, List[int]] = OrderedDict()
        for subscription in due:
            by_customer.setdefault(subscription.customer_id, []).append(subscription.id)
        logger.info(f"Expiration sweep at {now.isoformat()}: {len(due)} due subscriptions across {len(by_customer)} customers.")

        details: List[ExpirationSweepItem] = []
        notifications: List[Notification] = []
        for customer_id, subscription_ids in by_customer.items():
            try:
                items, sent = run_unit_of_work(
                    self.db, partial(self._expire_for_customer, customer_id, subscription_ids, now), retry_on_conflict=False
                )
            except Exception as e:
                logger.error(f"Failed to expire subscriptions {subscription_ids} for customer {customer_id}: {e}", exc_info=True)
                details.extend(
                    ExpirationSweepItem(subscription_id=sid, customer_id=customer_id, status="failed", error=str(e))
                    for sid in subscription_ids
                )
                continue
            details.extend(items)
            notifications.extend(sent)

        expired_count = sum(1 for item in details if item.status == "success")
        failed_count = sum(1 for item in details if item.status == "failed")
        report = ExpirationSweepReport(
            success=True,
            message=f"Processed {len(details)} expired subscriptions",
            expired=expired_count,
            failed=failed_count,
            timestamp=now,
            details=details,
        )
        logger.info(f"Expiration sweep finished: {expired_count} expired, {failed_count} failed.")
        return report, notifications

    # --- Content access ---

    def has_premium_access(self, customer_id: int, now: Optional[datetime] = None) -> bool:
        """Non-free content needs an ACTIVE, unexpired subscription on a priced plan."""
        current = subscription_crud.get_current_subscription(self.db, customer_id, now or utcnow())
        return current is not None and to_money(current.plan.price) > ZERO

    def get_content_access(self, customer_id: int) -> dict:
        now = utcnow()
        current = subscription_crud.get_current_subscription(self.db, customer_id, now)
        return {
            "customer_id": customer_id,
            "premium_access": current is not None and to_money(current.plan.price) > ZERO,
            "active_subscription_id": current.id if current else None,
        }
