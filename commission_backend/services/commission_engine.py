"""
Commission rules.

Planning is pure: `plan_*` functions turn a business event plus its referral
chain into `CommissionDraft`s. `CommissionEngine` loads the event, plans it and
writes whatever is not already in the ledger, without committing.
The module-level `process_*` functions run one event as one transaction, so an
affiliate row and its paired manager row land together or not at all.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy.orm import Session

from commission_backend.core.database import run_unit_of_work
from commission_backend.core.exceptions import NotFoundError
from commission_backend.core.money import to_money, percentage_of, ZERO
from commission_backend.crud import activity_crud, commission_crud, order_crud, subscription_crud, user_crud
from commission_backend.models.commission_model import Commission
from commission_backend.models.enums import (
    ActivityType, CommissionSourceType, OrderPaymentStatus, UserRole
)
from commission_backend.models.order_model import Order, Product
from commission_backend.models.user_model import User
from commission_backend.services import notification_service, referral_graph
from commission_backend.services.notification_service import Notification
from commission_backend.services.referral_graph import ReferralChain
from commission_backend.services.settings_provider import CommissionSettings

logger = logging.getLogger(__name__)


class CommissionDraft(NamedTuple):
    beneficiary: User
    source_type: CommissionSourceType
    source_id: int
    amount: Decimal
    tier: str # "AFFILIATE", "MANAGER" or "REFERRER"


class CommissionOutcome:
    """What one event produced. Notifications are sent only after commit."""

    def __init__(self):
        self.created: List[Commission] = []
        self.skipped: List[CommissionDraft] = []
        self.notifications: List[Notification] = []

    def extend(self, other: "CommissionOutcome") -> "CommissionOutcome":
        self.created.extend(other.created)
        self.skipped.extend(other.skipped)
        self.notifications.extend(other.notifications)
        return self

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def __repr__(self):
        return f"<CommissionOutcome(created={self.created_count}, skipped={self.skipped_count})>"


# --- Pure planning ---

def plan_signup_commission(new_user: User, referrer: Optional[User], signup_bonus: Decimal) -> List[CommissionDraft]:
    """Affiliates earn the signup bonus for customers they bring in. Managers never do."""
    if referrer is None:
        return []
    if new_user.role != UserRole.CUSTOMER:
        logger.debug(f"No signup bonus: new user {new_user.id} is {new_user.role}, not a customer.")
        return []
    if referrer.role != UserRole.AFFILIATE:
        logger.debug(f"No signup bonus: referrer {referrer.id} is {referrer.role}.")
        return []
    return [CommissionDraft(referrer, CommissionSourceType.SIGNUP, new_user.id, to_money(signup_bonus), "AFFILIATE")]

def plan_order_commission(
    order: Order,
    product: Product,
    chain: ReferralChain,
    manager_rate: Decimal,
) -> List[CommissionDraft]:
    """
    Affiliate referrer: flat product commission, plus manager % of the order
    total when the affiliate has a manager. Manager referrer: manager % only.
    """
    referrer, manager = chain
    if referrer is None:
        return []

    drafts = []
    if referrer.role == UserRole.AFFILIATE:
        drafts.append(CommissionDraft(
            referrer, CommissionSourceType.PRODUCT, order.id,
            to_money(product.affiliate_commission_amount), "AFFILIATE",
        ))
        if manager is not None:
            drafts.append(CommissionDraft(
                manager, CommissionSourceType.PRODUCT, order.id,
                percentage_of(order.total_amount, manager_rate), "MANAGER",
            ))
    elif referrer.role == UserRole.MANAGER:
        drafts.append(CommissionDraft(
            referrer, CommissionSourceType.PRODUCT, order.id,
            percentage_of(order.total_amount, manager_rate), "MANAGER",
        ))
    return drafts

def plan_subscription_commission(
    subscription_id: int,
    plan_price: Decimal,
    plan_commission_percentage: Optional[Decimal],
    chain: ReferralChain,
    affiliate_flat: Decimal,
    manager_rate: Decimal,
) -> List[CommissionDraft]:
    """
    Free plans never pay out. The plan's own percentage, when set, replaces the
    flat affiliate fee; managers always earn their % of the plan price.
    """
    price = to_money(plan_price)
    if price <= ZERO:
        return []

    referrer, manager = chain
    if referrer is None:
        return []

    drafts = []
    if referrer.role == UserRole.AFFILIATE:
        if plan_commission_percentage is not None:
            affiliate_amount = percentage_of(price, Decimal(str(plan_commission_percentage)) / Decimal(100))
        else:
            affiliate_amount = to_money(affiliate_flat)
        drafts.append(CommissionDraft(
            referrer, CommissionSourceType.SUBSCRIPTION, subscription_id, affiliate_amount, "AFFILIATE",
        ))
        if manager is not None:
            drafts.append(CommissionDraft(
                manager, CommissionSourceType.SUBSCRIPTION, subscription_id,
                percentage_of(price, manager_rate), "MANAGER",
            ))
    elif referrer.role == UserRole.MANAGER:
        drafts.append(CommissionDraft(
            referrer, CommissionSourceType.SUBSCRIPTION, subscription_id,
            percentage_of(price, manager_rate), "MANAGER",
        ))
    return drafts


# --- Persistence ---

class CommissionEngine:
    def __init__(self, db: Session, settings_provider: Optional[CommissionSettings] = None):
        self.db = db
        self.settings = settings_provider or CommissionSettings(db)

    def persist(
        self,
        drafts: List[CommissionDraft],
        activity_type: ActivityType,
        details: Optional[Dict[str, Any]] = None,
    ) -> CommissionOutcome:
        """Writes drafts whose (user, source) key is not in the ledger yet. Does not commit."""
        outcome = CommissionOutcome()
        for draft in drafts:
            if draft.amount <= ZERO:
                logger.info(f"Skipping zero-value {draft.source_type.value} commission for user {draft.beneficiary.id} "
                            f"on source {draft.source_id}.")
                outcome.skipped.append(draft)
                continue
            if commission_crud.commission_exists(self.db, draft.beneficiary.id, draft.source_type, draft.source_id):
                logger.warning(f"Duplicate {draft.source_type.value} commission for user {draft.beneficiary.id} "
                               f"on source {draft.source_id}; already recorded.")
                outcome.skipped.append(draft)
                continue

            commission = commission_crud.create_commission(
                self.db,
                user_id=draft.beneficiary.id,
                source_type=draft.source_type,
                source_id=draft.source_id,
                amount=draft.amount,
            )
            activity_details = {
                "commission_id": commission.id,
                "amount": str(commission.amount),
                "source_type": draft.source_type.value,
                "source_id": draft.source_id,
                "tier": draft.tier,
            }
            activity_details.update(details or {})
            activity_crud.log_activity(self.db, draft.beneficiary.id, activity_type, activity_details)

            outcome.created.append(commission)
            notification = notification_service.commission_earned(draft.beneficiary, commission)
            if notification:
                outcome.notifications.append(notification)
        return outcome

    def signup_commission(self, new_user_id: int, referrer_invite_code: Optional[str]) -> CommissionOutcome:
        new_user = user_crud.get_user_by_id(self.db, new_user_id)
        if new_user is None:
            raise NotFoundError(f"User {new_user_id} not found.")
        if not referrer_invite_code:
            return CommissionOutcome()

        referrer = user_crud.get_user_by_invite_code(self.db, referrer_invite_code)
        if referrer is None:
            logger.warning(f"Signup commission skipped for user {new_user_id}: unknown invite code '{referrer_invite_code}'.")
            return CommissionOutcome()
        return self._signup_for(new_user, referrer)

    def signup_commission_for_user(self, user_id: int) -> CommissionOutcome:
        """Same rule, keyed on the referrer already recorded on the user."""
        user = user_crud.get_user_by_id(self.db, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found.")
        if user.referred_by_id is None:
            return CommissionOutcome()
        return self._signup_for(user, user_crud.get_user_by_id(self.db, user.referred_by_id))

    def _signup_for(self, new_user: User, referrer: Optional[User]) -> CommissionOutcome:
        drafts = plan_signup_commission(new_user, referrer, self.settings.get_signup_bonus())
        return self.persist(drafts, ActivityType.SIGNUP_COMMISSION, {"new_user_id": new_user.id})

    def order_commission(self, order_id: int) -> CommissionOutcome:
        order = order_crud.get_order(self.db, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found.")
        if order.payment_status != OrderPaymentStatus.PAID:
            logger.info(f"Order {order_id} is not paid ({order.payment_status}); no commission.")
            return CommissionOutcome()
        if order.referred_by_id is None:
            return CommissionOutcome()

        chain = referral_graph.resolve_by_referrer_id(self.db, order.referred_by_id)
        drafts = plan_order_commission(order, order.product, chain, self.settings.get_manager_commission_percentage())
        return self.persist(drafts, ActivityType.ORDER_COMMISSION, {"order_number": order.order_number})

    def subscription_commission(self, subscription_id: int, customer_id: int, plan_price: Decimal) -> CommissionOutcome:
        if to_money(plan_price) <= ZERO:
            logger.debug(f"Subscription {subscription_id} is on a free plan; no commission.")
            return CommissionOutcome()

        subscription = subscription_crud.get_subscription(self.db, subscription_id)
        if subscription is None:
            raise NotFoundError(f"Subscription {subscription_id} not found.")

        chain = referral_graph.resolve_for_user(self.db, customer_id)
        if chain.is_empty:
            return CommissionOutcome()

        drafts = plan_subscription_commission(
            subscription_id=subscription.id,
            plan_price=plan_price,
            plan_commission_percentage=subscription.plan.affiliate_commission_percentage,
            chain=chain,
            affiliate_flat=self.settings.get_affiliate_subscription_flat(),
            manager_rate=self.settings.get_manager_commission_percentage(),
        )
        return self.persist(drafts, ActivityType.SUBSCRIPTION_COMMISSION,
                            {"customer_id": customer_id, "plan_id": subscription.plan_id})


# --- Transactional entry points ---

def process_signup_commission(
    db: Session,
    new_user_id: int,
    referrer_invite_code: Optional[str],
    settings_provider: Optional[CommissionSettings] = None,
) -> CommissionOutcome:
    engine = CommissionEngine(db, settings_provider)
    return run_unit_of_work(db, lambda: engine.signup_commission(new_user_id, referrer_invite_code))

def process_order_commission(
    db: Session,
    order_id: int,
    settings_provider: Optional[CommissionSettings] = None,
) -> CommissionOutcome:
    engine = CommissionEngine(db, settings_provider)
    return run_unit_of_work(db, lambda: engine.order_commission(order_id))

def process_subscription_commission(
    db: Session,
    subscription_id: int,
    customer_id: int,
    plan_price: Decimal,
    settings_provider: Optional[CommissionSettings] = None,
) -> CommissionOutcome:
    engine = CommissionEngine(db, settings_provider)
    return run_unit_of_work(db, lambda: engine.subscription_commission(subscription_id, customer_id, plan_price))
