from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func
from typing import List, Optional, Dict, Any
from datetime import datetime
import logging

from commission_backend.models.subscription_model import SubscriptionPlan, Subscription
from commission_backend.models.enums import SubscriptionStatus
from commission_backend.schemas import subscription_schema as schemas # Alias for clarity

logger = logging.getLogger(__name__)


# Helper for applying filters to Subscription list queries
def _apply_subscription_filters(query, filters: Optional[Dict[str, Any]] = None):
    if not filters:
        return query
    if "customer_id" in filters and filters["customer_id"] is not None:
        query = query.filter(Subscription.customer_id == filters["customer_id"])
    if "plan_id" in filters and filters["plan_id"] is not None:
        query = query.filter(Subscription.plan_id == filters["plan_id"])
    if "status" in filters and filters["status"] is not None:
        try:
            status_enum = SubscriptionStatus(filters["status"])
            query = query.filter(Subscription.status == status_enum)
        except ValueError:
            logger.warning(f"Invalid status value '{filters['status']}' for filtering subscriptions. Ignoring status filter.")
    return query

# --- SubscriptionPlan CRUD (catalogue writes commit immediately) ---

def create_subscription_plan(db: Session, plan_in: schemas.SubscriptionPlanCreate) -> SubscriptionPlan:
    logger.info(f"Creating subscription plan: {plan_in.name}")
    db_plan = SubscriptionPlan(**plan_in.model_dump())
    db.add(db_plan)
    db.commit()
    db.refresh(db_plan)
    logger.info(f"Subscription plan '{db_plan.name}' (ID: {db_plan.id}) created.")
    return db_plan

def get_subscription_plan(db: Session, plan_id: int) -> Optional[SubscriptionPlan]:
    logger.debug(f"Fetching subscription plan with ID: {plan_id}")
    return db.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id).first()

def get_active_subscription_plans(db: Session, skip: int = 0, limit: int = 100) -> List[SubscriptionPlan]:
    logger.debug(f"Fetching active subscription plans with skip: {skip}, limit: {limit}")
    return (
        db.query(SubscriptionPlan)
        .filter(SubscriptionPlan.is_active == True)
        .order_by(SubscriptionPlan.price.asc(), SubscriptionPlan.id.asc())
        .offset(skip).limit(limit).all()
    )

def get_free_plan(db: Session) -> Optional[SubscriptionPlan]:
    return (
        db.query(SubscriptionPlan)
        .filter(SubscriptionPlan.price == 0, SubscriptionPlan.is_active == True)
        .order_by(SubscriptionPlan.id.asc())
        .first()
    )

def add_subscription_plan(db: Session, **fields) -> SubscriptionPlan:
    """Adds a plan inside the caller's unit of work (no commit)."""
    db_plan = SubscriptionPlan(**fields)
    db.add(db_plan)
    db.flush()
    return db_plan

def update_subscription_plan(db: Session, plan_id: int, plan_in: schemas.SubscriptionPlanUpdate) -> Optional[SubscriptionPlan]:
    db_plan = get_subscription_plan(db, plan_id)
    if not db_plan:
        logger.warning(f"Subscription plan with ID {plan_id} not found for update.")
        return None

    update_data = plan_in.model_dump(exclude_unset=True)
    logger.debug(f"Updating plan ID {plan_id} with data: {update_data}")
    for field, value in update_data.items():
        setattr(db_plan, field, value)

    db.commit()
    db.refresh(db_plan)
    logger.info(f"Subscription plan '{db_plan.name}' (ID: {db_plan.id}) updated.")
    return db_plan

# --- Subscription CRUD (flushed only, committed by the lifecycle service) ---

def create_subscription(
    db: Session,
    customer_id: int,
    plan: SubscriptionPlan,
    start_date: datetime,
    payment_reference: Optional[str] = None,
    auto_renew: bool = False,
) -> Subscription:
    db_subscription = Subscription(
        customer_id=customer_id,
        plan_id=plan.id,
        status=SubscriptionStatus.ACTIVE,
        start_date=start_date,
        end_date=Subscription.end_date_for(plan, start_date),
        auto_renew=auto_renew,
        payment_reference=payment_reference,
    )
    db.add(db_subscription)
    db.flush()
    logger.info(f"Subscription (ID: {db_subscription.id}) created for customer {customer_id} on plan {plan.id}, "
                f"ends {db_subscription.end_date}.")
    return db_subscription

def get_subscription(db: Session, subscription_id: int) -> Optional[Subscription]:
    logger.debug(f"Fetching subscription with ID: {subscription_id}")
    return db.query(Subscription).filter(Subscription.id == subscription_id).first()

def get_subscription_by_payment_reference(db: Session, payment_reference: str) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.payment_reference == payment_reference).first()

def get_active_subscriptions_for_customer(db: Session, customer_id: int) -> List[Subscription]:
    return (
        db.query(Subscription)
        .filter(Subscription.customer_id == customer_id, Subscription.status == SubscriptionStatus.ACTIVE)
        .order_by(Subscription.start_date.desc(), Subscription.id.desc())
        .all()
    )

def get_current_subscription(db: Session, customer_id: int, now: datetime) -> Optional[Subscription]:
    """The ACTIVE subscription whose end date has not passed, if any."""
    return (
        db.query(Subscription)
        .options(joinedload(Subscription.plan))
        .filter(
            Subscription.customer_id == customer_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date >= now,
        )
        .order_by(Subscription.end_date.desc(), Subscription.id.desc())
        .first()
    )

def get_due_for_expiration(db: Session, now: datetime) -> List[Subscription]:
    """ACTIVE subscriptions whose end date is already in the past."""
    return (
        db.query(Subscription)
        .filter(Subscription.status == SubscriptionStatus.ACTIVE, Subscription.end_date < now)
        .order_by(Subscription.customer_id.asc(), Subscription.end_date.asc(), Subscription.id.asc())
        .all()
    )

def get_paid_subscriptions(db: Session) -> List[Subscription]:
    """Subscriptions on priced plans, for commission backfill."""
    return (
        db.query(Subscription)
        .join(SubscriptionPlan, Subscription.plan_id == SubscriptionPlan.id)
        .options(joinedload(Subscription.plan))
        .filter(SubscriptionPlan.price > 0)
        .order_by(Subscription.id.asc())
        .all()
    )

def get_all_subscriptions(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    filters: Optional[Dict[str, Any]] = None
) -> List[Subscription]:
    logger.debug(f"Admin fetching subscriptions. Filters: {filters}")
    query = db.query(Subscription).options(joinedload(Subscription.plan))
    query = _apply_subscription_filters(query, filters)
    return query.order_by(Subscription.created_at.desc(), Subscription.id.desc()).offset(skip).limit(limit).all()

def count_all_subscriptions(db: Session, filters: Optional[Dict[str, Any]] = None) -> int:
    query = _apply_subscription_filters(db.query(func.count(Subscription.id)), filters)
    return query.scalar() or 0
