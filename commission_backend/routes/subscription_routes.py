from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from commission_backend.core.database import get_db, utcnow
from commission_backend.core.dependencies import get_current_admin_user, get_current_customer_user
from commission_backend.crud import subscription_crud as sub_crud
from commission_backend.models.user_model import User
from commission_backend.schemas import subscription_schema as sub_schemas
from commission_backend.schemas.common_schema import OperationResult
from commission_backend.services import notification_service
from commission_backend.services.subscription_service import SubscriptionLifecycleService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])

# --- Subscription Plan Endpoints (Admin) ---
@router.post("/admin/plans", response_model=sub_schemas.SubscriptionPlanDisplay, status_code=status.HTTP_201_CREATED)
def admin_create_subscription_plan(
    plan_in: sub_schemas.SubscriptionPlanCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """
    Admin: Create a new subscription plan.
    """
    logger.info(f"Admin {current_admin.email} creating subscription plan: {plan_in.name}")
    return sub_crud.create_subscription_plan(db, plan_in)

@router.put("/admin/plans/{plan_id}", response_model=sub_schemas.SubscriptionPlanDisplay)
def admin_update_subscription_plan(
    plan_id: int,
    plan_in: sub_schemas.SubscriptionPlanUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """
    Admin: Update an existing subscription plan. Existing subscriptions keep
    the end date they were sold with.
    """
    logger.info(f"Admin {current_admin.email} updating subscription plan ID: {plan_id}")
    updated_plan = sub_crud.update_subscription_plan(db, plan_id, plan_in)
    if not updated_plan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription plan not found.")
    return updated_plan

# --- Public Subscription Plan Listing ---
@router.get("/plans", response_model=List[sub_schemas.SubscriptionPlanDisplay])
def list_active_subscription_plans(
    db: Session = Depends(get_db),
    skip: int = 0,
    limit: int = 10
):
    """
    Public: Get a list of active subscription plans available for purchase.
    """
    return sub_crud.get_active_subscription_plans(db, skip=skip, limit=limit)

# --- Customer Subscription Endpoints ---
@router.post("/subscribe", response_model=OperationResult)
def subscribe_to_plan(
    request_in: sub_schemas.SubscribeRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_customer_user)
):
    """
    Customer: Start a subscription on a plan. Paid plans need the payment the
    gateway verified; the previous active subscription is cancelled.
    """
    logger.info(f"Customer {current_user.email} subscribing to plan {request_in.plan_id}.")
    lifecycle = SubscriptionLifecycleService(db)
    purchase = lifecycle.subscribe_to_plan(current_user.id, request_in.plan_id, request_in.payment)
    background_tasks.add_task(notification_service.dispatch_notifications, purchase.commissions.notifications)

    message = "Subscription activated." if purchase.created else "Payment already applied to this subscription."
    return OperationResult(
        message=message,
        data=sub_schemas.SubscriptionDisplay.model_validate(purchase.subscription).model_dump(mode="json"),
    )

@router.get("/my-active", response_model=Optional[sub_schemas.SubscriptionDisplay])
def get_my_active_subscription(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_customer_user)
):
    """
    Customer: The subscription currently in force, or null.
    """
    return sub_crud.get_current_subscription(db, current_user.id, utcnow())

@router.get("/me", response_model=List[sub_schemas.SubscriptionDisplay])
def get_my_subscription_history(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_customer_user),
    skip: int = 0,
    limit: int = 20
):
    return sub_crud.get_all_subscriptions(db, skip=skip, limit=limit, filters={"customer_id": current_user.id})

@router.get("/me/access", response_model=sub_schemas.ContentAccessDisplay)
def get_my_content_access(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_customer_user)
):
    """
    Customer: Whether premium (non-free) content is currently unlocked.
    """
    return sub_schemas.ContentAccessDisplay(**SubscriptionLifecycleService(db).get_content_access(current_user.id))
