from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from commission_backend.core.database import get_db, run_unit_of_work
from commission_backend.core.dependencies import get_current_admin_user, get_user_or_404
from commission_backend.crud import activity_crud, commission_crud, order_crud, payout_crud, subscription_crud
from commission_backend.crud import user_crud as crud
from commission_backend.models.enums import (
    CommissionSourceType, CommissionStatus, OrderStatus, PayoutStatus, SubscriptionStatus, UserRole, UserStatus
)
from commission_backend.models.user_model import User
from commission_backend.schemas import admin_schema
from commission_backend.schemas import user_schema as schemas
from commission_backend.schemas.commission_schema import BackfillReport, CommissionApproval, CommissionDisplay
from commission_backend.schemas.common_schema import OperationResult
from commission_backend.schemas.order_schema import OrderDisplay, OrderStatusUpdate
from commission_backend.schemas.payout_schema import PayoutApprovalDisplay, PayoutRequestDisplay
from commission_backend.schemas.subscription_schema import SubscriptionDisplay
from commission_backend.services import (
    backfill_service, notification_service, order_service, payout_service, user_service
)
from commission_backend.services.settings_provider import (
    AFFILIATE_SUBSCRIPTION_FLAT_KEY, MANAGER_COMMISSION_PERCENTAGE_KEY, MINIMUM_PAYOUT_AMOUNT_KEY,
    SIGNUP_BONUS_KEY, CommissionSettings, update_commission_settings
)


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["Admin Panel"])


def _page(skip: int, limit: int) -> int:
    return (skip // limit) + 1 if limit > 0 else 1

# --- User Management by Admin ---

@router.get("/users", response_model=admin_schema.PaginatedUsersAdmin)
def admin_list_users(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user),
    skip: int = Query(0, ge=0, alias="page_offset"), # page_offset for clarity, maps to skip
    limit: int = Query(20, ge=1, le=200, alias="page_size"), # page_size for clarity, maps to limit
    email_contains: Optional[str] = Query(None),
    role: Optional[UserRole] = Query(None),
    user_status: Optional[UserStatus] = Query(None, alias="status"),
    manager_id: Optional[int] = Query(None)
):
    """
    Admin: Get a list of all users with pagination and optional filters.
    """
    logger.info(f"Admin {current_admin.email} listing users. Skip: {skip}, Limit: {limit}")

    filters = {
        "email_contains": email_contains,
        "role": role,
        "status": user_status,
        "manager_id": manager_id,
    }
    active_filters = {k: v for k, v in filters.items() if v is not None}

    return admin_schema.PaginatedUsersAdmin(
        total=crud.count_users(db, filters=active_filters),
        users=[schemas.UserDisplay.model_validate(u) for u in crud.get_users(db, skip=skip, limit=limit, filters=active_filters)],
        page=_page(skip, limit),
        size=limit
    )

@router.get("/users/{user_id}", response_model=schemas.UserDisplay)
def admin_get_user(
    db_user: User = Depends(get_user_or_404),
    current_admin: User = Depends(get_current_admin_user)
):
    logger.info(f"Admin {current_admin.email} fetching details for user ID: {db_user.id}")
    return db_user

@router.get("/users/{user_id}/activity", response_model=List[admin_schema.ActivityLogDisplay])
def admin_get_user_activity(
    db_user: User = Depends(get_user_or_404),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200)
):
    """
    Admin: Audit trail of ledger events recorded against a user.
    """
    return activity_crud.get_activity_for_user(db, db_user.id, skip=skip, limit=limit)

@router.put("/users/{user_id}", response_model=OperationResult)
def admin_update_user(
    user_id: int,
    user_in: schemas.AdminUserUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """
    Admin: Update a user's profile, role, status or manager assignment.
    """
    logger.info(f"Admin {current_admin.email} updating user ID: {user_id} with data: {user_in.model_dump(exclude_unset=True)}")
    user = user_service.update_user_by_admin(db, user_id, user_in)
    return OperationResult(
        message="User updated.",
        data=schemas.UserDisplay.model_validate(user).model_dump(mode="json"),
    )

@router.delete("/users/{user_id}", response_model=OperationResult)
def admin_delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """
    Admin: Permanently delete a user and everything the user owns.
    """
    logger.warning(f"Admin {current_admin.email} deleting user ID: {user_id}")
    user_service.delete_user(db, user_id, acting_admin_id=current_admin.id)
    return OperationResult(message=f"User {user_id} deleted.")

# --- Commissions ---

@router.get("/commissions", response_model=admin_schema.PaginatedCommissionsAdmin)
def admin_list_commissions(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user),
    skip: int = Query(0, ge=0, alias="page_offset"),
    limit: int = Query(20, ge=1, le=200, alias="page_size"),
    commission_status: Optional[CommissionStatus] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None),
    source_type: Optional[CommissionSourceType] = Query(None)
):
    filters = {"status": commission_status, "user_id": user_id, "source_type": source_type}
    active_filters = {k: v for k, v in filters.items() if v is not None}

    commissions = commission_crud.get_all_commissions(db, skip=skip, limit=limit, filters=active_filters)
    return admin_schema.PaginatedCommissionsAdmin(
        total=commission_crud.count_all_commissions(db, filters=active_filters),
        commissions=[CommissionDisplay.model_validate(c) for c in commissions],
        page=_page(skip, limit),
        size=limit
    )

@router.post("/commissions/{commission_id}/approve", response_model=OperationResult)
def admin_approve_commission(
    commission_id: int,
    approval_in: Optional[CommissionApproval] = None,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """
    Admin: Approve a PENDING commission, making it available for payout.
    """
    logger.info(f"Admin {current_admin.email} approving commission ID: {commission_id}")
    commission = payout_service.approve_commission(
        db, commission_id, current_admin.id, notes=approval_in.notes if approval_in else None
    )
    return OperationResult(
        message="Commission approved.",
        data=CommissionDisplay.model_validate(commission).model_dump(mode="json"),
    )

# --- Payout Requests ---

@router.get("/payouts", response_model=admin_schema.PaginatedPayoutsAdmin)
def admin_list_payout_requests(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user),
    skip: int = Query(0, ge=0, alias="page_offset"),
    limit: int = Query(20, ge=1, le=200, alias="page_size"),
    payout_status: Optional[PayoutStatus] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None)
):
    filters = {"status": payout_status, "user_id": user_id}
    active_filters = {k: v for k, v in filters.items() if v is not None}

    payouts = payout_crud.get_all_payout_requests(db, skip=skip, limit=limit, filters=active_filters)
    return admin_schema.PaginatedPayoutsAdmin(
        total=payout_crud.count_all_payout_requests(db, filters=active_filters),
        payout_requests=[PayoutRequestDisplay.model_validate(p) for p in payouts],
        page=_page(skip, limit),
        size=limit
    )

@router.post("/payouts/{payout_request_id}/approve", response_model=OperationResult)
def admin_approve_payout_request(
    payout_request_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """
    Admin: Pay out a PENDING request. The oldest approved commissions that
    add up to the requested amount are marked PAID together with the request.
    """
    logger.info(f"Admin {current_admin.email} approving payout request ID: {payout_request_id}")
    approval = payout_service.approve_payout_request(db, payout_request_id, current_admin.id)
    background_tasks.add_task(notification_service.dispatch_notifications, approval.notifications)

    display = PayoutApprovalDisplay(
        payout_request=PayoutRequestDisplay.model_validate(approval.payout_request),
        commission_ids=[c.id for c in approval.commissions],
        consumed_total=approval.consumed_total,
    )
    return OperationResult(message="Payout approved.", data=display.model_dump(mode="json"))

# --- Commission Settings ---

def _settings_display(db: Session) -> admin_schema.CommissionSettingsDisplay:
    provider = CommissionSettings(db)
    return admin_schema.CommissionSettingsDisplay(
        manager_commission_percentage=provider.get_manager_commission_percentage(),
        signup_bonus=provider.get_signup_bonus(),
        affiliate_subscription_flat=provider.get_affiliate_subscription_flat(),
        minimum_payout_amount=provider.get_minimum_payout_amount(),
    )

@router.get("/settings", response_model=admin_schema.CommissionSettingsDisplay)
def admin_get_commission_settings(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """
    Admin: Effective commission parameters (defaults applied where unset or invalid).
    """
    return _settings_display(db)

@router.put("/settings", response_model=admin_schema.CommissionSettingsDisplay)
def admin_update_commission_settings(
    settings_in: admin_schema.CommissionSettingsUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    updates = {
        MANAGER_COMMISSION_PERCENTAGE_KEY: settings_in.manager_commission_percentage,
        SIGNUP_BONUS_KEY: settings_in.signup_bonus,
        AFFILIATE_SUBSCRIPTION_FLAT_KEY: settings_in.affiliate_subscription_flat,
        MINIMUM_PAYOUT_AMOUNT_KEY: settings_in.minimum_payout_amount,
    }
    logger.info(f"Admin {current_admin.email} updating commission settings: {settings_in.model_dump(exclude_none=True)}")
    run_unit_of_work(db, lambda: update_commission_settings(db, updates), retry_on_conflict=False)
    return _settings_display(db)

# --- Orders & Subscriptions ---

@router.get("/orders", response_model=List[OrderDisplay])
def admin_list_orders(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user),
    skip: int = Query(0, ge=0, alias="page_offset"),
    limit: int = Query(20, ge=1, le=200, alias="page_size"),
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    customer_id: Optional[int] = Query(None)
):
    filters = {"status": order_status, "customer_id": customer_id}
    return order_crud.get_orders(db, skip=skip, limit=limit, filters={k: v for k, v in filters.items() if v is not None})

@router.put("/orders/{order_id}/status", response_model=OperationResult)
def admin_update_order_status(
    order_id: int,
    status_in: OrderStatusUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """
    Admin: Move an order along its fulfilment flow. Does not affect commissions.
    """
    order = order_service.update_order_status(db, order_id, status_in.status, current_admin.id)
    return OperationResult(
        message=f"Order {order.order_number} is now {status_in.status.value}.",
        data=OrderDisplay.model_validate(order).model_dump(mode="json"),
    )

@router.get("/subscriptions", response_model=List[SubscriptionDisplay])
def admin_list_subscriptions(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user),
    skip: int = Query(0, ge=0, alias="page_offset"),
    limit: int = Query(20, ge=1, le=200, alias="page_size"),
    subscription_status: Optional[SubscriptionStatus] = Query(None, alias="status"),
    customer_id: Optional[int] = Query(None),
    plan_id: Optional[int] = Query(None)
):
    filters = {"status": subscription_status, "customer_id": customer_id, "plan_id": plan_id}
    return subscription_crud.get_all_subscriptions(
        db, skip=skip, limit=limit, filters={k: v for k, v in filters.items() if v is not None}
    )

# --- Backfill jobs ---

@router.post("/backfill/signup-commissions", response_model=BackfillReport)
def admin_backfill_signup_commissions(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    logger.info(f"Admin {current_admin.email} running signup commission backfill.")
    return backfill_service.backfill_signup_commissions(db)

@router.post("/backfill/order-commissions", response_model=BackfillReport)
def admin_backfill_order_commissions(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    logger.info(f"Admin {current_admin.email} running order commission backfill.")
    return backfill_service.backfill_order_commissions(db)

@router.post("/backfill/subscription-commissions", response_model=BackfillReport)
def admin_backfill_subscription_commissions(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    logger.info(f"Admin {current_admin.email} running subscription commission backfill.")
    return backfill_service.backfill_subscription_commissions(db)

@router.post("/backfill/all-commissions", response_model=List[BackfillReport])
def admin_backfill_all_commissions(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    logger.info(f"Admin {current_admin.email} running all commission backfills.")
    return backfill_service.backfill_all_commissions(db)

@router.post("/backfill/paid-payouts", response_model=BackfillReport, status_code=status.HTTP_200_OK)
def admin_backfill_paid_payouts(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """
    Admin: Link legacy PAID payout requests to the approved commissions they paid.
    """
    logger.info(f"Admin {current_admin.email} running paid payout backfill.")
    return backfill_service.backfill_paid_payouts(db)
