from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
import logging

from commission_backend.core.database import get_db
from commission_backend.core.dependencies import get_current_admin_user, get_current_customer_user
from commission_backend.crud import order_crud
from commission_backend.models.user_model import User
from commission_backend.schemas import order_schema as schemas
from commission_backend.schemas.common_schema import OperationResult
from commission_backend.services import notification_service, order_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["Products & Orders"])

# --- Product Catalogue (Admin) ---
@router.post("/admin/products", response_model=schemas.ProductDisplay, status_code=status.HTTP_201_CREATED)
def admin_create_product(
    product_in: schemas.ProductCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    logger.info(f"Admin {current_admin.email} creating product: {product_in.title}")
    return order_crud.create_product(db, product_in)

@router.put("/admin/products/{product_id}", response_model=schemas.ProductDisplay)
def admin_update_product(
    product_id: int,
    product_in: schemas.ProductUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    logger.info(f"Admin {current_admin.email} updating product ID: {product_id}")
    product = order_crud.update_product(db, product_id, product_in)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found.")
    return product

# --- Public Catalogue ---
@router.get("/products", response_model=List[schemas.ProductDisplay])
def list_products(
    db: Session = Depends(get_db),
    skip: int = 0,
    limit: int = 20
):
    return order_crud.get_active_products(db, skip=skip, limit=limit)

# --- Customer Orders ---
@router.post("/confirm-payment", response_model=OperationResult)
def confirm_order_payment(
    confirmation: schemas.OrderPaymentConfirmation,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_customer_user)
):
    """
    Customer: Record a product purchase once the payment gateway has verified
    the payment. Re-sending the same payment reference returns the original order.
    """
    logger.info(f"Customer {current_user.email} confirming payment {confirmation.payment_reference} "
                f"for product {confirmation.product_id}.")
    result = order_service.confirm_order_payment(db, current_user.id, confirmation)
    background_tasks.add_task(notification_service.dispatch_notifications, result.commissions.notifications)

    message = "Order placed." if result.created else "Payment already recorded for this order."
    return OperationResult(
        message=message,
        data=schemas.OrderDisplay.model_validate(result.order).model_dump(mode="json"),
    )

@router.get("/me", response_model=List[schemas.OrderDisplay])
def get_my_orders(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_customer_user),
    skip: int = 0,
    limit: int = 20
):
    return order_crud.get_orders(db, skip=skip, limit=limit, filters={"customer_id": current_user.id})
