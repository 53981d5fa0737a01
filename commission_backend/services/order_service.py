import logging
import secrets
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from commission_backend.core.database import run_unit_of_work, utcnow
from commission_backend.core.exceptions import (
    AlreadyProcessedError, ErrorCodes, NotFoundError, ValidationError
)
from commission_backend.core.money import to_money
from commission_backend.crud import activity_crud, order_crud, user_crud
from commission_backend.models.enums import ActivityType, OrderPaymentStatus, OrderStatus
from commission_backend.models.order_model import Order
from commission_backend.schemas.order_schema import OrderPaymentConfirmation
from commission_backend.services.commission_engine import CommissionEngine, CommissionOutcome
from commission_backend.services.settings_provider import CommissionSettings

logger = logging.getLogger(__name__)

# Fulfilment moves forward only; COMPLETED and CANCELLED are final.
ALLOWED_STATUS_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}


class OrderConfirmation(NamedTuple):
    order: Order
    commissions: CommissionOutcome
    created: bool # False when the payment reference had already produced this order


def generate_order_number() -> str:
    return f"ORD-{utcnow():%Y%m%d}-{secrets.token_hex(4).upper()}"


def confirm_order_payment(
    db: Session,
    customer_id: int,
    confirmation: OrderPaymentConfirmation,
    settings_provider: Optional[CommissionSettings] = None,
) -> OrderConfirmation:
    """
    Records a purchase the payment gateway has verified and pays out referral
    commission in the same transaction. Commission is tied to payment, never
    to fulfilment. Replaying a payment reference returns the original order.
    """
    def work():
        existing = order_crud.get_order_by_payment_reference(db, confirmation.payment_reference)
        if existing is not None:
            if existing.customer_id != customer_id:
                raise ValidationError("Payment reference already used for another purchase.", code=ErrorCodes.PAYMENT_MISMATCH)
            logger.info(f"Payment reference {confirmation.payment_reference} already recorded as order {existing.order_number}.")
            return OrderConfirmation(existing, CommissionOutcome(), False)

        customer = user_crud.get_user_by_id(db, customer_id)
        if customer is None:
            raise NotFoundError(f"User {customer_id} not found.")

        product = order_crud.get_product(db, confirmation.product_id)
        if product is None:
            raise NotFoundError(f"Product {confirmation.product_id} not found.")
        if not product.is_active:
            raise ValidationError(f"Product '{product.title}' is not available.")
        if confirmation.quantity < 1:
            raise ValidationError("Quantity must be at least 1.")

        unit_price = to_money(product.price)
        total = to_money(unit_price * confirmation.quantity)
        paid = to_money(confirmation.amount_paid)
        if paid < total:
            raise ValidationError(
                f"Amount paid {paid:.2f} is below the order total {total:.2f}.",
                code=ErrorCodes.PAYMENT_MISMATCH,
                details={"amount_paid": str(paid), "total_amount": str(total)},
            )

        order = order_crud.create_order(
            db,
            order_number=generate_order_number(),
            customer_id=customer.id,
            product_id=product.id,
            quantity=confirmation.quantity,
            unit_price=unit_price,
            total_amount=total,
            payment_status=OrderPaymentStatus.PAID,
            status=OrderStatus.PROCESSING,
            payment_reference=confirmation.payment_reference,
            referred_by_id=customer.referred_by_id,
        )
        activity_crud.log_activity(db, customer.id, ActivityType.CREATE_ORDER, {
            "order_id": order.id,
            "order_number": order.order_number,
            "product_title": product.title,
            "quantity": order.quantity,
            "total_amount": str(total),
        })
        commissions = CommissionEngine(db, settings_provider).order_commission(order.id)
        return OrderConfirmation(order, commissions, True)

    result = run_unit_of_work(db, work)
    if result.created:
        logger.info(f"Order {result.order.order_number} paid by customer {customer_id}; "
                    f"{result.commissions.created_count} commissions created.")
    return result


def update_order_status(db: Session, order_id: int, new_status: OrderStatus, admin_id: int) -> Order:
    """Fulfilment bookkeeping only. Commissions were settled when payment was confirmed."""
    def work():
        order = order_crud.get_order(db, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found.")

        current = OrderStatus(order.status)
        if not ALLOWED_STATUS_TRANSITIONS[current]:
            raise AlreadyProcessedError(f"Order {order.order_number} is already {current.value}.")
        if new_status not in ALLOWED_STATUS_TRANSITIONS[current]:
            raise ValidationError(f"Cannot move order {order.order_number} from {current.value} to {new_status.value}.")

        order.status = new_status
        activity_crud.log_activity(db, order.customer_id, ActivityType.ORDER_STATUS_CHANGED, {
            "order_id": order.id,
            "order_number": order.order_number,
            "from": current.value,
            "to": new_status.value,
            "changed_by": admin_id,
        })
        db.flush()
        return order

    order = run_unit_of_work(db, work, retry_on_conflict=False)
    logger.info(f"Order {order.order_number} status changed to {new_status.value} by admin {admin_id}.")
    return order
