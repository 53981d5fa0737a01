from decimal import Decimal

import pytest

from commission_backend.core.exceptions import (
    AlreadyProcessedError, ErrorCodes, NotFoundError, ValidationError
)
from commission_backend.models import ActivityLog, Commission, Order
from commission_backend.models.enums import ActivityType, OrderPaymentStatus, OrderStatus, UserRole
from commission_backend.schemas.order_schema import OrderPaymentConfirmation
from commission_backend.services import order_service


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


@pytest.fixture
def customer(make_user):
    return make_user(UserRole.CUSTOMER, referrer=make_user(UserRole.AFFILIATE))


@pytest.fixture
def product(make_product):
    return make_product(price="40.00", affiliate_commission_amount="6.00")


def _confirm(db, customer, product, reference="pay_1", quantity=1, amount=None, fake_settings=None):
    amount = amount if amount is not None else str(Decimal(product.price) * quantity)
    return order_service.confirm_order_payment(
        db,
        customer.id,
        OrderPaymentConfirmation(
            product_id=product.id, quantity=quantity, payment_reference=reference, amount_paid=Decimal(amount)
        ),
        fake_settings,
    )


def test_paid_order_is_recorded(db, customer, product, fake_settings):
    result = _confirm(db, customer, product, quantity=2, fake_settings=fake_settings)

    order = result.order
    assert result.created
    assert order.order_number.startswith("ORD-")
    assert order.total_amount == Decimal("80.00")
    assert order.payment_status == OrderPaymentStatus.PAID
    assert order.status == OrderStatus.PROCESSING
    assert order.referred_by_id == customer.referred_by_id
    assert db.query(ActivityLog).filter_by(action_type=ActivityType.CREATE_ORDER.value).count() == 1


def test_replayed_payment_reference_returns_the_same_order(db, customer, product, fake_settings):
    first = _confirm(db, customer, product, fake_settings=fake_settings)
    replay = _confirm(db, customer, product, fake_settings=fake_settings)

    assert not replay.created
    assert replay.order.id == first.order.id
    assert db.query(Order).count() == 1
    assert db.query(Commission).count() == 1


def test_payment_reference_of_another_customer_is_rejected(db, customer, product, make_user, fake_settings):
    _confirm(db, customer, product, fake_settings=fake_settings)
    stranger = make_user(UserRole.CUSTOMER)

    with pytest.raises(ValidationError) as exc_info:
        _confirm(db, stranger, product, fake_settings=fake_settings)

    assert exc_info.value.code == ErrorCodes.PAYMENT_MISMATCH


def test_underpaid_order_is_rejected(db, customer, product, fake_settings):
    with pytest.raises(ValidationError) as exc_info:
        _confirm(db, customer, product, quantity=2, amount="79.99", fake_settings=fake_settings)

    assert exc_info.value.code == ErrorCodes.PAYMENT_MISMATCH
    assert exc_info.value.details["total_amount"] == "80.00"
    assert db.query(Order).count() == 0


def test_inactive_or_missing_product(db, customer, make_product, fake_settings):
    retired = make_product(title="Retired", is_active=False)

    with pytest.raises(ValidationError):
        _confirm(db, customer, retired, fake_settings=fake_settings)

    missing = OrderPaymentConfirmation(product_id=999, payment_reference="pay_2", amount_paid=Decimal("10.00"))
    with pytest.raises(NotFoundError):
        order_service.confirm_order_payment(db, customer.id, missing, fake_settings)


# --- Fulfilment ---

def test_status_moves_forward_to_completed(db, customer, product, admin, fake_settings):
    order = _confirm(db, customer, product, fake_settings=fake_settings).order

    order_service.update_order_status(db, order.id, OrderStatus.SHIPPED, admin.id)
    completed = order_service.update_order_status(db, order.id, OrderStatus.COMPLETED, admin.id)

    assert completed.status == OrderStatus.COMPLETED
    changes = db.query(ActivityLog).filter_by(action_type=ActivityType.ORDER_STATUS_CHANGED.value).count()
    assert changes == 2


def test_final_status_cannot_change(db, customer, product, admin, fake_settings):
    order = _confirm(db, customer, product, fake_settings=fake_settings).order
    order_service.update_order_status(db, order.id, OrderStatus.CANCELLED, admin.id)

    with pytest.raises(AlreadyProcessedError):
        order_service.update_order_status(db, order.id, OrderStatus.PROCESSING, admin.id)


def test_status_cannot_move_backwards(db, customer, product, admin, fake_settings):
    order = _confirm(db, customer, product, fake_settings=fake_settings).order
    order_service.update_order_status(db, order.id, OrderStatus.SHIPPED, admin.id)

    with pytest.raises(ValidationError):
        order_service.update_order_status(db, order.id, OrderStatus.PROCESSING, admin.id)


def test_fulfilment_does_not_touch_commissions(db, customer, product, admin, fake_settings):
    order = _confirm(db, customer, product, fake_settings=fake_settings).order
    before = db.query(Commission).count()

    order_service.update_order_status(db, order.id, OrderStatus.CANCELLED, admin.id)

    assert db.query(Commission).count() == before == 1


def test_missing_order(db, admin):
    with pytest.raises(NotFoundError):
        order_service.update_order_status(db, 999, OrderStatus.SHIPPED, admin.id)
