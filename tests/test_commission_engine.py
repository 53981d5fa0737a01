from decimal import Decimal

from commission_backend.crud import commission_crud, order_crud
from commission_backend.models import ActivityLog, Commission
from commission_backend.models.enums import (
    ActivityType, CommissionSourceType, CommissionStatus, OrderPaymentStatus, OrderStatus, UserRole
)
from commission_backend.schemas.order_schema import OrderPaymentConfirmation
from commission_backend.schemas.subscription_schema import VerifiedPayment
from commission_backend.services import commission_engine, order_service
from commission_backend.services.commission_engine import (
    CommissionEngine, plan_order_commission, plan_signup_commission
)
from commission_backend.services.referral_graph import ReferralChain
from commission_backend.services.subscription_service import SubscriptionLifecycleService


def _commissions(db, **filters):
    return db.query(Commission).filter_by(**filters).all()


def _buy(db, customer, product, settings, reference="pay_order_1", quantity=1):
    confirmation = OrderPaymentConfirmation(
        product_id=product.id,
        quantity=quantity,
        payment_reference=reference,
        amount_paid=product.price * quantity,
    )
    return order_service.confirm_order_payment(db, customer.id, confirmation, settings_provider=settings)


# --- Signup ---

def test_affiliate_earns_signup_bonus(db, make_user, fake_settings):
    affiliate = make_user(UserRole.AFFILIATE)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)

    outcome = commission_engine.process_signup_commission(db, customer.id, affiliate.invite_code, fake_settings)

    assert outcome.created_count == 1
    rows = _commissions(db, user_id=affiliate.id)
    assert len(rows) == 1
    assert rows[0].source_type == CommissionSourceType.SIGNUP
    assert rows[0].source_id == customer.id
    assert rows[0].amount == Decimal("5.00")
    assert rows[0].status == CommissionStatus.PENDING


def test_manager_referrer_never_gets_signup_bonus(db, make_user, fake_settings):
    manager = make_user(UserRole.MANAGER)
    customer = make_user(UserRole.CUSTOMER, referrer=manager)

    outcome = commission_engine.process_signup_commission(db, customer.id, manager.invite_code, fake_settings)

    assert outcome.created_count == 0
    assert _commissions(db) == []


def test_unknown_invite_code_is_ignored(db, make_user, fake_settings):
    customer = make_user(UserRole.CUSTOMER)

    outcome = commission_engine.process_signup_commission(db, customer.id, "NOPE1234", fake_settings)

    assert outcome.created_count == 0
    assert _commissions(db) == []


def test_signup_commission_is_idempotent(db, make_user, fake_settings):
    affiliate = make_user(UserRole.AFFILIATE)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)

    commission_engine.process_signup_commission(db, customer.id, affiliate.invite_code, fake_settings)
    second = commission_engine.process_signup_commission(db, customer.id, affiliate.invite_code, fake_settings)

    assert second.created_count == 0
    assert second.skipped_count == 1
    assert len(_commissions(db, user_id=affiliate.id)) == 1


def test_zero_signup_bonus_writes_nothing(db, make_user, fake_settings):
    fake_settings.signup_bonus = Decimal("0")
    affiliate = make_user(UserRole.AFFILIATE)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)

    outcome = commission_engine.process_signup_commission(db, customer.id, affiliate.invite_code, fake_settings)

    assert outcome.created_count == 0
    assert _commissions(db) == []


def test_plan_signup_commission_only_for_customers(make_user):
    affiliate = make_user(UserRole.AFFILIATE)
    new_affiliate = make_user(UserRole.AFFILIATE)

    assert plan_signup_commission(new_affiliate, affiliate, Decimal("5.00")) == []
    assert plan_signup_commission(new_affiliate, None, Decimal("5.00")) == []


# --- Orders ---

def test_affiliate_order_without_manager(db, make_user, make_product, fake_settings):
    affiliate = make_user(UserRole.AFFILIATE)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)
    product = make_product(price="100.00", affiliate_commission_amount="15.00")

    result = _buy(db, customer, product, fake_settings)

    assert result.created
    rows = _commissions(db)
    assert len(rows) == 1
    assert rows[0].user_id == affiliate.id
    assert rows[0].source_type == CommissionSourceType.PRODUCT
    assert rows[0].source_id == result.order.id
    assert rows[0].amount == Decimal("15.00")
    assert rows[0].status == CommissionStatus.PENDING


def test_affiliate_order_with_manager(db, make_user, make_product, fake_settings):
    manager = make_user(UserRole.MANAGER)
    affiliate = make_user(UserRole.AFFILIATE, manager=manager)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)
    product = make_product(price="100.00", affiliate_commission_amount="15.00")

    _buy(db, customer, product, fake_settings)

    assert [c.amount for c in _commissions(db, user_id=affiliate.id)] == [Decimal("15.00")]
    assert [c.amount for c in _commissions(db, user_id=manager.id)] == [Decimal("20.00")]


def test_manager_referred_order_pays_manager_percentage_only(db, make_user, make_product, fake_settings):
    manager = make_user(UserRole.MANAGER)
    customer = make_user(UserRole.CUSTOMER, referrer=manager)
    product = make_product(price="40.00", affiliate_commission_amount="15.00")

    _buy(db, customer, product, fake_settings, quantity=2)

    rows = _commissions(db)
    assert len(rows) == 1
    assert rows[0].user_id == manager.id
    assert rows[0].amount == Decimal("16.00")


def test_order_commission_is_idempotent(db, make_user, make_product, fake_settings):
    affiliate = make_user(UserRole.AFFILIATE)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)
    product = make_product()

    result = _buy(db, customer, product, fake_settings)
    again = commission_engine.process_order_commission(db, result.order.id, fake_settings)

    assert again.created_count == 0
    assert len(_commissions(db, user_id=affiliate.id)) == 1


def test_legacy_order_label_blocks_duplicate(db, make_user, make_product, make_commission, fake_settings):
    affiliate = make_user(UserRole.AFFILIATE)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)
    product = make_product()
    order = order_crud.create_order(
        db,
        order_number="ORD-LEGACY-1",
        customer_id=customer.id,
        product_id=product.id,
        quantity=1,
        unit_price=product.price,
        total_amount=product.price,
        payment_status=OrderPaymentStatus.PAID,
        status=OrderStatus.COMPLETED,
        referred_by_id=affiliate.id,
    )
    db.commit()
    make_commission(affiliate, "15.00", status=CommissionStatus.PENDING,
                    source_type=CommissionSourceType.ORDER, source_id=order.id)

    outcome = commission_engine.process_order_commission(db, order.id, fake_settings)

    assert outcome.created_count == 0
    assert len(_commissions(db, user_id=affiliate.id)) == 1


def test_unpaid_order_earns_nothing(db, make_user, make_product, fake_settings):
    affiliate = make_user(UserRole.AFFILIATE)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)
    product = make_product()
    order = order_crud.create_order(
        db,
        order_number="ORD-UNPAID-1",
        customer_id=customer.id,
        product_id=product.id,
        quantity=1,
        unit_price=product.price,
        total_amount=product.price,
        payment_status=OrderPaymentStatus.PENDING,
        referred_by_id=affiliate.id,
    )
    db.commit()

    outcome = commission_engine.process_order_commission(db, order.id, fake_settings)

    assert outcome.created_count == 0
    assert _commissions(db) == []


def test_plan_order_commission_with_empty_chain(make_product):
    product = make_product()
    assert plan_order_commission(None, product, ReferralChain(None, None), Decimal("0.20")) == []


# --- Subscriptions ---

def test_gold_plan_percentage_overrides_flat_fee(db, make_user, make_plan, fake_settings):
    affiliate = make_user(UserRole.AFFILIATE)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)
    gold = make_plan(name="Gold", price="50.00", affiliate_commission_percentage=10)

    purchase = SubscriptionLifecycleService(db, fake_settings).subscribe_to_plan(
        customer.id, gold.id, VerifiedPayment(reference="pay_gold_1", amount_paid=Decimal("50.00"))
    )

    rows = _commissions(db)
    assert len(rows) == 1
    assert rows[0].user_id == affiliate.id
    assert rows[0].source_type == CommissionSourceType.SUBSCRIPTION
    assert rows[0].source_id == purchase.subscription.id
    assert rows[0].amount == Decimal("5.00")


def test_subscription_without_override_uses_flat_fee_and_manager_share(db, make_user, make_plan, fake_settings):
    manager = make_user(UserRole.MANAGER)
    affiliate = make_user(UserRole.AFFILIATE, manager=manager)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)
    silver = make_plan(name="Silver", price="30.00")

    SubscriptionLifecycleService(db, fake_settings).subscribe_to_plan(
        customer.id, silver.id, VerifiedPayment(reference="pay_silver_1", amount_paid=Decimal("30.00"))
    )

    assert [c.amount for c in _commissions(db, user_id=affiliate.id)] == [Decimal("10.00")]
    assert [c.amount for c in _commissions(db, user_id=manager.id)] == [Decimal("6.00")]


def test_free_plan_subscription_never_pays(db, make_user, make_plan, fake_settings):
    affiliate = make_user(UserRole.AFFILIATE)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)
    free = make_plan(name="Free", price="0.00", duration_days=36500)

    purchase = SubscriptionLifecycleService(db, fake_settings).subscribe_to_plan(customer.id, free.id)
    outcome = commission_engine.process_subscription_commission(
        db, purchase.subscription.id, customer.id, Decimal("0"), fake_settings
    )

    assert outcome.created_count == 0
    assert _commissions(db) == []


def test_subscription_commission_is_idempotent(db, make_user, make_plan, fake_settings):
    affiliate = make_user(UserRole.AFFILIATE)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)
    gold = make_plan(price="50.00")

    purchase = SubscriptionLifecycleService(db, fake_settings).subscribe_to_plan(
        customer.id, gold.id, VerifiedPayment(reference="pay_gold_2", amount_paid=Decimal("50.00"))
    )
    again = commission_engine.process_subscription_commission(
        db, purchase.subscription.id, customer.id, gold.price, fake_settings
    )

    assert again.created_count == 0
    assert len(_commissions(db, user_id=affiliate.id)) == 1


# --- Ledger guarantees ---

def test_duplicate_race_is_retried_without_double_write(db, make_user, monkeypatch, fake_settings):
    affiliate = make_user(UserRole.AFFILIATE)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)
    commission_engine.process_signup_commission(db, customer.id, affiliate.invite_code, fake_settings)

    real_exists = commission_crud.commission_exists
    calls = {"n": 0}

    def stale_exists(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            return False # a concurrent writer has not been seen yet
        return real_exists(*args, **kwargs)

    monkeypatch.setattr(commission_crud, "commission_exists", stale_exists)

    outcome = commission_engine.process_signup_commission(db, customer.id, affiliate.invite_code, fake_settings)

    assert calls["n"] == 2
    assert outcome.created_count == 0
    assert len(_commissions(db, user_id=affiliate.id)) == 1


def test_commission_writes_audit_entry(db, make_user, fake_settings):
    affiliate = make_user(UserRole.AFFILIATE)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)

    commission_engine.process_signup_commission(db, customer.id, affiliate.invite_code, fake_settings)

    entries = db.query(ActivityLog).filter_by(user_id=affiliate.id).all()
    assert [e.action_type for e in entries] == [ActivityType.SIGNUP_COMMISSION.value]


def test_commission_outcome_carries_notification(db, make_user, fake_settings):
    affiliate = make_user(UserRole.AFFILIATE)
    customer = make_user(UserRole.CUSTOMER, referrer=affiliate)

    outcome = CommissionEngine(db, fake_settings).signup_commission(customer.id, affiliate.invite_code)
    db.commit()

    assert len(outcome.notifications) == 1
    assert outcome.notifications[0].to_email == affiliate.email
    assert outcome.notifications[0].context["amount"] == "5.00"
