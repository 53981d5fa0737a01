from datetime import timedelta
from decimal import Decimal

import pytest

from commission_backend.core.database import utcnow
from commission_backend.core.exceptions import ErrorCodes, NotFoundError, ValidationError
from commission_backend.models import Subscription
from commission_backend.models.enums import SubscriptionStatus, UserRole
from commission_backend.schemas.subscription_schema import VerifiedPayment
from commission_backend.services import notification_service
from commission_backend.services.subscription_service import FREE_PLAN_NAME, SubscriptionLifecycleService


def _active(db, customer):
    return db.query(Subscription).filter(
        Subscription.customer_id == customer.id,
        Subscription.status == SubscriptionStatus.ACTIVE,
    ).all()


def _pay(reference, amount):
    return VerifiedPayment(reference=reference, amount_paid=Decimal(amount))


@pytest.fixture
def lifecycle(db, fake_settings):
    return SubscriptionLifecycleService(db, fake_settings)


@pytest.fixture
def customer(make_user):
    return make_user(UserRole.CUSTOMER)


@pytest.fixture
def gold(make_plan):
    return make_plan(name="Gold", price="50.00", duration_days=30)


def _lapsed_subscription(db, lifecycle, customer, plan, days_ago=40):
    subscription = lifecycle.activate(customer, plan, now=utcnow() - timedelta(days=days_ago))
    db.commit()
    return subscription


# --- Purchase ---

def test_new_subscription_replaces_the_active_one(db, lifecycle, customer, gold, make_plan):
    silver = make_plan(name="Silver", price="30.00")
    first = lifecycle.subscribe_to_plan(customer.id, gold.id, _pay("pay_1", "50.00")).subscription
    second = lifecycle.subscribe_to_plan(customer.id, silver.id, _pay("pay_2", "30.00")).subscription

    active = _active(db, customer)
    assert [s.id for s in active] == [second.id]
    assert db.query(Subscription.status).filter(Subscription.id == first.id).scalar() == SubscriptionStatus.CANCELLED


def test_end_date_follows_plan_duration(lifecycle, customer, gold):
    subscription = lifecycle.subscribe_to_plan(customer.id, gold.id, _pay("pay_1", "50.00")).subscription

    assert subscription.end_date - subscription.start_date == timedelta(days=30)


def test_replayed_payment_reference_returns_original(db, lifecycle, customer, gold):
    first = lifecycle.subscribe_to_plan(customer.id, gold.id, _pay("pay_1", "50.00"))
    replay = lifecycle.subscribe_to_plan(customer.id, gold.id, _pay("pay_1", "50.00"))

    assert first.created and not replay.created
    assert replay.subscription.id == first.subscription.id
    assert db.query(Subscription).filter(Subscription.customer_id == customer.id).count() == 1


def test_underpayment_is_rejected(db, lifecycle, customer, gold):
    with pytest.raises(ValidationError) as exc_info:
        lifecycle.subscribe_to_plan(customer.id, gold.id, _pay("pay_1", "49.99"))

    assert exc_info.value.code == ErrorCodes.PAYMENT_MISMATCH
    assert _active(db, customer) == []


def test_paid_plan_needs_a_payment(lifecycle, customer, gold):
    with pytest.raises(ValidationError):
        lifecycle.subscribe_to_plan(customer.id, gold.id)


def test_only_customers_subscribe(lifecycle, make_user, gold):
    affiliate = make_user(UserRole.AFFILIATE)

    with pytest.raises(ValidationError):
        lifecycle.subscribe_to_plan(affiliate.id, gold.id, _pay("pay_1", "50.00"))


def test_inactive_or_missing_plan(lifecycle, customer, make_plan):
    retired = make_plan(name="Retired", price="20.00", is_active=False)

    with pytest.raises(ValidationError):
        lifecycle.subscribe_to_plan(customer.id, retired.id, _pay("pay_1", "20.00"))
    with pytest.raises(NotFoundError):
        lifecycle.subscribe_to_plan(customer.id, 999, _pay("pay_2", "20.00"))


# --- Expiration sweep ---

def test_sweep_expires_and_falls_back_to_free_plan(db, lifecycle, customer, gold):
    lapsed = _lapsed_subscription(db, lifecycle, customer, gold)

    report, notifications = lifecycle.expire_subscriptions()

    assert report.success
    assert report.expired == 1
    assert report.failed == 0
    assert report.details[0].subscription_id == lapsed.id
    assert report.details[0].assigned_to_free_plan
    assert db.query(Subscription.status).filter(Subscription.id == lapsed.id).scalar() == SubscriptionStatus.EXPIRED

    active = _active(db, customer)
    assert len(active) == 1
    assert active[0].plan.name == FREE_PLAN_NAME
    assert active[0].plan.price == Decimal("0.00")

    assert len(notifications) == 1
    assert notifications[0].to_email == customer.email


def test_sweep_is_repeatable(db, lifecycle, customer, gold):
    _lapsed_subscription(db, lifecycle, customer, gold)
    lifecycle.expire_subscriptions()

    report, notifications = lifecycle.expire_subscriptions()

    assert report.expired == 0
    assert notifications == []
    assert len(_active(db, customer)) == 1


def test_sweep_leaves_current_subscriptions_alone(db, lifecycle, customer, gold):
    current = lifecycle.subscribe_to_plan(customer.id, gold.id, _pay("pay_1", "50.00")).subscription

    report, _ = lifecycle.expire_subscriptions()

    assert report.expired == 0
    assert [s.id for s in _active(db, customer)] == [current.id]


def test_sweep_isolates_failures_per_customer(db, lifecycle, make_user, gold, monkeypatch):
    healthy = make_user(UserRole.CUSTOMER)
    broken = make_user(UserRole.CUSTOMER)
    healthy_sub = _lapsed_subscription(db, lifecycle, healthy, gold)
    broken_sub = _lapsed_subscription(db, lifecycle, broken, gold)

    real_builder = notification_service.subscription_expired

    def flaky_builder(user, *args, **kwargs):
        if user.id == broken.id:
            raise RuntimeError("boom")
        return real_builder(user, *args, **kwargs)

    monkeypatch.setattr(notification_service, "subscription_expired", flaky_builder)

    report, _ = lifecycle.expire_subscriptions()

    assert report.expired == 1
    assert report.failed == 1
    failed = [d for d in report.details if d.status == "failed"]
    assert failed[0].customer_id == broken.id
    assert "boom" in failed[0].error
    assert db.query(Subscription.status).filter(Subscription.id == healthy_sub.id).scalar() == SubscriptionStatus.EXPIRED
    assert db.query(Subscription.status).filter(Subscription.id == broken_sub.id).scalar() == SubscriptionStatus.ACTIVE


def test_at_most_one_active_after_mixed_operations(db, lifecycle, customer, gold, make_plan):
    silver = make_plan(name="Silver", price="30.00")
    _lapsed_subscription(db, lifecycle, customer, silver)
    lifecycle.expire_subscriptions()
    lifecycle.subscribe_to_plan(customer.id, gold.id, _pay("pay_1", "50.00"))
    lifecycle.expire_subscriptions()
    lifecycle.subscribe_to_plan(customer.id, silver.id, _pay("pay_2", "30.00"))

    assert len(_active(db, customer)) == 1


# --- Content access ---

def test_premium_access_needs_current_paid_plan(db, lifecycle, customer, gold):
    assert not lifecycle.has_premium_access(customer.id)

    lifecycle.subscribe_to_plan(customer.id, gold.id, _pay("pay_1", "50.00"))
    assert lifecycle.has_premium_access(customer.id)
    assert not lifecycle.has_premium_access(customer.id, now=utcnow() + timedelta(days=31))


def test_free_plan_gives_no_premium_access(db, lifecycle, customer):
    lifecycle.enroll_in_free_plan(customer)
    db.commit()

    access = lifecycle.get_content_access(customer.id)

    assert access["premium_access"] is False
    assert access["active_subscription_id"] is not None
