from decimal import Decimal

import pytest

from commission_backend.core.exceptions import (
    AlreadyProcessedError, NotFoundError, PermissionDeniedError, ValidationError
)
from commission_backend.models import ActivityLog, Commission, PayoutRequest, Subscription, User
from commission_backend.models.enums import (
    ActivityType, CommissionSourceType, SubscriptionStatus, UserRole
)
from commission_backend.schemas.user_schema import AdminUserUpdate, UserRegistration
from commission_backend.services import user_service
from commission_backend.services.subscription_service import FREE_PLAN_NAME


def _registration(uid, role=UserRole.CUSTOMER, **codes):
    return UserRegistration(
        firebase_uid=uid,
        email=f"{uid}@example.com",
        first_name="New",
        last_name="User",
        role=role,
        **codes,
    )


def _reload(db, user):
    return db.query(User).filter(User.id == user.id).one()


# --- Registration ---

def test_customer_signup_pays_affiliate_and_starts_free_plan(db, make_user, fake_settings):
    affiliate = make_user(UserRole.AFFILIATE)

    result = user_service.register_user(
        db, _registration("newcust", referral_code=affiliate.invite_code), fake_settings
    )

    customer = result.user
    assert customer.referred_by_id == affiliate.id
    assert customer.invite_code is None
    assert result.commissions.created_count == 1

    commission = db.query(Commission).filter(Commission.user_id == affiliate.id).one()
    assert commission.source_type == CommissionSourceType.SIGNUP
    assert commission.source_id == customer.id
    assert commission.amount == Decimal("5.00")

    subscription = db.query(Subscription).filter(Subscription.customer_id == customer.id).one()
    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.plan.name == FREE_PLAN_NAME

    registered = db.query(ActivityLog).filter_by(
        user_id=customer.id, action_type=ActivityType.USER_REGISTERED.value
    ).count()
    assert registered == 1


def test_customer_referred_by_manager_earns_nothing(db, make_user, fake_settings):
    manager = make_user(UserRole.MANAGER)

    result = user_service.register_user(db, _registration("mgrcust", referral_code=manager.invite_code), fake_settings)

    assert result.user.referred_by_id == manager.id
    assert result.commissions.created_count == 0
    assert db.query(Commission).count() == 0


def test_unknown_referral_code_is_ignored(db, fake_settings):
    result = user_service.register_user(db, _registration("nocode", referral_code="ZZZZZZZZ"), fake_settings)

    assert result.user.referred_by_id is None
    assert db.query(Commission).count() == 0


def test_affiliate_joins_manager_team(db, make_user, fake_settings):
    manager = make_user(UserRole.MANAGER)

    result = user_service.register_user(
        db, _registration("newaff", role=UserRole.AFFILIATE, manager_code=manager.invite_code), fake_settings
    )

    affiliate = result.user
    assert affiliate.manager_id == manager.id
    assert len(affiliate.invite_code) == user_service.INVITE_CODE_LENGTH
    assert set(affiliate.invite_code) <= set(user_service.INVITE_CODE_ALPHABET)
    assert db.query(Subscription).filter(Subscription.customer_id == affiliate.id).count() == 0


def test_affiliate_with_non_manager_code_is_rejected(db, make_user, fake_settings):
    other_affiliate = make_user(UserRole.AFFILIATE)

    with pytest.raises(ValidationError):
        user_service.register_user(
            db, _registration("badaff", role=UserRole.AFFILIATE, manager_code=other_affiliate.invite_code), fake_settings
        )

    assert db.query(User).filter(User.firebase_uid == "badaff").count() == 0


def test_admin_cannot_self_register(db, fake_settings):
    with pytest.raises(PermissionDeniedError):
        user_service.register_user(db, _registration("root", role=UserRole.ADMIN), fake_settings)


def test_duplicate_registration(db, fake_settings):
    user_service.register_user(db, _registration("twice"), fake_settings)

    with pytest.raises(AlreadyProcessedError):
        user_service.register_user(db, _registration("twice"), fake_settings)


# --- Admin updates ---

def test_demoting_manager_detaches_team(db, make_user):
    manager = make_user(UserRole.MANAGER)
    first = make_user(UserRole.AFFILIATE, manager=manager)
    second = make_user(UserRole.AFFILIATE, manager=manager)

    updated = user_service.update_user_by_admin(db, manager.id, AdminUserUpdate(role=UserRole.AFFILIATE))

    assert updated.role == UserRole.AFFILIATE
    assert _reload(db, first).manager_id is None
    assert _reload(db, second).manager_id is None


def test_promoting_affiliate_clears_its_manager(db, make_user):
    manager = make_user(UserRole.MANAGER)
    affiliate = make_user(UserRole.AFFILIATE, manager=manager)

    updated = user_service.update_user_by_admin(db, affiliate.id, AdminUserUpdate(role=UserRole.MANAGER))

    assert updated.role == UserRole.MANAGER
    assert updated.manager_id is None
    assert updated.invite_code == affiliate.invite_code


def test_referrer_with_referrals_keeps_referrer_role(db, make_user):
    affiliate = make_user(UserRole.AFFILIATE)
    make_user(UserRole.CUSTOMER, referrer=affiliate)

    with pytest.raises(ValidationError):
        user_service.update_user_by_admin(db, affiliate.id, AdminUserUpdate(role=UserRole.CUSTOMER))

    assert _reload(db, affiliate).role == UserRole.AFFILIATE


def test_manager_assignment_must_point_at_a_manager(db, make_user):
    affiliate = make_user(UserRole.AFFILIATE)
    not_a_manager = make_user(UserRole.AFFILIATE)
    manager = make_user(UserRole.MANAGER)

    with pytest.raises(ValidationError):
        user_service.update_user_by_admin(db, affiliate.id, AdminUserUpdate(manager_id=not_a_manager.id))

    updated = user_service.update_user_by_admin(db, affiliate.id, AdminUserUpdate(manager_id=manager.id))
    assert updated.manager_id == manager.id

    cleared = user_service.update_user_by_admin(db, affiliate.id, AdminUserUpdate(clear_manager=True))
    assert cleared.manager_id is None


def test_demoted_manager_cannot_manage_itself(db, make_user):
    manager = make_user(UserRole.MANAGER)
    member = make_user(UserRole.AFFILIATE, manager=manager)
    manager_id, member_id = manager.id, member.id

    with pytest.raises(ValidationError):
        user_service.update_user_by_admin(
            db, manager_id, AdminUserUpdate(role=UserRole.AFFILIATE, manager_id=manager_id)
        )

    stored = db.query(User).filter(User.id == manager_id).one()
    assert stored.role == UserRole.MANAGER
    assert stored.manager_id is None
    assert db.query(User.manager_id).filter(User.id == member_id).scalar() == manager_id


def test_update_missing_user(db):
    with pytest.raises(NotFoundError):
        user_service.update_user_by_admin(db, 999, AdminUserUpdate(first_name="Ghost"))


# --- Deletion ---

def test_delete_user_nulls_links_and_removes_owned_rows(db, make_user, make_commission, make_payout_request):
    manager = make_user(UserRole.MANAGER)
    affiliate = make_user(UserRole.AFFILIATE, manager=manager)
    customer = make_user(UserRole.CUSTOMER, referrer=manager)
    make_commission(manager, "20.00")
    make_payout_request(manager, "20.00")
    admin = make_user(UserRole.ADMIN)
    manager_id, affiliate_id, customer_id = manager.id, affiliate.id, customer.id

    user_service.delete_user(db, manager_id, acting_admin_id=admin.id)

    assert db.query(User).filter(User.id == manager_id).count() == 0
    assert db.query(User.manager_id).filter(User.id == affiliate_id).scalar() is None
    assert db.query(User.referred_by_id).filter(User.id == customer_id).scalar() is None
    assert db.query(Commission).filter(Commission.user_id == manager_id).count() == 0
    assert db.query(PayoutRequest).filter(PayoutRequest.user_id == manager_id).count() == 0


def test_admin_cannot_delete_self(db, make_user):
    admin = make_user(UserRole.ADMIN)

    with pytest.raises(ValidationError):
        user_service.delete_user(db, admin.id, acting_admin_id=admin.id)
