import itertools
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from commission_backend.core.database import build_engine, create_db_and_tables, get_db, utcnow
from commission_backend.core.dependencies import get_current_user
from commission_backend.models import (
    Commission, PayoutRequest, Product, SubscriptionPlan, User
)
from commission_backend.models.enums import (
    CommissionSourceType, CommissionStatus, PayoutStatus, UserRole, UserStatus
)

_sequence = itertools.count(1)

class FakeSettings:
    """Stands in for CommissionSettings with fixed values."""

    def __init__(self, manager_rate="0.20", signup_bonus="5.00", affiliate_flat="10.00", minimum_payout="50.00"):
        self.manager_rate = Decimal(manager_rate)
        self.signup_bonus = Decimal(signup_bonus)
        self.affiliate_flat = Decimal(affiliate_flat)
        self.minimum_payout = Decimal(minimum_payout)

    def get_manager_commission_percentage(self):
        return self.manager_rate

    def get_signup_bonus(self):
        return self.signup_bonus

    def get_affiliate_subscription_flat(self):
        return self.affiliate_flat

    def get_minimum_payout_amount(self):
        return self.minimum_payout

@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    create_db_and_tables(bind=engine)
    yield engine
    engine.dispose()

@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def fake_settings():
    return FakeSettings()

# --- Factories ---

@pytest.fixture
def make_user(db):
    def _make_user(role=UserRole.CUSTOMER, manager=None, referrer=None, invite_code=None, status=UserStatus.ACTIVE):
        n = next(_sequence)
        if invite_code is None and role in (UserRole.MANAGER, UserRole.AFFILIATE):
            invite_code = f"CODE{n:04d}"
        user = User(
            firebase_uid=f"uid-{n}",
            email=f"user{n}@example.com",
            first_name=role.value.title(),
            last_name=str(n),
            role=role,
            status=status,
            invite_code=invite_code,
            manager_id=manager.id if manager else None,
            referred_by_id=referrer.id if referrer else None,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user

@pytest.fixture
def make_plan(db):
    def _make_plan(name="Gold", price="50.00", duration_days=30, affiliate_commission_percentage=None, is_active=True):
        plan = SubscriptionPlan(
            name=name,
            price=Decimal(price),
            duration_days=duration_days,
            affiliate_commission_percentage=(
                Decimal(str(affiliate_commission_percentage)) if affiliate_commission_percentage is not None else None
            ),
            is_active=is_active,
        )
        db.add(plan)
        db.commit()
        db.refresh(plan)
        return plan
    return _make_plan

@pytest.fixture
def make_product(db):
    def _make_product(title="Herbal Kit", price="100.00", affiliate_commission_amount="15.00", is_active=True):
        product = Product(
            title=title,
            price=Decimal(price),
            affiliate_commission_amount=Decimal(affiliate_commission_amount),
            is_active=is_active,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make_product

@pytest.fixture
def make_commission(db):
    def _make_commission(user, amount, status=CommissionStatus.APPROVED, created_at=None,
                         source_type=CommissionSourceType.SIGNUP, source_id=None):
        commission = Commission(
            user_id=user.id,
            source_type=source_type,
            source_id=source_id if source_id is not None else next(_sequence),
            amount=Decimal(amount),
            status=status,
            created_at=created_at or utcnow(),
        )
        db.add(commission)
        db.commit()
        db.refresh(commission)
        return commission
    return _make_commission

@pytest.fixture
def make_payout_request(db):
    def _make_payout_request(user, amount, status=PayoutStatus.PENDING, processed_at=None):
        payout = PayoutRequest(
            user_id=user.id,
            amount=Decimal(amount),
            payment_method='{"type": "momo", "details": {}}',
            status=status,
            processed_at=processed_at,
        )
        db.add(payout)
        db.commit()
        db.refresh(payout)
        return payout
    return _make_payout_request

# --- API client ---

@pytest.fixture
def client(db):
    from commission_backend.main import app

    auth = {"user": None}

    def override_get_db():
        yield db

    def override_get_current_user():
        return auth["user"]

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user

    test_client = TestClient(app)
    test_client.login_as = lambda user: auth.__setitem__("user", user)
    yield test_client

    app.dependency_overrides.clear()
