# This file makes the 'models' directory a Python package.

from commission_backend.core.database import Base # Base must be imported before models that use it

from .enums import (
    UserRole, UserStatus, CommissionSourceType, CommissionStatus, PayoutStatus,
    SubscriptionStatus, OrderPaymentStatus, OrderStatus, ActivityType
)

from .user_model import User
from .commission_model import Commission
from .payout_model import PayoutRequest
from .subscription_model import SubscriptionPlan, Subscription
from .order_model import Product, Order
from .activity_model import ActivityLog
from .settings_model import SystemSetting


__all__ = [
    "Base",
    # Models
    "User",
    "Commission",
    "PayoutRequest",
    "SubscriptionPlan",
    "Subscription",
    "Product",
    "Order",
    "ActivityLog",
    "SystemSetting",
    # Enums
    "UserRole",
    "UserStatus",
    "CommissionSourceType",
    "CommissionStatus",
    "PayoutStatus",
    "SubscriptionStatus",
    "OrderPaymentStatus",
    "OrderStatus",
    "ActivityType",
]
