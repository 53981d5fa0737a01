# This package contains the business logic services.

from . import email_service
from . import notification_service
from . import settings_provider
from . import referral_graph
from . import commission_engine
from . import payout_service
from . import subscription_service
from . import order_service
from . import user_service
from . import backfill_service

__all__ = [
    "email_service",
    "notification_service",
    "settings_provider",
    "referral_graph",
    "commission_engine",
    "payout_service",
    "subscription_service",
    "order_service",
    "user_service",
    "backfill_service",
]
