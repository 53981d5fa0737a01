# This file makes the 'routes' directory a Python package.

from fastapi import APIRouter

from .auth_routes import router as auth_router
from .referral_routes import router as referral_router
from .commission_routes import router as commission_router
from .payout_routes import router as payout_router
from .subscription_routes import router as subscription_router
from .order_routes import router as order_router
from .admin_routes import router as admin_router
from .cron_routes import router as cron_router

api_router_v1 = APIRouter(prefix="/api/v1")

# User-facing routes
api_router_v1.include_router(auth_router)
api_router_v1.include_router(referral_router)
api_router_v1.include_router(commission_router)
api_router_v1.include_router(payout_router)
api_router_v1.include_router(subscription_router)
api_router_v1.include_router(order_router)

# Admin routes are prefixed with /admin, so they live under /api/v1/admin/...
api_router_v1.include_router(admin_router)

# Scheduler triggers authenticate with the cron secret, not a Firebase token
api_router_v1.include_router(cron_router)

__all__ = [
    "api_router_v1"
]
