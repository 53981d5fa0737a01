# This file makes the 'crud' directory a Python package.

from . import (
    user_crud,
    commission_crud,
    payout_crud,
    subscription_crud,
    order_crud,
    activity_crud,
    settings_crud,
)

from .user_crud import (
    get_user_by_id,
    get_user_by_email,
    get_user_by_firebase_uid,
    get_user_by_invite_code,
    create_user,
    get_team_members,
    get_users,
    count_users,
)

from .commission_crud import (
    commission_exists, create_commission, get_commission_by_id, get_commissions_for_user,
    get_all_commissions, count_all_commissions, get_approved_commissions_fifo, get_commissions_reserved_for_payout,
    get_approved_balance, get_commission_totals_for_user
)

from .payout_crud import (
    create_payout_request, get_payout_request_by_id, get_payout_requests_for_user,
    get_all_payout_requests, count_all_payout_requests, get_paid_payouts_without_commissions
)

from .subscription_crud import (
    create_subscription_plan, get_subscription_plan, get_active_subscription_plans, update_subscription_plan,
    get_free_plan, create_subscription, get_subscription, get_current_subscription,
    get_all_subscriptions, count_all_subscriptions
)

from .order_crud import (
    create_product, get_product, get_active_products, update_product,
    create_order, get_order, get_order_by_payment_reference, get_orders, count_orders
)

from .activity_crud import log_activity, get_activity_for_user

from .settings_crud import get_setting, upsert_setting


__all__ = [
    # Modules
    "user_crud", "commission_crud", "payout_crud", "subscription_crud", "order_crud",
    "activity_crud", "settings_crud",

    # User CRUD
    "get_user_by_id", "get_user_by_email", "get_user_by_firebase_uid", "get_user_by_invite_code",
    "create_user", "get_team_members", "get_users", "count_users",

    # Commission CRUD
    "commission_exists", "create_commission", "get_commission_by_id", "get_commissions_for_user",
    "get_all_commissions", "count_all_commissions", "get_approved_commissions_fifo", "get_commissions_reserved_for_payout",
    "get_approved_balance", "get_commission_totals_for_user",

    # Payout CRUD
    "create_payout_request", "get_payout_request_by_id", "get_payout_requests_for_user",
    "get_all_payout_requests", "count_all_payout_requests", "get_paid_payouts_without_commissions",

    # Subscription CRUD
    "create_subscription_plan", "get_subscription_plan", "get_active_subscription_plans", "update_subscription_plan",
    "get_free_plan", "create_subscription", "get_subscription", "get_current_subscription",
    "get_all_subscriptions", "count_all_subscriptions",

    # Order CRUD
    "create_product", "get_product", "get_active_products", "update_product",
    "create_order", "get_order", "get_order_by_payment_reference", "get_orders", "count_orders",

    # Activity / Settings
    "log_activity", "get_activity_for_user", "get_setting", "upsert_setting",
]
