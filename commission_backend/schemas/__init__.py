# This file makes the 'schemas' directory a Python package.

from .user_schema import (
    UserBase, UserCreateInternal, UserDisplay, TokenData,
    UserRegisterRequest, UserRegistration, AuthResponse,
    AdminUserUpdate, MyReferralInfo, TeamMemberDisplay
)

from .commission_schema import (
    CommissionDisplay, CommissionApproval, CommissionBalance, BackfillReport
)

from .payout_schema import (
    PaymentMethod, PayoutRequestCreate, PayoutRequestDisplay, PayoutApprovalDisplay
)

from .subscription_schema import (
    SubscriptionPlanBase, SubscriptionPlanCreate, SubscriptionPlanUpdate, SubscriptionPlanDisplay,
    VerifiedPayment, SubscribeRequest, SubscriptionDisplay, ContentAccessDisplay,
    ExpirationSweepItem, ExpirationSweepReport
)

from .order_schema import (
    ProductBase, ProductCreate, ProductUpdate, ProductDisplay,
    OrderPaymentConfirmation, OrderStatusUpdate, OrderDisplay
)

from .admin_schema import (
    CommissionSettingsDisplay, CommissionSettingsUpdate,
    PaginatedUsersAdmin, PaginatedCommissionsAdmin, PaginatedPayoutsAdmin, ActivityLogDisplay
)

from .common_schema import OperationResult


__all__ = [
    # User Schemas
    "UserBase", "UserCreateInternal", "UserDisplay", "TokenData",
    "UserRegisterRequest", "UserRegistration", "AuthResponse",
    "AdminUserUpdate", "MyReferralInfo", "TeamMemberDisplay",

    # Commission Schemas
    "CommissionDisplay", "CommissionApproval", "CommissionBalance", "BackfillReport",

    # Payout Schemas
    "PaymentMethod", "PayoutRequestCreate", "PayoutRequestDisplay", "PayoutApprovalDisplay",

    # Subscription Schemas
    "SubscriptionPlanBase", "SubscriptionPlanCreate", "SubscriptionPlanUpdate", "SubscriptionPlanDisplay",
    "VerifiedPayment", "SubscribeRequest", "SubscriptionDisplay", "ContentAccessDisplay",
    "ExpirationSweepItem", "ExpirationSweepReport",

    # Order Schemas
    "ProductBase", "ProductCreate", "ProductUpdate", "ProductDisplay",
    "OrderPaymentConfirmation", "OrderStatusUpdate", "OrderDisplay",

    # Admin Schemas
    "CommissionSettingsDisplay", "CommissionSettingsUpdate",
    "PaginatedUsersAdmin", "PaginatedCommissionsAdmin", "PaginatedPayoutsAdmin", "ActivityLogDisplay",

    # Common
    "OperationResult",
]
