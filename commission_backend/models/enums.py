import enum

class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    AFFILIATE = "AFFILIATE"
    CUSTOMER = "CUSTOMER"

class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    PENDING = "PENDING"

class CommissionSourceType(str, enum.Enum):
    SIGNUP = "SIGNUP"
    PRODUCT = "PRODUCT"
    ORDER = "ORDER" # Legacy label for order commissions, same group as PRODUCT
    SUBSCRIPTION = "SUBSCRIPTION"

class CommissionStatus(str, enum.Enum):
    PENDING = "PENDING"     # Generated, awaiting admin approval
    APPROVED = "APPROVED"   # Approved, counts towards the payable balance
    PAID = "PAID"           # Consumed by a paid payout request

class PayoutStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"

class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED" # Replaced by a newer subscription
    EXPIRED = "EXPIRED"     # End date passed, swept by the expiration job

class OrderPaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"

class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class ActivityType(str, enum.Enum):
    USER_REGISTERED = "USER_REGISTERED"
    SIGNUP_COMMISSION = "SIGNUP_COMMISSION"
    ORDER_COMMISSION = "ORDER_COMMISSION"
    SUBSCRIPTION_COMMISSION = "SUBSCRIPTION_COMMISSION"
    COMMISSION_APPROVED = "COMMISSION_APPROVED"
    PAYOUT_REQUESTED = "PAYOUT_REQUESTED"
    PAYOUT_APPROVED = "PAYOUT_APPROVED"
    PAYOUT_RECEIVED = "PAYOUT_RECEIVED"
    SUBSCRIPTION = "SUBSCRIPTION"
    SUBSCRIPTION_EXPIRED = "SUBSCRIPTION_EXPIRED"
    CREATE_ORDER = "CREATE_ORDER"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"

# Order commissions were historically written with either label; duplicate
# detection treats both as one source group.
ORDER_SOURCE_TYPES = (CommissionSourceType.PRODUCT, CommissionSourceType.ORDER)

def source_group_for(source_type: CommissionSourceType) -> str:
    source_type = CommissionSourceType(source_type)
    if source_type in ORDER_SOURCE_TYPES:
        return "ORDER"
    return source_type.value
