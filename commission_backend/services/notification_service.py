"""
Best-effort notifications.

Services never send mail inside a transaction. They return `Notification`
intents alongside their result; the web layer hands them to
`dispatch_notifications` through FastAPI BackgroundTasks once the ledger
write has committed. A failed send is logged and dropped.
"""
import enum
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, Field

from commission_backend.models.enums import CommissionSourceType
from commission_backend.services import email_service

logger = logging.getLogger(__name__)


class NotificationKind(str, enum.Enum):
    COMMISSION_EARNED = "COMMISSION_EARNED"
    PAYOUT_APPROVED = "PAYOUT_APPROVED"
    SUBSCRIPTION_EXPIRED = "SUBSCRIPTION_EXPIRED"


class Notification(BaseModel):
    kind: NotificationKind
    to_email: str
    user_name: str
    context: Dict[str, Any] = Field(default_factory=dict)


_SOURCE_LABELS = {
    CommissionSourceType.SIGNUP: "a referred signup",
    CommissionSourceType.PRODUCT: "a referred order",
    CommissionSourceType.ORDER: "a referred order",
    CommissionSourceType.SUBSCRIPTION: "a referred subscription",
}


def commission_earned(user, commission) -> Optional[Notification]:
    if not user or not user.email:
        return None
    return Notification(
        kind=NotificationKind.COMMISSION_EARNED,
        to_email=user.email,
        user_name=user.display_name,
        context={
            "amount": str(commission.amount),
            "source_label": _SOURCE_LABELS[CommissionSourceType(commission.source_type)],
        },
    )

def payout_approved(user, payout_request) -> Optional[Notification]:
    if not user or not user.email:
        return None
    return Notification(
        kind=NotificationKind.PAYOUT_APPROVED,
        to_email=user.email,
        user_name=user.display_name,
        context={"amount": str(payout_request.amount), "payout_request_id": payout_request.id},
    )

def subscription_expired(user, plan_name: str, moved_to_free_plan: bool, free_plan_name: Optional[str] = None) -> Optional[Notification]:
    if not user or not user.email:
        return None
    return Notification(
        kind=NotificationKind.SUBSCRIPTION_EXPIRED,
        to_email=user.email,
        user_name=user.display_name,
        context={
            "plan_name": plan_name,
            "moved_to_free_plan": moved_to_free_plan,
            "free_plan_name": free_plan_name,
        },
    )


def dispatch_notification(notification: Notification) -> bool:
    ctx = notification.context
    if notification.kind == NotificationKind.COMMISSION_EARNED:
        return email_service.send_commission_earned_email(
            notification.to_email, notification.user_name, Decimal(ctx["amount"]), ctx["source_label"]
        )
    if notification.kind == NotificationKind.PAYOUT_APPROVED:
        return email_service.send_payout_approved_email(
            notification.to_email, notification.user_name, Decimal(ctx["amount"]), ctx["payout_request_id"]
        )
    if notification.kind == NotificationKind.SUBSCRIPTION_EXPIRED:
        return email_service.send_subscription_expired_email(
            notification.to_email, notification.user_name, ctx["plan_name"],
            ctx["moved_to_free_plan"], ctx.get("free_plan_name"),
        )
    raise ValueError(f"Unknown notification kind: {notification.kind}")

def dispatch_notifications(notifications: Iterable[Optional[Notification]]) -> int:
    """Sends each notification independently. Returns how many were delivered."""
    delivered = 0
    for notification in notifications:
        if notification is None:
            continue
        try:
            if dispatch_notification(notification):
                delivered += 1
        except Exception as e:
            # Do not let a notification failure surface to the caller.
            logger.error(f"Failed to send {notification.kind.value} notification to {notification.to_email}: {e}", exc_info=True)
    return delivered
