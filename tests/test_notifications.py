from decimal import Decimal
from types import SimpleNamespace

from commission_backend.core.config import settings
from commission_backend.models.enums import CommissionSourceType
from commission_backend.services import email_service, notification_service
from commission_backend.services.notification_service import Notification, NotificationKind


def _user(email="earner@example.com"):
    return SimpleNamespace(email=email, display_name="Ama Mensah")


def _commission(amount="12.50", source_type=CommissionSourceType.PRODUCT):
    return SimpleNamespace(amount=Decimal(amount), source_type=source_type)


def test_builders_skip_users_without_email():
    assert notification_service.commission_earned(_user(email=None), _commission()) is None
    assert notification_service.payout_approved(None, SimpleNamespace(amount=Decimal("1"), id=1)) is None


def test_commission_notification_context():
    notification = notification_service.commission_earned(_user(), _commission())

    assert notification.kind == NotificationKind.COMMISSION_EARNED
    assert notification.context == {"amount": "12.50", "source_label": "a referred order"}


def test_dispatch_swallows_delivery_failures(monkeypatch):
    sent = []

    def flaky_send(to_email, user_name, amount, source_label):
        if to_email == "broken@example.com":
            raise email_service.EmailDeliveryError("smtp down")
        sent.append((to_email, amount))
        return True

    monkeypatch.setattr(email_service, "send_commission_earned_email", flaky_send)
    notifications = [
        notification_service.commission_earned(_user("broken@example.com"), _commission()),
        None,
        notification_service.commission_earned(_user(), _commission("3.00")),
    ]

    delivered = notification_service.dispatch_notifications(notifications)

    assert delivered == 1
    assert sent == [("earner@example.com", Decimal("3.00"))]


def test_templates_render_without_smtp(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_HOST", None)
    notifications = [
        notification_service.commission_earned(_user(), _commission()),
        notification_service.payout_approved(_user(), SimpleNamespace(amount=Decimal("50.00"), id=7)),
        notification_service.subscription_expired(_user(), "Gold", True, "Free"),
    ]

    # Each one renders its template, then skips sending
    assert notification_service.dispatch_notifications(notifications) == 0


def test_rendered_commission_email_mentions_amount():
    html = email_service.render_email_template("commission_earned.html", {
        "user_name": "Ama",
        "commission_amount": "12.50",
        "source_label": "a referred order",
        "APP_NAME": "Test",
        "APP_FRONTEND_URL": "http://localhost:3000",
        "CURRENCY": "GHS",
    })

    assert "12.50" in html
    assert "Ama" in html


def test_payout_notification_is_delivered(monkeypatch):
    notification = Notification(
        kind=NotificationKind.PAYOUT_APPROVED,
        to_email="a@example.com",
        user_name="A",
        context={"amount": "1.00", "payout_request_id": 1},
    )
    monkeypatch.setattr(email_service, "send_payout_approved_email", lambda *args: True)

    assert notification_service.dispatch_notifications([notification]) == 1
