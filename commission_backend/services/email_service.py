import logging
import os
from decimal import Decimal
from typing import Dict, Any, Optional

import emails # Library for composing and sending emails
from emails.template import JinjaTemplate # For HTML templating

from commission_backend.core.config import settings # For email server configuration

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when a notification email could not be rendered or handed to SMTP."""


# --- Email Sending Logic ---

def _smtp_options() -> Dict[str, Any]:
    smtp_options = {
        "host": settings.EMAIL_HOST,
        "port": settings.EMAIL_PORT,
        "tls": settings.EMAIL_USE_TLS,
        "ssl": settings.EMAIL_USE_SSL,
        "user": settings.EMAIL_USERNAME,
        "password": settings.EMAIL_PASSWORD,
    }
    # The `emails` library rejects None values
    smtp_options = {k: v for k, v in smtp_options.items() if v is not None}
    if not smtp_options.get("user"):
        smtp_options.pop("user", None)
        smtp_options.pop("password", None)
    return smtp_options

def send_email(to_email: str, subject: str, html_content: str) -> bool:
    """
    Sends an email using configured SMTP settings.
    When SMTP is not configured the message is logged and skipped.
    """
    if not settings.EMAIL_HOST or not settings.EMAIL_FROM_ADDRESS:
        logger.info(f"Email SKIPPED, SMTP not configured [To: {to_email}, Subject: {subject}]")
        logger.debug(f"Body:\n{html_content[:500]}...")
        return False

    message = emails.Message(
        subject=subject,
        html=html_content,
        mail_from=(settings.EMAIL_FROM_NAME, settings.EMAIL_FROM_ADDRESS)
    )

    logger.info(f"Sending email to {to_email} via {settings.EMAIL_HOST}:{settings.EMAIL_PORT}")
    response = message.send(to=to_email, smtp=_smtp_options())
    if response and response.status_code in [250, 252]: # Typical SMTP success codes
        logger.info(f"Email sent to {to_email}. Subject: '{subject}'. SMTP Response: {response.status_code}")
        return True

    raise EmailDeliveryError(
        f"SMTP rejected email to {to_email}: "
        f"{response.status_code if response else 'no response'} {response.error if response else ''}".strip()
    )

def render_email_template(template_name: str, context: Dict[str, Any]) -> str:
    """Renders `template_name` from EMAILS_TEMPLATES_DIR with Jinja2."""
    template_file_path = os.path.join(settings.EMAILS_TEMPLATES_DIR, template_name)
    try:
        with open(template_file_path, "r", encoding="utf-8") as f:
            template_str = f.read()
    except FileNotFoundError:
        raise EmailDeliveryError(f"Email template not found: {template_file_path}")

    return JinjaTemplate(template_str).render(**context)

def send_templated_email(
    to_email: str,
    subject: str,
    html_template_name: str,
    context: Dict[str, Any]
) -> bool:
    logger.info(f"Preparing templated email. To: {to_email}, Subject: '{subject}', Template: {html_template_name}")

    context.setdefault("APP_NAME", settings.PROJECT_NAME)
    context.setdefault("APP_FRONTEND_URL", settings.APP_FRONTEND_URL)
    context.setdefault("CURRENCY", settings.CURRENCY_LABEL)

    html_content = render_email_template(template_name=html_template_name, context=context)
    return send_email(to_email=to_email, subject=subject, html_content=html_content)


# --- Notification emails ---

def send_commission_earned_email(to_email: str, user_name: str, amount: Decimal, source_label: str) -> bool:
    return send_templated_email(
        to_email=to_email,
        subject="You've Earned a Commission!",
        html_template_name="commission_earned.html",
        context={
            "user_name": user_name,
            "commission_amount": f"{amount:.2f}",
            "source_label": source_label,
        },
    )

def send_payout_approved_email(to_email: str, user_name: str, amount: Decimal, payout_request_id: int) -> bool:
    return send_templated_email(
        to_email=to_email,
        subject="Your Payout Has Been Approved",
        html_template_name="payout_approved.html",
        context={
            "user_name": user_name,
            "payout_amount": f"{amount:.2f}",
            "payout_request_id": payout_request_id,
        },
    )

def send_subscription_expired_email(
    to_email: str,
    user_name: str,
    plan_name: str,
    moved_to_free_plan: bool,
    free_plan_name: Optional[str] = None,
) -> bool:
    return send_templated_email(
        to_email=to_email,
        subject="Your Subscription Has Expired",
        html_template_name="subscription_expired.html",
        context={
            "user_name": user_name,
            "plan_name": plan_name,
            "moved_to_free_plan": moved_to_free_plan,
            "free_plan_name": free_plan_name,
        },
    )
