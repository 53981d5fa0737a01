from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session
import logging

from commission_backend.core.database import get_db
from commission_backend.core.dependencies import verify_cron_secret
from commission_backend.schemas.subscription_schema import ExpirationSweepReport
from commission_backend.services import notification_service
from commission_backend.services.subscription_service import SubscriptionLifecycleService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/cron", tags=["Scheduled Jobs"], dependencies=[Depends(verify_cron_secret)])


@router.api_route("/expire-subscriptions", methods=["GET", "POST"], response_model=ExpirationSweepReport)
def expire_subscriptions(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """
    Daily trigger from the external scheduler. Expires lapsed subscriptions and
    moves customers left without one onto the free plan.
    """
    logger.info("Subscription expiration sweep triggered.")
    report, notifications = SubscriptionLifecycleService(db).expire_subscriptions()
    background_tasks.add_task(notification_service.dispatch_notifications, notifications)
    return report
