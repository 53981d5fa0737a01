from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
import json
import logging

from commission_backend.models.activity_model import ActivityLog
from commission_backend.models.enums import ActivityType

logger = logging.getLogger(__name__)


def log_activity(db: Session, user_id: int, action_type: ActivityType, details: Optional[Dict[str, Any]] = None) -> ActivityLog:
    """Appends an audit entry to the current unit of work. Never commits."""
    entry = ActivityLog(
        user_id=user_id,
        action_type=ActivityType(action_type).value,
        action_details=json.dumps(details or {}, default=str),
    )
    db.add(entry)
    logger.debug(f"Activity {entry.action_type} recorded for user {user_id}.")
    return entry

def get_activity_for_user(db: Session, user_id: int, skip: int = 0, limit: int = 50) -> List[ActivityLog]:
    return (
        db.query(ActivityLog)
        .filter(ActivityLog.user_id == user_id)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .offset(skip).limit(limit).all()
    )
