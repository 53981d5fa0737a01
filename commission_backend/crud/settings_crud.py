from sqlalchemy.orm import Session
from typing import Any, Optional
import json
import logging

from commission_backend.models.settings_model import SystemSetting

logger = logging.getLogger(__name__)


def get_setting(db: Session, key: str) -> Optional[str]:
    """Raw JSON-encoded value for `key`, or None when the key is absent."""
    row = db.query(SystemSetting).filter(SystemSetting.key == key).first()
    return row.value if row else None

def upsert_setting(db: Session, key: str, value: Any) -> SystemSetting:
    encoded = json.dumps(value, default=str)
    row = db.query(SystemSetting).filter(SystemSetting.key == key).first()
    if row:
        row.value = encoded
    else:
        row = SystemSetting(key=key, value=encoded)
        db.add(row)
    db.flush()
    logger.info(f"System setting '{key}' set to {encoded}.")
    return row
