"""
Read access to the tunable commission parameters kept in `system_settings`.

Every getter returns a usable Decimal: a missing key, an unparseable value or a
value outside its valid range falls back to the built-in default and is logged.
"""
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.orm import Session

from commission_backend.core.money import to_money
from commission_backend.crud import settings_crud

logger = logging.getLogger(__name__)

MANAGER_COMMISSION_PERCENTAGE_KEY = "managerCommissionPercentage"
SIGNUP_BONUS_KEY = "signupBonus"
AFFILIATE_SUBSCRIPTION_FLAT_KEY = "affiliateSubscriptionFlat"
MINIMUM_PAYOUT_AMOUNT_KEY = "minimumPayoutAmount"

DEFAULT_MANAGER_COMMISSION_RATE = Decimal("0.20")
DEFAULT_SIGNUP_BONUS = Decimal("5.00")
DEFAULT_AFFILIATE_SUBSCRIPTION_FLAT = Decimal("10.00")
DEFAULT_MINIMUM_PAYOUT_AMOUNT = Decimal("50.00")


class CommissionSettings:
    """Passed into the commission engine and payout service; tests substitute their own."""

    def __init__(self, db: Session):
        self.db = db

    def _read_decimal(self, key: str) -> Optional[Decimal]:
        raw = settings_crud.get_setting(self.db, key)
        if raw is None:
            logger.debug(f"Setting '{key}' not set, using default.")
            return None
        try:
            parsed = json.loads(raw)
            if isinstance(parsed, bool) or parsed is None:
                raise ValueError(f"unexpected JSON value {parsed!r}")
            return Decimal(str(parsed))
        except (ValueError, TypeError, InvalidOperation) as e:
            logger.warning(f"Setting '{key}' has unparseable value {raw!r} ({e}), using default.")
            return None

    def _amount(self, key: str, default: Decimal) -> Decimal:
        value = self._read_decimal(key)
        if value is None:
            return default
        if value < 0:
            logger.warning(f"Setting '{key}' is negative ({value}), using default {default}.")
            return default
        return to_money(value)

    def get_manager_commission_percentage(self) -> Decimal:
        """Stored as a percent (20 means 20%), returned as a fraction in [0, 1]."""
        value = self._read_decimal(MANAGER_COMMISSION_PERCENTAGE_KEY)
        if value is None:
            return DEFAULT_MANAGER_COMMISSION_RATE
        if value < 0 or value > 100:
            logger.warning(f"Setting '{MANAGER_COMMISSION_PERCENTAGE_KEY}' out of range ({value}), using default.")
            return DEFAULT_MANAGER_COMMISSION_RATE
        return value / Decimal(100)

    def get_signup_bonus(self) -> Decimal:
        return self._amount(SIGNUP_BONUS_KEY, DEFAULT_SIGNUP_BONUS)

    def get_affiliate_subscription_flat(self) -> Decimal:
        return self._amount(AFFILIATE_SUBSCRIPTION_FLAT_KEY, DEFAULT_AFFILIATE_SUBSCRIPTION_FLAT)

    def get_minimum_payout_amount(self) -> Decimal:
        return self._amount(MINIMUM_PAYOUT_AMOUNT_KEY, DEFAULT_MINIMUM_PAYOUT_AMOUNT)


def update_commission_settings(db: Session, updates: dict) -> None:
    """Upserts the given keys. `updates` maps storage keys to numeric values; committed by the caller."""
    for key, value in updates.items():
        if value is None:
            continue
        settings_crud.upsert_setting(db, key, float(value) if isinstance(value, Decimal) else value)
