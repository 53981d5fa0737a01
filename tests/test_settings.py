from decimal import Decimal

import pytest

from commission_backend.crud import settings_crud
from commission_backend.services import settings_provider
from commission_backend.services.settings_provider import CommissionSettings, update_commission_settings


@pytest.fixture
def commission_settings(db):
    return CommissionSettings(db)


def _store(db, key, value):
    settings_crud.upsert_setting(db, key, value)
    db.commit()


def test_defaults_when_nothing_is_stored(commission_settings):
    assert commission_settings.get_manager_commission_percentage() == Decimal("0.20")
    assert commission_settings.get_signup_bonus() == Decimal("5.00")
    assert commission_settings.get_affiliate_subscription_flat() == Decimal("10.00")
    assert commission_settings.get_minimum_payout_amount() == Decimal("50.00")


def test_stored_values_are_used(db, commission_settings):
    update_commission_settings(db, {
        settings_provider.MANAGER_COMMISSION_PERCENTAGE_KEY: 25,
        settings_provider.SIGNUP_BONUS_KEY: Decimal("7.50"),
        settings_provider.MINIMUM_PAYOUT_AMOUNT_KEY: None,
    })
    db.commit()

    assert commission_settings.get_manager_commission_percentage() == Decimal("0.25")
    assert commission_settings.get_signup_bonus() == Decimal("7.50")
    assert commission_settings.get_minimum_payout_amount() == Decimal("50.00")


@pytest.mark.parametrize("stored", [150, -5, "twenty", True])
def test_invalid_manager_percentage_falls_back(db, commission_settings, stored):
    _store(db, settings_provider.MANAGER_COMMISSION_PERCENTAGE_KEY, stored)

    assert commission_settings.get_manager_commission_percentage() == Decimal("0.20")


def test_negative_amount_falls_back(db, commission_settings):
    _store(db, settings_provider.AFFILIATE_SUBSCRIPTION_FLAT_KEY, -1)

    assert commission_settings.get_affiliate_subscription_flat() == Decimal("10.00")


def test_amounts_are_rounded_to_cents(db, commission_settings):
    _store(db, settings_provider.SIGNUP_BONUS_KEY, 2.345)

    assert commission_settings.get_signup_bonus() == Decimal("2.35")


def test_upsert_overwrites(db, commission_settings):
    _store(db, settings_provider.SIGNUP_BONUS_KEY, 3)
    _store(db, settings_provider.SIGNUP_BONUS_KEY, 4)

    assert commission_settings.get_signup_bonus() == Decimal("4.00")
