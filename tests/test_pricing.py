from decimal import Decimal

import pytest

from src.marketplace.core.errors import InvalidPrice, StaleOrMissingReading
from src.marketplace.core.pricing.resolution import OracleReading, resolve_payment_amount

ONE = 10 ** 18


def test_usd_price_resolves_with_rate():
    # 1 USD = 0.01 native -> 100 USD = 1 native
    reading = OracleReading(pair="ETH/USD", rate=Decimal("0.01"), ts=0)
    assert resolve_payment_amount(Decimal("100.00"), reading) == ONE


def test_usd_quote_resolution_is_exact():
    reading = OracleReading.from_usd_quote("ETH/USD", "3000", ts=0)
    assert resolve_payment_amount("3000", reading) == ONE
    assert resolve_payment_amount("1500", reading) == ONE // 2


def test_rounds_toward_zero():
    reading = OracleReading.from_usd_quote("ETH/USD", "3", ts=0)
    assert resolve_payment_amount("1", reading) == 333_333_333_333_333_333

    reading = OracleReading(pair="ETH/USD", rate=Decimal("0.0000000000000000019"), ts=0)
    assert resolve_payment_amount("1", reading) == 1


def test_missing_reading():
    with pytest.raises(StaleOrMissingReading):
        resolve_payment_amount("100", None, pair="ETH/USD")


def test_reading_for_other_pair():
    reading = OracleReading(pair="BTC/USD", rate=Decimal("0.00001"), ts=0)
    with pytest.raises(StaleOrMissingReading):
        resolve_payment_amount("100", reading, pair="ETH/USD")


def test_non_positive_rate():
    reading = OracleReading(pair="ETH/USD", rate=Decimal("0"), ts=0)
    with pytest.raises(StaleOrMissingReading):
        resolve_payment_amount("100", reading)
    with pytest.raises(StaleOrMissingReading):
        OracleReading.from_usd_quote("ETH/USD", "-1", ts=0)


def test_stale_reading_rejected_when_max_age_given():
    reading = OracleReading(pair="ETH/USD", rate=Decimal("0.01"), ts=1000.0)
    assert resolve_payment_amount("100", reading, max_age_sec=60, now=1059.0) == ONE
    with pytest.raises(StaleOrMissingReading):
        resolve_payment_amount("100", reading, max_age_sec=60, now=1061.0)


def test_price_rounding_to_zero_units_is_rejected():
    reading = OracleReading(pair="ETH/USD", rate=Decimal("0.01"), ts=0)
    with pytest.raises(InvalidPrice):
        resolve_payment_amount("1e-18", reading)
