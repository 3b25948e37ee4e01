# src/marketplace/oracles/base/feed.py
from __future__ import annotations

import time
from abc import ABC, abstractmethod
from decimal import Decimal

from src.marketplace.core.pricing.resolution import OracleReading
from src.marketplace.core.utils.units import to_decimal


class PriceFeed(ABC):
    """
    Oracle transport.
    Returns the freshest reading it has for a pair, or None.
    """

    @abstractmethod
    def latest(self, pair: str) -> OracleReading | None:
        ...


class StaticPriceFeed(PriceFeed):
    """Fixture readings (tests, demo, local network)."""

    def __init__(self, readings: dict[str, OracleReading] | None = None):
        self._readings: dict[str, OracleReading] = dict(readings or {})

    def set_rate(self, pair: str, rate, ts: float | None = None) -> OracleReading:
        r = OracleReading(pair=pair, rate=to_decimal(rate), ts=float(ts if ts is not None else time.time()))
        self._readings[pair] = r
        return r

    def set_usd_quote(self, pair: str, usd_per_native, ts: float | None = None) -> OracleReading:
        r = OracleReading.from_usd_quote(pair, usd_per_native, ts if ts is not None else time.time())
        self._readings[pair] = r
        return r

    def clear(self, pair: str) -> None:
        self._readings.pop(pair, None)

    def latest(self, pair: str) -> OracleReading | None:
        return self._readings.get(pair)


class IdentityPriceFeed(PriceFeed):
    """
    1:1 rate, always fresh.
    Orders are then priced directly in native units.
    """

    def latest(self, pair: str) -> OracleReading | None:
        return OracleReading(pair=pair, rate=Decimal(1), ts=time.time())
