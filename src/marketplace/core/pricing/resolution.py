# src/marketplace/core/pricing/resolution.py
from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN, localcontext

from src.marketplace.core.errors import InvalidPrice, StaleOrMissingReading
from src.marketplace.core.utils.units import BASE_UNIT, WIDE_PRECISION, to_decimal


@dataclass(frozen=True, slots=True)
class OracleReading:
    """
    Exchange rate at a point in time.

    rate:  native units per 1 USD (0.01 -> 100 USD costs 1 native)
    ts:    epoch seconds of the observation
    quote: USD per 1 native when the reading came from a USD quote;
           resolution divides by it so no precision is lost to 1/quote
    """

    pair: str
    rate: Decimal
    ts: float
    quote: Decimal | None = None

    @classmethod
    def from_usd_quote(cls, pair: str, usd_per_native, ts: float) -> "OracleReading":
        """Price APIs publish USD per native; invert it."""
        quote = to_decimal(usd_per_native)
        if quote <= 0:
            raise StaleOrMissingReading(f"non-positive quote for {pair}: {usd_per_native!r}", pair=pair)
        with localcontext() as ctx:
            ctx.prec = WIDE_PRECISION
            rate = Decimal(1) / quote
        return cls(pair=str(pair), rate=rate, ts=float(ts), quote=quote)

    def age(self, now: float | None = None) -> float:
        return float(now if now is not None else time.time()) - float(self.ts)


def check_reading(
    reading: OracleReading | None,
    *,
    pair: str | None = None,
    max_age_sec: float | None = None,
    now: float | None = None,
) -> OracleReading:
    if reading is None:
        raise StaleOrMissingReading(f"no reading available for {pair or 'pair'}", pair=pair)

    if pair is not None and reading.pair != pair:
        raise StaleOrMissingReading(
            f"reading is for {reading.pair}, expected {pair}",
            pair=pair,
            got=reading.pair,
        )

    rate = to_decimal(reading.rate)
    if not rate.is_finite() or rate <= 0:
        raise StaleOrMissingReading(f"unusable rate for {reading.pair}: {reading.rate!r}", pair=reading.pair)

    if max_age_sec is not None:
        age = reading.age(now)
        if age > float(max_age_sec):
            raise StaleOrMissingReading(
                f"reading for {reading.pair} is {age:.1f}s old (max {float(max_age_sec):.1f}s)",
                pair=reading.pair,
                age=age,
            )

    return reading


def resolve_payment_amount(
    price_usd,
    reading: OracleReading | None,
    *,
    pair: str | None = None,
    max_age_sec: float | None = None,
    now: float | None = None,
) -> int:
    """
    USD price -> native base units, toward zero. A price that rounds to
    zero units is rejected.

        floor(price_usd * rate * 10**18)
    """
    reading = check_reading(reading, pair=pair, max_age_sec=max_age_sec, now=now)

    with localcontext() as ctx:
        ctx.prec = WIDE_PRECISION
        if reading.quote is not None:
            amount = to_decimal(price_usd) * BASE_UNIT / to_decimal(reading.quote)
        else:
            amount = to_decimal(price_usd) * to_decimal(reading.rate) * BASE_UNIT
        required = int(amount.to_integral_value(rounding=ROUND_DOWN))

    if required <= 0:
        # an order must never fill for nothing
        raise InvalidPrice(
            f"price {price_usd} USD resolves to 0 native units at rate {reading.rate}",
            pair=reading.pair,
        )
    return required
