from __future__ import annotations

from decimal import Decimal, ROUND_DOWN, InvalidOperation, localcontext

NATIVE_DECIMALS = 18
BASE_UNIT = 10 ** NATIVE_DECIMALS

# wide enough for uint256 * 1e18 intermediates
WIDE_PRECISION = 100


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # go through repr so 0.1 stays 0.1
        return Decimal(repr(value))
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"not a decimal number: {value!r}") from e


def to_base_units(value) -> int:
    """1.5 -> 1500000000000000000 (rounds toward zero)."""
    with localcontext() as ctx:
        ctx.prec = WIDE_PRECISION
        scaled = to_decimal(value) * BASE_UNIT
        return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def from_base_units(amount: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = WIDE_PRECISION
        return (Decimal(int(amount)) / BASE_UNIT).normalize()


def apply_buffer(amount: int, buffer_pct: int | float) -> int:
    """amount * (100 + pct) / 100 in integer math, toward zero."""
    pct = to_decimal(buffer_pct)
    with localcontext() as ctx:
        ctx.prec = WIDE_PRECISION
        v = Decimal(int(amount)) * (Decimal(100) + pct) / Decimal(100)
        return int(v.to_integral_value(rounding=ROUND_DOWN))
