# src/marketplace/core/models/order.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from src.marketplace.core.errors import InvalidPrice
from src.marketplace.core.models.enums import OrderStatus
from src.marketplace.core.utils.units import NATIVE_DECIMALS, to_decimal


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def parse_usd_price(value: Any) -> Decimal:
    """
    Validate a seller's ask price.

    Must be > 0 and fit the 18-decimal fixed point the ledger stores.
    """
    try:
        price = to_decimal(value)
    except ValueError as e:
        raise InvalidPrice(str(e)) from e

    if not price.is_finite() or price <= 0:
        raise InvalidPrice(f"price must be positive: {value!r}")

    exponent = price.normalize().as_tuple().exponent
    if isinstance(exponent, int) and exponent < -NATIVE_DECIMALS:
        raise InvalidPrice(f"price has more than {NATIVE_DECIMALS} decimals: {value!r}")

    return price


@dataclass(frozen=True, slots=True)
class Order:
    """
    Sell order record.

    Records are immutable; the ledger swaps in a new record on transition.
    """

    order_id: int
    registry_ref: str
    asset_id: int
    creator: str
    price_usd: Decimal
    status: OrderStatus = OrderStatus.OPEN

    created_ts: datetime = field(default_factory=_utcnow)
    updated_ts: datetime = field(default_factory=_utcnow)

    @property
    def is_open(self) -> bool:
        return self.status == OrderStatus.OPEN

    def with_status(self, status: OrderStatus) -> "Order":
        return replace(self, status=OrderStatus(status), updated_ts=_utcnow())

    # --------------------------------------------------------
    def to_row(self) -> dict[str, Any]:
        """Serialize for orders table."""
        return {
            "order_id": int(self.order_id),
            "registry_ref": str(self.registry_ref),
            "asset_id": int(self.asset_id),
            "creator": str(self.creator),
            "price_usd": self.price_usd,
            "status": self.status.value,
            "created_ts": self.created_ts,
            "updated_ts": self.updated_ts,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Order":
        return cls(
            order_id=int(row["order_id"]),
            registry_ref=str(row["registry_ref"]),
            asset_id=int(row["asset_id"]),
            creator=str(row["creator"]),
            price_usd=to_decimal(row["price_usd"]),
            status=OrderStatus(row["status"]),
            created_ts=row.get("created_ts") or _utcnow(),
            updated_ts=row.get("updated_ts") or _utcnow(),
        )
