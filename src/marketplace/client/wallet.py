# src/marketplace/client/wallet.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from src.marketplace.assets.base.registry import AssetRegistry
from src.marketplace.core.engine.marketplace import Marketplace
from src.marketplace.core.errors import (
    CustodyReleaseFailed,
    CustodyTakeFailed,
    InsufficientPayment,
    InvalidPrice,
    MarketplaceError,
    NotApproved,
    OrderNotFound,
    OrderNotOpen,
    PaymentFailed,
    StaleOrMissingReading,
    Unauthorized,
    UnsupportedNetwork,
)
from src.marketplace.core.models.enums import OrderStatus
from src.marketplace.core.settlement.engine import Settlement
from src.marketplace.core.utils.units import apply_buffer, from_base_units


@dataclass(frozen=True, slots=True)
class OrderView:
    order_id: int
    asset_id: int
    usd_price: Decimal
    creator: str
    status: OrderStatus


_MESSAGES: dict[type, str] = {
    NotApproved: "Approve the marketplace for this asset before listing it.",
    Unauthorized: "Only the seller who posted this order can cancel it.",
    OrderNotOpen: "This order is no longer available.",
    OrderNotFound: "This order does not exist.",
    InsufficientPayment: "The price moved while you were paying. Refresh the price and try again.",
    StaleOrMissingReading: "No fresh ETH/USD price is available right now. Try again in a moment.",
    CustodyTakeFailed: "The asset could not be moved into escrow.",
    CustodyReleaseFailed: "The asset could not be released from escrow; nothing was charged.",
    PaymentFailed: "The payment could not be completed.",
    InvalidPrice: "Enter a positive USD price.",
}


def describe_error(exc: BaseException) -> str:
    """Error kind -> text for the person using the wallet."""
    if isinstance(exc, UnsupportedNetwork):
        return str(exc)
    for kind, text in _MESSAGES.items():
        if isinstance(exc, kind):
            return text
    if isinstance(exc, MarketplaceError):
        return f"Marketplace error: {exc.code}"
    return "Unexpected error, please try again."


def shorten_address(address: str) -> str:
    return address[:7] + ".." + address[-7:]


class MarketplaceClient:
    """
    Wallet-side orchestration for one account.

    Sequences registry + marketplace calls the way the UI needs them
    (approve before post, quote before buy). Holds no state of its own.
    """

    def __init__(
        self,
        *,
        marketplace: Marketplace,
        registry: AssetRegistry,
        account: str,
        buy_buffer_pct: float = 1.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.marketplace = marketplace
        self.registry = registry
        self.account = str(account)
        self.buy_buffer_pct = buy_buffer_pct
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # assets
    # ------------------------------------------------------------------
    def get_owned_assets(self) -> list[int]:
        count = self.registry.balance_of(self.account)
        return [self.registry.token_of_owner_by_index(self.account, i) for i in range(count)]

    def mint_asset(self) -> int:
        return self.registry.mint(self.account)

    # ------------------------------------------------------------------
    # orders
    # ------------------------------------------------------------------
    def get_active_orders(self) -> list[OrderView]:
        return [
            OrderView(
                order_id=o.order_id,
                asset_id=o.asset_id,
                usd_price=o.price_usd,
                creator=o.creator,
                status=o.status,
            )
            for o in self.marketplace.get_all_orders()
            if o.status == OrderStatus.OPEN
        ]

    def post_order(self, asset_id: int, usd_price) -> int:
        self.registry.approve(self.account, self.marketplace.escrow_account, asset_id)
        order_id = self.marketplace.post_sell_order(self.account, self.registry.ref, asset_id, usd_price)
        self.logger.info("[CLIENT] %s posted asset=%s as order_id=%s", shorten_address(self.account), asset_id, order_id)
        return order_id

    def cancel_order(self, order_id: int) -> None:
        self.marketplace.cancel_order(order_id, self.account)

    def buy(self, order_id: int) -> Settlement:
        expected = self.marketplace.get_price(order_id)
        value = apply_buffer(expected, self.buy_buffer_pct)
        self.logger.info(
            "[CLIENT] buying order_id=%s expected=%s native, sending %s",
            order_id, from_base_units(expected), from_base_units(value),
        )
        return self.marketplace.buy(order_id, self.account, value)

    def withdraw(self) -> int:
        return self.marketplace.withdraw(self.account)
