# src/marketplace/core/engine/marketplace.py
from __future__ import annotations

import logging

from src.marketplace.core.errors import PaymentFailed
from src.marketplace.core.ledger.order_ledger import OrderLedger
from src.marketplace.core.models.order import Order
from src.marketplace.core.settlement.engine import Settlement, SettlementEngine
from src.marketplace.oracles.base.feed import PriceFeed
from src.marketplace.payments.base import PaymentRail


class Marketplace:
    """
    Public operations: post / cancel / buy / get_price / get_all_orders.

    Every price-dependent call reads the feed at call time. buy() is the
    transaction boundary: the attached payment is collected first and handed
    back if settlement fails, so a failed buy leaves no trace.
    """

    def __init__(
        self,
        *,
        ledger: OrderLedger,
        settlement: SettlementEngine,
        price_feed: PriceFeed,
        payments: PaymentRail,
        pair: str = "ETH/USD",
        logger: logging.Logger | None = None,
    ) -> None:
        self.ledger = ledger
        self.settlement = settlement
        self.price_feed = price_feed
        self.payments = payments
        self.pair = pair
        self.logger = logger or logging.getLogger(__name__)

    @property
    def escrow_account(self) -> str:
        return self.ledger.custody.escrow_account

    # ------------------------------------------------------------------
    # orders
    # ------------------------------------------------------------------
    def post_sell_order(self, creator: str, registry_ref: str, asset_id: int, price_usd) -> int:
        return self.ledger.post(creator, registry_ref, asset_id, price_usd)

    def cancel_order(self, order_id: int, requester: str) -> None:
        self.ledger.cancel(order_id, requester)

    def get_all_orders(self) -> list[Order]:
        return self.ledger.get_all_orders()

    # ------------------------------------------------------------------
    # pricing / buy
    # ------------------------------------------------------------------
    def get_price(self, order_id: int) -> int:
        return self.settlement.quote(order_id, self.price_feed.latest(self.pair))

    def buy(self, order_id: int, buyer: str, payment: int) -> Settlement:
        payment = int(payment)
        reading = self.price_feed.latest(self.pair)

        self.payments.collect(buyer, payment)
        try:
            return self.settlement.buy(order_id, buyer, payment, reading)
        except Exception:
            self._return_payment(order_id, buyer, payment)
            raise

    def _return_payment(self, order_id: int, buyer: str, payment: int) -> None:
        try:
            self.payments.disburse(buyer, payment)
        except Exception:
            # money stays claimable instead of being lost
            self.logger.exception(
                "[PAY] refund failed order_id=%s buyer=%s amount=%s -> credited to proceeds",
                order_id, buyer, payment,
            )
            self.ledger.restore_proceeds(buyer, payment)

    # ------------------------------------------------------------------
    # proceeds
    # ------------------------------------------------------------------
    def proceeds_of(self, account: str) -> int:
        return self.ledger.proceeds_of(account)

    def withdraw(self, account: str) -> int:
        amount = self.ledger.take_proceeds(account)
        if amount <= 0:
            return 0

        try:
            self.payments.disburse(account, amount)
        except Exception as e:
            self.ledger.restore_proceeds(account, amount)
            self.logger.exception("[PAY] withdraw failed account=%s amount=%s", account, amount)
            if isinstance(e, PaymentFailed):
                raise
            raise PaymentFailed(f"withdraw failed for {account}: {e}", account=account) from e

        self.logger.info("[PAY] withdraw account=%s amount=%s", account, amount)
        return amount
