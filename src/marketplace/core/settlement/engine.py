# src/marketplace/core/settlement/engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from src.marketplace.core.custody.adapter import CustodyAdapter
from src.marketplace.core.errors import InsufficientPayment
from src.marketplace.core.ledger.order_ledger import OrderLedger
from src.marketplace.core.pricing.resolution import OracleReading, resolve_payment_amount


@dataclass(frozen=True, slots=True)
class Settlement:
    order_id: int
    buyer: str
    seller: str
    required: int
    paid: int
    seller_credit: int
    buyer_refund: int


class SettlementEngine:
    """
    buy(): oracle-priced, all-or-nothing fill of one OPEN order.

    Flow:
      1) claim order (OPEN + not in flight), held until return
      2) resolve required native amount from the reading
      3) reject under-payment
      4) credit seller (+ buyer excess) and mark FILLED in one write
      5) release custody to buyer  (only external call)

    If 5) fails the write from 4) is undone, so the asset and the money
    move together or not at all. The claim is held across 5), so a
    callback into buy/cancel on the same order fails OrderNotOpen.
    """

    def __init__(
        self,
        *,
        ledger: OrderLedger,
        custody: CustodyAdapter,
        refund_excess: bool = True,
        pair: str | None = None,
        max_age_sec: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.ledger = ledger
        self.custody = custody
        self.refund_excess = bool(refund_excess)
        self.pair = pair
        self.max_age_sec = max_age_sec
        self.logger = logger or logging.getLogger(__name__)

    def quote(self, order_id: int, reading: OracleReading | None) -> int:
        order = self.ledger.get(order_id)
        return resolve_payment_amount(
            order.price_usd,
            reading,
            pair=self.pair,
            max_age_sec=self.max_age_sec,
        )

    def split_payment(self, required: int, payment: int) -> tuple[int, int]:
        """-> (seller_credit, buyer_refund)"""
        if self.refund_excess:
            return int(required), int(payment) - int(required)
        return int(payment), 0

    def buy(self, order_id: int, buyer: str, payment: int, reading: OracleReading | None) -> Settlement:
        payment = int(payment)

        with self.ledger.claim(order_id) as order:
            required = resolve_payment_amount(
                order.price_usd,
                reading,
                pair=self.pair,
                max_age_sec=self.max_age_sec,
            )

            if payment < required:
                self.logger.info(
                    "[SETTLE] under-payment order_id=%s required=%s paid=%s",
                    order.order_id, required, payment,
                )
                raise InsufficientPayment(required=required, paid=payment, order_id=order.order_id)

            seller_credit, buyer_refund = self.split_payment(required, payment)
            credits = {order.creator: seller_credit}
            if buyer_refund > 0:
                credits[buyer] = credits.get(buyer, 0) + buyer_refund

            with self.ledger.record_fill(order.order_id, credits):
                self.custody.release_custody(order.registry_ref, order.asset_id, buyer)

        self.logger.info(
            "[SETTLE] filled order_id=%s buyer=%s seller=%s required=%s paid=%s refund=%s",
            order.order_id, buyer, order.creator, required, payment, buyer_refund,
        )
        return Settlement(
            order_id=order.order_id,
            buyer=buyer,
            seller=order.creator,
            required=required,
            paid=payment,
            seller_credit=seller_credit,
            buyer_refund=buyer_refund,
        )
