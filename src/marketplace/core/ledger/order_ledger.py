# src/marketplace/core/ledger/order_ledger.py
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Mapping

from src.marketplace.core.custody.adapter import CustodyAdapter
from src.marketplace.core.errors import OrderNotFound, OrderNotOpen, Unauthorized
from src.marketplace.core.ledger.state_machine import should_apply
from src.marketplace.core.models.enums import OrderStatus
from src.marketplace.core.models.order import Order, parse_usd_price
from src.marketplace.data.storage.base import Storage


class OrderLedger:
    """
    Authoritative table of sell orders.

    Responsibilities:
      ✔ assign order ids (insertion order, never reused)
      ✔ keep every order forever (Filled / Cancelled included)
      ✔ OPEN -> FILLED / CANCELLED, nothing else
      ✔ per-order claim so check-then-act is indivisible
      ✔ status written before custody moves, undone if the move fails
      ✔ claimable proceeds book

    In-memory arena is the read path; storage is written through on every
    mutation and is the source for rebuild() after restart.
    """

    def __init__(
        self,
        *,
        storage: Storage,
        custody: CustodyAdapter,
        logger: logging.Logger | None = None,
    ) -> None:
        self.storage = storage
        self.custody = custody
        self.logger = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._orders: dict[int, Order] = {}
        self._in_flight: set[int] = set()

        # credits written for a fill whose asset handover has not finished yet
        self._proceeds_lock = threading.Lock()
        self._reserved: dict[str, int] = {}

        self.rebuild()

    # ------------------------------------------------------------------
    # load
    # ------------------------------------------------------------------
    def rebuild(self) -> int:
        rows = self.storage.fetch_orders()
        orders = {int(r["order_id"]): Order.from_row(r) for r in rows}
        with self._lock:
            self._orders = orders
            self._in_flight.clear()
        self.logger.info("[LEDGER] rebuilt orders=%d", len(orders))
        return len(orders)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def get(self, order_id: int) -> Order:
        with self._lock:
            order = self._orders.get(int(order_id))
        if order is None:
            raise OrderNotFound(f"order {order_id} does not exist", order_id=order_id)
        return order

    def get_all_orders(self) -> list[Order]:
        with self._lock:
            return [self._orders[k] for k in sorted(self._orders)]

    def proceeds_of(self, account: str) -> int:
        return self.storage.get_proceeds(account)

    # ------------------------------------------------------------------
    # post
    # ------------------------------------------------------------------
    def post(self, creator: str, registry_ref: str, asset_id: int, price_usd) -> int:
        """
        Escrow the asset, then record an OPEN order.

        Custody first: if it fails nothing is recorded. If recording fails
        the asset goes back to the creator before the error propagates.
        """
        price = parse_usd_price(price_usd)

        self.custody.take_custody(registry_ref, asset_id, creator)

        draft = Order(
            order_id=-1,
            registry_ref=str(registry_ref),
            asset_id=int(asset_id),
            creator=str(creator),
            price_usd=price,
        )
        try:
            order_id = self.storage.insert_order(draft.to_row())
        except Exception:
            self.logger.exception(
                "[LEDGER][POST] insert failed, returning asset ref=%s asset=%s to=%s",
                registry_ref, asset_id, creator,
            )
            try:
                self.custody.release_custody(registry_ref, asset_id, creator)
            except Exception:
                self.logger.exception(
                    "[LEDGER][POST] asset left in escrow ref=%s asset=%s creator=%s, needs reconciliation",
                    registry_ref, asset_id, creator,
                )
            raise

        order = Order(
            order_id=int(order_id),
            registry_ref=draft.registry_ref,
            asset_id=draft.asset_id,
            creator=draft.creator,
            price_usd=draft.price_usd,
            created_ts=draft.created_ts,
            updated_ts=draft.updated_ts,
        )
        with self._lock:
            self._orders[order.order_id] = order

        self.logger.info(
            "[LEDGER][POST] order_id=%s ref=%s asset=%s creator=%s price_usd=%s",
            order.order_id, order.registry_ref, order.asset_id, order.creator, order.price_usd,
        )
        return order.order_id

    # ------------------------------------------------------------------
    # cancel
    # ------------------------------------------------------------------
    def cancel(self, order_id: int, requester: str) -> Order:
        order = self.get(order_id)
        if requester != order.creator:
            raise Unauthorized(
                f"only the creator may cancel order {order_id}",
                order_id=order_id,
                requester=requester,
            )

        with self.claim(order_id) as order:
            # CANCELLED is written first; a failed release puts it back to OPEN
            with self._finalized(order, OrderStatus.CANCELLED) as cancelled:
                self.custody.release_custody(order.registry_ref, order.asset_id, order.creator)

        self.logger.info("[LEDGER][CANCEL] order_id=%s by=%s", order_id, requester)
        return cancelled

    # ------------------------------------------------------------------
    # settlement hooks
    # ------------------------------------------------------------------
    @contextmanager
    def claim(self, order_id: int) -> Iterator[Order]:
        """
        Per-order transaction lock.

        Only an OPEN, unclaimed order can be claimed; a second buy/cancel
        (racing or re-entering from an external call) fails OrderNotOpen.
        """
        order_id = int(order_id)
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFound(f"order {order_id} does not exist", order_id=order_id)
            if not order.is_open:
                raise OrderNotOpen(
                    f"order {order_id} is {order.status.value}",
                    order_id=order_id,
                    status=order.status.value,
                )
            if order_id in self._in_flight:
                raise OrderNotOpen(f"order {order_id} is being settled", order_id=order_id)
            self._in_flight.add(order_id)

        try:
            yield order
        finally:
            with self._lock:
                self._in_flight.discard(order_id)

    @contextmanager
    def record_fill(self, order_id: int, credits: Mapping[str, int]) -> Iterator[Order]:
        """
        FILLED + proceeds credits in one storage write, then the block runs
        (the asset handover). If the block raises, the write is undone.

        Caller must hold the claim.
        """
        with self._lock:
            if int(order_id) not in self._in_flight:
                raise RuntimeError(f"record_fill without claim: order_id={order_id}")
            order = self._orders[int(order_id)]

        with self._finalized(order, OrderStatus.FILLED, credits=credits) as filled:
            yield filled

    @contextmanager
    def _finalized(
        self,
        order: Order,
        status: OrderStatus,
        *,
        credits: Mapping[str, int] | None = None,
    ) -> Iterator[Order]:
        credits = {str(acc): int(amt) for acc, amt in (credits or {}).items() if int(amt) > 0}

        with self._proceeds_lock:
            updated = self._transition(order, status, credits=credits)
            self._reserve(credits, 1)

        try:
            yield updated
        except Exception:
            self._undo(order, updated, credits)
            raise

        with self._proceeds_lock:
            self._reserve(credits, -1)

    def _undo(self, before: Order, after: Order, credits: dict[str, int]) -> None:
        with self._proceeds_lock:
            try:
                reverted = self.storage.revert_transition(
                    order_id=before.order_id,
                    from_status=after.status.value,
                    to_status=before.status.value,
                    debits=credits,
                )
            except Exception:
                # caller re-raises the original failure
                self.logger.exception(
                    "[LEDGER][UNDO] storage failed order_id=%s %s -> %s, needs reconciliation",
                    before.order_id, after.status.value, before.status.value,
                )
                return
            finally:
                self._reserve(credits, -1)

        if not reverted:
            self.logger.error(
                "[LEDGER][UNDO] order_id=%s no longer %s in storage, needs reconciliation",
                before.order_id, after.status.value,
            )
            return

        with self._lock:
            self._orders[before.order_id] = before
        self.logger.warning(
            "[LEDGER][UNDO] order_id=%s %s -> %s",
            before.order_id, after.status.value, before.status.value,
        )

    def _reserve(self, credits: Mapping[str, int], sign: int) -> None:
        for account, amount in credits.items():
            left = self._reserved.get(account, 0) + sign * int(amount)
            if left > 0:
                self._reserved[account] = left
            else:
                self._reserved.pop(account, None)

    def _transition(
        self,
        order: Order,
        status: OrderStatus,
        *,
        credits: Mapping[str, int] | None = None,
    ) -> Order:
        d = should_apply(order.status, status)
        if not d.allow:
            raise OrderNotOpen(d.reason, order_id=order.order_id)

        applied = self.storage.apply_transition(
            order_id=order.order_id,
            from_status=order.status.value,
            to_status=status.value,
            credits=dict(credits or {}),
        )
        if not applied:
            raise OrderNotOpen(
                f"order {order.order_id} changed in storage",
                order_id=order.order_id,
            )

        updated = order.with_status(status)
        with self._lock:
            self._orders[order.order_id] = updated
        return updated

    # ------------------------------------------------------------------
    # proceeds
    # ------------------------------------------------------------------
    def take_proceeds(self, account: str) -> int:
        """Everything claimable except credits whose asset handover is still running."""
        with self._proceeds_lock:
            return self.storage.take_proceeds(account, keep=self._reserved.get(account, 0))

    def restore_proceeds(self, account: str, amount: int) -> None:
        self.storage.add_proceeds(account, amount)
