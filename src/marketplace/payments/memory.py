from __future__ import annotations

import logging
import threading

from src.marketplace.core.errors import PaymentFailed
from src.marketplace.payments.base import PaymentRail


class InMemoryPaymentRail(PaymentRail):
    def __init__(self, *, escrow_account: str, logger: logging.Logger | None = None):
        self.escrow_account = str(escrow_account)
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._balances: dict[str, int] = {}

    def fund(self, account: str, amount: int) -> None:
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) + int(amount)

    def balance_of(self, account: str) -> int:
        with self._lock:
            return int(self._balances.get(account, 0))

    def _move(self, src: str, dst: str, amount: int) -> None:
        amount = int(amount)
        if amount < 0:
            raise PaymentFailed(f"negative amount: {amount}")
        with self._lock:
            have = self._balances.get(src, 0)
            if have < amount:
                raise PaymentFailed(
                    f"insufficient balance: {src} has {have}, needs {amount}",
                    account=src,
                    amount=amount,
                )
            self._balances[src] = have - amount
            self._balances[dst] = self._balances.get(dst, 0) + amount

        self.logger.debug("[PAY] %s -> %s amount=%s", src, dst, amount)

    def collect(self, payer: str, amount: int) -> None:
        self._move(payer, self.escrow_account, amount)

    def disburse(self, payee: str, amount: int) -> None:
        self._move(self.escrow_account, payee, amount)
