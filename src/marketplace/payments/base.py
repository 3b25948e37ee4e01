from __future__ import annotations

from abc import ABC, abstractmethod


class PaymentRail(ABC):
    """
    Native-currency movement in and out of the marketplace escrow.
    Amounts are base units (int). Failures raise PaymentFailed.
    """

    escrow_account: str

    @abstractmethod
    def collect(self, payer: str, amount: int) -> None:
        """payer -> escrow"""

    @abstractmethod
    def disburse(self, payee: str, amount: int) -> None:
        """escrow -> payee"""
