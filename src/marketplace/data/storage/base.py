# src/marketplace/data/storage/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping


class Storage(ABC):
    @abstractmethod
    def exec_ddl(self, ddl_sql: str) -> None: ...

    # ------------------------------------------------------------------
    # orders (append-only log + status)
    # ------------------------------------------------------------------

    @abstractmethod
    def insert_order(self, row: dict) -> int:
        """
        Insert a new OPEN order and return its order_id.

        Ids are assigned by insertion order starting at 0 and never reused.
        """

    @abstractmethod
    def apply_transition(
        self,
        *,
        order_id: int,
        from_status: str,
        to_status: str,
        credits: Mapping[str, int] | None = None,
    ) -> bool:
        """
        Guarded status update plus proceeds credits, all or nothing.

        Returns False (and writes nothing) when the stored status is not
        `from_status`.
        """

    @abstractmethod
    def revert_transition(
        self,
        *,
        order_id: int,
        from_status: str,
        to_status: str,
        debits: Mapping[str, int] | None = None,
    ) -> bool:
        """
        Undo an applied transition: status back plus the credits taken out
        again, all or nothing. Returns False when the stored status is not
        `from_status`.
        """

    @abstractmethod
    def fetch_orders(self) -> list[dict]:
        """All orders, ascending order_id."""

    # ------------------------------------------------------------------
    # proceeds (claimable native amounts)
    # ------------------------------------------------------------------

    @abstractmethod
    def get_proceeds(self, account: str) -> int: ...

    @abstractmethod
    def take_proceeds(self, account: str, *, keep: int = 0) -> int:
        """Take everything above `keep` and return the amount taken."""

    @abstractmethod
    def add_proceeds(self, account: str, amount: int) -> None: ...
