# src/marketplace/data/storage/memory.py
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Mapping

from src.marketplace.data.storage.base import Storage


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class InMemoryStorage(Storage):
    """
    Process-local storage for tests, demo and the local network.
    Same semantics as PostgreSQLStorage, minus durability.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._orders: list[dict] = []
        self._proceeds: dict[str, int] = {}

    def exec_ddl(self, ddl_sql: str) -> None:
        return None

    # ------------------------------------------------------------------
    def insert_order(self, row: dict) -> int:
        with self._lock:
            order_id = len(self._orders)
            stored = dict(row)
            stored["order_id"] = order_id
            self._orders.append(stored)
            return order_id

    def apply_transition(
        self,
        *,
        order_id: int,
        from_status: str,
        to_status: str,
        credits: Mapping[str, int] | None = None,
    ) -> bool:
        with self._lock:
            if not 0 <= int(order_id) < len(self._orders):
                return False
            row = self._orders[int(order_id)]
            if row["status"] != from_status:
                return False

            row["status"] = to_status
            row["updated_ts"] = _utcnow()
            for account, amount in (credits or {}).items():
                if int(amount) > 0:
                    self._proceeds[account] = self._proceeds.get(account, 0) + int(amount)
            return True

    def revert_transition(
        self,
        *,
        order_id: int,
        from_status: str,
        to_status: str,
        debits: Mapping[str, int] | None = None,
    ) -> bool:
        with self._lock:
            if not 0 <= int(order_id) < len(self._orders):
                return False
            row = self._orders[int(order_id)]
            if row["status"] != from_status:
                return False

            row["status"] = to_status
            row["updated_ts"] = _utcnow()
            for account, amount in (debits or {}).items():
                if int(amount) > 0:
                    left = self._proceeds.get(account, 0) - int(amount)
                    if left:
                        self._proceeds[account] = left
                    else:
                        self._proceeds.pop(account, None)
            return True

    def fetch_orders(self) -> list[dict]:
        with self._lock:
            return [dict(r) for r in self._orders]

    # ------------------------------------------------------------------
    def get_proceeds(self, account: str) -> int:
        with self._lock:
            return int(self._proceeds.get(account, 0))

    def take_proceeds(self, account: str, *, keep: int = 0) -> int:
        with self._lock:
            have = int(self._proceeds.get(account, 0))
            taken = max(have - int(keep), 0)
            if have - taken:
                self._proceeds[account] = have - taken
            else:
                self._proceeds.pop(account, None)
            return taken

    def add_proceeds(self, account: str, amount: int) -> None:
        if int(amount) <= 0:
            return
        with self._lock:
            self._proceeds[account] = self._proceeds.get(account, 0) + int(amount)
