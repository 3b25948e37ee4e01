# src/marketplace/data/storage/postgres/storage.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from psycopg_pool import ConnectionPool

from src.marketplace.data.storage.base import Storage

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class PostgreSQLStorage(Storage):

    """
    PostgreSQL storage: order ledger (append-only orders + status) and
    claimable proceeds.
    """

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    # ======================================================================
    # HELPERS
    # ======================================================================

    def _fetch_all(self, query: str, params: tuple = ()) -> list[dict[str, Any]]:
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
                cols = [d[0] for d in cur.description]
                return [dict(zip(cols, r)) for r in rows]

    def _exec_one(self, query: str, params: tuple):
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                row = cur.fetchone()
            conn.commit()
            return row

    def exec_ddl(self, ddl_sql: str) -> None:
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(ddl_sql)
            conn.commit()
        logger.info("[PG] DDL applied (%d bytes)", len(ddl_sql))

    # ======================================================================
    # ORDERS
    # ======================================================================

    def insert_order(self, row: dict) -> int:
        query = """
        INSERT INTO orders (
            registry_ref, asset_id, creator,
            price_usd, status,
            created_ts, updated_ts
        )
        VALUES (
            %(registry_ref)s, %(asset_id)s, %(creator)s,
            %(price_usd)s, %(status)s,
            %(created_ts)s, %(updated_ts)s
        )
        RETURNING order_id
        """
        now = _utcnow()
        params = {
            "registry_ref": str(row["registry_ref"]),
            "asset_id": int(row["asset_id"]),
            "creator": str(row["creator"]),
            "price_usd": row["price_usd"],
            "status": str(row.get("status") or "OPEN"),
            "created_ts": row.get("created_ts") or now,
            "updated_ts": row.get("updated_ts") or now,
        }
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                order_id = cur.fetchone()[0]
            conn.commit()
        return int(order_id)

    def _guarded_transition(
        self,
        *,
        order_id: int,
        from_status: str,
        to_status: str,
        proceeds_sql: str,
        amounts: Mapping[str, int] | None,
    ) -> bool:
        rows = [
            {"account": str(acc), "amount": int(amt)}
            for acc, amt in (amounts or {}).items()
            if int(amt) > 0
        ]

        with self.pool.connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        UPDATE orders
                        SET status     = %s,
                            updated_ts = NOW()
                        WHERE order_id = %s
                          AND status = %s
                        """,
                        (to_status, int(order_id), from_status),
                    )
                    if int(cur.rowcount or 0) != 1:
                        conn.rollback()
                        return False

                    if rows:
                        cur.executemany(proceeds_sql, rows)
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        return True

    def apply_transition(
        self,
        *,
        order_id: int,
        from_status: str,
        to_status: str,
        credits: Mapping[str, int] | None = None,
    ) -> bool:
        return self._guarded_transition(
            order_id=order_id,
            from_status=from_status,
            to_status=to_status,
            proceeds_sql="""
            INSERT INTO proceeds (account, amount, updated_ts)
            VALUES (%(account)s, %(amount)s, NOW())
            ON CONFLICT (account)
            DO UPDATE SET
                amount = proceeds.amount + EXCLUDED.amount,
                updated_ts = NOW()
            """,
            amounts=credits,
        )

    def revert_transition(
        self,
        *,
        order_id: int,
        from_status: str,
        to_status: str,
        debits: Mapping[str, int] | None = None,
    ) -> bool:
        # CHECK (amount >= 0) fails the whole undo if the credit was already paid out
        return self._guarded_transition(
            order_id=order_id,
            from_status=from_status,
            to_status=to_status,
            proceeds_sql="""
            UPDATE proceeds
            SET amount = amount - %(amount)s,
                updated_ts = NOW()
            WHERE account = %(account)s
            """,
            amounts=debits,
        )

    def fetch_orders(self) -> list[dict]:
        return self._fetch_all(
            """
            SELECT order_id, registry_ref, asset_id, creator,
                   price_usd, status, created_ts, updated_ts
            FROM orders
            ORDER BY order_id ASC
            """
        )

    # ======================================================================
    # PROCEEDS
    # ======================================================================

    def get_proceeds(self, account: str) -> int:
        rows = self._fetch_all(
            "SELECT amount FROM proceeds WHERE account = %s",
            (str(account),),
        )
        return int(rows[0]["amount"]) if rows else 0

    def take_proceeds(self, account: str, *, keep: int = 0) -> int:
        # cut down to `keep` in place; old value comes back through the CTE
        keep = max(int(keep), 0)
        row = self._exec_one(
            """
            WITH prev AS (
                SELECT amount FROM proceeds WHERE account = %s FOR UPDATE
            )
            UPDATE proceeds
            SET amount = LEAST(proceeds.amount, %s),
                updated_ts = NOW()
            WHERE account = %s
            RETURNING (SELECT amount FROM prev)
            """,
            (str(account), keep, str(account)),
        )
        if not row or row[0] is None:
            return 0
        return max(int(row[0]) - keep, 0)

    def add_proceeds(self, account: str, amount: int) -> None:
        if int(amount) <= 0:
            return
        self._exec_one(
            """
            INSERT INTO proceeds (account, amount, updated_ts)
            VALUES (%s, %s, NOW())
            ON CONFLICT (account)
            DO UPDATE SET
                amount = proceeds.amount + EXCLUDED.amount,
                updated_ts = NOW()
            RETURNING amount
            """,
            (str(account), int(amount)),
        )
