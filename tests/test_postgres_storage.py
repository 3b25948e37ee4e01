from contextlib import contextmanager
from decimal import Decimal

import pytest

from src.marketplace.data.storage.postgres.storage import PostgreSQLStorage


class _Cursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = conn.rowcount
        self.description = [(c,) for c in conn.columns]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        if self.conn.fail_on and self.conn.fail_on in query:
            raise RuntimeError("statement failed")
        self.conn.executed.append((" ".join(query.split()), params))

    def executemany(self, query, rows):
        if self.conn.fail_on and self.conn.fail_on in query:
            raise RuntimeError("statement failed")
        self.conn.executed_many.append((" ".join(query.split()), list(rows)))

    def fetchall(self):
        return list(self.conn.rows)

    def fetchone(self):
        return self.conn.rows[0] if self.conn.rows else None


class _Conn:
    def __init__(self, *, rowcount=1, rows=(), columns=(), fail_on=None):
        self.rowcount = rowcount
        self.rows = list(rows)
        self.columns = list(columns)
        self.fail_on = fail_on
        self.executed = []
        self.executed_many = []
        self.commits = 0
        self.rollbacks = 0

    def cursor(self):
        return _Cursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


class _Pool:
    def __init__(self, conn):
        self.conn = conn

    @contextmanager
    def connection(self):
        yield self.conn


def _storage(**kw):
    conn = _Conn(**kw)
    return PostgreSQLStorage(_Pool(conn)), conn


def test_transition_commits_status_and_credits_together():
    storage, conn = _storage(rowcount=1)

    ok = storage.apply_transition(
        order_id=3,
        from_status="OPEN",
        to_status="FILLED",
        credits={"0xSeller": 10, "0xBuyer": 0},
    )

    assert ok is True
    query, params = conn.executed[0]
    assert query.startswith("UPDATE orders")
    assert params == ("FILLED", 3, "OPEN")
    # zero credits are dropped
    assert conn.executed_many[0][1] == [{"account": "0xSeller", "amount": 10}]
    assert (conn.commits, conn.rollbacks) == (1, 0)


def test_transition_on_non_open_row_rolls_back():
    storage, conn = _storage(rowcount=0)

    ok = storage.apply_transition(order_id=3, from_status="OPEN", to_status="FILLED", credits={"0xSeller": 10})

    assert ok is False
    assert conn.executed_many == []
    assert (conn.commits, conn.rollbacks) == (0, 1)


def test_transition_failure_rolls_back_and_raises():
    storage, conn = _storage(rowcount=1, fail_on="INSERT INTO proceeds")

    with pytest.raises(RuntimeError):
        storage.apply_transition(order_id=1, from_status="OPEN", to_status="FILLED", credits={"0xSeller": 1})

    assert (conn.commits, conn.rollbacks) == (0, 1)


def test_revert_takes_credits_back_in_one_transaction():
    storage, conn = _storage(rowcount=1)

    ok = storage.revert_transition(order_id=3, from_status="FILLED", to_status="OPEN", debits={"0xSeller": 10})

    assert ok is True
    assert conn.executed[0][1] == ("OPEN", 3, "FILLED")
    query, rows = conn.executed_many[0]
    assert query.startswith("UPDATE proceeds SET amount = amount -")
    assert rows == [{"account": "0xSeller", "amount": 10}]
    assert (conn.commits, conn.rollbacks) == (1, 0)


def test_revert_on_changed_row_writes_nothing():
    storage, conn = _storage(rowcount=0)

    assert storage.revert_transition(order_id=3, from_status="FILLED", to_status="OPEN", debits={"0xSeller": 10}) is False
    assert conn.executed_many == []
    assert (conn.commits, conn.rollbacks) == (0, 1)


def test_fetch_orders_maps_columns():
    columns = ["order_id", "registry_ref", "asset_id", "creator", "price_usd", "status", "created_ts", "updated_ts"]
    storage, _ = _storage(
        rows=[(0, "example-nft", 1, "0xSeller", Decimal("100"), "OPEN", None, None)],
        columns=columns,
    )

    rows = storage.fetch_orders()

    assert rows == [
        {
            "order_id": 0,
            "registry_ref": "example-nft",
            "asset_id": 1,
            "creator": "0xSeller",
            "price_usd": Decimal("100"),
            "status": "OPEN",
            "created_ts": None,
            "updated_ts": None,
        }
    ]


def test_insert_order_returns_generated_id():
    storage, conn = _storage(rows=[(7,)])

    order_id = storage.insert_order(
        {"registry_ref": "example-nft", "asset_id": 2, "creator": "0xSeller", "price_usd": Decimal("5")}
    )

    assert order_id == 7
    _, params = conn.executed[0]
    assert params["status"] == "OPEN"
    assert params["created_ts"] is not None
    assert conn.commits == 1


def test_take_proceeds_returns_previous_amount():
    storage, _ = _storage(rows=[(42,)])
    assert storage.take_proceeds("0xSeller") == 42

    kept, conn = _storage(rows=[(42,)])
    assert kept.take_proceeds("0xSeller", keep=10) == 32
    assert conn.executed[0][1] == ("0xSeller", 10, "0xSeller")

    all_reserved, _ = _storage(rows=[(42,)])
    assert all_reserved.take_proceeds("0xSeller", keep=50) == 0

    empty, _ = _storage(rows=[])
    assert empty.take_proceeds("0xNobody") == 0


def test_add_proceeds_skips_non_positive():
    storage, conn = _storage(rows=[(5,)])
    storage.add_proceeds("0xSeller", 0)
    assert conn.executed == []

    storage.add_proceeds("0xSeller", 5)
    assert conn.executed[0][1] == ("0xSeller", 5)
