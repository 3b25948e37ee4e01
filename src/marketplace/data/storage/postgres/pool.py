from psycopg_pool import ConnectionPool


def create_pool(dsn: str, *, min_size: int = 1, max_size: int = 4) -> ConnectionPool:
    # ledger writes are explicit transactions -> no autocommit
    return ConnectionPool(
        conninfo=dsn,
        min_size=int(min_size),
        max_size=int(max_size),
        kwargs={"autocommit": False, "prepare_threshold": 0},
        open=True,
    )
