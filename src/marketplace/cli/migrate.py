# src/marketplace/cli/migrate.py
from pathlib import Path
import logging
import os

from dotenv import load_dotenv

from src.marketplace.data.storage.postgres.pool import create_pool
from src.marketplace.data.storage.postgres.storage import PostgreSQLStorage


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    load_dotenv()
    dsn = os.getenv("PG_DSN")
    if not dsn:
        raise RuntimeError("PG_DSN env var is required")

    pool = create_pool(dsn)
    store = PostgreSQLStorage(pool)

    ddl_path = (
        Path(__file__).resolve().parents[1]
        / "data"
        / "storage"
        / "postgres"
        / "ddl.sql"
    )

    ddl_sql = ddl_path.read_text(encoding="utf-8")
    store.exec_ddl(ddl_sql)
    pool.close()


if __name__ == "__main__":
    main()
