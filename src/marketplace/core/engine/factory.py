# src/marketplace/core/engine/factory.py
from __future__ import annotations

import logging

from src.marketplace.assets.base.registry import AssetRegistry
from src.marketplace.assets.directory import RegistryDirectory
from src.marketplace.config import MarketplaceConfig
from src.marketplace.core.custody.adapter import CustodyAdapter
from src.marketplace.core.engine.marketplace import Marketplace
from src.marketplace.core.ledger.order_ledger import OrderLedger
from src.marketplace.core.settlement.engine import SettlementEngine
from src.marketplace.data.storage.base import Storage
from src.marketplace.data.storage.memory import InMemoryStorage
from src.marketplace.oracles.base.feed import IdentityPriceFeed, PriceFeed, StaticPriceFeed
from src.marketplace.oracles.redstone.rest import RedstonePriceFeed
from src.marketplace.payments.base import PaymentRail
from src.marketplace.payments.memory import InMemoryPaymentRail

log = logging.getLogger(__name__)


def build_price_feed(cfg: MarketplaceConfig) -> PriceFeed:
    kind = cfg.oracle.kind
    if kind == "static":
        feed = StaticPriceFeed()
        if cfg.oracle.static_usd_quote is not None:
            feed.set_usd_quote(cfg.pair, cfg.oracle.static_usd_quote)
        return feed
    if kind == "identity":
        return IdentityPriceFeed()
    if kind == "redstone":
        return RedstonePriceFeed(
            base_url=cfg.oracle.base_url,
            provider=cfg.oracle.provider,
            timeout=cfg.oracle.timeout,
            max_retries=cfg.oracle.max_retries,
            backoff_base=cfg.oracle.backoff_base,
        )
    raise ValueError(f"Unknown oracle kind: {kind}")


def build_storage(cfg: MarketplaceConfig) -> Storage:
    kind = cfg.storage.kind
    if kind == "memory":
        return InMemoryStorage()
    if kind == "postgres":
        # psycopg only needed here
        from src.marketplace.data.storage.postgres.pool import create_pool
        from src.marketplace.data.storage.postgres.storage import PostgreSQLStorage

        return PostgreSQLStorage(create_pool(cfg.pg_dsn()))
    raise ValueError(f"Unknown storage kind: {kind}")


def build_marketplace(
    cfg: MarketplaceConfig,
    *,
    registries: list[AssetRegistry] | RegistryDirectory,
    storage: Storage | None = None,
    price_feed: PriceFeed | None = None,
    payments: PaymentRail | None = None,
) -> Marketplace:
    """Wire custody -> ledger -> settlement -> marketplace from config."""
    cfg.require_supported_network()

    directory = registries if isinstance(registries, RegistryDirectory) else RegistryDirectory(list(registries))

    custody = CustodyAdapter(
        escrow_account=cfg.escrow_account,
        registries=directory,
        logger=logging.getLogger("marketplace.custody"),
    )
    ledger = OrderLedger(
        storage=storage or build_storage(cfg),
        custody=custody,
        logger=logging.getLogger("marketplace.ledger"),
    )
    settlement = SettlementEngine(
        ledger=ledger,
        custody=custody,
        refund_excess=cfg.refund_excess,
        pair=cfg.pair,
        max_age_sec=cfg.oracle.max_age_sec,
        logger=logging.getLogger("marketplace.settlement"),
    )

    log.info(
        "[Marketplace] network=%s pair=%s oracle=%s storage=%s refund_excess=%s registries=%s",
        cfg.network, cfg.pair, cfg.oracle.kind, cfg.storage.kind, cfg.refund_excess, directory.refs(),
    )
    return Marketplace(
        ledger=ledger,
        settlement=settlement,
        price_feed=price_feed or build_price_feed(cfg),
        payments=payments or InMemoryPaymentRail(escrow_account=cfg.escrow_account),
        pair=cfg.pair,
    )
