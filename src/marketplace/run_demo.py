# src/marketplace/run_demo.py
from __future__ import annotations

import argparse
import logging

from src.marketplace.assets.memory.registry import InMemoryAssetRegistry
from src.marketplace.client.wallet import MarketplaceClient, describe_error, shorten_address
from src.marketplace.config import load_config
from src.marketplace.core.engine.factory import build_marketplace
from src.marketplace.core.errors import MarketplaceError
from src.marketplace.core.utils.units import apply_buffer, from_base_units, to_base_units
from src.marketplace.data.storage.memory import InMemoryStorage
from src.marketplace.oracles.base.feed import StaticPriceFeed
from src.marketplace.payments.memory import InMemoryPaymentRail

SELLER = "0x5eLLer000000000000000000000000000000001"
BUYER = "0xb0yer0000000000000000000000000000000002"


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="In-memory marketplace walk-through")
    ap.add_argument("--config", default=None)
    ap.add_argument("--usd-quote", default="3000", help="ETH price in USD for the fixture feed")
    ap.add_argument("--usd-price", default="100", help="ask price of the listed asset")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logger = logging.getLogger("marketplace.demo")
    logger.info("=== MARKETPLACE DEMO START ===")

    cfg = load_config(args.config)
    cfg.network = "local"
    if "local" not in cfg.supported_networks:
        cfg.supported_networks.append("local")

    nft = InMemoryAssetRegistry("example-nft")
    feed = StaticPriceFeed()
    feed.set_usd_quote(cfg.pair, args.usd_quote)
    rail = InMemoryPaymentRail(escrow_account=cfg.escrow_account)
    rail.fund(BUYER, to_base_units(10))

    mp = build_marketplace(
        cfg,
        registries=[nft],
        storage=InMemoryStorage(),
        price_feed=feed,
        payments=rail,
    )
    seller = MarketplaceClient(marketplace=mp, registry=nft, account=SELLER, buy_buffer_pct=cfg.buy_buffer_pct)
    buyer = MarketplaceClient(marketplace=mp, registry=nft, account=BUYER, buy_buffer_pct=cfg.buy_buffer_pct)

    asset_id = seller.mint_asset()
    order_id = seller.post_order(asset_id, args.usd_price)
    logger.info("asset #%s owner=%s (escrow)", asset_id, nft.owner_of(asset_id))

    expected = mp.get_price(order_id)
    logger.info("Expected ETH amount: %s", from_base_units(expected))

    try:
        mp.buy(order_id, BUYER, apply_buffer(expected, -1))
    except MarketplaceError as e:
        logger.info("under-paid buy rejected: %s (%s)", e.code, describe_error(e))

    settlement = buyer.buy(order_id)
    logger.info(
        "bought order_id=%s paid=%s refund=%s owner=%s",
        settlement.order_id,
        from_base_units(settlement.paid),
        from_base_units(settlement.buyer_refund),
        shorten_address(nft.owner_of(asset_id)),
    )

    # buyer re-lists and cancels
    relist_id = buyer.post_order(asset_id, "1")
    buyer.cancel_order(relist_id)
    logger.info("order_id=%s cancelled, owner=%s", relist_id, shorten_address(nft.owner_of(asset_id)))

    for o in mp.get_all_orders():
        logger.info("order_id=%s asset=%s status=%s price_usd=%s", o.order_id, o.asset_id, o.status.value, o.price_usd)

    logger.info("seller withdrew %s ETH", from_base_units(seller.withdraw()))
    logger.info("buyer withdrew %s ETH", from_base_units(buyer.withdraw()))
    logger.info("=== MARKETPLACE DEMO DONE ===")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
