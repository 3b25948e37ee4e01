from __future__ import annotations

from dataclasses import dataclass

import pytest

from src.marketplace.assets.memory.registry import InMemoryAssetRegistry
from src.marketplace.config import MarketplaceConfig
from src.marketplace.core.engine.factory import build_marketplace
from src.marketplace.core.engine.marketplace import Marketplace
from src.marketplace.core.utils.units import to_base_units
from src.marketplace.data.storage.memory import InMemoryStorage
from src.marketplace.oracles.base.feed import StaticPriceFeed
from src.marketplace.payments.memory import InMemoryPaymentRail

SELLER = "0xSeller"
BUYER = "0xBuyer"
STRANGER = "0xStranger"
ESCROW = "marketplace"
PAIR = "ETH/USD"
ONE = 10 ** 18


class FlakyStorage(InMemoryStorage):
    """Status writes fail while `fail` is set: raise, or report a lost race."""

    def __init__(self):
        super().__init__()
        self.fail: str | None = None

    def apply_transition(self, **kw) -> bool:
        if self.fail == "raise":
            raise ConnectionError("db connection dropped")
        if self.fail == "stale":
            return False
        return super().apply_transition(**kw)


@dataclass
class World:
    nft: InMemoryAssetRegistry
    feed: StaticPriceFeed
    rail: InMemoryPaymentRail
    storage: InMemoryStorage
    mp: Marketplace
    cfg: MarketplaceConfig

    def post(self, *, owner: str = SELLER, price_usd="100") -> tuple[int, int]:
        asset_id = self.nft.mint(owner)
        self.nft.approve(owner, ESCROW, asset_id)
        order_id = self.mp.post_sell_order(owner, self.nft.ref, asset_id, price_usd)
        return order_id, asset_id


def make_world(*, nft: InMemoryAssetRegistry | None = None, refund_excess: bool = True, storage=None) -> World:
    cfg = MarketplaceConfig(escrow_account=ESCROW, pair=PAIR, refund_excess=refund_excess)
    nft = nft or InMemoryAssetRegistry("example-nft")
    feed = StaticPriceFeed()
    # 1 USD = 0.01 ETH
    feed.set_rate(PAIR, "0.01")
    rail = InMemoryPaymentRail(escrow_account=ESCROW)
    rail.fund(BUYER, to_base_units(10))
    rail.fund(STRANGER, to_base_units(10))
    storage = storage or InMemoryStorage()
    mp = build_marketplace(cfg, registries=[nft], storage=storage, price_feed=feed, payments=rail)
    return World(nft=nft, feed=feed, rail=rail, storage=storage, mp=mp, cfg=cfg)


@pytest.fixture
def world() -> World:
    return make_world()
