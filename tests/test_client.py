from decimal import Decimal

import pytest

from src.marketplace.client.wallet import MarketplaceClient, describe_error, shorten_address
from src.marketplace.core.errors import (
    InsufficientPayment,
    MarketplaceError,
    NotApproved,
    OrderNotOpen,
    StaleOrMissingReading,
    Unauthorized,
    UnsupportedNetwork,
)
from src.marketplace.core.models.enums import OrderStatus
from src.marketplace.core.utils.units import to_base_units
from tests.conftest import BUYER, ESCROW, ONE, SELLER


def _client(world, account, **kw):
    return MarketplaceClient(marketplace=world.mp, registry=world.nft, account=account, **kw)


def test_owned_assets_follow_mints_and_listings(world):
    seller = _client(world, SELLER)
    a1 = seller.mint_asset()
    a2 = seller.mint_asset()
    assert seller.get_owned_assets() == [a1, a2]

    seller.post_order(a1, 100)
    assert seller.get_owned_assets() == [a2]


def test_post_approves_then_posts(world):
    seller = _client(world, SELLER)
    asset_id = seller.mint_asset()

    order_id = seller.post_order(asset_id, "100")

    assert world.nft.owner_of(asset_id) == ESCROW
    views = seller.get_active_orders()
    assert [(v.order_id, v.asset_id, v.usd_price, v.creator) for v in views] == [
        (order_id, asset_id, Decimal("100"), SELLER)
    ]


def test_active_orders_hide_terminal(world):
    seller = _client(world, SELLER)
    buyer = _client(world, BUYER)
    sold = seller.post_order(seller.mint_asset(), "100")
    gone = seller.post_order(seller.mint_asset(), "100")
    live = seller.post_order(seller.mint_asset(), "100")

    buyer.buy(sold)
    seller.cancel_order(gone)

    assert [v.order_id for v in buyer.get_active_orders()] == [live]
    assert all(v.status == OrderStatus.OPEN for v in buyer.get_active_orders())
    # ledger keeps all three
    assert len(world.mp.get_all_orders()) == 3


def test_buy_sends_quote_plus_buffer(world):
    seller = _client(world, SELLER)
    buyer = _client(world, BUYER, buy_buffer_pct=1)
    asset_id = seller.mint_asset()
    order_id = seller.post_order(asset_id, "100")

    s = buyer.buy(order_id)

    assert s.paid == to_base_units("1.01")
    assert s.buyer_refund == to_base_units("0.01")
    assert buyer.get_owned_assets() == [asset_id]
    assert seller.withdraw() == ONE
    assert buyer.withdraw() == to_base_units("0.01")


def test_buy_without_buffer_loses_to_price_move(world):
    seller = _client(world, SELLER)
    buyer = _client(world, BUYER, buy_buffer_pct=0)
    order_id = seller.post_order(seller.mint_asset(), "100")

    # quote happens inside buy(); a move after quoting is what the buffer absorbs
    real_get_price = world.mp.get_price

    def quote_then_move(oid):
        q = real_get_price(oid)
        world.feed.set_rate("ETH/USD", "0.0101")
        return q

    world.mp.get_price = quote_then_move
    with pytest.raises(InsufficientPayment):
        buyer.buy(order_id)


def test_buyer_cannot_cancel_sellers_order(world):
    seller = _client(world, SELLER)
    buyer = _client(world, BUYER)
    order_id = seller.post_order(seller.mint_asset(), "100")
    with pytest.raises(Unauthorized):
        buyer.cancel_order(order_id)


def test_describe_error():
    assert "Approve" in describe_error(NotApproved())
    assert "no longer available" in describe_error(OrderNotOpen())
    assert "price moved" in describe_error(InsufficientPayment(required=2, paid=1))
    assert "price" in describe_error(StaleOrMissingReading())
    assert describe_error(UnsupportedNetwork("Please connect to a supported network (local)")).startswith(
        "Please connect"
    )

    class _Other(MarketplaceError):
        code = "OTHER"

    assert describe_error(_Other()) == "Marketplace error: OTHER"
    assert describe_error(ValueError("x")) == "Unexpected error, please try again."


def test_shorten_address():
    addr = "0x1234567890abcdef1234567890abcdef12345678"
    assert shorten_address(addr) == "0x12345..2345678"
