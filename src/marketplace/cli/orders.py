# src/marketplace/cli/orders.py
from __future__ import annotations

import argparse
import logging

from src.marketplace.config import load_config
from src.marketplace.core.engine.factory import build_marketplace
from src.marketplace.core.errors import MarketplaceError
from src.marketplace.core.models.enums import OrderStatus
from src.marketplace.core.utils.units import from_base_units


def _build(args):
    cfg = load_config(args.config)
    # read-only: registries are not needed to list or quote
    return build_marketplace(cfg, registries=[])


def cmd_list(args) -> int:
    mp = _build(args)
    orders = mp.get_all_orders()
    if args.status:
        wanted = OrderStatus(args.status.upper())
        orders = [o for o in orders if o.status == wanted]

    for o in orders:
        print(
            f"{o.order_id:>6}  {o.status.value:<9}  {o.registry_ref}#{o.asset_id}  "
            f"${o.price_usd}  creator={o.creator}"
        )
    print(f"[orders] total={len(orders)}")
    return 0


def cmd_price(args) -> int:
    mp = _build(args)
    try:
        amount = mp.get_price(args.order_id)
    except MarketplaceError as e:
        print(f"[price] order_id={args.order_id} failed: {e.code} {e}")
        return 1
    print(f"[price] order_id={args.order_id} native={from_base_units(amount)} base_units={amount}")
    return 0


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Inspect the marketplace order ledger")
    ap.add_argument("--config", default=None, help="path to marketplace.yaml")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_list = sub.add_parser("list", help="list orders (full history)")
    p_list.add_argument("--status", choices=[s.value for s in OrderStatus] + [s.value.lower() for s in OrderStatus])
    p_list.set_defaults(func=cmd_list)

    p_price = sub.add_parser("price", help="quote an order in native units with the live feed")
    p_price.add_argument("order_id", type=int)
    p_price.set_defaults(func=cmd_price)

    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
