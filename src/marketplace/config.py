# src/marketplace/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from src.marketplace.core.errors import UnsupportedNetwork

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = ROOT / "config" / "marketplace.yaml"


@dataclass(slots=True)
class OracleConfig:
    kind: str = "static"              # static | redstone | identity
    base_url: str = "https://api.redstone.finance"
    provider: str = "redstone"
    timeout: float = 10.0
    max_retries: int = 3
    backoff_base: float = 1.0
    max_age_sec: float | None = None
    # static feed only: USD per 1 native
    static_usd_quote: str | None = None


@dataclass(slots=True)
class StorageConfig:
    kind: str = "memory"              # memory | postgres
    dsn_env: str = "PG_DSN"


@dataclass(slots=True)
class MarketplaceConfig:
    network: str = "local"
    supported_networks: list[str] = field(default_factory=lambda: ["local"])
    escrow_account: str = "marketplace"
    pair: str = "ETH/USD"

    # settlement: True -> seller gets the resolved amount, buyer gets the excess back
    refund_excess: bool = True

    # client: over-pay buffer for price movement between quote and buy
    buy_buffer_pct: float = 1.0

    oracle: OracleConfig = field(default_factory=OracleConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    def require_supported_network(self) -> str:
        if self.network not in self.supported_networks:
            raise UnsupportedNetwork(
                "Please connect to a supported network "
                f"({', '.join(self.supported_networks)}) and try again",
                network=self.network,
            )
        return self.network

    def pg_dsn(self) -> str:
        dsn = os.getenv(self.storage.dsn_env)
        if not dsn:
            raise SystemExit(f"{self.storage.dsn_env} env var is required")
        return dsn


# -----------------------------------------------------------------------------
# helpers
# -----------------------------------------------------------------------------
def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise SystemExit(f"Config file not found: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return data or {}


def _opt_float(v) -> float | None:
    return float(v) if v is not None else None


def load_config(path: str | Path | None = None, *, env: bool = True) -> MarketplaceConfig:
    """
    YAML -> MarketplaceConfig.

    The active network can be overridden with MARKET_NETWORK; the selected
    network's section (`networks.<name>`) overrides top-level keys.
    """
    if env:
        load_dotenv()

    cfg_path = Path(path) if path else Path(os.getenv("MARKET_CONFIG") or DEFAULT_CONFIG_PATH)
    raw = _load_yaml(cfg_path)

    networks = raw.get("networks") or {}
    network = str((os.getenv("MARKET_NETWORK") if env else None) or raw.get("network") or "local")

    merged = dict(raw)
    merged.update(networks.get(network) or {})

    o = dict(raw.get("oracle") or {})
    o.update((networks.get(network) or {}).get("oracle") or {})
    s = dict(raw.get("storage") or {})
    s.update((networks.get(network) or {}).get("storage") or {})
    settlement = merged.get("settlement") or {}
    client = merged.get("client") or {}

    static_quote = o.get("static_usd_quote")

    return MarketplaceConfig(
        network=network,
        supported_networks=[str(n) for n in (raw.get("supported_networks") or list(networks) or ["local"])],
        escrow_account=str(merged.get("escrow_account") or "marketplace"),
        pair=str(merged.get("pair") or "ETH/USD"),
        refund_excess=bool(settlement.get("refund_excess", True)),
        buy_buffer_pct=float(client.get("buy_buffer_pct", 1.0)),
        oracle=OracleConfig(
            kind=str(o.get("kind") or "static").lower(),
            base_url=str(o.get("base_url") or "https://api.redstone.finance"),
            provider=str(o.get("provider") or "redstone"),
            timeout=float(o.get("timeout", 10.0)),
            max_retries=int(o.get("max_retries", 3)),
            backoff_base=float(o.get("backoff_base", 1.0)),
            max_age_sec=_opt_float(o.get("max_age_sec")),
            static_usd_quote=str(static_quote) if static_quote is not None else None,
        ),
        storage=StorageConfig(
            kind=str(s.get("kind") or "memory").lower(),
            dsn_env=str(s.get("dsn_env") or "PG_DSN"),
        ),
    )
