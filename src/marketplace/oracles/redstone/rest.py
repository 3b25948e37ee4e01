# src/marketplace/oracles/redstone/rest.py
from __future__ import annotations

import logging
import time
from typing import Any

import requests

from src.marketplace.core.errors import OracleUnavailable
from src.marketplace.core.pricing.resolution import OracleReading
from src.marketplace.oracles.base.feed import PriceFeed

BASE_URL = "https://api.redstone.finance"

log = logging.getLogger("src.marketplace.oracles.redstone.rest")


def pair_symbol(pair: str) -> str:
    """'ETH/USD' -> 'ETH'"""
    return str(pair).split("/", 1)[0].strip().upper()


class RedstonePriceFeed(PriceFeed):
    """
    RedStone price API client (public), with retry/backoff for 429/5xx.

    Payloads are consumed as published; signature verification is not done
    here.
    """

    def __init__(
        self,
        *,
        base_url: str = BASE_URL,
        provider: str = "redstone",
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        session: requests.Session | None = None,
        sleep=time.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.provider = provider

        self.timeout = float(timeout)
        self.max_retries = int(max_retries)
        self.backoff_base = float(backoff_base)

        self.sess = session or requests.Session()
        self._sleep = sleep

    # ---------------------------------------------------------------------
    # CORE REQUEST (WITH BACKOFF)
    # ---------------------------------------------------------------------

    def _get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        last_err: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            try:
                r = self.sess.get(url, params=dict(params or {}), timeout=self.timeout)
            except requests.RequestException as e:
                last_err = e
                sleep = self.backoff_base * attempt
                log.warning(
                    "[ORACLE] request error (GET %s), retry %d/%d, sleep %.1fs | %r",
                    path, attempt, self.max_retries, sleep, e,
                )
                self._sleep(sleep)
                continue

            # --- RATE LIMIT / TEMP SERVER ERRORS ---
            if r.status_code == 429 or r.status_code >= 500:
                last_err = OracleUnavailable(f"HTTP {r.status_code}")
                sleep = self.backoff_base * attempt
                log.warning(
                    "[ORACLE] HTTP %d (GET %s), retry %d/%d, sleep %.1fs",
                    r.status_code, path, attempt, self.max_retries, sleep,
                )
                self._sleep(sleep)
                continue

            # --- OTHER ERRORS ---
            if r.status_code >= 400:
                raise OracleUnavailable(
                    f"price API HTTP {r.status_code} GET {path}: {r.text[:500]}",
                    status=r.status_code,
                )

            if not r.text:
                return None
            try:
                return r.json()
            except ValueError as e:
                raise OracleUnavailable(f"price API returned non-JSON body for GET {path}") from e

        raise OracleUnavailable(
            f"price API failed after {self.max_retries} retries: GET {path} | last_err={last_err!r}"
        )

    # ---------------------------------------------------------------------
    # API
    # ---------------------------------------------------------------------

    def fetch_price(self, symbol: str) -> dict | None:
        payload = self._get(
            "/prices",
            params={"symbol": symbol, "provider": self.provider, "limit": 1},
        )
        if isinstance(payload, list):
            return payload[0] if payload else None
        if isinstance(payload, dict):
            # {"ETH": {...}} for multi-symbol queries
            return payload.get(symbol) or (payload if "value" in payload else None)
        return None

    def latest(self, pair: str) -> OracleReading | None:
        symbol = pair_symbol(pair)
        item = self.fetch_price(symbol)
        if not item or item.get("value") is None:
            log.warning("[ORACLE] empty price payload symbol=%s", symbol)
            return None

        ts_ms = item.get("timestamp")
        ts = float(ts_ms) / 1000.0 if ts_ms else time.time()

        # value may be a JSON float; str() keeps the published digits
        reading = OracleReading.from_usd_quote(pair, str(item["value"]), ts)
        log.debug("[ORACLE] %s quote=%s ts=%.0f", pair, reading.quote, reading.ts)
        return reading
