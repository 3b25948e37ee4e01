# src/marketplace/assets/memory/registry.py
from __future__ import annotations

import logging
import threading

from src.marketplace.assets.base.registry import AssetRegistry
from src.marketplace.core.errors import RegistryError


class InMemoryAssetRegistry(AssetRegistry):
    """
    Enumerable in-process registry, ids start at 1.

    Used by the demo runner, local networks and tests.
    """

    def __init__(self, ref: str = "example-nft", *, logger: logging.Logger | None = None):
        self.ref = str(ref)
        self.logger = logger or logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._owners: dict[int, str] = {}
        self._approved: dict[int, str] = {}
        self._operators: set[tuple[str, str]] = set()
        # owner -> asset ids in acquisition order
        self._owned: dict[str, list[int]] = {}
        self._next_id = 1

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def balance_of(self, owner: str) -> int:
        with self._lock:
            return len(self._owned.get(owner, []))

    def owner_of(self, asset_id: int) -> str:
        with self._lock:
            owner = self._owners.get(int(asset_id))
        if owner is None:
            raise RegistryError(f"{self.ref}: asset {asset_id} does not exist")
        return owner

    def token_of_owner_by_index(self, owner: str, index: int) -> int:
        with self._lock:
            owned = self._owned.get(owner, [])
            if not 0 <= int(index) < len(owned):
                raise RegistryError(f"{self.ref}: owner index out of bounds: {index}")
            return owned[int(index)]

    def get_approved(self, asset_id: int) -> str | None:
        self.owner_of(asset_id)
        with self._lock:
            return self._approved.get(int(asset_id))

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        with self._lock:
            return (owner, operator) in self._operators

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    def mint(self, caller: str) -> int:
        with self._lock:
            asset_id = self._next_id
            self._next_id += 1
            self._owners[asset_id] = caller
            self._owned.setdefault(caller, []).append(asset_id)

        self.logger.debug("[REGISTRY] %s minted asset=%s to=%s", self.ref, asset_id, caller)
        return asset_id

    def approve(self, caller: str, spender: str | None, asset_id: int) -> None:
        asset_id = int(asset_id)
        owner = self.owner_of(asset_id)
        with self._lock:
            if caller != owner and (owner, caller) not in self._operators:
                raise RegistryError(f"{self.ref}: approve caller is not owner nor approved for all")
            if spender == owner:
                raise RegistryError(f"{self.ref}: approval to current owner")
            if spender:
                self._approved[asset_id] = spender
            else:
                self._approved.pop(asset_id, None)

    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> None:
        if caller == operator:
            raise RegistryError(f"{self.ref}: approve to caller")
        with self._lock:
            if approved:
                self._operators.add((caller, operator))
            else:
                self._operators.discard((caller, operator))

    def transfer_from(self, caller: str, from_: str, to: str, asset_id: int) -> None:
        asset_id = int(asset_id)
        if not to:
            raise RegistryError(f"{self.ref}: transfer to the zero address")

        with self._lock:
            owner = self._owners.get(asset_id)
            if owner is None:
                raise RegistryError(f"{self.ref}: asset {asset_id} does not exist")
            if owner != from_:
                raise RegistryError(f"{self.ref}: transfer from incorrect owner")

            allowed = (
                caller == owner
                or self._approved.get(asset_id) == caller
                or (owner, caller) in self._operators
            )
            if not allowed:
                raise RegistryError(f"{self.ref}: transfer caller is not owner nor approved")

            self._approved.pop(asset_id, None)
            self._owned[owner].remove(asset_id)
            self._owned.setdefault(to, []).append(asset_id)
            self._owners[asset_id] = to

        self._after_transfer(from_, to, asset_id)

    def _after_transfer(self, from_: str, to: str, asset_id: int) -> None:
        """Hook for receiver callbacks; runs after state is updated."""
        self.logger.debug("[REGISTRY] %s transfer asset=%s %s -> %s", self.ref, asset_id, from_, to)
