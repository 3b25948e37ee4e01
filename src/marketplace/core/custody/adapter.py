# src/marketplace/core/custody/adapter.py
from __future__ import annotations

import logging

from src.marketplace.assets.directory import RegistryDirectory
from src.marketplace.core.errors import (
    CustodyReleaseFailed,
    CustodyTakeFailed,
    NotApproved,
    UnknownRegistry,
)


class CustodyAdapter:
    """
    Escrow agent over external asset registries.

    Responsibilities:
      ✔ take custody of one asset per order (owner -> escrow)
      ✔ release custody (escrow -> buyer / creator)
      ✖ NO order bookkeeping

    Ownership on the registry is the only guard: a second take or release
    fails because the first one already moved the asset.
    """

    def __init__(
        self,
        *,
        escrow_account: str,
        registries: RegistryDirectory,
        logger: logging.Logger | None = None,
    ) -> None:
        if not escrow_account:
            raise ValueError("escrow_account is required")
        self.escrow_account = str(escrow_account)
        self.registries = registries
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    def holds(self, registry_ref: str, asset_id: int) -> bool:
        try:
            registry = self.registries.get(registry_ref)
            return registry.owner_of(int(asset_id)) == self.escrow_account
        except Exception:
            self.logger.debug("[CUSTODY] owner_of failed ref=%s asset=%s", registry_ref, asset_id, exc_info=True)
            return False

    # ------------------------------------------------------------------
    def take_custody(self, registry_ref: str, asset_id: int, owner: str) -> None:
        try:
            registry = self.registries.get(registry_ref)
        except UnknownRegistry as e:
            raise CustodyTakeFailed(str(e), registry_ref=registry_ref, asset_id=asset_id) from e

        try:
            approved = registry.get_approved(int(asset_id)) == self.escrow_account
            if not approved:
                approved = registry.is_approved_for_all(owner, self.escrow_account)
        except Exception as e:
            raise CustodyTakeFailed(
                f"approval lookup failed for asset {asset_id}: {e}",
                registry_ref=registry_ref,
                asset_id=asset_id,
            ) from e

        if not approved:
            raise NotApproved(
                f"escrow {self.escrow_account} is not approved for asset {asset_id}",
                registry_ref=registry_ref,
                asset_id=asset_id,
                owner=owner,
            )

        try:
            registry.transfer_from(self.escrow_account, owner, self.escrow_account, int(asset_id))
        except Exception as e:
            raise CustodyTakeFailed(
                f"transfer into escrow rejected for asset {asset_id}: {e}",
                registry_ref=registry_ref,
                asset_id=asset_id,
                owner=owner,
            ) from e

        self.logger.info("[CUSTODY] taken ref=%s asset=%s from=%s", registry_ref, asset_id, owner)

    # ------------------------------------------------------------------
    def release_custody(self, registry_ref: str, asset_id: int, to: str) -> None:
        if not self.holds(registry_ref, asset_id):
            raise CustodyReleaseFailed(
                f"escrow does not hold asset {asset_id}",
                registry_ref=registry_ref,
                asset_id=asset_id,
                to=to,
            )

        registry = self.registries.get(registry_ref)
        try:
            registry.transfer_from(self.escrow_account, self.escrow_account, to, int(asset_id))
        except Exception as e:
            raise CustodyReleaseFailed(
                f"transfer out of escrow rejected for asset {asset_id}: {e}",
                registry_ref=registry_ref,
                asset_id=asset_id,
                to=to,
            ) from e

        self.logger.info("[CUSTODY] released ref=%s asset=%s to=%s", registry_ref, asset_id, to)
