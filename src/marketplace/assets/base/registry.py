# src/marketplace/assets/base/registry.py
from __future__ import annotations

from abc import ABC, abstractmethod


class AssetRegistry(ABC):
    """
    Base non-fungible asset registry (ERC-721 style).

    The marketplace only relies on transfer-on-behalf after approval;
    everything else is here for wallets and tooling.
    `caller` is the identity performing the call (msg.sender).
    """

    ref: str

    # ---- reads ----

    @abstractmethod
    def balance_of(self, owner: str) -> int:
        ...

    @abstractmethod
    def owner_of(self, asset_id: int) -> str:
        ...

    @abstractmethod
    def token_of_owner_by_index(self, owner: str, index: int) -> int:
        ...

    @abstractmethod
    def get_approved(self, asset_id: int) -> str | None:
        ...

    @abstractmethod
    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        ...

    # ---- writes ----

    @abstractmethod
    def mint(self, caller: str) -> int:
        ...

    @abstractmethod
    def approve(self, caller: str, spender: str | None, asset_id: int) -> None:
        ...

    @abstractmethod
    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> None:
        ...

    @abstractmethod
    def transfer_from(self, caller: str, from_: str, to: str, asset_id: int) -> None:
        ...
