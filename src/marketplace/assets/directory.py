from __future__ import annotations

from src.marketplace.assets.base.registry import AssetRegistry
from src.marketplace.core.errors import UnknownRegistry


class RegistryDirectory:
    """registry_ref -> AssetRegistry"""

    def __init__(self, registries: list[AssetRegistry] | None = None):
        self._by_ref: dict[str, AssetRegistry] = {}
        for r in registries or []:
            self.register(r)

    def register(self, registry: AssetRegistry) -> AssetRegistry:
        ref = str(registry.ref)
        if ref in self._by_ref and self._by_ref[ref] is not registry:
            raise ValueError(f"registry ref already bound: {ref}")
        self._by_ref[ref] = registry
        return registry

    def get(self, ref: str) -> AssetRegistry:
        try:
            return self._by_ref[str(ref)]
        except KeyError:
            raise UnknownRegistry(f"Unknown asset registry: {ref}") from None

    def __contains__(self, ref: object) -> bool:
        return str(ref) in self._by_ref

    def refs(self) -> list[str]:
        return list(self._by_ref)
