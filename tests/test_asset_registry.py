import pytest

from src.marketplace.assets.directory import RegistryDirectory
from src.marketplace.assets.memory.registry import InMemoryAssetRegistry
from src.marketplace.core.errors import RegistryError, UnknownRegistry


def test_mint_assigns_sequential_ids_from_one():
    nft = InMemoryAssetRegistry()
    assert nft.mint("alice") == 1
    assert nft.mint("alice") == 2
    assert nft.owner_of(1) == "alice"
    assert nft.owner_of(2) == "alice"
    assert nft.balance_of("alice") == 2
    assert [nft.token_of_owner_by_index("alice", i) for i in range(2)] == [1, 2]


def test_approved_spender_can_transfer():
    nft = InMemoryAssetRegistry()
    asset_id = nft.mint("alice")
    nft.approve("alice", "bob", asset_id)

    nft.transfer_from("bob", "alice", "bob", asset_id)

    assert nft.owner_of(asset_id) == "bob"
    assert nft.balance_of("alice") == 0
    # approval does not survive a transfer
    assert nft.get_approved(asset_id) is None


def test_unapproved_transfer_rejected():
    nft = InMemoryAssetRegistry()
    asset_id = nft.mint("alice")
    with pytest.raises(RegistryError):
        nft.transfer_from("mallory", "alice", "mallory", asset_id)
    assert nft.owner_of(asset_id) == "alice"


def test_transfer_from_wrong_owner_rejected():
    nft = InMemoryAssetRegistry()
    asset_id = nft.mint("alice")
    nft.approve("alice", "bob", asset_id)
    with pytest.raises(RegistryError):
        nft.transfer_from("bob", "carol", "bob", asset_id)


def test_only_owner_or_operator_can_approve():
    nft = InMemoryAssetRegistry()
    asset_id = nft.mint("alice")
    with pytest.raises(RegistryError):
        nft.approve("mallory", "mallory2", asset_id)

    nft.set_approval_for_all("alice", "operator", True)
    nft.approve("operator", "bob", asset_id)
    assert nft.get_approved(asset_id) == "bob"


def test_unknown_asset():
    nft = InMemoryAssetRegistry()
    with pytest.raises(RegistryError):
        nft.owner_of(42)


def test_directory_lookup():
    nft = InMemoryAssetRegistry("nft-a")
    d = RegistryDirectory([nft])
    assert d.get("nft-a") is nft
    assert "nft-a" in d
    with pytest.raises(UnknownRegistry):
        d.get("nft-b")
