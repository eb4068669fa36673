import pytest

from wallet import (
    AddressEntry,
    CorruptRecordError,
    DuplicateAddressError,
    DuplicateNameError,
    NotFoundError,
    ValidationError,
    WalletRecord,
    WalletStore,
)

ADDR_A = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"
ADDR_B = "0x2B5AD5c4795c026514f8317c7a215E218DcCD6cF"


def record(address: str) -> WalletRecord:
    return WalletRecord(address=address, encrypted_private_key="ab" * 48, iv="cd" * 16)


def store_with(*names_and_addresses) -> WalletStore:
    store = WalletStore()
    for name, address in names_and_addresses:
        store.add_wallet(name, record(address))
    return store


def test_add_wallet_rejects_duplicate_name() -> None:
    store = store_with(("alice", ADDR_A))
    with pytest.raises(DuplicateNameError):
        store.add_wallet("alice", record(ADDR_B))
    assert len(store) == 1


def test_add_wallet_rejects_duplicate_address_case_insensitively() -> None:
    store = store_with(("alice", ADDR_A))
    with pytest.raises(DuplicateAddressError) as exc:
        store.add_wallet("bob", record(ADDR_A.lower()))
    assert exc.value.existing_name == "alice"
    assert store.names() == ["alice"]


@pytest.mark.parametrize("name", ["", "   ", "x" * 65, "bad\nname"])
def test_add_wallet_rejects_invalid_names(name) -> None:
    with pytest.raises(ValidationError):
        WalletStore().add_wallet(name, record(ADDR_A))


def test_remove_missing_wallet() -> None:
    with pytest.raises(NotFoundError):
        WalletStore().remove_wallet("ghost")


def test_rename_moves_current_pointer() -> None:
    store = store_with(("alice", ADDR_A), ("bob", ADDR_B))
    store.set_current("alice")
    store.rename_wallet("alice", "carol")
    assert store.current_wallet == "carol"
    assert store.names() == ["carol", "bob"]


def test_rename_to_existing_name_fails_without_change() -> None:
    store = store_with(("alice", ADDR_A), ("bob", ADDR_B))
    with pytest.raises(DuplicateNameError):
        store.rename_wallet("alice", "bob")
    assert store.names() == ["alice", "bob"]


def test_set_current_requires_existing_wallet() -> None:
    store = store_with(("alice", ADDR_A))
    with pytest.raises(NotFoundError):
        store.set_current("bob")
    assert store.current_wallet is None


def test_to_dict_uses_file_keys() -> None:
    store = store_with(("alice", ADDR_A))
    assert store.to_dict() == {
        "wallets": {"alice": {"address": ADDR_A, "encryptedPrivateKey": "ab" * 48, "iv": "cd" * 16}},
    }
    store.set_current("alice")
    assert store.to_dict()["currentWallet"] == "alice"


def test_legacy_single_wallet_file_becomes_default() -> None:
    store = WalletStore.from_dict({"address": ADDR_A, "encryptedPrivateKey": "ab" * 48, "iv": "cd" * 16})
    assert store.names() == ["default"]
    assert store.current_wallet == "default"
    assert store.get_wallet("default").address == ADDR_A


def test_bare_string_address_book_entries_load_as_plaintext() -> None:
    store = WalletStore.from_dict({"wallets": {}, "addressBook": {"exchange": ADDR_B}})
    entry = store.address_book["exchange"]
    assert entry.encrypted is False
    assert entry.address == ADDR_B
    assert store.to_dict()["addressBook"] == {"exchange": {"address": ADDR_B}}


def test_unknown_top_level_keys_are_preserved() -> None:
    data = {"wallets": {}, "config": {"network": "testnet"}}
    assert WalletStore.from_dict(data).to_dict()["config"] == {"network": "testnet"}


def test_dangling_current_pointer_is_corrupt() -> None:
    data = {"currentWallet": "ghost", "wallets": {"alice": record(ADDR_A).to_dict()}}
    with pytest.raises(CorruptRecordError):
        WalletStore.from_dict(data)


def test_current_pointer_is_dropped_when_no_wallets() -> None:
    assert WalletStore.from_dict({"currentWallet": "ghost", "wallets": {}}).current_wallet is None


@pytest.mark.parametrize("data", [
    {"wallets": {"alice": {"address": ADDR_A, "encryptedPrivateKey": "ab"}}},
    {"wallets": ["alice"]},
    {"wallets": {}, "addressBook": {"x": {"encrypted": True, "iv": "00"}}},
    {"wallets": {}, "addressBook": {"x": 42}},
    [],
])
def test_malformed_data_is_corrupt(data) -> None:
    with pytest.raises(CorruptRecordError):
        WalletStore.from_dict(data)


def test_snapshot_and_restore() -> None:
    store = store_with(("alice", ADDR_A))
    store.set_current("alice")
    snapshot = store.snapshot()

    store.add_wallet("bob", record(ADDR_B))
    store.rename_wallet("alice", "carol")
    store.address_book["x"] = AddressEntry.plain(ADDR_B)

    store.restore(snapshot)
    assert store.names() == ["alice"]
    assert store.current_wallet == "alice"
    assert store.has_address_book is False


def test_put_address_entry_relabels_in_place() -> None:
    store = WalletStore()
    store.put_address_entry("a", AddressEntry.plain(ADDR_A))
    store.put_address_entry("b", AddressEntry.plain(ADDR_B))
    store.put_address_entry("c", AddressEntry.plain(ADDR_A), old_label="a")
    assert list(store.address_book) == ["c", "b"]
