import os
import stat

import pytest

from wallet import CorruptRecordError, PersistenceError, StoreGateway, WalletRecord, WalletStore

ADDR_A = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"
ADDR_B = "0x2B5AD5c4795c026514f8317c7a215E218DcCD6cF"


def record(address: str) -> WalletRecord:
    return WalletRecord(address=address, encrypted_private_key="ab" * 48, iv="cd" * 16)


def test_missing_file_loads_empty(gateway) -> None:
    store = gateway.load()
    assert store.is_empty()
    assert store.current_wallet is None
    assert not gateway.exists()


def test_save_then_load(gateway) -> None:
    store = WalletStore()
    store.add_wallet("alice", record(ADDR_A))
    store.set_current("alice")
    gateway.save(store)

    loaded = gateway.load()
    assert loaded.to_dict() == store.to_dict()


@pytest.mark.skipif(os.name != "posix", reason="Unix permissions only")
def test_saved_file_is_owner_only(gateway, store_path) -> None:
    gateway.save(WalletStore())
    assert stat.S_IMODE(store_path.stat().st_mode) == 0o600


def test_crash_before_rename_leaves_file_untouched(gateway, store_path, monkeypatch) -> None:
    store = WalletStore()
    store.add_wallet("alice", record(ADDR_A))
    gateway.save(store)
    before = store_path.read_bytes()

    def crash(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(os, "replace", crash)
    store.add_wallet("bob", record(ADDR_B))
    with pytest.raises(PersistenceError):
        gateway.save(store)

    assert store_path.read_bytes() == before
    assert [p.name for p in store_path.parent.iterdir()] == [store_path.name]


def test_transaction_rolls_back_on_error(gateway, store_path) -> None:
    store = WalletStore()
    store.add_wallet("alice", record(ADDR_A))
    gateway.save(store)
    before = store_path.read_bytes()

    with pytest.raises(RuntimeError):
        with gateway.transaction(store):
            store.add_wallet("bob", record(ADDR_B))
            store.set_current("bob")
            raise RuntimeError("boom")

    assert store.names() == ["alice"]
    assert store.current_wallet is None
    assert store_path.read_bytes() == before


def test_transaction_rolls_back_when_save_fails(gateway, monkeypatch) -> None:
    store = WalletStore()

    def fail(_store):
        raise PersistenceError("disk full")

    monkeypatch.setattr(gateway, "save", fail)
    with pytest.raises(PersistenceError):
        with gateway.transaction(store):
            store.add_wallet("alice", record(ADDR_A))

    assert store.is_empty()


def test_transaction_saves_once_on_success(gateway) -> None:
    store = WalletStore()
    with gateway.transaction(store):
        store.add_wallet("alice", record(ADDR_A))
        store.set_current("alice")
    assert StoreGateway(gateway.filepath).load().current_wallet == "alice"


def test_invalid_json_is_corrupt(gateway, store_path) -> None:
    store_path.write_text("{not json", encoding="utf-8")
    with pytest.raises(CorruptRecordError):
        gateway.load()
