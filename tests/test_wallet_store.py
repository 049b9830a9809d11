import sqlite3

import pytest

from conftest import BSC_ADDRESS, SOLANA_ADDRESS, STRONG_PASSWORD
from errors import StorageError, ValidationError
from key_manager import KeyManager
from models import WalletRecord
from wallet_store import WalletStore


@pytest.fixture
def store():
    with WalletStore() as s:
        yield s


def _wallet(name="main", address=BSC_ADDRESS, network="BSC", encrypted_key="c2FsdA=="):
    return {"name": name, "address": address, "network": network, "encrypted_key": encrypted_key}


def test_insert_and_get(store):
    wallet_id = store.insert(_wallet())
    record = store.get_by_id(wallet_id)

    assert wallet_id.startswith("wallet_")
    assert record.name == "main"
    assert record.address == BSC_ADDRESS
    assert record.network == "BSC"
    assert record.created_at > 0
    assert store.get_by_address(BSC_ADDRESS) == record
    assert store.get_by_id("missing") is None


def test_encrypted_key_is_stored_verbatim(store):
    manager = KeyManager(STRONG_PASSWORD)
    result = manager.create_wallet("vault", "Solana")
    wallet_id = store.insert(result.to_record_input())

    record = store.get_by_id(wallet_id)
    assert record.encrypted_key == result.encrypted_key
    assert manager.verify_wallet(record)


def test_duplicate_address_rejected(store):
    store.insert(_wallet())
    with pytest.raises(StorageError) as excinfo:
        store.insert(_wallet(name="other"))
    assert excinfo.value.code == "WALLET_EXISTS"
    assert store.count() == 1


def test_wallet_limit():
    with WalletStore(max_wallets=2) as store:
        store.insert(_wallet(address=BSC_ADDRESS))
        store.insert(_wallet(address=SOLANA_ADDRESS, network="Solana"))
        assert store.remaining_capacity() == 0
        with pytest.raises(StorageError) as excinfo:
            store.insert(_wallet(address="0x" + "1" * 40))
        assert excinfo.value.code == "WALLET_LIMIT_REACHED"


@pytest.mark.parametrize(
    "wallet",
    [
        _wallet(name=""),
        _wallet(name="n" * 51),
        _wallet(network="Ethereum"),
        _wallet(encrypted_key=""),
        _wallet(address=""),
    ],
)
def test_insert_rejects_incomplete_records(store, wallet):
    with pytest.raises(ValidationError):
        store.insert(wallet)


def test_list_order_and_filter(store):
    first = store.insert(_wallet(name="a"))
    second = store.insert(_wallet(name="b", address=SOLANA_ADDRESS, network="Solana"))

    assert [r.id for r in store.list_all()] == [second, first]
    assert [r.id for r in store.list_by_network("Solana")] == [second]


def test_update_delete_clear(store):
    wallet_id = store.insert(_wallet())

    assert store.update_name(wallet_id, "renamed")
    assert store.get_by_id(wallet_id).name == "renamed"
    assert not store.update_name("missing", "x")

    assert store.delete(wallet_id)
    assert not store.delete(wallet_id)

    store.insert(_wallet())
    store.insert(_wallet(address=SOLANA_ADDRESS, network="Solana"))
    assert store.clear() == 2
    assert store.count() == 0


def test_persisted_layout(tmp_path):
    path = tmp_path / "data" / "wallets.db"
    with WalletStore(path) as store:
        wallet_id = store.insert(_wallet())

    conn = sqlite3.connect(str(path))
    try:
        columns = [row[1] for row in conn.execute("PRAGMA table_info(wallets)")]
        row = conn.execute("SELECT * FROM wallets").fetchone()
    finally:
        conn.close()

    assert columns == ["id", "name", "address", "network", "encrypted_key", "created_at"]
    assert row[0] == wallet_id
    assert row[4] == "c2FsdA=="
    assert isinstance(row[5], int)

    with WalletStore(path) as reopened:
        assert isinstance(reopened.get_by_id(wallet_id), WalletRecord)


def test_closed_store_raises():
    store = WalletStore()
    with pytest.raises(StorageError):
        store.count()
