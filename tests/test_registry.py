import json
import threading

import pytest

from ledgerflow.errors import RegistryError
from ledgerflow.wallet.keys import PrivateKey
from ledgerflow.wallet.registry import Account, AccountRegistry


def _account(num: int) -> Account:
    return Account.from_private_key(f"0.0.{num}", PrivateKey.from_seed(bytes([num % 256]) * 32))


def test_missing_file_is_an_empty_registry(tmp_path):
    reg = AccountRegistry.open(tmp_path / "accounts.json")
    assert len(reg) == 0
    assert reg.load_all() == []
    assert reg.get("0.0.1001") is None


def test_append_persists_and_reloads(tmp_path):
    path = tmp_path / "accounts.json"
    reg = AccountRegistry.open(path)
    acc = _account(1001)
    reg.append(acc)

    data = json.loads(path.read_text())
    assert data["accounts"][0]["id"] == "0.0.1001"
    assert data["accounts"][0]["publicKey"] == acc.public_key.to_string_raw()

    again = AccountRegistry.open(path)
    assert again.require("0.0.1001") == acc
    assert "0.0.1001" in again
    assert again.key_for("0.0.1001") == acc.private_key


def test_append_same_id_replaces_record(tmp_path):
    reg = AccountRegistry.open(tmp_path / "accounts.json")
    reg.append(_account(1001))
    replacement = Account.from_private_key("0.0.1001", PrivateKey.generate())
    reg.append(replacement)
    assert len(reg) == 1
    assert reg.get("0.0.1001") == replacement


def test_concurrent_appends_lose_nothing(tmp_path):
    path = tmp_path / "accounts.json"
    reg = AccountRegistry.open(path)
    threads = [threading.Thread(target=reg.append, args=(_account(2000 + i),)) for i in range(40)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(reg) == 40
    assert len(AccountRegistry.open(path).load_all()) == 40


def test_reads_see_a_consistent_snapshot():
    reg = AccountRegistry([_account(1001)])
    snapshot = reg.accounts()
    reg.append(_account(1002))
    assert len(snapshot) == 1
    assert len(reg.accounts()) == 2


def test_malformed_file_raises_registry_error(tmp_path):
    path = tmp_path / "accounts.json"
    path.write_text("{not json")
    with pytest.raises(RegistryError):
        AccountRegistry.open(path)

    path.write_text(json.dumps({"accounts": [{"id": "0.0.1", "privateKey": "abcd"}]}))
    with pytest.raises(RegistryError):
        AccountRegistry.open(path)


def test_public_key_mismatch_is_rejected(tmp_path):
    rec = _account(1001).to_record()
    rec["publicKey"] = _account(1002).public_key.to_string_raw()
    path = tmp_path / "accounts.json"
    path.write_text(json.dumps({"accounts": [rec]}))
    with pytest.raises(RegistryError):
        AccountRegistry.open(path)


def test_require_unknown_account():
    with pytest.raises(RegistryError):
        AccountRegistry().require("0.0.42")


def test_two_handles_on_one_file_keep_both_records(tmp_path):
    path = tmp_path / "accounts.json"
    first = AccountRegistry.open(path)
    second = AccountRegistry.open(path)
    first.append(_account(1001))
    second.append(_account(1002))

    ids = [rec["id"] for rec in json.loads(path.read_text())["accounts"]]
    assert sorted(ids) == ["0.0.1001", "0.0.1002"]
    assert "0.0.1001" in second
    assert len(AccountRegistry.open(path)) == 2


def test_concurrent_appends_through_separate_handles(tmp_path):
    path = tmp_path / "accounts.json"
    handles = [AccountRegistry.open(path) for _ in range(8)]
    threads = [
        threading.Thread(target=handles[i % 8].append, args=(_account(3000 + i),))
        for i in range(32)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(AccountRegistry.open(path)) == 32
