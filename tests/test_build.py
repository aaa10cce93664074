import pytest

from ledgerflow.errors import InvalidDraft, InvalidParameters
from ledgerflow.tx import build
from ledgerflow.tx.build import TxKind
from ledgerflow.types.core import AccountId, TokenId


def test_native_transfer_nets_to_zero():
    d = build.native_transfer("0.0.1001", "0.0.1002", 500)
    assert d.kind is TxKind.TRANSFER
    assert [i.amount for i in d.operations] == [-500, 500]
    assert d.debited_accounts() == (AccountId.parse("0.0.1001"),)


def test_unbalanced_transfer_is_rejected():
    with pytest.raises(InvalidDraft):
        build.transfer([("0.0.1001", -10), ("0.0.1002", 9)])


def test_balance_is_checked_per_asset():
    items = [
        build.native("0.0.1001", -10),
        build.token("0.0.2000", "0.0.1002", 10),
    ]
    with pytest.raises(InvalidDraft) as ei:
        build.transfer(items)
    assert ei.value.asset is not None


def test_multi_asset_transfer_is_accepted():
    d = build.transfer([
        build.native("0.0.1001", -10),
        build.native("0.0.1002", 10),
        build.token("0.0.2000", "0.0.1002", -3),
        build.token("0.0.2000", "0.0.1001", 3),
    ])
    assert len(d.operations) == 4


def test_approved_transfer_marks_owner_debit():
    d = build.approved_transfer("0.0.1001", "0.0.1003", 40, spender="0.0.1002")
    assert d.kind is TxKind.APPROVED_TRANSFER
    assert d.payer == AccountId.parse("0.0.1002")
    debit = [i for i in d.operations if i.is_debit][0]
    assert debit.approved and debit.account == AccountId.parse("0.0.1001")
    assert d.debited_accounts() == ()


def test_approved_credit_is_rejected():
    with pytest.raises(InvalidDraft):
        build.transfer([build.native("0.0.1001", -5), build.native("0.0.1002", 5, approved=True)])


def test_token_create_validates_supply():
    d = build.token_create(name="Demo", symbol="DMO", treasury="0.0.1001",
                           decimals=2, initial_supply=35_050, max_supply=50_000)
    assert d.body["supplyType"] == "FINITE"
    assert d.body["initialSupply"] == 35_050

    with pytest.raises(InvalidParameters):
        build.token_create(name="Demo", symbol="DMO", treasury="0.0.1001", initial_supply=-1)
    with pytest.raises(InvalidParameters):
        build.token_create(name="Demo", symbol="DMO", treasury="0.0.1001",
                           initial_supply=60_000, max_supply=50_000)
    with pytest.raises(InvalidParameters):
        build.token_create(name="", symbol="DMO", treasury="0.0.1001")
    with pytest.raises(InvalidParameters):
        build.token_create(name="Demo", symbol="DMO", treasury="0.0.1001", decimals=1.5)


def test_token_operations_reject_empty_ids():
    with pytest.raises(InvalidParameters):
        build.token_pause("")
    with pytest.raises(InvalidParameters):
        build.token_associate("0.0.1001", [])
    with pytest.raises(InvalidParameters):
        build.token_associate("0.0.1001", ["0.0.2000", "0.0.2000"])


def test_allowance_grant_owner_must_differ_from_spender():
    with pytest.raises(InvalidParameters):
        build.allowance_grant("0.0.1001", "0.0.1001", 10)
    g = build.allowance_grant("0.0.1001", "0.0.1002", 10, token_id="0.0.2000")
    assert g.token == TokenId.parse("0.0.2000")
    assert g.to_body()["amount"] == 10


def test_memo_length_is_bounded():
    with pytest.raises(InvalidParameters):
        build.native_transfer("0.0.1001", "0.0.1002", 1, memo="x" * (build.MAX_MEMO_BYTES + 1))


def test_topic_message_limits():
    d = build.topic_message_submit("0.0.3000", "hello")
    assert d.body["message"] == b"hello"
    with pytest.raises(InvalidParameters):
        build.topic_message_submit("0.0.3000", b"")
    with pytest.raises(InvalidParameters):
        build.topic_message_submit("0.0.3000", b"x" * (build.MAX_TOPIC_MESSAGE_BYTES + 1))


def test_schedule_create_requires_child_bytes():
    with pytest.raises(InvalidParameters):
        build.schedule_create(b"")
    with pytest.raises(InvalidParameters):
        build.schedule_create(b"\xa0", expiry_seconds=0)
