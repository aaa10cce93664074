import pytest

from ledgerflow import accounts
from ledgerflow.context import NetworkContext
from ledgerflow.errors import BindingError, IncompleteReceipt, ReceiptPending, RpcError
from ledgerflow.network.memory import InMemoryLedger
from ledgerflow.wallet.keys import PrivateKey


def test_create_account_registers_key(ctx, ledger):
    before = ledger.balance(ctx.operator_id)
    acct = accounts.create_account(ctx)
    assert acct.id in ctx.registry
    assert ctx.key_for(acct.id) == acct.private_key
    assert ledger.balance(acct.id) == accounts.DEFAULT_INITIAL_BALANCE
    assert ledger.balance(ctx.operator_id) == before - accounts.DEFAULT_INITIAL_BALANCE


def test_create_account_with_given_key(ctx, seed_key):
    key = seed_key(9)
    acct = accounts.create_account(ctx, 5, key=key)
    assert acct.public_key == key.public_key


def test_created_accounts_persist_to_registry_file(ctx, tmp_path):
    from ledgerflow.wallet.registry import AccountRegistry

    path = tmp_path / "accounts.json"
    file_ctx = ctx.with_overrides(registry=AccountRegistry.open(path))
    created = accounts.create_accounts(file_ctx, 3)
    reloaded = AccountRegistry.open(path)
    assert [a.id for a in reloaded] == [a.id for a in created]


def test_funding_five_accounts_costs_exactly_their_sum(ctx, ledger):
    targets = [a.id for a in accounts.create_accounts(ctx, 5, 0)]
    before = ledger.balance(ctx.operator_id)

    receipts = accounts.fund_accounts(ctx, targets, 500)
    assert len(receipts) == 5 and all(r.ok for r in receipts)
    assert len({r.transaction_id for r in receipts}) == 5
    assert ledger.balance(ctx.operator_id) == before - 2_500
    assert all(ledger.balance(t) == 500 for t in targets)


def test_funding_from_another_sender(ctx, ledger, new_account):
    alice = new_account(1_000)
    bob = new_account(0)
    receipts = accounts.fund_accounts(ctx, [bob.id], 300, sender=alice.id)
    assert receipts[0].ok
    assert receipts[0].transaction_id.account_id == alice.id
    assert ledger.balance(alice.id) == 700


def test_fee_is_charged_per_transaction(clock):
    ledger = InMemoryLedger(clock=clock, fee=3)
    op_id, op_key = ledger.bootstrap_operator(balance=10_000)
    ctx = NetworkContext(network=ledger, operator_id=op_id, operator_key=op_key, clock=clock,
                         poll_interval=0.001, backoff_base=0.0)
    targets = [ledger.create_account(PrivateKey.generate()) for _ in range(2)]
    accounts.fund_accounts(ctx, targets, 100)
    assert ledger.balance(op_id) == 10_000 - 200 - 2 * 3


def test_funding_needs_a_sender(ledger):
    ctx = NetworkContext(network=ledger)
    with pytest.raises(BindingError):
        accounts.fund_accounts(ctx, ["0.0.5"], 1)


def test_get_balance(ctx, new_account):
    acct = new_account(1_234)
    bal = accounts.get_balance(acct.id, ctx)
    assert bal.account_id == acct.id
    assert bal.native == 1_234
    assert bal.tokens == {}


def test_get_balance_unknown_account(ctx):
    with pytest.raises(RpcError):
        accounts.get_balance("0.0.999999", ctx)


def test_get_balance_retries_transient_failures(ctx, ledger, new_account):
    acct = new_account(7)
    ledger.fail_next(2, method="get_account_balance")
    assert accounts.get_balance(acct.id, ctx).native == 7


def test_pending_create_raises_receipt_pending(ctx, ledger):
    ledger.receipt_latency = 10_000
    with pytest.raises(ReceiptPending):
        accounts.create_account(ctx.with_overrides(receipt_timeout=0.02))


def test_success_receipt_without_account_id(ctx, ledger):
    real_get_receipt = ledger.get_receipt

    def without_account_id(transaction_id):
        rec = dict(real_get_receipt(transaction_id))
        rec.pop("accountId", None)
        return rec

    ledger.get_receipt = without_account_id
    registered = len(ctx.registry)
    with pytest.raises(IncompleteReceipt) as ei:
        accounts.create_account(ctx, 10)
    assert ei.value.field == "accountId"
    assert ei.value.transaction_id is not None
    assert len(ctx.registry) == registered
