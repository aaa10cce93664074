import pytest

from ledgerflow import tokens
from ledgerflow.errors import BindingError, TxFailed
from ledgerflow.wallet.keys import PrivateKey
from ledgerflow.wallet.registry import Account


@pytest.fixture
def demo(ctx, new_account):
    treasury, bob, carol = new_account(20), new_account(20), new_account(20)
    tid = tokens.create_token(
        ctx,
        name="Demo Token",
        symbol="DMO",
        treasury=treasury.id,
        decimals=2,
        initial_supply=35_050,
        max_supply=50_000,
        supply_key=treasury.private_key,
        pause_key=treasury.private_key,
    )
    for holder in (bob, carol):
        tokens.associate(holder.id, [tid], ctx).raise_for_status()
    return tid, treasury, bob, carol


def test_distribution_leaves_treasury_with_the_rest(ctx, ledger, demo):
    tid, treasury, bob, carol = demo
    for holder in (bob, carol):
        assert tokens.transfer_tokens(tid, treasury.id, holder.id, 2_525, ctx, decimals=2).ok

    assert ledger.balance(treasury.id, tid) == 30_000
    assert ledger.balance(bob.id, tid) == 2_525
    assert ledger.balance(carol.id, tid) == 2_525
    info = ledger.token_info(tid)
    assert info["totalSupply"] == 35_050 and info["maxSupply"] == 50_000


def test_paused_token_rejects_transfers_until_unpaused(ctx, ledger, demo):
    tid, treasury, bob, _ = demo
    assert tokens.pause(tid, treasury.private_key, ctx).ok

    receipt = tokens.transfer_tokens(tid, treasury.id, bob.id, 100, ctx)
    assert receipt.failed and receipt.reason == "TOKEN_IS_PAUSED"
    assert ledger.balance(treasury.id, tid) == 35_050
    assert ledger.balance(bob.id, tid) == 0

    assert tokens.unpause(tid, treasury.private_key, ctx).ok
    assert tokens.transfer_tokens(tid, treasury.id, bob.id, 100, ctx).ok
    assert ledger.balance(bob.id, tid) == 100


def test_pause_needs_the_pause_key(ctx, demo):
    tid, *_ = demo
    receipt = tokens.pause(tid, PrivateKey.generate(), ctx)
    assert receipt.failed and receipt.reason == "INVALID_SIGNATURE"


def test_token_without_pause_key_cannot_be_paused(ctx, new_account):
    treasury = new_account(0)
    tid = tokens.create_token(ctx, name="Plain", symbol="PLN", treasury=treasury.id, initial_supply=10)
    receipt = tokens.pause(tid, treasury.private_key, ctx)
    assert receipt.reason == "TOKEN_HAS_NO_PAUSE_KEY"


def test_transfer_to_unassociated_account(ctx, demo, new_account):
    tid, treasury, *_ = demo
    dave = new_account(0)
    receipt = tokens.transfer_tokens(tid, treasury.id, dave.id, 1, ctx)
    assert receipt.reason == "TOKEN_NOT_ASSOCIATED_TO_ACCOUNT"


def test_decimals_mismatch(ctx, demo):
    tid, treasury, bob, _ = demo
    receipt = tokens.transfer_tokens(tid, treasury.id, bob.id, 1, ctx, decimals=8)
    assert receipt.reason == "UNEXPECTED_TOKEN_DECIMALS"


def test_insufficient_token_balance(ctx, demo):
    tid, _, bob, carol = demo
    receipt = tokens.transfer_tokens(tid, bob.id, carol.id, 1, ctx)
    assert receipt.reason == "INSUFFICIENT_TOKEN_BALANCE"


def test_double_association_fails(ctx, demo):
    tid, _, bob, _ = demo
    receipt = tokens.associate(bob.id, [tid], ctx)
    assert receipt.reason == "TOKEN_ALREADY_ASSOCIATED_TO_ACCOUNT"


def test_admin_key_must_sign_token_create(ctx, new_account):
    treasury = new_account(0)
    admin = PrivateKey.generate()
    tid = tokens.create_token(ctx, name="Adm", symbol="ADM", treasury=treasury.id, admin_key=admin)
    assert tid is not None


def test_treasury_needs_a_local_key(ctx):
    with pytest.raises(BindingError):
        tokens.create_token(ctx, name="X", symbol="X", treasury="0.0.777777")


def test_rejected_token_create_raises(ctx, ledger):
    stranger = ledger.create_account(PrivateKey.generate())
    key = PrivateKey.generate()
    # registry holds a key the ledger does not know for this account
    ctx.registry.append(Account.from_private_key(stranger, key))
    with pytest.raises(TxFailed) as ei:
        tokens.create_token(ctx, name="X", symbol="X", treasury=stranger)
    assert ei.value.status == "INVALID_SIGNATURE"
