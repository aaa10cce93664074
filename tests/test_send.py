import asyncio

import pytest

from ledgerflow.errors import NetworkError, ReceiptPending, TxFailed, UnauthorizedSubmission
from ledgerflow.tx import (await_receipt, await_receipt_async, bind, build, execute,
                           execute_draft, get_receipt, require_outcome, sign, submit)
from ledgerflow.types.receipt import ReceiptStatus
from ledgerflow.wallet.keys import PrivateKey


def _transfer(ctx, to, amount=100):
    return bind(build.native_transfer(ctx.operator_id, to, amount), ctx)


def test_execute_moves_funds(ctx, ledger, new_account):
    bob = new_account(0)
    before = ledger.balance(ctx.operator_id)
    receipt = execute(sign(_transfer(ctx, bob.id), ctx.operator_key), ctx)
    assert receipt.ok and receipt.status is ReceiptStatus.SUCCESS
    assert ledger.balance(bob.id) == 100
    assert ledger.balance(ctx.operator_id) == before - 100


def test_zero_signature_submission_never_reaches_the_network(ctx, ledger, new_account):
    bob = new_account(0)
    bound = _transfer(ctx, bob.id)
    before = ledger.balance(ctx.operator_id)

    with pytest.raises(UnauthorizedSubmission) as ei:
        submit(bound, ctx)
    assert ei.value.transaction_id == str(bound.transaction_id)
    assert ledger.balance(ctx.operator_id) == before
    assert get_receipt(bound.transaction_id, ctx).pending


def test_payer_signature_is_required(ctx, new_account):
    bob = new_account(0)
    with pytest.raises(UnauthorizedSubmission):
        submit(sign(_transfer(ctx, bob.id), PrivateKey.generate()), ctx)


def test_network_rejects_missing_signer_it_can_see(ctx, ledger):
    stranger_key = PrivateKey.generate()
    stranger = ledger.create_account(stranger_key, balance=50)
    bound = bind(build.native_transfer(stranger, ctx.operator_id, 10), ctx, payer=stranger,
                 require_local_key=False)
    receipt = execute(sign(bound, PrivateKey.generate()), ctx)
    assert receipt.failed and receipt.reason == "INVALID_SIGNATURE"
    assert ledger.balance(stranger) == 50


def test_timeout_yields_pending_then_resolves_later(ctx, ledger, new_account):
    bob = new_account(0)
    ledger.receipt_latency = 10_000
    signed = sign(_transfer(ctx, bob.id), ctx.operator_key)
    receipt = execute(signed, ctx, timeout=0.05)
    assert receipt.pending
    assert receipt.transaction_id == signed.transaction_id
    with pytest.raises(ReceiptPending) as ei:
        require_outcome(receipt)
    assert ei.value.transaction_id == str(signed.transaction_id)

    ledger.receipt_latency = 0
    assert await_receipt(signed.transaction_id, ctx).ok
    assert await_receipt(str(signed.transaction_id), ctx).ok


def test_transient_submit_failures_are_retried(ctx, ledger, new_account):
    bob = new_account(0)
    ledger.fail_next(2)
    receipt = execute(sign(_transfer(ctx, bob.id), ctx.operator_key), ctx)
    assert receipt.ok
    assert ledger.balance(bob.id) == 100


def test_retry_budget_exhaustion_raises_network_error(ctx, ledger, new_account):
    bob = new_account(0)
    ledger.fail_next(ctx.max_retries + 1)
    signed = sign(_transfer(ctx, bob.id), ctx.operator_key)
    with pytest.raises(NetworkError) as ei:
        submit(signed, ctx)
    assert ei.value.attempts == ctx.max_retries + 1
    assert ei.value.transaction_id == str(signed.transaction_id)
    assert ledger.balance(bob.id) == 0


def test_a_few_receipt_query_failures_count_as_no_answer(ctx, ledger, new_account):
    bob = new_account(0)
    pending = submit(sign(_transfer(ctx, bob.id), ctx.operator_key), ctx)
    ledger.fail_next(ctx.max_retries, method="get_receipt")
    assert await_receipt(pending, ctx).ok


def test_persistent_receipt_query_failures_raise_network_error(ctx, ledger, new_account):
    bob = new_account(0)
    pending = submit(sign(_transfer(ctx, bob.id), ctx.operator_key), ctx)
    ledger.fail_next(10_000, method="get_receipt")
    with pytest.raises(NetworkError) as ei:
        await_receipt(pending, ctx, timeout=5)
    assert ei.value.transaction_id == str(pending.transaction_id)
    assert ei.value.attempts == ctx.max_retries + 1


def test_persistent_receipt_query_failures_raise_network_error_async(ctx, ledger, new_account):
    bob = new_account(0)
    pending = submit(sign(_transfer(ctx, bob.id), ctx.operator_key), ctx)
    ledger.fail_next(10_000, method="get_receipt")
    with pytest.raises(NetworkError):
        asyncio.run(await_receipt_async(pending, ctx, timeout=5))


def test_lost_ack_then_duplicate_is_a_successful_hand_off(ctx, ledger, new_account):
    bob = new_account(0)
    real_submit = ledger.submit_transaction
    dropped = []

    def drop_first_ack(raw):
        ack = real_submit(raw)
        if not dropped:
            dropped.append(ack)
            raise NetworkError("connection reset before ack")
        return ack

    ledger.submit_transaction = drop_first_ack
    signed = sign(_transfer(ctx, bob.id, 7), ctx.operator_key)
    pending = submit(signed, ctx)
    assert pending.transaction_id == signed.transaction_id
    assert dropped
    assert await_receipt(pending, ctx).ok
    assert ledger.balance(bob.id) == 7


def test_failure_receipts_are_returned_not_raised(ctx, new_account):
    bob = new_account(10)
    bound = bind(build.native_transfer(bob.id, ctx.operator_id, 1_000), ctx, payer=bob.id)
    receipt = execute(sign(bound, bob.private_key), ctx)
    assert receipt.failed
    assert receipt.reason == "INSUFFICIENT_ACCOUNT_BALANCE"

    with pytest.raises(TxFailed) as ei:
        receipt.raise_for_status()
    assert ei.value.status == "INSUFFICIENT_ACCOUNT_BALANCE"
    assert ei.value.transaction_id == str(bound.transaction_id)


def test_duplicate_submission_is_rejected(ctx, new_account):
    bob = new_account(0)
    signed = sign(_transfer(ctx, bob.id), ctx.operator_key)
    submit(signed, ctx)
    with pytest.raises(TxFailed) as ei:
        submit(signed, ctx)
    assert ei.value.status == "DUPLICATE_TRANSACTION"


def test_expired_window_is_reported_by_the_network(ctx, clock, new_account):
    bob = new_account(0)
    signed = sign(_transfer(ctx, bob.id), ctx.operator_key)
    clock.advance(signed.bound.expires_at_ns / 1e9 - clock() + 1)
    receipt = execute(signed, ctx)
    assert receipt.failed and receipt.reason == "TRANSACTION_EXPIRED"


def test_execute_draft_signs_with_payer_and_extra_keys(ctx, ledger, new_account):
    alice, bob = new_account(100), new_account(0)
    draft = build.transfer([
        build.native(ctx.operator_id, -5),
        build.native(alice.id, -5),
        build.native(bob.id, 10),
    ])
    assert execute_draft(draft, ctx).reason == "INVALID_SIGNATURE"
    assert execute_draft(draft, ctx, keys=[alice.private_key]).ok
    assert ledger.balance(bob.id) == 10


def test_await_receipt_async(ctx, new_account):
    bob = new_account(0)
    pending = submit(sign(_transfer(ctx, bob.id), ctx.operator_key), ctx)
    receipt = asyncio.run(await_receipt_async(pending, ctx))
    assert receipt.ok


def test_async_wait_times_out_to_pending(ctx, ledger, new_account):
    bob = new_account(0)
    ledger.receipt_latency = 10_000
    pending = submit(sign(_transfer(ctx, bob.id), ctx.operator_key), ctx)
    receipt = asyncio.run(await_receipt_async(pending, ctx, timeout=0.05))
    assert receipt.pending


def test_cancelling_async_wait_leaves_transaction_submitted(ctx, ledger, new_account):
    bob = new_account(0)
    ledger.receipt_latency = 10_000
    pending = submit(sign(_transfer(ctx, bob.id), ctx.operator_key), ctx)

    async def main():
        task = asyncio.create_task(await_receipt_async(pending, ctx, timeout=30))
        await asyncio.sleep(0.02)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(main())
    ledger.receipt_latency = 0
    assert get_receipt(pending, ctx).ok
    assert ledger.balance(bob.id) == 100
