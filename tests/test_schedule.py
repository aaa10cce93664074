import pytest

from ledgerflow import schedule
from ledgerflow.errors import ScheduleExpired, TxFailed
from ledgerflow.schedule import ScheduleState
from ledgerflow.tx import await_receipt, build, deserialize, serialize, sign
from ledgerflow.wallet.keys import PrivateKey


@pytest.fixture
def parties(new_account):
    return new_account(100), new_account(100), new_account(0)


def _child(ctx, a, b, c, amount=5):
    draft = build.transfer([
        build.native(a.id, -amount),
        build.native(b.id, -amount),
        build.native(c.id, 2 * amount),
    ])
    return schedule.bind_child(draft, ctx)


@pytest.mark.parametrize("order", [(0, 1), (1, 0)])
def test_child_executes_once_all_signers_have_signed(ctx, ledger, parties, order):
    a, b, c = parties
    sched = schedule.create_schedule(_child(ctx, a, b, c), ctx, memo="pay c")
    assert sched.state is ScheduleState.CREATED
    assert sched.memo == "pay c"
    assert sched.scheduled_transaction_id.scheduled

    first, second = (parties[i] for i in order)
    assert schedule.add_signature(sched.schedule_id, first.private_key, ctx).ok
    assert schedule.get_schedule(sched.schedule_id, ctx).state is ScheduleState.CREATED
    assert ledger.balance(c.id) == 0

    assert schedule.add_signature(sched.schedule_id, second.private_key, ctx).ok
    final = schedule.get_schedule(sched.schedule_id, ctx)
    assert final.executed
    assert ledger.balance(c.id) == 10
    assert ledger.balance(a.id) == 95 and ledger.balance(b.id) == 95
    assert await_receipt(sched.scheduled_transaction_id, ctx).ok


def test_signatures_embedded_in_child_count(ctx, ledger, parties):
    a, b, c = parties
    child = sign(_child(ctx, a, b, c), a.private_key)
    sched = schedule.create_schedule(child, ctx, signers=[b.private_key])
    assert sched.executed
    assert ledger.balance(c.id) == 10


def test_schedule_info_carries_the_child(ctx, parties):
    a, b, c = parties
    child = _child(ctx, a, b, c)
    sched = schedule.create_schedule(child, ctx)
    assert sched.child is not None
    assert sched.child.bound == child
    assert sched.expires_at is not None


def test_signing_after_expiry_raises(ctx, clock, ledger, parties):
    a, b, c = parties
    sched = schedule.create_schedule(_child(ctx, a, b, c), ctx, expiry_seconds=60)
    schedule.add_signature(sched.schedule_id, a.private_key, ctx)
    clock.advance(61)

    with pytest.raises(ScheduleExpired) as ei:
        schedule.add_signature(sched.schedule_id, b.private_key, ctx)
    assert ei.value.status == "SCHEDULE_EXPIRED"
    assert ei.value.schedule_id == str(sched.schedule_id)
    assert schedule.get_schedule(sched.schedule_id, ctx).state is ScheduleState.EXPIRED
    assert ledger.balance(c.id) == 0


def test_admin_can_delete(ctx, parties):
    a, b, c = parties
    admin = PrivateKey.generate()
    sched = schedule.create_schedule(_child(ctx, a, b, c), ctx, admin_key=admin)
    assert schedule.delete_schedule(sched.schedule_id, admin, ctx).ok
    assert schedule.get_schedule(sched.schedule_id, ctx).state is ScheduleState.DELETED

    late = schedule.add_signature(sched.schedule_id, a.private_key, ctx)
    assert late.failed and late.reason == "SCHEDULE_ALREADY_DELETED"


def test_schedule_without_admin_key_is_immutable(ctx, parties):
    a, b, c = parties
    sched = schedule.create_schedule(_child(ctx, a, b, c), ctx)
    receipt = schedule.delete_schedule(sched.schedule_id, PrivateKey.generate(), ctx)
    assert receipt.failed and receipt.reason == "SCHEDULE_IS_IMMUTABLE"


def test_identical_schedule_is_rejected(ctx, parties):
    a, b, c = parties
    child = _child(ctx, a, b, c)
    schedule.create_schedule(child, ctx)
    with pytest.raises(TxFailed) as ei:
        schedule.create_schedule(child, ctx)
    assert ei.value.status == "IDENTICAL_SCHEDULE_ALREADY_CREATED"


def test_signing_an_executed_schedule_fails(ctx, parties):
    a, b, c = parties
    sched = schedule.create_schedule(_child(ctx, a, b, c), ctx, signers=[a.private_key, b.private_key])
    assert sched.executed
    receipt = schedule.add_signature(sched.schedule_id, a.private_key, ctx)
    assert receipt.reason == "SCHEDULE_ALREADY_EXECUTED"


def test_out_of_band_schedule_create(ctx, ledger, parties):
    a, b, c = parties
    bound = schedule.prepare_schedule(_child(ctx, a, b, c), ctx)

    # bytes travel to each party, who sign and hand them back
    raw = serialize(bound)
    raw = serialize(sign(deserialize(raw), ctx.operator_key))
    raw = serialize(sign(deserialize(raw), a.private_key))
    raw = serialize(sign(deserialize(raw), b.private_key))

    sched = schedule.submit_schedule(deserialize(raw), ctx)
    assert sched.executed
    assert ledger.balance(c.id) == 10
