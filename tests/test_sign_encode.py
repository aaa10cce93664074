import cbor2
import pytest

from ledgerflow.errors import InvalidParameters
from ledgerflow.tx import bind, build, deserialize, serialize, sign, sign_all, tx_hash
from ledgerflow.tx.encode import EncodingError
from ledgerflow.tx.sign import add_signature, invalid_signers
from ledgerflow.utils.cbor import dumps, loads


@pytest.fixture
def bound(ctx):
    draft = build.transfer([
        build.native(ctx.operator_id, -30),
        build.native("0.0.5001", 10),
        build.token("0.0.6001", "0.0.5001", -4, decimals=2),
        build.token("0.0.6001", "0.0.5002", 4, decimals=2),
        build.native("0.0.5002", 20),
    ], memo="round trip")
    return bind(draft, ctx)


def test_signing_order_does_not_matter(bound, seed_key):
    a, b = seed_key(1), seed_key(2)
    ab = sign(sign(bound, a), b)
    ba = sign(sign(bound, b), a)
    assert ab == ba
    assert serialize(ab) == serialize(ba)


def test_signing_twice_is_idempotent(bound, seed_key):
    a = seed_key(1)
    once = sign(bound, a)
    assert sign(once, a) == once
    assert len(once.signatures) == 1


def test_signing_returns_new_values(bound, seed_key):
    signed = sign(bound, seed_key(1))
    assert bound.signatures == ()
    assert sign(signed, seed_key(2)) is not signed
    assert len(signed.signatures) == 1


def test_round_trip_restores_every_field(bound, seed_key):
    signed = sign_all(bound, [seed_key(1), seed_key(2), seed_key(3)])
    raw = serialize(signed)
    restored = deserialize(raw)

    assert restored == signed
    assert restored.transaction_id == bound.transaction_id
    assert restored.bound.node_account_ids == bound.node_account_ids
    assert restored.bound.max_fee == bound.max_fee
    assert restored.bound.valid_duration == bound.valid_duration
    assert restored.bound.memo == "round trip"
    assert restored.operations == bound.operations
    assert serialize(restored) == raw
    assert tx_hash(restored) == tx_hash(signed)


def test_zero_signature_transaction_serializes(bound):
    raw = serialize(bound)
    restored = deserialize(raw)
    assert restored.signatures == ()
    assert restored.bound == bound


def test_schedule_body_with_child_bytes_round_trips(ctx, bound):
    child = serialize(bound)
    outer = bind(build.schedule_create(child, schedule_memo="m"), ctx)
    restored = deserialize(serialize(outer))
    assert restored.bound.body["child"] == child
    assert deserialize(restored.bound.body["child"]).bound == bound


def test_garbage_and_non_canonical_bytes_are_rejected(bound):
    with pytest.raises(EncodingError):
        deserialize(b"\xff\x00garbage")
    with pytest.raises(EncodingError):
        deserialize(dumps({"v": 99, "body": b"", "sigs": {}}))

    env = loads(serialize(bound))
    body = loads(env["body"])
    reordered = cbor2.dumps(dict(reversed(list(body.items()))))
    assert loads(reordered) == body
    with pytest.raises(EncodingError):
        deserialize(dumps({"v": 1, "body": reordered, "sigs": {}}))


def test_external_signature_is_verified(bound, seed_key):
    key = seed_key(7)
    sig = key.sign(bound.body_bytes())
    signed = add_signature(bound, key.public_key, sig)
    assert signed == sign(bound, key)

    with pytest.raises(InvalidParameters):
        add_signature(bound, key.public_key, b"\x00" * 64)
    with pytest.raises(InvalidParameters):
        add_signature(bound, "zz", sig)


def test_invalid_signers_reports_bad_pairs(bound, seed_key):
    from ledgerflow.tx.envelope import SignedTransaction

    good = sign(bound, seed_key(1))
    pk = seed_key(2).public_key.raw
    forged = SignedTransaction(bound=bound, signatures=tuple(sorted(good.signatures + ((pk, b"\x01" * 64),))))
    assert invalid_signers(good) == []
    assert invalid_signers(forged) == [pk]
