"""
Signature collection.

Every signer signs the same canonical body bytes (see `ledgerflow.tx.encode`).
Signatures are stored per public key and kept sorted, so

    sign(sign(bound, a), b) == sign(sign(bound, b), a)

and signing twice with the same key changes nothing (Ed25519 signatures are
deterministic). Each call returns a new `SignedTransaction`; inputs are never
modified.
"""

from __future__ import annotations

from typing import Iterable, List, Union

from ..errors import InvalidParameters
from ..utils.bytes import BytesLike
from ..wallet.keys import KeyLike, PublicKey, coerce_private_key
from .envelope import BoundTransaction, SignedTransaction

Signable = Union[BoundTransaction, SignedTransaction]

__all__ = ["Signable", "sign", "sign_all", "add_signature", "invalid_signers"]


def _with_signature(tx: Signable, public_key: bytes, signature: bytes) -> SignedTransaction:
    sigs = dict(tx.signatures)
    sigs[public_key] = signature
    return SignedTransaction(bound=tx.bound, signatures=tuple(sorted(sigs.items())))


def sign(tx: Signable, key: KeyLike) -> SignedTransaction:
    """Sign with one private key."""
    sk = coerce_private_key(key)
    return _with_signature(tx, sk.public_key.raw, sk.sign(tx.bound.body_bytes()))


def sign_all(tx: Signable, keys: Iterable[KeyLike]) -> SignedTransaction:
    out = tx if isinstance(tx, SignedTransaction) else SignedTransaction(bound=tx)
    for key in keys:
        out = sign(out, key)
    return out


def add_signature(tx: Signable, public_key: Union[PublicKey, BytesLike, str], signature: BytesLike) -> SignedTransaction:
    """
    Attach a signature produced elsewhere (hardware wallet, another party).
    The signature is verified against the body bytes before it is accepted.
    """
    try:
        pub = public_key if isinstance(public_key, PublicKey) else (
            PublicKey.from_string(public_key) if isinstance(public_key, str) else PublicKey.from_bytes(public_key)
        )
    except (TypeError, ValueError) as e:
        raise InvalidParameters(str(e), parameter="public_key") from e
    sig = bytes(signature)
    if not pub.verify(tx.bound.body_bytes(), sig):
        raise InvalidParameters(
            f"signature does not verify for {pub.to_string_raw()[:16]}... on tx {tx.bound.transaction_id}",
            parameter="signature",
        )
    return _with_signature(tx, pub.raw, sig)


def invalid_signers(tx: Signable) -> List[bytes]:
    """Public keys whose signature does not verify over the body bytes."""
    msg = tx.bound.body_bytes()
    bad: List[bytes] = []
    for pk, sig in tx.signatures:
        try:
            ok = PublicKey(pk).verify(msg, sig)
        except ValueError:
            ok = False
        if not ok:
            bad.append(pk)
    return bad
