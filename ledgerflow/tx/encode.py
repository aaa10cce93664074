"""
ledgerflow.tx.encode
====================

Deterministic CBOR encoding for bound and signed transactions.

This module provides:
- `body_dict(bound)`   → canonical, signable dictionary view of a bound tx
- `body_bytes(bound)`  → bytes to sign (canonical CBOR of the body)
- `serialize(signed)`  → transportable envelope bytes
- `deserialize(raw)`   → `SignedTransaction` (every field restored)
- `tx_hash(signed)`    → SHA-384 of the serialized envelope

Design notes
------------
* Canonical CBOR (`ledgerflow.utils.cbor`) sorts map keys deterministically,
  so two parties holding the same logical transaction produce the same bytes.
* The envelope carries the body as *bytes* next to the signature map:

    {
      "v":    1,
      "body": <bytes: canonical CBOR body>,
      "sigs": { <pubkey 32B>: <signature 64B>, ... }
    }

  Signatures are over exactly `body`, so a receiver can verify without
  re-encoding. On decode we re-encode the parsed body and require equality,
  which guarantees byte-identical re-serialization.
* Body schema (`kind`-independent part):

    {
      "kind": "Transfer", "transactionId": "0.0.5@17...",
      "nodeAccountIds": ["0.0.3"], "maxFee": 100000000, "validDuration": 120,
      "memo": null,
      "transfers": [{"account": "0.0.5", "amount": -10, "token": null,
                     "approved": false, "decimals": null}, ...],
      "params": { ... kind-specific, see ledgerflow.tx.build ... }
    }
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from ..types.core import AccountId, TokenId, TransactionId
from ..utils.cbor import CBORDecodeError, dumps, loads
from ..utils.hash import sha384_hex
from .build import LineItem, TransactionDraft, TxKind
from .envelope import BoundTransaction, SignedTransaction

ENVELOPE_VERSION = 1

__all__ = [
    "ENVELOPE_VERSION",
    "body_dict",
    "body_bytes",
    "serialize",
    "deserialize",
    "bound_from_body",
    "tx_hash",
    "EncodingError",
]


class EncodingError(ValueError):
    """Raised for malformed or non-canonical transaction bytes."""


# -----------------------------------------------------------------------------
# Body
# -----------------------------------------------------------------------------


def _line_item_dict(item: LineItem) -> Dict[str, Any]:
    return {
        "account": str(item.account),
        "amount": int(item.amount),
        "token": None if item.token is None else str(item.token),
        "approved": bool(item.approved),
        "decimals": item.decimals,
    }


def _line_item_from(d: Mapping[str, Any]) -> LineItem:
    return LineItem(
        account=AccountId.parse(d["account"]),
        amount=int(d["amount"]),
        token=None if d.get("token") is None else TokenId.parse(d["token"]),
        approved=bool(d.get("approved", False)),
        decimals=d.get("decimals"),
    )


def body_dict(bound: BoundTransaction) -> Dict[str, Any]:
    return {
        "kind": bound.kind.value,
        "transactionId": str(bound.transaction_id),
        "nodeAccountIds": [str(n) for n in bound.node_account_ids],
        "maxFee": int(bound.max_fee),
        "validDuration": int(bound.valid_duration),
        "memo": bound.memo,
        "transfers": [_line_item_dict(i) for i in bound.operations],
        "params": dict(bound.body),
    }


def body_bytes(bound: BoundTransaction) -> bytes:
    return dumps(body_dict(bound))


def bound_from_body(d: Mapping[str, Any]) -> BoundTransaction:
    txid = TransactionId.parse(d["transactionId"])
    draft = TransactionDraft(
        kind=TxKind(d["kind"]),
        operations=tuple(_line_item_from(x) for x in d.get("transfers") or []),
        payer=txid.account_id,
        memo=d.get("memo"),
        body=dict(d.get("params") or {}),
    )
    return BoundTransaction(
        draft=draft,
        transaction_id=txid,
        valid_duration=int(d["validDuration"]),
        max_fee=int(d["maxFee"]),
        node_account_ids=tuple(AccountId.parse(n) for n in d.get("nodeAccountIds") or []),
    )


# -----------------------------------------------------------------------------
# Envelope
# -----------------------------------------------------------------------------


def serialize(signed: SignedTransaction | BoundTransaction) -> bytes:
    """Serialize a (possibly zero-signature) transaction to envelope bytes."""
    return dumps(
        {
            "v": ENVELOPE_VERSION,
            "body": body_bytes(signed.bound),
            "sigs": {pk: sig for pk, sig in signed.signatures},
        }
    )


def deserialize(raw: bytes) -> SignedTransaction:
    try:
        env = loads(raw)
    except CBORDecodeError as e:
        raise EncodingError(f"envelope is not valid CBOR: {e}") from e
    if not isinstance(env, dict) or env.get("v") != ENVELOPE_VERSION:
        raise EncodingError(f"unsupported envelope (version={env.get('v') if isinstance(env, dict) else None!r})")

    body_raw = env.get("body")
    sigs = env.get("sigs") or {}
    if not isinstance(body_raw, bytes) or not isinstance(sigs, dict):
        raise EncodingError("envelope must carry body bytes and a signature map")

    try:
        body = loads(body_raw)
        bound = bound_from_body(body)
    except (CBORDecodeError, KeyError, TypeError, ValueError) as e:
        raise EncodingError(f"malformed transaction body: {e}") from e
    if body_bytes(bound) != body_raw:
        raise EncodingError("transaction body is not canonically encoded")

    pairs: List[tuple[bytes, bytes]] = []
    for pk, sig in sigs.items():
        if not isinstance(pk, bytes) or not isinstance(sig, bytes):
            raise EncodingError("signature map entries must be bytes")
        pairs.append((pk, sig))
    return SignedTransaction(bound=bound, signatures=tuple(sorted(pairs)))


def tx_hash(signed: SignedTransaction | BoundTransaction) -> str:
    return sha384_hex(serialize(signed))
