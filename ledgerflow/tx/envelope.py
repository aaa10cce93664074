"""
Immutable pipeline stage values: `BoundTransaction` and `SignedTransaction`.

    TransactionDraft --bind--> BoundTransaction --sign--> SignedTransaction

A bound transaction freezes the draft together with its network parameters
(transaction id, validity window, fee ceiling, target nodes). Nothing on it
can change afterwards; signing only ever produces a new `SignedTransaction`
whose signature set is keyed by raw public key and kept sorted, so the order
in which parties sign is irrelevant.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from ..types.core import AccountId, Amount, TransactionId
from .build import LineItem, TransactionDraft, TxKind

SignaturePair = Tuple[bytes, bytes]


@dataclass(frozen=True)
class BoundTransaction:
    draft: TransactionDraft
    transaction_id: TransactionId
    valid_duration: int
    max_fee: Amount
    node_account_ids: Tuple[AccountId, ...]

    @property
    def kind(self) -> TxKind:
        return self.draft.kind

    @property
    def operations(self) -> Tuple[LineItem, ...]:
        return self.draft.operations

    @property
    def payer(self) -> AccountId:
        return self.transaction_id.account_id

    @property
    def memo(self) -> Optional[str]:
        return self.draft.memo

    @property
    def body(self) -> Mapping[str, Any]:
        return self.draft.body

    @property
    def valid_start_ns(self) -> int:
        return self.transaction_id.valid_start_ns

    @property
    def expires_at_ns(self) -> int:
        return self.valid_start_ns + self.valid_duration * 1_000_000_000

    def body_bytes(self) -> bytes:
        """Canonical bytes every signer signs."""
        from .encode import body_bytes

        return body_bytes(self)

    # A bound transaction is already a (zero-signature) signed transaction.
    @property
    def bound(self) -> "BoundTransaction":
        return self

    @property
    def signatures(self) -> Tuple[SignaturePair, ...]:
        return ()


@dataclass(frozen=True)
class SignedTransaction:
    bound: BoundTransaction
    signatures: Tuple[SignaturePair, ...] = ()

    def __post_init__(self) -> None:
        keys = [pk for pk, _ in self.signatures]
        if keys != sorted(set(keys)):
            raise ValueError("signatures must be unique per public key and sorted")

    @property
    def transaction_id(self) -> TransactionId:
        return self.bound.transaction_id

    @property
    def kind(self) -> TxKind:
        return self.bound.kind

    @property
    def payer(self) -> AccountId:
        return self.bound.payer

    @property
    def operations(self) -> Tuple[LineItem, ...]:
        return self.bound.operations

    @property
    def signers(self) -> Tuple[bytes, ...]:
        """Raw public keys that have signed, sorted."""
        return tuple(pk for pk, _ in self.signatures)

    def signature_map(self) -> Dict[bytes, bytes]:
        return dict(self.signatures)

    def is_signed_by(self, public_key: bytes) -> bool:
        return any(pk == public_key for pk, _ in self.signatures)

    def body_bytes(self) -> bytes:
        return self.bound.body_bytes()

    def serialize(self) -> bytes:
        from .encode import serialize

        return serialize(self)

    @classmethod
    def deserialize(cls, data: bytes) -> "SignedTransaction":
        from .encode import deserialize

        return deserialize(data)


__all__ = ["BoundTransaction", "SignedTransaction", "SignaturePair"]
