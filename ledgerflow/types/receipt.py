"""
Receipt model.

Receipts are produced only by the network and are read-only to the client.
The wire shape (what `Network.get_receipt` returns) is a plain dict:

    {
      "transactionId": "0.0.1001@1700000000.000000001",
      "status": "SUCCESS" | "PENDING" | "UNKNOWN" | <failure code>,
      "accountId" | "tokenId" | "scheduleId" | "topicId": "0.0.N",   # optional
      "scheduledTransactionId": "...?scheduled",                    # optional
      "topicSequenceNumber": 3                                      # optional
    }

Any status other than SUCCESS / PENDING / UNKNOWN is a failure and the code is
kept verbatim as `reason`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ..errors import TxFailed
from .core import (AccountId, EntityId, ScheduleId, TokenId, TopicId,
                   TransactionId)

PENDING_CODES = frozenset({"PENDING", "UNKNOWN", "RECEIPT_NOT_FOUND"})

_DERIVED_KEYS = (
    ("accountId", AccountId),
    ("tokenId", TokenId),
    ("scheduleId", ScheduleId),
    ("topicId", TopicId),
)


class ReceiptStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILURE = "FAILURE"


@dataclass(frozen=True)
class Receipt:
    transaction_id: TransactionId
    status: ReceiptStatus
    reason: Optional[str] = None
    derived_id: Optional[EntityId] = None
    scheduled_transaction_id: Optional[TransactionId] = None
    topic_sequence_number: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status is ReceiptStatus.SUCCESS

    @property
    def pending(self) -> bool:
        return self.status is ReceiptStatus.PENDING

    @property
    def failed(self) -> bool:
        return self.status is ReceiptStatus.FAILURE

    @property
    def account_id(self) -> Optional[AccountId]:
        return self.derived_id if isinstance(self.derived_id, AccountId) else None

    @property
    def token_id(self) -> Optional[TokenId]:
        return self.derived_id if isinstance(self.derived_id, TokenId) else None

    @property
    def schedule_id(self) -> Optional[ScheduleId]:
        return self.derived_id if isinstance(self.derived_id, ScheduleId) else None

    @property
    def topic_id(self) -> Optional[TopicId]:
        return self.derived_id if isinstance(self.derived_id, TopicId) else None

    def raise_for_status(self) -> "Receipt":
        """Raise `TxFailed` for FAILURE receipts; returns self otherwise (PENDING included)."""
        if self.failed:
            raise TxFailed(status=self.reason or "UNKNOWN_FAILURE", transaction_id=str(self.transaction_id))
        return self

    @classmethod
    def pending_for(cls, transaction_id: TransactionId) -> "Receipt":
        return cls(transaction_id=transaction_id, status=ReceiptStatus.PENDING)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any], *, transaction_id: Optional[TransactionId] = None) -> "Receipt":
        raw_status = str(d.get("status") or "UNKNOWN").upper()
        if raw_status == "SUCCESS":
            status, reason = ReceiptStatus.SUCCESS, None
        elif raw_status in PENDING_CODES:
            status, reason = ReceiptStatus.PENDING, None
        else:
            status, reason = ReceiptStatus.FAILURE, raw_status

        txid = transaction_id
        if d.get("transactionId"):
            txid = TransactionId.parse(d["transactionId"])
        if txid is None:
            raise ValueError("receipt payload lacks transactionId")

        derived: Optional[EntityId] = None
        for key, typ in _DERIVED_KEYS:
            if d.get(key):
                derived = typ.parse(d[key])
                break

        sched = d.get("scheduledTransactionId")
        seq = d.get("topicSequenceNumber")
        return cls(
            transaction_id=txid,
            status=status,
            reason=reason,
            derived_id=derived,
            scheduled_transaction_id=TransactionId.parse(sched) if sched else None,
            topic_sequence_number=int(seq) if seq is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "transactionId": str(self.transaction_id),
            "status": self.reason if self.failed else self.status.value,
        }
        for key, typ in _DERIVED_KEYS:
            if type(self.derived_id) is typ:
                out[key] = str(self.derived_id)
        if self.scheduled_transaction_id is not None:
            out["scheduledTransactionId"] = str(self.scheduled_transaction_id)
        if self.topic_sequence_number is not None:
            out["topicSequenceNumber"] = self.topic_sequence_number
        return out


__all__ = ["Receipt", "ReceiptStatus", "PENDING_CODES"]
