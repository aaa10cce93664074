"""
Core ledger identifier and value types.

Entity ids (accounts, tokens, schedules, topics) are `shard.realm.num`
triples rendered as "0.0.123". Transaction ids are scoped to the paying
account and the start of the validity window:

    0.0.1001@1700000000.000000042
    0.0.1001@1700000000.000000042?scheduled

Nothing here performs network I/O; these are just types and converters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

Amount = int

_ENTITY_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")
_TXID_RE = re.compile(r"^(\d+\.\d+\.\d+)@(\d+)\.(\d{1,9})(\?scheduled)?$")


@dataclass(frozen=True, order=True)
class EntityId:
    shard: int
    realm: int
    num: int

    def __post_init__(self) -> None:
        for name in ("shard", "realm", "num"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")

    @classmethod
    def parse(cls, value: Union[str, "EntityId"]):
        if isinstance(value, EntityId):
            if type(value) is cls:
                return value
            return cls(value.shard, value.realm, value.num)
        if not isinstance(value, str):
            raise TypeError(f"cannot parse {type(value).__name__} as {cls.__name__}")
        m = _ENTITY_RE.match(value.strip())
        if m is None:
            raise ValueError(f"malformed {cls.__name__}: {value!r} (expected shard.realm.num)")
        return cls(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    @classmethod
    def of(cls, num: int, *, shard: int = 0, realm: int = 0):
        return cls(shard, realm, num)

    def __str__(self) -> str:
        return f"{self.shard}.{self.realm}.{self.num}"


class AccountId(EntityId):
    pass


class TokenId(EntityId):
    pass


class ScheduleId(EntityId):
    pass


class TopicId(EntityId):
    pass


AccountLike = Union[str, AccountId]
TokenLike = Union[str, TokenId]


@dataclass(frozen=True)
class TransactionId:
    """Unique transaction identifier: payer account + valid-start timestamp."""

    account_id: AccountId
    valid_start_seconds: int
    valid_start_nanos: int = 0
    scheduled: bool = False

    def __post_init__(self) -> None:
        if not 0 <= self.valid_start_nanos < 1_000_000_000:
            raise ValueError("valid_start_nanos must be in [0, 1e9)")
        if self.valid_start_seconds < 0:
            raise ValueError("valid_start_seconds must be non-negative")

    @classmethod
    def parse(cls, value: Union[str, "TransactionId"]) -> "TransactionId":
        if isinstance(value, TransactionId):
            return value
        m = _TXID_RE.match(str(value).strip())
        if m is None:
            raise ValueError(f"malformed TransactionId: {value!r}")
        nanos = m.group(3).ljust(9, "0")
        return cls(
            account_id=AccountId.parse(m.group(1)),
            valid_start_seconds=int(m.group(2)),
            valid_start_nanos=int(nanos),
            scheduled=m.group(4) is not None,
        )

    @property
    def valid_start_ns(self) -> int:
        return self.valid_start_seconds * 1_000_000_000 + self.valid_start_nanos

    def as_scheduled(self) -> "TransactionId":
        return TransactionId(
            self.account_id, self.valid_start_seconds, self.valid_start_nanos, scheduled=True
        )

    def __str__(self) -> str:
        suffix = "?scheduled" if self.scheduled else ""
        return (
            f"{self.account_id}@{self.valid_start_seconds}."
            f"{self.valid_start_nanos:09d}{suffix}"
        )


@dataclass(frozen=True)
class Balance:
    """Account balance as reported by the network."""

    account_id: AccountId
    native: Amount
    tokens: Mapping[TokenId, Amount] = field(default_factory=dict)

    def token(self, token_id: TokenLike) -> Amount:
        return int(self.tokens.get(TokenId.parse(token_id), 0))

    @classmethod
    def from_dict(cls, account_id: AccountLike, d: Mapping[str, Any]) -> "Balance":
        tokens: Dict[TokenId, Amount] = {
            TokenId.parse(k): int(v) for k, v in dict(d.get("tokens") or {}).items()
        }
        return cls(account_id=AccountId.parse(account_id), native=int(d.get("native", 0)), tokens=tokens)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accountId": str(self.account_id),
            "native": int(self.native),
            "tokens": {str(k): int(v) for k, v in self.tokens.items()},
        }


@dataclass(frozen=True)
class TopicMessage:
    """One consensus message as delivered to topic subscribers."""

    topic_id: TopicId
    sequence_number: int
    consensus_timestamp: float
    contents: bytes

    @property
    def text(self) -> str:
        return self.contents.decode("utf-8", errors="replace")

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "TopicMessage":
        return cls(
            topic_id=TopicId.parse(d["topicId"]),
            sequence_number=int(d["sequenceNumber"]),
            consensus_timestamp=float(d["consensusTimestamp"]),
            contents=bytes.fromhex(d["contents"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topicId": str(self.topic_id),
            "sequenceNumber": self.sequence_number,
            "consensusTimestamp": self.consensus_timestamp,
            "contents": self.contents.hex(),
        }


def optional_str(value: Optional[Any]) -> Optional[str]:
    return None if value is None else str(value)


__all__ = [
    "Amount",
    "EntityId",
    "AccountId",
    "TokenId",
    "ScheduleId",
    "TopicId",
    "AccountLike",
    "TokenLike",
    "TransactionId",
    "Balance",
    "TopicMessage",
    "optional_str",
]
