"""
In-process simulated ledger.

`InMemoryLedger` implements the `Network` protocol against plain Python state
so flows can run end to end without a node: tests, the CLI `memory` network
and local experiments.

What it models
--------------
- accounts with Ed25519 keys and native balances
- fungible tokens: treasury, decimals, finite/infinite supply, pause key,
  per-account associations
- allowances (owner → spender, native or per token) consumed by approved debits
- schedules: the child's required signers must all have signed (through the
  schedule-create transaction, signatures embedded in the child, or later
  ScheduleSign transactions); the child then executes with a receipt under
  the scheduled transaction id. Expiry is evaluated against the ledger clock.
- topics with sequence numbers, consensus timestamps and live subscriptions
- signature verification, required-signer checks, duplicate and expired
  transaction ids

Failure codes are the usual ledger status strings (INVALID_SIGNATURE,
TOKEN_IS_PAUSED, AMOUNT_EXCEEDS_ALLOWANCE, SCHEDULE_EXPIRED, ...) and end up
verbatim in receipts.

Test hooks
----------
- `clock`: any zero-arg callable returning seconds; `ManualClock` can be
  advanced by hand.
- `receipt_latency`: number of receipt polls answered PENDING before the
  outcome is revealed.
- `fail_next(n, method)`: the next `n` calls to `method` raise `NetworkError`.
- `fee`: flat native fee charged to the payer of every signed transaction.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import (Any, Callable, Dict, Iterable, List, Optional, Set,
                    Tuple, Union)

from ..errors import (JsonRpcCode, NetworkError, RpcError, TxFailed,
                      UnauthorizedSubmission)
from ..tx.build import TxKind
from ..tx.encode import deserialize
from ..tx.envelope import BoundTransaction, SignedTransaction
from ..tx.sign import invalid_signers
from ..types.core import (AccountId, AccountLike, ScheduleId, TokenId,
                          TokenLike, TopicId, TopicMessage, TransactionId)
from ..wallet.keys import PrivateKey, PublicKey, coerce_public_key
from .base import OnMessage, Subscription

log = logging.getLogger(__name__)

DEFAULT_SCHEDULE_EXPIRY = 1800
DEFAULT_OPERATOR_BALANCE = 1_000_000_000_000

__all__ = ["InMemoryLedger", "ManualClock", "DEFAULT_SCHEDULE_EXPIRY"]


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: Optional[float] = None) -> None:
        self._now = time.time() if start is None else float(start)
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> float:
        with self._lock:
            self._now += float(seconds)
            return self._now


class _Rejected(Exception):
    def __init__(self, status: str) -> None:
        super().__init__(status)
        self.status = status


@dataclass
class _Account:
    id: AccountId
    key: bytes
    native: int = 0
    tokens: Dict[TokenId, int] = field(default_factory=dict)


@dataclass
class _Token:
    id: TokenId
    name: str
    symbol: str
    decimals: int
    treasury: AccountId
    total_supply: int
    max_supply: Optional[int]
    supply_key: Optional[bytes]
    pause_key: Optional[bytes]
    admin_key: Optional[bytes]
    paused: bool = False


@dataclass
class _Schedule:
    id: ScheduleId
    child: SignedTransaction
    scheduled_id: TransactionId
    expires_at: float
    admin_key: Optional[bytes]
    memo: Optional[str]
    signatories: Set[bytes] = field(default_factory=set)
    state: str = "CREATED"


@dataclass
class _Topic:
    id: TopicId
    memo: Optional[str]
    admin_key: Optional[bytes]
    submit_key: Optional[bytes]
    messages: List[TopicMessage] = field(default_factory=list)


def _key_bytes(hex_key: Optional[str]) -> Optional[bytes]:
    return None if hex_key is None else PublicKey.from_string(hex_key).raw


class InMemoryLedger:
    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        receipt_latency: int = 0,
        fee: int = 0,
        node_ids: Iterable[str] = ("0.0.3",),
        first_entity_num: int = 1001,
    ) -> None:
        self._lock = threading.RLock()
        self.clock = clock
        self.receipt_latency = receipt_latency
        self.fee = fee
        self.node_ids: Tuple[AccountId, ...] = tuple(AccountId.parse(n) for n in node_ids)
        self._next_num = first_entity_num

        self._accounts: Dict[AccountId, _Account] = {}
        self._tokens: Dict[TokenId, _Token] = {}
        self._allowances: Dict[Tuple[AccountId, AccountId, Optional[TokenId]], int] = {}
        self._schedules: Dict[ScheduleId, _Schedule] = {}
        self._topics: Dict[TopicId, _Topic] = {}
        self._receipts: Dict[str, Dict[str, Any]] = {}
        self._polls: Dict[str, int] = defaultdict(int)
        self._faults: Dict[str, int] = defaultdict(int)
        self._subscribers: Dict[TopicId, List[Tuple[Subscription, OnMessage]]] = defaultdict(list)

    def __repr__(self) -> str:
        return f"InMemoryLedger(accounts={len(self._accounts)}, tokens={len(self._tokens)})"

    # ------------------------------------------------------------------
    # Setup & test hooks
    # ------------------------------------------------------------------

    def create_account(self, key: Union[PublicKey, PrivateKey, str, bytes], balance: int = 0) -> AccountId:
        """Genesis-style account creation (no transaction, no fee)."""
        pub = coerce_public_key(key)
        if pub is None:
            raise ValueError("key is required")
        with self._lock:
            acct = _Account(id=self._new_id(AccountId), key=pub.raw, native=int(balance))
            self._accounts[acct.id] = acct
        log.debug("genesis account %s balance=%d", acct.id, balance)
        return acct.id

    def bootstrap_operator(
        self, key: Optional[PrivateKey] = None, balance: int = DEFAULT_OPERATOR_BALANCE
    ) -> Tuple[AccountId, PrivateKey]:
        """Create a funded genesis account to act as operator."""
        key = key or PrivateKey.generate()
        return self.create_account(key, balance=balance), key

    def fail_next(self, count: int = 1, method: str = "submit_transaction") -> None:
        with self._lock:
            self._faults[method] += count

    def balance(self, account_id: AccountLike, token_id: Optional[TokenLike] = None) -> int:
        with self._lock:
            acct = self._accounts[AccountId.parse(account_id)]
            if token_id is None:
                return acct.native
            return acct.tokens.get(TokenId.parse(token_id), 0)

    def allowance(self, owner: AccountLike, spender: AccountLike, token_id: Optional[TokenLike] = None) -> int:
        key = (AccountId.parse(owner), AccountId.parse(spender), None if token_id is None else TokenId.parse(token_id))
        with self._lock:
            return self._allowances.get(key, 0)

    def token_info(self, token_id: TokenLike) -> Dict[str, Any]:
        with self._lock:
            t = self._tokens[TokenId.parse(token_id)]
            return {
                "tokenId": str(t.id),
                "name": t.name,
                "symbol": t.symbol,
                "decimals": t.decimals,
                "treasury": str(t.treasury),
                "totalSupply": t.total_supply,
                "maxSupply": t.max_supply,
                "paused": t.paused,
            }

    # ------------------------------------------------------------------
    # Network protocol
    # ------------------------------------------------------------------

    def submit_transaction(self, signed_bytes: bytes) -> Dict[str, Any]:
        self._maybe_fail("submit_transaction")
        signed = deserialize(bytes(signed_bytes))
        txid = str(signed.transaction_id)
        if not signed.signatures:
            raise UnauthorizedSubmission("transaction carries no signatures", transaction_id=txid)

        with self._lock:
            if txid in self._receipts:
                raise TxFailed(status="DUPLICATE_TRANSACTION", transaction_id=txid)
            receipt, deliveries = self._process(signed)
            self._receipts[txid] = receipt
        log.debug("processed %s tx=%s status=%s", signed.kind.value, txid, receipt["status"])
        self._deliver(deliveries)
        return {"transactionId": txid, "nodeId": str(self.node_ids[0]) if self.node_ids else None}

    def get_receipt(self, transaction_id: str) -> Dict[str, Any]:
        self._maybe_fail("get_receipt")
        with self._lock:
            rec = self._receipts.get(transaction_id)
            if rec is None:
                return {"transactionId": transaction_id, "status": "UNKNOWN"}
            self._polls[transaction_id] += 1
            if self._polls[transaction_id] <= self.receipt_latency:
                return {"transactionId": transaction_id, "status": "PENDING"}
            return dict(rec)

    def get_account_balance(self, account_id: str) -> Dict[str, Any]:
        self._maybe_fail("get_account_balance")
        with self._lock:
            acct = self._accounts.get(AccountId.parse(account_id))
            if acct is None:
                raise RpcError(code=JsonRpcCode.INVALID_PARAMS, message="INVALID_ACCOUNT_ID",
                               method="get_account_balance", data=account_id)
            return {"native": acct.native, "tokens": {str(k): v for k, v in acct.tokens.items()}}

    def get_schedule_info(self, schedule_id: str) -> Dict[str, Any]:
        self._maybe_fail("get_schedule_info")
        with self._lock:
            s = self._schedules.get(ScheduleId.parse(schedule_id))
            if s is None:
                raise RpcError(code=JsonRpcCode.INVALID_PARAMS, message="INVALID_SCHEDULE_ID",
                               method="get_schedule_info", data=schedule_id)
            self._refresh(s)
            return {
                "scheduleId": str(s.id),
                "state": s.state,
                "expiresAt": s.expires_at,
                "memo": s.memo,
                "adminKey": s.admin_key.hex() if s.admin_key else None,
                "signatories": sorted(pk.hex() for pk in s.signatories),
                "scheduledTransactionId": str(s.scheduled_id),
                "scheduledTransaction": s.child.serialize().hex(),
            }

    def subscribe_to_topic(self, topic_id: str, start_time: Optional[float], on_message: OnMessage) -> Subscription:
        tid = TopicId.parse(topic_id)
        with self._lock:
            topic = self._topics.get(tid)
            if topic is None:
                raise RpcError(code=JsonRpcCode.INVALID_PARAMS, message="INVALID_TOPIC_ID",
                               method="subscribe_to_topic", data=topic_id)
            backlog = [m for m in topic.messages if start_time is None or m.consensus_timestamp >= start_time]
            sub = Subscription(str(tid), on_close=lambda: self._drop_subscriber(tid, sub))
            self._subscribers[tid].append((sub, on_message))
        for msg in backlog:
            on_message(msg)
        return sub

    def close(self) -> None:
        with self._lock:
            subs = [s for entries in self._subscribers.values() for s, _ in entries]
        for s in subs:
            s.unsubscribe()

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def _process(self, signed: SignedTransaction) -> Tuple[Dict[str, Any], List[Tuple[OnMessage, TopicMessage]]]:
        bound = signed.bound
        txid = str(bound.transaction_id)
        deliveries: List[Tuple[OnMessage, TopicMessage]] = []
        try:
            if int(self.clock() * 1_000_000_000) > bound.expires_at_ns:
                raise _Rejected("TRANSACTION_EXPIRED")
            if self.node_ids and not set(bound.node_account_ids) & set(self.node_ids):
                raise _Rejected("INVALID_NODE_ACCOUNT")
            if invalid_signers(signed):
                raise _Rejected("INVALID_SIGNATURE")
            signers = set(signed.signers)
            missing = self._required_keys(bound) - signers
            if missing:
                raise _Rejected("INVALID_SIGNATURE")
            self._charge_fee(bound.payer)
            extras = self._apply(bound, signers, deliveries)
        except _Rejected as r:
            return {"transactionId": txid, "status": r.status}, []
        return {"transactionId": txid, "status": "SUCCESS", **extras}, deliveries

    def _charge_fee(self, payer: AccountId) -> None:
        if self.fee <= 0:
            return
        acct = self._accounts[payer]
        if acct.native < self.fee:
            raise _Rejected("INSUFFICIENT_PAYER_BALANCE")
        acct.native -= self.fee

    def _required_keys(self, bound: BoundTransaction) -> Set[bytes]:
        """Keys that must have signed `bound` (payer included)."""
        keys = {self._require_account(bound.payer, "PAYER_ACCOUNT_NOT_FOUND").key}
        body = bound.body
        kind = bound.kind

        if kind in (TxKind.TRANSFER, TxKind.APPROVED_TRANSFER):
            for item in bound.operations:
                acct = self._require_account(item.account)
                if item.is_debit and not item.approved:
                    keys.add(acct.key)
        elif kind is TxKind.ALLOWANCE_APPROVAL:
            for grant in body["allowances"]:
                keys.add(self._require_account(AccountId.parse(grant["owner"])).key)
        elif kind is TxKind.TOKEN_CREATE:
            keys.add(self._require_account(AccountId.parse(body["treasury"])).key)
            if body.get("adminKey"):
                keys.add(_key_bytes(body["adminKey"]))
        elif kind is TxKind.TOKEN_ASSOCIATE:
            keys.add(self._require_account(AccountId.parse(body["account"])).key)
        elif kind in (TxKind.TOKEN_PAUSE, TxKind.TOKEN_UNPAUSE):
            token = self._require_token(TokenId.parse(body["token"]))
            if token.pause_key is None:
                raise _Rejected("TOKEN_HAS_NO_PAUSE_KEY")
            keys.add(token.pause_key)
        elif kind is TxKind.SCHEDULE_CREATE:
            if body.get("adminKey"):
                keys.add(_key_bytes(body["adminKey"]))
        elif kind is TxKind.SCHEDULE_DELETE:
            sched = self._require_schedule(ScheduleId.parse(body["schedule"]))
            if sched.admin_key is None:
                raise _Rejected("SCHEDULE_IS_IMMUTABLE")
            keys.add(sched.admin_key)
        elif kind is TxKind.TOPIC_CREATE:
            if body.get("adminKey"):
                keys.add(_key_bytes(body["adminKey"]))
        elif kind is TxKind.TOPIC_MESSAGE_SUBMIT:
            topic = self._require_topic(TopicId.parse(body["topic"]))
            if topic.submit_key is not None:
                keys.add(topic.submit_key)
        return keys

    def _apply(self, bound: BoundTransaction, signers: Set[bytes],
               deliveries: List[Tuple[OnMessage, TopicMessage]]) -> Dict[str, Any]:
        kind = bound.kind
        if kind in (TxKind.TRANSFER, TxKind.APPROVED_TRANSFER):
            return self._apply_transfer(bound)
        if kind is TxKind.ACCOUNT_CREATE:
            return self._apply_account_create(bound)
        if kind is TxKind.ALLOWANCE_APPROVAL:
            return self._apply_allowances(bound)
        if kind is TxKind.TOKEN_CREATE:
            return self._apply_token_create(bound)
        if kind is TxKind.TOKEN_ASSOCIATE:
            return self._apply_associate(bound)
        if kind in (TxKind.TOKEN_PAUSE, TxKind.TOKEN_UNPAUSE):
            token = self._require_token(TokenId.parse(bound.body["token"]))
            token.paused = kind is TxKind.TOKEN_PAUSE
            return {}
        if kind is TxKind.SCHEDULE_CREATE:
            return self._apply_schedule_create(bound, signers, deliveries)
        if kind is TxKind.SCHEDULE_SIGN:
            return self._apply_schedule_sign(bound, signers, deliveries)
        if kind is TxKind.SCHEDULE_DELETE:
            return self._apply_schedule_delete(bound)
        if kind is TxKind.TOPIC_CREATE:
            return self._apply_topic_create(bound)
        if kind is TxKind.TOPIC_MESSAGE_SUBMIT:
            return self._apply_topic_message(bound, deliveries)
        raise _Rejected("NOT_SUPPORTED")

    # ---- transfers & accounts ----

    def _apply_transfer(self, bound: BoundTransaction) -> Dict[str, Any]:
        native: Dict[AccountId, int] = {}
        tokens: Dict[Tuple[AccountId, TokenId], int] = {}
        spent: Dict[Tuple[AccountId, AccountId, Optional[TokenId]], int] = defaultdict(int)

        for item in bound.operations:
            acct = self._require_account(item.account)
            if item.token is None:
                native[acct.id] = native.get(acct.id, acct.native) + item.amount
            else:
                token = self._require_token(item.token)
                if token.paused:
                    raise _Rejected("TOKEN_IS_PAUSED")
                if item.decimals is not None and item.decimals != token.decimals:
                    raise _Rejected("UNEXPECTED_TOKEN_DECIMALS")
                if token.id not in acct.tokens:
                    raise _Rejected("TOKEN_NOT_ASSOCIATED_TO_ACCOUNT")
                key = (acct.id, token.id)
                tokens[key] = tokens.get(key, acct.tokens[token.id]) + item.amount
            if item.approved:
                spent[(acct.id, bound.payer, item.token)] += -item.amount

        for grant, amount in spent.items():
            remaining = self._allowances.get(grant)
            if remaining is None:
                raise _Rejected("SPENDER_DOES_NOT_HAVE_ALLOWANCE")
            if amount > remaining:
                raise _Rejected("AMOUNT_EXCEEDS_ALLOWANCE")
        if any(v < 0 for v in native.values()):
            raise _Rejected("INSUFFICIENT_ACCOUNT_BALANCE")
        if any(v < 0 for v in tokens.values()):
            raise _Rejected("INSUFFICIENT_TOKEN_BALANCE")

        for acct_id, value in native.items():
            self._accounts[acct_id].native = value
        for (acct_id, token_id), value in tokens.items():
            self._accounts[acct_id].tokens[token_id] = value
        for grant, amount in spent.items():
            left = self._allowances[grant] - amount
            if left:
                self._allowances[grant] = left
            else:
                del self._allowances[grant]
        return {}

    def _apply_account_create(self, bound: BoundTransaction) -> Dict[str, Any]:
        initial = int(bound.body["initialBalance"])
        payer = self._accounts[bound.payer]
        if payer.native < initial:
            raise _Rejected("INSUFFICIENT_PAYER_BALANCE")
        payer.native -= initial
        acct = _Account(id=self._new_id(AccountId), key=_key_bytes(bound.body["key"]), native=initial)
        self._accounts[acct.id] = acct
        return {"accountId": str(acct.id)}

    def _apply_allowances(self, bound: BoundTransaction) -> Dict[str, Any]:
        updates = []
        for grant in bound.body["allowances"]:
            owner = self._require_account(AccountId.parse(grant["owner"]))
            spender = self._require_account(AccountId.parse(grant["spender"]))
            token_id = None
            if grant.get("token"):
                token_id = self._require_token(TokenId.parse(grant["token"])).id
                if token_id not in owner.tokens:
                    raise _Rejected("TOKEN_NOT_ASSOCIATED_TO_ACCOUNT")
            updates.append(((owner.id, spender.id, token_id), int(grant["amount"])))
        for key, amount in updates:
            if amount:
                self._allowances[key] = amount
            else:
                self._allowances.pop(key, None)
        return {}

    # ---- tokens ----

    def _apply_token_create(self, bound: BoundTransaction) -> Dict[str, Any]:
        body = bound.body
        treasury = self._require_account(AccountId.parse(body["treasury"]))
        token = _Token(
            id=self._new_id(TokenId),
            name=body["name"],
            symbol=body["symbol"],
            decimals=int(body["decimals"]),
            treasury=treasury.id,
            total_supply=int(body["initialSupply"]),
            max_supply=body.get("maxSupply"),
            supply_key=_key_bytes(body.get("supplyKey")),
            pause_key=_key_bytes(body.get("pauseKey")),
            admin_key=_key_bytes(body.get("adminKey")),
        )
        self._tokens[token.id] = token
        treasury.tokens[token.id] = token.total_supply
        return {"tokenId": str(token.id)}

    def _apply_associate(self, bound: BoundTransaction) -> Dict[str, Any]:
        acct = self._require_account(AccountId.parse(bound.body["account"]))
        token_ids = [self._require_token(TokenId.parse(t)).id for t in bound.body["tokens"]]
        if any(t in acct.tokens for t in token_ids):
            raise _Rejected("TOKEN_ALREADY_ASSOCIATED_TO_ACCOUNT")
        for t in token_ids:
            acct.tokens[t] = 0
        return {}

    # ---- schedules ----

    def _refresh(self, sched: _Schedule) -> None:
        if sched.state == "CREATED" and self.clock() >= sched.expires_at:
            sched.state = "EXPIRED"
            log.debug("schedule %s expired", sched.id)

    def _schedule_receipt(self, sched: _Schedule) -> Dict[str, Any]:
        return {"scheduleId": str(sched.id), "scheduledTransactionId": str(sched.scheduled_id)}

    def _apply_schedule_create(self, bound: BoundTransaction, signers: Set[bytes],
                               deliveries: List[Tuple[OnMessage, TopicMessage]]) -> Dict[str, Any]:
        body = bound.body
        try:
            child = deserialize(body["child"])
        except ValueError:
            raise _Rejected("INVALID_TRANSACTION_BODY") from None
        if child.kind in (TxKind.SCHEDULE_CREATE, TxKind.SCHEDULE_SIGN):
            raise _Rejected("SCHEDULED_TRANSACTION_NOT_IN_WHITELIST")
        if invalid_signers(child):
            raise _Rejected("INVALID_SIGNATURE")
        for existing in self._schedules.values():
            self._refresh(existing)
            if existing.state == "CREATED" and existing.child.body_bytes() == child.body_bytes():
                raise _Rejected("IDENTICAL_SCHEDULE_ALREADY_CREATED")

        sched = _Schedule(
            id=self._new_id(ScheduleId),
            child=child,
            scheduled_id=bound.transaction_id.as_scheduled(),
            expires_at=self.clock() + int(body.get("expirySeconds") or DEFAULT_SCHEDULE_EXPIRY),
            admin_key=_key_bytes(body.get("adminKey")),
            memo=body.get("scheduleMemo"),
            signatories=set(signers) | set(child.signers),
        )
        self._schedules[sched.id] = sched
        self._try_execute(sched, deliveries)
        return self._schedule_receipt(sched)

    def _apply_schedule_sign(self, bound: BoundTransaction, signers: Set[bytes],
                             deliveries: List[Tuple[OnMessage, TopicMessage]]) -> Dict[str, Any]:
        sched = self._require_schedule(ScheduleId.parse(bound.body["schedule"]))
        self._refresh(sched)
        if sched.state == "EXECUTED":
            raise _Rejected("SCHEDULE_ALREADY_EXECUTED")
        if sched.state == "DELETED":
            raise _Rejected("SCHEDULE_ALREADY_DELETED")
        if sched.state == "EXPIRED":
            raise _Rejected("SCHEDULE_EXPIRED")
        sched.signatories |= signers
        self._try_execute(sched, deliveries)
        return self._schedule_receipt(sched)

    def _apply_schedule_delete(self, bound: BoundTransaction) -> Dict[str, Any]:
        sched = self._require_schedule(ScheduleId.parse(bound.body["schedule"]))
        self._refresh(sched)
        if sched.state == "EXECUTED":
            raise _Rejected("SCHEDULE_ALREADY_EXECUTED")
        if sched.state == "DELETED":
            raise _Rejected("SCHEDULE_ALREADY_DELETED")
        sched.state = "DELETED"
        return {"scheduleId": str(sched.id)}

    def _try_execute(self, sched: _Schedule, deliveries: List[Tuple[OnMessage, TopicMessage]]) -> None:
        child = sched.child.bound
        try:
            required = self._required_keys(child)
        except _Rejected as r:
            status = r.status
        else:
            if not required <= sched.signatories:
                return
            try:
                status = "SUCCESS"
                extras = self._apply(child, set(sched.signatories), deliveries)
            except _Rejected as r:
                status, extras = r.status, {}
        sched.state = "EXECUTED"
        receipt = {"transactionId": str(sched.scheduled_id), "status": status}
        if status == "SUCCESS":
            receipt.update(extras)
        self._receipts[str(sched.scheduled_id)] = receipt
        log.info("schedule %s executed child %s status=%s", sched.id, sched.scheduled_id, status)

    # ---- topics ----

    def _apply_topic_create(self, bound: BoundTransaction) -> Dict[str, Any]:
        body = bound.body
        topic = _Topic(
            id=self._new_id(TopicId),
            memo=body.get("topicMemo"),
            admin_key=_key_bytes(body.get("adminKey")),
            submit_key=_key_bytes(body.get("submitKey")),
        )
        self._topics[topic.id] = topic
        return {"topicId": str(topic.id)}

    def _apply_topic_message(self, bound: BoundTransaction,
                             deliveries: List[Tuple[OnMessage, TopicMessage]]) -> Dict[str, Any]:
        topic = self._require_topic(TopicId.parse(bound.body["topic"]))
        now = self.clock()
        if topic.messages and now <= topic.messages[-1].consensus_timestamp:
            now = topic.messages[-1].consensus_timestamp + 1e-6
        msg = TopicMessage(
            topic_id=topic.id,
            sequence_number=len(topic.messages) + 1,
            consensus_timestamp=now,
            contents=bytes(bound.body["message"]),
        )
        topic.messages.append(msg)
        deliveries.extend((cb, msg) for sub, cb in self._subscribers.get(topic.id, ()) if sub.active)
        return {"topicId": str(topic.id), "topicSequenceNumber": msg.sequence_number}

    def _deliver(self, deliveries: List[Tuple[OnMessage, TopicMessage]]) -> None:
        for cb, msg in deliveries:
            try:
                cb(msg)
            except Exception:
                log.exception("topic subscriber failed on %s #%d", msg.topic_id, msg.sequence_number)

    def _drop_subscriber(self, topic_id: TopicId, sub: Subscription) -> None:
        with self._lock:
            self._subscribers[topic_id] = [(s, cb) for s, cb in self._subscribers[topic_id] if s is not sub]

    # ---- lookups ----

    def _maybe_fail(self, method: str) -> None:
        with self._lock:
            if self._faults[method] <= 0:
                return
            self._faults[method] -= 1
        raise NetworkError(f"simulated transient failure in {method}",
                           node_id=str(self.node_ids[0]) if self.node_ids else None)

    def _new_id(self, cls):
        num = self._next_num
        self._next_num += 1
        return cls.of(num)

    def _require_account(self, account_id: AccountId, status: str = "INVALID_ACCOUNT_ID") -> _Account:
        acct = self._accounts.get(AccountId.parse(account_id))
        if acct is None:
            raise _Rejected(status)
        return acct

    def _require_token(self, token_id: TokenId) -> _Token:
        token = self._tokens.get(token_id)
        if token is None:
            raise _Rejected("INVALID_TOKEN_ID")
        return token

    def _require_schedule(self, schedule_id: ScheduleId) -> _Schedule:
        sched = self._schedules.get(schedule_id)
        if sched is None:
            raise _Rejected("INVALID_SCHEDULE_ID")
        return sched

    def _require_topic(self, topic_id: TopicId) -> _Topic:
        topic = self._topics.get(topic_id)
        if topic is None:
            raise _Rejected("INVALID_TOPIC_ID")
        return topic
