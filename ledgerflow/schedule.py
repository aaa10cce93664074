"""
Schedule coordinator: multi-party signing through the network.

A schedule wraps a (possibly partially signed) child transaction. The network
collects signatures against it and executes the child on its own once every
signer the child requires has signed; the client never decides that.

    CREATED ──all required signatures──▶ EXECUTED
       │
       ├──expiry passes──▶ EXPIRED     (further signatures: ScheduleExpired)
       └──admin delete───▶ DELETED

Typical multi-signature flow:

    child = bind_child(build.native_transfer("0.0.1001", "0.0.1003", 10), ctx)
    sched = create_schedule(child, ctx)                 # CREATED
    add_signature(sched.schedule_id, key_a, ctx)        # still CREATED
    add_signature(sched.schedule_id, key_b, ctx)        # network executes child
    get_schedule(sched.schedule_id, ctx).state          # EXECUTED

For out-of-band signing, `prepare_schedule` returns the bound schedule-create
transaction; ship `serialize(...)` bytes around, collect signatures with
`ledgerflow.tx.sign`, then hand the result to `submit_schedule`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from .context import NetworkContext
from .errors import IncompleteReceipt, ScheduleExpired
from .tx import build
from .tx.encode import deserialize, serialize
from .tx.envelope import BoundTransaction, SignedTransaction
from .tx.freeze import bind
from .tx.send import call_network, execute, execute_draft, require_outcome
from .tx.sign import sign_all
from .types.core import AccountLike, ScheduleId, TransactionId
from .types.receipt import Receipt
from .wallet.keys import KeyLike, PrivateKey, PublicKey

log = logging.getLogger(__name__)

__all__ = [
    "ScheduleState",
    "Schedule",
    "bind_child",
    "prepare_schedule",
    "create_schedule",
    "submit_schedule",
    "add_signature",
    "get_schedule",
    "delete_schedule",
]

AdminKey = Union[PrivateKey, PublicKey, str, None]
ScheduleLike = Union[ScheduleId, str]


class ScheduleState(str, Enum):
    CREATED = "CREATED"
    EXECUTED = "EXECUTED"
    EXPIRED = "EXPIRED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class Schedule:
    schedule_id: ScheduleId
    state: ScheduleState
    scheduled_transaction_id: Optional[TransactionId] = None
    child: Optional[SignedTransaction] = None
    expires_at: Optional[float] = None
    memo: Optional[str] = None
    signatories: Tuple[str, ...] = ()

    @property
    def executed(self) -> bool:
        return self.state is ScheduleState.EXECUTED

    @classmethod
    def from_info(cls, info: Mapping[str, Any]) -> "Schedule":
        child_hex = info.get("scheduledTransaction")
        sched_txid = info.get("scheduledTransactionId")
        return cls(
            schedule_id=ScheduleId.parse(info["scheduleId"]),
            state=ScheduleState(str(info["state"]).upper()),
            scheduled_transaction_id=TransactionId.parse(sched_txid) if sched_txid else None,
            child=deserialize(bytes.fromhex(child_hex)) if child_hex else None,
            expires_at=float(info["expiresAt"]) if info.get("expiresAt") is not None else None,
            memo=info.get("memo"),
            signatories=tuple(info.get("signatories") or ()),
        )


def _schedule_id(schedule_id: ScheduleLike) -> ScheduleId:
    return ScheduleId.parse(schedule_id)


def bind_child(
    draft: build.TransactionDraft, ctx: NetworkContext, payer: Optional[AccountLike] = None
) -> BoundTransaction:
    """Bind a child transaction whose payer may not hold a key locally."""
    return bind(draft, ctx, payer, require_local_key=False)


def prepare_schedule(
    child: Union[SignedTransaction, BoundTransaction],
    ctx: NetworkContext,
    *,
    admin_key: AdminKey = None,
    memo: Optional[str] = None,
    expiry_seconds: Optional[int] = None,
    payer: Optional[AccountLike] = None,
) -> BoundTransaction:
    """Bound, unsigned schedule-create transaction embedding `child`."""
    draft = build.schedule_create(
        serialize(child),
        admin_key=admin_key,
        schedule_memo=memo,
        expiry_seconds=expiry_seconds,
        payer=payer,
    )
    return bind(draft, ctx, payer)


def submit_schedule(
    signed: SignedTransaction, ctx: NetworkContext, *, timeout: Optional[float] = None
) -> Schedule:
    """Submit a signed schedule-create transaction and return the new schedule."""
    receipt = require_outcome(execute(signed, ctx, timeout=timeout))
    if receipt.schedule_id is None:
        raise IncompleteReceipt("scheduleId", transaction_id=str(receipt.transaction_id))
    log.info("schedule %s created (child %s)", receipt.schedule_id, receipt.scheduled_transaction_id)
    return get_schedule(receipt.schedule_id, ctx)


def create_schedule(
    child: Union[SignedTransaction, BoundTransaction],
    ctx: NetworkContext,
    *,
    admin_key: AdminKey = None,
    memo: Optional[str] = None,
    expiry_seconds: Optional[int] = None,
    signers: Iterable[KeyLike] = (),
    payer: Optional[AccountLike] = None,
    timeout: Optional[float] = None,
) -> Schedule:
    """
    Bind, sign and submit a schedule for `child`.

    `signers` sign the schedule-create transaction and count toward the child's
    signature requirement. A `PrivateKey` admin key also signs.
    """
    bound = prepare_schedule(child, ctx, admin_key=admin_key, memo=memo,
                             expiry_seconds=expiry_seconds, payer=payer)
    keys = [ctx.key_for(bound.payer), *signers]
    if isinstance(admin_key, PrivateKey):
        keys.append(admin_key)
    return submit_schedule(sign_all(bound, [k for k in keys if k is not None]), ctx, timeout=timeout)


def add_signature(
    schedule_id: ScheduleLike,
    key: KeyLike,
    ctx: NetworkContext,
    *,
    payer: Optional[AccountLike] = None,
    timeout: Optional[float] = None,
) -> Receipt:
    """
    Sign an existing schedule with `key` (ScheduleSign transaction).

    Raises:
        ScheduleExpired  the network reports the schedule expired
    """
    sid = _schedule_id(schedule_id)
    receipt = execute_draft(build.schedule_sign(sid), ctx, payer=payer, keys=[key], timeout=timeout)
    if receipt.failed and receipt.reason == "SCHEDULE_EXPIRED":
        raise ScheduleExpired(
            status=receipt.reason,
            transaction_id=str(receipt.transaction_id),
            message=f"schedule {sid} expired",
            schedule_id=str(sid),
        )
    return receipt


def get_schedule(schedule_id: ScheduleLike, ctx: NetworkContext) -> Schedule:
    sid = _schedule_id(schedule_id)
    return Schedule.from_info(call_network(ctx, "get_schedule_info", ctx.network.get_schedule_info, str(sid)))


def delete_schedule(
    schedule_id: ScheduleLike,
    admin_key: KeyLike,
    ctx: NetworkContext,
    *,
    timeout: Optional[float] = None,
) -> Receipt:
    return execute_draft(build.schedule_delete(_schedule_id(schedule_id)), ctx, keys=[admin_key], timeout=timeout)
