"""
ledgerflow.tx.send
==================

Submit signed transactions and resolve their receipts.

Primary entry points
--------------------
- submit(signed, ctx) -> PendingResult
    Checks that the transaction carries a payer signature, serializes it and
    hands it to `ctx.network`. Transient `NetworkError`s are retried with
    jittered exponential backoff (`ledgerflow.utils.retry`) up to
    `ctx.max_retries` times, then re-raised with the attempt count.

- get_receipt(pending | transaction_id, ctx) -> Receipt
    Single receipt query.

- await_receipt(pending, ctx, timeout=None) -> Receipt
    Polls until SUCCESS or FAILURE is observed. The interval starts at
    `ctx.poll_interval` and grows geometrically up to `ctx.max_poll_interval`.
    When `timeout` elapses first a PENDING receipt is returned; callers may
    poll again later with the same transaction id. More than
    `ctx.max_retries` consecutive failed queries raise `NetworkError`.

- await_receipt_async(...)
    asyncio flavour of `await_receipt`. Cancelling the awaiting task stops
    polling only; the submitted transaction is not affected.

- execute(signed, ctx, timeout=None) -> Receipt
    submit + await_receipt.

- execute_draft(draft, ctx, payer=None, keys=()) -> Receipt
    bind + sign with the payer's key (and `keys`) + execute.

- require_outcome(receipt) -> Receipt
    Raises `ReceiptPending` or `TxFailed` unless the receipt is SUCCESS.

FAILURE receipts are returned, not raised; use `Receipt.raise_for_status()`
to turn them into `TxFailed`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from ..context import NetworkContext
from ..errors import NetworkError, ReceiptPending, RpcError, TxFailed, UnauthorizedSubmission
from ..log import tx_scope
from ..types.core import AccountId, AccountLike, TransactionId
from ..types.receipt import Receipt
from ..utils.retry import RetryError, retry_call
from ..wallet.keys import KeyLike
from .build import TransactionDraft
from .encode import serialize, tx_hash
from .envelope import BoundTransaction, SignedTransaction
from .freeze import bind
from .sign import sign_all

log = logging.getLogger(__name__)

__all__ = [
    "PendingResult",
    "call_network",
    "submit",
    "get_receipt",
    "await_receipt",
    "await_receipt_async",
    "execute",
    "execute_draft",
    "require_outcome",
]


@dataclass(frozen=True)
class PendingResult:
    """Outcome of a successful hand-off: the network has the transaction."""

    transaction_id: TransactionId
    tx_hash: str
    node_id: Optional[AccountId] = None
    submitted_at: float = 0.0


TxRef = Union[PendingResult, TransactionId, str]

DUPLICATE_TRANSACTION = "DUPLICATE_TRANSACTION"


def _txid(ref: TxRef) -> TransactionId:
    if isinstance(ref, PendingResult):
        return ref.transaction_id
    return TransactionId.parse(ref)


def _log_retry(op: str, txid: Optional[TransactionId]):
    def on_retry(attempt: int, exc: BaseException, sleep_s: float) -> None:
        log.warning("%s tx=%s transient failure (attempt %d): %s; retrying in %.2fs",
                    op, txid, attempt, exc, sleep_s)
    return on_retry


def call_network(ctx: NetworkContext, op: str, fn: Any, *args: Any, transaction_id: Optional[TransactionId] = None) -> Any:
    """Call `fn(*args)` retrying transient `NetworkError`s per the context's retry policy."""
    try:
        return retry_call(
            fn,
            *args,
            retries=ctx.max_retries,
            base=ctx.backoff_base,
            max_delay=ctx.backoff_max,
            exceptions=NetworkError,
            on_retry=_log_retry(op, transaction_id),
        )
    except RetryError as e:
        last = e.last_exception
        node = getattr(last, "node_id", None)
        raise NetworkError(
            f"{op} failed after {e.attempts} attempts: {getattr(last, 'message', last)}",
            transaction_id=None if transaction_id is None else str(transaction_id),
            node_id=node,
            attempts=e.attempts,
        ) from last


# -----------------------------------------------------------------------------
# Submit
# -----------------------------------------------------------------------------


def _check_authorized(signed: Union[SignedTransaction, BoundTransaction], ctx: NetworkContext) -> None:
    txid = str(signed.bound.transaction_id)
    if not signed.signatures:
        raise UnauthorizedSubmission("transaction carries no signatures", transaction_id=txid)
    payer_pub = ctx.public_key_for(signed.bound.payer)
    # A payer without a registered key can only be checked by the network.
    if payer_pub is not None and not any(pk == payer_pub for pk, _ in signed.signatures):
        raise UnauthorizedSubmission(
            f"payer {signed.bound.payer} has not signed", transaction_id=txid
        )


def _is_duplicate(exc: BaseException) -> bool:
    if isinstance(exc, TxFailed):
        return exc.status == DUPLICATE_TRANSACTION
    if isinstance(exc, RpcError):
        data = exc.data if isinstance(exc.data, Mapping) else {}
        return DUPLICATE_TRANSACTION in (exc.message, data.get("status"))
    return False


def submit(signed: Union[SignedTransaction, BoundTransaction], ctx: NetworkContext) -> PendingResult:
    """
    Hand a signed transaction to the network.

    A retried submission answered with DUPLICATE_TRANSACTION means an earlier
    attempt was accepted and only its ack was lost; that counts as a
    successful hand-off of the same transaction id.

    Raises:
        UnauthorizedSubmission  no signatures, or the payer's key has not signed
        NetworkError            transport kept failing after `ctx.max_retries` retries
    """
    _check_authorized(signed, ctx)
    txid = signed.bound.transaction_id
    raw = serialize(signed)
    attempts = 0

    def send() -> Any:
        nonlocal attempts
        attempts += 1
        try:
            return ctx.network.submit_transaction(raw)
        except (TxFailed, RpcError) as e:
            if attempts > 1 and _is_duplicate(e):
                log.info("retry of tx=%s reported duplicate; earlier attempt was accepted", txid)
                return None
            raise

    with tx_scope(txid):
        ack = call_network(ctx, "submit", send, transaction_id=txid)
        node = (ack or {}).get("nodeId") if isinstance(ack, Mapping) else None
        log.info("submitted %s tx=%s node=%s", signed.bound.kind.value, txid, node or "-")
    return PendingResult(
        transaction_id=txid,
        tx_hash=tx_hash(signed),
        node_id=AccountId.parse(node) if node else None,
        submitted_at=time.time(),
    )


# -----------------------------------------------------------------------------
# Receipts
# -----------------------------------------------------------------------------


def get_receipt(ref: TxRef, ctx: NetworkContext) -> Receipt:
    txid = _txid(ref)
    payload = call_network(ctx, "get_receipt", ctx.network.get_receipt, str(txid), transaction_id=txid)
    return Receipt.from_dict(payload or {}, transaction_id=txid)


class _ReceiptPoller:
    """
    One receipt query per `poll()`. Transient failures count as "no answer"
    until more than `ctx.max_retries` happen in a row, then `NetworkError`
    is raised. Any answer resets the count.
    """

    def __init__(self, txid: TransactionId, ctx: NetworkContext) -> None:
        self.txid = txid
        self.ctx = ctx
        self.failures = 0

    def poll(self) -> Optional[Receipt]:
        try:
            payload = self.ctx.network.get_receipt(str(self.txid))
        except NetworkError as e:
            self.failures += 1
            if self.failures > self.ctx.max_retries:
                raise NetworkError(
                    f"receipt query failed {self.failures} times in a row: {e.message}",
                    transaction_id=str(self.txid),
                    node_id=e.node_id,
                    attempts=self.failures,
                ) from e
            log.warning("receipt query for tx=%s failed (%d in a row): %s", self.txid, self.failures, e)
            return None
        self.failures = 0
        rec = Receipt.from_dict(payload or {}, transaction_id=self.txid)
        return None if rec.pending else rec


def _finish(rec: Optional[Receipt], txid: TransactionId, timeout: float) -> Receipt:
    if rec is None:
        log.info("receipt still pending after %.2fs tx=%s", timeout, txid)
        return Receipt.pending_for(txid)
    if rec.failed:
        log.warning("receipt FAILURE tx=%s reason=%s", txid, rec.reason)
    else:
        log.info("receipt SUCCESS tx=%s", txid)
    return rec


def await_receipt(pending: TxRef, ctx: NetworkContext, timeout: Optional[float] = None) -> Receipt:
    txid = _txid(pending)
    timeout_s = ctx.receipt_timeout if timeout is None else float(timeout)
    deadline = time.monotonic() + timeout_s
    interval = ctx.poll_interval
    poller = _ReceiptPoller(txid, ctx)

    with tx_scope(txid):
        while True:
            rec = poller.poll()
            remaining = deadline - time.monotonic()
            if rec is not None or remaining <= 0:
                return _finish(rec, txid, timeout_s)
            time.sleep(min(interval, remaining))
            interval = min(interval * ctx.poll_backoff, ctx.max_poll_interval)


async def await_receipt_async(pending: TxRef, ctx: NetworkContext, timeout: Optional[float] = None) -> Receipt:
    """
    Like `await_receipt` but awaits between polls. Each query runs in a worker
    thread so blocking network clients do not stall the event loop.
    """
    txid = _txid(pending)
    timeout_s = ctx.receipt_timeout if timeout is None else float(timeout)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_s
    interval = ctx.poll_interval
    poller = _ReceiptPoller(txid, ctx)

    with tx_scope(txid):
        while True:
            rec = await asyncio.to_thread(poller.poll)
            remaining = deadline - loop.time()
            if rec is not None or remaining <= 0:
                return _finish(rec, txid, timeout_s)
            await asyncio.sleep(min(interval, remaining))
            interval = min(interval * ctx.poll_backoff, ctx.max_poll_interval)


def execute(
    signed: Union[SignedTransaction, BoundTransaction],
    ctx: NetworkContext,
    timeout: Optional[float] = None,
) -> Receipt:
    return await_receipt(submit(signed, ctx), ctx, timeout=timeout)


def execute_draft(
    draft: TransactionDraft,
    ctx: NetworkContext,
    *,
    payer: Optional[AccountLike] = None,
    keys: Iterable[KeyLike] = (),
    timeout: Optional[float] = None,
) -> Receipt:
    """
    bind → sign (payer's key plus `keys`) → submit → await receipt.

    The payer's key is resolved through the context (operator or registry).
    """
    bound = bind(draft, ctx, payer)
    payer_key = ctx.key_for(bound.payer)
    signers = [payer_key, *keys] if payer_key is not None else list(keys)
    return execute(sign_all(bound, signers), ctx, timeout=timeout)


def require_outcome(receipt: Receipt) -> Receipt:
    """Raise `ReceiptPending` for a pending receipt and `TxFailed` for a failed one."""
    if receipt.pending:
        raise ReceiptPending(transaction_id=str(receipt.transaction_id))
    return receipt.raise_for_status()
