"""
ledgerflow.tx.freeze
====================

Bind ("freeze") a draft to network parameters.

    bound = bind(draft, ctx)                     # payer: draft.payer or ctx operator
    bound = bind(draft, ctx, payer="0.0.1001", valid_duration=60)

Binding assigns a transaction id scoped to the payer and the start of the
validity window, picks the node(s) the transaction targets and fixes the fee
ceiling. The result is immutable and there is intentionally no way back to a
draft: changing anything means building a new draft and binding it again.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Tuple

from ..context import NetworkContext
from ..errors import BindingError, InvalidParameters
from ..types.core import AccountId, AccountLike, Amount, TransactionId
from .build import TRANSFER_KINDS, TransactionDraft, check_balanced
from .envelope import BoundTransaction

log = logging.getLogger(__name__)

MAX_VALID_DURATION = 180

__all__ = ["bind", "next_transaction_id", "MAX_VALID_DURATION"]


class _TransactionIdGenerator:
    """
    Process-wide, thread-safe generator of valid-start timestamps.

    Two ids are never equal, even for the same payer within one clock tick:
    when the clock has not advanced past the last issued value, the next
    nanosecond is used instead.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_ns = 0
        self._node_cursor = 0

    def next_ns(self, now_s: float) -> int:
        candidate = int(now_s * 1_000_000_000)
        with self._lock:
            if candidate <= self._last_ns:
                candidate = self._last_ns + 1
            self._last_ns = candidate
            return candidate

    def next_cursor(self) -> int:
        with self._lock:
            self._node_cursor += 1
            return self._node_cursor


_ids = _TransactionIdGenerator()


def next_transaction_id(payer: AccountLike, now_s: float) -> TransactionId:
    ns = _ids.next_ns(now_s)
    return TransactionId(
        account_id=AccountId.parse(payer),
        valid_start_seconds=ns // 1_000_000_000,
        valid_start_nanos=ns % 1_000_000_000,
    )


def _select_nodes(ctx: NetworkContext) -> Tuple[AccountId, ...]:
    nodes = ctx.node_account_ids
    count = min(ctx.max_nodes_per_tx, len(nodes))
    start = _ids.next_cursor() % len(nodes)
    return tuple(nodes[(start + i) % len(nodes)] for i in range(count))


def bind(
    draft: TransactionDraft,
    ctx: NetworkContext,
    payer: Optional[AccountLike] = None,
    *,
    valid_duration: Optional[int] = None,
    max_fee: Optional[Amount] = None,
    require_local_key: bool = True,
) -> BoundTransaction:
    """
    Attach payer, transaction id, validity window, fee ceiling and nodes.

    Raises:
        BindingError      no payer could be resolved, or the payer has no local
                          signing key while `require_local_key` is set
        InvalidDraft      a transfer-family draft no longer nets to zero
        InvalidParameters validity window or fee out of range
    """
    if not isinstance(draft, TransactionDraft):
        raise TypeError(f"bind() expects a TransactionDraft, got {type(draft).__name__}")

    resolved = payer if payer is not None else (draft.payer or ctx.operator_id)
    if resolved is None:
        raise BindingError("no payer: pass payer=..., set draft.payer or configure an operator")
    try:
        payer_id = AccountId.parse(resolved)
    except (TypeError, ValueError) as e:
        raise BindingError(str(e), payer=str(resolved)) from e
    if require_local_key and ctx.key_for(payer_id) is None:
        raise BindingError("payer has no signing key in the registry", payer=str(payer_id))

    if draft.kind in TRANSFER_KINDS:
        check_balanced(draft.operations)

    duration = ctx.valid_duration if valid_duration is None else valid_duration
    if isinstance(duration, bool) or not isinstance(duration, int) or not 0 < duration <= MAX_VALID_DURATION:
        raise InvalidParameters(
            f"valid_duration must be in (0, {MAX_VALID_DURATION}] seconds", parameter="valid_duration"
        )
    fee = ctx.default_max_fee if max_fee is None else max_fee
    if isinstance(fee, bool) or not isinstance(fee, int) or fee < 0:
        raise InvalidParameters("max_fee must be a non-negative integer", parameter="max_fee")

    bound = BoundTransaction(
        draft=draft if draft.payer == payer_id else draft.with_payer(payer_id),
        transaction_id=next_transaction_id(payer_id, ctx.clock()),
        valid_duration=duration,
        max_fee=fee,
        node_account_ids=_select_nodes(ctx),
    )
    log.debug("bound %s tx=%s nodes=%s", draft.kind.value, bound.transaction_id,
              ",".join(str(n) for n in bound.node_account_ids))
    return bound
