"""
Allowance coordinator.

An owner grants a spender the right to move up to `limit` of one asset
(native currency or a token) out of the owner's account. The spender then
submits approved transfers as payer and sole signer; the network tracks what
is left of the grant. Nothing about remaining limits is cached client side.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from .context import NetworkContext
from .errors import AllowanceExceeded, BindingError
from .tx import build
from .tx.send import execute_draft
from .types.core import AccountId, AccountLike, Amount, TokenId
from .types.receipt import Receipt

log = logging.getLogger(__name__)

__all__ = ["Asset", "ALLOWANCE_FAILURES", "approve_allowance", "spend_allowance"]

Asset = Union[TokenId, str, None]

ALLOWANCE_FAILURES = frozenset({"AMOUNT_EXCEEDS_ALLOWANCE", "SPENDER_DOES_NOT_HAVE_ALLOWANCE"})


def _token(asset: Asset) -> Optional[TokenId]:
    if asset is None or asset == build.NATIVE:
        return None
    return TokenId.parse(asset)


def _require_key(ctx: NetworkContext, account: AccountLike, role: str) -> None:
    if ctx.key_for(account) is None:
        raise BindingError(f"{role} has no signing key in the registry", payer=str(account))


def approve_allowance(
    owner: AccountLike,
    spender: AccountLike,
    asset: Asset,
    limit: Amount,
    ctx: NetworkContext,
    *,
    timeout: Optional[float] = None,
) -> Receipt:
    """Grant (or with limit=0 revoke) an allowance. The owner pays and signs."""
    grant = build.allowance_grant(owner, spender, limit, token_id=_token(asset))
    _require_key(ctx, grant.owner, "owner")
    receipt = execute_draft(build.allowance_approval([grant], payer=grant.owner), ctx, timeout=timeout)
    log.info("allowance %s -> %s (%s, limit=%d): %s", grant.owner, grant.spender,
             grant.token or build.NATIVE, grant.limit, receipt.reason or receipt.status.value)
    return receipt


def spend_allowance(
    spender: AccountLike,
    owner: AccountLike,
    recipient: AccountLike,
    asset: Asset,
    amount: Amount,
    ctx: NetworkContext,
    *,
    timeout: Optional[float] = None,
) -> Receipt:
    """
    Move `amount` from `owner` to `recipient` on the spender's allowance.

    Raises:
        AllowanceExceeded  the network reports the request exceeds what is left
                           of the allowance (balances stay untouched)
    """
    spender_id = AccountId.parse(spender)
    _require_key(ctx, spender_id, "spender")
    draft = build.approved_transfer(owner, recipient, amount, spender=spender_id, token_id=_token(asset))
    receipt = execute_draft(draft, ctx, payer=spender_id, timeout=timeout)
    if receipt.failed and receipt.reason in ALLOWANCE_FAILURES:
        raise AllowanceExceeded(
            status=receipt.reason,
            transaction_id=str(receipt.transaction_id),
            message=f"{spender_id} may not move {amount} from {owner}",
        )
    return receipt
