"""
Fungible token flows.

    tid = create_token(ctx, name="Demo", symbol="DMO", treasury=alice.id,
                       decimals=2, initial_supply=35_050, max_supply=50_000,
                       supply_key=alice.private_key, pause_key=alice.private_key)
    associate(bob.id, [tid], ctx)
    transfer_tokens(tid, alice.id, bob.id, 2_525, ctx, decimals=2)

Transfers of a paused token come back as FAILURE receipts with reason
TOKEN_IS_PAUSED. They are not retried; unpause and submit again.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

from .context import NetworkContext
from .errors import BindingError, IncompleteReceipt
from .tx import build
from .tx.send import execute_draft, require_outcome
from .types.core import AccountLike, Amount, TokenId, TokenLike
from .types.receipt import Receipt
from .wallet.keys import KeyLike, PrivateKey, PublicKey, coerce_private_key

log = logging.getLogger(__name__)

__all__ = ["create_token", "associate", "transfer_tokens", "pause", "unpause"]

TokenKey = Union[PrivateKey, PublicKey, str, None]


def _public(key: TokenKey) -> Optional[PublicKey]:
    if isinstance(key, PrivateKey):
        return key.public_key
    return PublicKey.from_string(key) if isinstance(key, str) else key


def create_token(
    ctx: NetworkContext,
    *,
    name: str,
    symbol: str,
    treasury: AccountLike,
    decimals: int = 0,
    initial_supply: int = 0,
    max_supply: Optional[int] = None,
    supply_key: TokenKey = None,
    pause_key: TokenKey = None,
    admin_key: Optional[PrivateKey] = None,
    payer: Optional[AccountLike] = None,
    timeout: Optional[float] = None,
) -> TokenId:
    """
    Create a fungible token whose initial supply lands in `treasury`.

    The treasury (and the admin key, when given) must sign; the treasury key
    is resolved through the context.
    """
    treasury_key = ctx.key_for(treasury)
    if treasury_key is None:
        raise BindingError("treasury has no signing key in the registry", payer=str(treasury))
    draft = build.token_create(
        name=name,
        symbol=symbol,
        treasury=treasury,
        decimals=decimals,
        initial_supply=initial_supply,
        max_supply=max_supply,
        supply_key=_public(supply_key),
        pause_key=_public(pause_key),
        admin_key=admin_key.public_key if admin_key is not None else None,
        payer=payer,
    )
    keys = [treasury_key] + ([admin_key] if admin_key is not None else [])
    receipt = require_outcome(execute_draft(draft, ctx, keys=keys, timeout=timeout))
    if receipt.token_id is None:
        raise IncompleteReceipt("tokenId", transaction_id=str(receipt.transaction_id))
    log.info("created token %s (%s) treasury=%s supply=%d/%s", receipt.token_id, symbol,
             treasury, initial_supply, max_supply if max_supply is not None else "inf")
    return receipt.token_id


def associate(
    account: AccountLike,
    token_ids: Iterable[TokenLike],
    ctx: NetworkContext,
    *,
    timeout: Optional[float] = None,
) -> Receipt:
    """Associate `account` with tokens; the account pays and signs."""
    draft = build.token_associate(account, token_ids, payer=account)
    return execute_draft(draft, ctx, timeout=timeout)


def transfer_tokens(
    token_id: TokenLike,
    sender: AccountLike,
    recipient: AccountLike,
    amount: Amount,
    ctx: NetworkContext,
    *,
    decimals: Optional[int] = None,
    timeout: Optional[float] = None,
) -> Receipt:
    draft = build.token_transfer(token_id, sender, recipient, amount, decimals=decimals, payer=sender)
    receipt = execute_draft(draft, ctx, timeout=timeout)
    if receipt.failed:
        log.warning("token transfer %s %s -> %s failed: %s", token_id, sender, recipient, receipt.reason)
    return receipt


def pause(token_id: TokenLike, pause_key: KeyLike, ctx: NetworkContext, *, timeout: Optional[float] = None) -> Receipt:
    return execute_draft(build.token_pause(token_id), ctx, keys=[coerce_private_key(pause_key)], timeout=timeout)


def unpause(token_id: TokenLike, pause_key: KeyLike, ctx: NetworkContext, *, timeout: Optional[float] = None) -> Receipt:
    return execute_draft(build.token_unpause(token_id), ctx, keys=[coerce_private_key(pause_key)], timeout=timeout)
