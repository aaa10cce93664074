"""
Account flows: create accounts, move native funds, read balances.

New accounts are recorded in the context's `AccountRegistry` so later
pipelines can sign for them:

    acct = create_account(ctx, initial_balance=1_000)
    fund_accounts(ctx, [acct.id], 500)
    get_balance(acct.id, ctx).native      # 1500
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .context import NetworkContext
from .errors import BindingError, IncompleteReceipt
from .tx import build
from .tx.send import call_network, execute_draft, require_outcome
from .types.core import AccountId, AccountLike, Amount, Balance
from .types.receipt import Receipt
from .wallet.keys import PrivateKey
from .wallet.registry import Account

log = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_INITIAL_BALANCE",
    "create_account",
    "create_accounts",
    "transfer_funds",
    "fund_accounts",
    "get_balance",
]

DEFAULT_INITIAL_BALANCE = 20


def create_account(
    ctx: NetworkContext,
    initial_balance: Amount = DEFAULT_INITIAL_BALANCE,
    *,
    key: Optional[PrivateKey] = None,
    payer: Optional[AccountLike] = None,
    timeout: Optional[float] = None,
) -> Account:
    """
    Generate a key (unless given), create the account on the network and
    append it to the registry.

    Raises:
        TxFailed        the network rejected the creation
        ReceiptPending  the receipt (and so the new id) is not known yet
    """
    key = key or PrivateKey.generate()
    draft = build.account_create(key.public_key, initial_balance=initial_balance, payer=payer)
    receipt = require_outcome(execute_draft(draft, ctx, timeout=timeout))
    if receipt.account_id is None:
        raise IncompleteReceipt("accountId", transaction_id=str(receipt.transaction_id))
    account = Account(id=receipt.account_id, private_key=key, public_key=key.public_key)
    ctx.registry.append(account)
    log.info("created account %s (initial balance %d)", account.id, initial_balance)
    return account


def create_accounts(
    ctx: NetworkContext, count: int, initial_balance: Amount = DEFAULT_INITIAL_BALANCE
) -> List[Account]:
    return [create_account(ctx, initial_balance) for _ in range(count)]


def transfer_funds(
    sender: AccountLike,
    recipient: AccountLike,
    amount: Amount,
    ctx: NetworkContext,
    *,
    timeout: Optional[float] = None,
) -> Receipt:
    """Native transfer paid and signed by `sender`."""
    draft = build.native_transfer(sender, recipient, amount, payer=sender)
    return execute_draft(draft, ctx, timeout=timeout)


def fund_accounts(
    ctx: NetworkContext,
    targets: Iterable[AccountLike],
    amount: Amount,
    *,
    sender: Optional[AccountLike] = None,
    timeout: Optional[float] = None,
) -> List[Receipt]:
    """
    Send `amount` to every target, one transfer each. The sender defaults to
    the operator. Failures are returned as FAILURE receipts, not raised.
    """
    source = sender if sender is not None else ctx.operator_id
    if source is None:
        raise BindingError("no sender given and the context has no operator")
    receipts = []
    for target in targets:
        receipt = transfer_funds(source, target, amount, ctx, timeout=timeout)
        log.info("funded %s with %d from %s: %s", target, amount, source,
                 receipt.reason or receipt.status.value)
        receipts.append(receipt)
    return receipts


def get_balance(account_id: AccountLike, ctx: NetworkContext) -> Balance:
    acct = AccountId.parse(account_id)
    payload = call_network(ctx, "get_account_balance", ctx.network.get_account_balance, str(acct))
    return Balance.from_dict(acct, payload or {})
