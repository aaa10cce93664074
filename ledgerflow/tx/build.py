"""
ledgerflow.tx.build
===================

Draft builders for every supported transaction kind.

The builders return the immutable dataclass `TransactionDraft`. You can then
feed that into `ledgerflow.tx.freeze.bind` to attach network parameters, into
`ledgerflow.tx.sign.sign` to collect signatures, and into
`ledgerflow.tx.send.execute` to submit and resolve a receipt.

Design notes
------------
- Builders are pure: no network I/O, no clock, no randomness.
- Transfer-family drafts are checked to net to zero per asset; violations raise
  `InvalidDraft` so they never reach the bind stage.
- Token, allowance and account operations validate identifiers and integer
  parameters and raise `InvalidParameters`.
- Kind-specific parameters live in `TransactionDraft.body`, a CBOR-friendly
  mapping (str/int/bool/None/bytes/lists/maps only). Its keys are part of the
  wire format, see `ledgerflow.tx.encode`.

Examples
--------
    from ledgerflow.tx import build

    draft = build.native_transfer("0.0.1001", "0.0.1002", 500)
    draft = build.transfer([build.native("0.0.1001", -10), build.native("0.0.1002", 10)])
    draft = build.token_create(name="Barrage GIGA Token v2", symbol="BGT", decimals=2,
                               initial_supply=35050, max_supply=50000,
                               treasury="0.0.1001", supply_key=pub, pause_key=pub)
"""

from __future__ import annotations

import dataclasses
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import (Any, Dict, Iterable, List, Mapping, Optional, Sequence,
                    Tuple, Type, TypeVar, Union)

from ..errors import InvalidDraft, InvalidParameters
from ..types.core import (AccountId, AccountLike, Amount, EntityId,
                          ScheduleId, TokenId, TokenLike, TopicId)
from ..wallet.keys import PrivateKey, PublicKey, coerce_public_key

MAX_MEMO_BYTES = 100
MAX_TOPIC_MESSAGE_BYTES = 1024
NATIVE = "native"

E = TypeVar("E", bound=EntityId)
PublicKeyLike = Union[PublicKey, PrivateKey, str, bytes]


class TxKind(str, Enum):
    TRANSFER = "Transfer"
    APPROVED_TRANSFER = "ApprovedTransfer"
    ALLOWANCE_APPROVAL = "AllowanceApproval"
    TOKEN_CREATE = "TokenCreate"
    TOKEN_ASSOCIATE = "TokenAssociate"
    TOKEN_PAUSE = "TokenPause"
    TOKEN_UNPAUSE = "TokenUnpause"
    SCHEDULE_CREATE = "ScheduleCreate"
    SCHEDULE_SIGN = "ScheduleSign"
    SCHEDULE_DELETE = "ScheduleDelete"
    ACCOUNT_CREATE = "AccountCreate"
    TOPIC_CREATE = "TopicCreate"
    TOPIC_MESSAGE_SUBMIT = "TopicMessageSubmit"


TRANSFER_KINDS = frozenset({TxKind.TRANSFER, TxKind.APPROVED_TRANSFER})


# -----------------------------------------------------------------------------
# Values
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class LineItem:
    """
    One signed-amount adjustment. `token=None` means the native currency.
    `approved=True` marks a debit drawn from an allowance granted by `account`.
    `decimals` optionally pins the token's expected decimals.
    """

    account: AccountId
    amount: Amount
    token: Optional[TokenId] = None
    approved: bool = False
    decimals: Optional[int] = None

    @property
    def asset(self) -> str:
        return NATIVE if self.token is None else str(self.token)

    @property
    def is_debit(self) -> bool:
        return self.amount < 0


@dataclass(frozen=True)
class TransactionDraft:
    kind: TxKind
    operations: Tuple[LineItem, ...] = ()
    payer: Optional[AccountId] = None
    memo: Optional[str] = None
    body: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def with_payer(self, payer: AccountLike) -> "TransactionDraft":
        return dataclasses.replace(self, payer=_entity(AccountId, payer, "payer"))

    def with_memo(self, memo: Optional[str]) -> "TransactionDraft":
        return dataclasses.replace(self, memo=_memo(memo))

    def debited_accounts(self) -> Tuple[AccountId, ...]:
        """Accounts debited directly (not via allowance), in first-seen order."""
        seen: Dict[AccountId, None] = {}
        for item in self.operations:
            if item.is_debit and not item.approved:
                seen.setdefault(item.account, None)
        return tuple(seen)


# -----------------------------------------------------------------------------
# Validation helpers
# -----------------------------------------------------------------------------


def _entity(cls: Type[E], value: Any, name: str) -> E:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidParameters(f"{name} must not be empty", parameter=name)
    try:
        return cls.parse(value)
    except (TypeError, ValueError) as e:
        raise InvalidParameters(str(e), parameter=name) from e


def _non_negative_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameters(f"{name} must be an integer, got {value!r}", parameter=name)
    if value < 0:
        raise InvalidParameters(f"{name} must be non-negative", parameter=name)
    return value


def _memo(memo: Optional[str], name: str = "memo") -> Optional[str]:
    if memo is None:
        return None
    if not isinstance(memo, str):
        raise InvalidParameters(f"{name} must be a string", parameter=name)
    if len(memo.encode("utf-8")) > MAX_MEMO_BYTES:
        raise InvalidParameters(f"{name} exceeds {MAX_MEMO_BYTES} bytes", parameter=name)
    return memo


def _key_hex(key: Optional[PublicKeyLike], name: str) -> Optional[str]:
    try:
        pub = coerce_public_key(key)
    except (TypeError, ValueError) as e:
        raise InvalidParameters(str(e), parameter=name) from e
    return pub.to_string_raw() if pub is not None else None


def _payer(payer: Optional[AccountLike]) -> Optional[AccountId]:
    return None if payer is None else _entity(AccountId, payer, "payer")


def check_balanced(operations: Sequence[LineItem]) -> None:
    """Raise InvalidDraft unless signed amounts net to zero for every asset."""
    if not operations:
        raise InvalidDraft("transfer has no line items")
    totals: Dict[str, int] = defaultdict(int)
    for item in operations:
        if isinstance(item.amount, bool) or not isinstance(item.amount, int):
            raise InvalidDraft(f"amount must be an integer, got {item.amount!r}", asset=item.asset)
        totals[item.asset] += item.amount
    for asset, total in sorted(totals.items()):
        if total != 0:
            raise InvalidDraft(f"line items sum to {total}, expected 0", asset=asset)


# -----------------------------------------------------------------------------
# Line items
# -----------------------------------------------------------------------------


def native(account: AccountLike, amount: Amount, *, approved: bool = False) -> LineItem:
    return LineItem(account=_entity(AccountId, account, "account"), amount=amount, approved=approved)


def token(
    token_id: TokenLike,
    account: AccountLike,
    amount: Amount,
    *,
    approved: bool = False,
    decimals: Optional[int] = None,
) -> LineItem:
    return LineItem(
        account=_entity(AccountId, account, "account"),
        amount=amount,
        token=_entity(TokenId, token_id, "token"),
        approved=approved,
        decimals=None if decimals is None else _non_negative_int(decimals, "decimals"),
    )


LineItemLike = Union[LineItem, Tuple[AccountLike, Amount]]


def _line_items(items: Iterable[LineItemLike]) -> Tuple[LineItem, ...]:
    out: List[LineItem] = []
    for it in items:
        if isinstance(it, LineItem):
            out.append(it)
        else:
            acct, amount = it
            out.append(native(acct, amount))
    return tuple(out)


# -----------------------------------------------------------------------------
# Transfer family
# -----------------------------------------------------------------------------


def transfer(
    items: Iterable[LineItemLike],
    *,
    payer: Optional[AccountLike] = None,
    memo: Optional[str] = None,
) -> TransactionDraft:
    """
    Build a (possibly multi-asset) transfer. Items marked `approved` turn the
    draft into an ApprovedTransfer.
    """
    ops = _line_items(items)
    check_balanced(ops)
    kind = TxKind.APPROVED_TRANSFER if any(i.approved for i in ops) else TxKind.TRANSFER
    for item in ops:
        if item.approved and not item.is_debit:
            raise InvalidDraft("only debits can be drawn from an allowance", asset=item.asset)
    return TransactionDraft(kind=kind, operations=ops, payer=_payer(payer), memo=_memo(memo))


def native_transfer(
    sender: AccountLike,
    recipient: AccountLike,
    amount: Amount,
    *,
    payer: Optional[AccountLike] = None,
    memo: Optional[str] = None,
) -> TransactionDraft:
    """Move `amount` native units from `sender` to `recipient`."""
    return transfer([native(sender, -amount), native(recipient, amount)], payer=payer, memo=memo)


def token_transfer(
    token_id: TokenLike,
    sender: AccountLike,
    recipient: AccountLike,
    amount: Amount,
    *,
    decimals: Optional[int] = None,
    payer: Optional[AccountLike] = None,
    memo: Optional[str] = None,
) -> TransactionDraft:
    return transfer(
        [
            token(token_id, sender, -amount, decimals=decimals),
            token(token_id, recipient, amount, decimals=decimals),
        ],
        payer=payer,
        memo=memo,
    )


def approved_transfer(
    owner: AccountLike,
    recipient: AccountLike,
    amount: Amount,
    *,
    spender: AccountLike,
    token_id: Optional[TokenLike] = None,
    memo: Optional[str] = None,
) -> TransactionDraft:
    """
    Spend `amount` of `owner`'s funds on `spender`'s allowance. The spender is
    the payer and the only required signer.
    """
    if token_id is None:
        items = [native(owner, -amount, approved=True), native(recipient, amount)]
    else:
        items = [token(token_id, owner, -amount, approved=True), token(token_id, recipient, amount)]
    return transfer(items, payer=spender, memo=memo)


# -----------------------------------------------------------------------------
# Accounts & allowances
# -----------------------------------------------------------------------------


def account_create(
    key: PublicKeyLike,
    *,
    initial_balance: Amount = 0,
    payer: Optional[AccountLike] = None,
    memo: Optional[str] = None,
) -> TransactionDraft:
    body = {
        "key": _key_hex(key, "key"),
        "initialBalance": _non_negative_int(initial_balance, "initial_balance"),
    }
    if body["key"] is None:
        raise InvalidParameters("key must not be empty", parameter="key")
    return TransactionDraft(kind=TxKind.ACCOUNT_CREATE, payer=_payer(payer), memo=_memo(memo), body=body)


@dataclass(frozen=True)
class AllowanceGrant:
    owner: AccountId
    spender: AccountId
    token: Optional[TokenId]
    limit: Amount

    def to_body(self) -> Dict[str, Any]:
        return {
            "owner": str(self.owner),
            "spender": str(self.spender),
            "token": None if self.token is None else str(self.token),
            "amount": int(self.limit),
        }


def allowance_grant(
    owner: AccountLike,
    spender: AccountLike,
    limit: Amount,
    *,
    token_id: Optional[TokenLike] = None,
) -> AllowanceGrant:
    owner_id = _entity(AccountId, owner, "owner")
    spender_id = _entity(AccountId, spender, "spender")
    if owner_id == spender_id:
        raise InvalidParameters("owner and spender must differ", parameter="spender")
    return AllowanceGrant(
        owner=owner_id,
        spender=spender_id,
        token=None if token_id is None else _entity(TokenId, token_id, "token"),
        limit=_non_negative_int(limit, "limit"),
    )


def allowance_approval(
    grants: Iterable[AllowanceGrant],
    *,
    payer: Optional[AccountLike] = None,
    memo: Optional[str] = None,
) -> TransactionDraft:
    """Approve one or more allowances; each grant's owner must sign."""
    items = [g.to_body() for g in grants]
    if not items:
        raise InvalidParameters("at least one allowance is required", parameter="grants")
    return TransactionDraft(
        kind=TxKind.ALLOWANCE_APPROVAL, payer=_payer(payer), memo=_memo(memo), body={"allowances": items}
    )


# -----------------------------------------------------------------------------
# Tokens
# -----------------------------------------------------------------------------


def token_create(
    *,
    name: str,
    symbol: str,
    treasury: AccountLike,
    decimals: int = 0,
    initial_supply: int = 0,
    max_supply: Optional[int] = None,
    supply_key: Optional[PublicKeyLike] = None,
    pause_key: Optional[PublicKeyLike] = None,
    admin_key: Optional[PublicKeyLike] = None,
    payer: Optional[AccountLike] = None,
    memo: Optional[str] = None,
) -> TransactionDraft:
    """
    Create a fungible token. `max_supply=None` means infinite supply; otherwise
    the supply is finite and `initial_supply` must not exceed it.
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidParameters("name must not be empty", parameter="name")
    if not isinstance(symbol, str) or not symbol.strip():
        raise InvalidParameters("symbol must not be empty", parameter="symbol")
    decimals = _non_negative_int(decimals, "decimals")
    initial_supply = _non_negative_int(initial_supply, "initial_supply")
    if max_supply is not None:
        max_supply = _non_negative_int(max_supply, "max_supply")
        if max_supply == 0:
            raise InvalidParameters("finite max_supply must be positive", parameter="max_supply")
        if initial_supply > max_supply:
            raise InvalidParameters("initial_supply exceeds max_supply", parameter="initial_supply")

    body = {
        "name": name,
        "symbol": symbol,
        "decimals": decimals,
        "initialSupply": initial_supply,
        "maxSupply": max_supply,
        "supplyType": "INFINITE" if max_supply is None else "FINITE",
        "treasury": str(_entity(AccountId, treasury, "treasury")),
        "supplyKey": _key_hex(supply_key, "supply_key"),
        "pauseKey": _key_hex(pause_key, "pause_key"),
        "adminKey": _key_hex(admin_key, "admin_key"),
    }
    return TransactionDraft(kind=TxKind.TOKEN_CREATE, payer=_payer(payer), memo=_memo(memo), body=body)


def token_associate(
    account: AccountLike,
    token_ids: Iterable[TokenLike],
    *,
    payer: Optional[AccountLike] = None,
    memo: Optional[str] = None,
) -> TransactionDraft:
    tokens = [str(_entity(TokenId, t, "token")) for t in token_ids]
    if not tokens:
        raise InvalidParameters("at least one token id is required", parameter="token_ids")
    if len(set(tokens)) != len(tokens):
        raise InvalidParameters("duplicate token id", parameter="token_ids")
    body = {"account": str(_entity(AccountId, account, "account")), "tokens": tokens}
    return TransactionDraft(kind=TxKind.TOKEN_ASSOCIATE, payer=_payer(payer), memo=_memo(memo), body=body)


def _token_flag(kind: TxKind, token_id: TokenLike, payer: Optional[AccountLike], memo: Optional[str]) -> TransactionDraft:
    body = {"token": str(_entity(TokenId, token_id, "token"))}
    return TransactionDraft(kind=kind, payer=_payer(payer), memo=_memo(memo), body=body)


def token_pause(token_id: TokenLike, *, payer: Optional[AccountLike] = None, memo: Optional[str] = None) -> TransactionDraft:
    return _token_flag(TxKind.TOKEN_PAUSE, token_id, payer, memo)


def token_unpause(token_id: TokenLike, *, payer: Optional[AccountLike] = None, memo: Optional[str] = None) -> TransactionDraft:
    return _token_flag(TxKind.TOKEN_UNPAUSE, token_id, payer, memo)


# -----------------------------------------------------------------------------
# Schedules
# -----------------------------------------------------------------------------


def schedule_create(
    child: bytes,
    *,
    admin_key: Optional[PublicKeyLike] = None,
    schedule_memo: Optional[str] = None,
    expiry_seconds: Optional[int] = None,
    payer: Optional[AccountLike] = None,
    memo: Optional[str] = None,
) -> TransactionDraft:
    """
    Wrap a serialized child transaction (see `ledgerflow.tx.encode.serialize`).
    The child may carry zero or more signatures already.
    """
    if not isinstance(child, (bytes, bytearray)) or not child:
        raise InvalidParameters("child transaction bytes must not be empty", parameter="child")
    if expiry_seconds is not None and _non_negative_int(expiry_seconds, "expiry_seconds") == 0:
        raise InvalidParameters("expiry_seconds must be positive", parameter="expiry_seconds")
    body = {
        "child": bytes(child),
        "adminKey": _key_hex(admin_key, "admin_key"),
        "scheduleMemo": _memo(schedule_memo, "schedule_memo"),
        "expirySeconds": expiry_seconds,
    }
    return TransactionDraft(kind=TxKind.SCHEDULE_CREATE, payer=_payer(payer), memo=_memo(memo), body=body)


def schedule_sign(schedule_id: Union[str, ScheduleId], *, payer: Optional[AccountLike] = None) -> TransactionDraft:
    body = {"schedule": str(_entity(ScheduleId, schedule_id, "schedule_id"))}
    return TransactionDraft(kind=TxKind.SCHEDULE_SIGN, payer=_payer(payer), body=body)


def schedule_delete(schedule_id: Union[str, ScheduleId], *, payer: Optional[AccountLike] = None) -> TransactionDraft:
    body = {"schedule": str(_entity(ScheduleId, schedule_id, "schedule_id"))}
    return TransactionDraft(kind=TxKind.SCHEDULE_DELETE, payer=_payer(payer), body=body)


# -----------------------------------------------------------------------------
# Topics (consensus messages)
# -----------------------------------------------------------------------------


def topic_create(
    *,
    topic_memo: Optional[str] = None,
    admin_key: Optional[PublicKeyLike] = None,
    submit_key: Optional[PublicKeyLike] = None,
    payer: Optional[AccountLike] = None,
) -> TransactionDraft:
    body = {
        "topicMemo": _memo(topic_memo, "topic_memo"),
        "adminKey": _key_hex(admin_key, "admin_key"),
        "submitKey": _key_hex(submit_key, "submit_key"),
    }
    return TransactionDraft(kind=TxKind.TOPIC_CREATE, payer=_payer(payer), body=body)


def topic_message_submit(
    topic_id: Union[str, TopicId],
    message: Union[str, bytes],
    *,
    payer: Optional[AccountLike] = None,
) -> TransactionDraft:
    data = message.encode("utf-8") if isinstance(message, str) else bytes(message)
    if not data:
        raise InvalidParameters("message must not be empty", parameter="message")
    if len(data) > MAX_TOPIC_MESSAGE_BYTES:
        raise InvalidParameters(f"message exceeds {MAX_TOPIC_MESSAGE_BYTES} bytes", parameter="message")
    body = {"topic": str(_entity(TopicId, topic_id, "topic_id")), "message": data}
    return TransactionDraft(kind=TxKind.TOPIC_MESSAGE_SUBMIT, payer=_payer(payer), body=body)


__all__ = [
    "NATIVE",
    "TxKind",
    "TRANSFER_KINDS",
    "LineItem",
    "TransactionDraft",
    "AllowanceGrant",
    "check_balanced",
    "native",
    "token",
    "transfer",
    "native_transfer",
    "token_transfer",
    "approved_transfer",
    "account_create",
    "allowance_grant",
    "allowance_approval",
    "token_create",
    "token_associate",
    "token_pause",
    "token_unpause",
    "schedule_create",
    "schedule_sign",
    "schedule_delete",
    "topic_create",
    "topic_message_submit",
]
