"""
Typed error classes for ledgerflow.

These are raised by the draft builders, the bind stage, the submission/receipt
resolver, the coordinators and the rpc/http transport so callers can catch
specific failure modes while still being able to catch the base
`LedgerFlowError`.

Propagation policy
------------------
- Local/structural errors (`InvalidDraft`, `InvalidParameters`, `BindingError`,
  `UnauthorizedSubmission`) are raised before any network call.
- `NetworkError` is raised only after transient failures have been retried.
- `TxFailed` (and its specialisations) carry the network-provided status code
  verbatim. A PENDING receipt is never an error.

Every error that concerns a transaction carries its transaction id (when one
was assigned) so callers can reconcile externally.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

__all__ = [
    "LedgerFlowError",
    "InvalidDraft",
    "InvalidParameters",
    "BindingError",
    "UnauthorizedSubmission",
    "NetworkError",
    "TxFailed",
    "AllowanceExceeded",
    "ScheduleExpired",
    "ReceiptPending",
    "IncompleteReceipt",
    "RegistryError",
    "ConfigError",
    "RpcError",
    "JsonRpcCode",
    "from_jsonrpc_error",
]


class LedgerFlowError(Exception):
    """Base class for all ledgerflow errors."""


def _tx_suffix(transaction_id: Optional[str]) -> str:
    return f" tx={transaction_id}" if transaction_id else ""


@dataclass(slots=True)
class InvalidDraft(LedgerFlowError):
    """A transfer-family draft is structurally invalid (e.g. line items do not net to zero)."""

    message: str
    asset: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = f" [asset={self.asset}]" if self.asset else ""
        return f"InvalidDraft{where}: {self.message}"


@dataclass(slots=True)
class InvalidParameters(LedgerFlowError):
    """Operation parameters failed local validation (empty ids, negative supply, ...)."""

    message: str
    parameter: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = f" [param={self.parameter}]" if self.parameter else ""
        return f"InvalidParameters{where}: {self.message}"


@dataclass(slots=True)
class BindingError(LedgerFlowError):
    """A draft could not be bound to network parameters (missing payer or signer context)."""

    message: str
    payer: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        who = f" payer={self.payer}" if self.payer else ""
        return f"BindingError{who}: {self.message}"


@dataclass(slots=True)
class UnauthorizedSubmission(LedgerFlowError):
    """The transaction lacks a signature from an account authorized to pay/approve it."""

    message: str
    transaction_id: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"UnauthorizedSubmission{_tx_suffix(self.transaction_id)}: {self.message}"


@dataclass(slots=True)
class NetworkError(LedgerFlowError):
    """
    Transient transport/node failure (node unreachable, throttled, timeout).

    Raised by network clients for a single attempt; the resolver retries these
    and re-raises a `NetworkError` with `attempts` set once it gives up.
    """

    message: str
    transaction_id: Optional[str] = None
    node_id: Optional[str] = None
    attempts: int = 1

    def __str__(self) -> str:  # pragma: no cover - trivial
        node = f" node={self.node_id}" if self.node_id else ""
        return (
            f"NetworkError{_tx_suffix(self.transaction_id)}{node}"
            f" attempts={self.attempts}: {self.message}"
        )


@dataclass(slots=True)
class TxFailed(LedgerFlowError):
    """
    The network accepted the transaction but rejected it at execution (or
    precheck). `status` is the network status code, e.g. "TOKEN_IS_PAUSED".
    """

    status: str
    transaction_id: Optional[str] = None
    message: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        msg = f": {self.message}" if self.message else ""
        return f"{type(self).__name__}{_tx_suffix(self.transaction_id)} status={self.status}{msg}"


@dataclass(slots=True)
class AllowanceExceeded(TxFailed):
    """An approved transfer asked for more than the remaining granted allowance."""


@dataclass(slots=True)
class ScheduleExpired(TxFailed):
    """A signature was submitted against a schedule whose expiry has passed."""

    schedule_id: Optional[str] = None


@dataclass(slots=True)
class ReceiptPending(LedgerFlowError):
    """
    A flow needed the outcome of a transaction (e.g. the id it creates) but the
    receipt was still pending when the wait timed out. Poll again with
    `transaction_id`.
    """

    transaction_id: str
    message: str = "receipt still pending"

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"ReceiptPending{_tx_suffix(self.transaction_id)}: {self.message}"


@dataclass(slots=True)
class IncompleteReceipt(LedgerFlowError):
    """A SUCCESS receipt lacks the entity id its transaction should have created."""

    field: str
    transaction_id: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"IncompleteReceipt{_tx_suffix(self.transaction_id)}: receipt carries no {self.field}"


@dataclass(slots=True)
class RegistryError(LedgerFlowError):
    """Account registry file could not be read or written."""

    message: str
    path: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = f" path={self.path}" if self.path else ""
        return f"RegistryError{where}: {self.message}"


class ConfigError(LedgerFlowError, ValueError):
    """Invalid or missing configuration value."""


class JsonRpcCode(IntEnum):
    # JSON-RPC 2.0 standard codes
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Server errors (implementation-defined range: -32099 to -32000)
    SERVER_ERROR = -32000
    RATE_LIMITED = -32001
    UNAUTHORIZED = -32002
    TX_REJECTED = -32011
    NODE_BUSY = -32012

    # Client-side transport failure (never sent by a server)
    TRANSPORT = -32098


TRANSIENT_RPC_CODES = frozenset(
    {JsonRpcCode.RATE_LIMITED, JsonRpcCode.NODE_BUSY, JsonRpcCode.TRANSPORT}
)


@dataclass(slots=True)
class RpcError(LedgerFlowError):
    """Raised when a JSON-RPC call returns an error object."""

    code: int
    message: str
    method: Optional[str] = None
    data: Optional[Any] = None
    request_id: Optional[Any] = None
    http_status: Optional[int] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        parts = [f"RPC[{self.method or '-'}] code={self.code} msg={self.message!r}"]
        if self.request_id is not None:
            parts.append(f"id={self.request_id}")
        if self.http_status is not None:
            parts.append(f"http={self.http_status}")
        if self.data is not None:
            parts.append(f"data={self.data!r}")
        return " ".join(parts)

    @property
    def code_enum(self) -> Optional[JsonRpcCode]:
        try:
            return JsonRpcCode(self.code)
        except ValueError:
            return None

    @property
    def transient(self) -> bool:
        return self.code_enum in TRANSIENT_RPC_CODES


def from_jsonrpc_error(
    err_obj: Dict[str, Any],
    *,
    method: Optional[str] = None,
    request_id: Optional[Any] = None,
    http_status: Optional[int] = None,
) -> RpcError:
    """
    Convert a JSON-RPC error object into RpcError.

    `err_obj` should resemble: {"code": int, "message": str, "data": any?}
    """
    return RpcError(
        code=int(err_obj.get("code", JsonRpcCode.SERVER_ERROR)),
        message=str(err_obj.get("message", "Unknown JSON-RPC error")),
        method=method,
        data=err_obj.get("data"),
        request_id=request_id,
        http_status=http_status,
    )
