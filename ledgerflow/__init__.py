"""
ledgerflow
Client-side transaction orchestration: build, bind, sign, submit and
reconcile ledger transactions through asynchronously produced receipts.
"""

from .version import __version__  # noqa: F401

# Core config, context & errors
from .config import LedgerFlowConfig  # noqa: F401
from .context import NetworkContext  # noqa: F401
from .errors import (  # noqa: F401
    LedgerFlowError,
    InvalidDraft,
    InvalidParameters,
    BindingError,
    UnauthorizedSubmission,
    NetworkError,
    TxFailed,
    AllowanceExceeded,
    ScheduleExpired,
    ReceiptPending,
    IncompleteReceipt,
    RegistryError,
    ConfigError,
    RpcError,
)

# Types
from .types import (  # noqa: F401
    AccountId,
    TokenId,
    ScheduleId,
    TopicId,
    TransactionId,
    Balance,
    TopicMessage,
    Receipt,
    ReceiptStatus,
)

# Wallet
from .wallet import PrivateKey, PublicKey, Account, AccountRegistry  # noqa: F401

# Pipeline
from .tx import build  # noqa: F401
from .tx import (  # noqa: F401
    BoundTransaction,
    SignedTransaction,
    bind,
    sign,
    sign_all,
    serialize,
    deserialize,
    submit,
    await_receipt,
    await_receipt_async,
    execute,
)

# Networks
from .network import Network, InMemoryLedger, JsonRpcNetwork, open_network  # noqa: F401

# Coordinators
from . import accounts, allowance, schedule, tokens, topics  # noqa: F401

__all__ = [
    "__version__",
    # Core
    "LedgerFlowConfig", "NetworkContext",
    "LedgerFlowError", "InvalidDraft", "InvalidParameters", "BindingError",
    "UnauthorizedSubmission", "NetworkError", "TxFailed", "AllowanceExceeded",
    "ScheduleExpired", "ReceiptPending", "IncompleteReceipt", "RegistryError", "ConfigError", "RpcError",
    # Types
    "AccountId", "TokenId", "ScheduleId", "TopicId", "TransactionId",
    "Balance", "TopicMessage", "Receipt", "ReceiptStatus",
    # Wallet
    "PrivateKey", "PublicKey", "Account", "AccountRegistry",
    # Pipeline
    "build", "BoundTransaction", "SignedTransaction",
    "bind", "sign", "sign_all", "serialize", "deserialize",
    "submit", "await_receipt", "await_receipt_async", "execute",
    # Networks
    "Network", "InMemoryLedger", "JsonRpcNetwork", "open_network",
    # Coordinators
    "accounts", "allowance", "schedule", "tokens", "topics",
]
