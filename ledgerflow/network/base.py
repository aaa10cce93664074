"""
The network collaborator.

Everything ledgerflow needs from a ledger network is captured by the
`Network` protocol below. Payloads are plain dicts shaped as documented on
each method so that a JSON-RPC node, the in-process simulator and test stubs
are interchangeable.

Transient transport failures must be raised as `ledgerflow.errors.NetworkError`
(one per attempt); the submission resolver owns the retry policy.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

from ..types.core import TopicMessage

log = logging.getLogger(__name__)

OnMessage = Callable[[TopicMessage], None]


class Subscription:
    """
    Handle for a topic subscription. `unsubscribe()` is idempotent; after it
    returns no further messages are delivered.
    """

    def __init__(self, topic_id: str, on_close: Optional[Callable[[], None]] = None) -> None:
        self.topic_id = topic_id
        self._on_close = on_close
        self._closed = threading.Event()

    @property
    def active(self) -> bool:
        return not self._closed.is_set()

    def unsubscribe(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        if self._on_close is not None:
            self._on_close()
        log.debug("unsubscribed from topic %s", self.topic_id)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.unsubscribe()


@runtime_checkable
class Network(Protocol):
    def submit_transaction(self, signed_bytes: bytes) -> Dict[str, Any]:
        """Hand over serialized transaction bytes. Returns an ack: {"transactionId", "nodeId"?}."""
        ...

    def get_receipt(self, transaction_id: str) -> Dict[str, Any]:
        """Receipt payload, see `ledgerflow.types.receipt`. Unknown ids report status UNKNOWN."""
        ...

    def get_account_balance(self, account_id: str) -> Dict[str, Any]:
        """{"native": int, "tokens": {"0.0.N": int}}"""
        ...

    def get_schedule_info(self, schedule_id: str) -> Dict[str, Any]:
        """
        {"scheduleId", "state": CREATED|EXECUTED|EXPIRED|DELETED, "expiresAt": float,
         "signatories": [pubkey hex], "scheduledTransactionId",
         "scheduledTransaction": <hex envelope of the child>, "memo"?}
        """
        ...

    def subscribe_to_topic(
        self, topic_id: str, start_time: Optional[float], on_message: OnMessage
    ) -> Subscription:
        """Deliver every message with consensus timestamp >= start_time (all when None)."""
        ...

    def close(self) -> None:
        ...


__all__ = ["Network", "Subscription", "OnMessage"]
